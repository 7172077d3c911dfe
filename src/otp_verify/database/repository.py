"""User repository — data access layer for account lookups."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from otp_verify.models.user import User


class UserRepository:
    """Encapsulates all database queries related to users."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_by_email(self, email: str) -> User | None:
        """Look up an active user by their normalized email address."""
        stmt = select(User).where(User.email == email, User.is_active.is_(True))
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def exists(self, email: str) -> bool:
        """Whether any user, active or not, already owns *email*."""
        stmt = select(User.id).where(User.email == email)
        result = await self._session.execute(stmt)
        return result.first() is not None

    async def create(self, email: str, name: str = "") -> User:
        user = User(email=email, name=name)
        self._session.add(user)
        await self._session.flush()
        return user

    async def mark_verified(self, user: User) -> User:
        user.is_verified = True
        await self._session.flush()
        return user
