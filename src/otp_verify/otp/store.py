"""In-memory OTP record store with per-identity locking and expiry."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum

from otp_verify.errors import ValidationError
from otp_verify.otp import hashing
from otp_verify.otp.models import OTPMetadata, OTPRecord
from otp_verify.otp.validation import (
    IdentityValidator,
    is_email,
    normalize_identity,
    validate_code,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
CodeComparator = Callable[[str], Awaitable[bool]]

DEFAULT_TTL = timedelta(minutes=5)
DEFAULT_MAX_ATTEMPTS = 5


def utc_now() -> datetime:
    return datetime.now(UTC)


class AttemptStatus(str, Enum):
    GRANTED = "granted"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class AttemptResult:
    """Outcome of one verification attempt against an identity.

    ``attempt`` is the 1-based number of the attempt that was consumed and
    ``matched`` the comparison result; both are only meaningful when the
    attempt was granted.
    """

    identity: str
    status: AttemptStatus
    attempt: int = 0
    matched: bool = False


@dataclass
class _LockEntry:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class OTPStore:
    """Maps a normalized identity to at most one live :class:`OTPRecord`.

    Every mutation of an identity runs under that identity's lock, so
    concurrent tasks working on the same identity are serialized while
    unrelated identities proceed independently.  Hashing a new code happens
    before the lock is taken; the comparison of a verification attempt runs
    under it, in a worker thread, so a record is judged by one caller at a
    time without stalling the event loop.

    An identity whose attempt budget ran out is locked out until the
    exhausted record would have expired, or until a new code is stored.
    """

    def __init__(
        self,
        *,
        ttl: timedelta = DEFAULT_TTL,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        code_length: int = 6,
        hash_cost: int = hashing.DEFAULT_COST,
        clock: Clock | None = None,
        identity_validator: IdentityValidator = is_email,
    ) -> None:
        if ttl <= timedelta(0):
            raise ValueError("TTL must be positive")
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.ttl = ttl
        self.max_attempts = max_attempts
        self.code_length = code_length
        self.hash_cost = hash_cost
        self._clock = clock or utc_now
        self._validator = identity_validator
        self._records: dict[str, OTPRecord] = {}
        self._lockouts: dict[str, datetime] = {}
        self._locks: dict[str, _LockEntry] = {}

    # ── Locking ──────────────────────────────────────────

    @asynccontextmanager
    async def _locked(self, identity: str) -> AsyncIterator[None]:
        """Hold the lock for *identity*; idle locks are dropped on exit."""
        entry = self._locks.get(identity)
        if entry is None:
            entry = self._locks[identity] = _LockEntry()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[identity]

    # ── Helpers ──────────────────────────────────────────

    def now(self) -> datetime:
        return self._clock()

    def normalize(self, identity: object) -> str:
        """Normalize *identity* with this store's validator (may raise)."""
        return normalize_identity(identity, self._validator)

    def _key(self, identity: object) -> str | None:
        try:
            return self.normalize(identity)
        except ValidationError:
            return None

    def _exhaust(self, identity: str, record: OTPRecord) -> None:
        del self._records[identity]
        self._lockouts[identity] = record.expires_at
        logger.warning(
            "OTP attempt budget exhausted for %s after %d attempts",
            identity,
            record.attempts,
        )

    # ── Public API ───────────────────────────────────────

    async def put(
        self, identity: object, code: object, ttl: timedelta | None = None
    ) -> OTPRecord:
        """Hash and store *code* for *identity*, replacing any live record.

        Raises ``InvalidIdentity`` or ``InvalidCode`` on malformed input.
        """
        key = self.normalize(identity)
        code = validate_code(code, self.code_length)
        ttl = self.ttl if ttl is None else ttl
        if ttl <= timedelta(0):
            raise ValueError("TTL must be positive")

        code_hash = await hashing.hash_code_async(code, self.hash_cost)

        async with self._locked(key):
            now = self._clock()
            record = OTPRecord(
                identity=key,
                code_hash=code_hash,
                expires_at=now + ttl,
                created_at=now,
            )
            replaced = key in self._records
            self._records[key] = record
            self._lockouts.pop(key, None)

        logger.info(
            "OTP stored for %s (expires %s%s)",
            key,
            record.expires_at.isoformat(),
            ", replaced previous code" if replaced else "",
        )
        return dataclasses.replace(record)

    def get(self, identity: object) -> OTPRecord | None:
        """Return a snapshot of the live record for *identity*, if any."""
        key = self._key(identity)
        if key is None:
            return None
        record = self._records.get(key)
        return dataclasses.replace(record) if record is not None else None

    async def delete(self, identity: object) -> bool:
        """Remove the record for *identity*.  Returns ``True`` if one existed."""
        key = self._key(identity)
        if key is None:
            return False
        async with self._locked(key):
            self._lockouts.pop(key, None)
            removed = self._records.pop(key, None) is not None
        if removed:
            logger.info("OTP deleted for %s", key)
        return removed

    async def inspect(self, identity: object) -> OTPMetadata | None:
        """Non-secret metadata for *identity*; expired records are evicted."""
        key = self._key(identity)
        if key is None:
            return None
        async with self._locked(key):
            record = self._records.get(key)
            if record is None:
                return None
            now = self._clock()
            if record.is_expired(now):
                del self._records[key]
                logger.info("OTP expired for %s (evicted on inspect)", key)
                return None
            return OTPMetadata(
                identity=key,
                expires_at=record.expires_at,
                attempts=record.attempts,
                remaining_attempts=max(self.max_attempts - record.attempts, 0),
                is_expired=False,
                created_at=record.created_at,
                last_attempt_at=record.last_attempt_at,
            )

    # ── Verification ─────────────────────────────────────

    async def attempt(self, identity: str, compare: CodeComparator) -> AttemptResult:
        """Consume one attempt against *identity* (already normalized).

        ``compare`` receives the stored hash and reports whether the caller's
        code matches it.  The identity lock is held from the budget check to
        the removal of a matched or exhausted record, so concurrent callers
        see each record in turn and a code is redeemed at most once.
        Expired and exhausted records are removed without calling ``compare``.
        """
        async with self._locked(identity):
            now = self._clock()

            locked_until = self._lockouts.get(identity)
            if locked_until is not None:
                if now < locked_until:
                    return AttemptResult(identity, AttemptStatus.EXHAUSTED)
                del self._lockouts[identity]

            record = self._records.get(identity)
            if record is None:
                return AttemptResult(identity, AttemptStatus.NOT_FOUND)

            if record.is_expired(now):
                del self._records[identity]
                logger.info("OTP expired for %s", identity)
                return AttemptResult(identity, AttemptStatus.EXPIRED)

            if record.attempts >= self.max_attempts:
                self._exhaust(identity, record)
                return AttemptResult(identity, AttemptStatus.EXHAUSTED)

            record.attempts += 1
            record.last_attempt_at = now

            matched = await compare(record.code_hash)
            if matched:
                del self._records[identity]
            elif record.attempts >= self.max_attempts:
                self._exhaust(identity, record)
            return AttemptResult(
                identity, AttemptStatus.GRANTED, attempt=record.attempts, matched=matched
            )

    # ── Maintenance ──────────────────────────────────────

    async def evict_expired(self) -> int:
        """Remove expired records and lapsed lockouts; return records removed.

        Keys are snapshotted first and each one is re-checked under its own
        lock, so concurrent ``put``/``delete`` calls are never blocked for
        the length of the scan.
        """
        now = self._clock()
        expired = [k for k, r in list(self._records.items()) if r.is_expired(now)]
        lapsed = [k for k, until in list(self._lockouts.items()) if now >= until]

        removed = 0
        for key in expired:
            async with self._locked(key):
                record = self._records.get(key)
                if record is not None and record.is_expired(self._clock()):
                    del self._records[key]
                    removed += 1
        for key in lapsed:
            async with self._locked(key):
                until = self._lockouts.get(key)
                if until is not None and self._clock() >= until:
                    del self._lockouts[key]
        return removed

    def clear(self) -> int:
        """Drop every record and lockout; return how many records were held."""
        count = len(self._records)
        self._records.clear()
        self._lockouts.clear()
        return count

    def __len__(self) -> int:
        return len(self._records)
