"""Tests for the HTTP API and the VerificationAPIClient, against the in-process app."""

from __future__ import annotations

from unittest.mock import AsyncMock

import aiosmtplib
import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from otp_verify.api.dependencies import get_email_service, get_otp_manager
from otp_verify.config import settings
from otp_verify.database.engine import get_session
from otp_verify.main import app
from otp_verify.models.user import Base, User
from otp_verify.otp.manager import OTPManager
from otp_verify.otp.store import OTPStore
from otp_verify.services.client_api import VerificationAPIClient
from otp_verify.services.email_service import EmailService

# ── In-memory test database ─────────────────────────────
_test_engine = create_async_engine("sqlite+aiosqlite://", echo=False)
_test_session_factory = async_sessionmaker(_test_engine, expire_on_commit=False)


async def _test_session():
    async with _test_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@pytest_asyncio.fixture
async def seeded_db():
    async with _test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with _test_session_factory() as session:
        session.add(User(email="alice@example.com", name="Alice Johnson"))
        await session.commit()
    yield
    async with _test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def email_service():
    svc = EmailService()
    svc.send_otp = AsyncMock()
    return svc


@pytest.fixture
def otp_manager():
    return OTPManager(OTPStore(hash_cost=4))


@pytest_asyncio.fixture
async def client(seeded_db, otp_manager, email_service):
    app.dependency_overrides[get_session] = _test_session
    app.dependency_overrides[get_otp_manager] = lambda: otp_manager
    app.dependency_overrides[get_email_service] = lambda: email_service
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


def _sent_code(email_service) -> str:
    """The plaintext code handed to the (mocked) email channel."""
    return email_service.send_otp.call_args.args[1]


# ── Endpoints ────────────────────────────────────────────

@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_register_then_verify(client, email_service):
    resp = await client.post(
        "/auth/register", json={"email": "New@Example.com", "name": "New"}
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    assert body["otp"] is None

    code = _sent_code(email_service)
    resp = await client.post(
        "/auth/verify-otp", json={"email": "new@example.com", "otp": code}
    )
    assert resp.status_code == 200
    assert resp.json()["email"] == "new@example.com"

    # Verified accounts cannot request another code
    resp = await client.post("/auth/send-otp", json={"email": "new@example.com"})
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_register_duplicate(client):
    resp = await client.post("/auth/register", json={"email": "alice@example.com"})
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_send_otp_exposes_code_only_when_enabled(client, email_service, monkeypatch):
    resp = await client.post("/auth/send-otp", json={"email": "alice@example.com"})
    assert resp.status_code == 200
    assert resp.json()["otp"] is None

    monkeypatch.setattr(settings, "otp_expose_code", True)
    resp = await client.post("/auth/resend-otp", json={"email": "alice@example.com"})
    assert resp.status_code == 200
    assert resp.json()["otp"] == _sent_code(email_service)


@pytest.mark.asyncio
async def test_send_otp_reports_failed_delivery(client, email_service):
    resp = await client.post("/auth/send-otp", json={"email": "alice@example.com"})
    assert resp.json()["delivered"] is True

    email_service.send_otp.side_effect = aiosmtplib.SMTPException("relay down")
    resp = await client.post("/auth/resend-otp", json={"email": "alice@example.com"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["delivered"] is False
    assert "could not be delivered" in body["message"]

    # The undelivered code is still the live one
    code = _sent_code(email_service)
    resp = await client.post(
        "/auth/verify-otp", json={"email": "alice@example.com", "otp": code}
    )
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_send_otp_unknown_and_malformed(client):
    resp = await client.post("/auth/send-otp", json={"email": "nobody@example.com"})
    assert resp.status_code == 404

    resp = await client.post("/auth/send-otp", json={"email": "not-an-email"})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_verify_wrong_code(client):
    await client.post("/auth/send-otp", json={"email": "alice@example.com"})

    resp = await client.post(
        "/auth/verify-otp", json={"email": "alice@example.com", "otp": "000000"}
    )

    assert resp.status_code == 400
    assert resp.json()["detail"]["outcome"] == "invalid"


@pytest.mark.asyncio
async def test_verify_malformed_code(client):
    await client.post("/auth/send-otp", json={"email": "alice@example.com"})
    resp = await client.post(
        "/auth/verify-otp", json={"email": "alice@example.com", "otp": "12"}
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_otp_status_hidden_unless_debug(client, monkeypatch):
    await client.post("/auth/send-otp", json={"email": "alice@example.com"})

    resp = await client.get("/auth/otp-status", params={"email": "alice@example.com"})
    assert resp.status_code == 404

    monkeypatch.setattr(settings, "debug", True)
    resp = await client.get("/auth/otp-status", params={"email": "alice@example.com"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["attempts"] == 0
    assert body["remaining_attempts"] == 5
    assert "code_hash" not in body


# ── VerificationAPIClient ────────────────────────────────

@pytest.mark.asyncio
async def test_api_client_flow(client, email_service, monkeypatch):
    monkeypatch.setattr(settings, "debug", True)
    api = VerificationAPIClient(
        base_url="http://test", transport=httpx.ASGITransport(app=app)
    )

    sent = await api.send_otp("alice@example.com")
    assert sent.success is True
    assert sent.delivered is True
    code = _sent_code(email_service)

    wrong = await api.verify_otp("alice@example.com", "000000")
    assert wrong.success is False
    assert wrong.outcome == "invalid"

    status = await api.otp_status("alice@example.com")
    assert status.attempts == 1
    assert status.remaining_attempts == 4

    right = await api.verify_otp("alice@example.com", code)
    assert right.success is True
    assert right.outcome == "valid"

    assert await api.otp_status("alice@example.com") is None


@pytest.mark.asyncio
async def test_api_client_send_failure(client):
    api = VerificationAPIClient(
        base_url="http://test", transport=httpx.ASGITransport(app=app)
    )
    result = await api.resend_otp("nobody@example.com")
    assert result.success is False
    assert result.message == "User not found"
