"""Tests for the background ExpirySweeper."""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from otp_verify.otp.manager import OTPManager
from otp_verify.otp.store import OTPStore
from otp_verify.otp.sweeper import ExpirySweeper

EMAIL = "alice@example.com"


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return OTPStore(hash_cost=4, clock=clock)


async def _wait_until(predicate, timeout: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


@pytest.mark.asyncio
async def test_run_once_evicts_expired(store, clock):
    sweeper = ExpirySweeper(store, interval=60)
    await store.put(EMAIL, "482193", ttl=timedelta(minutes=1))
    await store.put("bob@example.com", "482193", ttl=timedelta(minutes=10))
    clock.advance(minutes=1)

    assert await sweeper.run_once() == 1
    assert store.get(EMAIL) is None
    assert store.get("bob@example.com") is not None


@pytest.mark.asyncio
async def test_background_loop_evicts(store, clock):
    sweeper = ExpirySweeper(store, interval=0.01)
    await store.put(EMAIL, "482193")
    clock.advance(minutes=10)

    sweeper.start()
    try:
        assert sweeper.running
        await _wait_until(lambda: len(store) == 0)
    finally:
        await sweeper.stop()

    assert not sweeper.running


@pytest.mark.asyncio
async def test_no_scan_after_stop(store, clock, monkeypatch):
    sweeper = ExpirySweeper(store, interval=0.01)
    scans = 0
    real = store.evict_expired

    async def counting():
        nonlocal scans
        scans += 1
        return await real()

    monkeypatch.setattr(store, "evict_expired", counting)

    sweeper.start()
    await _wait_until(lambda: scans >= 1)
    await sweeper.stop()
    scans_at_stop = scans

    await store.put(EMAIL, "482193")
    clock.advance(minutes=10)
    await asyncio.sleep(0.05)

    assert scans == scans_at_stop
    assert len(store) == 1


@pytest.mark.asyncio
async def test_start_and_stop_are_idempotent(store):
    sweeper = ExpirySweeper(store, interval=0.01)
    await sweeper.stop()

    sweeper.start()
    sweeper.start()
    assert sweeper.running

    await sweeper.stop()
    await sweeper.stop()
    assert not sweeper.running


@pytest.mark.asyncio
async def test_loop_survives_scan_errors(store, monkeypatch):
    sweeper = ExpirySweeper(store, interval=0.01)
    calls = 0

    async def flaky():
        nonlocal calls
        calls += 1
        if calls == 1:
            raise RuntimeError("boom")
        return 0

    monkeypatch.setattr(store, "evict_expired", flaky)

    sweeper.start()
    try:
        await _wait_until(lambda: calls >= 2)
    finally:
        await sweeper.stop()


def test_interval_must_be_positive(store):
    with pytest.raises(ValueError):
        ExpirySweeper(store, interval=0)


@pytest.mark.asyncio
async def test_manager_controls_sweeper(clock):
    manager = OTPManager(OTPStore(hash_cost=4, clock=clock), sweep_interval=0.01)
    await manager.issue(EMAIL)
    clock.advance(minutes=10)

    manager.start()
    try:
        await _wait_until(lambda: len(manager.store) == 0)
    finally:
        await manager.stop()

    assert not manager.sweeper.running
