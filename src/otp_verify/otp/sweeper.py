"""Background task that evicts expired OTP records."""

from __future__ import annotations

import asyncio
import logging

from otp_verify.otp.store import OTPStore

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 60.0


class ExpirySweeper:
    """Periodically calls :meth:`OTPStore.evict_expired`.

    Verification checks expiry on its own; the sweeper only bounds memory
    for identities that are never checked again.  ``stop()`` cancels and
    awaits the task, so no scan runs once it has returned.
    """

    def __init__(
        self, store: OTPStore, interval: float = DEFAULT_INTERVAL_SECONDS
    ) -> None:
        if interval <= 0:
            raise ValueError("Sweep interval must be positive")
        self._store = store
        self._interval = interval
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the sweep loop on the running event loop (idempotent)."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="otp-expiry-sweeper")
        logger.info("OTP expiry sweeper started (every %.1fs)", self._interval)

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("OTP expiry sweeper stopped")

    async def run_once(self) -> int:
        """Run a single scan now; returns the number of records removed."""
        removed = await self._store.evict_expired()
        if removed:
            logger.info("Cleaned up %d expired OTP(s)", removed)
        return removed

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.run_once()
            except Exception:
                logger.exception("OTP expiry sweep failed")
