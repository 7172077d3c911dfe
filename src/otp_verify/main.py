"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from otp_verify.api.router import router as verification_router
from otp_verify.config import settings
from otp_verify.database.engine import dispose_db, init_db
from otp_verify.otp.manager import OTPManager

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle hook."""
    logger.info("Starting %s …", settings.app_name)
    await init_db()
    logger.info("Database initialised")

    otp_manager = OTPManager.from_settings(settings)
    otp_manager.start()
    app.state.otp_manager = otp_manager
    yield
    logger.info("Shutting down %s …", settings.app_name)
    await otp_manager.stop()
    await dispose_db()


app = FastAPI(
    title=settings.app_name,
    description="One-time passcode issuance and email verification",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(verification_router)


@app.get("/health")
async def health_check():
    """Simple liveness check."""
    return {"status": "healthy", "app": settings.app_name}


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    uvicorn.run(app, host="127.0.0.1", port=8000, log_level="info")
