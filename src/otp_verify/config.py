"""OTP Verify — configuration loaded from environment."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, loaded from .env or environment variables."""

    # ── Database ──────────────────────────────────────────
    database_url: str = "sqlite+aiosqlite:///./otp_verify.db"

    # ── One-time passcodes ────────────────────────────────
    otp_code_length: int = 6
    otp_ttl_seconds: int = 300  # 5 minutes
    otp_max_attempts: int = 5
    otp_sweep_interval_seconds: float = 60.0
    otp_hash_cost: int = 10  # bcrypt log2 rounds
    # Echo issued codes in API responses; local development only
    otp_expose_code: bool = False

    # ── SMTP delivery ─────────────────────────────────────
    smtp_host: str = "localhost"
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_start_tls: bool = True
    email_from: str = "no-reply@example.com"

    # ── App ───────────────────────────────────────────────
    app_name: str = "OTP Verify"
    debug: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


# Singleton settings instance
settings = Settings()
