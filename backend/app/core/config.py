"""Application configuration.

Environment variables override all defaults.
SECRET_KEY must be set in .env for production - startup fails fast if missing.
"""

import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

# Load .env for local development; real environment variables win
_BACKEND_DIR = Path(__file__).resolve().parents[2]
load_dotenv(dotenv_path=_BACKEND_DIR / ".env", override=False)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if not raw:
        return default
    return [part.strip() for part in raw.split(",") if part.strip()]


class Settings:
    # Database Configuration
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./billing.db")

    # JWT Security
    SECRET_KEY: str = os.getenv("SECRET_KEY", None)
    if not SECRET_KEY:
        if os.getenv("ENVIRONMENT", "development") == "production":
            raise ValueError(
                "SECRET_KEY must be set in production environment. "
                "Generate with: python -c 'import secrets; print(secrets.token_urlsafe(32))'"
            )
        import warnings
        warnings.warn(
            "SECRET_KEY not set in environment. Using development default. "
            "Set SECRET_KEY in .env to a strong random value.",
            RuntimeWarning
        )
        SECRET_KEY = "development-only-weak-default-change-in-production"

    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "720"))

    CORS_ORIGINS: List[str] = _env_list("CORS_ORIGINS", [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ])

    # Invoice numbering: PREFIX/YY/DD####
    INVOICE_PREFIX: str = os.getenv("INVOICE_PREFIX", "INV")
    INVOICE_NUMBER_MAX_ATTEMPTS: int = int(os.getenv("INVOICE_NUMBER_MAX_ATTEMPTS", "5"))

    # Stock monitor
    STOCK_MONITOR_ENABLED: bool = _env_bool("STOCK_MONITOR_ENABLED", True)
    STOCK_CHECK_INTERVAL_SECONDS: int = int(os.getenv("STOCK_CHECK_INTERVAL_SECONDS", "300"))
    STOCK_ALERT_CACHE_SIZE: int = int(os.getenv("STOCK_ALERT_CACHE_SIZE", "1000"))

    # Telegram (Must be set via .env, never in code)
    TELEGRAM_BOT_TOKEN: str = os.getenv("TELEGRAM_BOT_TOKEN", "")
    TELEGRAM_ADMIN_CHAT_IDS: List[str] = _env_list("TELEGRAM_ADMIN_CHAT_IDS", [])
    TELEGRAM_BOT_POLLING: bool = _env_bool("TELEGRAM_BOT_POLLING", False)
    NOTIFY_TIMEOUT_SECONDS: float = float(os.getenv("NOTIFY_TIMEOUT_SECONDS", "10"))

    # First-run admin bootstrap
    ADMIN_EMAIL: str = os.getenv("ADMIN_EMAIL", "admin@pharmacy.com")
    ADMIN_PASSWORD: str = os.getenv("ADMIN_PASSWORD", "")

    # Heading printed on invoice PDFs
    STORE_NAME: str = os.getenv("STORE_NAME", "Pharmacy")

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    DEBUG: bool = ENVIRONMENT == "development"


settings = Settings()
