"""Application configuration.

Environment variables override all defaults.
"""

import os
from pathlib import Path
from typing import List


# Load .env for local development (safe no-op if not installed)
try:
    from dotenv import load_dotenv  # type: ignore

    _BACKEND_DIR = Path(__file__).resolve().parents[2]
    load_dotenv(dotenv_path=_BACKEND_DIR / ".env", override=False)
except ImportError:
    pass


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    # Database Configuration
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./crm.db")
    # Seconds a SQLite writer waits on a locked database before failing
    SQLITE_BUSY_TIMEOUT_SECONDS: float = float(os.getenv("SQLITE_BUSY_TIMEOUT_SECONDS", "15"))

    # JWT signing
    SECRET_KEY: str = os.getenv("SECRET_KEY", None)
    if not SECRET_KEY:
        if os.getenv("ENVIRONMENT", "development") == "production":
            raise ValueError("SECRET_KEY must be set in production environment")
        import warnings
        warnings.warn(
            "SECRET_KEY not set in environment. Using development default. "
            "Set SECRET_KEY in .env to a strong random value.",
            RuntimeWarning
        )
        SECRET_KEY = "development-only-weak-default-change-in-production"
    ALGORITHM: str = "HS256"

    # Demo sign-in (no credential store; see DEMO_USERS in core.security)
    DEMO_PASSWORD: str = os.getenv("DEMO_PASSWORD", "password")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "480"))
    SESSION_COOKIE_NAME: str = "crm_session"

    # Order placement
    # "pessimistic": per-product locks held until commit
    # "optimistic": conditional decrement, whole order retried on conflict
    ORDER_CONCURRENCY_STRATEGY: str = os.getenv("ORDER_CONCURRENCY_STRATEGY", "pessimistic")
    ORDER_LOCK_TIMEOUT_SECONDS: float = float(os.getenv("ORDER_LOCK_TIMEOUT_SECONDS", "5"))
    ORDER_MAX_ATTEMPTS: int = int(os.getenv("ORDER_MAX_ATTEMPTS", "3"))

    # Catalog / dashboard
    LOW_STOCK_THRESHOLD: int = int(os.getenv("LOW_STOCK_THRESHOLD", "5"))
    ACTIVE_REPAIR_STATUSES: List[str] = ["Received", "Diagnosing", "In Repair"]

    # CORS (specific origins only, no wildcards)
    CORS_ORIGINS: List[str] = [
        origin.strip()
        for origin in os.getenv(
            "CORS_ORIGINS",
            "http://localhost:5000,http://127.0.0.1:5000,http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if origin.strip()
    ]

    # Invoices
    BUSINESS_NAME: str = os.getenv("BUSINESS_NAME", "CRM Store")
    CURRENCY_SYMBOL: str = os.getenv("CURRENCY_SYMBOL", "$")

    SEED_DEMO_DATA: bool = _env_bool("SEED_DEMO_DATA", "true")

    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    DEBUG: bool = ENVIRONMENT == "development"
    SECURE_COOKIES: bool = ENVIRONMENT == "production"


settings = Settings()
