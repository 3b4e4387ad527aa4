import os
from dotenv import load_dotenv

load_dotenv()


def _as_bool(value: str) -> bool:
    return str(value).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """
    Holds settings read directly from environment variables.
    """
    # Database
    DATABASE_URL: str = os.environ.get("DATABASE_URL")

    # Redis
    APPLICATION_REDIS_URL: str = os.environ.get("APPLICATION_REDIS_URL")
    RATE_LIMITER_REDIS_URL: str = os.environ.get("RATE_LIMITER_REDIS_URL", "memory://")

    # Admin authentication
    SECRET_KEY: str = os.environ.get("SECRET_KEY", "change-me-in-production")
    ALGORITHM: str = os.environ.get("ALGORITHM", "HS256")
    ADMIN_TOKEN_EXPIRE_MINUTES: int = int(os.environ.get("ADMIN_TOKEN_EXPIRE_MINUTES", 7 * 24 * 60))
    ADMIN_SESSION_TTL_SECONDS: int = int(os.environ.get("ADMIN_SESSION_TTL_SECONDS", 7 * 24 * 3600))
    AUTH_COOKIE_NAME: str = os.environ.get("AUTH_COOKIE_NAME", "auth_token")
    AUTH_COOKIE_SECURE: bool = _as_bool(os.environ.get("AUTH_COOKIE_SECURE", "true"))

    # The calendar day used by the daily attendance limit
    APP_TIMEZONE: str = os.environ.get("APP_TIMEZONE", "UTC")

    SEED_DATABASE: bool = _as_bool(os.environ.get("SEED_DATABASE", "false"))
    CORS_ORIGINS: list = [o.strip() for o in os.environ.get("CORS_ORIGINS", "*").split(",") if o.strip()]

    # Logging
    LOG_DIR: str = os.environ.get("LOG_DIR", "logs")
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")

# Single importable instance of the settings
settings = Config()
