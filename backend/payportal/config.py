"""
Runtime configuration for the payments portal.

Values come from the environment (optionally a ``.env`` file next to the
backend directory) and are read once at import time.
"""

import os
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv(dotenv_path=os.path.join(os.path.dirname(__file__), '../.env'))

DEFAULT_JWT_SECRET = "fallback-secret-key-for-development-only"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return int(value)


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return float(value)


class Settings:
    """Application settings"""

    def __init__(self):
        self.environment = os.getenv("ENVIRONMENT", "development").lower()
        self.log_level = os.getenv("LOG_LEVEL", "INFO")

        # Storage
        self.database_uri = os.getenv("DATABASE_URI", "sqlite+aiosqlite:///./payportal.db")
        self.db_echo = _env_bool("DB_ECHO", False)
        self.db_command_timeout = _env_float("DB_COMMAND_TIMEOUT", 10.0)
        self.db_pool_timeout = _env_float("DB_POOL_TIMEOUT", 10.0)
        self.redis_uri: Optional[str] = os.getenv("REDIS_URI") or None
        self.redis_socket_timeout = _env_float("REDIS_SOCKET_TIMEOUT", 5.0)

        # Tokens
        self.jwt_secret = os.getenv("JWT_SECRET", DEFAULT_JWT_SECRET)
        self.jwt_algorithm = os.getenv("JWT_ALGORITHM", "HS256")
        self.jwt_expires_minutes = _env_int("JWT_EXPIRES_MINUTES", 30)

        # Lockout
        self.lockout_threshold = _env_int("LOCKOUT_THRESHOLD", 5)
        self.lockout_minutes = _env_int("LOCKOUT_MINUTES", 15)

        # Workflow
        self.portal_timezone = os.getenv("PORTAL_TIMEZONE", "UTC")
        self.pending_page_size_max = _env_int("PENDING_PAGE_SIZE_MAX", 100)
        self.batch_size_max = _env_int("BATCH_SIZE_MAX", 500)

        # HTTP
        self.frontend_url = os.getenv("FRONTEND_URL")
        self.allowed_hosts = self._get_allowed_hosts()
        self.rate_limit_enabled = _env_bool("RATE_LIMIT_ENABLED", self.environment != "test")
        self.login_rate_limit = os.getenv("LOGIN_RATE_LIMIT", "5/minute; 20/hour")

        # Workers
        self.celery_broker_url = os.getenv("CELERY_BROKER_URL", self.redis_uri or "redis://localhost:6379/0")
        self.celery_result_backend = os.getenv("CELERY_RESULT_BACKEND", self.redis_uri or "redis://localhost:6379/0")

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    def _get_allowed_hosts(self) -> List[str]:
        raw = os.getenv("ALLOWED_HOSTS")
        if raw:
            return [h.strip() for h in raw.split(",") if h.strip()]
        return ["*"]

    def cors_origins(self) -> List[str]:
        origins = ["https://localhost:3000"]
        if not self.is_production:
            origins.append("http://localhost:3000")
        if self.frontend_url:
            origins.append(self.frontend_url.rstrip("/"))
        return origins


settings = Settings()
