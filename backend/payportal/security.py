"""
HTTP hardening for the portal API.

The API only ever returns JSON, so the response headers forbid framing,
sniffing and every content source.
"""

import logging
from typing import List, Tuple

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware

from payportal.config import settings, Settings, DEFAULT_JWT_SECRET

logger = logging.getLogger(__name__)

API_METHODS = ["GET", "POST", "PUT", "OPTIONS"]
API_HEADERS = ["Accept", "Content-Type", "Authorization", "Origin"]

HSTS = (b"strict-transport-security", b"max-age=31536000; includeSubDomains")


def build_security_headers(hsts: bool = False) -> List[Tuple[bytes, bytes]]:
    headers = [
        (b"x-content-type-options", b"nosniff"),
        (b"x-frame-options", b"DENY"),
        (b"referrer-policy", b"no-referrer"),
        (b"cache-control", b"no-store"),
        (b"content-security-policy", b"default-src 'none'; frame-ancestors 'none'"),
    ]
    if hsts:
        headers.append(HSTS)
    return headers


class SecurityHeadersMiddleware:
    """Appends the security headers to every HTTP response."""

    def __init__(self, app, hsts: bool = False):
        self.app = app
        self.headers = build_security_headers(hsts)

    async def __call__(self, scope, receive, send):
        if scope.get("type") != "http":
            return await self.app(scope, receive, send)

        async def send_with_headers(message):
            if message.get("type") == "http.response.start":
                message["headers"] = list(message.get("headers", [])) + self.headers
            await send(message)

        return await self.app(scope, receive, send_with_headers)


class SecurityConfig:
    def __init__(self, config: Settings = settings):
        self.environment = config.environment
        self.allowed_hosts = config.allowed_hosts
        self.cors_origins = config.cors_origins()
        self.hsts = config.is_production

    def apply_security_middleware(self, app: FastAPI) -> None:
        """Install host checking, compression, security headers and CORS (outermost)."""
        app.add_middleware(TrustedHostMiddleware, allowed_hosts=self.allowed_hosts)
        app.add_middleware(GZipMiddleware, minimum_size=1000)
        app.add_middleware(SecurityHeadersMiddleware, hsts=self.hsts)
        app.add_middleware(
            CORSMiddleware,
            allow_origins=self.cors_origins,
            allow_credentials=False,
            allow_methods=API_METHODS,
            allow_headers=API_HEADERS,
            max_age=600,
        )
        logger.info("Security middleware applied (environment=%s, origins=%s)", self.environment, self.cors_origins)


def validate_environment(config: Settings = settings) -> None:
    """Warn at startup about configuration that is unsafe outside development."""
    if config.jwt_secret == DEFAULT_JWT_SECRET:
        logger.warning("JWT_SECRET is not set; using the development fallback")
    elif len(config.jwt_secret) < 32:
        logger.warning("JWT_SECRET is shorter than 32 characters")

    if not config.redis_uri:
        logger.warning("REDIS_URI not set; logout will not revoke tokens server-side")

    if config.environment not in ("development", "test", "staging", "production"):
        logger.warning("Unknown ENVIRONMENT value: %s", config.environment)

    if config.is_production and config.database_uri.startswith("sqlite"):
        logger.warning("SQLite DATABASE_URI in production; use PostgreSQL")


security_config = SecurityConfig()
