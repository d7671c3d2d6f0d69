import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import jwt, JWTError

from payportal.config import settings, DEFAULT_JWT_SECRET

logger = logging.getLogger(__name__)

JWT_SECRET = settings.jwt_secret
JWT_ALGORITHM = settings.jwt_algorithm

if JWT_SECRET == DEFAULT_JWT_SECRET:
    logger.warning("Using fallback JWT secret. Set JWT_SECRET environment variable for production.")


def create_token(data: dict, expires_in_seconds: int, scope: str) -> str:
    """Generic token creator. Adds scope, a unique token id and the expiry."""
    to_encode = data.copy()
    to_encode["scope"] = scope
    to_encode["jti"] = uuid.uuid4().hex
    expire = datetime.now(timezone.utc) + timedelta(seconds=expires_in_seconds)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, JWT_SECRET, algorithm=JWT_ALGORITHM)


def build_claims(account) -> Dict[str, Any]:
    """Identity, role and permission claims for an employee or customer."""
    return {
        "sub": str(account.id),
        "username": account.username,
        "user_type": account.user_type,
        "role": account.role_name,
        "permissions": list(account.permissions),
    }


def create_access_token(account, expires_in_seconds: Optional[int] = None) -> str:
    if expires_in_seconds is None:
        expires_in_seconds = settings.jwt_expires_minutes * 60
    return create_token(build_claims(account), expires_in_seconds, scope="access")


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError as e:
        logger.info("Invalid or expired token: %s", e)
        return None


def verify_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Decode a token and accept it only if it is an access token with an identity."""
    payload = decode_token(token)
    if not payload or payload.get("scope") != "access" or not payload.get("sub"):
        return None
    return payload


def seconds_until_expiry(payload: Dict[str, Any]) -> int:
    exp = payload.get("exp")
    if not exp:
        return 0
    remaining = int(exp - datetime.now(timezone.utc).timestamp())
    return max(remaining, 0)
