from typing import Optional

from fastapi import Depends, Request

from payportal.errors import AuthenticationError, AuthorizationError
from payportal.services.actor import Actor, EMPLOYEE, CUSTOMER
from payportal.services.auth_service import is_token_revoked
from payportal.services.token_service import verify_access_token


def _extract_bearer_token(request: Request) -> Optional[str]:
    auth = request.headers.get("Authorization")
    if auth and auth.startswith("Bearer "):
        return auth.split(" ", 1)[1].strip() or None
    return None


# Dependency to extract full JWT claims
async def get_current_claims(request: Request) -> dict:
    token = _extract_bearer_token(request)
    if not token:
        raise AuthenticationError("Missing or invalid token.")
    payload = verify_access_token(token)
    if payload is None:
        raise AuthenticationError("Invalid or expired token.")
    if await is_token_revoked(payload):
        raise AuthenticationError("Token has been revoked.")
    return payload


async def get_current_actor(claims: dict = Depends(get_current_claims)) -> Actor:
    return Actor.from_claims(claims)


# Dependency to require a user type; returns the actor for downstream usage
def require_user_type(user_type: str):
    async def dependency(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.user_type != user_type:
            raise AuthorizationError("Access denied for this account type.")
        return actor
    return dependency


require_employee = require_user_type(EMPLOYEE)
require_customer = require_user_type(CUSTOMER)
