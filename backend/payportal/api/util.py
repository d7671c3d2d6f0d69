import json
from decimal import Decimal
from typing import Any, Dict, Optional

from fastapi import Request

from payportal.errors import ValidationError


def ok(data: Any = None, message: Optional[str] = None) -> dict:
    """Success response envelope."""
    body: dict = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return body


async def decimal_json_body(request: Request) -> Dict[str, Any]:
    """The request's JSON object with fractional numbers decoded as Decimal, never float."""
    raw = await request.body()
    try:
        payload = json.loads(raw or b"{}", parse_float=Decimal)
    except ValueError:
        raise ValidationError("Request body must be valid JSON")
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        # First hop is the original client
        return forwarded.split(",")[0].strip()
    return request.headers.get("x-real-ip") or (request.client and request.client.host) or "unknown"
