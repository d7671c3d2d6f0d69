"""
Typed error hierarchy for the payments portal.

Every error carries an HTTP ``status_code``, a machine-readable ``code`` (the
value returned in the ``error`` field of the response envelope) and a
``data`` dict of structured details. Services raise these; the exception
handlers in ``payportal.main`` turn them into responses.

    PortalError
    +-- ValidationError          400  fields
    +-- InvalidTransition        400  current_status, requested_status
    +-- NoEligibleTransactions   400
    +-- AuthenticationError      401
    +-- AuthorizationError       403
    |   +-- AccountLocked        403  remaining_minutes
    |   +-- AccountDisabled      403
    +-- NotFound                 404
    +-- ConflictError            409
    +-- StorageFault             500
"""

from typing import Any, Dict, Optional


class PortalError(Exception):
    """Base class for all portal errors."""

    status_code = 500
    code = "PortalError"
    default_message = "Unexpected error"

    def __init__(self, message: Optional[str] = None, **data: Any):
        self.message = message or self.default_message
        self.data: Dict[str, Any] = {k: v for k, v in data.items() if v is not None}
        super().__init__(self.message)


class ValidationError(PortalError):
    """Malformed or missing input. ``fields`` maps field name to problem."""

    status_code = 400
    code = "ValidationError"
    default_message = "Validation failed"

    def __init__(self, message: Optional[str] = None, fields: Optional[Dict[str, str]] = None):
        self.fields = dict(fields or {})
        super().__init__(message, fields=self.fields or None)


class InvalidTransition(PortalError):
    status_code = 400
    code = "InvalidTransition"

    def __init__(self, current_status: str, requested_status: str, message: Optional[str] = None):
        self.current_status = current_status
        self.requested_status = requested_status
        super().__init__(
            message or f"Transaction cannot move from '{current_status}' to '{requested_status}'.",
            current_status=current_status,
            requested_status=requested_status,
        )


class NoEligibleTransactions(PortalError):
    status_code = 400
    code = "NoEligibleTransactions"
    default_message = "No verified transactions found in the requested batch."


class AuthenticationError(PortalError):
    """Bad or missing credentials. Never says which part was wrong."""

    status_code = 401
    code = "AuthenticationError"
    default_message = "Invalid credentials"


class AuthorizationError(PortalError):
    status_code = 403
    code = "AuthorizationError"
    default_message = "Insufficient permissions."


class AccountLocked(AuthorizationError):
    code = "AccountLocked"

    def __init__(self, remaining_minutes: int):
        self.remaining_minutes = remaining_minutes
        super().__init__(
            f"Account is locked. Try again in {remaining_minutes} minutes.",
            remaining_minutes=remaining_minutes,
        )


class AccountDisabled(AuthorizationError):
    code = "AccountDisabled"
    default_message = "Account is deactivated. Please contact administrator."


class NotFound(PortalError):
    status_code = 404
    code = "NotFound"
    default_message = "Not found"


class ConflictError(PortalError):
    status_code = 409
    code = "ConflictError"
    default_message = "Resource already exists"


class StorageFault(PortalError):
    """The store failed. For mutating calls the outcome is unknown."""

    status_code = 500
    code = "StorageFault"
    default_message = "Storage error. The outcome is unknown; re-read the record before retrying."
