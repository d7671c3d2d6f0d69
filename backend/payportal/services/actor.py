from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet

from payportal.errors import AuthenticationError, AuthorizationError

EMPLOYEE = "employee"
CUSTOMER = "customer"

VERIFY_TRANSACTIONS = "verify_transactions"
SUBMIT_TO_SWIFT = "submit_to_swift"


@dataclass(frozen=True)
class Actor:
    """The authenticated identity invoking an operation.

    Built from token claims; permissions are as fresh as the token.
    """

    id: int
    username: str
    user_type: str
    role: str = ""
    permissions: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def is_employee(self) -> bool:
        return self.user_type == EMPLOYEE

    @property
    def is_customer(self) -> bool:
        return self.user_type == CUSTOMER

    def has_permission(self, permission: str) -> bool:
        return self.is_employee and permission in self.permissions

    def require_permission(self, permission: str) -> None:
        if not self.has_permission(permission):
            raise AuthorizationError(f"Missing permission: {permission}")

    @classmethod
    def from_claims(cls, claims: Dict[str, Any]) -> "Actor":
        try:
            actor_id = int(claims["sub"])
        except (KeyError, TypeError, ValueError):
            raise AuthenticationError("Invalid token payload")
        return cls(
            id=actor_id,
            username=claims.get("username", ""),
            user_type=claims.get("user_type", ""),
            role=claims.get("role", ""),
            permissions=frozenset(claims.get("permissions") or []),
        )

    @classmethod
    def from_account(cls, account) -> "Actor":
        return cls(
            id=account.id,
            username=account.username,
            user_type=account.user_type,
            role=account.role_name,
            permissions=frozenset(account.permissions),
        )
