from payportal.models.account import Base, Role, Employee, Customer
from payportal.models.transaction import Transaction, TransactionStatus, ALLOWED_TRANSITIONS, can_transition

__all__ = [
    "Base",
    "Role",
    "Employee",
    "Customer",
    "Transaction",
    "TransactionStatus",
    "ALLOWED_TRANSITIONS",
    "can_transition",
]
