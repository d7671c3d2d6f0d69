import enum
from decimal import Decimal

from sqlalchemy import BigInteger, Column, Integer, String, DateTime, Numeric, ForeignKey, Text
from sqlalchemy.types import TypeDecorator

from payportal.models.account import Base
from payportal.utils import utcnow

CENT = Decimal("0.01")


class Money(TypeDecorator):
    """Exact two-place amount.

    NUMERIC(18, 2) where the backend has a decimal type. SQLite has none and
    would round-trip through a float, so there the value is kept as integer cents.
    """

    impl = Numeric(18, 2, asdecimal=True)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(BigInteger())
        return dialect.type_descriptor(Numeric(18, 2, asdecimal=True))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        value = Decimal(value).quantize(CENT)
        if dialect.name == "sqlite":
            return int(value * 100)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if dialect.name == "sqlite":
            return (Decimal(value) / 100).quantize(CENT)
        return Decimal(value).quantize(CENT)


class TransactionStatus(str, enum.Enum):
    pending = "pending"
    verified = "verified"
    submitted = "submitted"
    rejected = "rejected"


# Legal moves of the lifecycle; everything else is an InvalidTransition.
ALLOWED_TRANSITIONS = {
    TransactionStatus.pending: {TransactionStatus.verified, TransactionStatus.rejected},
    TransactionStatus.verified: {TransactionStatus.submitted},
    TransactionStatus.submitted: set(),
    TransactionStatus.rejected: set(),
}


def can_transition(current: TransactionStatus, requested: TransactionStatus) -> bool:
    return TransactionStatus(requested) in ALLOWED_TRANSITIONS[TransactionStatus(current)]


class Transaction(Base):
    __tablename__ = "transactions"
    id = Column(Integer, primary_key=True, index=True)
    reference_number = Column(String(32), unique=True, index=True, nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id"), index=True, nullable=False)
    amount = Column(Money(), nullable=False)
    currency = Column(String(3), nullable=False)
    beneficiary_name = Column(String(100), nullable=False)
    beneficiary_account = Column(String(34), nullable=False)
    bank_name = Column(String(100), nullable=False)
    swift_code = Column(String(11), nullable=False)
    provider = Column(String(20), default="SWIFT", nullable=False)
    status = Column(String(16), default=TransactionStatus.pending.value, index=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, index=True, nullable=False)
    verified_by = Column(Integer, ForeignKey("employees.id"), nullable=True)
    verified_at = Column(DateTime, nullable=True)
    verification_notes = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    submitted_at = Column(DateTime, nullable=True)
