from pydantic import BaseModel, Field
from typing import List, Optional, Union
from datetime import datetime
from decimal import Decimal


class PaymentRequest(BaseModel):
    # Checked field by field in services/payment_validation.py. Decoded by
    # api.util.decimal_json_body so fractional amounts never pass through float
    amount: Optional[Union[Decimal, int, str]] = None
    currency: Optional[str] = None
    beneficiary_name: Optional[str] = None
    beneficiary_account: Optional[str] = None
    bank_name: Optional[str] = None
    swift_code: Optional[str] = None


class TransactionRead(BaseModel):
    id: int
    reference_number: str
    customer_id: int
    amount: Decimal
    currency: str
    beneficiary_name: str
    beneficiary_account: str
    bank_name: str
    swift_code: str
    provider: str
    status: str
    created_at: datetime
    verified_by: Optional[int] = None
    verified_at: Optional[datetime] = None
    verification_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    submitted_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class VerifyRequest(BaseModel):
    verification_notes: Optional[str] = Field(default=None, max_length=1000)


class RejectRequest(BaseModel):
    rejection_reason: Optional[str] = Field(default=None, max_length=1000)


class SubmitBatchRequest(BaseModel):
    transaction_ids: Optional[List[Union[int, str]]] = None


def serialize_transaction(txn) -> dict:
    return TransactionRead.model_validate(txn).model_dump(mode="json")
