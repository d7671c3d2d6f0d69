"""
Transaction lifecycle engine.

    pending --verify--> verified --submit_batch--> submitted
    pending --reject--> rejected

Every mutation is a conditional UPDATE guarded by the expected prior status
(compare-and-set), so concurrent requests from any number of server
processes resolve in the store: one wins and the others observe the changed
status and fail with ``InvalidTransition``. A batch submission runs in a
single database transaction and commits every eligible row or none.

The acting identity is always passed in explicitly as an ``Actor``; the
permission check for each operation happens here, not in the HTTP layer.
"""

import logging
import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from payportal.config import settings
from payportal.errors import (
    AuthorizationError,
    InvalidTransition,
    NoEligibleTransactions,
    NotFound,
    StorageFault,
    ValidationError,
)
from payportal.models import Transaction, TransactionStatus
from payportal.services.actor import Actor, VERIFY_TRANSACTIONS, SUBMIT_TO_SWIFT
from payportal.services.alert_service import trigger_alert
from payportal.services.payment_validation import validate_payment_details
from payportal.utils import utcnow

logger = logging.getLogger(__name__)

REFERENCE_ATTEMPTS = 3

SORTABLE_FIELDS = {
    "created_at": Transaction.created_at,
    "amount": Transaction.amount,
    "currency": Transaction.currency,
    "beneficiary_name": Transaction.beneficiary_name,
    "reference_number": Transaction.reference_number,
}
SORT_DIRECTIONS = ("asc", "desc")

OUTCOME_SUBMITTED = "submitted"
OUTCOME_SKIPPED = "skipped"


@dataclass
class BatchResult:
    submitted_count: int
    submitted_at: datetime
    transaction_ids: List[int]
    outcomes: List[Dict[str, Any]] = field(default_factory=list)


def generate_reference_number(now: Optional[datetime] = None) -> str:
    now = now or utcnow()
    return f"TXN-{now:%Y%m%d}-{uuid.uuid4().hex[:10].upper()}"


async def _commit(db: AsyncSession, operation: str, transaction_id: Any = None) -> None:
    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Commit failed during %s (transaction %s)", operation, transaction_id)
        raise StorageFault()


async def _reload(db: AsyncSession, transaction_id: int) -> Optional[Transaction]:
    return await db.get(Transaction, transaction_id, populate_existing=True)


async def create(db: AsyncSession, actor: Actor, details: Mapping[str, Any]) -> Transaction:
    """Validate a customer's payment instruction and store it as pending."""
    if not actor.is_customer:
        raise AuthorizationError("Only customers can create payments.")
    fields = validate_payment_details(details)

    for attempt in range(1, REFERENCE_ATTEMPTS + 1):
        now = utcnow()
        txn = Transaction(
            customer_id=actor.id,
            reference_number=generate_reference_number(now),
            status=TransactionStatus.pending.value,
            provider="SWIFT",
            created_at=now,
            **fields,
        )
        db.add(txn)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            if attempt == REFERENCE_ATTEMPTS:
                logger.exception("Could not allocate a unique reference number")
                raise StorageFault("Could not allocate a reference number.")
            logger.warning("Reference number collision, retrying (attempt %s)", attempt)
            continue
        except SQLAlchemyError:
            await db.rollback()
            logger.exception("Commit failed while creating a transaction for customer %s", actor.id)
            raise StorageFault()
        await db.refresh(txn)
        logger.info(
            "Transaction %s (%s) created by customer %s: %s %s",
            txn.id, txn.reference_number, actor.id, txn.amount, txn.currency,
        )
        return txn
    raise StorageFault("Could not allocate a reference number.")


async def _transition_from_pending(
    db: AsyncSession,
    transaction_id: int,
    requested: TransactionStatus,
    values: Dict[str, Any],
) -> Transaction:
    stmt = (
        update(Transaction)
        .where(Transaction.id == transaction_id, Transaction.status == TransactionStatus.pending.value)
        .values(status=requested.value, **values)
        .execution_options(synchronize_session=False)
    )
    try:
        result = await db.execute(stmt)
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Conditional update failed for transaction %s", transaction_id)
        raise StorageFault()

    if result.rowcount != 1:
        await db.rollback()
        current = await _reload(db, transaction_id)
        if current is None:
            raise NotFound("Transaction not found")
        raise InvalidTransition(current.status, requested.value)

    await _commit(db, requested.value, transaction_id)
    txn = await _reload(db, transaction_id)
    if txn is None:
        raise NotFound("Transaction not found")
    return txn


async def _require_reviewer(
    db: AsyncSession,
    transaction_id: int,
    actor: Actor,
    requested: TransactionStatus,
) -> None:
    """Permission check for verify/reject.

    A settled transaction reports ``InvalidTransition`` to every caller; only
    pending ones answer ``AuthorizationError`` to callers without the permission.
    """
    if actor.has_permission(VERIFY_TRANSACTIONS):
        return
    txn = await get_by_id(db, transaction_id)
    if txn.status != TransactionStatus.pending.value:
        raise InvalidTransition(txn.status, requested.value)
    raise AuthorizationError(f"Missing permission: {VERIFY_TRANSACTIONS}")


async def verify(
    db: AsyncSession,
    transaction_id: int,
    actor: Actor,
    notes: Optional[str] = None,
) -> Transaction:
    await _require_reviewer(db, transaction_id, actor, TransactionStatus.verified)
    now = utcnow()
    values: Dict[str, Any] = {"verified_by": actor.id, "verified_at": now}
    notes = (notes or "").strip()
    if notes:
        values["verification_notes"] = notes
    txn = await _transition_from_pending(db, transaction_id, TransactionStatus.verified, values)
    logger.info("Transaction %s verified by employee %s", transaction_id, actor.id)
    return txn


async def reject(db: AsyncSession, transaction_id: int, actor: Actor, reason: Optional[str]) -> Transaction:
    await _require_reviewer(db, transaction_id, actor, TransactionStatus.rejected)
    reason = (reason or "").strip()
    if not reason:
        # Missing and settled transactions report that before the reason is judged
        current = await _reload(db, transaction_id)
        if current is None:
            raise NotFound("Transaction not found")
        if current.status != TransactionStatus.pending.value:
            raise InvalidTransition(current.status, TransactionStatus.rejected.value)
        raise ValidationError("A rejection reason is required", fields={"rejection_reason": "Rejection reason is required"})
    now = utcnow()
    values = {"verified_by": actor.id, "verified_at": now, "rejection_reason": reason}
    txn = await _transition_from_pending(db, transaction_id, TransactionStatus.rejected, values)
    logger.info("Transaction %s rejected by employee %s", transaction_id, actor.id)
    return txn


def _normalize_batch_ids(transaction_ids: Any) -> List[int]:
    if not isinstance(transaction_ids, (list, tuple)) or len(transaction_ids) == 0:
        raise ValidationError(
            "transaction_ids must be a non-empty list",
            fields={"transaction_ids": "Provide at least one transaction id"},
        )
    ids: List[int] = []
    seen = set()
    for raw in transaction_ids:
        if isinstance(raw, bool):
            raise ValidationError("Invalid transaction id", fields={"transaction_ids": f"Invalid id: {raw!r}"})
        try:
            txn_id = int(raw)
        except (TypeError, ValueError):
            raise ValidationError("Invalid transaction id", fields={"transaction_ids": f"Invalid id: {raw!r}"})
        if txn_id not in seen:
            seen.add(txn_id)
            ids.append(txn_id)
    if len(ids) > settings.batch_size_max:
        raise ValidationError(
            "Batch too large",
            fields={"transaction_ids": f"At most {settings.batch_size_max} transactions per batch"},
        )
    return ids


async def submit_batch(db: AsyncSession, transaction_ids: Sequence[Any], actor: Actor) -> BatchResult:
    """Submit every verified transaction among ``transaction_ids`` as one atomic batch.

    Ids that are missing or not verified are skipped and reported in
    ``outcomes``; if none are eligible the call fails and nothing changes.
    """
    actor.require_permission(SUBMIT_TO_SWIFT)
    ids = _normalize_batch_ids(transaction_ids)
    submitted_at = utcnow()

    try:
        rows = await db.execute(
            select(Transaction.id, Transaction.status)
            .where(Transaction.id.in_(ids))
            .with_for_update()
        )
        statuses = {row.id: row.status for row in rows}
        eligible = [i for i in ids if statuses.get(i) == TransactionStatus.verified.value]

        if not eligible:
            await db.rollback()
            raise NoEligibleTransactions()

        result = await db.execute(
            update(Transaction)
            .where(Transaction.id.in_(eligible), Transaction.status == TransactionStatus.verified.value)
            .values(status=TransactionStatus.submitted.value, submitted_at=submitted_at)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != len(eligible):
            await db.rollback()
            logger.warning(
                "Batch submit aborted: %s of %s eligible rows changed concurrently",
                len(eligible) - result.rowcount, len(eligible),
            )
            raise InvalidTransition(
                TransactionStatus.verified.value,
                TransactionStatus.submitted.value,
                message="Some transactions changed status during submission; no transaction was submitted. Reload and retry.",
            )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Batch submission failed for %s transactions", len(ids))
        raise StorageFault()

    submitted = set(eligible)
    outcomes: List[Dict[str, Any]] = []
    for txn_id in ids:
        if txn_id in submitted:
            outcomes.append({"transaction_id": txn_id, "outcome": OUTCOME_SUBMITTED})
        elif txn_id not in statuses:
            outcomes.append({"transaction_id": txn_id, "outcome": OUTCOME_SKIPPED, "reason": "not_found"})
        else:
            outcomes.append({"transaction_id": txn_id, "outcome": OUTCOME_SKIPPED, "reason": f"status:{statuses[txn_id]}"})

    logger.info("Employee %s submitted %s transactions to SWIFT", actor.id, len(eligible))
    trigger_alert("swift_batch_submitted", f"{len(eligible)} transactions submitted by employee {actor.username}")
    return BatchResult(
        submitted_count=len(eligible),
        submitted_at=submitted_at,
        transaction_ids=eligible,
        outcomes=outcomes,
    )


async def get_by_id(db: AsyncSession, transaction_id: int) -> Transaction:
    txn = await db.get(Transaction, transaction_id)
    if txn is None:
        raise NotFound("Transaction not found")
    return txn


async def list_pending(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 10,
    sort_field: str = "created_at",
    sort_direction: str = "desc",
) -> Dict[str, Any]:
    errors: Dict[str, str] = {}
    if page < 1:
        errors["page"] = "Page must be 1 or greater"
    if page_size < 1:
        errors["limit"] = "Limit must be 1 or greater"
    if sort_field not in SORTABLE_FIELDS:
        errors["sortBy"] = f"Sort field must be one of: {', '.join(sorted(SORTABLE_FIELDS))}"
    direction = (sort_direction or "").lower()
    if direction not in SORT_DIRECTIONS:
        errors["sortOrder"] = "Sort order must be 'asc' or 'desc'"
    if errors:
        raise ValidationError("Invalid listing parameters", fields=errors)

    page_size = min(page_size, settings.pending_page_size_max)
    column = SORTABLE_FIELDS[sort_field]
    order = column.asc() if direction == "asc" else column.desc()
    tiebreak = Transaction.id.asc() if direction == "asc" else Transaction.id.desc()
    pending = Transaction.status == TransactionStatus.pending.value

    total = (await db.execute(select(func.count(Transaction.id)).where(pending))).scalar() or 0
    result = await db.execute(
        select(Transaction)
        .where(pending)
        .order_by(order, tiebreak)
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return {
        "transactions": list(result.scalars().all()),
        "pagination": {
            "current_page": page,
            "total_pages": math.ceil(total / page_size) if total else 0,
            "total_transactions": total,
            "limit": page_size,
        },
    }


async def list_for_customer(db: AsyncSession, actor: Actor) -> List[Transaction]:
    if not actor.is_customer:
        raise AuthorizationError("Only customers have their own transaction list.")
    result = await db.execute(
        select(Transaction)
        .where(Transaction.customer_id == actor.id)
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
    )
    return list(result.scalars().all())
