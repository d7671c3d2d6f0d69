"""
Employee dashboard rollup.

Counts of pending and verified transactions, the number submitted since
midnight in ``PORTAL_TIMEZONE``, and the newest pending transactions. Read only.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

import pytz
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from payportal.config import settings
from payportal.models import Transaction, TransactionStatus

RECENT_PENDING_LIMIT = 5


def start_of_local_day(now: Optional[datetime] = None, tz_name: Optional[str] = None) -> datetime:
    """Midnight of the current portal-local day, as naive UTC (the stored form)."""
    tz = pytz.timezone(tz_name or settings.portal_timezone)
    if now is None:
        now_utc = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now_utc = now.replace(tzinfo=timezone.utc)
    else:
        now_utc = now.astimezone(timezone.utc)
    local_now = now_utc.astimezone(tz)
    local_midnight = tz.localize(datetime(local_now.year, local_now.month, local_now.day))
    return local_midnight.astimezone(pytz.utc).replace(tzinfo=None)


def project_recent(txn: Transaction) -> Dict[str, Any]:
    return {
        "id": txn.id,
        "amount": str(txn.amount),
        "currency": txn.currency,
        "beneficiary_name": txn.beneficiary_name,
        "created_at": txn.created_at.isoformat() if txn.created_at else None,
        "reference_number": txn.reference_number,
    }


async def _count(db: AsyncSession, *criteria) -> int:
    result = await db.execute(select(func.count(Transaction.id)).where(*criteria))
    return result.scalar() or 0


async def dashboard_summary(
    db: AsyncSession,
    recent_limit: int = RECENT_PENDING_LIMIT,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Counts per status and the most recent pending transactions. Read only."""
    day_start = start_of_local_day(now)
    pending = await _count(db, Transaction.status == TransactionStatus.pending.value)
    verified = await _count(db, Transaction.status == TransactionStatus.verified.value)
    submitted_today = await _count(
        db,
        Transaction.status == TransactionStatus.submitted.value,
        Transaction.submitted_at >= day_start,
    )

    result = await db.execute(
        select(Transaction)
        .where(Transaction.status == TransactionStatus.pending.value)
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .limit(recent_limit)
    )
    recent = [project_recent(t) for t in result.scalars().all()]

    return {
        "stats": {
            "pending_transactions": pending,
            "verified_transactions": verified,
            "submitted_today": submitted_today,
        },
        "recent_pending": recent,
    }
