"""
Failed-login lockout for employee and customer accounts.

Failures increment ``failed_login_attempts`` with an atomic SQL increment.
Reaching the threshold sets ``locked_until``. Expired locks are ignored on
read (lazy expiry) and cleared by the next recorded attempt.
"""

import logging
import math
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from payportal.config import settings
from payportal.errors import StorageFault
from payportal.services.alert_service import trigger_alert
from payportal.utils import utcnow

logger = logging.getLogger(__name__)


def is_locked(account, now: Optional[datetime] = None) -> bool:
    now = now or utcnow()
    return account.locked_until is not None and account.locked_until > now


def remaining_minutes(account, now: Optional[datetime] = None) -> int:
    now = now or utcnow()
    if not is_locked(account, now):
        return 0
    seconds = (account.locked_until - now).total_seconds()
    return max(1, math.ceil(seconds / 60))


def remaining_attempts(account) -> int:
    return max(settings.lockout_threshold - (account.failed_login_attempts or 0), 0)


async def record_attempt(db: AsyncSession, account, success: bool, now: Optional[datetime] = None):
    """Record a login attempt and return the refreshed account."""
    now = now or utcnow()
    model = type(account)
    by_id = model.id == account.id
    locked_until = None

    try:
        if success:
            await db.execute(
                update(model).where(by_id)
                .values(failed_login_attempts=0, locked_until=None, last_login=now)
                .execution_options(synchronize_session=False)
            )
        else:
            if account.locked_until is not None and account.locked_until <= now:
                # The previous lock has lapsed; count this failure in a fresh window
                await db.execute(
                    update(model).where(by_id)
                    .values(failed_login_attempts=0, locked_until=None)
                    .execution_options(synchronize_session=False)
                )
            await db.execute(
                update(model).where(by_id)
                .values(failed_login_attempts=model.failed_login_attempts + 1)
                .execution_options(synchronize_session=False)
            )
            await db.refresh(account, attribute_names=["failed_login_attempts"])
            if account.failed_login_attempts >= settings.lockout_threshold:
                locked_until = now + timedelta(minutes=settings.lockout_minutes)
                await db.execute(
                    update(model).where(by_id)
                    .values(locked_until=locked_until)
                    .execution_options(synchronize_session=False)
                )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to record login attempt for %s %s", model.__name__, account.id)
        raise StorageFault("Could not record login attempt.")

    await db.refresh(account)

    if locked_until is not None:
        logger.warning(
            "%s %s locked until %s after %s failed attempts",
            model.__name__, account.id, locked_until.isoformat(), account.failed_login_attempts,
        )
        trigger_alert(
            "account_locked",
            f"{model.__name__} {account.username} locked for {settings.lockout_minutes} minutes",
        )
    elif not success:
        logger.warning("Failed login for %s %s (%s so far)", model.__name__, account.id, account.failed_login_attempts)
    return account
