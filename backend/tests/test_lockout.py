"""
Tests for failed-login lockout tracking.
"""
from datetime import datetime, timedelta

import pytest

from payportal.models import Customer, Employee
from payportal.services import lockout
from payportal.services.alert_service import get_alerts

T0 = datetime(2026, 3, 10, 9, 0, 0)


class TestLockout:

    @pytest.mark.asyncio
    async def test_failures_below_threshold_do_not_lock(self, db, seed):
        employee = await db.get(Employee, seed.verifier.id)

        for _ in range(4):
            employee = await lockout.record_attempt(db, employee, success=False, now=T0)

        assert employee.failed_login_attempts == 4
        assert employee.locked_until is None
        assert not lockout.is_locked(employee, now=T0)
        assert lockout.remaining_attempts(employee) == 1

    @pytest.mark.asyncio
    async def test_threshold_failure_locks(self, db, seed):
        employee = await db.get(Employee, seed.verifier.id)

        for _ in range(5):
            employee = await lockout.record_attempt(db, employee, success=False, now=T0)

        assert employee.failed_login_attempts == 5
        assert employee.locked_until == T0 + timedelta(minutes=15)
        assert lockout.is_locked(employee, now=T0 + timedelta(minutes=14))
        assert lockout.remaining_minutes(employee, now=T0) == 15
        assert lockout.remaining_minutes(employee, now=T0 + timedelta(minutes=14, seconds=30)) == 1
        assert get_alerts()[-1]["event_type"] == "account_locked"

    @pytest.mark.asyncio
    async def test_lock_expires_lazily(self, db, seed):
        employee = await db.get(Employee, seed.verifier.id)
        for _ in range(5):
            employee = await lockout.record_attempt(db, employee, success=False, now=T0)

        later = T0 + timedelta(minutes=16)

        assert not lockout.is_locked(employee, now=later)
        assert lockout.remaining_minutes(employee, now=later) == 0

    @pytest.mark.asyncio
    async def test_failure_after_expiry_restarts_count(self, db, seed):
        employee = await db.get(Employee, seed.verifier.id)
        for _ in range(5):
            employee = await lockout.record_attempt(db, employee, success=False, now=T0)

        employee = await lockout.record_attempt(db, employee, success=False, now=T0 + timedelta(minutes=20))

        assert employee.failed_login_attempts == 1
        assert employee.locked_until is None

    @pytest.mark.asyncio
    async def test_success_resets(self, db, seed):
        customer = await db.get(Customer, seed.alice.id)
        for _ in range(3):
            customer = await lockout.record_attempt(db, customer, success=False, now=T0)

        customer = await lockout.record_attempt(db, customer, success=True, now=T0 + timedelta(minutes=1))

        assert customer.failed_login_attempts == 0
        assert customer.locked_until is None
        assert customer.last_login == T0 + timedelta(minutes=1)

    @pytest.mark.asyncio
    async def test_accounts_are_tracked_independently(self, db, seed):
        alice = await db.get(Customer, seed.alice.id)
        bob = await db.get(Customer, seed.bob.id)

        for _ in range(5):
            alice = await lockout.record_attempt(db, alice, success=False, now=T0)
        await db.refresh(bob)

        assert lockout.is_locked(alice, now=T0)
        assert bob.failed_login_attempts == 0
        assert not lockout.is_locked(bob, now=T0)
