"""
Login and registration flows for employees and customers.

The login sequence is the same for both account types: look the account up,
refuse inactive accounts, refuse locked accounts before any password
comparison, then compare the password and record the attempt.
"""

import logging
import re
from typing import Any, Dict, Mapping, Optional

from sqlalchemy import select, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from payportal import database
from payportal.errors import (
    AccountDisabled,
    AccountLocked,
    AuthenticationError,
    ConflictError,
    StorageFault,
    ValidationError,
)
from payportal.models import Customer, Employee
from payportal.services import lockout
from payportal.services.password_service import hash_password_in_thread, verify_password_in_thread
from payportal.services.token_service import seconds_until_expiry

logger = logging.getLogger(__name__)

FULL_NAME_RE = re.compile(r"^[A-Za-z][A-Za-z .'\-]{1,99}$")
ID_NUMBER_RE = re.compile(r"^\d{13}$")
ACCOUNT_NUMBER_RE = re.compile(r"^\d{7,12}$")
USERNAME_RE = re.compile(r"^[a-z0-9_.]{3,30}$")
PASSWORD_MIN_LENGTH = 8


async def _check_and_record(db: AsyncSession, account, password: str):
    if account is None:
        raise AuthenticationError()
    if not account.is_active:
        raise AccountDisabled()
    if lockout.is_locked(account):
        logger.warning("Login refused for locked %s %s", account.user_type, account.id)
        raise AccountLocked(lockout.remaining_minutes(account))

    if not await verify_password_in_thread(password, account.password_hash):
        account = await lockout.record_attempt(db, account, success=False)
        raise AuthenticationError(remaining_attempts=lockout.remaining_attempts(account))

    account = await lockout.record_attempt(db, account, success=True)
    logger.info("%s %s logged in", account.user_type.capitalize(), account.id)
    return account


async def authenticate_employee(db: AsyncSession, identifier: Optional[str], password: Optional[str]) -> Employee:
    """Log an employee in by username or employee code."""
    identifier = (identifier or "").strip()
    if not identifier or not password:
        raise ValidationError("Please provide username and password")

    result = await db.execute(
        select(Employee).where(
            or_(Employee.username == identifier.lower(), Employee.employee_id == identifier.upper())
        )
    )
    employee = result.scalars().first()
    return await _check_and_record(db, employee, password)


async def authenticate_customer(
    db: AsyncSession,
    username: Optional[str],
    account_number: Optional[str],
    password: Optional[str],
) -> Customer:
    username = (username or "").strip().lower()
    account_number = (account_number or "").strip()
    if not username or not account_number or not password:
        raise ValidationError("Please provide username, account number and password")

    result = await db.execute(
        select(Customer).where(Customer.username == username, Customer.account_number == account_number)
    )
    customer = result.scalar_one_or_none()
    return await _check_and_record(db, customer, password)


def _password_problem(password: str) -> Optional[str]:
    if len(password) < PASSWORD_MIN_LENGTH:
        return f"Password must be at least {PASSWORD_MIN_LENGTH} characters"
    if not (re.search(r"[a-z]", password) and re.search(r"[A-Z]", password)
            and re.search(r"\d", password) and re.search(r"[^A-Za-z0-9]", password)):
        return "Password must contain upper and lower case letters, a digit and a symbol"
    return None


def validate_registration(details: Mapping[str, Any]) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    cleaned: Dict[str, str] = {}

    full_name = str(details.get("full_name") or "").strip()
    if not FULL_NAME_RE.match(full_name):
        errors["full_name"] = "Full name is required and may contain letters, spaces, . ' -"
    cleaned["full_name"] = full_name

    id_number = str(details.get("id_number") or "").strip()
    if not ID_NUMBER_RE.match(id_number):
        errors["id_number"] = "ID number must be 13 digits"
    cleaned["id_number"] = id_number

    account_number = str(details.get("account_number") or "").strip()
    if not ACCOUNT_NUMBER_RE.match(account_number):
        errors["account_number"] = "Account number must be 7-12 digits"
    cleaned["account_number"] = account_number

    username = str(details.get("username") or "").strip().lower()
    if not USERNAME_RE.match(username):
        errors["username"] = "Username must be 3-30 characters of letters, digits, _ or ."
    cleaned["username"] = username

    password = str(details.get("password") or "")
    problem = _password_problem(password)
    if problem:
        errors["password"] = problem
    cleaned["password"] = password

    if errors:
        raise ValidationError("Invalid registration details", fields=errors)
    return cleaned


async def register_customer(db: AsyncSession, details: Mapping[str, Any]) -> Customer:
    cleaned = validate_registration(details)

    result = await db.execute(
        select(Customer.username, Customer.id_number, Customer.account_number).where(
            or_(
                Customer.username == cleaned["username"],
                Customer.id_number == cleaned["id_number"],
                Customer.account_number == cleaned["account_number"],
            )
        )
    )
    taken: Dict[str, str] = {}
    for row in result:
        for key in ("username", "id_number", "account_number"):
            if getattr(row, key) == cleaned[key]:
                taken[key] = "Already registered"
    if taken:
        raise ConflictError("Customer already registered", fields=taken)

    customer = Customer(
        full_name=cleaned["full_name"],
        id_number=cleaned["id_number"],
        account_number=cleaned["account_number"],
        username=cleaned["username"],
        password_hash=await hash_password_in_thread(cleaned["password"]),
    )
    db.add(customer)
    try:
        await db.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration of the same details
        await db.rollback()
        raise ConflictError("Customer already registered")
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to register customer")
        raise StorageFault("Could not register customer.")
    await db.refresh(customer)
    logger.info("Customer %s registered", customer.id)
    return customer


def _revocation_key(jti: str) -> str:
    return f"revoked_token:{jti}"


async def revoke_token(claims: Dict[str, Any]) -> bool:
    """Deny-list a token id until it expires. Returns False when Redis is not configured."""
    jti = claims.get("jti")
    if database.redis_client is None or not jti:
        return False
    ttl = seconds_until_expiry(claims)
    if ttl <= 0:
        return True
    await database.redis_client.setex(_revocation_key(jti), ttl, "1")
    return True


async def is_token_revoked(claims: Dict[str, Any]) -> bool:
    jti = claims.get("jti")
    if database.redis_client is None or not jti:
        return False
    return bool(await database.redis_client.get(_revocation_key(jti)))
