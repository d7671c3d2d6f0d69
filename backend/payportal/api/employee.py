import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from payportal.api.util import ok, client_ip
from payportal.config import settings
from payportal.database import get_db
from payportal.errors import NotFound
from payportal.middlewares.rbac import get_current_claims, require_employee
from payportal.models import Employee
from payportal.schemas.account import EmployeeProfile
from payportal.schemas.auth import EmployeeLoginRequest
from payportal.schemas.transaction import (
    RejectRequest, SubmitBatchRequest, VerifyRequest, serialize_transaction,
)
from payportal.services import transaction_lifecycle as lifecycle
from payportal.services.actor import Actor
from payportal.services.auth_service import authenticate_employee, revoke_token
from payportal.services.dashboard import dashboard_summary
from payportal.services.rate_limit import limiter
from payportal.services.token_service import create_access_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/employee", tags=["employee"])


@router.post("/login")
@limiter.limit(settings.login_rate_limit)
async def login(request: Request, data: EmployeeLoginRequest, db: AsyncSession = Depends(get_db)):
    logger.info("Employee login attempt from %s", client_ip(request))
    employee = await authenticate_employee(db, data.username, data.password)
    token = create_access_token(employee)
    profile_data = EmployeeProfile.from_employee(employee).model_dump(mode="json")
    return ok({"token": token, "employee": profile_data}, "Login successful")


@router.post("/logout")
async def logout(claims: dict = Depends(get_current_claims), _actor: Actor = Depends(require_employee)):
    await revoke_token(claims)
    return ok(message="Logged out successfully")


@router.get("/profile")
async def profile(actor: Actor = Depends(require_employee), db: AsyncSession = Depends(get_db)):
    employee = await db.get(Employee, actor.id)
    if employee is None:
        raise NotFound("Employee not found")
    return ok(EmployeeProfile.from_employee(employee).model_dump(mode="json"))


@router.get("/dashboard")
async def dashboard(_actor: Actor = Depends(require_employee), db: AsyncSession = Depends(get_db)):
    return ok(await dashboard_summary(db))


@router.get("/pending-transactions")
async def pending_transactions(
    page: int = Query(1),
    limit: int = Query(10),
    sort_by: str = Query("created_at", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    _actor: Actor = Depends(require_employee),
    db: AsyncSession = Depends(get_db),
):
    listing = await lifecycle.list_pending(db, page=page, page_size=limit, sort_field=sort_by, sort_direction=sort_order)
    return ok({
        "transactions": [serialize_transaction(t) for t in listing["transactions"]],
        "pagination": listing["pagination"],
    })


@router.get("/transaction/{transaction_id}")
async def transaction_detail(transaction_id: int, _actor: Actor = Depends(require_employee), db: AsyncSession = Depends(get_db)):
    txn = await lifecycle.get_by_id(db, transaction_id)
    return ok(serialize_transaction(txn))


@router.put("/verify-transaction/{transaction_id}")
async def verify_transaction(
    transaction_id: int,
    data: Optional[VerifyRequest] = None,
    actor: Actor = Depends(require_employee),
    db: AsyncSession = Depends(get_db),
):
    notes = data.verification_notes if data else None
    txn = await lifecycle.verify(db, transaction_id, actor, notes)
    return ok(serialize_transaction(txn), "Transaction verified successfully")


@router.put("/reject-transaction/{transaction_id}")
async def reject_transaction(
    transaction_id: int,
    data: Optional[RejectRequest] = None,
    actor: Actor = Depends(require_employee),
    db: AsyncSession = Depends(get_db),
):
    reason = data.rejection_reason if data else None
    txn = await lifecycle.reject(db, transaction_id, actor, reason)
    return ok(serialize_transaction(txn), "Transaction rejected")


@router.post("/submit-to-swift")
async def submit_to_swift(data: SubmitBatchRequest, actor: Actor = Depends(require_employee), db: AsyncSession = Depends(get_db)):
    result = await lifecycle.submit_batch(db, data.transaction_ids, actor)
    return ok(
        {
            "submitted_count": result.submitted_count,
            "submitted_at": result.submitted_at.isoformat(),
            "transaction_ids": result.transaction_ids,
            "outcomes": result.outcomes,
        },
        f"{result.submitted_count} transactions submitted to SWIFT successfully",
    )
