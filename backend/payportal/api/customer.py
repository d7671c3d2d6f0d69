import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from payportal.api.util import ok, client_ip, decimal_json_body
from payportal.config import settings
from payportal.database import get_db
from payportal.errors import NotFound
from payportal.middlewares.rbac import get_current_claims, require_customer
from payportal.models import Customer
from payportal.schemas.account import CustomerProfile
from payportal.schemas.auth import CustomerLoginRequest, CustomerRegisterRequest
from payportal.schemas.transaction import PaymentRequest, serialize_transaction
from payportal.services import transaction_lifecycle as lifecycle
from payportal.services.actor import Actor
from payportal.services.auth_service import authenticate_customer, register_customer, revoke_token
from payportal.services.rate_limit import limiter
from payportal.services.token_service import create_access_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/customer", tags=["customer"])


@router.post("/register", status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.login_rate_limit)
async def register(request: Request, data: CustomerRegisterRequest, db: AsyncSession = Depends(get_db)):
    customer = await register_customer(db, data.model_dump())
    return ok(CustomerProfile.model_validate(customer).model_dump(mode="json"), "Registration successful")


@router.post("/login")
@limiter.limit(settings.login_rate_limit)
async def login(request: Request, data: CustomerLoginRequest, db: AsyncSession = Depends(get_db)):
    logger.info("Customer login attempt from %s", client_ip(request))
    customer = await authenticate_customer(db, data.username, data.account_number, data.password)
    token = create_access_token(customer)
    profile_data = CustomerProfile.model_validate(customer).model_dump(mode="json")
    return ok({"token": token, "customer": profile_data}, "Login successful")


@router.post("/logout")
async def logout(claims: dict = Depends(get_current_claims), _actor: Actor = Depends(require_customer)):
    await revoke_token(claims)
    return ok(message="Logged out successfully")


@router.get("/profile")
async def profile(actor: Actor = Depends(require_customer), db: AsyncSession = Depends(get_db)):
    customer = await db.get(Customer, actor.id)
    if customer is None:
        raise NotFound("Customer not found")
    return ok(CustomerProfile.model_validate(customer).model_dump(mode="json"))


@router.post("/payment", status_code=status.HTTP_201_CREATED)
async def create_payment(
    actor: Actor = Depends(require_customer),
    db: AsyncSession = Depends(get_db),
    payload: Dict[str, Any] = Depends(decimal_json_body),
):
    try:
        data = PaymentRequest.model_validate(payload)
    except PydanticValidationError as e:
        raise RequestValidationError(e.errors())
    txn = await lifecycle.create(db, actor, data.model_dump())
    return ok(serialize_transaction(txn), "Payment submitted for verification")


@router.get("/transactions")
async def my_transactions(actor: Actor = Depends(require_customer), db: AsyncSession = Depends(get_db)):
    transactions = await lifecycle.list_for_customer(db, actor)
    return ok([serialize_transaction(t) for t in transactions])


@router.get("/transactions/{transaction_id}")
async def my_transaction(transaction_id: int, actor: Actor = Depends(require_customer), db: AsyncSession = Depends(get_db)):
    txn = await lifecycle.get_by_id(db, transaction_id)
    # Other customers' transactions are indistinguishable from missing ones
    if txn.customer_id != actor.id:
        raise NotFound("Transaction not found")
    return ok(serialize_transaction(txn))
