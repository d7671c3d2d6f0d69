from pydantic import BaseModel
from typing import Optional


class EmployeeLoginRequest(BaseModel):
    # username or employee code (e.g. EMP001)
    username: Optional[str] = None
    password: Optional[str] = None


class CustomerLoginRequest(BaseModel):
    username: Optional[str] = None
    account_number: Optional[str] = None
    password: Optional[str] = None


class CustomerRegisterRequest(BaseModel):
    full_name: Optional[str] = None
    id_number: Optional[str] = None
    account_number: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
