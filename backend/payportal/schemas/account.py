from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime


class EmployeeProfile(BaseModel):
    id: int
    employee_id: str
    employee_name: str
    username: str
    role: str
    permissions: List[str]
    department: Optional[str] = None
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_employee(cls, employee) -> "EmployeeProfile":
        return cls(
            id=employee.id,
            employee_id=employee.employee_id,
            employee_name=employee.employee_name,
            username=employee.username,
            role=employee.role_name,
            permissions=employee.permissions,
            department=employee.department,
            is_active=employee.is_active,
            last_login=employee.last_login,
            created_at=employee.created_at,
        )


class CustomerProfile(BaseModel):
    id: int
    full_name: str
    username: str
    account_number: str
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
