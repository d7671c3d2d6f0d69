from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey, JSON
from sqlalchemy.orm import declarative_base, relationship

from payportal.utils import utcnow

Base = declarative_base()


class LockoutMixin:
    """Columns shared by every account that can log in."""
    failed_login_attempts = Column(Integer, default=0, nullable=False)
    locked_until = Column(DateTime, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class Role(Base):
    __tablename__ = "roles"
    id = Column(Integer, primary_key=True, index=True)
    role_name = Column(String(50), unique=True, nullable=False)
    permissions = Column(JSON, default=list, nullable=False)


class Employee(LockoutMixin, Base):
    __tablename__ = "employees"
    user_type = "employee"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(String(20), unique=True, index=True, nullable=False)
    employee_name = Column(String(100), nullable=False)
    username = Column(String(50), unique=True, index=True, nullable=False)
    password_hash = Column(String(128), nullable=False)
    role_id = Column(Integer, ForeignKey("roles.id"), nullable=False)
    department = Column(String(100), nullable=True)

    role = relationship("Role", lazy="selectin")

    @property
    def role_name(self) -> str:
        return self.role.role_name if self.role is not None else ""

    @property
    def permissions(self) -> list:
        return list(self.role.permissions or []) if self.role is not None else []


class Customer(LockoutMixin, Base):
    __tablename__ = "customers"
    user_type = "customer"
    role_name = "customer"
    permissions = ("customer",)

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(100), nullable=False)
    id_number = Column(String(20), unique=True, nullable=False)
    account_number = Column(String(20), unique=True, index=True, nullable=False)
    username = Column(String(50), unique=True, index=True, nullable=False)
    password_hash = Column(String(128), nullable=False)
