#!/usr/bin/env python3
"""
Database initialization script for the payments portal.
Creates all tables and provisions the employee roles and a first supervisor.

Employees are never self-registered; set SEED_EMPLOYEE_USERNAME,
SEED_EMPLOYEE_PASSWORD, SEED_EMPLOYEE_ID and SEED_EMPLOYEE_NAME before running.
"""
import asyncio
import logging
import os
from dotenv import load_dotenv
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from payportal.database import engine, init_models
from payportal.logging_config import setup_logging
from payportal.models import Employee, Role
from payportal.services.actor import VERIFY_TRANSACTIONS, SUBMIT_TO_SWIFT
from payportal.services.password_service import hash_password

# Load environment variables
load_dotenv()

logger = logging.getLogger("init_db")

ROLES = {
    "verifier": [VERIFY_TRANSACTIONS],
    "supervisor": [VERIFY_TRANSACTIONS, SUBMIT_TO_SWIFT],
}


async def seed_roles(session: AsyncSession) -> dict:
    """Create missing roles and bring existing ones up to date."""
    roles = {}
    for name, permissions in ROLES.items():
        result = await session.execute(select(Role).where(Role.role_name == name))
        role = result.scalar_one_or_none()
        if role is None:
            role = Role(role_name=name, permissions=permissions)
            session.add(role)
            logger.info("Created role %s", name)
        else:
            role.permissions = permissions
        roles[name] = role
    await session.commit()
    return roles


async def seed_supervisor(session: AsyncSession, role: Role) -> None:
    username = os.getenv("SEED_EMPLOYEE_USERNAME")
    password = os.getenv("SEED_EMPLOYEE_PASSWORD")
    if not username or not password:
        logger.warning("SEED_EMPLOYEE_USERNAME / SEED_EMPLOYEE_PASSWORD not set; no employee created")
        return

    result = await session.execute(select(Employee).where(Employee.username == username.lower()))
    if result.scalar_one_or_none() is not None:
        logger.info("Employee %s already exists", username)
        return

    employee = Employee(
        employee_id=os.getenv("SEED_EMPLOYEE_ID", "EMP001").upper(),
        employee_name=os.getenv("SEED_EMPLOYEE_NAME", "Portal Supervisor"),
        username=username.lower(),
        password_hash=hash_password(password),
        role_id=role.id,
        department=os.getenv("SEED_EMPLOYEE_DEPARTMENT", "Payments"),
    )
    session.add(employee)
    await session.commit()
    logger.info("Created supervisor employee %s", employee.username)


async def main():
    setup_logging()
    try:
        await init_models()
        async with AsyncSession(engine, expire_on_commit=False) as session:
            roles = await seed_roles(session)
            await seed_supervisor(session, roles["supervisor"])
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
