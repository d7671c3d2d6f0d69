"""
Tests for the employee API endpoints.
"""
import pytest
from httpx import AsyncClient
from sqlalchemy import update

from payportal.models import Employee, TransactionStatus

from conftest import auth_headers, minutes_ago


async def login(client: AsyncClient, username: str, password: str):
    return await client.post("/api/employee/login", json={"username": username, "password": password})


class TestEmployeeLogin:

    @pytest.mark.asyncio
    async def test_login_success(self, client, seed):
        response = await login(client, "supervisor", seed.password)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Login successful"
        assert body["data"]["token"]
        employee = body["data"]["employee"]
        assert employee["employee_id"] == "EMP001"
        assert employee["role"] == "supervisor"
        assert "password_hash" not in employee

    @pytest.mark.asyncio
    async def test_login_with_employee_code(self, client, seed):
        response = await login(client, "emp002", seed.password)
        assert response.status_code == 200
        assert response.json()["data"]["employee"]["username"] == "verifier"

    @pytest.mark.asyncio
    async def test_wrong_password_and_unknown_user_look_alike(self, client, seed):
        wrong = await login(client, "supervisor", "Wrong!Passw0rd")
        unknown = await login(client, "nobody", "Wrong!Passw0rd")

        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json()["error"] == unknown.json()["error"] == "AuthenticationError"
        assert wrong.json()["message"] == unknown.json()["message"] == "Invalid credentials"
        assert wrong.json()["data"]["remaining_attempts"] == 4

    @pytest.mark.asyncio
    async def test_missing_credentials(self, client, seed):
        response = await client.post("/api/employee/login", json={"username": "supervisor"})
        assert response.status_code == 400
        assert response.json()["error"] == "ValidationError"

    @pytest.mark.asyncio
    async def test_inactive_account(self, client, seed):
        response = await login(client, "inactive", seed.password)
        assert response.status_code == 403
        assert response.json()["error"] == "AccountDisabled"

    @pytest.mark.asyncio
    async def test_lockout_after_five_failures(self, client, db, seed):
        for expected_remaining in (4, 3, 2, 1, 0):
            response = await login(client, "verifier", "Wrong!Passw0rd")
            assert response.status_code == 401
            assert response.json()["data"]["remaining_attempts"] == expected_remaining

        # The correct password is refused while locked
        response = await login(client, "verifier", seed.password)
        assert response.status_code == 403
        body = response.json()
        assert body["error"] == "AccountLocked"
        assert 0 < body["data"]["remaining_minutes"] <= 15

        # Expire the lock
        await db.execute(update(Employee).where(Employee.id == seed.verifier.id).values(locked_until=minutes_ago(1)))
        await db.commit()

        response = await login(client, "verifier", seed.password)
        assert response.status_code == 200

        employee = await db.get(Employee, seed.verifier.id, populate_existing=True)
        await db.commit()
        assert employee.failed_login_attempts == 0
        assert employee.locked_until is None


class TestEmployeeAccess:

    @pytest.mark.asyncio
    async def test_requires_token(self, client, seed):
        response = await client.get("/api/employee/dashboard")
        assert response.status_code == 401
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_rejects_customer_token(self, client, seed):
        response = await client.get("/api/employee/dashboard", headers=auth_headers(seed.alice))
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_rejects_expired_token(self, client, seed):
        response = await client.get("/api/employee/profile", headers=auth_headers(seed.supervisor, expires_in_seconds=-5))
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_profile(self, client, seed):
        response = await client.get("/api/employee/profile", headers=auth_headers(seed.verifier))
        assert response.status_code == 200
        assert response.json()["data"]["permissions"] == ["verify_transactions"]

    @pytest.mark.asyncio
    async def test_logout_revokes_token(self, client, seed, mock_redis):
        headers = auth_headers(seed.supervisor)

        response = await client.post("/api/employee/logout", headers=headers)
        assert response.status_code == 200
        assert any(key.startswith("revoked_token:") for key in mock_redis.store)

        response = await client.get("/api/employee/profile", headers=headers)
        assert response.status_code == 401


class TestEmployeeWorkflow:

    @pytest.mark.asyncio
    async def test_dashboard(self, client, seed, make_transaction):
        await make_transaction()
        await make_transaction(TransactionStatus.verified)

        response = await client.get("/api/employee/dashboard", headers=auth_headers(seed.verifier))

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["stats"]["pending_transactions"] == 1
        assert data["stats"]["verified_transactions"] == 1
        assert len(data["recent_pending"]) == 1

    @pytest.mark.asyncio
    async def test_pending_transactions(self, client, seed, make_transaction):
        for _ in range(3):
            await make_transaction()

        response = await client.get(
            "/api/employee/pending-transactions",
            params={"page": 1, "limit": 2, "sortBy": "created_at", "sortOrder": "asc"},
            headers=auth_headers(seed.verifier),
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert len(data["transactions"]) == 2
        assert data["transactions"][0]["amount"] == "250.00"
        assert data["pagination"]["total_transactions"] == 3
        assert data["pagination"]["total_pages"] == 2

    @pytest.mark.asyncio
    async def test_pending_transactions_bad_sort(self, client, seed):
        response = await client.get(
            "/api/employee/pending-transactions", params={"sortBy": "password_hash"}, headers=auth_headers(seed.verifier),
        )
        assert response.status_code == 400
        assert "sortBy" in response.json()["data"]["fields"]

    @pytest.mark.asyncio
    async def test_pending_transactions_non_numeric_page(self, client, seed):
        response = await client.get(
            "/api/employee/pending-transactions", params={"page": "first"}, headers=auth_headers(seed.verifier),
        )
        assert response.status_code == 400
        assert response.json()["error"] == "ValidationError"

    @pytest.mark.asyncio
    async def test_transaction_detail(self, client, seed, make_transaction):
        txn = await make_transaction()

        found = await client.get(f"/api/employee/transaction/{txn.id}", headers=auth_headers(seed.verifier))
        missing = await client.get("/api/employee/transaction/9999", headers=auth_headers(seed.verifier))

        assert found.status_code == 200
        assert found.json()["data"]["reference_number"] == txn.reference_number
        assert missing.status_code == 404
        assert missing.json()["error"] == "NotFound"

    @pytest.mark.asyncio
    async def test_verify(self, client, seed, make_transaction):
        txn = await make_transaction()

        response = await client.put(
            f"/api/employee/verify-transaction/{txn.id}",
            json={"verification_notes": "Beneficiary confirmed"},
            headers=auth_headers(seed.verifier),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Transaction verified successfully"
        assert body["data"]["status"] == "verified"
        assert body["data"]["verified_by"] == seed.verifier.id

    @pytest.mark.asyncio
    async def test_verify_without_body(self, client, seed, make_transaction):
        txn = await make_transaction()
        response = await client.put(f"/api/employee/verify-transaction/{txn.id}", headers=auth_headers(seed.verifier))
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_verify_twice(self, client, seed, make_transaction):
        txn = await make_transaction()
        headers = auth_headers(seed.verifier)
        await client.put(f"/api/employee/verify-transaction/{txn.id}", headers=headers)

        response = await client.put(f"/api/employee/verify-transaction/{txn.id}", headers=headers)

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "InvalidTransition"
        assert body["data"] == {"current_status": "verified", "requested_status": "verified"}

    @pytest.mark.asyncio
    async def test_verify_without_permission(self, client, seed, make_transaction):
        txn = await make_transaction()
        response = await client.put(f"/api/employee/verify-transaction/{txn.id}", headers=auth_headers(seed.clerk))
        assert response.status_code == 403
        assert response.json()["error"] == "AuthorizationError"

    @pytest.mark.asyncio
    async def test_reject(self, client, seed, make_transaction):
        txn = await make_transaction()

        missing_reason = await client.put(
            f"/api/employee/reject-transaction/{txn.id}", json={}, headers=auth_headers(seed.verifier),
        )
        assert missing_reason.status_code == 400
        assert "rejection_reason" in missing_reason.json()["data"]["fields"]

        response = await client.put(
            f"/api/employee/reject-transaction/{txn.id}",
            json={"rejection_reason": "Sanctions screening hit"},
            headers=auth_headers(seed.verifier),
        )
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "rejected"
        assert response.json()["data"]["rejection_reason"] == "Sanctions screening hit"

    @pytest.mark.asyncio
    async def test_submit_to_swift(self, client, seed, make_transaction, fetch_transaction):
        a = await make_transaction(TransactionStatus.verified)
        b = await make_transaction()
        c = await make_transaction(TransactionStatus.verified)

        response = await client.post(
            "/api/employee/submit-to-swift",
            json={"transaction_ids": [a.id, b.id, c.id]},
            headers=auth_headers(seed.supervisor),
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["submitted_count"] == 2
        assert data["transaction_ids"] == [a.id, c.id]
        assert data["submitted_at"]
        assert (await fetch_transaction(b.id)).status == "pending"

    @pytest.mark.asyncio
    async def test_submit_nothing_eligible(self, client, seed, make_transaction):
        b = await make_transaction()

        response = await client.post(
            "/api/employee/submit-to-swift", json={"transaction_ids": [b.id]}, headers=auth_headers(seed.supervisor),
        )

        assert response.status_code == 400
        assert response.json()["error"] == "NoEligibleTransactions"

    @pytest.mark.asyncio
    async def test_submit_requires_permission(self, client, seed, make_transaction):
        a = await make_transaction(TransactionStatus.verified)

        response = await client.post(
            "/api/employee/submit-to-swift", json={"transaction_ids": [a.id]}, headers=auth_headers(seed.verifier),
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_submit_empty_batch(self, client, seed):
        response = await client.post(
            "/api/employee/submit-to-swift", json={"transaction_ids": []}, headers=auth_headers(seed.supervisor),
        )
        assert response.status_code == 400
        assert response.json()["error"] == "ValidationError"


class TestServiceRoutes:

    @pytest.mark.asyncio
    async def test_root(self, client):
        response = await client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "Active"

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["redis"] == "connected"

    @pytest.mark.asyncio
    async def test_security_headers(self, client):
        response = await client.get("/")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
