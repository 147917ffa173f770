"""
Integration tests for the auth endpoints.
"""

from httpx import AsyncClient

TEST_PASSWORD = "Secret123!"

API = "/api/v1/auth"


class TestRegister:
    async def test_register_employee_into_company(self, client: AsyncClient, tenancy, api):
        # Arrange
        payload = {
            "email": "Nowa@Biuro-A.pl",
            "password": "Haslo123!",
            "first_name": "Nina",
            "last_name": "Nowak",
            "role": "EMPLOYEE",
            "company_id": tenancy.company.id,
        }

        # Act
        response = await client.post(f"{API}/register", json=payload)

        # Assert
        data = api.assert_success(response, 201)["data"]
        assert data["access_token"]
        assert data["refresh_token"]
        assert data["user"]["email"] == "nowa@biuro-a.pl"
        assert data["user"]["company_id"] == tenancy.company.id
        assert "password" not in data["user"]

    async def test_duplicate_email_is_conflict(self, client: AsyncClient, tenancy, api):
        payload = {
            "email": tenancy.owner.email.upper(),
            "password": "Haslo123!",
            "first_name": "Olga",
            "last_name": "Dup",
            "role": "COMPANY_OWNER",
            "company_id": tenancy.company.id,
        }

        response = await client.post(f"{API}/register", json=payload)

        api.assert_error(response, 409, "RES_CONFLICT")

    async def test_employee_without_company_is_rejected(self, client: AsyncClient, tenancy, api):
        payload = {
            "email": "bez.firmy@example.com",
            "password": "Haslo123!",
            "first_name": "Bez",
            "last_name": "Firmy",
        }

        response = await client.post(f"{API}/register", json=payload)

        api.assert_error(response, 400, "VAL_VALIDATION_ERROR")

    async def test_short_password_is_rejected(self, client: AsyncClient, tenancy, api):
        payload = {
            "email": "krotkie@biuro-a.pl",
            "password": "a",
            "first_name": "Kamil",
            "last_name": "Krotki",
            "role": "EMPLOYEE",
            "company_id": tenancy.company.id,
        }

        response = await client.post(f"{API}/register", json=payload)

        data = api.assert_error(response, 400, "VAL_VALIDATION_ERROR")
        assert data["error"]["details"] == {"min_length": 8}

    async def test_invalid_email_is_request_error(self, client: AsyncClient, api):
        response = await client.post(
            f"{API}/register",
            json={"email": "not-an-email", "password": "x", "first_name": "A", "last_name": "B"},
        )

        api.assert_validation_error(response, "email")


class TestLogin:
    async def test_login_returns_tokens(self, client: AsyncClient, tenancy, api):
        response = await client.post(
            f"{API}/login",
            json={"email": tenancy.owner.email, "password": TEST_PASSWORD},
        )

        data = api.assert_success(response)["data"]
        assert data["token_type"] == "bearer"
        assert data["user"]["role"] == "COMPANY_OWNER"

    async def test_wrong_password(self, client: AsyncClient, tenancy, api):
        response = await client.post(
            f"{API}/login",
            json={"email": tenancy.owner.email, "password": "wrong"},
        )

        data = api.assert_error(response, 401, "AUTH_UNAUTHORIZED")
        assert data["error"]["message"] == "Invalid credentials"

    async def test_unknown_email_gets_same_message(self, client: AsyncClient, tenancy, api):
        response = await client.post(
            f"{API}/login",
            json={"email": "ghost@example.com", "password": TEST_PASSWORD},
        )

        data = api.assert_error(response, 401, "AUTH_UNAUTHORIZED")
        assert data["error"]["message"] == "Invalid credentials"


class TestTokens:
    async def test_me_requires_token(self, client: AsyncClient, api):
        response = await client.get(f"{API}/me")

        api.assert_error(response, 401, "AUTH_UNAUTHORIZED")

    async def test_me_returns_current_user(self, client: AsyncClient, tenancy, employee_headers, api):
        response = await client.get(f"{API}/me", headers=employee_headers)

        data = api.assert_success(response)["data"]
        assert data["id"] == tenancy.employee.id
        assert data["role"] == "EMPLOYEE"

    async def test_refresh_issues_new_pair(self, client: AsyncClient, tenancy, api):
        login = await client.post(
            f"{API}/login",
            json={"email": tenancy.employee.email, "password": TEST_PASSWORD},
        )
        refresh_token = login.json()["data"]["refresh_token"]

        response = await client.post(f"{API}/refresh", json={"refresh_token": refresh_token})

        data = api.assert_success(response)["data"]
        assert data["access_token"]

    async def test_access_token_is_not_a_refresh_token(self, client: AsyncClient, tenancy, employee_headers, api):
        access_token = employee_headers["Authorization"].removeprefix("Bearer ")

        response = await client.post(f"{API}/refresh", json={"refresh_token": access_token})

        api.assert_error(response, 401, "AUTH_UNAUTHORIZED")

    async def test_change_password_then_login(self, client: AsyncClient, tenancy, employee_headers, api):
        response = await client.post(
            f"{API}/change-password",
            headers=employee_headers,
            json={"current_password": TEST_PASSWORD, "new_password": "Nowe456!"},
        )
        assert response.status_code == 204

        login = await client.post(
            f"{API}/login",
            json={"email": tenancy.employee.email, "password": "Nowe456!"},
        )
        api.assert_success(login)

    async def test_change_password_enforces_min_length(self, client: AsyncClient, tenancy, employee_headers, api):
        response = await client.post(
            f"{API}/change-password",
            headers=employee_headers,
            json={"current_password": TEST_PASSWORD, "new_password": "short"},
        )

        api.assert_error(response, 400, "VAL_VALIDATION_ERROR")
        login = await client.post(
            f"{API}/login",
            json={"email": tenancy.employee.email, "password": TEST_PASSWORD},
        )
        api.assert_success(login)
