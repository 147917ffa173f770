"""
Integration Test Fixtures.

The real application runs over httpx's ASGITransport against the per-test
database from tests/conftest.py. get_db_session is overridden with a
session from that database that commits or rolls back per request, as
in production.

`tenancy` seeds a small office layout and the *_headers fixtures carry a
bearer token for each of its users.
"""

from collections.abc import AsyncGenerator
from dataclasses import dataclass
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient, Response
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from accounting.backend.core.database import get_db_session
from accounting.backend.core.security import hash_password
from accounting.backend.models.enums import ModuleSource, UserRole
from accounting.backend.models.module import CompanyModuleAccess, Module, UserModulePermission
from accounting.backend.models.user import Company, User
from accounting.backend.services.auth import AuthService

FEATURE_MODULES = ("clients", "offers", "time-tracking", "tasks", "email-client", "ai-agent")
TEST_PASSWORD = "Secret123!"


@pytest.fixture
async def client(db_session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncClient, None]:
    from accounting.backend.main import create_app

    async def session_per_request() -> AsyncGenerator[AsyncSession, None]:
        async with db_session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
            else:
                await session.commit()

    app = create_app()
    app.dependency_overrides[get_db_session] = session_per_request
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client
    app.dependency_overrides.clear()


@dataclass
class Tenancy:
    system_company: Company
    company: Company
    other_company: Company
    admin: User
    owner: User
    employee: User
    other_owner: User
    modules: dict[str, Module]


def _user(email: str, role: UserRole, company: Company, first_name: str) -> User:
    return User(
        email=email,
        password=hash_password(TEST_PASSWORD),
        first_name=first_name,
        last_name="Tester",
        role=role,
        company_id=company.id,
    )


def _module(slug: str) -> Module:
    return Module(
        slug=slug,
        name=slug.replace("-", " ").title(),
        version="1.0.0",
        permissions=["read", "write", "delete"],
        default_permissions=["read"],
        source=ModuleSource.FILE,
    )


@pytest.fixture
async def tenancy(db_session_factory: async_sessionmaker[AsyncSession]) -> Tenancy:
    """
    System company with the ADMIN; "Biuro A" (owner and employee) with every
    feature module enabled and clients read/write granted to the employee;
    "Biuro B" with only an owner and no modules.
    """
    async with db_session_factory() as session:
        system_company = Company(name="System Administration", is_system_company=True)
        company, other_company = Company(name="Biuro A"), Company(name="Biuro B")
        session.add_all([system_company, company, other_company])
        await session.flush()

        admin = _user("admin@example.com", UserRole.ADMIN, system_company, "Ada")
        owner = _user("owner@biuro-a.pl", UserRole.COMPANY_OWNER, company, "Olga")
        employee = _user("employee@biuro-a.pl", UserRole.EMPLOYEE, company, "Ewa")
        other_owner = _user("owner@biuro-b.pl", UserRole.COMPANY_OWNER, other_company, "Oskar")
        session.add_all([admin, owner, employee, other_owner])
        await session.flush()
        company.owner_id, other_company.owner_id = owner.id, other_owner.id

        modules = {slug: _module(slug) for slug in FEATURE_MODULES}
        session.add_all(modules.values())
        await session.flush()

        session.add_all(
            CompanyModuleAccess(company_id=company.id, module_id=module.id, is_enabled=True)
            for module in modules.values()
        )
        session.add(
            UserModulePermission(
                user_id=employee.id,
                module_id=modules["clients"].id,
                permissions=["read", "write"],
                granted_by_id=owner.id,
            )
        )
        await session.commit()

    return Tenancy(system_company, company, other_company, admin, owner, employee, other_owner, modules)


def bearer(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {AuthService.issue_tokens(user)['access_token']}"}


@pytest.fixture
def admin_headers(tenancy: Tenancy) -> dict[str, str]:
    return bearer(tenancy.admin)


@pytest.fixture
def owner_headers(tenancy: Tenancy) -> dict[str, str]:
    return bearer(tenancy.owner)


@pytest.fixture
def employee_headers(tenancy: Tenancy) -> dict[str, str]:
    return bearer(tenancy.employee)


@pytest.fixture
def other_owner_headers(tenancy: Tenancy) -> dict[str, str]:
    return bearer(tenancy.other_owner)


class ApiAssertions:
    """Envelope checks that return the decoded body for further asserts."""

    @staticmethod
    def _body(response: Response, expected_status: int) -> dict[str, Any]:
        assert response.status_code == expected_status, (
            f"Expected {expected_status}, got {response.status_code}: {response.text}"
        )
        return response.json()

    def assert_success(self, response: Response, expected_status: int = 200) -> dict[str, Any]:
        body = self._body(response, expected_status)
        assert body.get("success") is True, f"Response not successful: {body}"
        return body

    def assert_error(self, response: Response, expected_status: int, expected_code: str | None = None) -> dict[str, Any]:
        body = self._body(response, expected_status)
        assert body.get("success") is False, f"Response should be an error: {body}"
        assert body.get("error"), f"Missing error details: {body}"
        if expected_code:
            assert body["error"].get("code") == expected_code, f"Expected {expected_code}: {body['error']}"
        return body

    def assert_validation_error(self, response: Response, field: str | None = None) -> dict[str, Any]:
        """422 VAL_REQUEST_INVALID, optionally with an entry whose path contains `field`."""
        body = self.assert_error(response, 422, "VAL_REQUEST_INVALID")
        if field:
            fields = [e.get("field", "") for e in (body["error"].get("details") or {}).get("validation_errors", [])]
            assert any(field in f for f in fields), f"No validation error for '{field}', got {fields}"
        return body


@pytest.fixture
def api() -> ApiAssertions:
    return ApiAssertions()
