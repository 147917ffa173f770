"""
Integration tests for module access management.

Grants flow top-down: the admin enables modules for a company, the owner
hands them on to employees.
"""

import json
from pathlib import Path
from unittest.mock import patch

import pytest
from httpx import AsyncClient
from sqlalchemy import update

from accounting.backend.models.module import CompanyModuleAccess
from accounting.backend.services.module_discovery import ModuleDiscoveryService, get_module_discovery

API = "/api/v1/modules"


def employee_grant(employee_id: str, slug: str, permissions: list[str]) -> dict:
    return {
        "target_type": "employee",
        "target_id": employee_id,
        "module_slug": slug,
        "permissions": permissions,
    }


def write_manifest(root: Path, slug: str, **overrides) -> None:
    manifest = {
        "slug": slug,
        "name": slug.title(),
        "version": "2.0.0",
        "permissions": ["read", "write", "delete"],
        "defaultPermissions": ["read", "write"],
        "isActive": True,
    }
    manifest.update(overrides)
    (root / slug).mkdir()
    (root / slug / "module.json").write_text(json.dumps(manifest), encoding="utf-8")


@pytest.fixture
async def manifests(tmp_path):
    """Points the process-wide discovery at an empty temporary directory."""
    discovery = get_module_discovery()
    discovery.clear_cache()
    with patch("accounting.backend.services.module_discovery.get_manifests_path", return_value=tmp_path):
        yield tmp_path
    discovery.clear_cache()


class TestAvailableModules:
    async def test_admin_sees_every_module(self, client: AsyncClient, tenancy, admin_headers, api):
        response = await client.get(API, headers=admin_headers)

        slugs = {m["slug"] for m in api.assert_success(response)["data"]}
        assert slugs == set(tenancy.modules)

    async def test_employee_sees_granted_modules(self, client: AsyncClient, tenancy, employee_headers, api):
        response = await client.get(API, headers=employee_headers)

        assert [m["slug"] for m in api.assert_success(response)["data"]] == ["clients"]

    async def test_company_without_access_sees_nothing(self, client: AsyncClient, tenancy, other_owner_headers, api):
        response = await client.get(API, headers=other_owner_headers)

        assert api.assert_success(response)["data"] == []


class TestEmployeeGrants:
    async def test_owner_grants_tasks_to_employee(self, client: AsyncClient, tenancy, owner_headers, employee_headers, api):
        # Arrange
        denied = await client.get("/api/v1/tasks", headers=employee_headers)
        api.assert_error(denied, 403, "AUTHZ_MODULE_DENIED")

        # Act
        response = await client.post(
            f"{API}/permissions",
            json=employee_grant(tenancy.employee.id, "tasks", ["read"]),
            headers=owner_headers,
        )

        # Assert
        data = api.assert_success(response)["data"]
        assert data["permissions"] == ["read"]
        assert data["module"]["slug"] == "tasks"
        api.assert_success(await client.get("/api/v1/tasks", headers=employee_headers))
        write = await client.post("/api/v1/tasks", json={"title": "Nope"}, headers=employee_headers)
        api.assert_error(write, 403, "AUTHZ_MODULE_DENIED")

    async def test_unknown_permission_is_rejected(self, client: AsyncClient, tenancy, owner_headers, api):
        response = await client.post(
            f"{API}/permissions",
            json=employee_grant(tenancy.employee.id, "tasks", ["read", "publish"]),
            headers=owner_headers,
        )

        api.assert_error(response, 400, "VAL_VALIDATION_ERROR")

    async def test_employee_cannot_grant(self, client: AsyncClient, tenancy, employee_headers, api):
        response = await client.post(
            f"{API}/permissions",
            json=employee_grant(tenancy.employee.id, "tasks", ["read"]),
            headers=employee_headers,
        )

        api.assert_error(response, 403, "AUTHZ_FORBIDDEN")

    async def test_owner_cannot_grant_foreign_employee(self, client: AsyncClient, tenancy, other_owner_headers, api):
        response = await client.post(
            f"{API}/permissions",
            json=employee_grant(tenancy.employee.id, "clients", ["read"]),
            headers=other_owner_headers,
        )

        api.assert_error(response, 404, "RES_NOT_FOUND")


class TestCompanyAccess:
    async def test_revoking_company_access_drops_employee_grants(
        self, client: AsyncClient, tenancy, admin_headers, employee_headers, api,
    ):
        # Act
        response = await client.request(
            "DELETE",
            f"{API}/permissions",
            json={"target_type": "company", "target_id": tenancy.company.id, "module_slug": "clients"},
            headers=admin_headers,
        )

        # Assert
        assert response.status_code == 204
        denied = await client.get("/api/v1/clients", headers=employee_headers)
        api.assert_error(denied, 403, "AUTHZ_MODULE_DENIED")

    async def test_admin_enables_module_for_company(
        self, client: AsyncClient, tenancy, admin_headers, other_owner_headers, api,
    ):
        response = await client.post(
            f"{API}/permissions",
            json={"target_type": "company", "target_id": tenancy.other_company.id, "module_slug": "offers"},
            headers=admin_headers,
        )

        api.assert_success(response)
        api.assert_success(await client.get("/api/v1/offers", headers=other_owner_headers))

    async def test_owner_cannot_manage_company_access(self, client: AsyncClient, tenancy, owner_headers, api):
        response = await client.post(
            f"{API}/permissions",
            json={"target_type": "company", "target_id": tenancy.company.id, "module_slug": "offers"},
            headers=owner_headers,
        )

        api.assert_error(response, 403, "AUTHZ_FORBIDDEN")


class TestModuleRegistry:
    async def test_created_module_gets_configured_permissions(self, client: AsyncClient, tenancy, admin_headers, api):
        response = await client.post(
            API,
            json={"slug": "payroll", "name": "Kadry i płace", "default_permissions": ["read"]},
            headers=admin_headers,
        )

        data = api.assert_success(response, 201)["data"]
        assert data["permissions"] == ["read", "write", "delete"]
        assert data["source"] == "legacy"

    async def test_default_permissions_must_be_declared(self, client: AsyncClient, tenancy, admin_headers, api):
        response = await client.post(
            API,
            json={"slug": "payroll", "name": "Kadry", "permissions": ["read"], "default_permissions": ["write"]},
            headers=admin_headers,
        )

        api.assert_error(response, 400, "VAL_VALIDATION_ERROR")

    async def test_duplicate_slug_conflicts(self, client: AsyncClient, tenancy, admin_headers, api):
        response = await client.post(API, json={"slug": "tasks", "name": "Zadania"}, headers=admin_headers)

        api.assert_error(response, 409, "RES_CONFLICT")


class TestDefaultGrants:
    async def test_grant_without_permissions_uses_manifest_defaults(
        self, client: AsyncClient, tenancy, owner_headers, manifests, api,
    ):
        # Arrange
        write_manifest(manifests, "tasks", defaultPermissions=["read", "write"])
        await get_module_discovery().discover_modules()

        # Act
        response = await client.post(
            f"{API}/permissions",
            json={"target_type": "employee", "target_id": tenancy.employee.id, "module_slug": "tasks"},
            headers=owner_headers,
        )

        # Assert
        assert api.assert_success(response)["data"]["permissions"] == ["read", "write"]

    async def test_without_manifest_the_stored_defaults_apply(self, client: AsyncClient, tenancy, owner_headers, api):
        with patch.object(ModuleDiscoveryService, "get_default_permissions", return_value=None):
            response = await client.post(
                f"{API}/permissions",
                json={"target_type": "employee", "target_id": tenancy.employee.id, "module_slug": "offers"},
                headers=owner_headers,
            )

        assert api.assert_success(response)["data"]["permissions"] == ["read"]

    async def test_update_still_requires_permissions(self, client: AsyncClient, tenancy, owner_headers, api):
        response = await client.patch(
            f"{API}/permissions",
            json={"target_type": "employee", "target_id": tenancy.employee.id, "module_slug": "clients"},
            headers=owner_headers,
        )

        api.assert_error(response, 400, "VAL_VALIDATION_ERROR")


class TestOrphanCleanup:
    async def test_removes_grants_left_on_disabled_modules(
        self, client: AsyncClient, tenancy, db_session_factory, admin_headers, api,
    ):
        # Arrange
        clients_module = tenancy.modules["clients"]
        async with db_session_factory() as session:
            await session.execute(
                update(CompanyModuleAccess)
                .where(
                    CompanyModuleAccess.company_id == tenancy.company.id,
                    CompanyModuleAccess.module_id == clients_module.id,
                )
                .values(is_enabled=False)
            )
            await session.commit()

        # Act
        response = await client.post(f"{API}/cleanup/orphaned-permissions", headers=admin_headers)

        # Assert
        data = api.assert_success(response)["data"]
        assert data["deleted_count"] == 1
        assert data["companies"] == [
            {
                "company_id": tenancy.company.id,
                "company_name": "Biuro A",
                "module_id": clients_module.id,
                "module_name": clients_module.name,
                "deleted_permissions": 1,
            }
        ]
        again = await client.post(f"{API}/cleanup/orphaned-permissions", headers=admin_headers)
        assert api.assert_success(again)["data"] == {"deleted_count": 0, "companies": []}

    async def test_nothing_to_clean(self, client: AsyncClient, tenancy, admin_headers, api):
        response = await client.post(f"{API}/cleanup/orphaned-permissions", headers=admin_headers)

        assert api.assert_success(response)["data"]["deleted_count"] == 0

    async def test_requires_admin(self, client: AsyncClient, tenancy, owner_headers, api):
        response = await client.post(f"{API}/cleanup/orphaned-permissions", headers=owner_headers)

        api.assert_error(response, 403, "AUTHZ_FORBIDDEN")


class TestDiscoveryReload:
    async def test_reload_syncs_manifests(self, client: AsyncClient, tenancy, admin_headers, manifests, api):
        # Arrange
        write_manifest(manifests, "tasks", name="Zadania")
        write_manifest(manifests, "payroll", name="Kadry")

        # Act
        response = await client.post(f"{API}/discovery/reload", headers=admin_headers)

        # Assert
        assert api.assert_success(response)["data"] == {"created": 1, "updated": 1}
        modules = {m["slug"]: m for m in api.assert_success(await client.get(API, headers=admin_headers))["data"]}
        assert modules["payroll"]["name"] == "Kadry"
        assert modules["tasks"]["name"] == "Zadania"
        assert modules["tasks"]["version"] == "2.0.0"

    async def test_reload_picks_up_new_manifests(self, client: AsyncClient, tenancy, admin_headers, manifests, api):
        write_manifest(manifests, "payroll")
        api.assert_success(await client.post(f"{API}/discovery/reload", headers=admin_headers))

        write_manifest(manifests, "archive")
        response = await client.post(f"{API}/discovery/reload", headers=admin_headers)

        assert api.assert_success(response)["data"] == {"created": 1, "updated": 1}

    async def test_requires_admin(self, client: AsyncClient, tenancy, owner_headers, api):
        response = await client.post(f"{API}/discovery/reload", headers=owner_headers)

        api.assert_error(response, 403, "AUTHZ_FORBIDDEN")
