"""
Integration tests for the clients endpoints.

Covers CRUD, the change log, custom fields, and module gating by
employee permission grants.
"""

import csv
import io

from httpx import AsyncClient

API = "/api/v1/clients"


async def create_client(client: AsyncClient, headers: dict, **overrides) -> dict:
    payload = {"name": "Kowalski Sp. z o.o.", "nip": "5213456789", "email": "biuro@kowalski.pl"}
    payload.update(overrides)
    response = await client.post(API, json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestClientCrud:
    async def test_create_and_get(self, client: AsyncClient, tenancy, owner_headers, api):
        created = await create_client(client, owner_headers)

        response = await client.get(f"{API}/{created['id']}", headers=owner_headers)

        data = api.assert_success(response)["data"]
        assert data["name"] == "Kowalski Sp. z o.o."
        assert data["company_id"] == tenancy.company.id
        assert data["created_by_id"] == tenancy.owner.id
        assert data["is_active"] is True

    async def test_list_is_paginated_and_searchable(self, client: AsyncClient, tenancy, owner_headers, api):
        await create_client(client, owner_headers, name="Alfa", nip="1111111111", email=None)
        await create_client(client, owner_headers, name="Beta", nip="2222222222", email=None)

        response = await client.get(API, params={"search": "alf", "limit": 10}, headers=owner_headers)

        body = api.assert_success(response)
        assert [c["name"] for c in body["data"]] == ["Alfa"]
        assert body["pagination"]["total"] == 1
        assert body["pagination"]["has_more"] is False

    async def test_update_records_changelog(self, client: AsyncClient, tenancy, owner_headers, api):
        created = await create_client(client, owner_headers)

        response = await client.patch(
            f"{API}/{created['id']}", json={"phone": "+48 600 100 200"}, headers=owner_headers,
        )
        api.assert_success(response)

        history = api.assert_success(
            await client.get(f"{API}/{created['id']}/changelog", headers=owner_headers)
        )["data"]
        actions = {entry["action"] for entry in history}
        assert actions == {"CREATE", "UPDATE"}

    async def test_soft_delete_and_restore(self, client: AsyncClient, tenancy, owner_headers, api):
        created = await create_client(client, owner_headers)

        response = await client.delete(f"{API}/{created['id']}", headers=owner_headers)
        assert response.status_code == 204

        active = api.assert_success(await client.get(API, headers=owner_headers))
        assert active["pagination"]["total"] == 0
        inactive = api.assert_success(await client.get(API, params={"is_active": False}, headers=owner_headers))
        assert inactive["pagination"]["total"] == 1

        restored = await client.post(f"{API}/{created['id']}/restore", headers=owner_headers)
        assert api.assert_success(restored)["data"]["is_active"] is True

    async def test_restore_active_client_is_rejected(self, client: AsyncClient, tenancy, owner_headers, api):
        created = await create_client(client, owner_headers)

        response = await client.post(f"{API}/{created['id']}/restore", headers=owner_headers)

        api.assert_error(response, 400, "VAL_VALIDATION_ERROR")

    async def test_missing_name_is_request_error(self, client: AsyncClient, tenancy, owner_headers, api):
        response = await client.post(API, json={"nip": "123"}, headers=owner_headers)

        api.assert_validation_error(response, "name")


class TestClientPermissions:
    async def test_employee_with_grant_can_write(self, client: AsyncClient, tenancy, employee_headers, api):
        created = await create_client(client, employee_headers)

        assert created["created_by_id"] == tenancy.employee.id

    async def test_employee_without_delete_grant(self, client: AsyncClient, tenancy, owner_headers, employee_headers, api):
        created = await create_client(client, owner_headers)

        response = await client.delete(f"{API}/{created['id']}", headers=employee_headers)

        api.assert_error(response, 403, "AUTHZ_MODULE_DENIED")

    async def test_other_company_cannot_see_client(self, client: AsyncClient, tenancy, owner_headers, other_owner_headers, api):
        created = await create_client(client, owner_headers)

        # Biuro B has no module access at all
        response = await client.get(f"{API}/{created['id']}", headers=other_owner_headers)

        api.assert_error(response, 403, "AUTHZ_MODULE_DENIED")

    async def test_admin_reads_any_company(self, client: AsyncClient, tenancy, owner_headers, admin_headers, api):
        created = await create_client(client, owner_headers)

        response = await client.get(f"{API}/{created['id']}", headers=admin_headers)

        # Admins act within the system company; foreign tenant rows stay hidden
        api.assert_error(response, 404, "RES_NOT_FOUND")


class TestCustomFields:
    async def test_define_and_set_value(self, client: AsyncClient, tenancy, owner_headers, api):
        # Arrange
        created = await create_client(client, owner_headers)
        definition = api.assert_success(
            await client.post(
                f"{API}/fields",
                json={"name": "employees", "label": "Liczba pracowników", "field_type": "NUMBER"},
                headers=owner_headers,
            ),
            201,
        )["data"]

        # Act
        response = await client.put(
            f"{API}/{created['id']}/custom-fields/{definition['id']}",
            json={"value": "12"},
            headers=owner_headers,
        )

        # Assert
        assert api.assert_success(response)["data"]["value"] == "12"
        values = api.assert_success(
            await client.get(f"{API}/{created['id']}/custom-fields", headers=owner_headers)
        )["data"]
        assert [v["value"] for v in values] == ["12"]

    async def test_invalid_value_is_rejected(self, client: AsyncClient, tenancy, owner_headers, api):
        created = await create_client(client, owner_headers)
        definition = api.assert_success(
            await client.post(
                f"{API}/fields",
                json={"name": "employees", "label": "Liczba pracowników", "field_type": "NUMBER"},
                headers=owner_headers,
            ),
            201,
        )["data"]

        response = await client.put(
            f"{API}/{created['id']}/custom-fields/{definition['id']}",
            json={"value": "dwanaście"},
            headers=owner_headers,
        )

        api.assert_error(response, 400, "VAL_VALIDATION_ERROR")

    async def test_set_values_is_all_or_nothing(self, client: AsyncClient, tenancy, owner_headers, api):
        # Arrange
        created = await create_client(client, owner_headers)
        employees = api.assert_success(
            await client.post(
                f"{API}/fields",
                json={"name": "employees", "label": "Liczba pracowników", "field_type": "NUMBER"},
                headers=owner_headers,
            ),
            201,
        )["data"]
        notes = api.assert_success(
            await client.post(
                f"{API}/fields",
                json={"name": "notes", "label": "Notatki", "field_type": "TEXT"},
                headers=owner_headers,
            ),
            201,
        )["data"]

        # Act
        response = await client.put(
            f"{API}/{created['id']}/custom-fields",
            json={
                "values": [
                    {"field_definition_id": notes["id"], "value": "Stały klient"},
                    {"field_definition_id": employees["id"], "value": "dwanaście"},
                ]
            },
            headers=owner_headers,
        )

        # Assert
        api.assert_error(response, 400, "VAL_VALIDATION_ERROR")
        values = api.assert_success(
            await client.get(f"{API}/{created['id']}/custom-fields", headers=owner_headers)
        )["data"]
        assert values == []

    async def test_set_values_writes_every_value(self, client: AsyncClient, tenancy, owner_headers, api):
        created = await create_client(client, owner_headers)
        notes = api.assert_success(
            await client.post(
                f"{API}/fields",
                json={"name": "notes", "label": "Notatki", "field_type": "TEXT"},
                headers=owner_headers,
            ),
            201,
        )["data"]

        response = await client.put(
            f"{API}/{created['id']}/custom-fields",
            json={"values": [{"field_definition_id": notes["id"], "value": "Stały klient"}]},
            headers=owner_headers,
        )

        assert [v["value"] for v in api.assert_success(response)["data"]] == ["Stały klient"]


class TestClientIcons:
    async def create_icon(self, client: AsyncClient, headers: dict, name: str) -> dict:
        response = await client.post(f"{API}/icons", json={"name": name, "icon_value": name}, headers=headers)
        assert response.status_code == 201, response.text
        return response.json()["data"]

    async def icon_ids(self, client: AsyncClient, headers: dict, client_id: str) -> set[str]:
        response = await client.get(f"{API}/{client_id}/icons", headers=headers)
        return {icon["id"] for icon in response.json()["data"]}

    async def test_assign_is_idempotent(self, client: AsyncClient, tenancy, owner_headers, api):
        created = await create_client(client, owner_headers)
        star = await self.create_icon(client, owner_headers, "star")

        first = await client.post(f"{API}/{created['id']}/icons/{star['id']}", headers=owner_headers)
        second = await client.post(f"{API}/{created['id']}/icons/{star['id']}", headers=owner_headers)

        assert first.status_code == 204
        assert second.status_code == 204
        assert await self.icon_ids(client, owner_headers, created["id"]) == {star["id"]}

    async def test_unassign(self, client: AsyncClient, tenancy, owner_headers, api):
        created = await create_client(client, owner_headers)
        star = await self.create_icon(client, owner_headers, "star")
        await client.post(f"{API}/{created['id']}/icons/{star['id']}", headers=owner_headers)

        response = await client.delete(f"{API}/{created['id']}/icons/{star['id']}", headers=owner_headers)
        again = await client.delete(f"{API}/{created['id']}/icons/{star['id']}", headers=owner_headers)

        assert response.status_code == 204
        api.assert_error(again, 404, "RES_NOT_FOUND")
        assert await self.icon_ids(client, owner_headers, created["id"]) == set()

    async def test_set_replaces_assignments(self, client: AsyncClient, tenancy, owner_headers, api):
        # Arrange
        created = await create_client(client, owner_headers)
        star = await self.create_icon(client, owner_headers, "star")
        flag = await self.create_icon(client, owner_headers, "flag")
        await client.post(f"{API}/{created['id']}/icons/{star['id']}", headers=owner_headers)

        # Act
        response = await client.put(
            f"{API}/{created['id']}/icons", json={"icon_ids": [flag["id"], flag["id"]]}, headers=owner_headers
        )

        # Assert
        assert [icon["id"] for icon in api.assert_success(response)["data"]] == [flag["id"]]

    async def test_set_with_unknown_icon_changes_nothing(self, client: AsyncClient, tenancy, owner_headers, api):
        created = await create_client(client, owner_headers)
        star = await self.create_icon(client, owner_headers, "star")
        await client.post(f"{API}/{created['id']}/icons/{star['id']}", headers=owner_headers)

        response = await client.put(
            f"{API}/{created['id']}/icons", json={"icon_ids": ["missing"]}, headers=owner_headers
        )

        api.assert_error(response, 404, "RES_NOT_FOUND")
        assert await self.icon_ids(client, owner_headers, created["id"]) == {star["id"]}


class TestClientReporting:
    async def test_statistics(self, client: AsyncClient, tenancy, owner_headers, api):
        # Arrange
        await create_client(client, owner_headers, name="Alfa", vat_status="VAT_MONTHLY", employment_type="DG")
        await create_client(client, owner_headers, name="Beta", vat_status="VAT_MONTHLY")
        gone = await create_client(client, owner_headers, name="Gamma", vat_status="NO")
        await client.delete(f"{API}/{gone['id']}", headers=owner_headers)

        # Act
        response = await client.get(f"{API}/statistics", headers=owner_headers)

        # Assert
        data = api.assert_success(response)["data"]
        assert (data["total"], data["active"], data["inactive"]) == (3, 2, 1)
        assert data["by_vat_status"] == {"VAT_MONTHLY": 2, "VAT_QUARTERLY": 0, "NO": 0, "NO_WATCH_LIMIT": 0}
        assert data["by_employment_type"]["DG"] == 1
        assert set(data["by_zus_status"]) == {"FULL", "PREFERENTIAL", "NONE"}
        assert data["added_this_month"] == 3
        assert data["added_last_30_days"] == 3

    async def test_export_csv(self, client: AsyncClient, tenancy, owner_headers, api):
        await create_client(client, owner_headers, name="Zeta", nip="1111111111", tax_scheme="PIT_19")
        await create_client(client, owner_headers, name="Alfa", nip="2222222222", email=None)

        response = await client.get(f"{API}/export", headers=owner_headers)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "clients.csv" in response.headers["content-disposition"]
        rows = list(csv.DictReader(io.StringIO(response.text)))
        assert [row["name"] for row in rows] == ["Alfa", "Zeta"]
        assert rows[0]["email"] == ""
        assert rows[1]["tax_scheme"] == "PIT_19"
        assert rows[1]["is_active"] == "true"

    async def test_export_applies_filters(self, client: AsyncClient, tenancy, owner_headers, api):
        await create_client(client, owner_headers, name="Alfa", vat_status="NO")
        await create_client(client, owner_headers, name="Beta", vat_status="VAT_MONTHLY")

        response = await client.get(f"{API}/export", params={"vat_status": "NO"}, headers=owner_headers)

        rows = list(csv.DictReader(io.StringIO(response.text)))
        assert [row["name"] for row in rows] == ["Alfa"]
