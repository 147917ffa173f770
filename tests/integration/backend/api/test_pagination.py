"""
Integration Tests for Pagination.

Uses the clients list, seeded directly through the database session.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from accounting.backend.models.client import Client

API = "/api/v1/clients"


@pytest.fixture
def seed_clients(db_session_factory: async_sessionmaker[AsyncSession], tenancy):
    async def _seed(count: int, company_id: str | None = None) -> None:
        async with db_session_factory() as session:
            session.add_all(
                Client(name=f"Klient {i:02d}", company_id=company_id or tenancy.company.id)
                for i in range(count)
            )
            await session.commit()

    return _seed


class TestPaginatedListEndpoint:
    async def test_returns_paginated_response_structure(self, client: AsyncClient, seed_clients, owner_headers):
        await seed_clients(1)

        response = await client.get(API, headers=owner_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert set(data["pagination"]) == {"total", "limit", "page", "total_pages", "has_more"}
        assert "metadata" in data

    async def test_page_and_limit(self, client: AsyncClient, seed_clients, owner_headers):
        await seed_clients(7)

        response = await client.get(API, params={"page": 2, "limit": 3}, headers=owner_headers)

        data = response.json()
        assert len(data["data"]) == 3
        assert data["pagination"] == {
            "total": 7,
            "limit": 3,
            "page": 2,
            "total_pages": 3,
            "has_more": True,
        }

    async def test_last_page(self, client: AsyncClient, seed_clients, owner_headers):
        await seed_clients(7)

        response = await client.get(API, params={"page": 3, "limit": 3}, headers=owner_headers)

        data = response.json()
        assert len(data["data"]) == 1
        assert data["pagination"]["has_more"] is False

    async def test_default_limit(self, client: AsyncClient, seed_clients, owner_headers):
        await seed_clients(25)

        response = await client.get(API, headers=owner_headers)

        data = response.json()
        assert len(data["data"]) == 20
        assert data["pagination"]["limit"] == 20

    async def test_total_counts_only_own_company(self, client: AsyncClient, seed_clients, tenancy, owner_headers):
        await seed_clients(2)
        await seed_clients(3, company_id=tenancy.other_company.id)

        response = await client.get(API, headers=owner_headers)

        assert response.json()["pagination"]["total"] == 2

    async def test_empty_results(self, client: AsyncClient, tenancy, owner_headers):
        response = await client.get(API, headers=owner_headers)

        data = response.json()
        assert data["data"] == []
        assert data["pagination"]["total"] == 0
        assert data["pagination"]["total_pages"] == 0
        assert data["pagination"]["has_more"] is False

    @pytest.mark.parametrize("params", [{"limit": 150}, {"limit": 0}, {"page": 0}])
    async def test_invalid_parameters(self, client: AsyncClient, tenancy, owner_headers, api, params):
        response = await client.get(API, params=params, headers=owner_headers)

        api.assert_error(response, 422, "VAL_REQUEST_INVALID")
