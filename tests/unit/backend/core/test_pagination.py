"""
Unit Tests for Pagination Utilities.
"""

import pytest
from pydantic import BaseModel

from accounting.backend.core.pagination import (
    PaginationParams,
    create_paginated_response,
    get_pagination_params,
    total_pages,
)


class Item(BaseModel):
    id: str
    name: str


class TestPaginationParams:
    def test_first_page_has_zero_offset(self):
        assert PaginationParams(page=1, limit=20).offset == 0

    def test_offset_grows_with_page(self):
        assert PaginationParams(page=3, limit=25).offset == 50

    def test_dependency_builds_params(self):
        params = get_pagination_params(page=2, limit=10)

        assert params == PaginationParams(page=2, limit=10)


class TestTotalPages:
    @pytest.mark.parametrize(
        ("total", "limit", "expected"),
        [(0, 20, 0), (1, 20, 1), (20, 20, 1), (21, 20, 2), (5, 0, 0)],
    )
    def test_total_pages(self, total, limit, expected):
        assert total_pages(total, limit) == expected


class TestCreatePaginatedResponse:
    def test_creates_valid_response_structure(self):
        # Arrange
        items = [{"id": "1", "name": "Kowalski"}, {"id": "2", "name": "Nowak"}]

        # Act
        response = create_paginated_response(
            items=items, item_schema=Item, total=2, limit=20, offset=0, request_id="req-1",
        )

        # Assert
        assert response["success"] is True
        assert response["data"] == items
        assert response["pagination"] == {
            "total": 2,
            "limit": 20,
            "page": 1,
            "total_pages": 1,
            "has_more": False,
        }
        assert response["metadata"]["request_id"] == "req-1"

    def test_has_more_on_partial_page(self):
        items = [{"id": str(i), "name": f"Client {i}"} for i in range(10)]

        response = create_paginated_response(items=items, item_schema=Item, total=35, limit=10, offset=10)

        assert response["pagination"]["page"] == 2
        assert response["pagination"]["total_pages"] == 4
        assert response["pagination"]["has_more"] is True

    def test_last_page_has_no_more(self):
        items = [{"id": "31", "name": "Last"}]

        response = create_paginated_response(items=items, item_schema=Item, total=31, limit=10, offset=30)

        assert response["pagination"]["has_more"] is False

    def test_empty_list(self):
        response = create_paginated_response(items=[], item_schema=Item, total=0)

        assert response["data"] == []
        assert response["pagination"]["total_pages"] == 0
