"""
Unit Test Fixtures.

Nothing here touches a database or the network. Users are transient ORM
objects and Redis is a MagicMock.
"""

from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from accounting.backend.models.enums import UserRole
from accounting.backend.models.user import User


@pytest.fixture
def make_user() -> Callable[..., User]:
    """
    Factory for unsaved users. Keyword arguments override any column.

        owner = make_user(UserRole.COMPANY_OWNER, company_id="c-1")
        admin = make_user(UserRole.ADMIN, company_id=None)
    """

    def _make(role: UserRole = UserRole.EMPLOYEE, company_id: str | None = "company-1", **overrides) -> User:
        return User(
            **{
                "id": str(uuid4()),
                "email": f"{role.value.lower()}@example.com",
                "password": "hashed",
                "first_name": "Jan",
                "last_name": "Kowalski",
                "role": role,
                "company_id": company_id,
                "is_active": True,
                **overrides,
            }
        )

    return _make


@pytest.fixture
def mock_redis() -> MagicMock:
    client = MagicMock()
    client.ping = AsyncMock(return_value=True)
    client.aclose = AsyncMock()
    return client
