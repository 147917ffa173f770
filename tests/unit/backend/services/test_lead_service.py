"""
Unit Tests for Lead Service.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from accounting.backend.core.exceptions import ConflictError
from accounting.backend.models.enums import LeadStatus, UserRole
from accounting.backend.schemas.lead import ConvertLeadRequest
from accounting.backend.services.leads import LeadService, conversion_rate


class TestConversionRate:
    def test_nothing_closed(self):
        assert conversion_rate(0, 0) == 0.0

    def test_rounded_percentage(self):
        assert conversion_rate(1, 2) == 33.33
        assert conversion_rate(3, 1) == 75.0


class TestLeadService:
    @pytest.fixture
    def service(self):
        return LeadService(AsyncMock())

    async def test_lead_with_offers_cannot_be_deleted(self, service, make_user):
        # Arrange
        lead = MagicMock(id="lead-1")

        with patch.object(service, "find_one", AsyncMock(return_value=lead)), \
                patch.object(service.offers, "count_for_lead", AsyncMock(return_value=2)), \
                patch.object(service.repo, "delete_instance", AsyncMock()) as mock_delete:
            # Act / Assert
            with pytest.raises(ConflictError):
                await service.remove(make_user(UserRole.COMPANY_OWNER), "lead-1")

        mock_delete.assert_not_called()

    async def test_lead_without_offers_is_deleted(self, service, make_user):
        lead = MagicMock(id="lead-1")

        with patch.object(service, "find_one", AsyncMock(return_value=lead)), \
                patch.object(service.offers, "count_for_lead", AsyncMock(return_value=0)), \
                patch.object(service.repo, "delete_instance", AsyncMock()) as mock_delete:
            await service.remove(make_user(UserRole.COMPANY_OWNER), "lead-1")

        mock_delete.assert_awaited_once_with(lead)

    async def test_converted_lead_cannot_be_updated(self, service, make_user):
        lead = MagicMock(id="lead-1", status=LeadStatus.CONVERTED)

        with patch.object(service, "find_one", AsyncMock(return_value=lead)):
            with pytest.raises(ConflictError):
                await service.update(make_user(UserRole.COMPANY_OWNER), "lead-1", MagicMock())

    async def test_convert_creates_client_from_lead_data(self, service, make_user):
        # Arrange
        owner = make_user(UserRole.COMPANY_OWNER)
        lead = MagicMock(
            id="lead-1",
            status=LeadStatus.QUALIFIED,
            nip="5252248481",
            email="kontakt@firma.pl",
            phone="+48 600 000 000",
            notes="Met at a fair",
        )
        lead.name = "Firma Sp. z o.o."
        client = MagicMock(id="client-1")

        with patch.object(service, "find_one", AsyncMock(return_value=lead)), \
                patch.object(service.clients, "create", AsyncMock(return_value=client)) as mock_create, \
                patch.object(service.repo, "update_instance", AsyncMock(side_effect=lambda obj, **kw: obj)) as mock_update:
            # Act
            _, created = await service.convert_to_client(owner, "lead-1", ConvertLeadRequest())

        # Assert
        assert created is client
        client_data = mock_create.call_args.args[1]
        assert client_data.name == "Firma Sp. z o.o."
        assert client_data.nip == "5252248481"
        assert mock_update.call_args.kwargs["status"] == LeadStatus.CONVERTED
        assert mock_update.call_args.kwargs["converted_to_client_id"] == "client-1"

    async def test_converting_twice_is_a_conflict(self, service, make_user):
        lead = MagicMock(id="lead-1", status=LeadStatus.CONVERTED)

        with patch.object(service, "find_one", AsyncMock(return_value=lead)):
            with pytest.raises(ConflictError):
                await service.convert_to_client(make_user(UserRole.COMPANY_OWNER), "lead-1", ConvertLeadRequest())
