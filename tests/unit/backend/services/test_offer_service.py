"""
Unit Tests for Offer Service.

Pricing, numbering and the status workflow are pure functions; the
service tests patch repositories on the instance.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from accounting.backend.core.exceptions import InvalidStatusTransitionError
from accounting.backend.models.enums import OfferStatus, UserRole
from accounting.backend.schemas.offer import ServiceItem, ServiceTerms
from accounting.backend.services.offers import (
    OfferService,
    format_offer_number,
    price_service_terms,
    validate_transition,
)


class TestPricing:
    def test_totals_include_vat(self):
        # Arrange
        terms = ServiceTerms(
            items=[
                ServiceItem(name="Bookkeeping", unit_price=1500, quantity=2),
                ServiceItem(name="Payroll", unit_price=99.99),
            ]
        )

        # Act
        stored, net, gross = price_service_terms(terms, vat_rate=23)

        # Assert
        assert net == 3099.99
        assert gross == 3812.99
        assert [item["net_amount"] for item in stored["items"]] == [3000.0, 99.99]

    def test_zero_vat(self):
        terms = ServiceTerms(items=[ServiceItem(name="Audit", unit_price=100, quantity=1.5)])

        _, net, gross = price_service_terms(terms, vat_rate=0)

        assert net == gross == 150.0

    def test_no_terms_means_zero_totals(self):
        assert price_service_terms(None, 23) == (None, 0.0, 0.0)


class TestOfferNumber:
    def test_sequence_is_zero_padded(self):
        assert format_offer_number(2025, 7) == "OF/2025/0007"
        assert format_offer_number(2025, 12345) == "OF/2025/12345"

    async def test_next_number_continues_the_year_sequence(self):
        service = OfferService(AsyncMock())

        with patch.object(service.repo, "last_sequence_with_prefix", AsyncMock(return_value=41)):
            assert await service._next_number("company-1", 2025) == "OF/2025/0042"

    async def test_sequence_grows_past_four_digits(self):
        service = OfferService(AsyncMock())

        with patch.object(service.repo, "last_sequence_with_prefix", AsyncMock(return_value=9999)):
            assert await service._next_number("company-1", 2025) == "OF/2025/10000"

    async def test_first_number_of_the_year(self):
        service = OfferService(AsyncMock())

        with patch.object(service.repo, "last_sequence_with_prefix", AsyncMock(return_value=None)):
            assert await service._next_number("company-1", 2026) == "OF/2026/0001"


class TestStatusWorkflow:
    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (OfferStatus.DRAFT, OfferStatus.READY),
            (OfferStatus.READY, OfferStatus.SENT),
            (OfferStatus.SENT, OfferStatus.ACCEPTED),
            (OfferStatus.VIEWED, OfferStatus.REJECTED),
            (OfferStatus.CANCELLED, OfferStatus.DRAFT),
        ],
    )
    def test_allowed_transitions(self, current, target):
        validate_transition(current, target)

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (OfferStatus.DRAFT, OfferStatus.ACCEPTED),
            (OfferStatus.ACCEPTED, OfferStatus.DRAFT),
            (OfferStatus.EXPIRED, OfferStatus.SENT),
        ],
    )
    def test_rejected_transitions(self, current, target):
        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            validate_transition(current, target)

        assert exc_info.value.details == {"current_status": current.value, "target_status": target.value}


class TestUpdateStatus:
    async def test_status_change_is_logged_as_activity(self, make_user):
        # Arrange
        service = OfferService(AsyncMock())
        owner = make_user(UserRole.COMPANY_OWNER)
        offer = MagicMock(id="offer-1", status=OfferStatus.SENT)
        updated = MagicMock(id="offer-1", status=OfferStatus.ACCEPTED)

        with patch.object(service, "find_one", AsyncMock(return_value=offer)), \
                patch.object(service.repo, "update_instance", AsyncMock(return_value=updated)), \
                patch.object(service.activities, "create", AsyncMock()) as mock_activity:
            # Act
            result = await service.update_status(owner, "offer-1", OfferStatus.ACCEPTED, reason="signed")

        # Assert
        assert result is updated
        activity_data = mock_activity.call_args.kwargs["activity_data"]
        assert activity_data == {"from": "sent", "to": "accepted", "reason": "signed"}

    async def test_invalid_status_change_writes_nothing(self, make_user):
        service = OfferService(AsyncMock())
        offer = MagicMock(id="offer-1", status=OfferStatus.DRAFT)

        with patch.object(service, "find_one", AsyncMock(return_value=offer)), \
                patch.object(service.repo, "update_instance", AsyncMock()) as mock_update:
            with pytest.raises(InvalidStatusTransitionError):
                await service.update_status(make_user(UserRole.COMPANY_OWNER), "offer-1", OfferStatus.ACCEPTED)

        mock_update.assert_not_called()
