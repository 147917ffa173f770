"""
Unit Tests for Client Custom Fields.

Value validation is pure; the service tests mock the repositories.
"""

import json
from unittest.mock import AsyncMock, patch

import pytest

from accounting.backend.core.exceptions import ValidationError
from accounting.backend.models.client import ClientFieldDefinition
from accounting.backend.models.enums import CustomFieldType, UserRole
from accounting.backend.schemas.client import FieldDefinitionCreate
from accounting.backend.services.client_fields import ClientFieldService, validate_field_value


def definition(field_type: CustomFieldType, required: bool = False, options=None) -> ClientFieldDefinition:
    return ClientFieldDefinition(
        id="def-1",
        company_id="company-1",
        name="field",
        label="Field",
        field_type=field_type,
        is_required=required,
        enum_values=options,
    )


class TestValidateFieldValue:
    def test_empty_optional_value_becomes_none(self):
        assert validate_field_value(definition(CustomFieldType.TEXT), "   ") is None

    def test_empty_required_value_is_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_field_value(definition(CustomFieldType.TEXT, required=True), None)

        assert exc_info.value.details["reason"] == "value is required"

    def test_text_is_stripped(self):
        assert validate_field_value(definition(CustomFieldType.TEXT), "  abc ") == "abc"

    def test_number(self):
        assert validate_field_value(definition(CustomFieldType.NUMBER), "12.5") == "12.5"
        with pytest.raises(ValidationError):
            validate_field_value(definition(CustomFieldType.NUMBER), "twelve")

    def test_date_is_normalized(self):
        assert validate_field_value(definition(CustomFieldType.DATE), "2024-03-01") == "2024-03-01"
        with pytest.raises(ValidationError):
            validate_field_value(definition(CustomFieldType.DATE), "01.03.2024")

    @pytest.mark.parametrize(("raw", "expected"), [("Yes", "true"), ("1", "true"), ("no", "false")])
    def test_boolean_spellings(self, raw, expected):
        assert validate_field_value(definition(CustomFieldType.BOOLEAN), raw) == expected

    def test_enum_must_be_an_option(self):
        field = definition(CustomFieldType.ENUM, options=["small", "large"])

        assert validate_field_value(field, "small") == "small"
        with pytest.raises(ValidationError):
            validate_field_value(field, "medium")

    def test_multiselect_drops_duplicates(self):
        field = definition(CustomFieldType.MULTISELECT, options=["a", "b", "c"])

        result = validate_field_value(field, '["b", "a", "b"]')

        assert json.loads(result) == ["b", "a"]

    def test_multiselect_rejects_unknown_option(self):
        field = definition(CustomFieldType.MULTISELECT, options=["a"])

        with pytest.raises(ValidationError):
            validate_field_value(field, '["a", "z"]')

    def test_multiselect_requires_json_list(self):
        field = definition(CustomFieldType.MULTISELECT, options=["a"])

        with pytest.raises(ValidationError):
            validate_field_value(field, "a")

    def test_email_is_lowercased(self):
        assert validate_field_value(definition(CustomFieldType.EMAIL), "Anna@Biuro.PL") == "anna@biuro.pl"
        with pytest.raises(ValidationError):
            validate_field_value(definition(CustomFieldType.EMAIL), "not-an-email")

    def test_phone_and_url(self):
        assert validate_field_value(definition(CustomFieldType.PHONE), "+48 600 100 200")
        assert validate_field_value(definition(CustomFieldType.URL), "https://biuro.pl")
        with pytest.raises(ValidationError):
            validate_field_value(definition(CustomFieldType.URL), "ftp//nope")


class TestClientFieldServiceCreate:
    @pytest.fixture
    def service(self):
        return ClientFieldService(AsyncMock())

    async def test_duplicate_name_is_rejected(self, service, make_user):
        # Arrange
        owner = make_user(UserRole.COMPANY_OWNER)
        data = FieldDefinitionCreate(name="pkd", label="PKD", field_type=CustomFieldType.TEXT)

        with patch.object(service.tenant, "get_effective_company_id", AsyncMock(return_value="company-1")), \
                patch.object(service.repo, "name_taken", AsyncMock(return_value=True)), \
                patch.object(service.repo, "create", AsyncMock()) as mock_create:
            # Act / Assert
            with pytest.raises(ValidationError):
                await service.create_definition(owner, data)

        mock_create.assert_not_called()

    async def test_enum_without_options_is_rejected(self, service, make_user):
        owner = make_user(UserRole.COMPANY_OWNER)
        data = FieldDefinitionCreate(name="size", label="Size", field_type=CustomFieldType.ENUM)

        with patch.object(service.tenant, "get_effective_company_id", AsyncMock(return_value="company-1")), \
                patch.object(service.repo, "name_taken", AsyncMock(return_value=False)):
            with pytest.raises(ValidationError):
                await service.create_definition(owner, data)
