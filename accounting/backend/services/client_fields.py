"""
Client Custom Field Service.

Company-defined client attributes and their per-client values. Values are
stored as text; `validate_field_value` checks and normalizes them per
field type before anything is written.
"""

import json
import re
from datetime import date, datetime

import pydantic
from pydantic import AnyHttpUrl, EmailStr, TypeAdapter
from sqlalchemy.ext.asyncio import AsyncSession

from accounting.backend.core.exceptions import NotFoundError, ValidationError
from accounting.backend.models.client import ClientCustomFieldValue, ClientFieldDefinition
from accounting.backend.models.enums import CustomFieldType
from accounting.backend.models.user import User
from accounting.backend.repositories.client import (
    ClientCustomFieldValueRepository,
    ClientFieldDefinitionRepository,
    ClientRepository,
)
from accounting.backend.schemas.client import (
    CustomFieldValueItem,
    FieldDefinitionCreate,
    FieldDefinitionUpdate,
)
from accounting.backend.services.base import BaseService
from accounting.backend.services.tenant import TenantService

OPTION_TYPES = frozenset({CustomFieldType.ENUM, CustomFieldType.MULTISELECT})
MAX_TEXT_LENGTH = 10000
PHONE_PATTERN = re.compile(r"^\+?[0-9 ()\-]{6,20}$")
TRUE_VALUES = frozenset({"true", "1", "yes"})
FALSE_VALUES = frozenset({"false", "0", "no"})

_email_adapter = TypeAdapter(EmailStr)
_url_adapter = TypeAdapter(AnyHttpUrl)


def _invalid(definition: ClientFieldDefinition, reason: str) -> ValidationError:
    return ValidationError(
        f"Invalid value for field '{definition.label}'",
        details={"field": definition.name, "reason": reason},
    )


def validate_field_value(definition: ClientFieldDefinition, value: str | None) -> str | None:
    """
    Validate a raw value against its field definition.

    Returns:
        The normalized value to store (None for an empty optional field)

    Raises:
        ValidationError: If the value does not fit the field type
    """
    if value is None or not value.strip():
        if definition.is_required:
            raise _invalid(definition, "value is required")
        return None

    value = value.strip()
    field_type = definition.field_type

    if field_type == CustomFieldType.TEXT:
        if len(value) > MAX_TEXT_LENGTH:
            raise _invalid(definition, f"maximum length is {MAX_TEXT_LENGTH}")
        return value

    if field_type == CustomFieldType.NUMBER:
        try:
            float(value)
        except ValueError:
            raise _invalid(definition, "expected a number")
        return value

    if field_type == CustomFieldType.DATE:
        try:
            return date.fromisoformat(value).isoformat()
        except ValueError:
            raise _invalid(definition, "expected a date (YYYY-MM-DD)")

    if field_type == CustomFieldType.DATETIME:
        try:
            return datetime.fromisoformat(value).isoformat()
        except ValueError:
            raise _invalid(definition, "expected an ISO 8601 datetime")

    if field_type == CustomFieldType.BOOLEAN:
        lowered = value.lower()
        if lowered in TRUE_VALUES:
            return "true"
        if lowered in FALSE_VALUES:
            return "false"
        raise _invalid(definition, "expected true or false")

    options = definition.enum_values or []
    if field_type == CustomFieldType.ENUM:
        if value not in options:
            raise _invalid(definition, f"must be one of {options}")
        return value

    if field_type == CustomFieldType.MULTISELECT:
        try:
            selected = json.loads(value)
        except json.JSONDecodeError:
            raise _invalid(definition, "expected a JSON list of options")
        if not isinstance(selected, list) or not all(isinstance(item, str) for item in selected):
            raise _invalid(definition, "expected a JSON list of options")
        unknown = [item for item in selected if item not in options]
        if unknown:
            raise _invalid(definition, f"unknown options {unknown}")
        return json.dumps(list(dict.fromkeys(selected)))

    if field_type == CustomFieldType.EMAIL:
        try:
            return _email_adapter.validate_python(value).lower()
        except pydantic.ValidationError:
            raise _invalid(definition, "expected an email address")

    if field_type == CustomFieldType.PHONE:
        if not PHONE_PATTERN.match(value):
            raise _invalid(definition, "expected a phone number")
        return value

    if field_type == CustomFieldType.URL:
        try:
            _url_adapter.validate_python(value)
        except pydantic.ValidationError:
            raise _invalid(definition, "expected an http(s) URL")
        return value

    return value


def _check_options(field_type: CustomFieldType, enum_values: list[str] | None) -> None:
    if field_type in OPTION_TYPES and not enum_values:
        raise ValidationError(
            f"Fields of type {field_type.value} need at least one option",
            details={"field_type": field_type.value},
        )


class ClientFieldService(BaseService):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = ClientFieldDefinitionRepository(session)
        self.values = ClientCustomFieldValueRepository(session)
        self.clients = ClientRepository(session)
        self.tenant = TenantService(session)

    # Definitions

    async def list_definitions(self, user: User) -> list[ClientFieldDefinition]:
        company_id = await self.tenant.get_effective_company_id(user)
        return await self.repo.list_active(company_id)

    async def get_definition(self, user: User, definition_id: str) -> ClientFieldDefinition:
        company_id = await self.tenant.get_effective_company_id(user)
        return await self.repo.get_active_in_company(definition_id, company_id)

    async def create_definition(self, user: User, data: FieldDefinitionCreate) -> ClientFieldDefinition:
        company_id = await self.tenant.get_effective_company_id(user)
        if await self.repo.name_taken(company_id, data.name):
            raise ValidationError(f"Field '{data.name}' already exists", details={"name": data.name})
        _check_options(data.field_type, data.enum_values)

        definition = await self._execute_db_operation(
            "create field definition",
            self.repo.create(**data.model_dump(), company_id=company_id, created_by_id=user.id),
        )
        self._log_operation("Field definition created", definition_id=definition.id, name=definition.name)
        return definition

    async def update_definition(
        self,
        user: User,
        definition_id: str,
        data: FieldDefinitionUpdate,
    ) -> ClientFieldDefinition:
        """
        Raises:
            ValidationError: Duplicate name, missing options, or a type change
                while values exist
        """
        definition = await self.get_definition(user, definition_id)
        changes = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None or k == "enum_values"}

        if "name" in changes and changes["name"] != definition.name:
            if await self.repo.name_taken(definition.company_id, changes["name"], exclude_id=definition.id):
                raise ValidationError(f"Field '{changes['name']}' already exists")

        new_type = changes.get("field_type", definition.field_type)
        if new_type != definition.field_type and await self.values.count_for_definition(definition.id):
            raise ValidationError("Cannot change the type of a field that already has values")
        _check_options(new_type, changes.get("enum_values", definition.enum_values))

        if not changes:
            return definition
        return await self.repo.update_instance(definition, **changes)

    async def delete_definition(self, user: User, definition_id: str) -> None:
        """Soft delete the definition and its values."""
        definition = await self.get_definition(user, definition_id)
        for value in await self.values.list_for_definition(definition.id):
            value.is_active = False
        await self.repo.update_instance(definition, is_active=False)
        self._log_operation("Field definition deactivated", definition_id=definition.id)

    async def hard_delete_definition(self, user: User, definition_id: str) -> None:
        company_id = await self.tenant.get_effective_company_id(user)
        definition = await self.repo.get_in_company(definition_id, company_id)
        await self.values.delete_for_definition(definition.id)
        await self.repo.delete_instance(definition)
        self._log_operation("Field definition deleted permanently", definition_id=definition_id)

    # Values

    async def get_client_values(self, user: User, client_id: str) -> list[ClientCustomFieldValue]:
        company_id = await self.tenant.get_effective_company_id(user)
        client = await self.clients.get_in_company(client_id, company_id)
        return await self.values.list_active_for_client(client.id)

    async def _upsert(self, client_id: str, definition_id: str, value: str | None) -> ClientCustomFieldValue:
        existing = await self.values.get_for(client_id, definition_id)
        if existing is None:
            return await self.values.create(
                client_id=client_id, field_definition_id=definition_id, value=value,
            )
        return await self.values.update_instance(existing, value=value, is_active=True)

    async def set_value(
        self,
        user: User,
        client_id: str,
        definition_id: str,
        value: str | None,
    ) -> ClientCustomFieldValue:
        company_id = await self.tenant.get_effective_company_id(user)
        client = await self.clients.get_in_company(client_id, company_id)
        definition = await self.repo.get_active_in_company(definition_id, company_id)
        normalized = validate_field_value(definition, value)
        return await self._execute_db_operation(
            "set custom field value", self._upsert(client.id, definition.id, normalized),
        )

    async def set_values(
        self,
        user: User,
        client_id: str,
        items: list[CustomFieldValueItem],
    ) -> list[ClientCustomFieldValue]:
        """
        Set several values at once.

        Every value is validated before the first write, so one invalid
        value leaves all of them unchanged.
        """
        company_id = await self.tenant.get_effective_company_id(user)
        client = await self.clients.get_in_company(client_id, company_id)

        validated: list[tuple[str, str | None]] = []
        for item in items:
            definition = await self.repo.get_active_in_company(item.field_definition_id, company_id)
            validated.append((definition.id, validate_field_value(definition, item.value)))

        results = []
        for definition_id, value in validated:
            results.append(await self._upsert(client.id, definition_id, value))
        self._log_operation("Custom field values set", client_id=client.id, count=len(results))
        return results

    async def remove_value(self, user: User, client_id: str, definition_id: str) -> None:
        company_id = await self.tenant.get_effective_company_id(user)
        client = await self.clients.get_in_company(client_id, company_id)
        existing = await self.values.get_for(client.id, definition_id)
        if existing is None or not existing.is_active:
            raise NotFoundError("Custom field value not found", details={"field_definition_id": definition_id})
        await self.values.update_instance(existing, is_active=False)
