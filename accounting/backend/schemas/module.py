"""
Module and Permission Schemas.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from accounting.backend.models.enums import ModuleSource, PermissionTargetType

SLUG_PATTERN = r"^[a-z0-9]+(-[a-z0-9]+)*$"
VERSION_PATTERN = r"^\d+\.\d+\.\d+$"


class ModuleCreate(BaseModel):
    """Schema for registering a module by hand."""

    slug: str = Field(..., min_length=1, max_length=100, pattern=SLUG_PATTERN, examples=["clients"])
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=5000)
    version: str = Field(default="1.0.0", pattern=VERSION_PATTERN)
    icon: str | None = Field(default=None, max_length=100)
    category: str | None = Field(default=None, max_length=100)
    # None: take the permission set from modules.yaml
    permissions: list[str] | None = Field(default=None, min_length=1)
    default_permissions: list[str] = Field(default_factory=lambda: ["read"])


class ModuleUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=5000)
    version: str | None = Field(default=None, pattern=VERSION_PATTERN)
    icon: str | None = Field(default=None, max_length=100)
    category: str | None = Field(default=None, max_length=100)
    permissions: list[str] | None = Field(default=None, min_length=1)
    default_permissions: list[str] | None = None
    is_active: bool | None = None


class ModuleResponse(BaseModel):
    id: str
    slug: str
    name: str
    description: str | None
    version: str
    icon: str | None
    category: str | None
    permissions: list[str]
    default_permissions: list[str]
    is_active: bool
    source: ModuleSource
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CompanyModuleAccessResponse(BaseModel):
    id: str
    company_id: str
    module_id: str
    is_enabled: bool
    module: ModuleResponse

    model_config = ConfigDict(from_attributes=True)


class UserModulePermissionResponse(BaseModel):
    id: str
    user_id: str
    module_id: str
    permissions: list[str]
    granted_by_id: str | None
    module: ModuleResponse

    model_config = ConfigDict(from_attributes=True)


class ManagePermissionRequest(BaseModel):
    """Grant or update a module for a company (ADMIN) or an employee (COMPANY_OWNER)."""

    target_type: PermissionTargetType
    target_id: str = Field(..., description="Company id or employee user id")
    module_slug: str = Field(..., min_length=1)
    permissions: list[str] | None = Field(
        default=None,
        description="Employee permissions; the module defaults when omitted from a grant",
    )


class RevokePermissionRequest(BaseModel):
    target_type: PermissionTargetType
    target_id: str
    module_slug: str = Field(..., min_length=1)


class OrphanCleanupEntry(BaseModel):
    company_id: str
    company_name: str
    module_id: str
    module_name: str
    deleted_permissions: int


class OrphanCleanupResult(BaseModel):
    deleted_count: int
    companies: list[OrphanCleanupEntry]


class ModuleManifest(BaseModel):
    """A validated module.json file."""

    slug: str = Field(..., min_length=1, pattern=SLUG_PATTERN)
    name: str = Field(..., min_length=1)
    version: str = Field(..., pattern=VERSION_PATTERN)
    description: str | None = None
    is_active: bool = Field(default=True, alias="isActive")
    permissions: list[str] = Field(..., min_length=1)
    default_permissions: list[str] = Field(default_factory=list, alias="defaultPermissions")
    icon: str | None = None
    category: str | None = None

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class DiscoveryStats(BaseModel):
    discovered_count: int
    modules_list: list[str]


class SyncResult(BaseModel):
    created: int
    updated: int
