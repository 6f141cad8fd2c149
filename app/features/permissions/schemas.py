"""
Pydantic schemas for roles, permissions and the request principal.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator

from app.features.permissions.models import DataScope


# ============================================================================
# Principal
# ============================================================================

class Principal(BaseModel):
    """
    Authorization context of the current request.

    Built from the user's organization and roles on every request (see
    ``app.features.users.dependencies.resolve_principal``) and never cached.
    ``data_scope`` keeps unrecognized values as plain strings so the scope
    resolver can apply its restrictive fallback to them.
    """
    id: str
    org_id: str
    org_path: str
    permissions: frozenset[str] = frozenset()
    data_scope: DataScope | str = DataScope.SELF

    model_config = ConfigDict(frozen=True)

    @field_validator("data_scope", mode="before")
    @classmethod
    def known_scope_as_enum(cls, v):
        try:
            return DataScope(v)
        except ValueError:
            return v

    def has_permissions(self, *codes: str) -> bool:
        return all(code in self.permissions for code in codes)


# ============================================================================
# Permission Schemas
# ============================================================================

class PermissionResponse(BaseModel):
    """A permission code from the catalog."""
    code: str
    module: str
    description: str


class PermissionModuleResponse(BaseModel):
    """Catalog entries of one module."""
    module: str
    permissions: list[PermissionResponse]


# ============================================================================
# Role Schemas
# ============================================================================

class RoleBase(BaseModel):
    """Base role schema."""
    name: str = Field(..., min_length=1, max_length=50, description="Unique role name")
    description: Optional[str] = Field(None, max_length=1000, description="Role description")
    data_scope: DataScope = Field(DataScope.SELF, description="Data scope granted to holders of the role")


class RoleCreate(RoleBase):
    """Schema for creating a new role."""
    permission_codes: list[str] = Field(default_factory=list, description="Permission codes from the catalog")

    @field_validator("name")
    @classmethod
    def name_alphanumeric_underscore(cls, v: str) -> str:
        """Validate role name format."""
        if not v.replace("_", "").replace("-", "").isalnum():
            raise ValueError("Role name must contain only alphanumeric characters, underscores, and hyphens")
        return v


class RoleUpdate(BaseModel):
    """Schema for updating a role. Omitted fields are left unchanged."""
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    description: Optional[str] = Field(None, max_length=1000)
    data_scope: Optional[DataScope] = None
    permission_codes: Optional[list[str]] = None


class RoleResponse(RoleBase):
    """Schema for role response."""
    id: str
    is_system: bool
    permission_codes: list[str] = Field(default_factory=list)
    user_count: int | None = Field(None, description="Number of users holding the role")
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
