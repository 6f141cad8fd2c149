"""
Pydantic schemas for organization-related requests and responses.
"""
from datetime import datetime
from pydantic import BaseModel, Field


class OrganizationBase(BaseModel):
    """Base organization schema."""
    name: str = Field(..., min_length=1, max_length=100)
    code: str = Field(..., min_length=1, max_length=50, description="Business code, unique across organizations")
    sort_order: int = Field(default=0, ge=0, description="Position among siblings")


class OrganizationCreate(OrganizationBase):
    """Schema for creating an organization. Omit parent_id to create a root."""
    parent_id: str | None = Field(None, description="ID of the parent organization")


class OrganizationUpdate(BaseModel):
    """Schema for updating organization fields. Use the move endpoint to re-parent."""
    name: str | None = Field(None, min_length=1, max_length=100)
    code: str | None = Field(None, min_length=1, max_length=50)
    sort_order: int | None = Field(None, ge=0)


class OrganizationMove(BaseModel):
    """Schema for relocating an organization. A null parent makes it a root."""
    parent_id: str | None = Field(None, description="ID of the new parent organization")


class OrganizationResponse(OrganizationBase):
    """Schema for organization responses."""
    id: str
    parent_id: str | None = None
    path: str
    level: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class OrganizationTreeNode(BaseModel):
    """An organization with its accessible children nested under it."""
    id: str
    name: str
    code: str
    parent_id: str | None = None
    path: str
    level: int
    sort_order: int
    children: list["OrganizationTreeNode"] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class RebuildPathsResponse(BaseModel):
    """Result of a path rebuild."""
    rewritten: int = Field(..., description="Number of organizations whose path or level changed")
