"""
Pydantic schemas for user-related responses.
"""
from datetime import datetime
from pydantic import BaseModel

from app.features.permissions.models import DataScope


class UserPublic(BaseModel):
    """User information visible to anyone allowed to list users."""
    id: str
    username: str
    name: str
    org_id: str
    is_active: bool

    model_config = {"from_attributes": True}


class UserResponse(UserPublic):
    """Schema for user responses."""
    email: str
    created_at: datetime
    updated_at: datetime


class MeResponse(BaseModel):
    """The caller's profile together with its resolved authorization context."""
    user: UserResponse
    org_path: str
    permissions: list[str]
    data_scope: DataScope | str
