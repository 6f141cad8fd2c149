"""
User feature routes.
"""
from typing import Annotated
from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.permissions.authorization import AuthorizationFacade
from app.features.permissions.catalog import Permission
from app.features.permissions.dependencies import get_authorization, require_permissions
from app.features.permissions.schemas import Principal
from app.features.users.models import User
from app.features.users.schemas import MeResponse, UserPublic, UserResponse
from app.features.users.dependencies import get_current_principal, get_user_by_id


router = APIRouter(tags=["users"])


@router.get("/me", response_model=MeResponse)
async def get_current_user_profile(
    principal: Annotated[Principal, Depends(get_current_principal)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Get current authenticated user's profile and authorization context."""
    user = await get_user_by_id(db, principal.id)
    return MeResponse(
        user=UserResponse.model_validate(user),
        org_path=principal.org_path,
        permissions=sorted(principal.permissions),
        data_scope=principal.data_scope,
    )


@router.get("", response_model=list[UserPublic])
async def list_users(
    principal: Annotated[Principal, Depends(require_permissions(Permission.USER_READ))],
    authorization: Annotated[AuthorizationFacade, Depends(get_authorization)],
    db: Annotated[AsyncSession, Depends(get_db)],
    skip: int = 0,
    limit: int = 50
):
    """List users inside the caller's data scope."""
    scope = authorization.filter_for(principal, entity_org_field="org_id", entity_owner_field="id")
    result = await db.execute(
        select(User)
        .where(scope.to_clause(User))
        .order_by(User.username)
        .offset(skip)
        .limit(limit)
    )
    users = result.scalars().all()
    return users
