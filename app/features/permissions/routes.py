"""
Permission management API routes.

Provides endpoints for managing roles and browsing the permission catalog.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, status

from app.features.permissions.catalog import Permission, permissions_by_module
from app.features.permissions.dependencies import get_role_service, require_permissions
from app.features.permissions.schemas import (
    Principal,
    PermissionResponse,
    PermissionModuleResponse,
    RoleCreate,
    RoleUpdate,
    RoleResponse,
)
from app.features.permissions.service import RoleService
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


# ============================================================================
# Permission Catalog
# ============================================================================

@router.get("/permissions", response_model=list[PermissionModuleResponse])
async def list_permissions(
    _principal: Annotated[Principal, Depends(require_permissions(Permission.ROLE_READ))]
):
    """List the permission catalog grouped by module."""
    return [
        PermissionModuleResponse(
            module=module,
            permissions=[PermissionResponse(**info._asdict()) for info in infos],
        )
        for module, infos in permissions_by_module().items()
    ]


# ============================================================================
# Role Endpoints
# ============================================================================

@router.get("/roles", response_model=list[RoleResponse])
async def list_roles(
    _principal: Annotated[Principal, Depends(require_permissions(Permission.ROLE_READ))],
    service: Annotated[RoleService, Depends(get_role_service)]
):
    """List roles, newest first, with permission codes and holder counts."""
    return await service.list_all()


@router.get("/roles/{role_id}", response_model=RoleResponse)
async def get_role(
    role_id: str,
    _principal: Annotated[Principal, Depends(require_permissions(Permission.ROLE_READ))],
    service: Annotated[RoleService, Depends(get_role_service)]
):
    """Get a specific role with its permission codes."""
    return await service.get(role_id)


@router.post("/roles", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    role: RoleCreate,
    principal: Annotated[Principal, Depends(require_permissions(Permission.ROLE_CREATE))],
    service: Annotated[RoleService, Depends(get_role_service)]
):
    """Create a new role."""
    log.info("Principal %s creating role %s", principal.id, role.name)
    return await service.create(**role.model_dump())


@router.patch("/roles/{role_id}", response_model=RoleResponse)
async def update_role(
    role_id: str,
    role_update: RoleUpdate,
    principal: Annotated[Principal, Depends(require_permissions(Permission.ROLE_UPDATE))],
    service: Annotated[RoleService, Depends(get_role_service)]
):
    """Update a role. System roles keep their name."""
    log.info("Principal %s updating role %s", principal.id, role_id)
    return await service.update(role_id, **role_update.model_dump(exclude_unset=True))


@router.delete("/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_role(
    role_id: str,
    principal: Annotated[Principal, Depends(require_permissions(Permission.ROLE_DELETE))],
    service: Annotated[RoleService, Depends(get_role_service)]
):
    """Delete a role that is neither a system role nor assigned to any user."""
    log.info("Principal %s deleting role %s", principal.id, role_id)
    await service.remove(role_id)
    return None
