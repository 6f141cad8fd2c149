"""
Organization feature routes.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, status

from app.features.organizations.dependencies import get_organization_tree
from app.features.organizations.schemas import (
    OrganizationCreate,
    OrganizationUpdate,
    OrganizationMove,
    OrganizationResponse,
    OrganizationTreeNode,
    RebuildPathsResponse,
)
from app.features.organizations.service import OrganizationTree
from app.features.permissions.catalog import Permission
from app.features.permissions.dependencies import require_permissions, require_scope
from app.features.permissions.models import DataScope
from app.features.permissions.schemas import Principal


router = APIRouter(tags=["organizations"])


@router.get("/tree", response_model=list[OrganizationTreeNode])
async def get_organization_tree_view(
    principal: Annotated[Principal, Depends(require_permissions(Permission.ORG_READ))],
    tree: Annotated[OrganizationTree, Depends(get_organization_tree)]
):
    """Organizations visible to the caller, nested under their parents."""
    return await tree.list_accessible(principal)


@router.post("/rebuild-paths", response_model=RebuildPathsResponse)
async def rebuild_organization_paths(
    _principal: Annotated[Principal, Depends(require_permissions(Permission.SYSTEM_SETTINGS))],
    _scope: Annotated[Principal, Depends(require_scope(DataScope.ALL))],
    tree: Annotated[OrganizationTree, Depends(get_organization_tree)]
):
    """Recompute every path and level from the parent links."""
    return RebuildPathsResponse(rewritten=await tree.rebuild_paths())


@router.post("", response_model=OrganizationResponse, status_code=status.HTTP_201_CREATED)
async def create_organization(
    org_data: OrganizationCreate,
    principal: Annotated[Principal, Depends(require_permissions(Permission.ORG_CREATE))],
    tree: Annotated[OrganizationTree, Depends(get_organization_tree)]
):
    """Create an organization under ``parent_id``, or a root when it is omitted."""
    return await tree.create(principal, **org_data.model_dump())


@router.get("/{organization_id}", response_model=OrganizationResponse)
async def get_organization(
    organization_id: str,
    principal: Annotated[Principal, Depends(require_permissions(Permission.ORG_READ))],
    tree: Annotated[OrganizationTree, Depends(get_organization_tree)]
):
    """Get an organization inside the caller's data scope."""
    return await tree.get(principal, organization_id)


@router.patch("/{organization_id}", response_model=OrganizationResponse)
async def update_organization(
    organization_id: str,
    update_data: OrganizationUpdate,
    principal: Annotated[Principal, Depends(require_permissions(Permission.ORG_UPDATE))],
    tree: Annotated[OrganizationTree, Depends(get_organization_tree)]
):
    """Update name, code or sort order."""
    return await tree.update(principal, organization_id, **update_data.model_dump(exclude_unset=True))


@router.post("/{organization_id}/move", response_model=OrganizationResponse)
async def move_organization(
    organization_id: str,
    move_data: OrganizationMove,
    principal: Annotated[Principal, Depends(require_permissions(Permission.ORG_UPDATE))],
    tree: Annotated[OrganizationTree, Depends(get_organization_tree)]
):
    """Re-parent an organization, carrying its whole subtree along."""
    return await tree.move(principal, organization_id, move_data.parent_id)


@router.delete("/{organization_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_organization(
    organization_id: str,
    principal: Annotated[Principal, Depends(require_permissions(Permission.ORG_DELETE))],
    tree: Annotated[OrganizationTree, Depends(get_organization_tree)]
):
    """Delete an organization with no children and no users."""
    await tree.remove(principal, organization_id)
    return None
