"""
Permission checking dependencies for RBAC with data scopes.

Implements:
- Permission guards for route protection
- Wiring of the scope resolver and authorization facade per request
"""
from typing import Annotated
from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.organizations.repository import OrganizationRepository
from app.features.permissions.authorization import AuthorizationFacade
from app.features.permissions.models import DataScope
from app.features.permissions.schemas import Principal
from app.features.permissions.scopes import ScopeResolver
from app.features.permissions.service import RoleService
from app.features.users.dependencies import get_current_principal
from app.utils import get_logger


log = get_logger(__name__)


# ============================================================================
# Services
# ============================================================================

def get_organization_repository(
    db: Annotated[AsyncSession, Depends(get_db)]
) -> OrganizationRepository:
    return OrganizationRepository(db)


def get_scope_resolver(
    repository: Annotated[OrganizationRepository, Depends(get_organization_repository)]
) -> ScopeResolver:
    return ScopeResolver(repository)


def get_authorization(
    resolver: Annotated[ScopeResolver, Depends(get_scope_resolver)]
) -> AuthorizationFacade:
    """Authorization facade for entity services and routes."""
    return AuthorizationFacade(resolver)


def get_role_service(
    db: Annotated[AsyncSession, Depends(get_db)]
) -> RoleService:
    return RoleService(db)


# ============================================================================
# Guards
# ============================================================================

def require_permissions(*codes: str):
    """
    FastAPI dependency to require every listed permission code.

    Usage:
        @router.post("/organizations")
        async def create_organization(
            principal: Principal = Depends(require_permissions("org:create"))
        ):
            # Principal holds org:create
            pass

    Returns:
        Dependency function that returns the current principal if it holds
        all codes

    Raises:
        HTTPException: 403 naming the missing codes
    """
    async def permission_dependency(
        principal: Annotated[Principal, Depends(get_current_principal)]
    ) -> Principal:
        missing = [code for code in codes if code not in principal.permissions]
        if missing:
            log.debug("Principal %s missing permissions %s", principal.id, missing)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied: requires {', '.join(missing)}"
            )
        return principal

    return permission_dependency


def require_scope(scope: DataScope):
    """FastAPI dependency to require an exact effective data scope."""
    async def scope_dependency(
        principal: Annotated[Principal, Depends(get_current_principal)]
    ) -> Principal:
        if principal.data_scope != scope:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied: requires {scope.value} data scope"
            )
        return principal

    return scope_dependency
