"""
FastAPI dependencies for authentication and the request principal.
"""
from typing import Annotated
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.permissions.schemas import Principal
from app.features.permissions.scopes import effective_scope
from app.features.users.models import User
from app.features.users.auth import verify_jwt_token
from app.utils import get_logger


log = get_logger(__name__)

security = HTTPBearer()


async def get_user_by_id(db: AsyncSession, user_id: str) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


def build_principal(user: User) -> Principal:
    """
    Principal for a loaded user.

    Permissions are the union over the user's roles; the data scope is the
    least restrictive of the role scopes, SELF when the user has none.
    """
    permissions: set[str] = set()
    for role in user.roles:
        permissions.update(role.permission_codes)

    return Principal(
        id=user.id,
        org_id=user.org_id,
        org_path=user.organization.path,
        permissions=frozenset(permissions),
        data_scope=effective_scope(role.data_scope for role in user.roles),
    )


async def resolve_principal(db: AsyncSession, user_id: str) -> Principal:
    """
    Build the principal for ``user_id`` from current roles and organization.

    Raises:
        HTTPException: 401 if the user does not exist, 403 if deactivated
    """
    user = await get_user_by_id(db, user_id)

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown user",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated",
        )

    return build_principal(user)


async def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)]
) -> str:
    payload = verify_jwt_token(credentials.credentials)
    return str(payload["sub"])


async def get_current_principal(
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db)]
) -> Principal:
    """
    Authorization context of the authenticated caller.

    Usage:
        @router.get("/me")
        async def get_me(principal: Principal = Depends(get_current_principal)):
            return principal
    """
    principal = await resolve_principal(db, user_id)
    log.debug("Resolved principal %s scope=%s", principal.id, principal.data_scope)
    return principal


def get_authorization_header(request) -> str:
    """
    Extract authorization header for rate limiting.
    Used with slowapi Limiter.
    """
    auth = request.headers.get("Authorization", "")
    return auth or "anonymous"
