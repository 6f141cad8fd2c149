"""
Role management.

Roles bundle catalog permission codes with a data scope. Seeded system roles
keep their name and cannot be removed.
"""
from collections.abc import Iterable

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import BadRequestError, ConflictError, NotFoundError, PreconditionFailedError
from app.features.permissions.catalog import unknown_codes
from app.features.permissions.models import DataScope, Role, RolePermission, user_roles
from app.features.permissions.schemas import RoleResponse
from app.utils import get_logger


log = get_logger(__name__)


def _validated_codes(codes: Iterable[str]) -> list[str]:
    """Deduplicated codes in input order; BadRequestError names any unknown ones."""
    codes = list(dict.fromkeys(codes))
    unknown = unknown_codes(codes)
    if unknown:
        raise BadRequestError(f"Unknown permission codes: {', '.join(unknown)}")
    return codes


class RoleService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_or_404(self, role_id: str) -> Role:
        result = await self.db.execute(select(Role).where(Role.id == role_id))
        role = result.scalar_one_or_none()
        if role is None:
            raise NotFoundError("Role not found")
        return role

    async def _name_taken(self, name: str, exclude_id: str | None = None) -> bool:
        stmt = select(func.count()).select_from(Role).where(Role.name == name)
        if exclude_id is not None:
            stmt = stmt.where(Role.id != exclude_id)
        return (await self.db.execute(stmt)).scalar_one() > 0

    async def _user_counts(self) -> dict[str, int]:
        result = await self.db.execute(
            select(user_roles.c.role_id, func.count()).group_by(user_roles.c.role_id)
        )
        return {role_id: count for role_id, count in result.all()}

    async def _respond(self, role: Role) -> RoleResponse:
        response = RoleResponse.model_validate(role)
        response.user_count = (await self._user_counts()).get(role.id, 0)
        return response

    async def list_all(self) -> list[RoleResponse]:
        """All roles with their permission codes and holder counts, newest first."""
        result = await self.db.execute(
            select(Role).order_by(Role.created_at.desc(), Role.id.desc())
        )
        counts = await self._user_counts()

        roles = []
        for role in result.scalars().all():
            response = RoleResponse.model_validate(role)
            response.user_count = counts.get(role.id, 0)
            roles.append(response)
        return roles

    async def get(self, role_id: str) -> RoleResponse:
        return await self._respond(await self._get_or_404(role_id))

    async def create(
        self,
        name: str,
        description: str | None = None,
        data_scope: DataScope = DataScope.SELF,
        permission_codes: Iterable[str] = (),
    ) -> RoleResponse:
        """
        Create a non-system role.

        Raises:
            BadRequestError: some permission codes are not in the catalog
            ConflictError: a role with this name exists
        """
        codes = _validated_codes(permission_codes)
        if await self._name_taken(name):
            raise ConflictError("Role with this name already exists")

        role = Role(
            name=name,
            description=description,
            data_scope=data_scope,
            is_system=False,
            permissions=[RolePermission(permission_code=code) for code in codes],
        )
        self.db.add(role)
        await self.db.commit()
        await self.db.refresh(role)

        log.info("Role %s created with scope %s and %d permissions", role.name, role.data_scope.value, len(codes))
        return await self._respond(role)

    async def update(
        self,
        role_id: str,
        name: str | None = None,
        description: str | None = None,
        data_scope: DataScope | None = None,
        permission_codes: Iterable[str] | None = None,
    ) -> RoleResponse:
        """
        Update a role. ``permission_codes``, when given, replaces the whole set.

        Raises:
            NotFoundError: role does not exist
            BadRequestError: some permission codes are not in the catalog
            ConflictError: renaming a system role, or the new name is taken
        """
        role = await self._get_or_404(role_id)

        if name is not None and name != role.name:
            if role.is_system:
                raise ConflictError("System roles cannot be renamed")
            if await self._name_taken(name, exclude_id=role_id):
                raise ConflictError("Role with this name already exists")
            role.name = name

        if permission_codes is not None:
            codes = _validated_codes(permission_codes)
            # Retained codes keep their existing rows
            existing = {p.permission_code: p for p in role.permissions}
            role.permissions = [
                existing.get(code) or RolePermission(permission_code=code)
                for code in codes
            ]

        if description is not None:
            role.description = description
        if data_scope is not None:
            role.data_scope = data_scope

        await self.db.commit()
        await self.db.refresh(role)

        log.info("Role %s updated", role.id)
        return await self._respond(role)

    async def remove(self, role_id: str) -> None:
        """
        Delete a role nobody holds.

        Raises:
            NotFoundError: role does not exist
            ConflictError: role is a system role
            PreconditionFailedError: users still hold the role
        """
        role = await self._get_or_404(role_id)
        if role.is_system:
            raise ConflictError("System roles cannot be deleted")

        holders = (await self._user_counts()).get(role_id, 0)
        if holders:
            raise PreconditionFailedError(f"Role is assigned to {holders} users and cannot be deleted")

        await self.db.delete(role)
        await self.db.commit()
        log.info("Role %s (%s) deleted", role_id, role.name)
