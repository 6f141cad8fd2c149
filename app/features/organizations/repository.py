"""
Persistence access for organizations.

The organization table is mutated only through ``OrganizationTree``; the
scope resolver uses the read methods here.
"""
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.organizations.models import Organization
from app.features.users.models import User


class OrganizationRepository:
    """Async data access for ``Organization`` rows over one session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_by_id(self, org_id: str) -> Organization | None:
        result = await self.session.execute(
            select(Organization).where(Organization.id == org_id)
        )
        return result.scalar_one_or_none()

    async def find_many(self, *criteria: Any, order_by: tuple = ()) -> list[Organization]:
        stmt = select(Organization).where(*criteria)
        if order_by:
            stmt = stmt.order_by(*order_by)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_subtree(self, path: str, exclude_id: str | None = None) -> list[Organization]:
        """Every node whose path starts with ``path``, shallowest first."""
        criteria = [Organization.path.startswith(path, autoescape=True)]
        if exclude_id is not None:
            criteria.append(Organization.id != exclude_id)
        return await self.find_many(*criteria, order_by=(Organization.level,))

    async def find_ids(self, *criteria: Any) -> set[str]:
        result = await self.session.execute(select(Organization.id).where(*criteria))
        return set(result.scalars().all())

    async def count(self, *criteria: Any) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(Organization).where(*criteria)
        )
        return result.scalar_one()

    async def count_dependents(self, org_id: str) -> int:
        """Users attached to the organization."""
        result = await self.session.execute(
            select(func.count()).select_from(User).where(User.org_id == org_id)
        )
        return result.scalar_one()

    async def code_exists(self, code: str, exclude_id: str | None = None) -> bool:
        criteria = [Organization.code == code]
        if exclude_id is not None:
            criteria.append(Organization.id != exclude_id)
        return await self.count(*criteria) > 0

    async def create(self, **values: Any) -> Organization:
        """Insert a row and flush so the generated id is available."""
        organization = Organization(**values)
        self.session.add(organization)
        await self.session.flush()
        return organization

    async def update(self, organization: Organization, **values: Any) -> Organization:
        for field, value in values.items():
            setattr(organization, field, value)
        return organization

    async def delete(self, organization: Organization) -> None:
        await self.session.delete(organization)

    async def refresh(self, organization: Organization) -> Organization:
        await self.session.refresh(organization)
        return organization

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """
        Atomic unit of work.

        Everything written inside the block, plus the reads the session
        already made in its current transaction, commits together. Any
        failure, cancellation included, rolls the whole unit back.
        """
        try:
            yield self.session
            await self.session.commit()
        except BaseException:
            await self.session.rollback()
            raise
