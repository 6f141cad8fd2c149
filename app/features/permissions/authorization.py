"""
Single entry point for data-scope authorization.

Entity services receive an ``AuthorizationFacade`` (see
``app.features.permissions.dependencies.get_authorization``) and call it:

- ``filter_for`` before any list query,
- ``assert_can_access_org`` before touching a specific organization,
- ``assert_can_mutate_org`` before moving or deleting an organization.
"""
from app.core.exceptions import ForbiddenError
from app.features.permissions.models import DataScope
from app.features.permissions.schemas import Principal
from app.features.permissions.scopes import ScopePredicate, ScopeResolver
from app.utils import get_logger


log = get_logger(__name__)


class AuthorizationFacade:
    def __init__(self, resolver: ScopeResolver):
        self.resolver = resolver

    def filter_for(
        self,
        principal: Principal,
        entity_org_field: str = "org_id",
        entity_owner_field: str | None = None,
        entity_org_path_field: str = "organization.path",
    ) -> ScopePredicate:
        return self.resolver.accessible_predicate(
            principal,
            org_field=entity_org_field,
            owner_field=entity_owner_field,
            org_path_field=entity_org_path_field,
        )

    async def assert_can_access_org(self, principal: Principal, org_id: str) -> None:
        """
        Raise ForbiddenError unless the principal's scope covers ``org_id``.

        ALL scope passes without a lookup, including for organizations that
        do not exist yet.
        """
        if principal.data_scope == DataScope.ALL:
            return
        if not await self.resolver.can_access_org(principal, org_id):
            log.debug("Principal %s (%s) denied organization %s", principal.id, principal.data_scope, org_id)
            raise ForbiddenError("You do not have access to this organization")

    async def assert_can_mutate_org(
        self,
        principal: Principal,
        org_id: str,
        destination_parent_id: str | None = None,
    ) -> None:
        """Access check for the node and, for a move, its destination parent."""
        await self.assert_can_access_org(principal, org_id)
        if destination_parent_id is not None and destination_parent_id != org_id:
            await self.assert_can_access_org(principal, destination_parent_id)
