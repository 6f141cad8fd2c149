"""
Data scope resolution.

Turns a principal's effective data scope into something a caller can apply:

- a declarative ``ScopePredicate`` for row-level filtering,
- an explicit set of accessible organization ids,
- a point-wise "can access organization X" answer.

All three are derived from the same four-way branch on the scope so they
always agree.
"""
import enum
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from functools import reduce
from typing import Any

from sqlalchemy import true
from sqlalchemy.sql.elements import ColumnElement

from app.core.exceptions import ScopeConfigurationError
from app.features.organizations.models import Organization
from app.features.organizations.paths import is_descendant_or_self
from app.features.organizations.repository import OrganizationRepository
from app.features.permissions.models import DataScope
from app.features.permissions.schemas import Principal
from app.utils import get_logger


log = get_logger(__name__)


SCOPE_RANK: dict[DataScope, int] = {
    DataScope.ALL: 4,
    DataScope.ORG_TREE: 3,
    DataScope.ORG: 2,
    DataScope.SELF: 1,
}


def scope_rank(scope: DataScope | str) -> int:
    """Rank of a scope; anything outside the enum ranks below SELF."""
    try:
        return SCOPE_RANK[DataScope(scope)]
    except ValueError:
        return 0


def max_scope(a: DataScope | str, b: DataScope | str) -> DataScope | str:
    """The less restrictive of two scopes. Ties keep ``a``."""
    return b if scope_rank(b) > scope_rank(a) else a


def effective_scope(scopes: Iterable[DataScope | str]) -> DataScope | str:
    """Fold role scopes into one, least restrictive wins. Empty input is SELF."""
    return reduce(max_scope, scopes, DataScope.SELF)


# ============================================================================
# Declarative predicate
# ============================================================================

class PredicateKind(str, enum.Enum):
    UNRESTRICTED = "unrestricted"
    PREFIX = "prefix"
    EQUALS = "equals"


@dataclass(frozen=True)
class ScopePredicate:
    """
    A single-field filter produced by scope resolution.

    ``field`` may be dotted (``organization.path``) to reach through a
    relationship. The predicate can be checked against an in-memory record
    with ``matches`` or compiled for a model with ``to_clause``.
    """
    kind: PredicateKind
    field: str | None = None
    value: str | None = None

    @classmethod
    def unrestricted(cls) -> "ScopePredicate":
        return cls(PredicateKind.UNRESTRICTED)

    @classmethod
    def prefix(cls, field: str, value: str) -> "ScopePredicate":
        return cls(PredicateKind.PREFIX, field, value)

    @classmethod
    def equals(cls, field: str, value: str) -> "ScopePredicate":
        return cls(PredicateKind.EQUALS, field, value)

    @property
    def is_unrestricted(self) -> bool:
        return self.kind is PredicateKind.UNRESTRICTED

    def matches(self, record: Any) -> bool:
        """Evaluate against a mapping or an object with attributes."""
        if self.is_unrestricted:
            return True
        actual = _lookup(record, self.field)
        if actual is None:
            return False
        if self.kind is PredicateKind.PREFIX:
            return is_descendant_or_self(actual, self.value)
        return actual == self.value

    def to_clause(self, model: Any) -> ColumnElement[bool]:
        """
        Compile to a SQLAlchemy WHERE clause for ``model``.

        Dotted fields become ``relationship.has(...)`` on the related model.
        """
        if self.is_unrestricted:
            return true()
        head, _, rest = self.field.partition(".")
        attribute = getattr(model, head)
        if rest:
            related = attribute.property.mapper.class_
            return attribute.has(replace(self, field=rest).to_clause(related))
        if self.kind is PredicateKind.PREFIX:
            return attribute.startswith(self.value, autoescape=True)
        return attribute == self.value


def _lookup(record: Any, field: str) -> Any:
    value = record
    for part in field.split("."):
        if value is None:
            return None
        if isinstance(value, Mapping):
            value = value.get(part)
        else:
            value = getattr(value, part, None)
    return value


# ============================================================================
# Resolver
# ============================================================================

class ScopeResolver:
    """
    Scope decisions for one request.

    Read-only over the organization table; every answer reflects the current
    state of the store.
    """

    def __init__(self, repository: OrganizationRepository):
        self.repository = repository

    def accessible_predicate(
        self,
        principal: Principal,
        org_field: str = "org_id",
        owner_field: str | None = None,
        org_path_field: str = "organization.path",
    ) -> ScopePredicate:
        """
        Row filter for an entity owned by an organization (and optionally a user).

        Args:
            principal: Current principal
            org_field: Entity field holding the organization id
            owner_field: Entity field holding the owning user id, needed for SELF
            org_path_field: Entity field (or dotted relationship path) holding
                the organization's materialized path

        Raises:
            ScopeConfigurationError: SELF scope and no ``owner_field``
        """
        scope = principal.data_scope
        if scope == DataScope.ALL:
            return ScopePredicate.unrestricted()
        if scope == DataScope.ORG_TREE:
            return ScopePredicate.prefix(org_path_field, principal.org_path)
        if scope == DataScope.ORG:
            return ScopePredicate.equals(org_field, principal.org_id)
        if scope == DataScope.SELF:
            if not owner_field:
                raise ScopeConfigurationError("SELF data scope requires an owner field")
            return ScopePredicate.equals(owner_field, principal.id)

        log.warning("Unknown data scope %r for principal %s, restricting", scope, principal.id)
        if owner_field:
            return ScopePredicate.equals(owner_field, principal.id)
        return ScopePredicate.equals(org_field, principal.org_id)

    async def accessible_org_ids(self, principal: Principal) -> set[str]:
        """Organization ids the principal may see. Empty for SELF."""
        scope = principal.data_scope
        if scope == DataScope.ALL:
            return await self.repository.find_ids()
        if scope == DataScope.ORG_TREE:
            return await self.repository.find_ids(
                Organization.path.startswith(principal.org_path, autoescape=True)
            )
        if scope == DataScope.ORG:
            return {principal.org_id}
        if scope == DataScope.SELF:
            return set()

        log.warning("Unknown data scope %r for principal %s, restricting", scope, principal.id)
        return {principal.org_id}

    async def can_access_org(self, principal: Principal, target_org_id: str) -> bool:
        scope = principal.data_scope
        if scope == DataScope.ALL:
            return True
        if scope == DataScope.ORG_TREE:
            target = await self.repository.find_by_id(target_org_id)
            if target is None:
                return False
            return is_descendant_or_self(target.path, principal.org_path)
        if scope == DataScope.ORG:
            return target_org_id == principal.org_id
        if scope == DataScope.SELF:
            # Organization-level access is undefined for SELF
            return False

        log.warning("Unknown data scope %r for principal %s, restricting", scope, principal.id)
        return target_org_id == principal.org_id

    async def visible_organizations(self, principal: Principal) -> list[Organization]:
        """
        Organizations shown in the principal's tree view.

        ORG, SELF and unknown scopes see their own organization so the tree
        is never empty for a user attached to one.
        """
        scope = principal.data_scope
        order_by = (Organization.level, Organization.sort_order, Organization.name)
        if scope == DataScope.ALL:
            return await self.repository.find_many(order_by=order_by)
        if scope == DataScope.ORG_TREE:
            return await self.repository.find_many(
                Organization.path.startswith(principal.org_path, autoescape=True),
                order_by=order_by,
            )
        return await self.repository.find_many(Organization.id == principal.org_id, order_by=order_by)
