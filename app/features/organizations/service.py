"""
Organization tree maintenance.

``parent_id`` is the authoritative edge; ``path`` and ``level`` are derived
and rewritten here on create and move. Every structural check runs before
anything is written, and each mutation commits as one transaction.
"""
import locale
from collections import defaultdict, deque
from collections.abc import Iterable, Sequence
from typing import Any

from app.core.exceptions import ConflictError, HasChildrenError, HasDependentsError, NotFoundError
from app.features.organizations.models import Organization
from app.features.organizations.paths import child_path, is_descendant_or_self, rebase_path, root_path
from app.features.organizations.repository import OrganizationRepository
from app.features.organizations.schemas import OrganizationTreeNode
from app.features.permissions.authorization import AuthorizationFacade
from app.features.permissions.schemas import Principal
from app.utils import get_logger


log = get_logger(__name__)


# ============================================================================
# Pure helpers
# ============================================================================

def plan_subtree_rewrite(
    descendants: Iterable[Any],
    old_prefix: str,
    new_prefix: str,
    level_offset: int,
) -> list[tuple[str, str, int]]:
    """
    New ``(id, path, level)`` for every descendant of a moved node.

    ``descendants`` must be the nodes whose path starts with ``old_prefix``,
    excluding the moved node itself.
    """
    return [
        (node.id, rebase_path(node.path, old_prefix, new_prefix), node.level + level_offset)
        for node in descendants
    ]


def compute_paths(organizations: Sequence[Any]) -> dict[str, tuple[str, int]]:
    """
    Expected ``(path, level)`` per id, derived top-down from ``parent_id``.

    Raises:
        ConflictError: some nodes cannot be reached from a root (their
            parent is missing or the parent chain loops)
    """
    children: dict[str | None, list[Any]] = defaultdict(list)
    for org in organizations:
        children[org.parent_id].append(org)

    expected: dict[str, tuple[str, int]] = {}
    queue = deque((org, root_path(org.id), 0) for org in children[None])
    while queue:
        org, path, level = queue.popleft()
        expected[org.id] = (path, level)
        for child in children[org.id]:
            queue.append((child, child_path(path, child.id), level + 1))

    unreachable = sorted(org.id for org in organizations if org.id not in expected)
    if unreachable:
        raise ConflictError(
            f"Organizations not reachable from a root: {', '.join(unreachable)}"
        )
    return expected


def _sibling_key(node: OrganizationTreeNode) -> tuple[int, str, str]:
    # Case-folded name first; the raw name only breaks ties
    return node.sort_order, locale.strxfrm(node.name.casefold()), locale.strxfrm(node.name)


def build_tree(organizations: Iterable[Any]) -> list[OrganizationTreeNode]:
    """
    Nest organizations under their parents.

    A node whose parent is not in the input becomes a root. Siblings are
    sorted by sort_order, then case-insensitively by name using the process
    collation locale (set from ``COLLATION_LOCALE`` at startup).
    """
    nodes: dict[str, OrganizationTreeNode] = {}
    order: list[tuple[str, str | None]] = []
    for org in organizations:
        nodes[org.id] = OrganizationTreeNode.model_validate(org)
        order.append((org.id, org.parent_id))

    roots: list[OrganizationTreeNode] = []
    for org_id, parent_id in order:
        node = nodes[org_id]
        if parent_id is not None and parent_id in nodes:
            nodes[parent_id].children.append(node)
        else:
            roots.append(node)

    def sort_nodes(siblings: list[OrganizationTreeNode]) -> None:
        siblings.sort(key=_sibling_key)
        for sibling in siblings:
            sort_nodes(sibling.children)

    sort_nodes(roots)
    return roots


# ============================================================================
# Service
# ============================================================================

class OrganizationTree:
    """
    Owns organization records.

    Args:
        repository: Persistence for the organization table
        authorization: Scope checks for the acting principal
    """

    def __init__(self, repository: OrganizationRepository, authorization: AuthorizationFacade):
        self.repository = repository
        self.authorization = authorization

    async def _get_or_404(self, org_id: str, detail: str = "Organization not found") -> Organization:
        organization = await self.repository.find_by_id(org_id)
        if organization is None:
            raise NotFoundError(detail)
        return organization

    async def _ensure_code_available(self, code: str, exclude_id: str | None = None) -> None:
        if await self.repository.code_exists(code, exclude_id=exclude_id):
            raise ConflictError("Organization with this code already exists")

    async def get(self, principal: Principal, org_id: str) -> Organization:
        organization = await self._get_or_404(org_id)
        await self.authorization.assert_can_access_org(principal, org_id)
        return organization

    async def create(
        self,
        principal: Principal,
        name: str,
        code: str,
        parent_id: str | None = None,
        sort_order: int = 0,
    ) -> Organization:
        """
        Create an organization, as a root when ``parent_id`` is omitted.

        The path needs the generated id, so it is written after the insert
        flushes, inside the same transaction.

        Raises:
            NotFoundError: parent does not exist
            ForbiddenError: parent is outside the principal's scope
            ConflictError: code already in use
        """
        parent = None
        level = 0
        if parent_id is not None:
            parent = await self._get_or_404(parent_id, "Parent organization not found")
            await self.authorization.assert_can_access_org(principal, parent_id)
            level = parent.level + 1
        await self._ensure_code_available(code)

        async with self.repository.transaction():
            organization = await self.repository.create(
                name=name,
                code=code,
                parent_id=parent_id,
                path="",
                level=level,
                sort_order=sort_order,
            )
            path = child_path(parent.path, organization.id) if parent else root_path(organization.id)
            await self.repository.update(organization, path=path)

        log.info("Organization %s created at %s by %s", organization.code, organization.path, principal.id)
        return await self.repository.refresh(organization)

    async def update(
        self,
        principal: Principal,
        org_id: str,
        name: str | None = None,
        code: str | None = None,
        sort_order: int | None = None,
    ) -> Organization:
        """Change name, code or sort order. Fields left as None are unchanged."""
        organization = await self._get_or_404(org_id)
        await self.authorization.assert_can_mutate_org(principal, org_id)
        if code is not None and code != organization.code:
            await self._ensure_code_available(code, exclude_id=org_id)

        values = {
            field: value
            for field, value in (("name", name), ("code", code), ("sort_order", sort_order))
            if value is not None
        }
        async with self.repository.transaction():
            await self.repository.update(organization, **values)

        log.info("Organization %s updated by %s: %s", org_id, principal.id, sorted(values))
        return await self.repository.refresh(organization)

    async def move(self, principal: Principal, org_id: str, new_parent_id: str | None) -> Organization:
        """
        Re-parent an organization and rewrite its subtree.

        The node and every descendant get the new path prefix and a level
        shifted by the same offset, all in one commit.

        Raises:
            NotFoundError: node or new parent does not exist
            ForbiddenError: node or new parent is outside the principal's scope
            ConflictError: new parent is the node itself or one of its descendants
        """
        organization = await self._get_or_404(org_id)
        parent = None
        if new_parent_id is not None:
            parent = await self._get_or_404(new_parent_id, "Parent organization not found")
        await self.authorization.assert_can_mutate_org(principal, org_id, new_parent_id)

        if new_parent_id == org_id:
            raise ConflictError("An organization cannot be its own parent")
        if parent is not None and is_descendant_or_self(parent.path, organization.path):
            raise ConflictError("Cannot move an organization into its own subtree")

        old_path = organization.path
        new_path = child_path(parent.path, org_id) if parent else root_path(org_id)
        new_level = parent.level + 1 if parent else 0
        level_offset = new_level - organization.level

        async with self.repository.transaction():
            rewrites: list[tuple[str, str, int]] = []
            if new_path != old_path:
                descendants = await self.repository.find_subtree(old_path, exclude_id=org_id)
                rewrites = plan_subtree_rewrite(descendants, old_path, new_path, level_offset)
                by_id = {node.id: node for node in descendants}
                for node_id, path, level in rewrites:
                    await self.repository.update(by_id[node_id], path=path, level=level)
            await self.repository.update(
                organization,
                parent_id=new_parent_id,
                path=new_path,
                level=new_level,
            )

        log.info(
            "Organization %s moved %s -> %s by %s (%d descendants rewritten)",
            org_id, old_path, new_path, principal.id, len(rewrites),
        )
        return await self.repository.refresh(organization)

    async def remove(self, principal: Principal, org_id: str) -> None:
        """
        Delete a leaf organization with no users attached.

        Raises:
            NotFoundError: organization does not exist
            ForbiddenError: organization is outside the principal's scope
            HasChildrenError: child organizations exist
            HasDependentsError: users are attached
        """
        organization = await self._get_or_404(org_id)
        await self.authorization.assert_can_mutate_org(principal, org_id)

        if await self.repository.count(Organization.parent_id == org_id) > 0:
            raise HasChildrenError("Organization has child organizations and cannot be deleted")
        if await self.repository.count_dependents(org_id) > 0:
            raise HasDependentsError("Organization has users attached and cannot be deleted")

        async with self.repository.transaction():
            await self.repository.delete(organization)
        log.info("Organization %s deleted by %s", org_id, principal.id)

    async def list_accessible(self, principal: Principal) -> list[OrganizationTreeNode]:
        organizations = await self.authorization.resolver.visible_organizations(principal)
        return build_tree(organizations)

    async def rebuild_paths(self) -> int:
        """
        Recompute every path and level from ``parent_id``.

        Repair tool for drift. Nothing is written when some node cannot be
        reached from a root.

        Returns:
            Number of organizations rewritten
        """
        organizations = await self.repository.find_many()
        expected = compute_paths(organizations)
        drifted = [org for org in organizations if (org.path, org.level) != expected[org.id]]

        async with self.repository.transaction():
            for org in drifted:
                path, level = expected[org.id]
                await self.repository.update(org, path=path, level=level)

        if drifted:
            log.warning("Rebuilt paths for %d organizations", len(drifted))
        return len(drifted)
