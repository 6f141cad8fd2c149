"""Tests for role management."""
import pytest

from app.core.exceptions import BadRequestError, ConflictError, NotFoundError, PreconditionFailedError
from app.features.permissions.catalog import PERMISSION_CODES, unknown_codes, permissions_by_module
from app.features.permissions.models import DataScope
from app.features.permissions.service import RoleService


@pytest.fixture
def roles(async_db_session):
    return RoleService(async_db_session)


class TestCatalog:
    def test_unknown_codes_keeps_input_order(self):
        assert unknown_codes(["org:read", "zzz:do", "aaa:do"]) == ["zzz:do", "aaa:do"]

    def test_grouping_covers_catalog(self):
        grouped = permissions_by_module()
        assert set(grouped) == {"user", "org", "role", "audit", "system"}
        assert {info.code for infos in grouped.values() for info in infos} == PERMISSION_CODES


class TestRoleService:
    @pytest.mark.asyncio
    async def test_create_and_list(self, roles):
        created = await roles.create(
            "auditor",
            description="Reads audit logs",
            data_scope=DataScope.ORG,
            permission_codes=["org:read", "audit:read", "audit:read"],
        )
        assert created.is_system is False
        assert created.data_scope == DataScope.ORG
        assert created.permission_codes == ["audit:read", "org:read"]
        assert created.user_count == 0

        listed = await roles.list_all()
        assert [role.name for role in listed] == ["auditor"]

    @pytest.mark.asyncio
    async def test_unknown_codes_rejected(self, roles):
        with pytest.raises(BadRequestError, match="nope:never"):
            await roles.create("broken", permission_codes=["org:read", "nope:never"])

    @pytest.mark.asyncio
    async def test_duplicate_name(self, roles, make_role):
        await make_role("auditor")
        with pytest.raises(ConflictError):
            await roles.create("auditor")

    @pytest.mark.asyncio
    async def test_update_replaces_codes(self, roles, make_role):
        role = await make_role("auditor", DataScope.ORG, ["audit:read", "org:read"])

        updated = await roles.update(role.id, permission_codes=["org:read", "user:read"], data_scope=DataScope.ORG_TREE)
        assert updated.permission_codes == ["org:read", "user:read"]
        assert updated.data_scope == DataScope.ORG_TREE
        assert updated.name == "auditor"

    @pytest.mark.asyncio
    async def test_system_role_rename_and_delete(self, roles, make_role):
        role = await make_role("super_admin", DataScope.ALL, is_system=True)

        with pytest.raises(ConflictError):
            await roles.update(role.id, name="root")
        with pytest.raises(ConflictError):
            await roles.remove(role.id)

        updated = await roles.update(role.id, description="Everything")
        assert updated.description == "Everything"

    @pytest.mark.asyncio
    async def test_assigned_role_cannot_be_removed(self, roles, make_org, make_role, make_user):
        role = await make_role("auditor")
        await make_user("alice", await make_org("ROOT"), [role])

        assert (await roles.get(role.id)).user_count == 1
        with pytest.raises(PreconditionFailedError):
            await roles.remove(role.id)

    @pytest.mark.asyncio
    async def test_remove(self, roles, make_role):
        role = await make_role("temporary")
        await roles.remove(role.id)
        with pytest.raises(NotFoundError):
            await roles.get(role.id)

    @pytest.mark.asyncio
    async def test_codes_ordered_after_reload(self, roles, async_db_session):
        created = await roles.create("editor", permission_codes=["user:read", "org:update", "audit:read"])

        async_db_session.expire_all()
        assert (await roles.get(created.id)).permission_codes == ["audit:read", "org:update", "user:read"]

        updated = await roles.update(created.id, permission_codes=["role:read", "org:update"])
        assert updated.permission_codes == ["org:update", "role:read"]
