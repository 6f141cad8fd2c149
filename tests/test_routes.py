"""
HTTP tests for organization, role, permission and user routes.

Requests go through the real application with ``get_db`` bound to the
test session.
"""
from datetime import timedelta

import pytest

from app.features.permissions.models import DataScope


@pytest.fixture
def headers(admin, auth_headers):
    return auth_headers(admin)


class TestPublicRoutes:
    @pytest.mark.asyncio
    async def test_health(self, async_client):
        response = await async_client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    @pytest.mark.asyncio
    async def test_root(self, async_client):
        response = await async_client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "online"


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_missing_token(self, async_client):
        response = await async_client.get("/organizations/tree")
        assert response.status_code in (401, 403)

    @pytest.mark.asyncio
    async def test_expired_token(self, async_client, admin, auth_headers):
        response = await async_client.get(
            "/organizations/tree", headers=auth_headers(admin, expires_in=timedelta(minutes=-1))
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_me(self, async_client, admin, headers):
        response = await async_client.get("/users/me", headers=headers)
        assert response.status_code == 200
        body = response.json()
        assert body["user"]["id"] == admin.id
        assert body["data_scope"] == "ALL"
        assert "org:create" in body["permissions"]

    @pytest.mark.asyncio
    async def test_missing_permission(self, async_client, make_org, make_role, make_user, auth_headers):
        role = await make_role("viewer", DataScope.ALL, ["org:read"])
        user = await make_user("viewer", await make_org("ROOT"), [role])

        response = await async_client.post(
            "/organizations", json={"name": "Team", "code": "TEAM"}, headers=auth_headers(user)
        )
        assert response.status_code == 403
        assert "org:create" in response.json()["detail"]


class TestOrganizationRoutes:
    @pytest.mark.asyncio
    async def test_create_move_and_tree(self, async_client, admin, headers):
        root_id = admin.org_id

        response = await async_client.post(
            "/organizations", json={"name": "Team", "code": "TEAM", "parent_id": root_id}, headers=headers
        )
        assert response.status_code == 201
        team = response.json()
        assert team["path"] == f"/{root_id}/{team['id']}/"
        assert team["level"] == 1

        response = await async_client.post(
            "/organizations", json={"name": "Squad", "code": "SQUAD", "parent_id": team["id"]}, headers=headers
        )
        squad = response.json()

        response = await async_client.post(f"/organizations/{team['id']}/move", json={"parent_id": None}, headers=headers)
        assert response.status_code == 200
        assert response.json()["path"] == f"/{team['id']}/"

        response = await async_client.get(f"/organizations/{squad['id']}", headers=headers)
        assert response.json()["path"] == f"/{team['id']}/{squad['id']}/"
        assert response.json()["level"] == 1

        response = await async_client.get("/organizations/tree", headers=headers)
        assert response.status_code == 200
        roots = response.json()
        assert {node["id"] for node in roots} == {root_id, team["id"]}
        moved = next(node for node in roots if node["id"] == team["id"])
        assert [child["id"] for child in moved["children"]] == [squad["id"]]

    @pytest.mark.asyncio
    async def test_error_statuses(self, async_client, admin, headers, make_org, make_user):
        root_id = admin.org_id
        team = await make_org("TEAM", admin.organization)

        response = await async_client.post(f"/organizations/{root_id}/move", json={"parent_id": root_id}, headers=headers)
        assert response.status_code == 409

        response = await async_client.post(f"/organizations/{root_id}/move", json={"parent_id": team.id}, headers=headers)
        assert response.status_code == 409

        response = await async_client.get("/organizations/nope", headers=headers)
        assert response.status_code == 404

        response = await async_client.post("/organizations", json={"name": "Dup", "code": "TEAM"}, headers=headers)
        assert response.status_code == 409

        response = await async_client.delete(f"/organizations/{root_id}", headers=headers)
        assert response.status_code == 412

        await make_user("lead", team)
        response = await async_client.delete(f"/organizations/{team.id}", headers=headers)
        assert response.status_code == 412
        assert "users" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_validation_error_shape(self, async_client, headers):
        response = await async_client.post("/organizations", json={"name": "", "code": "X"}, headers=headers)
        assert response.status_code == 400
        assert "name" in response.json()

    @pytest.mark.asyncio
    async def test_update_and_delete(self, async_client, admin, headers):
        response = await async_client.post(
            "/organizations", json={"name": "Ops", "code": "OPS", "parent_id": admin.org_id}, headers=headers
        )
        ops = response.json()

        response = await async_client.patch(f"/organizations/{ops['id']}", json={"name": "Operations"}, headers=headers)
        assert response.status_code == 200
        assert response.json()["name"] == "Operations"
        assert response.json()["code"] == "OPS"

        response = await async_client.delete(f"/organizations/{ops['id']}", headers=headers)
        assert response.status_code == 204
        response = await async_client.get(f"/organizations/{ops['id']}", headers=headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_rebuild_requires_all_scope(self, async_client, headers, make_org, make_role, make_user, auth_headers):
        response = await async_client.post("/organizations/rebuild-paths", headers=headers)
        assert response.status_code == 200
        assert response.json() == {"rewritten": 0}

        role = await make_role("tree_admin", DataScope.ORG_TREE, ["system:settings"])
        user = await make_user("tree_admin", await make_org("OTHER"), [role])
        response = await async_client.post("/organizations/rebuild-paths", headers=auth_headers(user))
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_org_tree_user_sees_only_subtree(self, async_client, admin, make_org, make_role, make_user, auth_headers):
        root = admin.organization
        team = await make_org("TEAM", root)
        other = await make_org("OTHER", root)
        role = await make_role("team_admin", DataScope.ORG_TREE, ["org:read", "org:update"])
        lead = await make_user("lead", team, [role])
        headers = auth_headers(lead)

        response = await async_client.get("/organizations/tree", headers=headers)
        assert [node["id"] for node in response.json()] == [team.id]

        response = await async_client.get(f"/organizations/{other.id}", headers=headers)
        assert response.status_code == 403

        response = await async_client.post(f"/organizations/{team.id}/move", json={"parent_id": other.id}, headers=headers)
        assert response.status_code == 403


class TestRoleRoutes:
    @pytest.mark.asyncio
    async def test_role_lifecycle(self, async_client, headers):
        response = await async_client.post(
            "/roles",
            json={"name": "auditor", "data_scope": "ORG", "permission_codes": ["audit:read"]},
            headers=headers,
        )
        assert response.status_code == 201
        role = response.json()
        assert role["permission_codes"] == ["audit:read"]
        assert role["is_system"] is False

        response = await async_client.get("/roles", headers=headers)
        assert {r["name"] for r in response.json()} == {"super_admin", "auditor"}

        response = await async_client.patch(f"/roles/{role['id']}", json={"data_scope": "ORG_TREE"}, headers=headers)
        assert response.status_code == 200
        assert response.json()["data_scope"] == "ORG_TREE"

        response = await async_client.delete(f"/roles/{role['id']}", headers=headers)
        assert response.status_code == 204

    @pytest.mark.asyncio
    async def test_role_errors(self, async_client, admin, headers):
        response = await async_client.post(
            "/roles", json={"name": "broken", "permission_codes": ["nope:never"]}, headers=headers
        )
        assert response.status_code == 400
        assert "nope:never" in response.json()["detail"]

        system_role_id = admin.roles[0].id
        response = await async_client.patch(f"/roles/{system_role_id}", json={"name": "renamed"}, headers=headers)
        assert response.status_code == 409

        response = await async_client.delete(f"/roles/{system_role_id}", headers=headers)
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_permission_catalog(self, async_client, headers):
        response = await async_client.get("/permissions", headers=headers)
        assert response.status_code == 200
        modules = {group["module"]: group["permissions"] for group in response.json()}
        assert "org:create" in {p["code"] for p in modules["org"]}


class TestUserRoutes:
    @pytest.mark.asyncio
    async def test_list_filtered_by_scope(self, async_client, admin, make_org, make_role, make_user, auth_headers):
        root = admin.organization
        team = await make_org("TEAM", root)
        squad = await make_org("SQUAD", team)
        tree_role = await make_role("team_admin", DataScope.ORG_TREE, ["user:read"])
        self_role = await make_role("member", DataScope.SELF, ["user:read"])
        lead = await make_user("lead", team, [tree_role])
        dev = await make_user("dev", squad, [self_role])

        response = await async_client.get("/users", headers=auth_headers(admin))
        assert [u["username"] for u in response.json()] == ["admin", "dev", "lead"]

        response = await async_client.get("/users", headers=auth_headers(lead))
        assert [u["username"] for u in response.json()] == ["dev", "lead"]

        response = await async_client.get("/users", headers=auth_headers(dev))
        assert [u["username"] for u in response.json()] == ["dev"]
