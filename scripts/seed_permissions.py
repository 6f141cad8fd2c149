"""
Seed script to populate the root organization, system roles and an admin.

Run this script after database initialization to create:
- The root organization
- Default system roles with their data scopes
- An admin user holding super_admin in the root organization

Usage:
    python -m scripts.seed_permissions
"""
import asyncio
import os
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db, init_db
from app.features.organizations.models import Organization
from app.features.organizations.paths import root_path
from app.features.permissions.catalog import PERMISSION_CODES, Permission
from app.features.permissions.models import DataScope, Role, RolePermission
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)


ROOT_ORGANIZATION = {"name": "Headquarters", "code": "ROOT"}

DEFAULT_ROLES = {
    "super_admin": {
        "description": "Full access to every organization",
        "data_scope": DataScope.ALL,
        "permissions": "ALL",
    },
    "org_admin": {
        "description": "Manages an organization and everything below it",
        "data_scope": DataScope.ORG_TREE,
        "permissions": [
            Permission.USER_READ, Permission.USER_CREATE, Permission.USER_UPDATE,
            Permission.ORG_READ, Permission.ORG_CREATE, Permission.ORG_UPDATE, Permission.ORG_DELETE,
            Permission.ROLE_READ, Permission.ROLE_ASSIGN,
        ],
    },
    "member": {
        "description": "Sees only records they own",
        "data_scope": DataScope.SELF,
        "permissions": [Permission.ORG_READ],
    },
}

ADMIN_USERNAME = os.environ.get("SEED_ADMIN_USERNAME", "admin")
ADMIN_EMAIL = os.environ.get("SEED_ADMIN_EMAIL", "admin@example.com")


async def seed_root_organization(db: AsyncSession) -> Organization:
    """Create the root organization, or return it if its code is taken."""
    result = await db.execute(
        select(Organization).where(Organization.code == ROOT_ORGANIZATION["code"])
    )
    existing = result.scalar_one_or_none()
    if existing:
        log.debug("Root organization '%s' already exists, skipping", existing.code)
        return existing

    root = Organization(**ROOT_ORGANIZATION, parent_id=None, path="", level=0)
    db.add(root)
    await db.flush()
    root.path = root_path(root.id)
    await db.commit()
    await db.refresh(root)
    log.info("Created root organization %s at %s", root.code, root.path)
    return root


async def seed_roles(db: AsyncSession) -> dict[str, Role]:
    """
    Create default system roles.

    Returns:
        Dictionary mapping role names to Role objects
    """
    log.info("Creating default roles...")
    roles = {}

    for role_name, role_config in DEFAULT_ROLES.items():
        result = await db.execute(select(Role).where(Role.name == role_name))
        existing = result.scalar_one_or_none()

        if existing:
            log.debug("Role '%s' already exists, skipping", role_name)
            roles[role_name] = existing
            continue

        if role_config["permissions"] == "ALL":
            codes = sorted(PERMISSION_CODES)
        else:
            codes = [code.value for code in role_config["permissions"]]

        role = Role(
            name=role_name,
            description=role_config["description"],
            data_scope=role_config["data_scope"],
            is_system=True,
            permissions=[RolePermission(permission_code=code) for code in codes],
        )
        db.add(role)
        roles[role_name] = role
        log.info("Created role '%s' (%s) with %d permissions", role_name, role.data_scope.value, len(codes))

    await db.commit()
    return roles


async def seed_admin(db: AsyncSession, root: Organization, super_admin: Role) -> User:
    result = await db.execute(select(User).where(User.username == ADMIN_USERNAME))
    existing = result.scalar_one_or_none()
    if existing:
        log.debug("User '%s' already exists, skipping", ADMIN_USERNAME)
        return existing

    admin = User(
        username=ADMIN_USERNAME,
        email=ADMIN_EMAIL,
        name="Administrator",
        org_id=root.id,
        roles=[super_admin],
    )
    db.add(admin)
    await db.commit()
    await db.refresh(admin)
    log.info("Created admin user '%s' with id %s", admin.username, admin.id)
    return admin


async def main():
    """Main function to seed the organization tree and roles."""
    log.info("Starting seeding...")

    # Initialize database tables first
    log.info("Initializing database tables...")
    await init_db()

    # Get database session
    async for db in get_db():
        try:
            root = await seed_root_organization(db)
            roles = await seed_roles(db)
            admin = await seed_admin(db, root, roles["super_admin"])

            log.info("Seeding completed successfully!")
            log.info("Issue tokens with sub=%s to act as the admin", admin.id)
            for role_name, role_config in DEFAULT_ROLES.items():
                log.info("  - %s: %s", role_name, role_config["description"])

        except Exception as e:
            log.error("Error seeding: %s", e, exc_info=True)
            await db.rollback()
            raise

        break  # Only use first session


if __name__ == "__main__":
    asyncio.run(main())
