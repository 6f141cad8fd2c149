"""
Permission codes understood by the backend.

Codes are fixed in code rather than stored: roles reference them by string
and the role service rejects anything not listed here.
"""
import enum
from typing import NamedTuple


class Permission(str, enum.Enum):
    # User management
    USER_READ = "user:read"
    USER_CREATE = "user:create"
    USER_UPDATE = "user:update"
    USER_DELETE = "user:delete"
    USER_RESET_PASSWORD = "user:reset-password"

    # Organization management
    ORG_READ = "org:read"
    ORG_CREATE = "org:create"
    ORG_UPDATE = "org:update"
    ORG_DELETE = "org:delete"

    # Role management
    ROLE_READ = "role:read"
    ROLE_CREATE = "role:create"
    ROLE_UPDATE = "role:update"
    ROLE_DELETE = "role:delete"
    ROLE_ASSIGN = "role:assign"

    # Audit logs
    AUDIT_READ = "audit:read"
    AUDIT_EXPORT = "audit:export"

    # System
    SYSTEM_SETTINGS = "system:settings"


class PermissionModule(str, enum.Enum):
    USER = "user"
    ORG = "org"
    ROLE = "role"
    AUDIT = "audit"
    SYSTEM = "system"


class PermissionInfo(NamedTuple):
    code: str
    module: str
    description: str


PERMISSION_METADATA: list[PermissionInfo] = [
    PermissionInfo(Permission.USER_READ.value, PermissionModule.USER.value, "View users"),
    PermissionInfo(Permission.USER_CREATE.value, PermissionModule.USER.value, "Create users"),
    PermissionInfo(Permission.USER_UPDATE.value, PermissionModule.USER.value, "Update users"),
    PermissionInfo(Permission.USER_DELETE.value, PermissionModule.USER.value, "Delete users"),
    PermissionInfo(Permission.USER_RESET_PASSWORD.value, PermissionModule.USER.value, "Reset user passwords"),

    PermissionInfo(Permission.ORG_READ.value, PermissionModule.ORG.value, "View organizations"),
    PermissionInfo(Permission.ORG_CREATE.value, PermissionModule.ORG.value, "Create organizations"),
    PermissionInfo(Permission.ORG_UPDATE.value, PermissionModule.ORG.value, "Update and move organizations"),
    PermissionInfo(Permission.ORG_DELETE.value, PermissionModule.ORG.value, "Delete organizations"),

    PermissionInfo(Permission.ROLE_READ.value, PermissionModule.ROLE.value, "View roles"),
    PermissionInfo(Permission.ROLE_CREATE.value, PermissionModule.ROLE.value, "Create roles"),
    PermissionInfo(Permission.ROLE_UPDATE.value, PermissionModule.ROLE.value, "Update roles"),
    PermissionInfo(Permission.ROLE_DELETE.value, PermissionModule.ROLE.value, "Delete roles"),
    PermissionInfo(Permission.ROLE_ASSIGN.value, PermissionModule.ROLE.value, "Assign roles to users"),

    PermissionInfo(Permission.AUDIT_READ.value, PermissionModule.AUDIT.value, "View audit logs"),
    PermissionInfo(Permission.AUDIT_EXPORT.value, PermissionModule.AUDIT.value, "Export audit logs"),

    PermissionInfo(Permission.SYSTEM_SETTINGS.value, PermissionModule.SYSTEM.value, "Manage system settings"),
]

PERMISSION_CODES: frozenset[str] = frozenset(p.code for p in PERMISSION_METADATA)


def unknown_codes(codes: list[str]) -> list[str]:
    """Codes that are not in the catalog, in input order."""
    return [code for code in codes if code not in PERMISSION_CODES]


def permissions_by_module() -> dict[str, list[PermissionInfo]]:
    grouped: dict[str, list[PermissionInfo]] = {}
    for info in PERMISSION_METADATA:
        grouped.setdefault(info.module, []).append(info)
    return grouped
