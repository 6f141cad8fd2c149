"""
Role models for organization-scoped RBAC.

A role carries a set of permission codes (see ``catalog``) and a data scope
saying which organizations' data its holders can see:

- ALL: every organization
- ORG_TREE: the holder's organization and everything below it
- ORG: the holder's organization only
- SELF: only records the holder owns
"""
import enum
from datetime import datetime
from sqlalchemy import String, ForeignKey, Table, Column, Text, Boolean, DateTime, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, TimestampMixin, ULID_LENGTH, generate_ulid


class DataScope(str, enum.Enum):
    """Data scope granted by a role, ordered ALL > ORG_TREE > ORG > SELF."""
    ALL = "ALL"
    ORG_TREE = "ORG_TREE"
    ORG = "ORG"
    SELF = "SELF"


# User-Role relationship
user_roles = Table(
    "user_roles",
    Base.metadata,
    Column("user_id", String(ULID_LENGTH), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", String(ULID_LENGTH), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("assigned_at", DateTime(timezone=True), nullable=False, default=datetime.now),
)


class RolePermission(Base):
    """A permission code granted by a role."""
    __tablename__ = "role_permissions"

    role_id: Mapped[str] = mapped_column(
        String(ULID_LENGTH),
        ForeignKey("roles.id", ondelete="CASCADE"),
        primary_key=True
    )
    permission_code: Mapped[str] = mapped_column(String(100), primary_key=True)

    def __repr__(self) -> str:
        return f"<RolePermission(role_id={self.role_id}, code={self.permission_code!r})>"


class Role(Base, TimestampMixin):
    """
    Role model grouping permission codes under one data scope.

    System roles are seeded (see ``scripts/seed_permissions.py``) and can be
    neither renamed nor deleted.
    """
    __tablename__ = "roles"

    # Primary key using ULID
    id: Mapped[str] = mapped_column(String(ULID_LENGTH), primary_key=True, default=generate_ulid)

    # Role definition
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_system: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    data_scope: Mapped[DataScope] = mapped_column(
        SQLEnum(DataScope),
        default=DataScope.SELF,
        nullable=False
    )

    # Relationships
    permissions: Mapped[list["RolePermission"]] = relationship(
        "RolePermission",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="RolePermission.permission_code",
    )

    @property
    def permission_codes(self) -> list[str]:
        return sorted(p.permission_code for p in self.permissions)

    def __repr__(self) -> str:
        return f"<Role(id={self.id}, name={self.name!r}, scope={self.data_scope})>"
