"""
User model with ULID primary keys.
"""
from sqlalchemy import String, Boolean, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, TimestampMixin, ULID_LENGTH, generate_ulid
from app.features.organizations.models import Organization
from app.features.permissions.models import Role


class User(Base, TimestampMixin):
    """
    User model representing an administrator or member account.

    Every user belongs to exactly one organization. That organization's path
    is what ORG_TREE scope is measured from, and attached users block the
    organization from being deleted.
    """
    __tablename__ = "users"

    # Primary key using ULID (Universally Unique Lexicographically Sortable Identifier)
    id: Mapped[str] = mapped_column(String(ULID_LENGTH), primary_key=True, default=generate_ulid)

    # User information
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Status flags
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Owning organization
    org_id: Mapped[str] = mapped_column(
        String(ULID_LENGTH),
        ForeignKey("organizations.id"),
        nullable=False,
        index=True
    )

    # Relationships
    organization: Mapped[Organization] = relationship(
        Organization,
        foreign_keys=[org_id],
        lazy="selectin"
    )

    roles: Mapped[list[Role]] = relationship(
        Role,
        secondary="user_roles",
        lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username={self.username!r})>"
