"""
Organization model for the admin backend.

Organizations form a tree. ``parent_id`` is the authoritative edge; ``path``
and ``level`` are derived from it and kept in sync by the organization
service (see ``app.features.organizations.service``).
"""
from sqlalchemy import String, ForeignKey, Integer, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, ULID_LENGTH, generate_ulid


class Organization(Base, TimestampMixin):
    """
    A node in the organization tree.

    - ``path`` is ``/<ancestor ids>/<id>/``, e.g. ``/01H.../01J.../``.
    - ``level`` is 0 for roots, parent level + 1 otherwise.
    - ``sort_order`` orders siblings; ties are broken by name.
    """
    __tablename__ = "organizations"
    __table_args__ = (
        CheckConstraint("parent_id IS NULL OR parent_id <> id", name="ck_organizations_no_self_parent"),
    )

    # Primary key using ULID
    id: Mapped[str] = mapped_column(String(ULID_LENGTH), primary_key=True, default=generate_ulid)

    name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)

    # Deleting a parent with children is refused by the service, never cascaded
    parent_id: Mapped[str | None] = mapped_column(
        String(ULID_LENGTH),
        ForeignKey("organizations.id"),
        nullable=True,
        index=True
    )

    # Materialized path, rewritten on create and move
    path: Mapped[str] = mapped_column(String(1024), nullable=False, default="", index=True)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, code={self.code!r}, path={self.path!r})>"
