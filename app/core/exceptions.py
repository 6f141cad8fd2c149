"""Domain errors for the admin backend.

Services raise these instead of HTTP exceptions so they can be used outside
a request. ``app.main`` maps every ``AdminError`` onto its ``status_code``.
"""


class AdminError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFoundError(AdminError):
    """A referenced organization, parent or role does not exist."""

    status_code = 404


class BadRequestError(AdminError):
    """The request is malformed for the current state."""

    status_code = 400


class ScopeConfigurationError(BadRequestError):
    """SELF scope was requested for an entity without an owner field."""


class ConflictError(BadRequestError):
    """Structural violation: self-parent, cycle, duplicate code or name.

    Always raised before anything is written.
    """

    status_code = 409


class ForbiddenError(AdminError):
    """The principal's data scope does not cover the target organization."""

    status_code = 403


class PreconditionFailedError(AdminError):
    """Deletion blocked by something that still references the target."""

    status_code = 412


class HasChildrenError(PreconditionFailedError):
    """The organization still has child organizations."""


class HasDependentsError(PreconditionFailedError):
    """Users (or other entities) are still attached to the organization."""
