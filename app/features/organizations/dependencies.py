"""
Organization-related dependency injection functions.
"""
from typing import Annotated
from fastapi import Depends

from app.features.organizations.repository import OrganizationRepository
from app.features.organizations.service import OrganizationTree
from app.features.permissions.authorization import AuthorizationFacade
from app.features.permissions.dependencies import get_authorization, get_organization_repository


async def get_organization_tree(
    repository: Annotated[OrganizationRepository, Depends(get_organization_repository)],
    authorization: Annotated[AuthorizationFacade, Depends(get_authorization)]
) -> OrganizationTree:
    """
    Organization tree service bound to the request's session.

    The repository dependency is cached per request, so the service and the
    scope resolver behind ``authorization`` share one session.
    """
    return OrganizationTree(repository, authorization)
