"""API Dependencies - Authentication and authorization"""
from typing import Iterable, Optional
from uuid import UUID

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from domain.auth import (
    AuthenticatedIdentity, ADMIN_ONLY, MANAGER_OR_ABOVE, STAFF, RECEPTIONIST_OR_ABOVE
)
from domain.entities import Reservation
from domain.enums import Role
from infrastructure.container import Container

# auto_error off: a missing header must surface as our own Unauthenticated error
bearer_scheme = HTTPBearer(auto_error=False)


def get_container(request: Request) -> Container:
    return request.app.state.container


def _raw_token(credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    return credentials.credentials if credentials else None


def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> Optional[str]:
    return _raw_token(credentials)


async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    container: Container = Depends(get_container)
) -> AuthenticatedIdentity:
    return await container.authentication.authenticate(_raw_token(credentials))


async def get_optional_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    container: Container = Depends(get_container)
) -> Optional[AuthenticatedIdentity]:
    return await container.authentication.authenticate_optional(_raw_token(credentials))


def require_roles(allowed_roles: Iterable[Role]):
    """Dependency factory admitting only the given roles"""
    allowed = frozenset(allowed_roles)

    async def role_checker(
        identity: AuthenticatedIdentity = Depends(get_current_identity),
        container: Container = Depends(get_container)
    ) -> AuthenticatedIdentity:
        container.authorization.require_role(identity, allowed)
        return identity
    return role_checker


require_admin = require_roles(ADMIN_ONLY)
require_manager = require_roles(MANAGER_OR_ABOVE)
require_staff = require_roles(STAFF)
require_receptionist = require_roles(RECEPTIONIST_OR_ABOVE)


async def reservation_access(
    reservation_id: UUID,
    identity: AuthenticatedIdentity = Depends(get_current_identity),
    container: Container = Depends(get_container)
) -> Optional[Reservation]:
    """Staff get None; an owning guest gets the already-loaded reservation"""
    return await container.authorization.require_reservation_access(identity, reservation_id)
