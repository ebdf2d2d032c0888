"""Application Services - Authentication and authorization gates"""
import logging
from datetime import datetime, timedelta
from typing import Iterable, Optional
from uuid import UUID

from pydantic import BaseModel

from domain.auth import AuthenticatedIdentity, User, UserInDB, STAFF
from domain.entities import Reservation
from domain.enums import AuthFailureReason, Role, TokenFailure
from domain.errors import DomainError, Forbidden, NotFound, TokenError, Unauthenticated
from domain.repositories import UserRepository, ReservationRepository, GuestRepository
from application.throttle import LoginThrottle
from infrastructure.locks import KeyedLockManager
from infrastructure.security import Clock, TokenService, utcnow, verify_password
from infrastructure.timeouts import bounded

logger = logging.getLogger(__name__)


class LoginResult(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: User


class TokenValidation(BaseModel):
    user: User
    expires_at: datetime
    expires_in: int


class AuthenticationService:
    """Resolves bearer tokens and credentials to identities"""

    def __init__(
        self,
        users: UserRepository,
        tokens: TokenService,
        throttle: LoginThrottle,
        lockout_threshold: int = 5,
        lockout_duration: timedelta = timedelta(minutes=30),
        store_timeout: float = 5.0,
        clock: Optional[Clock] = None,
        user_locks: Optional[KeyedLockManager] = None
    ):
        self.users = users
        self.tokens = tokens
        self.throttle = throttle
        self.lockout_threshold = lockout_threshold
        self.lockout_duration = lockout_duration
        self.store_timeout = store_timeout
        self.clock = clock or utcnow
        self.user_locks = user_locks or KeyedLockManager(store_timeout, name="account")

    async def authenticate(self, token: Optional[str]) -> AuthenticatedIdentity:
        """Turn a raw bearer token into an identity or raise Unauthenticated.

        The token alone is not enough: the account it names must still
        exist, be active and not be locked at the time of the request.
        """
        if not token:
            raise Unauthenticated(AuthFailureReason.MISSING_TOKEN, "Access token required")

        try:
            claims = self.tokens.verify(token)
        except TokenError as e:
            if e.failure == TokenFailure.EXPIRED:
                logger.warning("Expired access token presented")
                raise Unauthenticated(AuthFailureReason.EXPIRED_TOKEN, "Token expired", token_failure=e.failure)
            logger.warning("Invalid access token presented: %s", e.message)
            raise Unauthenticated(AuthFailureReason.INVALID_TOKEN, "Invalid token", token_failure=e.failure)

        user = await bounded(self.users.find_by_id(claims.subject_id), self.store_timeout, "user lookup")
        if user is None:
            logger.warning("Valid token for unknown user %s", claims.subject_id)
            raise Unauthenticated(AuthFailureReason.UNKNOWN_SUBJECT, "User not found")

        if not user.is_active:
            logger.warning("Inactive user %s attempted access", user.user_id)
            raise Unauthenticated(AuthFailureReason.INACTIVE, "Account inactive")

        if user.is_locked(self.clock()):
            logger.warning("Locked user %s attempted access (locked until %s)", user.user_id, user.locked_until)
            raise Unauthenticated(AuthFailureReason.LOCKED, "Account temporarily locked")

        logger.debug("Authenticated user %s as %s", user.user_id, user.role.value)
        # role is read from the store, so a role change also applies to issued tokens
        return AuthenticatedIdentity(user_id=user.user_id, role=user.role, email=user.email)

    async def authenticate_optional(self, token: Optional[str]) -> Optional[AuthenticatedIdentity]:
        """Like authenticate, but anonymous callers simply get None.

        Any failure to establish an identity, including a slow store, leaves
        the caller anonymous rather than failing the request.
        """
        if not token:
            return None
        try:
            return await self.authenticate(token)
        except Unauthenticated:
            return None
        except DomainError as e:
            logger.warning("Optional authentication failed, continuing anonymously: %s", e.message)
            return None

    async def login(self, credential: str, password: str, client_address: str) -> LoginResult:
        """Check credentials and issue an access token"""
        async with self.throttle.attempt(client_address):
            user = await bounded(self.users.find_by_credential(credential), self.store_timeout, "user lookup")
            if user is None:
                logger.warning("Login with unknown credential from %s", client_address)
                await self.throttle.record_failure(client_address)
                raise Unauthenticated(AuthFailureReason.INVALID_CREDENTIALS, "Invalid credentials")

            async with self.user_locks.hold(user.user_id):
                return await self._login_user(user.user_id, password, client_address)

    async def _login_user(self, user_id: UUID, password: str, client_address: str) -> LoginResult:
        # reloaded under the account lock so the failure count is never stale
        user = await self._get_user(user_id)
        now = self.clock()

        if user.is_locked(now):
            logger.warning("Login attempt on locked account %s from %s", user.user_id, client_address)
            await self.throttle.record_failure(client_address)
            raise Unauthenticated(
                AuthFailureReason.LOCKED,
                "Account temporarily locked after repeated failed logins"
            )

        if not verify_password(password, user.hashed_password):
            user.register_failed_login(now, self.lockout_threshold, self.lockout_duration)
            await bounded(self.users.update(user), self.store_timeout, "user update")
            await self.throttle.record_failure(client_address)
            logger.warning(
                "Wrong password for user %s from %s (%d failed attempts)",
                user.user_id, client_address, user.failed_login_count
            )
            raise Unauthenticated(AuthFailureReason.INVALID_CREDENTIALS, "Invalid credentials")

        if not user.is_active:
            logger.warning("Login attempt on inactive account %s", user.user_id)
            raise Unauthenticated(AuthFailureReason.INACTIVE, "Account inactive. Contact the administrator.")

        user.reset_failed_logins(now)
        await bounded(self.users.update(user), self.store_timeout, "user update")
        logger.info("Login succeeded for user %s (%s) from %s", user.user_id, user.role.value, client_address)
        return self._issue(user)

    async def validate_token(self, token: Optional[str]) -> TokenValidation:
        """Authenticate ``token`` and report whose it is and how long it lives"""
        identity = await self.authenticate(token)
        claims = self.tokens.verify(token)
        remaining = (claims.expires_at - self.clock()).total_seconds()
        return TokenValidation(
            user=await self.get_user(identity.user_id),
            expires_at=claims.expires_at,
            expires_in=max(0, int(remaining))
        )

    async def refresh_token(self, identity: AuthenticatedIdentity) -> LoginResult:
        """Issue a fresh token for an already authenticated caller"""
        user = await self._get_user(identity.user_id)
        logger.info("Token refreshed for user %s", user.user_id)
        return self._issue(user)

    def _issue(self, user: UserInDB) -> LoginResult:
        token = self.tokens.issue(user.user_id, user.role)
        return LoginResult(
            access_token=token,
            expires_at=self.tokens.verify(token).expires_at,
            user=_public(user)
        )

    # ==================== ACCOUNT ADMINISTRATION ====================
    async def unlock_user(self, user_id: UUID) -> User:
        async with self.user_locks.hold(user_id):
            user = await self._get_user(user_id)
            user.unlock()
            await bounded(self.users.update(user), self.store_timeout, "user update")
        logger.info("User %s unlocked", user_id)
        return _public(user)

    async def deactivate_user(self, user_id: UUID) -> User:
        async with self.user_locks.hold(user_id):
            user = await self._get_user(user_id)
            user.deactivate()
            await bounded(self.users.update(user), self.store_timeout, "user update")
        logger.info("User %s deactivated", user_id)
        return _public(user)

    async def change_role(self, user_id: UUID, role: Role) -> User:
        async with self.user_locks.hold(user_id):
            user = await self._get_user(user_id)
            user.assign_role(role)
            await bounded(self.users.update(user), self.store_timeout, "user update")
        logger.info("User %s role changed to %s", user_id, role.value)
        return _public(user)

    async def get_user(self, user_id: UUID) -> User:
        return _public(await self._get_user(user_id))

    async def _get_user(self, user_id: UUID) -> UserInDB:
        user = await bounded(self.users.find_by_id(user_id), self.store_timeout, "user lookup")
        if user is None:
            raise NotFound("User not found")
        return user


def _public(user: UserInDB) -> User:
    return User(**user.model_dump(exclude={"hashed_password"}))


class AuthorizationService:
    """Role-group and ownership checks for authenticated identities"""

    def __init__(
        self,
        reservations: ReservationRepository,
        guests: GuestRepository,
        store_timeout: float = 5.0
    ):
        self.reservations = reservations
        self.guests = guests
        self.store_timeout = store_timeout

    @staticmethod
    def require_role(identity: Optional[AuthenticatedIdentity], allowed_roles: Iterable[Role]) -> None:
        if identity is None:
            raise Unauthenticated(AuthFailureReason.NOT_AUTHENTICATED, "User not authenticated")
        allowed = frozenset(allowed_roles)
        if identity.role not in allowed:
            logger.warning(
                "Access denied for user %s with role %s (requires one of %s)",
                identity.user_id, identity.role.value, sorted(r.value for r in allowed)
            )
            raise Forbidden("Insufficient permissions to access this resource")
        logger.debug("Role check passed for user %s", identity.user_id)

    @staticmethod
    def require_ownership_or_staff(identity: AuthenticatedIdentity, target_owner_id: UUID) -> None:
        if identity.user_id == target_owner_id or identity.role in STAFF:
            return
        logger.warning("User %s denied access to data of user %s", identity.user_id, target_owner_id)
        raise Forbidden("You do not have permission to access this data")

    async def require_reservation_access(
        self,
        identity: AuthenticatedIdentity,
        reservation_id: UUID
    ) -> Optional[Reservation]:
        """Staff pass straight through; guests must own the reservation.

        For guests the loaded reservation is returned so the caller does not
        look it up a second time. Staff get None.
        """
        if identity.role in STAFF:
            return None

        reservation = await bounded(
            self.reservations.find_by_id(reservation_id), self.store_timeout, "reservation lookup"
        )
        if reservation is None:
            raise NotFound("Reservation not found")

        guest = await bounded(self.guests.find_by_id(reservation.guest_id), self.store_timeout, "guest lookup")
        if guest is None or guest.email.lower() != identity.email.lower():
            logger.warning("User %s denied access to reservation %s", identity.user_id, reservation_id)
            raise Forbidden("You do not have permission to access this reservation")

        return reservation

    async def require_guest_access(self, identity: AuthenticatedIdentity, guest_id: UUID) -> None:
        """Staff may act for any guest; a guest account only for its own record"""
        if identity.role in STAFF:
            return
        guest = await bounded(self.guests.find_by_id(guest_id), self.store_timeout, "guest lookup")
        if guest is None:
            raise NotFound("Guest not found")
        if guest.email.lower() != identity.email.lower():
            logger.warning("User %s denied access to guest %s", identity.user_id, guest_id)
            raise Forbidden("You do not have permission to act for this guest")
