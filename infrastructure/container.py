"""Wires repositories and services for one application instance"""
from typing import Optional

from application.auth import AuthenticationService, AuthorizationService
from application.services import AvailabilityService, GuestService, ReservationService
from application.throttle import LoginThrottle
from infrastructure.config import Settings
from infrastructure.locks import KeyedLockManager, RoomLockManager
from infrastructure.repositories.in_memory_repositories import (
    InMemoryUserRepository, InMemoryReservationRepository, InMemoryRoomRepository,
    InMemoryGuestRepository, InMemoryLoginAttemptStore, InMemoryInvoiceGenerator
)
from infrastructure.security import Clock, TokenService, utcnow


class Container:
    """All collaborators of the API, built from settings"""

    def __init__(self, settings: Settings, clock: Optional[Clock] = None):
        self.settings = settings
        self.clock = clock or utcnow
        timeout = settings.STORE_TIMEOUT_SECONDS

        # Initialize repositories
        self.user_repo = InMemoryUserRepository()
        self.reservation_repo = InMemoryReservationRepository()
        self.room_repo = InMemoryRoomRepository()
        self.guest_repo = InMemoryGuestRepository()
        self.attempt_store = InMemoryLoginAttemptStore()
        self.invoice_generator = InMemoryInvoiceGenerator()

        self.token_service = TokenService(
            secret_key=settings.SECRET_KEY,
            algorithm=settings.ALGORITHM,
            expires_delta=settings.access_token_expires,
            clock=self.clock
        )
        self.login_throttle = LoginThrottle(
            store=self.attempt_store,
            window=settings.rate_limit_window,
            max_attempts=settings.LOGIN_RATE_LIMIT_MAX_ATTEMPTS,
            clock=self.clock,
            locks=KeyedLockManager(timeout_seconds=timeout, name="login client")
        )
        self.authentication = AuthenticationService(
            users=self.user_repo,
            tokens=self.token_service,
            throttle=self.login_throttle,
            lockout_threshold=settings.ACCOUNT_LOCKOUT_THRESHOLD,
            lockout_duration=settings.lockout_duration,
            store_timeout=timeout,
            clock=self.clock,
            user_locks=KeyedLockManager(timeout_seconds=timeout, name="account")
        )
        self.authorization = AuthorizationService(
            reservations=self.reservation_repo,
            guests=self.guest_repo,
            store_timeout=timeout
        )
        self.availability = AvailabilityService(self.reservation_repo, store_timeout=timeout)
        self.room_locks = RoomLockManager(timeout_seconds=timeout)
        self.reservations = ReservationService(
            repository=self.reservation_repo,
            rooms=self.room_repo,
            guests=self.guest_repo,
            availability=self.availability,
            room_locks=self.room_locks,
            invoices=self.invoice_generator,
            store_timeout=timeout,
            clock=self.clock
        )
        self.guests = GuestService(self.guest_repo, store_timeout=timeout)
