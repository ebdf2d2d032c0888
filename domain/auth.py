"""Domain Entities - Auth"""
from pydantic import BaseModel, ConfigDict, Field
from uuid import UUID, uuid4
from datetime import datetime, timedelta
from typing import Optional, FrozenSet

from domain.enums import Role


# Canonical role groups. Membership is explicit: no role inherits another's
# permissions except by being listed here.
ADMIN_ONLY: FrozenSet[Role] = frozenset({Role.ADMIN})
MANAGER_OR_ABOVE: FrozenSet[Role] = frozenset({Role.ADMIN, Role.MANAGER})
STAFF: FrozenSet[Role] = frozenset({Role.ADMIN, Role.MANAGER, Role.RECEPTIONIST, Role.CLEANING})
RECEPTIONIST_OR_ABOVE: FrozenSet[Role] = frozenset({Role.ADMIN, Role.MANAGER, Role.RECEPTIONIST})


class User(BaseModel):
    """User Entity"""
    model_config = ConfigDict(from_attributes=True)

    user_id: UUID = Field(default_factory=uuid4)
    username: str
    email: str
    full_name: Optional[str] = None
    role: Role = Role.GUEST
    is_active: bool = True
    locked_until: Optional[datetime] = None
    failed_login_count: int = 0
    last_login_at: Optional[datetime] = None
    version: int = 1

    def is_locked(self, now: datetime) -> bool:
        """A lock is only honoured until its stored instant passes"""
        return self.locked_until is not None and self.locked_until > now

    def register_failed_login(self, now: datetime, threshold: int, lock_duration: timedelta) -> None:
        """Count a bad password and lock the account once the threshold is hit"""
        if self.locked_until is not None and self.locked_until <= now:
            # previous lock ran out: start counting again
            self.locked_until = None
            self.failed_login_count = 0

        self.failed_login_count += 1
        if self.failed_login_count >= threshold:
            self.locked_until = now + lock_duration
        self.version += 1

    def reset_failed_logins(self, now: datetime) -> None:
        self.failed_login_count = 0
        self.locked_until = None
        self.last_login_at = now
        self.version += 1

    # ==================== ADMINISTRATION ====================
    def unlock(self) -> None:
        self.failed_login_count = 0
        self.locked_until = None
        self.version += 1

    def deactivate(self) -> None:
        self.is_active = False
        self.version += 1

    def assign_role(self, role: Role) -> None:
        self.role = role
        self.version += 1


class UserInDB(User):
    """User with hashed password for DB storage"""
    hashed_password: str


class AuthenticatedIdentity(BaseModel):
    """Principal attached to a request once the authentication gate passes"""
    model_config = ConfigDict(frozen=True)

    user_id: UUID
    role: Role
    email: str

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF


class TokenClaims(BaseModel):
    """Decoded content of a verified access token"""
    model_config = ConfigDict(frozen=True)

    subject_id: UUID
    role: Role
    issued_at: datetime
    expires_at: datetime
