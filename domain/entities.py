"""Domain Entities - Aggregates"""
from pydantic import BaseModel, ConfigDict, Field
from uuid import UUID, uuid4
from datetime import datetime, date, timezone
from typing import Optional
import random
import string

from domain.enums import ReservationStatus, ReservationAction, RoomStatus
from domain.value_objects import DateRange, GuestCount
from domain.errors import InvalidTransition, PreconditionFailed
from domain import lifecycle


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Reservation(BaseModel):
    """Reservation Aggregate Root Entity"""
    model_config = ConfigDict(from_attributes=True)

    # Identity
    reservation_id: UUID = Field(default_factory=uuid4)
    reservation_code: str

    # References
    guest_id: UUID
    room_id: UUID

    # Value Objects
    date_range: DateRange
    guest_count: GuestCount

    status: ReservationStatus = ReservationStatus.PENDING
    special_requests: Optional[str] = None

    # Transition bookkeeping
    cancellation_reason: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    confirmed_by: Optional[UUID] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[UUID] = None
    actual_check_in: Optional[datetime] = None
    actual_check_out: Optional[datetime] = None

    # Metadata
    created_at: datetime = Field(default_factory=_utcnow)
    modified_at: datetime = Field(default_factory=_utcnow)
    created_by: Optional[UUID] = None
    version: int = 1

    # ==================== FACTORY METHOD ====================
    @staticmethod
    def create(
        guest_id: UUID,
        room_id: UUID,
        date_range: DateRange,
        guest_count: GuestCount,
        created_by: Optional[UUID] = None,
        special_requests: Optional[str] = None
    ) -> "Reservation":
        """Create a new pending reservation"""
        return Reservation(
            reservation_code=Reservation._generate_reservation_code(),
            guest_id=guest_id,
            room_id=room_id,
            date_range=date_range,
            guest_count=guest_count,
            special_requests=special_requests,
            status=ReservationStatus.PENDING,
            created_by=created_by
        )

    # ==================== STATE TRANSITION METHODS ====================
    def apply(self, action: ReservationAction, now: Optional[datetime] = None) -> ReservationStatus:
        """Move to the status the transition table assigns to ``action``"""
        target = lifecycle.next_status(self.status, action)
        now = now or _utcnow()

        if target == ReservationStatus.CONFIRMED:
            self.confirmed_at = now
        elif target == ReservationStatus.CANCELLED:
            self.cancelled_at = now
        elif target == ReservationStatus.CHECKED_IN:
            self.actual_check_in = now
        elif target == ReservationStatus.CHECKED_OUT:
            self.actual_check_out = now

        self.status = target
        self._touch(now)
        return target

    def confirm(self, confirmed_by: Optional[UUID] = None, now: Optional[datetime] = None) -> None:
        self.apply(ReservationAction.CONFIRM, now)
        self.confirmed_by = confirmed_by

    def cancel(self, reason: str, cancelled_by: Optional[UUID] = None, now: Optional[datetime] = None) -> None:
        if not reason or not reason.strip():
            raise ValueError("A cancellation reason is required")
        self.apply(ReservationAction.CANCEL, now)
        self.cancellation_reason = reason.strip()
        self.cancelled_by = cancelled_by

    def check_in(self, now: Optional[datetime] = None) -> None:
        """Check in, no earlier than the arrival date"""
        now = now or _utcnow()
        lifecycle.next_status(self.status, ReservationAction.CHECK_IN)
        if now.date() < self.date_range.check_in:
            raise PreconditionFailed(
                f"Reservation cannot be checked in before its arrival date {self.date_range.check_in}"
            )
        self.apply(ReservationAction.CHECK_IN, now)

    def check_out(self, now: Optional[datetime] = None) -> None:
        self.apply(ReservationAction.CHECK_OUT, now)

    def mark_no_show(self, now: Optional[datetime] = None) -> None:
        self.apply(ReservationAction.MARK_NO_SHOW, now)

    # ==================== MODIFICATION METHODS ====================
    def modify(
        self,
        new_date_range: Optional[DateRange] = None,
        new_guest_count: Optional[GuestCount] = None,
        special_requests: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> None:
        """Change non-status fields; availability is checked by the caller"""
        if not self.is_modifiable():
            raise InvalidTransition(
                f"Cannot modify reservation with status {self.status.value}"
            )

        if new_date_range is not None:
            self.date_range = new_date_range
        if new_guest_count is not None:
            self.guest_count = new_guest_count
        if special_requests is not None:
            self.special_requests = special_requests

        self._touch(now or _utcnow())

    # ==================== QUERY METHODS ====================
    def is_modifiable(self) -> bool:
        return self.status in lifecycle.MODIFIABLE_STATUSES

    def is_terminal(self) -> bool:
        return self.status in lifecycle.TERMINAL_STATUSES

    def blocks_room(self) -> bool:
        return self.status in lifecycle.BLOCKING_STATUSES

    def get_nights(self) -> int:
        return self.date_range.nights()

    # ==================== PRIVATE METHODS ====================
    def _touch(self, now: datetime) -> None:
        self.modified_at = now
        self.version += 1

    @staticmethod
    def _generate_reservation_code() -> str:
        """Generate a reservation code such as RES-7K2QX9PA"""
        suffix = ''.join(random.choices(string.ascii_uppercase + string.digits, k=8))
        return f"RES-{suffix}"


class Room(BaseModel):
    """Room Entity, consulted as a booking precondition"""
    model_config = ConfigDict(from_attributes=True)

    room_id: UUID = Field(default_factory=uuid4)
    room_number: str
    status: RoomStatus = RoomStatus.AVAILABLE
    is_active: bool = True

    def is_bookable(self) -> bool:
        """Rooms under maintenance or out of order take no new bookings"""
        return self.is_active and self.status not in (RoomStatus.MAINTENANCE, RoomStatus.OUT_OF_ORDER)


class Guest(BaseModel):
    """Guest Entity; the email links a guest to a user account"""
    model_config = ConfigDict(from_attributes=True)

    guest_id: UUID = Field(default_factory=uuid4)
    email: str
    first_name: str
    last_name: str
    is_blacklisted: bool = False
    blacklist_reason: Optional[str] = None

    def can_make_reservations(self) -> bool:
        return not self.is_blacklisted

    def blacklist(self, reason: str) -> None:
        if not reason or not reason.strip():
            raise ValueError("A reason is required to blacklist a guest")
        if self.is_blacklisted:
            raise PreconditionFailed("Guest is already blacklisted")
        self.is_blacklisted = True
        self.blacklist_reason = reason.strip()

    def remove_from_blacklist(self) -> None:
        if not self.is_blacklisted:
            raise PreconditionFailed("Guest is not blacklisted")
        self.is_blacklisted = False
        self.blacklist_reason = None


class Invoice(BaseModel):
    """Invoice issued on checkout"""
    invoice_id: UUID = Field(default_factory=uuid4)
    reservation_id: UUID
    guest_id: UUID
    service_date_from: date
    service_date_to: date
    nights: int
    created_by: Optional[UUID] = None
    created_at: datetime = Field(default_factory=_utcnow)
