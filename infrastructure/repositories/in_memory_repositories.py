"""In-Memory Repository Implementations

Entities are copied on the way in and on the way out, so callers can never
mutate stored state except through ``save``/``update``.
"""
from typing import Optional, List, Dict
from uuid import UUID
from datetime import date, datetime

from domain.repositories import (
    UserRepository, ReservationRepository, RoomRepository, GuestRepository,
    LoginAttemptStore, InvoiceGenerator
)
from domain.auth import UserInDB
from domain.entities import Reservation, Room, Guest, Invoice
from domain.errors import Conflict, NotFound


class InMemoryUserRepository(UserRepository):
    """In-memory implementation of UserRepository"""

    def __init__(self):
        self._storage: Dict[UUID, UserInDB] = {}

    async def save(self, user: UserInDB) -> UserInDB:
        """Save user to memory"""
        self._storage[user.user_id] = user.model_copy(deep=True)
        return user

    async def find_by_id(self, user_id: UUID) -> Optional[UserInDB]:
        user = self._storage.get(user_id)
        return user.model_copy(deep=True) if user else None

    async def find_by_credential(self, credential: str) -> Optional[UserInDB]:
        """Match username exactly or email case-insensitively"""
        lowered = credential.lower()
        for user in self._storage.values():
            if user.username == credential or user.email.lower() == lowered:
                return user.model_copy(deep=True)
        return None

    async def update(self, user: UserInDB) -> UserInDB:
        stored = self._storage.get(user.user_id)
        if stored is None:
            raise NotFound("User not found")
        if user.version != stored.version + 1:
            raise Conflict(
                "User was modified concurrently; reload and retry",
                detail=f"stored version {stored.version}"
            )
        self._storage[user.user_id] = user.model_copy(deep=True)
        return user


class InMemoryReservationRepository(ReservationRepository):
    """In-memory implementation of ReservationRepository"""

    def __init__(self):
        self._storage: Dict[UUID, Reservation] = {}

    async def save(self, reservation: Reservation) -> Reservation:
        """Save reservation to memory"""
        self._storage[reservation.reservation_id] = reservation.model_copy(deep=True)
        return reservation

    async def find_by_id(self, reservation_id: UUID) -> Optional[Reservation]:
        reservation = self._storage.get(reservation_id)
        return reservation.model_copy(deep=True) if reservation else None

    async def find_by_guest_id(self, guest_id: UUID) -> List[Reservation]:
        return [r.model_copy(deep=True) for r in self._storage.values() if r.guest_id == guest_id]

    async def find_all(self) -> List[Reservation]:
        return [r.model_copy(deep=True) for r in self._storage.values()]

    async def find_overlapping(self, check_in: date, check_out: date) -> List[Reservation]:
        return [
            r.model_copy(deep=True) for r in self._storage.values()
            if r.date_range.overlaps(check_in, check_out)
        ]

    async def update(self, reservation: Reservation) -> Reservation:
        stored = self._storage.get(reservation.reservation_id)
        if stored is None:
            raise NotFound("Reservation not found")
        if reservation.version != stored.version + 1:
            raise Conflict(
                "Reservation was modified concurrently; reload and retry",
                detail=f"stored version {stored.version}"
            )
        self._storage[reservation.reservation_id] = reservation.model_copy(deep=True)
        return reservation


class InMemoryRoomRepository(RoomRepository):
    """In-memory implementation of RoomRepository"""

    def __init__(self):
        self._storage: Dict[UUID, Room] = {}

    async def save(self, room: Room) -> Room:
        self._storage[room.room_id] = room.model_copy(deep=True)
        return room

    async def find_by_id(self, room_id: UUID) -> Optional[Room]:
        room = self._storage.get(room_id)
        return room.model_copy(deep=True) if room else None

    async def update(self, room: Room) -> Room:
        if room.room_id not in self._storage:
            raise NotFound("Room not found")
        self._storage[room.room_id] = room.model_copy(deep=True)
        return room


class InMemoryGuestRepository(GuestRepository):
    """In-memory implementation of GuestRepository"""

    def __init__(self):
        self._storage: Dict[UUID, Guest] = {}

    async def save(self, guest: Guest) -> Guest:
        self._storage[guest.guest_id] = guest.model_copy(deep=True)
        return guest

    async def find_by_id(self, guest_id: UUID) -> Optional[Guest]:
        guest = self._storage.get(guest_id)
        return guest.model_copy(deep=True) if guest else None

    async def update(self, guest: Guest) -> Guest:
        if guest.guest_id not in self._storage:
            raise NotFound("Guest not found")
        self._storage[guest.guest_id] = guest.model_copy(deep=True)
        return guest


class InMemoryLoginAttemptStore(LoginAttemptStore):
    """Per-process failed-login log"""

    def __init__(self):
        self._attempts: Dict[str, List[datetime]] = {}

    async def record(self, key: str, at: datetime) -> None:
        self._attempts.setdefault(key, []).append(at)

    async def attempts_since(self, key: str, since: datetime) -> List[datetime]:
        # prune while reading so idle clients do not grow the log forever
        recent = sorted(a for a in self._attempts.get(key, []) if a > since)
        if recent:
            self._attempts[key] = recent
        else:
            self._attempts.pop(key, None)
        return list(recent)


class InMemoryInvoiceGenerator(InvoiceGenerator):
    """Keeps generated invoices in memory"""

    def __init__(self):
        self.invoices: Dict[UUID, Invoice] = {}

    async def generate(self, reservation: Reservation, created_by: Optional[UUID] = None) -> Invoice:
        invoice = Invoice(
            reservation_id=reservation.reservation_id,
            guest_id=reservation.guest_id,
            service_date_from=reservation.date_range.check_in,
            service_date_to=reservation.date_range.check_out,
            nights=reservation.get_nights(),
            created_by=created_by
        )
        self.invoices[invoice.invoice_id] = invoice
        return invoice

    async def void(self, invoice_id: UUID) -> None:
        self.invoices.pop(invoice_id, None)
