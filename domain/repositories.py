"""Domain Repository Interfaces"""
from abc import ABC, abstractmethod
from typing import Optional, List
from uuid import UUID
from datetime import date, datetime

from domain.auth import UserInDB
from domain.entities import Reservation, Room, Guest, Invoice


class UserRepository(ABC):
    """Credential store for user accounts"""

    @abstractmethod
    async def save(self, user: UserInDB) -> UserInDB:
        """Save user"""
        pass

    @abstractmethod
    async def find_by_id(self, user_id: UUID) -> Optional[UserInDB]:
        """Find user by ID"""
        pass

    @abstractmethod
    async def find_by_credential(self, credential: str) -> Optional[UserInDB]:
        """Find user by username or email"""
        pass

    @abstractmethod
    async def update(self, user: UserInDB) -> UserInDB:
        """Update user; a write not exactly one version past the stored one raises Conflict"""
        pass


class ReservationRepository(ABC):
    """Repository interface for Reservation Aggregate"""

    @abstractmethod
    async def save(self, reservation: Reservation) -> Reservation:
        """Save a new reservation"""
        pass

    @abstractmethod
    async def find_by_id(self, reservation_id: UUID) -> Optional[Reservation]:
        """Find reservation by ID"""
        pass

    @abstractmethod
    async def find_by_guest_id(self, guest_id: UUID) -> List[Reservation]:
        """Find reservations by guest ID"""
        pass

    @abstractmethod
    async def find_all(self) -> List[Reservation]:
        """Find all reservations"""
        pass

    @abstractmethod
    async def find_overlapping(self, check_in: date, check_out: date) -> List[Reservation]:
        """Find reservations whose stay overlaps [check_in, check_out)"""
        pass

    @abstractmethod
    async def update(self, reservation: Reservation) -> Reservation:
        """Persist a modified reservation.

        The incoming version must be exactly one past the stored version,
        otherwise another writer got there first and ``Conflict`` is raised.
        """
        pass


class RoomRepository(ABC):
    """Repository interface for rooms"""

    @abstractmethod
    async def save(self, room: Room) -> Room:
        pass

    @abstractmethod
    async def find_by_id(self, room_id: UUID) -> Optional[Room]:
        pass

    @abstractmethod
    async def update(self, room: Room) -> Room:
        pass


class GuestRepository(ABC):
    """Repository interface for guests"""

    @abstractmethod
    async def save(self, guest: Guest) -> Guest:
        pass

    @abstractmethod
    async def find_by_id(self, guest_id: UUID) -> Optional[Guest]:
        pass

    @abstractmethod
    async def update(self, guest: Guest) -> Guest:
        pass


class LoginAttemptStore(ABC):
    """Failed-login log keyed by client address.

    Kept behind an interface so a shared store can replace the in-process
    one when several instances serve the same clients.
    """

    @abstractmethod
    async def record(self, key: str, at: datetime) -> None:
        """Record a failed attempt"""
        pass

    @abstractmethod
    async def attempts_since(self, key: str, since: datetime) -> List[datetime]:
        """Return attempts newer than ``since``, oldest first"""
        pass


class InvoiceGenerator(ABC):
    """External collaborator producing invoices on checkout"""

    @abstractmethod
    async def generate(self, reservation: Reservation, created_by: Optional[UUID] = None) -> Invoice:
        pass

    @abstractmethod
    async def void(self, invoice_id: UUID) -> None:
        """Withdraw an invoice whose checkout did not go through"""
        pass
