"""Application Services - Business use cases"""
import logging
from uuid import UUID
from datetime import date
from typing import List, Optional, Tuple

from domain.repositories import ReservationRepository, RoomRepository, GuestRepository, InvoiceGenerator
from domain.entities import Reservation, Room, Guest, Invoice
from domain.enums import ReservationAction, RoomStatus
from domain.errors import Conflict, DomainError, InvalidTransition, NotFound, PreconditionFailed, RoomUnavailable
from domain import lifecycle
from domain.value_objects import DateRange, GuestCount
from infrastructure.locks import RoomLockManager
from infrastructure.timeouts import bounded
from infrastructure.security import Clock, utcnow

logger = logging.getLogger(__name__)


class AvailabilityService:
    """Answers whether a room is free for a date range"""

    def __init__(self, repository: ReservationRepository, store_timeout: float = 5.0):
        self.repository = repository
        self.store_timeout = store_timeout

    async def find_conflicts(
        self,
        room_id: UUID,
        check_in: date,
        check_out: date,
        exclude_reservation_id: Optional[UUID] = None
    ) -> List[Reservation]:
        """Reservations that hold ``room_id`` somewhere in [check_in, check_out).

        Only confirmed and checked-in reservations hold a room; pending,
        cancelled, no-show and checked-out ones never block a booking.
        The range is assumed to be valid (check_out after check_in).
        """
        overlapping = await bounded(
            self.repository.find_overlapping(check_in, check_out),
            self.store_timeout,
            "availability lookup"
        )
        return [
            r for r in overlapping
            if r.room_id == room_id
            and r.status in lifecycle.BLOCKING_STATUSES
            and r.reservation_id != exclude_reservation_id
            # the store may over-fetch; apply half-open overlap here as well
            and r.date_range.overlaps(check_in, check_out)
        ]

    async def has_conflict(
        self,
        room_id: UUID,
        check_in: date,
        check_out: date,
        exclude_reservation_id: Optional[UUID] = None
    ) -> bool:
        conflicts = await self.find_conflicts(room_id, check_in, check_out, exclude_reservation_id)
        return len(conflicts) > 0


class ReservationService:
    """Service for the reservation lifecycle"""

    def __init__(
        self,
        repository: ReservationRepository,
        rooms: RoomRepository,
        guests: GuestRepository,
        availability: AvailabilityService,
        room_locks: RoomLockManager,
        invoices: Optional[InvoiceGenerator] = None,
        store_timeout: float = 5.0,
        clock: Optional[Clock] = None
    ):
        self.repository = repository
        self.rooms = rooms
        self.guests = guests
        self.availability = availability
        self.room_locks = room_locks
        self.invoices = invoices
        self.store_timeout = store_timeout
        self.clock = clock or utcnow

    # ==================== QUERIES ====================
    async def get_reservation(self, reservation_id: UUID) -> Reservation:
        reservation = await self._call(self.repository.find_by_id(reservation_id), "reservation lookup")
        if reservation is None:
            raise NotFound("Reservation not found")
        return reservation

    async def get_reservations_by_guest(self, guest_id: UUID) -> List[Reservation]:
        return await self._call(self.repository.find_by_guest_id(guest_id), "reservation lookup")

    async def get_all_reservations(self) -> List[Reservation]:
        return await self._call(self.repository.find_all(), "reservation lookup")

    # ==================== CREATION ====================
    async def create_reservation(
        self,
        guest_id: UUID,
        room_id: UUID,
        date_range: DateRange,
        guest_count: GuestCount,
        created_by: Optional[UUID] = None,
        special_requests: Optional[str] = None
    ) -> Reservation:
        """Create a pending reservation if the room is bookable and free"""
        room = await self.get_room(room_id)
        if not room.is_bookable():
            logger.warning("Booking refused: room %s is %s", room.room_number, room.status.value)
            raise RoomUnavailable(f"Room {room.room_number} is not available for booking ({room.status.value})")

        guest = await self._call(self.guests.find_by_id(guest_id), "guest lookup")
        if guest is None:
            raise NotFound("Guest not found")

        if not guest.can_make_reservations():
            logger.warning("Booking refused: guest %s is blacklisted", guest_id)
            raise PreconditionFailed("Guest cannot make reservations")

        async with self.room_locks.hold(room_id):
            await self._ensure_free(room_id, date_range)
            reservation = Reservation.create(
                guest_id=guest_id,
                room_id=room_id,
                date_range=date_range,
                guest_count=guest_count,
                created_by=created_by,
                special_requests=special_requests
            )
            await self._call(self.repository.save(reservation), "reservation save")

        logger.info(
            "Reservation %s created for guest %s in room %s (%s to %s)",
            reservation.reservation_code, guest_id, room.room_number,
            date_range.check_in, date_range.check_out
        )
        return reservation

    # ==================== TRANSITIONS ====================
    async def confirm_reservation(self, reservation_id: UUID, confirmed_by: Optional[UUID] = None) -> Reservation:
        """Confirm a pending reservation, re-checking that its dates are still free"""
        reservation = await self.get_reservation(reservation_id)
        # fail fast on an illegal source before taking the room lock
        lifecycle.next_status(reservation.status, ReservationAction.CONFIRM)

        async with self.room_locks.hold(reservation.room_id):
            # reload under the lock; another request may have moved it on
            reservation = await self.get_reservation(reservation_id)
            await self._ensure_free(reservation.room_id, reservation.date_range, exclude=reservation_id)
            reservation.confirm(confirmed_by, now=self.clock())
            await self._call(self.repository.update(reservation), "reservation update")

        logger.info("Reservation %s confirmed by %s", reservation.reservation_code, confirmed_by)
        return reservation

    async def cancel_reservation(
        self,
        reservation_id: UUID,
        reason: str,
        cancelled_by: Optional[UUID] = None
    ) -> Reservation:
        reservation = await self.get_reservation(reservation_id)
        reservation.cancel(reason, cancelled_by, now=self.clock())
        await self._call(self.repository.update(reservation), "reservation update")
        logger.info("Reservation %s cancelled by %s: %s", reservation.reservation_code, cancelled_by, reason)
        return reservation

    async def check_in(self, reservation_id: UUID) -> Reservation:
        """Check the guest in and mark the room occupied.

        The room status is written before the reservation and put back if
        the reservation write fails, so either both change or neither does.
        """
        reservation = await self.get_reservation(reservation_id)

        async with self.room_locks.hold(reservation.room_id):
            reservation = await self.get_reservation(reservation_id)
            reservation.check_in(now=self.clock())
            previous = await self._set_room_status(reservation.room_id, RoomStatus.OCCUPIED)
            try:
                await self._call(self.repository.update(reservation), "reservation update")
            except DomainError:
                await self._restore_room_status(reservation.room_id, previous)
                raise

        logger.info("Reservation %s checked in", reservation.reservation_code)
        return reservation

    async def check_out(
        self,
        reservation_id: UUID,
        generate_invoice: bool = True,
        performed_by: Optional[UUID] = None
    ) -> Tuple[Reservation, Optional[Invoice]]:
        """Check the guest out; the room goes to cleaning.

        Room status and invoice come first. If anything after them fails
        the invoice is voided and the room status restored before the
        error propagates.
        """
        reservation = await self.get_reservation(reservation_id)

        async with self.room_locks.hold(reservation.room_id):
            reservation = await self.get_reservation(reservation_id)
            reservation.check_out(now=self.clock())
            previous = await self._set_room_status(reservation.room_id, RoomStatus.CLEANING)

            invoice = None
            try:
                if generate_invoice and self.invoices is not None:
                    invoice = await self._call(
                        self.invoices.generate(reservation, performed_by), "invoice generation"
                    )
                await self._call(self.repository.update(reservation), "reservation update")
            except DomainError:
                if invoice is not None:
                    await self._void_invoice(invoice)
                await self._restore_room_status(reservation.room_id, previous)
                raise

        logger.info(
            "Reservation %s checked out (invoice generated: %s)",
            reservation.reservation_code, invoice is not None
        )
        return reservation, invoice

    async def mark_no_show(self, reservation_id: UUID) -> Reservation:
        reservation = await self.get_reservation(reservation_id)
        reservation.mark_no_show(now=self.clock())
        await self._call(self.repository.update(reservation), "reservation update")
        logger.info("Reservation %s marked as no-show", reservation.reservation_code)
        return reservation

    # ==================== MODIFICATION ====================
    async def modify_reservation(
        self,
        reservation_id: UUID,
        new_date_range: Optional[DateRange] = None,
        new_guest_count: Optional[GuestCount] = None,
        special_requests: Optional[str] = None
    ) -> Reservation:
        """Change dates or details; a new date range must be free for this room"""
        reservation = await self.get_reservation(reservation_id)
        dates_changed = new_date_range is not None and new_date_range != reservation.date_range

        if not dates_changed:
            reservation.modify(new_guest_count=new_guest_count, special_requests=special_requests, now=self.clock())
            await self._call(self.repository.update(reservation), "reservation update")
            return reservation

        async with self.room_locks.hold(reservation.room_id):
            reservation = await self.get_reservation(reservation_id)
            if not reservation.is_modifiable():
                raise InvalidTransition(f"Cannot modify reservation with status {reservation.status.value}")
            await self._ensure_free(reservation.room_id, new_date_range, exclude=reservation_id)
            reservation.modify(
                new_date_range=new_date_range,
                new_guest_count=new_guest_count,
                special_requests=special_requests,
                now=self.clock()
            )
            await self._call(self.repository.update(reservation), "reservation update")

        logger.info(
            "Reservation %s moved to %s - %s",
            reservation.reservation_code, new_date_range.check_in, new_date_range.check_out
        )
        return reservation

    # ==================== HELPERS ====================
    async def _ensure_free(self, room_id: UUID, date_range: DateRange, exclude: Optional[UUID] = None) -> None:
        conflicts = await self.availability.find_conflicts(
            room_id, date_range.check_in, date_range.check_out, exclude_reservation_id=exclude
        )
        if conflicts:
            logger.warning(
                "Booking conflict on room %s for %s - %s with %s",
                room_id, date_range.check_in, date_range.check_out,
                [c.reservation_code for c in conflicts]
            )
            raise Conflict("The room is not available for the selected dates")

    async def get_room(self, room_id: UUID) -> Room:
        room = await self._call(self.rooms.find_by_id(room_id), "room lookup")
        if room is None:
            raise NotFound("Room not found")
        return room

    async def _set_room_status(self, room_id: UUID, status: RoomStatus) -> Optional[RoomStatus]:
        """Set the room status and return the one it replaced"""
        room = await self._call(self.rooms.find_by_id(room_id), "room lookup")
        if room is None:
            logger.warning("Room %s missing while setting status %s", room_id, status.value)
            return None
        previous = room.status
        room.status = status
        await self._call(self.rooms.update(room), "room update")
        return previous

    async def _restore_room_status(self, room_id: UUID, previous: Optional[RoomStatus]) -> None:
        if previous is None:
            return
        try:
            await self._set_room_status(room_id, previous)
        except DomainError:
            logger.exception("Could not restore room %s to %s", room_id, previous.value)

    async def _void_invoice(self, invoice: Invoice) -> None:
        try:
            await self._call(self.invoices.void(invoice.invoice_id), "invoice void")
        except DomainError:
            logger.exception("Could not void invoice %s", invoice.invoice_id)

    async def _call(self, awaitable, operation: str):
        return await bounded(awaitable, self.store_timeout, operation)


class GuestService:
    """Guest standing: who may book"""

    def __init__(self, guests: GuestRepository, store_timeout: float = 5.0):
        self.guests = guests
        self.store_timeout = store_timeout

    async def get_guest(self, guest_id: UUID) -> Guest:
        guest = await bounded(self.guests.find_by_id(guest_id), self.store_timeout, "guest lookup")
        if guest is None:
            raise NotFound("Guest not found")
        return guest

    async def blacklist(self, guest_id: UUID, reason: str, performed_by: Optional[UUID] = None) -> Guest:
        guest = await self.get_guest(guest_id)
        guest.blacklist(reason)
        await bounded(self.guests.update(guest), self.store_timeout, "guest update")
        logger.warning("Guest %s blacklisted by %s: %s", guest_id, performed_by, guest.blacklist_reason)
        return guest

    async def remove_from_blacklist(self, guest_id: UUID, performed_by: Optional[UUID] = None) -> Guest:
        guest = await self.get_guest(guest_id)
        guest.remove_from_blacklist()
        await bounded(self.guests.update(guest), self.store_timeout, "guest update")
        logger.info("Guest %s removed from blacklist by %s", guest_id, performed_by)
        return guest
