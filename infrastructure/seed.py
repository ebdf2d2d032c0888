"""Demo accounts, guests and rooms for a fresh in-memory instance"""
import logging
from typing import Dict
from uuid import UUID

from pydantic import BaseModel

from domain.auth import UserInDB
from domain.entities import Guest, Room
from domain.enums import Role, RoomStatus
from infrastructure.container import Container
from infrastructure.security import get_password_hash

logger = logging.getLogger(__name__)

DEMO_USERS = [
    # username, email, full name, role, password
    ("admin", "admin@hotel.example", "Admin User", Role.ADMIN, "admin123"),
    ("manager", "manager@hotel.example", "Hotel Manager", Role.MANAGER, "manager123"),
    ("reception", "reception@hotel.example", "Front Desk", Role.RECEPTIONIST, "reception123"),
    ("cleaning", "cleaning@hotel.example", "Housekeeping", Role.CLEANING, "cleaning123"),
    ("maria", "maria@example.com", "Maria Lopez", Role.GUEST, "maria123"),
    ("juan", "juan@example.com", "Juan Perez", Role.GUEST, "juan123"),
]

DEMO_ROOMS = [
    ("101", RoomStatus.AVAILABLE),
    ("102", RoomStatus.AVAILABLE),
    ("201", RoomStatus.MAINTENANCE),
    ("202", RoomStatus.OUT_OF_ORDER),
]

# Cache for hashed passwords; bcrypt is slow on purpose
_password_hash_cache: Dict[str, str] = {}


def _get_hashed_password(password: str) -> str:
    """Lazily hash passwords on first use"""
    if password not in _password_hash_cache:
        _password_hash_cache[password] = get_password_hash(password)
    return _password_hash_cache[password]


class DemoData(BaseModel):
    users: Dict[str, UUID]
    guests: Dict[str, UUID]
    rooms: Dict[str, UUID]
    passwords: Dict[str, str]


async def seed_demo_data(container: Container) -> DemoData:
    users: Dict[str, UUID] = {}
    guests: Dict[str, UUID] = {}
    rooms: Dict[str, UUID] = {}
    passwords: Dict[str, str] = {}

    for username, email, full_name, role, password in DEMO_USERS:
        user = UserInDB(
            username=username,
            email=email,
            full_name=full_name,
            role=role,
            hashed_password=_get_hashed_password(password)
        )
        await container.user_repo.save(user)
        users[username] = user.user_id
        passwords[username] = password

        if role == Role.GUEST:
            first_name, last_name = full_name.split(" ", 1)
            guest = Guest(email=email, first_name=first_name, last_name=last_name)
            await container.guest_repo.save(guest)
            guests[username] = guest.guest_id

    for room_number, status in DEMO_ROOMS:
        room = Room(room_number=room_number, status=status)
        await container.room_repo.save(room)
        rooms[room_number] = room.room_id

    logger.info("Seeded %d users, %d guests and %d rooms", len(users), len(guests), len(rooms))
    return DemoData(users=users, guests=guests, rooms=rooms, passwords=passwords)
