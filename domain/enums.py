"""Domain Enums"""
from enum import Enum


class Role(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    RECEPTIONIST = "receptionist"
    CLEANING = "cleaning"
    GUEST = "guest"


class ReservationStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class RoomStatus(str, Enum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    CLEANING = "cleaning"
    MAINTENANCE = "maintenance"
    OUT_OF_ORDER = "out_of_order"


class ReservationAction(str, Enum):
    CONFIRM = "confirm"
    CANCEL = "cancel"
    CHECK_IN = "check_in"
    CHECK_OUT = "check_out"
    MARK_NO_SHOW = "mark_no_show"


class TokenFailure(str, Enum):
    EXPIRED = "expired"
    MALFORMED = "malformed"


class AuthFailureReason(str, Enum):
    MISSING_TOKEN = "missing_token"
    EXPIRED_TOKEN = "expired_token"
    INVALID_TOKEN = "invalid_token"
    UNKNOWN_SUBJECT = "unknown_subject"
    INACTIVE = "inactive"
    LOCKED = "locked"
    INVALID_CREDENTIALS = "invalid_credentials"
    NOT_AUTHENTICATED = "not_authenticated"
