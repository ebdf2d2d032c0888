"""API Schemas - Request and Response DTOs"""
from pydantic import BaseModel, Field
from datetime import date, datetime
from uuid import UUID
from typing import List, Optional

from domain.enums import Role, ReservationStatus


# ============================================================================
# AUTH SCHEMAS
# ============================================================================

class LoginRequest(BaseModel):
    """Login request DTO; credential is a username or an email"""
    credential: str = Field(min_length=1)
    password: str = Field(min_length=1)


class UserResponse(BaseModel):
    """User response DTO"""
    user_id: UUID
    username: str
    email: str
    full_name: Optional[str] = None
    role: Role
    is_active: bool
    locked_until: Optional[datetime] = None
    last_login_at: Optional[datetime] = None


class Token(BaseModel):
    """Login response DTO"""
    success: bool = True
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: UserResponse


class TokenValidationResponse(BaseModel):
    """Token validation response DTO"""
    success: bool = True
    message: str = "Token valid"
    user: UserResponse
    expires_at: datetime
    expires_in: int


class RoleChangeRequest(BaseModel):
    role: Role


# ============================================================================
# RESERVATION SCHEMAS
# ============================================================================

class CreateReservationRequest(BaseModel):
    """Create reservation request DTO"""
    guest_id: UUID
    room_id: UUID
    check_in: date
    check_out: date
    adults: int = Field(ge=1, le=10, default=1)
    children: int = Field(ge=0, le=10, default=0)
    special_requests: Optional[str] = Field(None, max_length=1000)


class ModifyReservationRequest(BaseModel):
    """Modify reservation request DTO"""
    check_in: Optional[date] = None
    check_out: Optional[date] = None
    adults: Optional[int] = Field(None, ge=1, le=10)
    children: Optional[int] = Field(None, ge=0, le=10)
    special_requests: Optional[str] = Field(None, max_length=1000)


class CancelReservationRequest(BaseModel):
    """Cancel reservation request DTO"""
    reason: str = Field(min_length=1, max_length=500)


class CheckOutRequest(BaseModel):
    """Check-out request DTO"""
    generate_invoice: bool = True


class ReservationResponse(BaseModel):
    """Reservation response DTO"""
    reservation_id: UUID
    reservation_code: str
    guest_id: UUID
    room_id: UUID
    check_in: date
    check_out: date
    nights: int
    adults: int
    children: int
    status: ReservationStatus
    special_requests: Optional[str] = None
    cancellation_reason: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    actual_check_in: Optional[datetime] = None
    actual_check_out: Optional[datetime] = None
    created_at: datetime
    modified_at: datetime
    created_by: Optional[UUID] = None
    version: int


class InvoiceResponse(BaseModel):
    """Invoice response DTO"""
    invoice_id: UUID
    reservation_id: UUID
    guest_id: UUID
    service_date_from: date
    service_date_to: date
    nights: int
    created_at: datetime


class CheckOutResponse(BaseModel):
    """Check-out response DTO"""
    reservation: ReservationResponse
    invoice: Optional[InvoiceResponse] = None
    room_status: str = "cleaning"


# ============================================================================
# GUEST SCHEMAS
# ============================================================================

class BlacklistRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=500)


class GuestResponse(BaseModel):
    """Guest response DTO"""
    guest_id: UUID
    email: str
    first_name: str
    last_name: str
    is_blacklisted: bool
    blacklist_reason: Optional[str] = None
    can_make_reservations: bool


# ============================================================================
# AVAILABILITY SCHEMAS
# ============================================================================

class AvailabilityResponse(BaseModel):
    """Availability response DTO; conflict details are only shown to staff"""
    room_id: UUID
    check_in: date
    check_out: date
    available: bool
    conflicting_reservation_ids: Optional[List[UUID]] = None


# ============================================================================
# ERROR SCHEMA
# ============================================================================

class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    error: str
