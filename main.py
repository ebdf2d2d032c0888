import logging
from contextlib import asynccontextmanager
from typing import List, Optional
from uuid import UUID
from datetime import date

from fastapi import FastAPI, Depends, Request, Query

from api.schemas import (
    # Auth
    LoginRequest, Token, TokenValidationResponse, UserResponse, RoleChangeRequest,
    # Reservation
    CreateReservationRequest, ModifyReservationRequest, CancelReservationRequest,
    CheckOutRequest, ReservationResponse, InvoiceResponse, CheckOutResponse,
    # Guest
    BlacklistRequest, GuestResponse,
    # Availability
    AvailabilityResponse,
    # Errors
    ErrorResponse
)
from api.dependencies import (
    get_bearer_token, get_container, get_current_identity, get_optional_identity, reservation_access,
    require_admin, require_manager, require_staff, require_receptionist
)
from api.errors import register_exception_handlers
from application.auth import LoginResult
from domain.auth import AuthenticatedIdentity
from domain.entities import Guest, Reservation
from domain.enums import ReservationStatus
from domain import lifecycle
from domain.value_objects import DateRange, GuestCount
from infrastructure.config import Settings, get_settings
from infrastructure.container import Container
from infrastructure.security import Clock
from infrastructure.seed import seed_demo_data

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, clock: Optional[Clock] = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.SEED_DEMO_DATA:
            app.state.demo = await seed_demo_data(app.state.container)
        logger.info("%s started", settings.APP_NAME)
        yield

    app = FastAPI(
        title=settings.APP_NAME,
        description="Role-scoped access and double-booking-safe reservation lifecycle",
        version="1.0.0",
        lifespan=lifespan,
        responses={code: {"model": ErrorResponse} for code in (401, 403, 404, 409, 429, 503)}
    )
    app.state.container = Container(settings, clock=clock)
    app.state.demo = None
    register_exception_handlers(app)
    _register_routes(app)
    return app


def _register_routes(app: FastAPI) -> None:

    # ============================================================================
    # HEALTH & ENUM REFERENCE ENDPOINTS
    # ============================================================================

    @app.get("/api/health", tags=["Health"])
    async def health_check():
        """Health check endpoint"""
        return {"status": "healthy", "message": "API is running"}

    @app.get("/api/enums/reservation-status", tags=["Enum Reference"])
    async def get_reservation_statuses():
        """Reservation statuses with the actions allowed from each"""
        return {
            "values": [item.value for item in ReservationStatus],
            "transitions": {
                status.value: sorted(a.value for a in lifecycle.available_actions(status))
                for status in ReservationStatus
            },
            "terminal": sorted(s.value for s in lifecycle.TERMINAL_STATUSES)
        }

    # ============================================================================
    # AUTH ENDPOINTS
    # ============================================================================

    @app.post("/api/auth/login", response_model=Token, tags=["Auth"])
    async def login(
        form: LoginRequest,
        request: Request,
        container: Container = Depends(get_container)
    ):
        client_address = request.client.host if request.client else "unknown"
        result = await container.authentication.login(form.credential, form.password, client_address)
        return _token_response(result)

    @app.get("/api/auth/me", response_model=UserResponse, tags=["Auth"])
    async def read_users_me(
        identity: AuthenticatedIdentity = Depends(get_current_identity),
        container: Container = Depends(get_container)
    ):
        user = await container.authentication.get_user(identity.user_id)
        return UserResponse(**user.model_dump())

    @app.get("/api/auth/validate-token", response_model=TokenValidationResponse, tags=["Auth"])
    async def validate_token(
        token: Optional[str] = Depends(get_bearer_token),
        container: Container = Depends(get_container)
    ):
        """Report the owner and remaining lifetime of the presented token"""
        result = await container.authentication.validate_token(token)
        return TokenValidationResponse(
            user=UserResponse(**result.user.model_dump()),
            expires_at=result.expires_at,
            expires_in=result.expires_in
        )

    @app.post("/api/auth/refresh-token", response_model=Token, tags=["Auth"])
    async def refresh_token(
        identity: AuthenticatedIdentity = Depends(get_current_identity),
        container: Container = Depends(get_container)
    ):
        result = await container.authentication.refresh_token(identity)
        return _token_response(result)


    # ============================================================================
    # USER ADMINISTRATION ENDPOINTS
    # ============================================================================

    @app.get("/api/users/{user_id}", response_model=UserResponse, tags=["Users"])
    async def get_user(
        user_id: UUID,
        identity: AuthenticatedIdentity = Depends(get_current_identity),
        container: Container = Depends(get_container)
    ):
        """A user may read their own account; staff may read any"""
        container.authorization.require_ownership_or_staff(identity, user_id)
        user = await container.authentication.get_user(user_id)
        return UserResponse(**user.model_dump())

    @app.post("/api/users/{user_id}/unlock", response_model=UserResponse, tags=["Users"])
    async def unlock_user(
        user_id: UUID,
        identity: AuthenticatedIdentity = Depends(require_admin),
        container: Container = Depends(get_container)
    ):
        user = await container.authentication.unlock_user(user_id)
        return UserResponse(**user.model_dump())

    @app.post("/api/users/{user_id}/deactivate", response_model=UserResponse, tags=["Users"])
    async def deactivate_user(
        user_id: UUID,
        identity: AuthenticatedIdentity = Depends(require_admin),
        container: Container = Depends(get_container)
    ):
        user = await container.authentication.deactivate_user(user_id)
        return UserResponse(**user.model_dump())

    @app.put("/api/users/{user_id}/role", response_model=UserResponse, tags=["Users"])
    async def change_user_role(
        user_id: UUID,
        request: RoleChangeRequest,
        identity: AuthenticatedIdentity = Depends(require_admin),
        container: Container = Depends(get_container)
    ):
        user = await container.authentication.change_role(user_id, request.role)
        return UserResponse(**user.model_dump())

    # ============================================================================
    # AVAILABILITY ENDPOINTS
    # ============================================================================

    @app.get("/api/rooms/{room_id}/availability", response_model=AvailabilityResponse, tags=["Availability"])
    async def check_room_availability(
        room_id: UUID,
        check_in: date = Query(...),
        check_out: date = Query(...),
        identity: Optional[AuthenticatedIdentity] = Depends(get_optional_identity),
        container: Container = Depends(get_container)
    ):
        """Public availability check; staff also see which reservations block the room"""
        date_range = DateRange(check_in=check_in, check_out=check_out)
        room = await container.reservations.get_room(room_id)
        conflicts = await container.availability.find_conflicts(
            room.room_id, date_range.check_in, date_range.check_out
        )
        response = AvailabilityResponse(
            room_id=room.room_id,
            check_in=check_in,
            check_out=check_out,
            available=room.is_bookable() and not conflicts
        )
        if identity is not None and identity.is_staff:
            response.conflicting_reservation_ids = [c.reservation_id for c in conflicts]
        return response

    # ============================================================================
    # GUEST ENDPOINTS
    # ============================================================================

    @app.post("/api/guests/{guest_id}/blacklist", response_model=GuestResponse, tags=["Guests"])
    async def blacklist_guest(
        guest_id: UUID,
        request: BlacklistRequest,
        identity: AuthenticatedIdentity = Depends(require_manager),
        container: Container = Depends(get_container)
    ):
        """Bar a guest from making reservations"""
        guest = await container.guests.blacklist(guest_id, request.reason, performed_by=identity.user_id)
        return _guest_to_response(guest)

    @app.post("/api/guests/{guest_id}/remove-blacklist", response_model=GuestResponse, tags=["Guests"])
    async def remove_guest_from_blacklist(
        guest_id: UUID,
        identity: AuthenticatedIdentity = Depends(require_manager),
        container: Container = Depends(get_container)
    ):
        guest = await container.guests.remove_from_blacklist(guest_id, performed_by=identity.user_id)
        return _guest_to_response(guest)

    # ============================================================================
    # RESERVATION ENDPOINTS
    # ============================================================================

    @app.post("/api/reservations", response_model=ReservationResponse, status_code=201, tags=["Reservations"])
    async def create_reservation(
        request: CreateReservationRequest,
        identity: AuthenticatedIdentity = Depends(get_current_identity),
        container: Container = Depends(get_container)
    ):
        """Create new reservation; guests may only book for themselves"""
        await container.authorization.require_guest_access(identity, request.guest_id)
        reservation = await container.reservations.create_reservation(
            guest_id=request.guest_id,
            room_id=request.room_id,
            date_range=DateRange(check_in=request.check_in, check_out=request.check_out),
            guest_count=GuestCount(adults=request.adults, children=request.children),
            created_by=identity.user_id,
            special_requests=request.special_requests
        )
        return _reservation_to_response(reservation)

    @app.get("/api/reservations", response_model=List[ReservationResponse], tags=["Reservations"])
    async def get_all_reservations(
        identity: AuthenticatedIdentity = Depends(require_staff),
        container: Container = Depends(get_container)
    ):
        """Get all reservations"""
        reservations = await container.reservations.get_all_reservations()
        return [_reservation_to_response(r) for r in reservations]

    @app.get("/api/guests/{guest_id}/reservations", response_model=List[ReservationResponse], tags=["Reservations"])
    async def get_guest_reservations(
        guest_id: UUID,
        identity: AuthenticatedIdentity = Depends(get_current_identity),
        container: Container = Depends(get_container)
    ):
        """Get all reservations for a guest"""
        await container.authorization.require_guest_access(identity, guest_id)
        reservations = await container.reservations.get_reservations_by_guest(guest_id)
        return [_reservation_to_response(r) for r in reservations]

    @app.get("/api/reservations/{reservation_id}", response_model=ReservationResponse, tags=["Reservations"])
    async def get_reservation(
        reservation_id: UUID,
        owned: Optional[Reservation] = Depends(reservation_access),
        container: Container = Depends(get_container)
    ):
        """Get reservation by ID"""
        reservation = owned if owned is not None else await container.reservations.get_reservation(reservation_id)
        return _reservation_to_response(reservation)

    @app.put("/api/reservations/{reservation_id}", response_model=ReservationResponse, tags=["Reservations"])
    async def modify_reservation(
        reservation_id: UUID,
        request: ModifyReservationRequest,
        owned: Optional[Reservation] = Depends(reservation_access),
        container: Container = Depends(get_container)
    ):
        """Modify reservation dates or details"""
        current = owned if owned is not None else await container.reservations.get_reservation(reservation_id)

        new_date_range = None
        if request.check_in is not None or request.check_out is not None:
            new_date_range = DateRange(
                check_in=request.check_in or current.date_range.check_in,
                check_out=request.check_out or current.date_range.check_out
            )

        new_guest_count = None
        if request.adults is not None or request.children is not None:
            new_guest_count = GuestCount(
                adults=request.adults if request.adults is not None else current.guest_count.adults,
                children=request.children if request.children is not None else current.guest_count.children
            )

        reservation = await container.reservations.modify_reservation(
            reservation_id=reservation_id,
            new_date_range=new_date_range,
            new_guest_count=new_guest_count,
            special_requests=request.special_requests
        )
        return _reservation_to_response(reservation)

    @app.post("/api/reservations/{reservation_id}/confirm", response_model=ReservationResponse, tags=["Reservations"])
    async def confirm_reservation(
        reservation_id: UUID,
        identity: AuthenticatedIdentity = Depends(require_receptionist),
        container: Container = Depends(get_container)
    ):
        """Confirm a pending reservation"""
        reservation = await container.reservations.confirm_reservation(reservation_id, identity.user_id)
        return _reservation_to_response(reservation)

    @app.post("/api/reservations/{reservation_id}/cancel", response_model=ReservationResponse, tags=["Reservations"])
    async def cancel_reservation(
        reservation_id: UUID,
        request: CancelReservationRequest,
        owned: Optional[Reservation] = Depends(reservation_access),
        identity: AuthenticatedIdentity = Depends(get_current_identity),
        container: Container = Depends(get_container)
    ):
        """Cancel reservation"""
        reservation = await container.reservations.cancel_reservation(
            reservation_id=reservation_id,
            reason=request.reason,
            cancelled_by=identity.user_id
        )
        return _reservation_to_response(reservation)

    @app.post("/api/reservations/{reservation_id}/check-in", response_model=ReservationResponse, tags=["Reservations"])
    async def check_in_guest(
        reservation_id: UUID,
        identity: AuthenticatedIdentity = Depends(require_receptionist),
        container: Container = Depends(get_container)
    ):
        """Check in guest"""
        reservation = await container.reservations.check_in(reservation_id)
        return _reservation_to_response(reservation)

    @app.post("/api/reservations/{reservation_id}/check-out", response_model=CheckOutResponse, tags=["Reservations"])
    async def check_out_guest(
        reservation_id: UUID,
        request: Optional[CheckOutRequest] = None,
        identity: AuthenticatedIdentity = Depends(require_receptionist),
        container: Container = Depends(get_container)
    ):
        """Check out guest"""
        generate_invoice = request.generate_invoice if request is not None else True
        reservation, invoice = await container.reservations.check_out(
            reservation_id, generate_invoice=generate_invoice, performed_by=identity.user_id
        )
        return CheckOutResponse(
            reservation=_reservation_to_response(reservation),
            invoice=InvoiceResponse(**invoice.model_dump()) if invoice else None
        )

    @app.post("/api/reservations/{reservation_id}/no-show", response_model=ReservationResponse, tags=["Reservations"])
    async def mark_no_show(
        reservation_id: UUID,
        identity: AuthenticatedIdentity = Depends(require_receptionist),
        container: Container = Depends(get_container)
    ):
        """Mark guest as no-show"""
        reservation = await container.reservations.mark_no_show(reservation_id)
        return _reservation_to_response(reservation)


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def _token_response(result: LoginResult) -> Token:
    return Token(
        access_token=result.access_token,
        token_type=result.token_type,
        expires_at=result.expires_at,
        user=UserResponse(**result.user.model_dump())
    )


def _guest_to_response(guest: Guest) -> GuestResponse:
    return GuestResponse(
        **guest.model_dump(),
        can_make_reservations=guest.can_make_reservations()
    )


def _reservation_to_response(reservation: Reservation) -> ReservationResponse:
    """Convert Reservation entity to ReservationResponse"""
    return ReservationResponse(
        reservation_id=reservation.reservation_id,
        reservation_code=reservation.reservation_code,
        guest_id=reservation.guest_id,
        room_id=reservation.room_id,
        check_in=reservation.date_range.check_in,
        check_out=reservation.date_range.check_out,
        nights=reservation.get_nights(),
        adults=reservation.guest_count.adults,
        children=reservation.guest_count.children,
        status=reservation.status,
        special_requests=reservation.special_requests,
        cancellation_reason=reservation.cancellation_reason,
        confirmed_at=reservation.confirmed_at,
        cancelled_at=reservation.cancelled_at,
        actual_check_in=reservation.actual_check_in,
        actual_check_out=reservation.actual_check_out,
        created_at=reservation.created_at,
        modified_at=reservation.modified_at,
        created_by=reservation.created_by,
        version=reservation.version
    )


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
