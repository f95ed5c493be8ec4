import logging
import uuid
from contextlib import asynccontextmanager
from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from fastapi import FastAPI, HTTPException, Depends, Query, Request
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordRequestForm

from api.schemas import (
    # Guests
    GuestRequest, UpdateGuestContactRequest, GuestResponse,
    # Rooms
    RoomResponse, RoomAvailabilityResponse,
    # Reservations
    CreateReservationRequest, ModifyReservationRequest, CheckOutRequest, CancelReservationRequest,
    ReservationResponse, ReservationStatsResponse, MoneyResponse,
    # Payments
    RecordPaymentRequest, PaymentResponse,
    # Auth
    Token, UserResponse
)
from api.dependencies import (
    DEMO_BRANCH_ID, users_db, get_user, get_current_active_user, get_operator_context,
    get_guest_service, get_availability_service, get_reservation_service, get_payment_ledger, room_repo,
)
from application.services import AvailabilityService, GuestService, PaymentLedger, ReservationService
from config import get_settings
from domain.auth import User
from domain.entities import Room
from domain.enums import (
    DateRangePreset, PaymentStatus, ReservationSource, ReservationStatus, RoomType,
)
from domain.errors import (
    ConcurrencyConflict, DomainError, InvalidTransition, NotFound, PersistenceError, RoomUnavailable,
)
from domain.filters import ReservationCriteria
from domain.value_objects import GuestDraft, OperatorContext, ReservationDraft
from infrastructure.security import verify_password, create_access_token

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# (number, floor, type, capacity, nightly rate, features)
DEMO_ROOMS = [
    ("101", 1, RoomType.STANDARD, 2, "150.00", {"wifi", "tv"}),
    ("102", 1, RoomType.STANDARD, 2, "150.00", {"wifi", "tv"}),
    ("103", 1, RoomType.STANDARD, 2, "150.00", {"wifi", "tv"}),
    ("201", 2, RoomType.DELUXE, 3, "220.00", {"wifi", "tv", "minibar"}),
    ("202", 2, RoomType.DELUXE, 3, "220.00", {"wifi", "tv", "minibar"}),
    ("301", 3, RoomType.SUITE, 4, "350.00", {"wifi", "tv", "minibar", "jacuzzi"}),
    ("302", 3, RoomType.SUITE, 4, "350.00", {"wifi", "tv", "minibar", "jacuzzi"}),
    ("401", 4, RoomType.JUNIOR_SUITE, 3, "280.00", {"wifi", "tv", "balcony"}),
]


async def seed_demo_rooms(repository=None) -> None:
    """Rooms of the demo branch; ids are derived from the room number so re-seeding is a no-op"""
    repository = repository or room_repo
    for number, floor, room_type, capacity, rate, features in DEMO_ROOMS:
        await repository.save(Room(
            room_id=uuid.uuid5(DEMO_BRANCH_ID, number),
            branch_id=DEMO_BRANCH_ID,
            room_number=number,
            floor=floor,
            room_type=room_type,
            capacity=capacity,
            base_rate=Decimal(rate),
            features=frozenset(features),
        ))
    logger.info("Seeded %d demo rooms for branch %s", len(DEMO_ROOMS), DEMO_BRANCH_ID)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.seed_demo_data:
        await seed_demo_rooms()
    yield


app = FastAPI(
    title="Hotel Reservation API",
    description="Reservation domain service: availability, lifecycle and payment ledger",
    version="1.0.0",
    lifespan=lifespan
)


# ============================================================================
# ERROR HANDLERS
# ============================================================================

def _status_for(exc: DomainError) -> int:
    if isinstance(exc, NotFound):
        return 404
    if isinstance(exc, (RoomUnavailable, InvalidTransition, ConcurrencyConflict)):
        return 409
    if isinstance(exc, PersistenceError):
        return 503
    return 400


@app.exception_handler(DomainError)
async def domain_exception_handler(request: Request, exc: DomainError):
    return JSONResponse(
        status_code=_status_for(exc),
        content={"detail": exc.message, "code": exc.code}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Log unexpected failures and hide the stack trace from clients"""
    error_id = str(uuid.uuid4())
    logger.error(
        "Unhandled exception occurred",
        exc_info=exc,
        extra={"error_id": error_id, "path": request.url.path, "method": request.method}
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "error_id": error_id}
    )


# ============================================================================
# HEALTH & ENUM REFERENCE ENDPOINTS
# ============================================================================

@app.get("/api/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "message": "API is running"}

@app.get("/api/enums/reservation-status", tags=["Enum Reference"])
async def get_reservation_statuses():
    """Reservation statuses with their display label and color"""
    return {
        "values": [
            {"value": item.value, "label": item.label, "color": item.color, "blocking": item.is_blocking}
            for item in ReservationStatus
        ]
    }

@app.get("/api/enums/reservation-source", tags=["Enum Reference"])
async def get_reservation_sources():
    return {"values": [item.value for item in ReservationSource]}

@app.get("/api/enums/payment-methods", tags=["Enum Reference"])
async def get_payment_methods():
    return {"values": PaymentLedger.list_payment_methods()}

# ============================================================================
# AUTH ENDPOINTS
# ============================================================================

@app.post("/token", response_model=Token, tags=["Auth"])
async def login_for_access_token(form_data: OAuth2PasswordRequestForm = Depends()):
    user = get_user(users_db, form_data.username)
    if not user or not verify_password(form_data.password, user.hashed_password):
        raise HTTPException(
            status_code=401,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    access_token_expires = timedelta(minutes=settings.access_token_expire_minutes)
    access_token = create_access_token(
        data={"sub": user.username}, expires_delta=access_token_expires
    )
    return {"access_token": access_token, "token_type": "bearer"}

@app.get("/users/me", response_model=UserResponse, tags=["Auth"])
async def read_users_me(current_user: User = Depends(get_current_active_user)):
    return current_user

# ============================================================================
# ROOM ENDPOINTS
# ============================================================================

@app.get("/api/rooms", response_model=List[RoomResponse], tags=["Rooms"])
async def get_rooms(
    service: AvailabilityService = Depends(get_availability_service),
    ctx: OperatorContext = Depends(get_operator_context)
):
    """All rooms of the operator's branch with housekeeping status"""
    rooms = await service.list_rooms(ctx.branch_id)
    return [_room_to_response(r) for r in rooms]

@app.get("/api/rooms/available", response_model=List[RoomResponse], tags=["Rooms"])
async def get_available_rooms(
    check_in: date,
    check_out: date,
    service: AvailabilityService = Depends(get_availability_service),
    ctx: OperatorContext = Depends(get_operator_context)
):
    """Rooms free for the whole stay"""
    rooms = await service.find_available_rooms(ctx.branch_id, check_in, check_out)
    return [_room_to_response(r) for r in rooms]

@app.get("/api/rooms/{room_id}/availability", response_model=RoomAvailabilityResponse, tags=["Rooms"])
async def check_room_availability(
    room_id: UUID,
    check_in: date,
    check_out: date,
    service: AvailabilityService = Depends(get_availability_service),
    ctx: OperatorContext = Depends(get_operator_context)
):
    await service.get_room(room_id, ctx.branch_id)
    available = await service.is_room_available(room_id, check_in, check_out)
    return RoomAvailabilityResponse(room_id=room_id, check_in=check_in, check_out=check_out, available=available)

# ============================================================================
# GUEST ENDPOINTS
# ============================================================================

@app.get("/api/guests/search", response_model=List[GuestResponse], tags=["Guests"])
async def search_guests(
    term: str = "",
    limit: Optional[int] = Query(None, ge=1, le=100),
    service: GuestService = Depends(get_guest_service),
    current_user: User = Depends(get_current_active_user)
):
    """Search guests by name, phone or document number"""
    guests = await service.search_guests(term, limit)
    return [_guest_to_response(g) for g in guests]

@app.post("/api/guests", response_model=GuestResponse, status_code=201, tags=["Guests"])
async def register_guest(
    request: GuestRequest,
    service: GuestService = Depends(get_guest_service),
    current_user: User = Depends(get_current_active_user)
):
    guest = await service.register_guest(GuestDraft(**request.model_dump(exclude={"guest_id"})))
    return _guest_to_response(guest)

@app.patch("/api/guests/{guest_id}", response_model=GuestResponse, tags=["Guests"])
async def update_guest_contact(
    guest_id: UUID,
    request: UpdateGuestContactRequest,
    service: GuestService = Depends(get_guest_service),
    current_user: User = Depends(get_current_active_user)
):
    """Update phone and/or email; identity fields cannot change"""
    guest = await service.update_guest_contact(guest_id, phone=request.phone, email=request.email)
    return _guest_to_response(guest)

# ============================================================================
# RESERVATION ENDPOINTS
# ============================================================================

def reservation_criteria(
    status: Optional[ReservationStatus] = None,
    date_range: Optional[DateRangePreset] = None,
    guest_name: Optional[str] = None,
    source: Optional[ReservationSource] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    room_number: Optional[str] = None,
    confirmation_code: Optional[str] = None,
    payment_status: Optional[PaymentStatus] = None,
    min_amount: Optional[Decimal] = None,
    max_amount: Optional[Decimal] = None,
) -> ReservationCriteria:
    """Reservation filters taken from the query string"""
    return ReservationCriteria(
        status=status,
        date_range=date_range,
        guest_name=guest_name,
        source=source,
        date_from=date_from,
        date_to=date_to,
        room_number=room_number,
        confirmation_code=confirmation_code,
        payment_status=payment_status,
        min_amount=min_amount,
        max_amount=max_amount,
    )

@app.post("/api/reservations", response_model=ReservationResponse, status_code=201, tags=["Reservations"])
async def create_reservation(
    request: CreateReservationRequest,
    service: ReservationService = Depends(get_reservation_service),
    ctx: OperatorContext = Depends(get_operator_context)
):
    """Create a PENDING reservation, registering the guest if new"""
    draft = ReservationDraft(**request.model_dump(exclude={"guest"}))
    guest_draft = GuestDraft(**request.guest.model_dump())
    reservation = await service.create_reservation(ctx, draft, guest_draft)
    return _reservation_to_response(reservation)

@app.get("/api/reservations", response_model=List[ReservationResponse], tags=["Reservations"])
async def get_reservations(
    criteria: ReservationCriteria = Depends(reservation_criteria),
    limit: Optional[int] = Query(None, ge=1, le=500),
    offset: int = Query(0, ge=0),
    service: ReservationService = Depends(get_reservation_service),
    ctx: OperatorContext = Depends(get_operator_context)
):
    """Branch reservations, newest first, filtered and paginated"""
    reservations = await service.list_reservations(ctx, criteria, limit=limit, offset=offset)
    return [_reservation_to_response(r) for r in reservations]

@app.get("/api/reservations/search", response_model=List[ReservationResponse], tags=["Reservations"])
async def search_reservations(
    term: str = "",
    service: ReservationService = Depends(get_reservation_service),
    ctx: OperatorContext = Depends(get_operator_context)
):
    """Search by confirmation code or guest name"""
    reservations = await service.search_reservations(ctx, term)
    return [_reservation_to_response(r) for r in reservations]

@app.get("/api/reservations/stats", response_model=ReservationStatsResponse, tags=["Reservations"])
async def get_reservation_stats(
    criteria: ReservationCriteria = Depends(reservation_criteria),
    service: ReservationService = Depends(get_reservation_service),
    ctx: OperatorContext = Depends(get_operator_context)
):
    stats = await service.get_stats(ctx, criteria)
    return ReservationStatsResponse(
        total=stats.total,
        by_status={status.value: count for status, count in stats.by_status.items()},
        total_revenue=_money(stats.total_revenue),
        total_paid=_money(stats.total_paid),
        pending_balance=_money(stats.pending_balance),
    )

@app.get("/api/reservations/today", response_model=List[ReservationResponse], tags=["Reservations"])
async def get_todays_reservations(
    service: ReservationService = Depends(get_reservation_service),
    ctx: OperatorContext = Depends(get_operator_context)
):
    """Arrivals and departures for today"""
    reservations = await service.todays_reservations(ctx)
    return [_reservation_to_response(r) for r in reservations]

@app.get("/api/reservations/code/{confirmation_code}", response_model=ReservationResponse, tags=["Reservations"])
async def get_reservation_by_code(
    confirmation_code: str,
    service: ReservationService = Depends(get_reservation_service),
    ctx: OperatorContext = Depends(get_operator_context)
):
    """Get reservation by confirmation code"""
    reservation = await service.get_reservation_by_confirmation_code(ctx, confirmation_code)
    return _reservation_to_response(reservation)

@app.get("/api/reservations/{reservation_id}", response_model=ReservationResponse, tags=["Reservations"])
async def get_reservation(
    reservation_id: UUID,
    service: ReservationService = Depends(get_reservation_service),
    ctx: OperatorContext = Depends(get_operator_context)
):
    """Get reservation by ID"""
    reservation = await service.get_reservation(ctx, reservation_id)
    return _reservation_to_response(reservation)

@app.put("/api/reservations/{reservation_id}", response_model=ReservationResponse, tags=["Reservations"])
async def modify_reservation(
    reservation_id: UUID,
    request: ModifyReservationRequest,
    service: ReservationService = Depends(get_reservation_service),
    ctx: OperatorContext = Depends(get_operator_context)
):
    """Move a pending or confirmed stay to other dates and/or another room"""
    reservation = await service.modify_reservation(
        ctx,
        reservation_id,
        check_in=request.check_in,
        check_out=request.check_out,
        room_id=request.room_id,
        total_amount=request.total_amount
    )
    return _reservation_to_response(reservation)

@app.post("/api/reservations/{reservation_id}/confirm", response_model=ReservationResponse, tags=["Reservations"])
async def confirm_reservation(
    reservation_id: UUID,
    service: ReservationService = Depends(get_reservation_service),
    ctx: OperatorContext = Depends(get_operator_context)
):
    reservation = await service.confirm_reservation(ctx, reservation_id)
    return _reservation_to_response(reservation)

@app.post("/api/reservations/{reservation_id}/check-in", response_model=ReservationResponse, tags=["Reservations"])
async def check_in_reservation(
    reservation_id: UUID,
    service: ReservationService = Depends(get_reservation_service),
    ctx: OperatorContext = Depends(get_operator_context)
):
    reservation = await service.check_in_guest(ctx, reservation_id)
    return _reservation_to_response(reservation)

@app.post("/api/reservations/{reservation_id}/check-out", response_model=ReservationResponse, tags=["Reservations"])
async def check_out_reservation(
    reservation_id: UUID,
    request: Optional[CheckOutRequest] = None,
    service: ReservationService = Depends(get_reservation_service),
    ctx: OperatorContext = Depends(get_operator_context)
):
    """Check out; refused while a balance is outstanding unless overridden"""
    override = request.override if request else False
    reservation = await service.check_out_guest(ctx, reservation_id, override=override)
    return _reservation_to_response(reservation)

@app.post("/api/reservations/{reservation_id}/cancel", response_model=ReservationResponse, tags=["Reservations"])
async def cancel_reservation(
    reservation_id: UUID,
    request: Optional[CancelReservationRequest] = None,
    service: ReservationService = Depends(get_reservation_service),
    ctx: OperatorContext = Depends(get_operator_context)
):
    reason = request.reason if request else ""
    reservation = await service.cancel_reservation(ctx, reservation_id, reason=reason)
    return _reservation_to_response(reservation)

@app.post("/api/reservations/{reservation_id}/no-show", response_model=ReservationResponse, tags=["Reservations"])
async def mark_no_show(
    reservation_id: UUID,
    service: ReservationService = Depends(get_reservation_service),
    ctx: OperatorContext = Depends(get_operator_context)
):
    reservation = await service.mark_no_show(ctx, reservation_id)
    return _reservation_to_response(reservation)

# ============================================================================
# PAYMENT ENDPOINTS
# ============================================================================

@app.post("/api/reservations/{reservation_id}/payments", response_model=PaymentResponse, status_code=201, tags=["Payments"])
async def record_payment(
    reservation_id: UUID,
    request: RecordPaymentRequest,
    ledger: PaymentLedger = Depends(get_payment_ledger),
    ctx: OperatorContext = Depends(get_operator_context)
):
    """Record a payment against the reservation balance"""
    payment = await ledger.record_payment(
        ctx,
        reservation_id,
        amount=request.amount,
        method=request.method,
        reference=request.reference,
        payment_date=request.payment_date,
        idempotency_key=request.idempotency_key
    )
    return _payment_to_response(payment)

@app.get("/api/reservations/{reservation_id}/payments", response_model=List[PaymentResponse], tags=["Payments"])
async def get_payments(
    reservation_id: UUID,
    ledger: PaymentLedger = Depends(get_payment_ledger),
    ctx: OperatorContext = Depends(get_operator_context)
):
    payments = await ledger.list_payments(ctx, reservation_id)
    return [_payment_to_response(p) for p in payments]

# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def _money(amount: Decimal) -> MoneyResponse:
    return MoneyResponse(amount=amount, currency=settings.currency)

def _reservation_to_response(reservation) -> ReservationResponse:
    """Convert Reservation entity to ReservationResponse"""
    return ReservationResponse(
        reservation_id=reservation.reservation_id,
        confirmation_code=reservation.confirmation_code,
        guest_id=reservation.guest_id,
        guest_name=reservation.guest_name,
        room_id=reservation.room_id,
        room_number=reservation.room_number,
        check_in=reservation.check_in,
        check_out=reservation.check_out,
        nights=reservation.nights,
        adults=reservation.guest_count.adults,
        children=reservation.guest_count.children,
        total_guests=reservation.guest_count.total,
        total_amount=_money(reservation.total_amount),
        paid_amount=_money(reservation.paid_amount),
        balance=_money(reservation.display_balance),
        payment_status=reservation.payment_status.value,
        status=reservation.status.value,
        status_label=reservation.status.label,
        source=reservation.source.value,
        special_requests=reservation.special_requests,
        created_at=reservation.created_at,
        created_by=reservation.created_by,
        modified_at=reservation.modified_at,
        checked_in_at=reservation.checked_in_at,
        checked_out_at=reservation.checked_out_at,
        cancelled_at=reservation.cancelled_at,
        cancelled_by=reservation.cancelled_by,
        cancellation_reason=reservation.cancellation_reason,
        version=reservation.version
    )

def _room_to_response(room) -> RoomResponse:
    return RoomResponse(
        room_id=room.room_id,
        room_number=room.room_number,
        floor=room.floor,
        room_type=room.room_type.value,
        capacity=room.capacity,
        base_rate=room.base_rate,
        currency=settings.currency,
        features=sorted(room.features),
        status=room.status.value
    )

def _guest_to_response(guest) -> GuestResponse:
    return GuestResponse(
        guest_id=guest.guest_id,
        full_name=guest.full_name,
        document_type=guest.document_type.value,
        document_number=guest.document_number,
        phone=guest.phone,
        email=guest.email,
        created_at=guest.created_at
    )

def _payment_to_response(payment) -> PaymentResponse:
    return PaymentResponse(
        payment_id=payment.payment_id,
        reservation_id=payment.reservation_id,
        amount=_money(payment.amount),
        method=payment.method.value,
        reference=payment.reference,
        payment_date=payment.payment_date,
        processed_by=payment.processed_by,
        created_at=payment.created_at
    )

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
