"""API Schemas - Request and Response DTOs"""
from pydantic import BaseModel, Field
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from typing import Dict, List, Optional

from domain.enums import DocumentType, PaymentMethod, ReservationSource


# ============================================================================
# GUEST SCHEMAS
# ============================================================================

class GuestRequest(BaseModel):
    """Guest data sent with a reservation or a registration.

    Send ``guest_id`` alone to reuse an existing guest.
    """
    guest_id: Optional[UUID] = None
    full_name: str = ""
    document_type: DocumentType = DocumentType.DNI
    document_number: str = ""
    phone: str = ""
    email: Optional[str] = None


class UpdateGuestContactRequest(BaseModel):
    phone: Optional[str] = None
    email: Optional[str] = None


class GuestResponse(BaseModel):
    """Guest response DTO"""
    guest_id: UUID
    full_name: str
    document_type: str
    document_number: str
    phone: str
    email: Optional[str] = None
    created_at: datetime


# ============================================================================
# ROOM SCHEMAS
# ============================================================================

class RoomResponse(BaseModel):
    """Room response DTO"""
    room_id: UUID
    room_number: str
    floor: int
    room_type: str
    capacity: int
    base_rate: Decimal
    currency: str
    features: List[str]
    status: str


class RoomAvailabilityResponse(BaseModel):
    room_id: UUID
    check_in: date
    check_out: date
    available: bool


# ============================================================================
# RESERVATION SCHEMAS
# ============================================================================

class CreateReservationRequest(BaseModel):
    """Create reservation request DTO"""
    room_id: UUID
    check_in: date
    check_out: date
    adults: int = Field(ge=1, le=10, default=1)
    children: int = Field(ge=0, le=10, default=0)
    total_amount: Optional[Decimal] = None
    special_requests: str = ""
    source: ReservationSource = Field(default=ReservationSource.DIRECT, description="Source of reservation")
    guest: GuestRequest


class ModifyReservationRequest(BaseModel):
    """Modify reservation request DTO"""
    check_in: Optional[date] = None
    check_out: Optional[date] = None
    room_id: Optional[UUID] = None
    total_amount: Optional[Decimal] = None


class CheckOutRequest(BaseModel):
    # lets a supervisor close a stay that still has a balance
    override: bool = False


class CancelReservationRequest(BaseModel):
    """Cancel reservation request DTO"""
    reason: str = ""


class MoneyResponse(BaseModel):
    """Money response DTO"""
    amount: Decimal
    currency: str


class ReservationResponse(BaseModel):
    """Reservation response DTO"""
    reservation_id: UUID
    confirmation_code: str
    guest_id: UUID
    guest_name: str
    room_id: UUID
    room_number: str
    check_in: date
    check_out: date
    nights: int
    adults: int
    children: int
    total_guests: int
    total_amount: MoneyResponse
    paid_amount: MoneyResponse
    balance: MoneyResponse
    payment_status: str
    status: str
    status_label: str
    source: str
    special_requests: str
    created_at: datetime
    created_by: str
    modified_at: datetime
    checked_in_at: Optional[datetime] = None
    checked_out_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    cancellation_reason: Optional[str] = None
    version: int


class ReservationStatsResponse(BaseModel):
    total: int
    by_status: Dict[str, int]
    total_revenue: MoneyResponse
    total_paid: MoneyResponse
    pending_balance: MoneyResponse


# ============================================================================
# PAYMENT SCHEMAS
# ============================================================================

class RecordPaymentRequest(BaseModel):
    """Record payment request DTO"""
    amount: Decimal
    method: PaymentMethod
    reference: Optional[str] = None
    payment_date: Optional[date] = None
    idempotency_key: Optional[str] = None


class PaymentResponse(BaseModel):
    """Payment response DTO"""
    payment_id: UUID
    reservation_id: UUID
    amount: MoneyResponse
    method: str
    reference: Optional[str] = None
    payment_date: date
    processed_by: str
    created_at: datetime


# ============================================================================
# AUTH SCHEMAS
# ============================================================================

class Token(BaseModel):
    """Token response DTO"""
    access_token: str
    token_type: str

class TokenData(BaseModel):
    """Token payload DTO"""
    username: Optional[str] = None

class UserResponse(BaseModel):
    """User response DTO"""
    user_id: UUID
    username: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    branch_id: UUID
    disabled: bool
