"""Domain Entities - Aggregates"""
from pydantic import BaseModel, ConfigDict, Field
from uuid import UUID, uuid4
from datetime import datetime, date, timezone
from typing import FrozenSet, Optional
from decimal import Decimal

from domain.enums import (
    ALLOWED_TRANSITIONS, DocumentType, PaymentMethod, PaymentStatus,
    ReservationSource, ReservationStatus, RoomStatus, RoomType,
)
from domain.errors import InvalidTransition, OutstandingBalance, TotalBelowPaid
from domain.value_objects import DateRange, GuestCount, to_money


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Guest(BaseModel):
    """Guest Entity. Identity fields are fixed once created."""
    model_config = ConfigDict(from_attributes=True)

    guest_id: UUID = Field(default_factory=uuid4)
    full_name: str
    document_type: DocumentType = DocumentType.DNI
    document_number: str
    phone: str = ""
    email: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)

    def update_contact(self, phone: Optional[str] = None, email: Optional[str] = None) -> None:
        if phone is not None:
            self.phone = phone.strip()
        if email is not None:
            self.email = email.strip() or None


class Room(BaseModel):
    """Room Entity"""
    model_config = ConfigDict(from_attributes=True)

    room_id: UUID = Field(default_factory=uuid4)
    branch_id: UUID
    room_number: str
    floor: int
    room_type: RoomType = RoomType.STANDARD
    capacity: int = Field(ge=1, default=2)
    base_rate: Decimal = Field(gt=0)
    features: FrozenSet[str] = frozenset()
    status: RoomStatus = RoomStatus.AVAILABLE

    def sort_key(self):
        """Numeric room numbers sort numerically, the rest lexically after them"""
        if self.room_number.isdigit():
            return (0, int(self.room_number), self.room_number)
        return (1, 0, self.room_number)


class Payment(BaseModel):
    """Payment Entity, immutable once recorded"""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    payment_id: UUID = Field(default_factory=uuid4)
    reservation_id: UUID
    amount: Decimal = Field(gt=0)
    method: PaymentMethod
    reference: Optional[str] = None
    payment_date: date
    processed_by: str
    created_at: datetime = Field(default_factory=utcnow)
    sequence: int = 0


class Reservation(BaseModel):
    """Reservation Aggregate Root Entity"""
    model_config = ConfigDict(from_attributes=True)

    # Identity
    reservation_id: UUID = Field(default_factory=uuid4)
    confirmation_code: str
    branch_id: UUID

    # References to other aggregates, with the names captured at booking time
    guest_id: UUID
    guest_name: str
    room_id: UUID
    room_number: str

    # Value Objects
    date_range: DateRange
    guest_count: GuestCount

    # Money
    total_amount: Decimal
    paid_amount: Decimal = Decimal("0.00")

    status: ReservationStatus = ReservationStatus.PENDING
    source: ReservationSource = ReservationSource.DIRECT
    special_requests: str = ""

    # Metadata
    created_at: datetime = Field(default_factory=utcnow)
    created_by: str = "SYSTEM"
    modified_at: datetime = Field(default_factory=utcnow)
    checked_in_at: Optional[datetime] = None
    checked_out_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    cancellation_reason: Optional[str] = None
    version: int = 1

    # ==================== FACTORY METHOD ====================
    @staticmethod
    def create(
        confirmation_code: str,
        branch_id: UUID,
        guest: Guest,
        room: Room,
        date_range: DateRange,
        guest_count: GuestCount,
        created_by: str,
        total_amount: Optional[Decimal] = None,
        source: ReservationSource = ReservationSource.DIRECT,
        special_requests: str = "",
        now: Optional[datetime] = None,
    ) -> "Reservation":
        """Create a PENDING reservation; availability must already be settled"""
        if total_amount is None:
            total_amount = Reservation.price_for(room, date_range)
        now = now or utcnow()
        return Reservation(
            confirmation_code=confirmation_code,
            branch_id=branch_id,
            guest_id=guest.guest_id,
            guest_name=guest.full_name,
            room_id=room.room_id,
            room_number=room.room_number,
            date_range=date_range,
            guest_count=guest_count,
            total_amount=to_money(total_amount),
            source=source,
            special_requests=special_requests.strip(),
            status=ReservationStatus.PENDING,
            created_at=now,
            modified_at=now,
            created_by=created_by,
        )

    @staticmethod
    def price_for(room: Room, date_range: DateRange) -> Decimal:
        return to_money(room.base_rate * date_range.nights())

    # ==================== DERIVED VALUES ====================
    @property
    def check_in(self) -> date:
        return self.date_range.check_in

    @property
    def check_out(self) -> date:
        return self.date_range.check_out

    @property
    def nights(self) -> int:
        return self.date_range.nights()

    @property
    def balance(self) -> Decimal:
        """Raw balance; negative would mean an overpayment slipped through"""
        return self.total_amount - self.paid_amount

    @property
    def display_balance(self) -> Decimal:
        return max(Decimal("0.00"), self.balance)

    @property
    def payment_status(self) -> PaymentStatus:
        if self.balance <= 0:
            return PaymentStatus.PAID
        if self.paid_amount > 0:
            return PaymentStatus.PARTIAL
        return PaymentStatus.PENDING

    def can_check_in(self, today: date) -> bool:
        return self.status == ReservationStatus.CONFIRMED and today >= self.check_in

    def accepts_payments(self) -> bool:
        return not self.status.is_terminal

    # ==================== STATE TRANSITION METHODS ====================
    def transition_to(
        self,
        target: ReservationStatus,
        today: date,
        now: datetime,
        override: bool = False,
        actor_id: Optional[str] = None,
        reason: str = "",
    ) -> None:
        """Apply any lifecycle transition by target status"""
        self._require_allowed(target)
        if target == ReservationStatus.CONFIRMED:
            self.confirm(now)
        elif target == ReservationStatus.CHECKED_IN:
            self.check_in_guest(today, now)
        elif target == ReservationStatus.CHECKED_OUT:
            self.check_out_guest(now, override=override)
        elif target == ReservationStatus.CANCELLED:
            self.cancel(actor_id or self.created_by, reason, now)
        elif target == ReservationStatus.NO_SHOW:
            self.mark_no_show(today, now)

    def confirm(self, now: datetime) -> None:
        self._require_allowed(ReservationStatus.CONFIRMED)
        self._move_to(ReservationStatus.CONFIRMED, now)

    def check_in_guest(self, today: date, now: datetime) -> None:
        self._require_allowed(ReservationStatus.CHECKED_IN)
        if not self.can_check_in(today):
            raise InvalidTransition(
                self.status, ReservationStatus.CHECKED_IN,
                f"check-in date is {self.check_in}",
            )
        self.checked_in_at = now
        self._move_to(ReservationStatus.CHECKED_IN, now)

    def check_out_guest(self, now: datetime, override: bool = False) -> None:
        self._require_allowed(ReservationStatus.CHECKED_OUT)
        if self.balance != 0 and not override:
            raise OutstandingBalance(self.status, ReservationStatus.CHECKED_OUT, self.balance)
        self.checked_out_at = now
        self._move_to(ReservationStatus.CHECKED_OUT, now)

    def cancel(self, actor_id: str, reason: str, now: datetime) -> None:
        self._require_allowed(ReservationStatus.CANCELLED)
        self.cancelled_at = now
        self.cancelled_by = actor_id
        self.cancellation_reason = reason.strip() or None
        self._move_to(ReservationStatus.CANCELLED, now)

    def mark_no_show(self, today: date, now: datetime) -> None:
        self._require_allowed(ReservationStatus.NO_SHOW)
        if today <= self.check_in:
            raise InvalidTransition(
                self.status, ReservationStatus.NO_SHOW,
                f"check-in date {self.check_in} has not passed yet",
            )
        self._move_to(ReservationStatus.NO_SHOW, now)

    # ==================== MODIFICATION METHODS ====================
    def reschedule(self, date_range: DateRange, room: Room, total_amount: Decimal, now: datetime) -> None:
        """Move the stay to other dates and/or another room"""
        if self.status not in (ReservationStatus.PENDING, ReservationStatus.CONFIRMED):
            raise InvalidTransition(self.status, self.status, "only pending or confirmed reservations can be edited")
        total_amount = to_money(total_amount)
        if total_amount < self.paid_amount:
            raise TotalBelowPaid(total_amount, self.paid_amount)
        self.date_range = date_range
        self.room_id = room.room_id
        self.room_number = room.room_number
        self.total_amount = total_amount
        self._touch(now)

    def apply_payment(self, amount: Decimal, now: datetime) -> None:
        """Credit an already validated payment"""
        self.paid_amount = to_money(self.paid_amount + amount)
        self._touch(now)

    # ==================== PRIVATE HELPERS ====================
    def _require_allowed(self, target: ReservationStatus) -> None:
        if (self.status, target) not in ALLOWED_TRANSITIONS:
            raise InvalidTransition(self.status, target)

    def _move_to(self, target: ReservationStatus, now: datetime) -> None:
        self.status = target
        self._touch(now)

    def _touch(self, now: datetime) -> None:
        self.modified_at = now
        self.version += 1
