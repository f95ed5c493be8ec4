"""Domain Value Objects"""
from pydantic import BaseModel, ConfigDict, Field, model_validator
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from uuid import UUID
from typing import Optional, Union

from domain.enums import DocumentType, ReservationSource
from domain.errors import InvalidAmount, InvalidDateRange, InvalidGuestCount

CENTS = Decimal("0.01")


def to_money(value) -> Decimal:
    """Normalise a numeric value to a two-decimal Decimal"""
    try:
        return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        raise InvalidAmount(value)


def _parse_date(value: Union[date, str, None]) -> Optional[date]:
    if value is None or isinstance(value, date):
        return value
    return date.fromisoformat(value)


class DateRange(BaseModel):
    """Half-open stay interval [check_in, check_out)"""
    model_config = ConfigDict(frozen=True)

    check_in: date
    check_out: date

    @model_validator(mode="after")
    def check_out_after_check_in(self):
        if self.check_out <= self.check_in:
            raise ValueError("Check-out must be after check-in")
        return self

    @classmethod
    def between(cls, check_in: Union[date, str, None], check_out: Union[date, str, None]) -> "DateRange":
        """Build a range, raising InvalidDateRange instead of a validation error"""
        try:
            start = _parse_date(check_in)
            end = _parse_date(check_out)
        except (TypeError, ValueError):
            raise InvalidDateRange(None, None, f"Unparsable dates: {check_in!r}, {check_out!r}")
        if start is None or end is None:
            raise InvalidDateRange(start, end, "Both check-in and check-out dates are required")
        if end <= start:
            raise InvalidDateRange(start, end)
        return cls(check_in=start, check_out=end)

    def nights(self) -> int:
        """Calculate number of nights"""
        return max(1, (self.check_out - self.check_in).days)

    def overlaps(self, other: "DateRange") -> bool:
        # a checkout on the same day as another check-in does not overlap
        return self.check_in < other.check_out and self.check_out > other.check_in


class GuestCount(BaseModel):
    """Value Object for guest count"""
    model_config = ConfigDict(frozen=True)

    adults: int = Field(ge=1)
    children: int = Field(ge=0, default=0)

    @classmethod
    def of(cls, adults: int, children: int = 0) -> "GuestCount":
        """Build a count, raising InvalidGuestCount instead of a validation error"""
        if adults is None or adults < 1 or children is None or children < 0:
            raise InvalidGuestCount(adults, children)
        return cls(adults=adults, children=children)

    @property
    def total(self) -> int:
        return self.adults + self.children


class OperatorContext(BaseModel):
    """Who is acting, and on which branch"""
    model_config = ConfigDict(frozen=True)

    branch_id: UUID
    actor_id: str


class GuestDraft(BaseModel):
    """Guest data supplied with a new reservation or registration"""
    guest_id: Optional[UUID] = None
    full_name: str = ""
    document_type: DocumentType = DocumentType.DNI
    document_number: str = ""
    phone: str = ""
    email: Optional[str] = None


class ReservationDraft(BaseModel):
    """Everything the caller decides about a new reservation"""
    room_id: UUID
    check_in: Union[date, str]
    check_out: Union[date, str]
    adults: int = 1
    children: int = 0
    total_amount: Optional[Decimal] = None
    special_requests: str = ""
    source: ReservationSource = ReservationSource.DIRECT


def confirmation_code(prefix: str, year: int, sequence: int) -> str:
    """Human readable reservation code, e.g. HTP-2024-001"""
    return f"{prefix}-{year:04d}-{sequence:03d}"
