"""Domain Enums"""
from enum import Enum


class ReservationStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CHECKED_IN = "CHECKED_IN"
    CHECKED_OUT = "CHECKED_OUT"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"

    @property
    def label(self) -> str:
        return _STATUS_LABELS[self]

    @property
    def color(self) -> str:
        return _STATUS_COLORS[self]

    @property
    def is_blocking(self) -> bool:
        """Whether a reservation in this status occupies its room"""
        return self in BLOCKING_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self in (
            ReservationStatus.CHECKED_OUT,
            ReservationStatus.CANCELLED,
            ReservationStatus.NO_SHOW,
        )


BLOCKING_STATUSES = frozenset({
    ReservationStatus.PENDING,
    ReservationStatus.CONFIRMED,
    ReservationStatus.CHECKED_IN,
})

# (from, to) pairs permitted by the reservation lifecycle
ALLOWED_TRANSITIONS = frozenset({
    (ReservationStatus.PENDING, ReservationStatus.CONFIRMED),
    (ReservationStatus.PENDING, ReservationStatus.CANCELLED),
    (ReservationStatus.CONFIRMED, ReservationStatus.CANCELLED),
    (ReservationStatus.CONFIRMED, ReservationStatus.CHECKED_IN),
    (ReservationStatus.CONFIRMED, ReservationStatus.NO_SHOW),
    (ReservationStatus.CHECKED_IN, ReservationStatus.CHECKED_OUT),
})

_STATUS_LABELS = {
    ReservationStatus.PENDING: "Pendiente",
    ReservationStatus.CONFIRMED: "Confirmada",
    ReservationStatus.CHECKED_IN: "Check-in",
    ReservationStatus.CHECKED_OUT: "Check-out",
    ReservationStatus.CANCELLED: "Cancelada",
    ReservationStatus.NO_SHOW: "No-show",
}

_STATUS_COLORS = {
    ReservationStatus.PENDING: "yellow",
    ReservationStatus.CONFIRMED: "green",
    ReservationStatus.CHECKED_IN: "blue",
    ReservationStatus.CHECKED_OUT: "gray",
    ReservationStatus.CANCELLED: "red",
    ReservationStatus.NO_SHOW: "darkred",
}


class ReservationSource(str, Enum):
    DIRECT = "DIRECT"
    WEBSITE = "WEBSITE"
    PHONE = "PHONE"
    WALK_IN = "WALK_IN"
    BOOKING_COM = "BOOKING_COM"
    EXPEDIA = "EXPEDIA"
    AIRBNB = "AIRBNB"


class PaymentMethod(str, Enum):
    CASH = "CASH"
    TRANSFER = "TRANSFER"
    DIGITAL_WALLET = "DIGITAL_WALLET"

    @property
    def requires_reference(self) -> bool:
        return self is not PaymentMethod.CASH

    @property
    def label(self) -> str:
        return {
            PaymentMethod.CASH: "Efectivo",
            PaymentMethod.TRANSFER: "Transferencia",
            PaymentMethod.DIGITAL_WALLET: "Billetera digital",
        }[self]


class PaymentStatus(str, Enum):
    PAID = "PAID"
    PARTIAL = "PARTIAL"
    PENDING = "PENDING"


class DocumentType(str, Enum):
    DNI = "DNI"
    PASSPORT = "PASSPORT"
    CE = "CE"
    RUC = "RUC"


class RoomType(str, Enum):
    STANDARD = "STANDARD"
    DELUXE = "DELUXE"
    SUITE = "SUITE"
    JUNIOR_SUITE = "JUNIOR_SUITE"


class RoomStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    OCCUPIED = "OCCUPIED"
    CLEANING = "CLEANING"
    MAINTENANCE = "MAINTENANCE"


class DateRangePreset(str, Enum):
    TODAY = "today"
    TOMORROW = "tomorrow"
    THIS_WEEK = "this_week"
    NEXT_WEEK = "next_week"
