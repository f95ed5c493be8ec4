"""Reservation filtering, search and summary statistics"""
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel

from domain.entities import Reservation
from domain.enums import DateRangePreset, PaymentStatus, ReservationSource, ReservationStatus


class ReservationCriteria(BaseModel):
    """Conjunctive filter; every unset or blank field matches everything"""
    status: Optional[ReservationStatus] = None
    date_range: Optional[DateRangePreset] = None
    guest_name: Optional[str] = None
    source: Optional[ReservationSource] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    room_number: Optional[str] = None
    confirmation_code: Optional[str] = None
    payment_status: Optional[PaymentStatus] = None
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None


class ReservationStats(BaseModel):
    total: int
    by_status: Dict[ReservationStatus, int]
    total_revenue: Decimal
    total_paid: Decimal
    pending_balance: Decimal


def resolve_preset(preset: DateRangePreset, today: date) -> Tuple[date, date]:
    """Inclusive [from, to] check-in window for a preset"""
    if preset == DateRangePreset.TODAY:
        return today, today
    if preset == DateRangePreset.TOMORROW:
        tomorrow = today + timedelta(days=1)
        return tomorrow, tomorrow
    monday = today - timedelta(days=today.weekday())
    if preset == DateRangePreset.NEXT_WEEK:
        monday += timedelta(days=7)
    return monday, monday + timedelta(days=6)


def _text(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def matches(reservation: Reservation, criteria: ReservationCriteria, today: date) -> bool:
    if criteria.status is not None and reservation.status != criteria.status:
        return False
    if criteria.date_range is not None:
        start, end = resolve_preset(criteria.date_range, today)
        if not start <= reservation.check_in <= end:
            return False
    name = _text(criteria.guest_name)
    if name and name not in reservation.guest_name.lower():
        return False
    if criteria.source is not None and reservation.source != criteria.source:
        return False
    if criteria.date_from is not None and reservation.check_in < criteria.date_from:
        return False
    if criteria.date_to is not None and reservation.check_out > criteria.date_to:
        return False
    room_number = (criteria.room_number or "").strip()
    if room_number and reservation.room_number != room_number:
        return False
    code = _text(criteria.confirmation_code)
    if code and code not in reservation.confirmation_code.lower():
        return False
    if criteria.payment_status is not None and reservation.payment_status != criteria.payment_status:
        return False
    if criteria.min_amount is not None and reservation.total_amount < criteria.min_amount:
        return False
    if criteria.max_amount is not None and reservation.total_amount > criteria.max_amount:
        return False
    return True


def search(
    reservations: Iterable[Reservation],
    criteria: Optional[ReservationCriteria],
    today: date,
) -> List[Reservation]:
    """Keep the reservations matching every active criterion, order preserved"""
    if criteria is None:
        return list(reservations)
    return [r for r in reservations if matches(r, criteria, today)]


def match_term(reservation: Reservation, term: str) -> bool:
    """Free-text match on confirmation code or guest name"""
    needle = _text(term)
    return bool(needle) and (
        needle in reservation.confirmation_code.lower()
        or needle in reservation.guest_name.lower()
    )


def todays_activity(reservations: Iterable[Reservation], today: date) -> List[Reservation]:
    """Arrivals and departures for the day"""
    return [r for r in reservations if today in (r.check_in, r.check_out)]


def compute_stats(reservations: Iterable[Reservation]) -> ReservationStats:
    items = list(reservations)
    by_status = {status: 0 for status in ReservationStatus}
    for r in items:
        by_status[r.status] += 1
    return ReservationStats(
        total=len(items),
        by_status=by_status,
        total_revenue=sum((r.total_amount for r in items), Decimal("0.00")),
        total_paid=sum((r.paid_amount for r in items), Decimal("0.00")),
        pending_balance=sum((r.display_balance for r in items), Decimal("0.00")),
    )
