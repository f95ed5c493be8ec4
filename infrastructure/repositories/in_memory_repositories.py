"""In-Memory Repository Implementations

Entities are copied on the way in and on the way out, so callers never
hold a live reference to stored state. A single ``asyncio.Lock`` owned by
the reservation repository serialises every write that has to re-check
room conflicts or balances.
"""
import asyncio
import logging
from collections import defaultdict
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from domain.availability import available_rooms, blocking_conflicts
from domain.entities import Guest, Payment, Reservation, Room
from domain.enums import ReservationStatus
from domain.errors import (
    ConcurrencyConflict, NotFound, OverPayment, PaymentNotAllowed, RoomUnavailable, TotalBelowPaid,
)
from domain.filters import ReservationCriteria, search
from domain.repositories import GuestRepository, PaymentRepository, ReservationRepository, RoomRepository
from domain.value_objects import DateRange

logger = logging.getLogger(__name__)


class InMemoryGuestRepository(GuestRepository):
    """In-memory implementation of GuestRepository"""

    def __init__(self):
        self._storage: Dict[UUID, Guest] = {}

    async def save(self, guest: Guest) -> Guest:
        self._storage[guest.guest_id] = guest.model_copy(deep=True)
        return guest.model_copy(deep=True)

    async def find_by_id(self, guest_id: UUID) -> Optional[Guest]:
        guest = self._storage.get(guest_id)
        return guest.model_copy(deep=True) if guest else None

    async def search(self, term: str, limit: int) -> List[Guest]:
        needle = term.strip().lower()
        found = [
            g for g in self._storage.values()
            if needle in g.full_name.lower()
            or needle in g.phone.lower()
            or needle in g.document_number.lower()
        ]
        found.sort(key=lambda g: g.created_at, reverse=True)
        return [g.model_copy(deep=True) for g in found[:limit]]


class InMemoryReservationRepository(ReservationRepository):
    """In-memory implementation of ReservationRepository"""

    def __init__(self, guest_repository: InMemoryGuestRepository):
        self._storage: Dict[UUID, Reservation] = {}
        self._sequences: Dict[int, int] = defaultdict(int)
        self._guests = guest_repository
        self.lock = asyncio.Lock()

    async def create(self, reservation: Reservation, guest: Guest) -> Reservation:
        async with self.lock:
            conflicts = blocking_conflicts(self._storage.values(), reservation.room_id, reservation.date_range)
            if conflicts:
                logger.warning("Lost booking race for room %s", reservation.room_number)
                raise RoomUnavailable(reservation.room_id, [r.reservation_id for r in conflicts])
            if await self._guests.find_by_id(guest.guest_id) is None:
                await self._guests.save(guest)
            self._storage[reservation.reservation_id] = reservation.model_copy(deep=True)
        return reservation.model_copy(deep=True)

    async def find_by_id(self, reservation_id: UUID) -> Optional[Reservation]:
        reservation = self._storage.get(reservation_id)
        return reservation.model_copy(deep=True) if reservation else None

    async def find_by_confirmation_code(self, code: str) -> Optional[Reservation]:
        for reservation in self._storage.values():
            if reservation.confirmation_code == code:
                return reservation.model_copy(deep=True)
        return None

    async def find_by_branch(
        self,
        branch_id: UUID,
        criteria: Optional[ReservationCriteria] = None,
        today: Optional[date] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Reservation]:
        items = [r for r in self._storage.values() if r.branch_id == branch_id]
        items.sort(key=lambda r: r.created_at, reverse=True)
        if criteria is not None:
            items = search(items, criteria, today or date.today())
        end = None if limit is None else offset + limit
        return [r.model_copy(deep=True) for r in items[offset:end]]

    async def find_blocking(
        self,
        room_id: UUID,
        date_range: DateRange,
        exclude_reservation_id: Optional[UUID] = None,
    ) -> List[Reservation]:
        conflicts = blocking_conflicts(self._storage.values(), room_id, date_range, exclude_reservation_id)
        return [r.model_copy(deep=True) for r in conflicts]

    async def next_confirmation_sequence(self, year: int) -> int:
        async with self.lock:
            self._sequences[year] += 1
            return self._sequences[year]

    def _current(self, reservation_id: UUID, expected_version: int) -> Reservation:
        """Stored reservation, provided nobody changed it since ``expected_version``"""
        stored = self._storage.get(reservation_id)
        if stored is None:
            raise NotFound("Reservation", reservation_id)
        if stored.version != expected_version:
            raise ConcurrencyConflict(reservation_id, expected_version, stored.version)
        return stored

    async def update_status(
        self,
        reservation_id: UUID,
        new_status: ReservationStatus,
        actor_id: str,
        expected_version: int,
        at: datetime,
    ) -> Reservation:
        async with self.lock:
            stored = self._current(reservation_id, expected_version)
            stored.status = new_status
            if new_status == ReservationStatus.CHECKED_IN:
                stored.checked_in_at = at
            elif new_status == ReservationStatus.CHECKED_OUT:
                stored.checked_out_at = at
            stored.modified_at = at
            stored.version += 1
            return stored.model_copy(deep=True)

    async def cancel(
        self,
        reservation_id: UUID,
        actor_id: str,
        reason: str,
        expected_version: int,
        at: datetime,
    ) -> Reservation:
        async with self.lock:
            stored = self._current(reservation_id, expected_version)
            stored.status = ReservationStatus.CANCELLED
            stored.cancelled_at = at
            stored.cancelled_by = actor_id
            stored.cancellation_reason = reason.strip() or None
            stored.modified_at = at
            stored.version += 1
            return stored.model_copy(deep=True)

    async def reschedule(self, reservation: Reservation, expected_version: int) -> Reservation:
        async with self.lock:
            stored = self._current(reservation.reservation_id, expected_version)
            if reservation.total_amount < stored.paid_amount:
                raise TotalBelowPaid(reservation.total_amount, stored.paid_amount)
            conflicts = blocking_conflicts(
                self._storage.values(), reservation.room_id, reservation.date_range, reservation.reservation_id)
            if conflicts:
                raise RoomUnavailable(reservation.room_id, [r.reservation_id for r in conflicts])
            self._storage[reservation.reservation_id] = reservation.model_copy(deep=True)
        return reservation.model_copy(deep=True)

    def stored(self, reservation_id: UUID) -> Optional[Reservation]:
        """Live stored instance; only call while holding ``lock``"""
        return self._storage.get(reservation_id)


class InMemoryRoomRepository(RoomRepository):
    """In-memory implementation of RoomRepository"""

    def __init__(self, reservation_repository: InMemoryReservationRepository):
        self._storage: Dict[UUID, Room] = {}
        self._reservations = reservation_repository

    async def save(self, room: Room) -> Room:
        self._storage[room.room_id] = room.model_copy(deep=True)
        return room.model_copy(deep=True)

    async def find_by_id(self, room_id: UUID) -> Optional[Room]:
        room = self._storage.get(room_id)
        return room.model_copy(deep=True) if room else None

    async def find_by_branch(self, branch_id: UUID) -> List[Room]:
        return [r.model_copy(deep=True) for r in self._storage.values() if r.branch_id == branch_id]

    async def find_available(self, branch_id: UUID, date_range: DateRange) -> List[Room]:
        rooms = await self.find_by_branch(branch_id)
        reservations = await self._reservations.find_by_branch(branch_id)
        return available_rooms(rooms, reservations, date_range)


class InMemoryPaymentRepository(PaymentRepository):
    """In-memory implementation of PaymentRepository"""

    def __init__(self, reservation_repository: InMemoryReservationRepository):
        self._storage: Dict[UUID, List[Payment]] = defaultdict(list)
        self._idempotency: Dict[Tuple[UUID, str], Payment] = {}
        self._reservations = reservation_repository
        self._sequence = 0

    async def add(self, payment: Payment, idempotency_key: Optional[str] = None) -> Payment:
        async with self._reservations.lock:
            if idempotency_key and (payment.reservation_id, idempotency_key) in self._idempotency:
                return self._idempotency[(payment.reservation_id, idempotency_key)]

            reservation = self._reservations.stored(payment.reservation_id)
            if reservation is None:
                raise NotFound("Reservation", payment.reservation_id)
            if not reservation.accepts_payments():
                raise PaymentNotAllowed(reservation.status)
            if payment.amount > reservation.balance:
                raise OverPayment(payment.amount, reservation.balance)

            self._sequence += 1
            stored = payment.model_copy(update={"sequence": self._sequence})
            reservation.apply_payment(stored.amount, stored.created_at)
            self._storage[payment.reservation_id].append(stored)
            if idempotency_key:
                self._idempotency[(payment.reservation_id, idempotency_key)] = stored
        return stored

    async def find_by_idempotency_key(self, reservation_id: UUID, key: str) -> Optional[Payment]:
        return self._idempotency.get((reservation_id, key))

    async def list_by_reservation(self, reservation_id: UUID) -> List[Payment]:
        payments = self._storage.get(reservation_id, [])
        return sorted(payments, key=lambda p: (p.payment_date, p.sequence))
