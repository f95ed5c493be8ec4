"""Domain Repository Interfaces

The persistence boundary. Implementations own atomicity: ``create`` on the
reservation repository must re-check room conflicts in the same unit of
work as the insert, and ``add`` on the payment repository must re-check the
balance in the same unit of work as crediting the reservation.
"""
from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from domain.entities import Guest, Payment, Reservation, Room
from domain.enums import ReservationStatus
from domain.filters import ReservationCriteria
from domain.value_objects import DateRange


class GuestRepository(ABC):
    """Repository interface for Guest"""

    @abstractmethod
    async def save(self, guest: Guest) -> Guest:
        """Insert or replace a guest"""
        pass

    @abstractmethod
    async def find_by_id(self, guest_id: UUID) -> Optional[Guest]:
        pass

    @abstractmethod
    async def search(self, term: str, limit: int) -> List[Guest]:
        """Match name, phone or document number, newest first"""
        pass


class RoomRepository(ABC):
    """Repository interface for Room"""

    @abstractmethod
    async def save(self, room: Room) -> Room:
        pass

    @abstractmethod
    async def find_by_id(self, room_id: UUID) -> Optional[Room]:
        pass

    @abstractmethod
    async def find_by_branch(self, branch_id: UUID) -> List[Room]:
        """All rooms of a branch with their housekeeping status"""
        pass

    @abstractmethod
    async def find_available(self, branch_id: UUID, date_range: DateRange) -> List[Room]:
        """Rooms without a blocking reservation in the range"""
        pass


class ReservationRepository(ABC):
    """Repository interface for Reservation Aggregate"""

    @abstractmethod
    async def create(self, reservation: Reservation, guest: Guest) -> Reservation:
        """Upsert the guest and insert the reservation.

        Raises RoomUnavailable when a blocking reservation for the same room
        and overlapping dates was stored first.
        """
        pass

    @abstractmethod
    async def find_by_id(self, reservation_id: UUID) -> Optional[Reservation]:
        pass

    @abstractmethod
    async def find_by_confirmation_code(self, code: str) -> Optional[Reservation]:
        pass

    @abstractmethod
    async def find_by_branch(
        self,
        branch_id: UUID,
        criteria: Optional[ReservationCriteria] = None,
        today: Optional[date] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Reservation]:
        """Branch reservations, newest first, filtered relative to ``today``"""
        pass

    @abstractmethod
    async def find_blocking(
        self,
        room_id: UUID,
        date_range: DateRange,
        exclude_reservation_id: Optional[UUID] = None,
    ) -> List[Reservation]:
        """Blocking reservations of one room overlapping the range"""
        pass

    @abstractmethod
    async def next_confirmation_sequence(self, year: int) -> int:
        pass

    @abstractmethod
    async def update_status(
        self,
        reservation_id: UUID,
        new_status: ReservationStatus,
        actor_id: str,
        expected_version: int,
        at: datetime,
    ) -> Reservation:
        """Persist a status change; stamps check-in/check-out times"""
        pass

    @abstractmethod
    async def cancel(
        self,
        reservation_id: UUID,
        actor_id: str,
        reason: str,
        expected_version: int,
        at: datetime,
    ) -> Reservation:
        pass

    @abstractmethod
    async def reschedule(self, reservation: Reservation, expected_version: int) -> Reservation:
        """Store new dates/room, re-checking conflicts excluding itself"""
        pass


class PaymentRepository(ABC):
    """Repository interface for the payment ledger"""

    @abstractmethod
    async def add(self, payment: Payment, idempotency_key: Optional[str] = None) -> Payment:
        """Append a payment and credit its reservation.

        Raises OverPayment if the balance changed underneath the caller.
        """
        pass

    @abstractmethod
    async def find_by_idempotency_key(self, reservation_id: UUID, key: str) -> Optional[Payment]:
        pass

    @abstractmethod
    async def list_by_reservation(self, reservation_id: UUID) -> List[Payment]:
        """Payments ordered by payment date, then insertion order"""
        pass
