"""Application Services - Business use cases"""
import logging
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import List, Optional, Union
from uuid import UUID

from config import Settings, get_settings
from application.clock import Clock, SystemClock
from domain.entities import Guest, Payment, Reservation, Room
from domain.enums import PaymentMethod, ReservationStatus
from domain.errors import (
    DomainError, InvalidAmount, InvalidGuestData, InvalidTransition, MissingReference,
    NotFound, OverPayment, PaymentNotAllowed, PersistenceError, RoomUnavailable,
    TotalBelowPaid,
)
from domain.filters import (
    ReservationCriteria, ReservationStats, compute_stats, match_term, search, todays_activity,
)
from domain.repositories import GuestRepository, PaymentRepository, ReservationRepository, RoomRepository
from domain.value_objects import (
    DateRange, GuestCount, GuestDraft, OperatorContext, ReservationDraft, confirmation_code, to_money,
)

logger = logging.getLogger(__name__)

DateLike = Union[date, str, None]


@contextmanager
def persistence_errors(operation: str, entity_id=None):
    """Re-raise unexpected repository failures with the operation attached"""
    try:
        yield
    except DomainError:
        raise
    except Exception as exc:
        logger.error("%s failed for %s", operation, entity_id, exc_info=True)
        raise PersistenceError(operation, entity_id, str(exc)) from exc


def validate_guest_draft(draft: GuestDraft) -> List[str]:
    """Collect every problem with a new guest's data"""
    errors = []
    document_number = draft.document_number.strip()
    phone = draft.phone.strip()

    if not draft.full_name.strip():
        errors.append("Full name is required")
    if not document_number:
        errors.append("Document number is required")
    elif len(document_number) < 6:
        errors.append("Document number must have at least 6 characters")
    if phone and len(phone) < 7:
        errors.append("Phone must have at least 7 digits")
    return errors


class GuestService:
    """Service for guest registration and lookup"""

    def __init__(self, repository: GuestRepository, settings: Optional[Settings] = None):
        self.repository = repository
        self.settings = settings or get_settings()

    def build_guest(self, draft: GuestDraft) -> Guest:
        """Validate a draft and turn it into an unsaved Guest"""
        errors = validate_guest_draft(draft)
        if errors:
            raise InvalidGuestData(errors)
        return Guest(
            full_name=draft.full_name.strip(),
            document_type=draft.document_type,
            document_number=draft.document_number.strip(),
            phone=draft.phone.strip(),
            email=(draft.email or "").strip() or None,
        )

    async def register_guest(self, draft: GuestDraft) -> Guest:
        guest = self.build_guest(draft)
        with persistence_errors("register_guest", guest.guest_id):
            saved = await self.repository.save(guest)
        logger.info("Registered guest %s", saved.guest_id)
        return saved

    async def get_guest(self, guest_id: UUID) -> Guest:
        with persistence_errors("get_guest", guest_id):
            guest = await self.repository.find_by_id(guest_id)
        if guest is None:
            raise NotFound("Guest", guest_id)
        return guest

    async def resolve_guest(self, draft: GuestDraft) -> Guest:
        """Existing guest by id, otherwise a new validated one"""
        if draft.guest_id is not None:
            return await self.get_guest(draft.guest_id)
        return self.build_guest(draft)

    async def update_guest_contact(
        self,
        guest_id: UUID,
        phone: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Guest:
        guest = await self.get_guest(guest_id)
        if phone is not None and phone.strip() and len(phone.strip()) < 7:
            raise InvalidGuestData(["Phone must have at least 7 digits"])
        guest.update_contact(phone=phone, email=email)
        with persistence_errors("update_guest_contact", guest_id):
            return await self.repository.save(guest)

    async def search_guests(self, term: str, limit: Optional[int] = None) -> List[Guest]:
        if not term or not term.strip():
            return []
        with persistence_errors("search_guests", term):
            return await self.repository.search(term.strip(), limit or self.settings.guest_search_limit)


class AvailabilityService:
    """Answers which rooms are free for a stay"""

    def __init__(self, room_repository: RoomRepository, reservation_repository: ReservationRepository):
        self.room_repository = room_repository
        self.reservation_repository = reservation_repository

    async def list_rooms(self, branch_id: UUID) -> List[Room]:
        with persistence_errors("get_rooms_with_status", branch_id):
            rooms = await self.room_repository.find_by_branch(branch_id)
        return sorted(rooms, key=Room.sort_key)

    async def get_room(self, room_id: UUID, branch_id: Optional[UUID] = None) -> Room:
        with persistence_errors("get_room", room_id):
            room = await self.room_repository.find_by_id(room_id)
        if room is None or (branch_id is not None and room.branch_id != branch_id):
            raise NotFound("Room", room_id)
        return room

    async def find_available_rooms(self, branch_id: UUID, check_in: DateLike, check_out: DateLike) -> List[Room]:
        """Rooms of the branch with no blocking reservation overlapping the stay"""
        date_range = DateRange.between(check_in, check_out)
        with persistence_errors("find_available_rooms", branch_id):
            rooms = await self.room_repository.find_available(branch_id, date_range)
        return sorted(rooms, key=Room.sort_key)

    async def find_conflicts(
        self,
        room_id: UUID,
        date_range: DateRange,
        exclude_reservation_id: Optional[UUID] = None,
    ) -> List[Reservation]:
        with persistence_errors("find_conflicts", room_id):
            return await self.reservation_repository.find_blocking(room_id, date_range, exclude_reservation_id)

    async def is_room_available(
        self,
        room_id: UUID,
        check_in: DateLike,
        check_out: DateLike,
        exclude_reservation_id: Optional[UUID] = None,
    ) -> bool:
        date_range = DateRange.between(check_in, check_out)
        await self.get_room(room_id)
        conflicts = await self.find_conflicts(room_id, date_range, exclude_reservation_id)
        return not conflicts

    async def ensure_available(
        self,
        room_id: UUID,
        date_range: DateRange,
        exclude_reservation_id: Optional[UUID] = None,
    ) -> None:
        conflicts = await self.find_conflicts(room_id, date_range, exclude_reservation_id)
        if conflicts:
            ids = [r.reservation_id for r in conflicts]
            logger.warning("Room %s unavailable %s..%s, conflicts %s",
                           room_id, date_range.check_in, date_range.check_out, ids)
            raise RoomUnavailable(room_id, ids)


class ReservationService:
    """Reservation lifecycle and queries"""

    def __init__(
        self,
        repository: ReservationRepository,
        availability: AvailabilityService,
        guests: GuestService,
        clock: Optional[Clock] = None,
        settings: Optional[Settings] = None,
    ):
        self.repository = repository
        self.availability = availability
        self.guests = guests
        self.clock = clock or SystemClock()
        self.settings = settings or get_settings()

    # ==================== CREATION ====================
    async def create_reservation(
        self,
        ctx: OperatorContext,
        draft: ReservationDraft,
        guest_draft: GuestDraft,
    ) -> Reservation:
        """Book a room for a guest; the reservation starts PENDING"""
        date_range = DateRange.between(draft.check_in, draft.check_out)
        guest_count = GuestCount.of(draft.adults, draft.children)
        total_amount = None
        if draft.total_amount is not None:
            total_amount = to_money(draft.total_amount)
            if total_amount <= 0:
                raise InvalidAmount(draft.total_amount)

        room = await self.availability.get_room(draft.room_id, ctx.branch_id)
        await self.availability.ensure_available(room.room_id, date_range)
        guest = await self.guests.resolve_guest(guest_draft)

        now = self.clock.now()
        year = self.clock.today().year
        with persistence_errors("next_confirmation_sequence", year):
            sequence = await self.repository.next_confirmation_sequence(year)
        reservation = Reservation.create(
            confirmation_code=confirmation_code(self.settings.confirmation_prefix, year, sequence),
            branch_id=ctx.branch_id,
            guest=guest,
            room=room,
            date_range=date_range,
            guest_count=guest_count,
            created_by=ctx.actor_id,
            total_amount=total_amount,
            source=draft.source,
            special_requests=draft.special_requests,
            now=now,
        )
        with persistence_errors("create_reservation", room.room_id):
            saved = await self.repository.create(reservation, guest)

        logger.info("Created reservation %s for room %s (%s..%s)",
                    saved.confirmation_code, room.room_number, date_range.check_in, date_range.check_out)
        return saved

    # ==================== QUERIES ====================
    async def get_reservation(self, ctx: OperatorContext, reservation_id: UUID) -> Reservation:
        with persistence_errors("get_reservation", reservation_id):
            reservation = await self.repository.find_by_id(reservation_id)
        if reservation is None or reservation.branch_id != ctx.branch_id:
            raise NotFound("Reservation", reservation_id)
        return reservation

    async def get_reservation_by_confirmation_code(self, ctx: OperatorContext, code: str) -> Reservation:
        with persistence_errors("get_reservation_by_code", code):
            reservation = await self.repository.find_by_confirmation_code(code.strip().upper())
        if reservation is None or reservation.branch_id != ctx.branch_id:
            raise NotFound("Reservation", code)
        return reservation

    async def list_reservations(
        self,
        ctx: OperatorContext,
        criteria: Optional[ReservationCriteria] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Reservation]:
        with persistence_errors("get_reservations_by_branch", ctx.branch_id):
            return await self.repository.find_by_branch(
                ctx.branch_id,
                criteria or ReservationCriteria(),
                self.clock.today(),
                limit=limit or self.settings.default_page_size,
                offset=offset,
            )

    async def search_reservations(self, ctx: OperatorContext, term: str) -> List[Reservation]:
        if not term or not term.strip():
            return []
        with persistence_errors("search_reservations", ctx.branch_id):
            reservations = await self.repository.find_by_branch(ctx.branch_id)
        found = [r for r in reservations if match_term(r, term)]
        return found[:self.settings.reservation_search_limit]

    async def todays_reservations(self, ctx: OperatorContext) -> List[Reservation]:
        with persistence_errors("todays_reservations", ctx.branch_id):
            reservations = await self.repository.find_by_branch(ctx.branch_id)
        return todays_activity(reservations, self.clock.today())

    async def get_stats(self, ctx: OperatorContext, criteria: Optional[ReservationCriteria] = None) -> ReservationStats:
        with persistence_errors("reservation_stats", ctx.branch_id):
            reservations = await self.repository.find_by_branch(ctx.branch_id)
        return compute_stats(search(reservations, criteria, self.clock.today()))

    # ==================== STATE TRANSITIONS ====================
    async def transition(
        self,
        ctx: OperatorContext,
        reservation_id: UUID,
        target: ReservationStatus,
        override: bool = False,
        reason: str = "",
    ) -> Reservation:
        """Move a reservation to ``target`` if the lifecycle allows it"""
        reservation = await self.get_reservation(ctx, reservation_id)
        expected_version = reservation.version
        now = self.clock.now()
        try:
            reservation.transition_to(
                target, self.clock.today(), now,
                override=override, actor_id=ctx.actor_id, reason=reason,
            )
        except InvalidTransition as e:
            logger.warning("Rejected transition of %s: %s", reservation.confirmation_code, e)
            raise

        with persistence_errors("update_reservation_status", reservation_id):
            if target == ReservationStatus.CANCELLED:
                saved = await self.repository.cancel(
                    reservation_id, ctx.actor_id, reason, expected_version, now)
            else:
                saved = await self.repository.update_status(
                    reservation_id, target, ctx.actor_id, expected_version, now)

        if override and target == ReservationStatus.CHECKED_OUT and saved.balance != 0:
            logger.warning("Checked out %s with balance %s by override of %s",
                           saved.confirmation_code, saved.balance, ctx.actor_id)
        logger.info("Reservation %s is now %s", saved.confirmation_code, saved.status.value)
        return saved

    async def confirm_reservation(self, ctx: OperatorContext, reservation_id: UUID) -> Reservation:
        return await self.transition(ctx, reservation_id, ReservationStatus.CONFIRMED)

    async def check_in_guest(self, ctx: OperatorContext, reservation_id: UUID) -> Reservation:
        return await self.transition(ctx, reservation_id, ReservationStatus.CHECKED_IN)

    async def check_out_guest(self, ctx: OperatorContext, reservation_id: UUID, override: bool = False) -> Reservation:
        return await self.transition(ctx, reservation_id, ReservationStatus.CHECKED_OUT, override=override)

    async def cancel_reservation(self, ctx: OperatorContext, reservation_id: UUID, reason: str = "") -> Reservation:
        return await self.transition(ctx, reservation_id, ReservationStatus.CANCELLED, reason=reason)

    async def mark_no_show(self, ctx: OperatorContext, reservation_id: UUID) -> Reservation:
        return await self.transition(ctx, reservation_id, ReservationStatus.NO_SHOW)

    # ==================== MODIFICATION ====================
    async def modify_reservation(
        self,
        ctx: OperatorContext,
        reservation_id: UUID,
        check_in: DateLike = None,
        check_out: DateLike = None,
        room_id: Optional[UUID] = None,
        total_amount: Optional[Decimal] = None,
    ) -> Reservation:
        """Change dates and/or room, re-checking availability without self-conflict"""
        reservation = await self.get_reservation(ctx, reservation_id)
        expected_version = reservation.version

        date_range = DateRange.between(check_in or reservation.check_in, check_out or reservation.check_out)
        room = await self.availability.get_room(room_id or reservation.room_id, ctx.branch_id)
        if total_amount is not None:
            total_amount = to_money(total_amount)
            if total_amount <= 0:
                raise InvalidAmount(total_amount)
        else:
            total_amount = Reservation.price_for(room, date_range)

        await self.availability.ensure_available(room.room_id, date_range, reservation.reservation_id)
        try:
            reservation.reschedule(date_range, room, total_amount, self.clock.now())
        except (InvalidTransition, TotalBelowPaid) as e:
            logger.warning("Rejected edit of %s: %s", reservation.confirmation_code, e)
            raise

        with persistence_errors("reschedule_reservation", reservation_id):
            saved = await self.repository.reschedule(reservation, expected_version)
        logger.info("Rescheduled %s to room %s (%s..%s)",
                    saved.confirmation_code, saved.room_number, saved.check_in, saved.check_out)
        return saved


class PaymentLedger:
    """Records payments against reservations"""

    def __init__(
        self,
        repository: PaymentRepository,
        reservation_repository: ReservationRepository,
        clock: Optional[Clock] = None,
    ):
        self.repository = repository
        self.reservation_repository = reservation_repository
        self.clock = clock or SystemClock()

    @staticmethod
    def list_payment_methods() -> List[dict]:
        return [
            {"method": m.value, "label": m.label, "requires_reference": m.requires_reference}
            for m in PaymentMethod
        ]

    async def _get_reservation(self, ctx: OperatorContext, reservation_id: UUID) -> Reservation:
        with persistence_errors("get_reservation", reservation_id):
            reservation = await self.reservation_repository.find_by_id(reservation_id)
        if reservation is None or reservation.branch_id != ctx.branch_id:
            raise NotFound("Reservation", reservation_id)
        return reservation

    async def record_payment(
        self,
        ctx: OperatorContext,
        reservation_id: UUID,
        amount,
        method: PaymentMethod,
        reference: Optional[str] = None,
        payment_date: Optional[date] = None,
        idempotency_key: Optional[str] = None,
    ) -> Payment:
        """Append a payment and return it; replays of ``idempotency_key`` return the original"""
        reservation = await self._get_reservation(ctx, reservation_id)

        if idempotency_key:
            with persistence_errors("find_payment_by_key", reservation_id):
                existing = await self.repository.find_by_idempotency_key(reservation_id, idempotency_key)
            if existing is not None:
                logger.info("Replayed payment %s for %s", existing.payment_id, reservation.confirmation_code)
                return existing

        if not reservation.accepts_payments():
            raise PaymentNotAllowed(reservation.status)

        amount = to_money(amount)
        if amount <= 0:
            raise InvalidAmount(amount)
        if amount > reservation.balance:
            logger.warning("Over-payment of %s on %s (balance %s)",
                           amount, reservation.confirmation_code, reservation.balance)
            raise OverPayment(amount, reservation.balance)
        reference = (reference or "").strip() or None
        if method.requires_reference and reference is None:
            raise MissingReference(method)

        payment = Payment(
            reservation_id=reservation_id,
            amount=amount,
            method=method,
            reference=reference,
            payment_date=payment_date or self.clock.today(),
            processed_by=ctx.actor_id,
        )
        with persistence_errors("record_payment", reservation_id):
            saved = await self.repository.add(payment, idempotency_key)
        logger.info("Recorded %s payment of %s on %s", method.value, amount, reservation.confirmation_code)
        return saved

    async def list_payments(self, ctx: OperatorContext, reservation_id: UUID) -> List[Payment]:
        await self._get_reservation(ctx, reservation_id)
        with persistence_errors("list_payments", reservation_id):
            return await self.repository.list_by_reservation(reservation_id)
