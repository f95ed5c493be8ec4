"""Domain Errors

Every business rule violation raises a subclass of ``DomainError``. The
root derives from ``ValueError`` so callers that only care about "the
request was rejected" can keep catching ``ValueError``.
"""
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional


class DomainError(ValueError):
    """Base class for all reservation domain errors"""

    code = "DOMAIN_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidDateRange(DomainError):
    code = "INVALID_DATE_RANGE"

    def __init__(self, check_in: Optional[date], check_out: Optional[date], message: Optional[str] = None):
        self.check_in = check_in
        self.check_out = check_out
        super().__init__(message or f"Check-out ({check_out}) must be after check-in ({check_in})")


class RoomUnavailable(DomainError):
    code = "ROOM_UNAVAILABLE"

    def __init__(self, room_id, conflicting_ids: Iterable):
        self.room_id = room_id
        self.conflicting_ids = list(conflicting_ids)
        ids = ", ".join(str(i) for i in self.conflicting_ids)
        super().__init__(f"Room {room_id} is not available for the requested dates (conflicts: {ids})")


class InvalidTransition(DomainError):
    code = "INVALID_TRANSITION"

    def __init__(self, current, requested, reason: Optional[str] = None):
        self.current = current
        self.requested = requested
        self.reason = reason
        message = f"Cannot change reservation status from {_value(current)} to {_value(requested)}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class OutstandingBalance(InvalidTransition):
    """Check-out refused because the guest still owes money"""

    code = "OUTSTANDING_BALANCE"

    def __init__(self, current, requested, balance: Decimal):
        self.balance = balance
        super().__init__(current, requested, f"outstanding balance of {balance}")


class InvalidAmount(DomainError):
    code = "INVALID_AMOUNT"

    def __init__(self, amount):
        self.amount = amount
        super().__init__(f"Payment amount must be greater than 0 (got {amount})")


class OverPayment(DomainError):
    code = "OVER_PAYMENT"

    def __init__(self, amount: Decimal, balance: Decimal):
        self.amount = amount
        self.balance = balance
        super().__init__(f"Payment of {amount} exceeds the outstanding balance of {balance}")


class TotalBelowPaid(DomainError):
    """A new total would leave the guest with more paid than owed"""

    code = "TOTAL_BELOW_PAID"

    def __init__(self, total_amount: Decimal, paid_amount: Decimal):
        self.total_amount = total_amount
        self.paid_amount = paid_amount
        super().__init__(f"New total of {total_amount} is below the {paid_amount} already paid")


class InvalidGuestCount(DomainError):
    code = "INVALID_GUEST_COUNT"

    def __init__(self, adults, children):
        self.adults = adults
        self.children = children
        super().__init__(f"At least one adult and no negative children required (got {adults}, {children})")


class MissingReference(DomainError):
    code = "MISSING_REFERENCE"

    def __init__(self, method):
        self.method = method
        super().__init__(f"Payment method {_value(method)} requires a reference")


class PaymentNotAllowed(DomainError):
    code = "PAYMENT_NOT_ALLOWED"

    def __init__(self, status):
        self.status = status
        super().__init__(f"Cannot record payments on a reservation with status {_value(status)}")


class InvalidGuestData(DomainError):
    code = "INVALID_GUEST_DATA"

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("Invalid guest data: " + "; ".join(self.errors))


class NotFound(DomainError):
    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class ConcurrencyConflict(DomainError):
    code = "CONCURRENCY_CONFLICT"

    def __init__(self, reservation_id, expected_version: int, actual_version: int):
        self.reservation_id = reservation_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Reservation {reservation_id} was modified concurrently "
            f"(expected version {expected_version}, found {actual_version})"
        )


class PersistenceError(DomainError):
    """A repository call failed for a reason outside the domain rules"""

    code = "PERSISTENCE_ERROR"

    def __init__(self, operation: str, entity_id=None, detail: Optional[str] = None):
        self.operation = operation
        self.entity_id = entity_id
        message = f"{operation} failed"
        if entity_id is not None:
            message = f"{message} for {entity_id}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


def _value(item) -> str:
    return getattr(item, "value", str(item))
