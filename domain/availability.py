"""Room availability rules

Pure functions shared by the availability service and by repositories
that answer availability queries themselves.
"""
from typing import Iterable, List, Optional
from uuid import UUID

from domain.entities import Reservation, Room
from domain.value_objects import DateRange


def blocking_conflicts(
    reservations: Iterable[Reservation],
    room_id: UUID,
    date_range: DateRange,
    exclude_reservation_id: Optional[UUID] = None,
) -> List[Reservation]:
    """Reservations that keep ``room_id`` occupied during ``date_range``"""
    return [
        r for r in reservations
        if r.room_id == room_id
        and r.reservation_id != exclude_reservation_id
        and r.status.is_blocking
        and r.date_range.overlaps(date_range)
    ]


def available_rooms(
    rooms: Iterable[Room],
    reservations: Iterable[Reservation],
    date_range: DateRange,
) -> List[Room]:
    """Rooms with no blocking reservation in the range, by room number"""
    occupied = {
        r.room_id for r in reservations
        if r.status.is_blocking and r.date_range.overlaps(date_range)
    }
    free = [room for room in rooms if room.room_id not in occupied]
    return sorted(free, key=Room.sort_key)
