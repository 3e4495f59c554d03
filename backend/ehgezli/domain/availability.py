from __future__ import annotations

from datetime import date, datetime, time
from typing import Iterable, Optional

from ..models import Booking, BookingOverride, BookingStatus, Branch, OverrideType
from .slots import MINUTES_PER_DAY, format_slot, generate_slots, round_up_to_interval

CONSUMING_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})


def _slot_of(booking: Booking) -> time:
    return booking.starts_at.time().replace(second=0, microsecond=0)


def current_slot(branch: Branch, booking_date: date, now: datetime | None) -> Optional[time]:
    """The slot diners arriving right now are seated in, or None when ``booking_date`` is not today."""
    if now is None or now.date() != booking_date:
        return None
    minutes = round_up_to_interval(now, branch.interval_minutes)
    if minutes >= MINUTES_PER_DAY:
        return None
    return time(hour=minutes // 60, minute=minutes % 60)


def slot_capacities(
    branch: Branch,
    booking_date: date,
    overrides: Iterable[BookingOverride] = (),
    now: datetime | None = None,
) -> dict[time, int]:
    """
    Capacity of every bookable slot of ``branch`` on ``booking_date``.

    A ``closed`` override removes the slots it covers; otherwise the most
    recently created ``capacity`` override covering a slot replaces the
    branch seat count.
    """
    relevant = [
        o for o in overrides if o.branch_id == branch.id and o.on_date == booking_date
    ]
    capacities: dict[time, int] = {}
    for slot in generate_slots(
        branch.opening_time,
        branch.closing_time,
        branch.interval_minutes,
        booking_date,
        now,
    ):
        covering = [o for o in relevant if o.start_time <= slot < o.end_time]
        if any(o.override_type == OverrideType.CLOSED for o in covering):
            continue
        capacity = branch.seats_count
        capacity_overrides = [
            o for o in covering
            if o.override_type == OverrideType.CAPACITY and o.new_max_seats is not None
        ]
        if capacity_overrides:
            latest = max(capacity_overrides, key=lambda o: (o.created_at, o.id or 0))
            capacity = int(latest.new_max_seats or 0)
        capacities[slot] = capacity
    return capacities


def consumed_seats(
    bookings: Iterable[Booking],
    *,
    branch_id: int,
    booking_date: date,
    slot: time,
    seated_slot: Optional[time] = None,
) -> int:
    """
    Seats taken at ``slot``.

    Pending and confirmed bookings hold their own slot. An arrived party
    holds its own slot and, on the current day, the slot being served right
    now (``seated_slot``), but frees the later slots of the day.
    """
    total = 0
    for booking in bookings:
        if booking.branch_id != branch_id or booking.starts_at.date() != booking_date:
            continue
        booked = _slot_of(booking)
        if booking.status in CONSUMING_STATUSES:
            if booked == slot:
                total += booking.party_size
        elif booking.status == BookingStatus.ARRIVED:
            if booked == slot or (seated_slot is not None and slot == seated_slot):
                total += booking.party_size
    return total


def remaining_by_slot(
    branch: Branch,
    booking_date: date,
    bookings: Iterable[Booking],
    overrides: Iterable[BookingOverride] = (),
    now: datetime | None = None,
) -> dict[time, int]:
    bookings = list(bookings)
    seated = current_slot(branch, booking_date, now)
    return {
        slot: capacity
        - consumed_seats(
            bookings,
            branch_id=branch.id,
            booking_date=booking_date,
            slot=slot,
            seated_slot=seated,
        )
        for slot, capacity in slot_capacities(branch, booking_date, overrides, now).items()
    }


def compute_availability(
    branch: Branch,
    booking_date: date,
    bookings: Iterable[Booking],
    overrides: Iterable[BookingOverride] = (),
    now: datetime | None = None,
) -> dict[str, int]:
    """Remaining seats per ``HH:MM`` slot, ascending."""
    remaining = remaining_by_slot(branch, booking_date, bookings, overrides, now)
    return {format_slot(slot): seats for slot, seats in remaining.items()}
