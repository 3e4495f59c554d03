from datetime import date, datetime, time

# Staff need the last hour before closing to finish service.
LAST_BOOKING_BUFFER_MINUTES = 60

MINUTES_PER_DAY = 24 * 60


def _to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def _from_minutes(minutes: int) -> time:
    return time(hour=minutes // 60, minute=minutes % 60)


def format_slot(value: time) -> str:
    return f"{value.hour:02d}:{value.minute:02d}"


def round_up_to_interval(now: datetime, interval_minutes: int) -> int:
    """Minutes since midnight of ``now`` rounded up to the next interval boundary.

    The result may exceed a day when ``now`` is within the last interval
    before midnight.
    """
    if interval_minutes <= 0:
        raise ValueError("interval_minutes must be positive")
    minutes = now.hour * 60 + now.minute
    remainder = minutes % interval_minutes
    if remainder:
        minutes += interval_minutes - remainder
    return minutes


def generate_slots(
    open_time: time,
    close_time: time,
    interval_minutes: int,
    booking_date: date,
    now: datetime | None = None,
) -> list[time]:
    """
    Bookable slot start times for one branch day, ascending.

    Slots start at ``open_time`` and step by ``interval_minutes``; a slot is
    kept only while it starts more than an hour before ``close_time``. When
    ``booking_date`` is today (according to ``now``), slots before ``now``
    rounded up to the interval are dropped, never going below ``open_time``.
    Past dates have no slots.
    """
    if interval_minutes <= 0:
        raise ValueError("interval_minutes must be positive")
    if open_time >= close_time:
        raise ValueError("open_time must be earlier than close_time")

    open_minutes = _to_minutes(open_time)
    last_exclusive = _to_minutes(close_time) - LAST_BOOKING_BUFFER_MINUTES
    earliest = open_minutes

    if now is not None:
        today = now.date()
        if booking_date < today:
            return []
        if booking_date == today:
            earliest = max(round_up_to_interval(now, interval_minutes), open_minutes)

    slots: list[time] = []
    minutes = open_minutes
    while minutes < last_exclusive and minutes < MINUTES_PER_DAY:
        if minutes >= earliest:
            slots.append(_from_minutes(minutes))
        minutes += interval_minutes
    return slots
