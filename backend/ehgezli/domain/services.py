from dataclasses import dataclass

from .errors import CapacityExceededError, InvalidPartySizeError, InvalidSlotError


@dataclass(frozen=True)
class SlotSnapshot:
    bookable: bool
    capacity: int
    reserved: int


def validate_booking(snapshot: SlotSnapshot, *, party_size: int) -> int:
    """
    Pure validation: ensures slot is bookable and capacity is sufficient.
    Returns remaining seats after booking if OK. Raises domain errors otherwise.
    """
    if party_size < 1:
        raise InvalidPartySizeError("party_size must be at least 1")
    if not snapshot.bookable:
        raise InvalidSlotError("requested time is not a bookable slot")

    remaining = snapshot.capacity - snapshot.reserved
    if party_size > remaining:
        raise CapacityExceededError(f"only {max(remaining, 0)} seats left for this slot")
    return remaining - party_size
