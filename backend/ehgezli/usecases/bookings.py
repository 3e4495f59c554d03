from datetime import date, datetime

from ..domain.availability import consumed_seats, current_slot, slot_capacities
from ..domain.errors import BookingNotFoundError, BranchNotFoundError, ForbiddenError, VersionConflictError
from ..domain.identity import Identity, SubscriberKind
from ..domain.lifecycle import apply_transition, authorize
from ..domain.repositories import BookingRepository, BranchRepository, OverrideRepository
from ..domain.services import SlotSnapshot, validate_booking
from ..models import Booking, BookingStatus, Branch
from ..utils.time import local_now


async def create_booking(
    branch_repo: BranchRepository,
    booking_repo: BookingRepository,
    override_repo: OverrideRepository,
    *,
    branch_id: int,
    starts_at: datetime,
    party_size: int,
    user_id: int | None,
    initial_status: BookingStatus = BookingStatus.CONFIRMED,
    acting_restaurant_id: int | None = None,
    guest_name: str | None = None,
    guest_phone: str | None = None,
    now: datetime | None = None,
) -> tuple[Booking, Branch]:
    """
    Validate a booking against the branch's current capacity and write it.

    The branch row is locked for the rest of the transaction; callers must
    also hold ``SlotLocks.hold(branch_id, starts_at)`` until commit.
    ``starts_at`` is restaurant local time.
    """
    branch = await branch_repo.get_for_update(branch_id)
    if branch is None:
        raise BranchNotFoundError(f"branch {branch_id} not found")
    if acting_restaurant_id is not None and branch.restaurant_id != acting_restaurant_id:
        raise ForbiddenError("branch belongs to another restaurant")

    now = now or local_now()
    booking_date = starts_at.date()
    slot = starts_at.time()

    bookings = await booking_repo.list_for_branch_on_date(branch.id, booking_date)
    overrides = await override_repo.list_for_branch_on_date(branch.id, booking_date)
    capacities = slot_capacities(branch, booking_date, overrides, now)
    reserved = consumed_seats(
        bookings,
        branch_id=branch.id,
        booking_date=booking_date,
        slot=slot,
        seated_slot=current_slot(branch, booking_date, now),
    )

    snapshot = SlotSnapshot(
        bookable=slot in capacities,
        capacity=capacities.get(slot, 0),
        reserved=reserved,
    )
    validate_booking(snapshot, party_size=party_size)

    booking = await booking_repo.create(
        branch_id=branch.id,
        user_id=user_id,
        starts_at=starts_at.replace(tzinfo=None),
        party_size=party_size,
        status=initial_status,
        guest_name=guest_name,
        guest_phone=guest_phone,
    )
    return booking, branch


async def _transition(
    booking_repo: BookingRepository,
    *,
    booking_id: int,
    actor: Identity,
    target: BookingStatus,
    expected_version: int | None,
    now: datetime | None,
) -> tuple[Booking, Branch, BookingStatus]:
    row = await booking_repo.get_for_update(booking_id)
    if row is None:
        raise BookingNotFoundError(f"booking {booking_id} not found")
    booking, branch = row

    authorize(actor, booking, restaurant_id=branch.restaurant_id, target=target)
    if expected_version is not None and booking.version != expected_version:
        raise VersionConflictError("version mismatch")

    previous = apply_transition(booking, target, at=now or local_now())
    updated = await booking_repo.save(booking)
    return updated, branch, previous


async def cancel_booking(
    booking_repo: BookingRepository,
    *,
    booking_id: int,
    actor: Identity,
    expected_version: int | None = None,
    now: datetime | None = None,
) -> tuple[Booking, Branch, BookingStatus]:
    return await _transition(
        booking_repo,
        booking_id=booking_id,
        actor=actor,
        target=BookingStatus.CANCELLED,
        expected_version=expected_version,
        now=now,
    )


async def confirm_booking(
    booking_repo: BookingRepository,
    *,
    booking_id: int,
    actor: Identity,
    expected_version: int | None = None,
    now: datetime | None = None,
) -> tuple[Booking, Branch, BookingStatus]:
    return await _transition(
        booking_repo,
        booking_id=booking_id,
        actor=actor,
        target=BookingStatus.CONFIRMED,
        expected_version=expected_version,
        now=now,
    )


async def mark_arrived(
    booking_repo: BookingRepository,
    *,
    booking_id: int,
    actor: Identity,
    expected_version: int | None = None,
    now: datetime | None = None,
) -> tuple[Booking, Branch, BookingStatus]:
    return await _transition(
        booking_repo,
        booking_id=booking_id,
        actor=actor,
        target=BookingStatus.ARRIVED,
        expected_version=expected_version,
        now=now,
    )


async def mark_completed(
    booking_repo: BookingRepository,
    *,
    booking_id: int,
    actor: Identity,
    expected_version: int | None = None,
    now: datetime | None = None,
) -> tuple[Booking, Branch, BookingStatus]:
    return await _transition(
        booking_repo,
        booking_id=booking_id,
        actor=actor,
        target=BookingStatus.COMPLETED,
        expected_version=expected_version,
        now=now,
    )


async def list_user_bookings(
    booking_repo: BookingRepository,
    *,
    user_id: int,
) -> list[Booking]:
    return await booking_repo.list_by_user(user_id)


async def get_user_booking(
    booking_repo: BookingRepository,
    *,
    booking_id: int,
    user_id: int,
) -> Booking | None:
    return await booking_repo.get_for_user(booking_id, user_id)


async def list_restaurant_bookings(
    booking_repo: BookingRepository,
    *,
    restaurant_id: int,
    actor: Identity,
    booking_date: date | None = None,
) -> list[Booking]:
    if actor.kind != SubscriberKind.RESTAURANT or actor.id != restaurant_id:
        raise ForbiddenError("restaurants can only list their own bookings")
    return await booking_repo.list_by_restaurant(restaurant_id, booking_date)
