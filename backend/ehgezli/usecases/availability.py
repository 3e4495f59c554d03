from datetime import date, datetime

from ..domain.availability import compute_availability
from ..domain.errors import BranchNotFoundError
from ..domain.repositories import BookingRepository, BranchRepository, OverrideRepository
from ..utils.time import local_now


async def get_branch_availability(
    branch_repo: BranchRepository,
    booking_repo: BookingRepository,
    override_repo: OverrideRepository,
    *,
    branch_id: int,
    booking_date: date,
    now: datetime | None = None,
) -> dict[str, int]:
    branch = await branch_repo.get(branch_id)
    if branch is None:
        raise BranchNotFoundError(f"branch {branch_id} not found")

    bookings = await booking_repo.list_for_branch_on_date(branch_id, booking_date)
    overrides = await override_repo.list_for_branch_on_date(branch_id, booking_date)
    return compute_availability(branch, booking_date, bookings, overrides, now or local_now())
