from datetime import date, time

from ..domain.errors import BranchNotFoundError, ForbiddenError, OverrideNotFoundError
from ..domain.identity import Identity, SubscriberKind
from ..domain.repositories import BranchRepository, OverrideRepository
from ..models import BookingOverride, Branch, OverrideType


async def _owned_branch(branch_repo: BranchRepository, *, branch_id: int, actor: Identity) -> Branch:
    branch = await branch_repo.get(branch_id)
    if branch is None:
        raise BranchNotFoundError(f"branch {branch_id} not found")
    if actor.kind != SubscriberKind.RESTAURANT or branch.restaurant_id != actor.id:
        raise ForbiddenError("branch belongs to another restaurant")
    return branch


async def create_override(
    branch_repo: BranchRepository,
    override_repo: OverrideRepository,
    *,
    actor: Identity,
    branch_id: int,
    on_date: date,
    start_time: time,
    end_time: time,
    override_type: OverrideType,
    new_max_seats: int | None = None,
    note: str | None = None,
) -> BookingOverride:
    if start_time >= end_time:
        raise ValueError("start_time must be earlier than end_time")
    if override_type == OverrideType.CAPACITY and (new_max_seats is None or new_max_seats < 0):
        raise ValueError("capacity overrides need new_max_seats >= 0")

    branch = await _owned_branch(branch_repo, branch_id=branch_id, actor=actor)
    return await override_repo.create(
        branch_id=branch.id,
        on_date=on_date,
        start_time=start_time,
        end_time=end_time,
        override_type=override_type,
        new_max_seats=None if override_type == OverrideType.CLOSED else new_max_seats,
        note=note,
    )


async def list_overrides(
    branch_repo: BranchRepository,
    override_repo: OverrideRepository,
    *,
    actor: Identity,
    branch_id: int,
) -> list[BookingOverride]:
    await _owned_branch(branch_repo, branch_id=branch_id, actor=actor)
    return await override_repo.list_for_branch(branch_id)


async def delete_override(
    override_repo: OverrideRepository,
    *,
    actor: Identity,
    override_id: int,
) -> int:
    """Delete the override and return the id of the branch it belonged to."""
    row = await override_repo.get(override_id)
    if row is None:
        raise OverrideNotFoundError(f"override {override_id} not found")
    override, branch = row
    if actor.kind != SubscriberKind.RESTAURANT or branch.restaurant_id != actor.id:
        raise ForbiddenError("override belongs to another restaurant")
    await override_repo.delete(override)
    return branch.id
