from datetime import date

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_session
from ..domain.errors import DomainError
from ..infrastructure.repositories import (
    SqlAlchemyBookingRepository,
    SqlAlchemyBranchRepository,
    SqlAlchemyOverrideRepository,
)
from ..usecases import availability as availability_usecase
from ..utils.http_errors import to_http_exception

router = APIRouter(prefix="/branches", tags=["availability"])


@router.get("/{branch_id}/availability", response_model=dict[str, int])
async def get_branch_availability(
    branch_id: int = Path(..., ge=1),
    booking_date: date = Query(..., alias="date", description="YYYY-MM-DD"),
    session: AsyncSession = Depends(get_session),
) -> dict[str, int]:
    try:
        return await availability_usecase.get_branch_availability(
            SqlAlchemyBranchRepository(session),
            SqlAlchemyBookingRepository(session),
            SqlAlchemyOverrideRepository(session),
            branch_id=branch_id,
            booking_date=booking_date,
        )
    except DomainError as exc:
        raise to_http_exception(exc) from exc
