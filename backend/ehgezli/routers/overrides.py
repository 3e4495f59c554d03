from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_current_restaurant, get_session
from ..domain.errors import DomainError
from ..domain.identity import Identity
from ..infrastructure.repositories import SqlAlchemyBranchRepository, SqlAlchemyOverrideRepository
from ..schemas import OverrideCreate, OverrideRead
from ..usecases import overrides as override_usecase
from ..utils.audit_log import AuditLogError, emit_audit_log
from ..utils.http_errors import error_detail, to_http_exception
from .bookings import _audit_failed

router = APIRouter(prefix="/restaurant", tags=["overrides"])


@router.post(
    "/branches/{branch_id}/overrides",
    response_model=OverrideRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_override(
    payload: OverrideCreate,
    branch_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    restaurant: Identity = Depends(get_current_restaurant),
) -> OverrideRead:
    try:
        async with session.begin():
            override = await override_usecase.create_override(
                SqlAlchemyBranchRepository(session),
                SqlAlchemyOverrideRepository(session),
                actor=restaurant,
                branch_id=branch_id,
                on_date=payload.on_date,
                start_time=payload.start_time,
                end_time=payload.end_time,
                override_type=payload.override_type,
                new_max_seats=payload.new_max_seats,
                note=payload.note,
            )
            emit_audit_log(
                action="override.created",
                initiator="restaurant",
                actor_id=restaurant.id,
                branch_id=branch_id,
                extra={
                    "override_id": override.id,
                    "override_type": str(override.override_type),
                    "date": override.on_date.isoformat(),
                },
            )
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error_detail("InvalidOverride", str(exc)),
        ) from exc
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    except AuditLogError as exc:
        raise _audit_failed(exc) from exc
    return OverrideRead.from_db(override=override)


@router.get("/branches/{branch_id}/overrides", response_model=List[OverrideRead])
async def list_overrides(
    branch_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    restaurant: Identity = Depends(get_current_restaurant),
) -> list[OverrideRead]:
    try:
        rows = await override_usecase.list_overrides(
            SqlAlchemyBranchRepository(session),
            SqlAlchemyOverrideRepository(session),
            actor=restaurant,
            branch_id=branch_id,
        )
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    return [OverrideRead.from_db(override=override) for override in rows]


@router.delete("/overrides/{override_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_override(
    override_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    restaurant: Identity = Depends(get_current_restaurant),
) -> Response:
    try:
        async with session.begin():
            branch_id = await override_usecase.delete_override(
                SqlAlchemyOverrideRepository(session),
                actor=restaurant,
                override_id=override_id,
            )
            emit_audit_log(
                action="override.deleted",
                initiator="restaurant",
                actor_id=restaurant.id,
                branch_id=branch_id,
                extra={"override_id": override_id},
            )
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    except AuditLogError as exc:
        raise _audit_failed(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)
