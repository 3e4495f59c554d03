from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import List, Optional, Tuple, cast

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.repositories import BookingRepository, BranchRepository, OverrideRepository
from ..models import Booking, BookingOverride, BookingStatus, Branch, OverrideType
from ..utils.time import utc_now_naive


def _day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


class SqlAlchemyBranchRepository(BranchRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, branch_id: int) -> Branch | None:
        return await self.session.get(Branch, branch_id)

    async def get_for_update(self, branch_id: int) -> Branch | None:
        result = await self.session.scalar(select(Branch).where(Branch.id == branch_id).with_for_update())
        return result if isinstance(result, Branch) else None


class SqlAlchemyBookingRepository(BookingRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_for_branch_on_date(self, branch_id: int, booking_date: date) -> List[Booking]:
        start, end = _day_bounds(booking_date)
        stmt = select(Booking).where(
            Booking.branch_id == branch_id,
            Booking.starts_at >= start,
            Booking.starts_at < end,
            Booking.status != BookingStatus.CANCELLED,
        )
        return list((await self.session.scalars(stmt)).all())

    async def create(
        self,
        *,
        branch_id: int,
        user_id: int | None,
        starts_at: datetime,
        party_size: int,
        status: BookingStatus,
        guest_name: str | None = None,
        guest_phone: str | None = None,
    ) -> Booking:
        now = utc_now_naive()
        booking = Booking(
            branch_id=branch_id,
            user_id=user_id,
            starts_at=starts_at,
            party_size=party_size,
            status=status,
            version=1,
            guest_name=guest_name,
            guest_phone=guest_phone,
            created_at=now,
            updated_at=now,
        )
        self.session.add(booking)
        await self.session.flush()
        return booking

    async def get_for_update(self, booking_id: int) -> Optional[Tuple[Booking, Branch]]:
        stmt: Select[Tuple[Booking, Branch]] = (
            select(Booking, Branch)
            .join(Branch, Booking.branch_id == Branch.id)
            .where(Booking.id == booking_id)
            .with_for_update(of=Booking)
        )
        row = (await self.session.execute(stmt)).first()
        return cast(Optional[Tuple[Booking, Branch]], row)

    async def get_for_user(self, booking_id: int, user_id: int) -> Booking | None:
        stmt = select(Booking).where(Booking.id == booking_id, Booking.user_id == user_id)
        return await self.session.scalar(stmt)

    async def list_by_user(self, user_id: int) -> List[Booking]:
        stmt = select(Booking).where(Booking.user_id == user_id).order_by(Booking.starts_at.desc())
        return list((await self.session.scalars(stmt)).all())

    async def list_by_restaurant(
        self,
        restaurant_id: int,
        booking_date: date | None = None,
    ) -> List[Booking]:
        stmt = (
            select(Booking)
            .join(Branch, Booking.branch_id == Branch.id)
            .where(Branch.restaurant_id == restaurant_id)
            .order_by(Booking.starts_at)
        )
        if booking_date is not None:
            start, end = _day_bounds(booking_date)
            stmt = stmt.where(Booking.starts_at >= start, Booking.starts_at < end)
        return list((await self.session.scalars(stmt)).all())

    async def save(self, booking: Booking) -> Booking:
        self.session.add(booking)
        await self.session.flush()
        return booking


class SqlAlchemyOverrideRepository(OverrideRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_for_branch_on_date(self, branch_id: int, on_date: date) -> List[BookingOverride]:
        stmt = select(BookingOverride).where(
            BookingOverride.branch_id == branch_id,
            BookingOverride.on_date == on_date,
        )
        return list((await self.session.scalars(stmt)).all())

    async def list_for_branch(self, branch_id: int) -> List[BookingOverride]:
        stmt = (
            select(BookingOverride)
            .where(BookingOverride.branch_id == branch_id)
            .order_by(BookingOverride.on_date, BookingOverride.start_time)
        )
        return list((await self.session.scalars(stmt)).all())

    async def create(
        self,
        *,
        branch_id: int,
        on_date: date,
        start_time: time,
        end_time: time,
        override_type: OverrideType,
        new_max_seats: int | None,
        note: str | None,
    ) -> BookingOverride:
        now = utc_now_naive()
        override = BookingOverride(
            branch_id=branch_id,
            on_date=on_date,
            start_time=start_time,
            end_time=end_time,
            override_type=override_type,
            new_max_seats=new_max_seats,
            note=note,
            created_at=now,
            updated_at=now,
        )
        self.session.add(override)
        await self.session.flush()
        return override

    async def get(self, override_id: int) -> Optional[Tuple[BookingOverride, Branch]]:
        stmt: Select[Tuple[BookingOverride, Branch]] = (
            select(BookingOverride, Branch)
            .join(Branch, BookingOverride.branch_id == Branch.id)
            .where(BookingOverride.id == override_id)
        )
        row = (await self.session.execute(stmt)).first()
        return cast(Optional[Tuple[BookingOverride, Branch]], row)

    async def delete(self, override: BookingOverride) -> None:
        await self.session.delete(override)
        await self.session.flush()
