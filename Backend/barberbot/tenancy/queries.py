"""
Tenant-scoped query helpers.

ALL reads of tenant data go through these helpers so that every query
carries an explicit ``shop_id`` filter.

Usage:
    from barberbot.tenancy.queries import list_active_services, scoped_select

    services = await list_active_services(session, ctx.shop_id)
    stmt = scoped_select(Barber, ctx.shop_id).where(Barber.is_active.is_(True))
"""

from datetime import datetime
from typing import Optional, Sequence, Type, TypeVar

from sqlalchemy import Row, Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import DeclarativeBase

from ..models import (
    ACTIVE_STATUSES,
    NON_BLOCKING_STATUSES,
    Appointment,
    AppointmentReminder,
    Barber,
    BlockedTime,
    Service,
    Shop,
    WorkingHours,
)

T = TypeVar("T", bound=DeclarativeBase)


# ────────────────────────────────────────────────────────────────
# Composable Query Helpers
# ────────────────────────────────────────────────────────────────

def scoped_select(model: Type[T], shop_id: int) -> Select:
    """
    Create a SELECT statement pre-filtered by shop_id.

    Usage:
        stmt = scoped_select(Service, ctx.shop_id).where(Service.is_active.is_(True))
    """
    return select(model).where(model.shop_id == shop_id)


# ────────────────────────────────────────────────────────────────
# Catalogue
# ────────────────────────────────────────────────────────────────

async def list_active_services(session: AsyncSession, shop_id: int) -> Sequence[Service]:
    """Active services of a shop, ordered by name (the order shown to customers)."""
    result = await session.execute(
        scoped_select(Service, shop_id)
        .where(Service.is_active.is_(True))
        .order_by(Service.name, Service.id)
    )
    return result.scalars().all()


async def list_active_barbers(session: AsyncSession, shop_id: int) -> Sequence[Barber]:
    """Active barbers of a shop, ordered by name."""
    result = await session.execute(
        scoped_select(Barber, shop_id)
        .where(Barber.is_active.is_(True))
        .order_by(Barber.name, Barber.id)
    )
    return result.scalars().all()


# ────────────────────────────────────────────────────────────────
# Schedule
# ────────────────────────────────────────────────────────────────

async def get_working_hours(
    session: AsyncSession,
    shop_id: int,
    barber_id: int,
    day_of_week: int,
) -> Optional[WorkingHours]:
    result = await session.execute(
        scoped_select(WorkingHours, shop_id).where(
            WorkingHours.barber_id == barber_id,
            WorkingHours.day_of_week == day_of_week,
            WorkingHours.is_active.is_(True),
        )
    )
    return result.scalars().first()


async def list_blocked_times(
    session: AsyncSession,
    shop_id: int,
    barber_id: int,
    window_start: datetime,
    window_end: datetime,
) -> Sequence[BlockedTime]:
    """Blocked periods intersecting [window_start, window_end)."""
    result = await session.execute(
        scoped_select(BlockedTime, shop_id).where(
            BlockedTime.barber_id == barber_id,
            BlockedTime.end_time > window_start,
            BlockedTime.start_time < window_end,
        )
    )
    return result.scalars().all()


async def list_blocking_appointments(
    session: AsyncSession,
    shop_id: int,
    barber_id: int,
    window_start: datetime,
    window_end: datetime,
) -> Sequence[Appointment]:
    """Appointments intersecting the window, excluding cancelled and no-show."""
    result = await session.execute(
        scoped_select(Appointment, shop_id)
        .where(
            Appointment.barber_id == barber_id,
            Appointment.end_time > window_start,
            Appointment.start_time < window_end,
            Appointment.status.not_in(NON_BLOCKING_STATUSES),
        )
        .order_by(Appointment.start_time)
    )
    return result.scalars().all()


async def count_active_appointments(
    session: AsyncSession,
    shop_id: int,
    client_phone: str,
    now: datetime,
) -> int:
    """Future scheduled/confirmed appointments of a customer."""
    result = await session.execute(
        select(func.count(Appointment.id)).where(
            Appointment.shop_id == shop_id,
            Appointment.client_phone == client_phone,
            Appointment.start_time >= now,
            Appointment.status.in_(ACTIVE_STATUSES),
        )
    )
    return int(result.scalar_one() or 0)


# ────────────────────────────────────────────────────────────────
# Reminders
# ────────────────────────────────────────────────────────────────

async def list_upcoming_appointments(
    session: AsyncSession,
    window_start: datetime,
    window_end: datetime,
) -> Sequence[Row]:
    """
    Scheduled/confirmed appointments starting in [window_start, window_end].

    This is the one read that spans every shop: the reminder job runs once
    for the whole installation. Each row is (Appointment, Shop, barber_name,
    service_name).
    """
    result = await session.execute(
        select(Appointment, Shop, Barber.name, Service.name)
        .join(Shop, Shop.id == Appointment.shop_id)
        .outerjoin(Barber, Barber.id == Appointment.barber_id)
        .outerjoin(Service, Service.id == Appointment.service_id)
        .where(
            Appointment.status.in_(ACTIVE_STATUSES),
            Appointment.start_time >= window_start,
            Appointment.start_time <= window_end,
        )
        .order_by(Appointment.start_time)
    )
    return result.all()


async def reminder_exists(session: AsyncSession, appointment_id, reminder_type: str) -> bool:
    result = await session.execute(
        select(AppointmentReminder.id).where(
            AppointmentReminder.appointment_id == appointment_id,
            AppointmentReminder.reminder_type == reminder_type,
        )
    )
    return result.first() is not None
