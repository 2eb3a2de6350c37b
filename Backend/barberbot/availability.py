import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, List, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession

from .core.config import get_settings
from .dates import day_of_week, ensure_utc, get_local_tz, local_day_bounds_utc
from .tenancy.queries import get_working_hours, list_blocked_times, list_blocking_appointments


settings = get_settings()
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BusyPeriod:
    start_at_utc: datetime
    end_at_utc: datetime


def overlap(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """Half-open interval overlap: [start_a, end_a) vs [start_b, end_b)."""
    return start_a < end_b and start_b < end_a


def compute_slots(
    local_date: date,
    working_start: time,
    working_end: time,
    service_duration: int,
    busy: Iterable[BusyPeriod],
    now_utc: datetime,
    tz: Optional[ZoneInfo] = None,
    step_minutes: Optional[int] = None,
) -> List[str]:
    """
    Walk the working day on a fixed grid and return free start times as "HH:MM".

    A slot is dropped when it would run past working_end (and the walk stops),
    when it starts at or before now_utc, or when it overlaps a busy period.
    """
    tz = tz or get_local_tz()
    step = timedelta(minutes=step_minutes or settings.slot_step_minutes)
    duration = timedelta(minutes=service_duration)
    busy = list(busy)

    cursor = datetime.combine(local_date, working_start)
    day_end = datetime.combine(local_date, working_end)

    slots: list[str] = []
    while True:
        slot_end = cursor + duration
        if slot_end > day_end:
            break

        slot_start_utc = cursor.replace(tzinfo=tz).astimezone(timezone.utc)
        slot_end_utc = slot_end.replace(tzinfo=tz).astimezone(timezone.utc)

        # Skip slots that have already started (are in the past)
        if slot_start_utc <= now_utc:
            cursor += step
            continue

        conflict = any(
            overlap(slot_start_utc, slot_end_utc, period.start_at_utc, period.end_at_utc)
            for period in busy
        )
        if not conflict:
            slots.append(cursor.strftime("%H:%M"))

        cursor += step

    return slots


async def get_busy_periods(
    session: AsyncSession,
    shop_id: int,
    barber_id: int,
    window_start: datetime,
    window_end: datetime,
) -> List[BusyPeriod]:
    """Blocked times plus non-cancelled appointments intersecting the window."""
    appointments = await list_blocking_appointments(session, shop_id, barber_id, window_start, window_end)
    busy: list[BusyPeriod] = [
        BusyPeriod(start_at_utc=ensure_utc(a.start_time), end_at_utc=ensure_utc(a.end_time))
        for a in appointments
    ]

    blocked_times = await list_blocked_times(session, shop_id, barber_id, window_start, window_end)
    busy.extend(
        BusyPeriod(start_at_utc=ensure_utc(block.start_time), end_at_utc=ensure_utc(block.end_time))
        for block in blocked_times
    )
    return busy


async def get_available_slots(
    session: AsyncSession,
    shop_id: int,
    barber_id: int,
    local_date: date,
    service_duration: int,
    now_utc: Optional[datetime] = None,
) -> List[str]:
    """Bookable "HH:MM" start times for a barber on a local calendar day."""
    now_utc = now_utc or datetime.now(timezone.utc)
    tz = get_local_tz()

    working_hours = await get_working_hours(session, shop_id, barber_id, day_of_week(local_date))
    if not working_hours:
        logger.info(f"Barber {barber_id} does not work on {local_date.isoformat()}")
        return []

    window_start, window_end = local_day_bounds_utc(local_date, tz)
    busy = await get_busy_periods(session, shop_id, barber_id, window_start, window_end)

    return compute_slots(
        local_date,
        working_hours.start_time,
        working_hours.end_time,
        service_duration,
        busy,
        now_utc,
        tz=tz,
    )
