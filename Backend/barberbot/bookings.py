"""
Appointment creation for the WhatsApp flow.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .dates import parse_hhmm, to_utc_from_local_zone
from .loyalty import digits_only, get_client_name
from .models import Appointment, AppointmentStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingRequest:
    """Everything the customer picked during the conversation."""

    service_id: int
    barber_id: int
    local_date: date
    slot: str  # "HH:MM", shop-local
    duration_minutes: int
    price_cents: int
    phone: str


async def create_appointment(
    session: AsyncSession,
    shop_id: int,
    request: BookingRequest,
) -> Optional[Appointment]:
    """
    Insert a confirmed appointment.

    Returns the new Appointment, or None when the insert fails (including a
    clash on the barber/start-time unique key). Failures are not retried.
    """
    start_at = to_utc_from_local_zone(request.local_date, parse_hhmm(request.slot))
    end_at = start_at + timedelta(minutes=request.duration_minutes)
    client_phone = digits_only(request.phone)

    try:
        client_name = await get_client_name(session, shop_id, client_phone)
        appointment = Appointment(
            shop_id=shop_id,
            barber_id=request.barber_id,
            service_id=request.service_id,
            client_phone=client_phone,
            client_name=client_name,
            start_time=start_at,
            end_time=end_at,
            status=AppointmentStatus.CONFIRMED,
            original_price_cents=request.price_cents,
            final_price_cents=request.price_cents,
        )
        async with session.begin_nested():
            session.add(appointment)
    except SQLAlchemyError as e:
        logger.error(
            f"Failed to create appointment for shop {shop_id}, barber {request.barber_id} "
            f"at {request.local_date.isoformat()} {request.slot}: {e}"
        )
        return None

    logger.info(
        f"Appointment {appointment.id} confirmed for {client_phone[:6]}*** "
        f"on {request.local_date.isoformat()} {request.slot}"
    )
    return appointment
