"""
Appointment reminders over WhatsApp.

Run periodically (cron hits ``POST /whatsapp/reminders``). Each run looks at
scheduled/confirmed appointments starting within the next 25 hours and sends
at most one reminder per appointment and type:

- "24h": the appointment is 23-25h away and was booked more than 24h ahead
- "1h":  the appointment is 1-2h away and was booked 24h ahead or less

Every attempt is recorded in ``appointment_reminders`` so later runs skip it.
"""

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from .dates import ensure_utc, get_local_tz
from .loyalty import is_placeholder_name
from .messages import format_reminder
from .messenger import mask_phone, send_whatsapp_message, with_country_code
from .models import AppointmentReminder
from .tenancy.queries import list_upcoming_appointments, reminder_exists

logger = logging.getLogger(__name__)

REMINDER_24H = "24h"
REMINDER_1H = "1h"
LOOKAHEAD = timedelta(hours=25)


@dataclass
class ReminderRunResult:
    processed: int = 0
    sent_24h: int = 0
    sent_1h: int = 0
    skipped: int = 0
    errors: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


def pick_reminder_type(start_at: datetime, created_at: datetime, now: datetime) -> Optional[str]:
    hours_until = (start_at - now) / timedelta(hours=1)
    booked_ahead = (start_at - created_at) / timedelta(hours=1)

    if 23 <= hours_until <= 25 and booked_ahead > 24:
        return REMINDER_24H
    if 1 <= hours_until <= 2 and booked_ahead <= 24:
        return REMINDER_1H
    return None


async def send_due_reminders(session: AsyncSession, now: Optional[datetime] = None) -> ReminderRunResult:
    now = now or datetime.now(timezone.utc)
    results = ReminderRunResult()
    tz = get_local_tz()

    rows = await list_upcoming_appointments(session, now, now + LOOKAHEAD)
    logger.info(f"Reminder run at {now.isoformat()}: {len(rows)} upcoming appointments")

    for appointment, shop, barber_name, service_name in rows:
        results.processed += 1

        if not shop.wapi_instance_id or not shop.wapi_token:
            logger.info(f"Skipping {appointment.id}: no WhatsApp configured for shop {shop.id}")
            results.skipped += 1
            continue
        if not appointment.client_phone:
            logger.info(f"Skipping {appointment.id}: no client phone")
            results.skipped += 1
            continue

        start_at = ensure_utc(appointment.start_time)
        reminder_type = pick_reminder_type(start_at, ensure_utc(appointment.created_at), now)
        if reminder_type is None:
            continue

        if await reminder_exists(session, appointment.id, reminder_type):
            logger.debug(f"Skipping {appointment.id}: {reminder_type} reminder already sent")
            continue

        client_name = None if is_placeholder_name(appointment.client_name) else appointment.client_name
        text = format_reminder(
            client_name=client_name,
            shop_name=shop.name,
            service_name=service_name,
            barber_name=barber_name,
            when=start_at.astimezone(tz),
            reminder_type=reminder_type,
        )
        phone = with_country_code(appointment.client_phone)
        sent = await send_whatsapp_message(shop.wapi_instance_id, shop.wapi_token, phone, text)

        # Commit per appointment so a crash mid-run never re-sends what already went out
        session.add(
            AppointmentReminder(
                appointment_id=appointment.id,
                reminder_type=reminder_type,
                status="sent" if sent else "failed",
            )
        )
        await session.commit()

        if not sent:
            logger.error(f"Failed to send {reminder_type} reminder for {appointment.id} to {mask_phone(phone)}")
            results.errors += 1
        elif reminder_type == REMINDER_24H:
            results.sent_24h += 1
        else:
            results.sent_1h += 1

    logger.info(f"Reminder run finished: {results.as_dict()}")
    return results
