"""
Date and money helpers for the WhatsApp booking flow.

All wall-clock reasoning happens in the shop's configured timezone
(``BOT_TIMEZONE``); everything persisted is UTC.
"""

import re
import unicodedata
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from .core.config import get_settings


settings = get_settings()

DATE_PATTERN = re.compile(r"^(\d{1,2})/(\d{1,2})(?:/(\d{2}|\d{4}))?$")

WEEKDAYS_PT = [
    "segunda-feira",
    "terça-feira",
    "quarta-feira",
    "quinta-feira",
    "sexta-feira",
    "sábado",
    "domingo",
]

MONTHS_PT = [
    "janeiro",
    "fevereiro",
    "março",
    "abril",
    "maio",
    "junho",
    "julho",
    "agosto",
    "setembro",
    "outubro",
    "novembro",
    "dezembro",
]


def get_local_tz() -> ZoneInfo:
    return ZoneInfo(settings.bot_timezone)


def get_local_now() -> datetime:
    """Get the current datetime in the configured timezone."""
    return datetime.now(get_local_tz())


def get_local_today() -> date:
    return get_local_now().date()


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive values (drivers without tz support) or convert aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_utc_from_local_zone(local_date: date, local_time: time, tz: Optional[ZoneInfo] = None) -> datetime:
    tz = tz or get_local_tz()
    local_dt = datetime.combine(local_date, local_time).replace(tzinfo=tz)
    return local_dt.astimezone(timezone.utc)


def local_day_bounds_utc(local_date: date, tz: Optional[ZoneInfo] = None) -> tuple[datetime, datetime]:
    """UTC instants of local midnight and the following local midnight."""
    start = to_utc_from_local_zone(local_date, time(0, 0), tz)
    end = to_utc_from_local_zone(local_date + timedelta(days=1), time(0, 0), tz)
    return start, end


def day_of_week(value: date) -> int:
    """0 = Sunday .. 6 = Saturday."""
    return (value.weekday() + 1) % 7


def _strip_accents(value: str) -> str:
    normalized = unicodedata.normalize("NFKD", value)
    return "".join(ch for ch in normalized if not unicodedata.combining(ch))


def parse_date_token(text: str, today: Optional[date] = None) -> Optional[date]:
    """
    Parse the customer's answer to "which day?".

    Accepts ``hoje``, ``amanhã``/``amanha`` and ``D/M``, ``D/M/YY`` or
    ``D/M/YYYY``. Two-digit years mean 20YY. Invalid calendar dates and
    dates before today return None.
    """
    today = today or get_local_today()
    token = _strip_accents(text.strip().lower())

    if token == "hoje":
        return today
    if token == "amanha":
        return today + timedelta(days=1)

    match = DATE_PATTERN.match(token)
    if not match:
        return None

    day = int(match.group(1))
    month = int(match.group(2))
    year = int(match.group(3)) if match.group(3) else today.year
    if year < 100:
        year += 2000

    try:
        parsed = date(year, month, day)
    except ValueError:
        return None

    if parsed < today:
        return None
    return parsed


def parse_hhmm(value: str) -> time:
    hours, minutes = map(int, value.split(":"))
    return time(hours, minutes)


def format_date_display(value: date) -> str:
    """``sexta-feira, 25 de dezembro``"""
    return f"{WEEKDAYS_PT[value.weekday()]}, {value.day} de {MONTHS_PT[value.month - 1]}"


def format_price(price_cents: int) -> str:
    """Format cents as BRL, e.g. ``R$ 1.234,50``."""
    reais, cents = divmod(int(price_cents), 100)
    grouped = f"{reais:,}".replace(",", ".")
    return f"R$ {grouped},{cents:02d}"
