"""
Finite state machine for the WhatsApp booking conversation.

Each step has one handler. A handler receives the conversation context and
the raw message text and returns a StepResult: the next step, the full
temp_data to persist, and the reply text. Handlers never persist the session
themselves; the only write they perform is the appointment insert in
``select_time``.

Flow:
    welcome -> menu -> select_service -> select_barber -> select_date
            -> select_time -> confirmed
    menu -> human_support

The global cancel command is checked by the caller before dispatch.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from . import messages
from .availability import get_available_slots
from .bookings import BookingRequest, create_appointment
from .bot_session import ConversationSession
from .core.config import get_settings
from .dates import get_local_tz, parse_date_token
from .loyalty import digits_only
from .tenancy.context import ShopContext
from .tenancy.queries import count_active_appointments, list_active_barbers, list_active_services

logger = logging.getLogger(__name__)
settings = get_settings()


class BotStep(str, Enum):
    """All states of the booking conversation."""
    WELCOME = "welcome"
    MENU = "menu"
    SELECT_SERVICE = "select_service"
    SELECT_BARBER = "select_barber"
    SELECT_DATE = "select_date"
    SELECT_TIME = "select_time"
    CONFIRMED = "confirmed"
    HUMAN_SUPPORT = "human_support"


@dataclass(frozen=True)
class StepResult:
    next_step: BotStep
    temp_data: Dict[str, Any] = field(default_factory=dict)
    reply: str = ""


@dataclass
class DialogueContext:
    db: AsyncSession
    shop: ShopContext
    session: ConversationSession
    now_utc: datetime

    @property
    def temp_data(self) -> Dict[str, Any]:
        return self.session.temp_data

    @property
    def local_today(self) -> date:
        return self.now_utc.astimezone(get_local_tz()).date()


StepHandler = Callable[[DialogueContext, str], Awaitable[StepResult]]


def is_cancel_command(text: str) -> bool:
    return text.strip().lower() in settings.cancel_keywords_list


def parse_choice(text: str, max_option: int) -> Optional[int]:
    """1-based menu choice, or None when not an integer in [1, max_option]."""
    try:
        choice = int(text.strip())
    except ValueError:
        return None
    if choice < 1 or choice > max_option:
        return None
    return choice


# ────────────────────────────────────────────────────────────────
# Step handlers
# ────────────────────────────────────────────────────────────────

async def handle_welcome(ctx: DialogueContext, text: str) -> StepResult:
    return StepResult(BotStep.MENU, {}, messages.format_welcome(ctx.shop.shop_name))


async def handle_menu(ctx: DialogueContext, text: str) -> StepResult:
    choice = text.strip()

    if choice == "1":
        if settings.max_active_appointments > 0:
            active = await count_active_appointments(
                ctx.db, ctx.shop.shop_id, digits_only(ctx.session.phone), ctx.now_utc
            )
            if active >= settings.max_active_appointments:
                return StepResult(BotStep.MENU, {}, messages.format_active_limit(active))

        services = await list_active_services(ctx.db, ctx.shop.shop_id)
        if not services:
            return StepResult(BotStep.MENU, {}, messages.format_no_services())

        service_options = [
            {
                "id": s.id,
                "name": s.name,
                "price_cents": s.price_cents,
                "duration_minutes": s.duration_minutes,
            }
            for s in services
        ]
        return StepResult(
            BotStep.SELECT_SERVICE,
            {"services": service_options},
            messages.format_service_list(service_options),
        )

    if choice == "2":
        return StepResult(BotStep.HUMAN_SUPPORT, {}, messages.format_human_support_start())

    return StepResult(BotStep.MENU, {}, messages.format_menu_invalid())


async def handle_select_service(ctx: DialogueContext, text: str) -> StepResult:
    services = ctx.temp_data.get("services", [])
    choice = parse_choice(text, len(services))
    if choice is None:
        return StepResult(
            BotStep.SELECT_SERVICE, ctx.temp_data, messages.format_invalid_choice(len(services))
        )

    selected = services[choice - 1]
    barbers = await list_active_barbers(ctx.db, ctx.shop.shop_id)
    if not barbers:
        return StepResult(BotStep.MENU, {}, messages.format_no_barbers())

    barber_options = [{"id": b.id, "name": b.name} for b in barbers]
    return StepResult(
        BotStep.SELECT_BARBER,
        {
            "service_id": selected["id"],
            "service_name": selected["name"],
            "service_price_cents": selected["price_cents"],
            "service_duration": selected["duration_minutes"],
            "barbers": barber_options,
        },
        messages.format_barber_list(selected["name"], barber_options),
    )


async def handle_select_barber(ctx: DialogueContext, text: str) -> StepResult:
    barbers = ctx.temp_data.get("barbers", [])
    choice = parse_choice(text, len(barbers))
    if choice is None:
        return StepResult(
            BotStep.SELECT_BARBER, ctx.temp_data, messages.format_invalid_choice(len(barbers))
        )

    selected = barbers[choice - 1]
    return StepResult(
        BotStep.SELECT_DATE,
        {**ctx.temp_data, "barber_id": selected["id"], "barber_name": selected["name"]},
        messages.format_date_prompt(selected["name"]),
    )


async def handle_select_date(ctx: DialogueContext, text: str) -> StepResult:
    local_date = parse_date_token(text, today=ctx.local_today)
    if local_date is None:
        return StepResult(BotStep.SELECT_DATE, ctx.temp_data, messages.format_invalid_date())

    barber_name = ctx.temp_data.get("barber_name", "")
    slots = await get_available_slots(
        ctx.db,
        ctx.shop.shop_id,
        ctx.temp_data["barber_id"],
        local_date,
        ctx.temp_data["service_duration"],
        now_utc=ctx.now_utc,
    )
    if not slots:
        return StepResult(
            BotStep.SELECT_DATE, ctx.temp_data, messages.format_no_slots(local_date, barber_name)
        )

    return StepResult(
        BotStep.SELECT_TIME,
        {**ctx.temp_data, "selected_date": local_date.isoformat(), "available_slots": slots},
        messages.format_slot_list(local_date, barber_name, slots),
    )


async def handle_select_time(ctx: DialogueContext, text: str) -> StepResult:
    slots = ctx.temp_data.get("available_slots", [])
    choice = parse_choice(text, len(slots))
    if choice is None:
        return StepResult(
            BotStep.SELECT_TIME, ctx.temp_data, messages.format_invalid_choice(len(slots))
        )

    slot = slots[choice - 1]
    data = ctx.temp_data
    local_date = date.fromisoformat(data["selected_date"])
    request = BookingRequest(
        service_id=data["service_id"],
        barber_id=data["barber_id"],
        local_date=local_date,
        slot=slot,
        duration_minutes=data["service_duration"],
        price_cents=data["service_price_cents"],
        phone=ctx.session.phone,
    )

    appointment = await create_appointment(ctx.db, ctx.shop.shop_id, request)
    if appointment is None:
        return StepResult(BotStep.MENU, {}, messages.format_booking_error())

    return StepResult(
        BotStep.CONFIRMED,
        {},
        messages.format_booking_confirmation(
            local_date,
            slot,
            data["service_name"],
            data["barber_name"],
            data["service_price_cents"],
        ),
    )


async def handle_confirmed(ctx: DialogueContext, text: str) -> StepResult:
    # A finished booking starts over exactly like a first contact
    return await handle_welcome(ctx, text)


async def handle_human_support(ctx: DialogueContext, text: str) -> StepResult:
    return StepResult(BotStep.HUMAN_SUPPORT, {}, messages.format_human_support_ack())


STEP_HANDLERS: Dict[BotStep, StepHandler] = {
    BotStep.WELCOME: handle_welcome,
    BotStep.MENU: handle_menu,
    BotStep.SELECT_SERVICE: handle_select_service,
    BotStep.SELECT_BARBER: handle_select_barber,
    BotStep.SELECT_DATE: handle_select_date,
    BotStep.SELECT_TIME: handle_select_time,
    BotStep.CONFIRMED: handle_confirmed,
    BotStep.HUMAN_SUPPORT: handle_human_support,
}


async def dispatch(ctx: DialogueContext, text: str) -> StepResult:
    """Run the handler of the session's current step (unknown steps restart at welcome)."""
    try:
        step = BotStep(ctx.session.step)
    except ValueError:
        logger.warning(f"Unknown step {ctx.session.step!r} for session {ctx.session.id}, restarting")
        step = BotStep.WELCOME

    result = await STEP_HANDLERS[step](ctx, text)
    logger.info(f"Session {ctx.session.id}: {step.value} -> {result.next_step.value}")
    return result
