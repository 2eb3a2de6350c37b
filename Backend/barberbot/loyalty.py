from __future__ import annotations

import logging
import re

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .models import LoyaltyPoints

logger = logging.getLogger(__name__)

# Names the dashboard stores when it has nothing better
PLACEHOLDER_NAMES = {"", "cliente", "null"}


def digits_only(phone: str) -> str:
    return re.sub(r"\D", "", phone or "")


def is_placeholder_name(name: str | None) -> bool:
    return (name or "").strip().lower() in PLACEHOLDER_NAMES


async def get_loyalty_record(
    session: AsyncSession, shop_id: int, phone: str
) -> LoyaltyPoints | None:
    result = await session.execute(
        select(LoyaltyPoints).where(
            LoyaltyPoints.shop_id == shop_id,
            LoyaltyPoints.client_phone == digits_only(phone),
        )
    )
    return result.scalar_one_or_none()


async def get_client_name(session: AsyncSession, shop_id: int, phone: str) -> str | None:
    record = await get_loyalty_record(session, shop_id, phone)
    if not record or is_placeholder_name(record.client_name):
        return None
    return record.client_name


async def update_client_name(
    session: AsyncSession, shop_id: int, phone: str, sender_name: str | None
) -> LoyaltyPoints | None:
    """
    Remember the WhatsApp display name of a customer.

    Creates the loyalty record when missing and fills the name when the stored
    one is empty or a placeholder. A real name is never overwritten. Storage
    errors are logged and swallowed so the conversation still proceeds.
    """
    name = (sender_name or "").strip()
    if not name:
        return None

    client_phone = digits_only(phone)
    try:
        async with session.begin_nested():
            record = await get_loyalty_record(session, shop_id, client_phone)
            if record:
                if is_placeholder_name(record.client_name):
                    record.client_name = name
                    logger.info(f"Client name updated: {client_phone[:6]}*** -> {name}")
                return record

            record = LoyaltyPoints(
                shop_id=shop_id,
                client_phone=client_phone,
                client_name=name,
                total_points=0,
                lifetime_points=0,
            )
            session.add(record)
            logger.info(f"New loyalty client: {client_phone[:6]}*** -> {name}")
        return record
    except SQLAlchemyError as e:
        logger.error(f"Failed to update client name for {client_phone[:6]}***: {e}")
        return None
