"""
Persistent conversation state for WhatsApp customers.

One row per (shop, phone) in ``bot_sessions``. A row whose ``expires_at`` has
passed is treated as absent and overwritten with a fresh ``welcome`` session
on the next contact. Callers receive an immutable ConversationSession
snapshot, never the ORM row.
"""

import copy
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .core.config import get_settings
from .dates import ensure_utc
from .models import BotSession

logger = logging.getLogger(__name__)
settings = get_settings()

INITIAL_STEP = "welcome"


@dataclass(frozen=True)
class ConversationSession:
    id: uuid.UUID
    shop_id: int
    phone: str
    step: str
    temp_data: Dict[str, Any] = field(default_factory=dict)
    expires_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def session_ttl() -> timedelta:
    return timedelta(hours=settings.session_ttl_hours)


def _snapshot(row: BotSession) -> ConversationSession:
    return ConversationSession(
        id=row.id,
        shop_id=row.shop_id,
        phone=row.phone,
        step=row.step,
        temp_data=copy.deepcopy(row.temp_data or {}),
        expires_at=ensure_utc(row.expires_at) if row.expires_at else None,
        updated_at=ensure_utc(row.updated_at) if row.updated_at else None,
    )


async def load_or_create(
    db: AsyncSession,
    shop_id: int,
    phone: str,
    now: Optional[datetime] = None,
    _retry: bool = True,
) -> ConversationSession:
    """
    Return the live session for (shop, phone), or start a new one.

    The row is read FOR UPDATE so concurrent messages from the same customer
    queue behind each other until the caller's transaction ends.
    """
    now = now or datetime.now(timezone.utc)

    result = await db.execute(
        select(BotSession)
        .where(BotSession.shop_id == shop_id, BotSession.phone == phone)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    row = result.scalar_one_or_none()

    if row and ensure_utc(row.expires_at) > now:
        return _snapshot(row)

    expires_at = now + session_ttl()
    if row:
        logger.info(f"Session for shop {shop_id} / {phone[:6]}*** expired, starting over")
        row.step = INITIAL_STEP
        row.temp_data = {}
        row.expires_at = expires_at
        row.updated_at = now
    else:
        row = BotSession(
            shop_id=shop_id,
            phone=phone,
            step=INITIAL_STEP,
            temp_data={},
            expires_at=expires_at,
            updated_at=now,
        )
        db.add(row)

    try:
        await db.flush()
    except IntegrityError:
        # Another request created the row first; read theirs.
        await db.rollback()
        if not _retry:
            raise
        return await load_or_create(db, shop_id, phone, now=now, _retry=False)

    return _snapshot(row)


async def update_session(
    db: AsyncSession,
    session_id: uuid.UUID,
    step: str,
    temp_data: Dict[str, Any],
) -> None:
    """Overwrite step and temp_data; expires_at is left untouched."""
    await db.execute(
        update(BotSession)
        .where(BotSession.id == session_id)
        .values(step=step, temp_data=temp_data, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    logger.debug(f"Session {session_id} -> {step}")


async def reset_session(db: AsyncSession, session_id: uuid.UUID) -> None:
    await update_session(db, session_id, INITIAL_STEP, {})
