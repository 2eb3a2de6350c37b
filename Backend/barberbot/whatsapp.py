"""
WhatsApp integration for barbershop bookings.

This module handles:
- Incoming WhatsApp messages (provider webhook)
- Tenant resolution, session load and the global cancel command
- Dispatch into the booking dialogue
- Outbound appointment notifications requested by the dashboard
- The appointment-reminder job trigger (called by cron)
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from .bot_session import load_or_create, reset_session, update_session
from .core.db import get_session
from .core.responses import (
    ErrorMessages,
    cancelled_response,
    error_response,
    notification_response,
    reminder_error_response,
    reminder_run_response,
    step_response,
)
from .dates import get_local_tz
from .dialogue import DialogueContext, dispatch, is_cancel_command
from .loyalty import update_client_name
from .messages import format_appointment_notification, format_cancelled
from .messenger import mask_phone, send_whatsapp_message, with_country_code
from .reminders import send_due_reminders
from .tenancy.context import TenantNotFoundError, require_shop_from_instance_id, resolve_shop_from_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/whatsapp", tags=["whatsapp"])


class IncomingMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    instance_id: str = Field(default="", alias="instanceId")
    msg_content: str = Field(default="", alias="msgContent")
    sender: str = Field(default="")
    sender_name: Optional[str] = Field(default=None, alias="senderName")

    def is_complete(self) -> bool:
        return bool(self.instance_id.strip() and self.msg_content.strip() and self.sender.strip())


class NotificationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    shop_id: Optional[int] = Field(default=None, alias="shopId")
    phone: Optional[str] = None
    message: Optional[str] = None
    client_name: Optional[str] = Field(default=None, alias="clientName")
    service_name: Optional[str] = Field(default=None, alias="serviceName")
    service_price: Optional[float] = Field(default=None, alias="servicePrice")
    barber_name: Optional[str] = Field(default=None, alias="barberName")
    date_time: Optional[datetime] = Field(default=None, alias="dateTime")
    shop_name: Optional[str] = Field(default=None, alias="shopName")


async def process_incoming_message(
    db: AsyncSession,
    incoming: IncomingMessage,
    now: Optional[datetime] = None,
) -> dict:
    """
    Handle one inbound message end to end and return the response envelope.

    Raises:
        TenantNotFoundError: instanceId does not belong to any shop
    """
    now = now or datetime.now(timezone.utc)
    shop = await require_shop_from_instance_id(db, incoming.instance_id)

    conversation = await load_or_create(db, shop.shop_id, incoming.sender, now=now)
    await update_client_name(db, shop.shop_id, incoming.sender, incoming.sender_name)

    if is_cancel_command(incoming.msg_content):
        await reset_session(db, conversation.id)
        await db.commit()
        logger.info(f"Session {conversation.id} cancelled by {mask_phone(incoming.sender)}")
        await send_whatsapp_message(shop.instance_id, shop.token, incoming.sender, format_cancelled())
        return cancelled_response()

    ctx = DialogueContext(db=db, shop=shop, session=conversation, now_utc=now)
    result = await dispatch(ctx, incoming.msg_content)

    await update_session(db, conversation.id, result.next_step.value, result.temp_data)
    await db.commit()

    # State is already persisted; a failed send is only logged.
    await send_whatsapp_message(shop.instance_id, shop.token, incoming.sender, result.reply)
    return step_response(result.next_step.value)


@router.post(
    "/webhook",
    summary="WhatsApp webhook for barbershop bookings",
    description="Receives incoming WhatsApp messages from the messaging provider.",
)
async def whatsapp_webhook(request: Request, session: AsyncSession = Depends(get_session)):
    """
    Messaging-provider webhook endpoint.

    Body (JSON):
    - instanceId: Provider instance that received the message
    - msgContent: Message text
    - sender: Customer phone, with country code
    - senderName: WhatsApp display name (optional)
    """
    try:
        body = await request.json()
    except ValueError:
        return error_response(ErrorMessages.INVALID_JSON, status.HTTP_400_BAD_REQUEST)

    try:
        incoming = IncomingMessage.model_validate(body)
    except ValidationError:
        return error_response(ErrorMessages.MISSING_FIELDS, status.HTTP_400_BAD_REQUEST)

    if not incoming.is_complete():
        return error_response(ErrorMessages.MISSING_FIELDS, status.HTTP_400_BAD_REQUEST)

    logger.info(
        f"📱 WhatsApp message from {mask_phone(incoming.sender)} on {incoming.instance_id}: "
        f"{incoming.msg_content[:50]}"
    )

    try:
        return await process_incoming_message(session, incoming)
    except TenantNotFoundError:
        await session.rollback()
        logger.error(f"Shop not found for instanceId {incoming.instance_id}")
        return error_response(ErrorMessages.SHOP_NOT_FOUND, status.HTTP_404_NOT_FOUND)
    except Exception as e:
        await session.rollback()
        logger.exception(f"WhatsApp webhook error: {e}")
        return error_response(str(e) or ErrorMessages.INTERNAL_ERROR, status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.post(
    "/send",
    summary="Send an appointment notification",
    description="Sends a custom text or an appointment confirmation through the shop's WhatsApp instance.",
)
async def send_notification(request: Request, session: AsyncSession = Depends(get_session)):
    """
    Dashboard-triggered notification.

    Always answers 200; the outcome is reported as {"success": bool, "reason"?: str}.
    """
    try:
        payload = NotificationRequest.model_validate(await request.json())
    except (ValueError, ValidationError):
        logger.info("Invalid notification payload, skipping WhatsApp notification")
        return notification_response(False, "Missing required fields")

    if not payload.shop_id or not payload.phone:
        logger.info("Missing shopId or phone, skipping WhatsApp notification")
        return notification_response(False, "Missing required fields")

    try:
        return await deliver_notification(session, payload)
    except Exception as e:
        await session.rollback()
        logger.exception(f"WhatsApp notification error for shop {payload.shop_id}: {e}")
        return notification_response(False, str(e) or ErrorMessages.INTERNAL_ERROR)


async def deliver_notification(session: AsyncSession, payload: NotificationRequest) -> dict:
    shop = await resolve_shop_from_id(session, payload.shop_id)
    if shop is None:
        return notification_response(False, "Shop not found")
    if not shop.can_send:
        logger.info(f"WhatsApp credentials not configured for shop {payload.shop_id}")
        return notification_response(False, "WhatsApp not configured")

    if payload.message:
        text = payload.message
    elif payload.date_time is not None:
        when = payload.date_time
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        text = format_appointment_notification(
            client_name=payload.client_name,
            shop_name=payload.shop_name or shop.shop_name,
            service_name=payload.service_name,
            barber_name=payload.barber_name,
            price_cents=round((payload.service_price or 0) * 100),
            when=when.astimezone(get_local_tz()),
        )
    else:
        return notification_response(False, "Missing message or dateTime")

    sent = await send_whatsapp_message(shop.instance_id, shop.token, with_country_code(payload.phone), text)
    if not sent:
        return notification_response(False, "Send failed")
    return notification_response(True)


@router.post(
    "/reminders",
    summary="Send due appointment reminders",
    description="Sends the 24h and 1h WhatsApp reminders that are due. Meant to be called by a scheduler.",
)
async def send_reminders(session: AsyncSession = Depends(get_session)):
    try:
        results = await send_due_reminders(session)
    except Exception as e:
        await session.rollback()
        logger.exception(f"Reminder job error: {e}")
        return reminder_error_response(str(e) or ErrorMessages.INTERNAL_ERROR)
    return reminder_run_response(results.as_dict())
