"""
Outbound WhatsApp sender using the shop's messaging-provider instance.
"""

import logging

import httpx

from .core.config import get_settings
from .loyalty import digits_only

settings = get_settings()
logger = logging.getLogger(__name__)

SEND_TEXT_PATH = "/v1/message/send-text"


def mask_phone(phone: str) -> str:
    return f"{phone[:6]}***" if phone else phone


def with_country_code(phone: str) -> str:
    """Digits-only phone, prefixed with the default country code when missing."""
    cleaned = digits_only(phone)
    if cleaned and not cleaned.startswith(settings.default_country_code):
        cleaned = f"{settings.default_country_code}{cleaned}"
    return cleaned


async def send_whatsapp_message(instance_id: str, token: str, phone: str, message: str) -> bool:
    """
    Send a text message through the provider's send-text endpoint.

    Args:
        instance_id: Provider instance of the shop
        token: Bearer token of that instance
        phone: Recipient, used exactly as received (already carries country code)
        message: Message text

    Returns:
        True if the provider accepted the message, False otherwise

    Note:
        This function never raises; delivery problems are logged and reported
        through the return value only.
    """
    if not instance_id or not token:
        logger.warning(f"WhatsApp credentials missing for instance {instance_id!r}. Skipping send.")
        return False

    url = f"{settings.whatsapp_api_url.rstrip('/')}{SEND_TEXT_PATH}"
    headers = {
        "Authorization": f"Bearer {token}",
        "Content-Type": "application/json",
    }
    payload = {"phone": phone, "message": message}

    try:
        async with httpx.AsyncClient(timeout=settings.whatsapp_timeout_seconds) as client:
            response = await client.post(
                url,
                params={"instanceId": instance_id},
                json=payload,
                headers=headers,
            )
            response.raise_for_status()

        logger.info(f"WhatsApp message sent to {mask_phone(phone)} via {instance_id}")
        return True

    except httpx.HTTPStatusError as e:
        logger.error(
            f"WhatsApp API rejected message to {mask_phone(phone)}: "
            f"{e.response.status_code} - {e.response.text[:200]}"
        )
        return False
    except httpx.HTTPError as e:
        logger.error(f"Failed to send WhatsApp message to {mask_phone(phone)}: {e}")
        return False
