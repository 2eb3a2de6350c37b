"""
Multi-tenancy context for the WhatsApp bot.

Every inbound webhook carries the messaging-provider instance id; that id is
the only way a request is bound to a shop. The resolved ShopContext carries
the shop's outbound credentials so nothing downstream re-reads the shops
table.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Shop


logger = logging.getLogger(__name__)


class ShopResolutionSource(str, Enum):
    """How the shop context was determined."""

    WHATSAPP_INSTANCE = "whatsapp_instance"  # From webhook instanceId
    SHOP_ID = "shop_id"                      # From an explicit shop id (notification endpoint)


class TenantNotFoundError(Exception):
    """Raised when an instance id does not belong to any shop."""

    def __init__(self, instance_id: str):
        super().__init__(f"No shop registered for instance {instance_id!r}")
        self.instance_id = instance_id


@dataclass(frozen=True)
class ShopContext:
    """
    Immutable context representing the tenant of a request.

    Attributes:
        shop_id: The database ID of the shop (shops.id)
        shop_name: Display name used in greetings
        instance_id: Messaging-provider instance identifier
        token: Messaging-provider bearer token (may be empty)
        source: How this context was determined
    """

    shop_id: int
    shop_name: str = ""
    instance_id: str = ""
    token: str = field(default="", repr=False)
    source: ShopResolutionSource = ShopResolutionSource.WHATSAPP_INSTANCE

    def __post_init__(self):
        if self.shop_id <= 0:
            raise ValueError(f"shop_id must be positive, got {self.shop_id}")

    @property
    def can_send(self) -> bool:
        return bool(self.instance_id and self.token)


def _context_from_shop(shop: Shop, source: ShopResolutionSource) -> ShopContext:
    ctx = ShopContext(
        shop_id=shop.id,
        shop_name=shop.name,
        instance_id=shop.wapi_instance_id or "",
        token=shop.wapi_token or "",
        source=source,
    )
    logger.debug(f"Resolved shop {ctx.shop_id} via {ctx.source.value}")
    return ctx


async def resolve_shop_from_instance_id(
    session: AsyncSession,
    instance_id: str,
) -> Optional[ShopContext]:
    """
    Resolve shop context from a messaging-provider instance id.

    Returns:
        ShopContext if found, None otherwise
    """
    if not instance_id:
        return None

    result = await session.execute(select(Shop).where(Shop.wapi_instance_id == instance_id))
    shop = result.scalar_one_or_none()
    if not shop:
        logger.warning(f"No shop found for instanceId {instance_id}")
        return None

    return _context_from_shop(shop, ShopResolutionSource.WHATSAPP_INSTANCE)


async def require_shop_from_instance_id(session: AsyncSession, instance_id: str) -> ShopContext:
    """Like resolve_shop_from_instance_id but raises TenantNotFoundError."""
    ctx = await resolve_shop_from_instance_id(session, instance_id)
    if ctx is None:
        raise TenantNotFoundError(instance_id)
    return ctx


async def resolve_shop_from_id(session: AsyncSession, shop_id: int) -> Optional[ShopContext]:
    result = await session.execute(select(Shop).where(Shop.id == shop_id))
    shop = result.scalar_one_or_none()
    if not shop:
        return None
    return _context_from_shop(shop, ShopResolutionSource.SHOP_ID)
