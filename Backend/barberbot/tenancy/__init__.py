"""
Multi-tenancy package.

Modules:
    context: ShopContext resolution from the messaging instance id
    queries: Tenant-scoped query helpers
"""

from .context import (
    ShopContext,
    ShopResolutionSource,
    TenantNotFoundError,
    require_shop_from_instance_id,
    resolve_shop_from_id,
    resolve_shop_from_instance_id,
)

from .queries import (
    scoped_select,
    list_active_services,
    list_active_barbers,
    get_working_hours,
    list_blocked_times,
    list_blocking_appointments,
    count_active_appointments,
    list_upcoming_appointments,
    reminder_exists,
)

__all__ = [
    "ShopContext",
    "ShopResolutionSource",
    "TenantNotFoundError",
    "require_shop_from_instance_id",
    "resolve_shop_from_id",
    "resolve_shop_from_instance_id",
    "scoped_select",
    "list_active_services",
    "list_active_barbers",
    "get_working_hours",
    "list_blocked_times",
    "list_blocking_appointments",
    "count_active_appointments",
    "list_upcoming_appointments",
    "reminder_exists",
]
