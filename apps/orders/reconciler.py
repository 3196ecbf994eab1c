"""
Order reconciliation against carrier-reported delivery statuses.

Two entry points:
- apply_delivery_status(): webhook path, unconditional overwrite.
- sync_delivery_status(): bulk history sync, writes only on change.

Neither guards against out-of-order updates: a late event carrying an
older status will overwrite a newer one.
"""
import logging
from typing import Optional

from .models import Order

logger = logging.getLogger(__name__)


class SyncOutcome:
    UPDATED = "UPDATED"
    UNCHANGED = "UNCHANGED"
    NOT_FOUND = "NOT_FOUND"


def find_order_by_tracking(tracking: str) -> Optional[Order]:
    """First (oldest) order carrying this tracking number, if any."""
    return (
        Order.objects.filter(tracking_number=tracking)
        .order_by('created_at', 'order_number')
        .first()
    )


def apply_delivery_status(tracking: str, status: Optional[str]) -> Optional[Order]:
    """
    Overwrite the delivery status of the order matching `tracking`.

    Returns the updated order, or None when no order matches (nothing is
    written in that case).
    """
    order = find_order_by_tracking(tracking)
    if order is None:
        return None

    order.delivery_status = status or ''
    order.save(update_fields=['delivery_status', 'updated_at'])
    return order


def sync_delivery_status(tracking: str, status: Optional[str], dry_run: bool = False) -> str:
    """
    Bring the matching order in line with `status`, skipping no-op writes.

    Returns one of the SyncOutcome constants.
    """
    order = find_order_by_tracking(tracking)
    if order is None:
        return SyncOutcome.NOT_FOUND

    status = status or ''
    if order.delivery_status == status:
        return SyncOutcome.UNCHANGED

    if not dry_run:
        order.delivery_status = status
        order.save(update_fields=['delivery_status', 'updated_at'])
    logger.debug(f"Order {order.order_number}: delivery status -> {status!r}")
    return SyncOutcome.UPDATED
