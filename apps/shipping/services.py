"""
Shipping services: webhook batch processing and carrier history sync.
"""
import logging
import time
from typing import List, Optional

from django.db import DatabaseError, transaction

from apps.orders.reconciler import SyncOutcome, apply_delivery_status, sync_delivery_status
from .dtos import BatchResult, HistorySyncReport, WebhookBatchIn
from .yalidine import YalidineClient, YalidineError, YalidineNotConfigured

logger = logging.getLogger(__name__)

PARCEL_STATUS_UPDATED = "parcel_status_updated"

DEFAULT_MAX_PAGES = 50
DEFAULT_PAGE_PAUSE = 1.0


def process_webhook_batch(batch: WebhookBatchIn) -> BatchResult:
    """
    Reconcile every status-change event in a webhook delivery.

    Each event is its own read-then-write. A failing event is logged and
    skipped so the rest of the batch still lands.
    """
    events = batch.events or []
    result = BatchResult(received=len(events))
    logger.info(f"Received Yalidine webhook: {batch.type} ({len(events)} events)")

    if batch.type != PARCEL_STATUS_UPDATED:
        logger.info(f"Ignoring Yalidine webhook of type {batch.type!r}")
        return result

    for event in events:
        data = event.data
        if not data.tracking:
            result.skipped += 1
            continue

        logger.info(f"Updating order {data.tracking} to status: {data.status} (reason: {data.reason})")
        try:
            with transaction.atomic():
                order = apply_delivery_status(data.tracking, data.status)
        except DatabaseError as e:
            logger.exception(f"Failed to update order with tracking {data.tracking}: {e}")
            result.failed += 1
            continue

        if order is None:
            logger.warning(f"Order with tracking {data.tracking} not found.")
            result.not_found += 1
        else:
            logger.info(f"Order {order.order_number} updated.")
            result.updated += 1

    return result


def fetch_all_parcels(
    client: YalidineClient,
    max_pages: int = DEFAULT_MAX_PAGES,
    pause: float = DEFAULT_PAGE_PAUSE,
) -> List[dict]:
    """
    Page through the whole parcel list.

    Stops at the last page, at `max_pages`, or at the first API error
    (keeping what was fetched so far).
    """
    parcels = []
    page = 1
    while page <= max_pages:
        try:
            response = client.list_parcels(page=page)
        except YalidineError as e:
            logger.error(f"Error fetching Yalidine page {page}: {e}")
            break

        batch = response.get("data") or []
        parcels.extend(batch)
        logger.info(f"Page {page}: {len(batch)} shipments (total so far: {len(parcels)})")

        if not response.get("has_more"):
            break
        page += 1
        time.sleep(pause)
    else:
        logger.warning(f"Reached {max_pages} pages limit, stopping fetch.")

    return parcels


def sync_history(
    client: Optional[YalidineClient] = None,
    max_pages: int = DEFAULT_MAX_PAGES,
    dry_run: bool = False,
    pause: float = DEFAULT_PAGE_PAUSE,
) -> HistorySyncReport:
    """
    Align every order's delivery status with the carrier's last_status.

    Raises YalidineNotConfigured when credentials are missing.
    """
    client = client or YalidineClient()
    if not client.is_configured:
        raise YalidineNotConfigured("Yalidine API credentials not configured")

    parcels = fetch_all_parcels(client, max_pages=max_pages, pause=pause)
    report = HistorySyncReport(fetched=len(parcels))

    for parcel in parcels:
        tracking = parcel.get("tracking")
        if not tracking:
            continue
        try:
            with transaction.atomic():
                outcome = sync_delivery_status(tracking, parcel.get("last_status"), dry_run=dry_run)
        except DatabaseError as e:
            logger.error(f"Error updating order {tracking}: {e}")
            report.errors += 1
            continue

        if outcome == SyncOutcome.UPDATED:
            report.updated += 1
        elif outcome == SyncOutcome.UNCHANGED:
            report.unchanged += 1
        else:
            report.not_found += 1

    logger.info(f"Yalidine history sync{' (dry run)' if dry_run else ''} complete: {report}")
    return report
