from celery import shared_task
from dataclasses import asdict
from .yalidine import YalidineNotConfigured
from . import services
import logging

logger = logging.getLogger(__name__)


@shared_task
def sync_yalidine_history(max_pages=services.DEFAULT_MAX_PAGES):
    """
    Nightly re-sync of delivery statuses from the Yalidine parcel list.

    Catches up on webhook deliveries that were missed or rejected.
    """
    try:
        report = services.sync_history(max_pages=max_pages)
    except YalidineNotConfigured:
        logger.warning("Yalidine credentials missing. Skipping history sync.")
        return None
    return asdict(report)
