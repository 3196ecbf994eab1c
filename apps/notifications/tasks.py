from celery import shared_task
from dataclasses import asdict
from uuid import UUID
from . import services
import logging

logger = logging.getLogger(__name__)


@shared_task
def send_push_notification(subscription_ids, notification):
    """
    Deliver one notification to a set of subscriptions.
    """
    result = services.deliver(subscription_ids, notification)
    logger.info(f"Push delivery finished: {result}")
    return asdict(result)


@shared_task
def notify_new_order(order_id):
    """
    Alert staff subscriptions about a newly created order.
    """
    result = services.notify_new_order(UUID(order_id))
    logger.info(f"New-order alert for {order_id}: {result}")
    return asdict(result)
