from django.db import transaction
from django.db.models.signals import post_save
from django.dispatch import receiver
from apps.core.task_service import TaskService
from .models import Order
import logging

logger = logging.getLogger(__name__)


def _queue_new_order_alert(order_id):
    try:
        TaskService.notify_new_order(order_id)
    except Exception as e:
        # The order is already committed; a lost alert must not surface as an error.
        logger.exception(f"Signal: Failed to queue new-order alert for {order_id}: {e}")


@receiver(post_save, sender=Order)
def handle_order_created(sender, instance, created, **kwargs):
    """
    Alert staff of a new order once the creating transaction commits.
    """
    if not created:
        return
    order_id = instance.id
    transaction.on_commit(lambda: _queue_new_order_alert(order_id))
