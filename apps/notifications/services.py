"""
Push notification services.

Subscriptions are registered through the API; delivery always goes
through TaskService so it can be moved off the request path.
"""
import json
import logging
from typing import Iterable, List, Optional, Tuple
from uuid import UUID

from django.conf import settings
from django.contrib.auth import get_user_model
from pywebpush import WebPushException, webpush

from .dtos import DispatchResult
from .models import PushSubscription

logger = logging.getLogger(__name__)

# Push service responses meaning the subscription no longer exists
GONE_STATUS_CODES = (404, 410)


def upsert_subscription(user_id: str, endpoint: str, p256dh: str, auth: str) -> Tuple[PushSubscription, bool]:
    """
    Create or refresh the subscription for `endpoint`.

    Returns (subscription, created).
    """
    subscription, created = PushSubscription.objects.update_or_create(
        endpoint=endpoint,
        defaults={
            "user_id": user_id,
            "p256dh": p256dh,
            "auth": auth,
        },
    )
    logger.info(
        f"Push subscription {'created' if created else 'updated'} for user {user_id}"
    )
    return subscription, created


def build_notification(title: str, body: str, url: Optional[str] = None, data: Optional[dict] = None) -> dict:
    return {
        "title": title,
        "body": body,
        "url": url,
        "data": data or {},
    }


def _vapid_credentials() -> Optional[dict]:
    if not (settings.VAPID_PUBLIC_KEY and settings.VAPID_PRIVATE_KEY):
        return None
    return {
        "vapid_private_key": settings.VAPID_PRIVATE_KEY,
        "vapid_claims": {"sub": f"mailto:{settings.VAPID_CLAIMS_EMAIL}"},
    }


def send_to_subscriptions(subscriptions: Iterable[PushSubscription], notification: dict) -> DispatchResult:
    """
    Push `notification` to every subscription.

    Subscriptions the push service reports as gone are deleted. Any other
    failure is logged and delivery continues with the next subscription.
    """
    credentials = _vapid_credentials()
    if credentials is None:
        logger.warning("Skipping push delivery: VAPID keys not configured")
        return DispatchResult(skipped=True)

    data = json.dumps(notification)
    sent = expired = failed = 0

    for subscription in subscriptions:
        try:
            webpush(
                subscription_info=subscription.as_subscription_info(),
                data=data,
                **credentials,
            )
            sent += 1
        except WebPushException as e:
            status_code = getattr(e.response, "status_code", None)
            if status_code in GONE_STATUS_CODES:
                logger.info(f"Removing expired push subscription {subscription.id} ({status_code})")
                subscription.delete()
                expired += 1
            else:
                logger.error(f"Push delivery to subscription {subscription.id} failed: {e}")
                failed += 1

    return DispatchResult(sent=sent, expired=expired, failed=failed)


def deliver(subscription_ids: List[str], notification: dict) -> DispatchResult:
    """Task entry point: deliver to subscriptions that still exist."""
    subscriptions = PushSubscription.objects.filter(id__in=subscription_ids)
    return send_to_subscriptions(subscriptions, notification)


def send_to_user(user_id: str, notification: dict) -> int:
    """
    Queue `notification` for all of a user's subscriptions.

    Returns how many subscriptions were targeted.
    """
    from apps.core.task_service import TaskService

    subscription_ids = list(
        PushSubscription.objects.filter(user_id=str(user_id)).values_list("id", flat=True)
    )
    if not subscription_ids:
        logger.info(f"No push subscriptions for user {user_id}")
        return 0

    TaskService.send_push_notification(subscription_ids, notification)
    return len(subscription_ids)


def staff_subscriptions():
    """Subscriptions belonging to active staff accounts."""
    User = get_user_model()
    staff_ids = [
        str(pk) for pk in User.objects.filter(is_staff=True, is_active=True).values_list("pk", flat=True)
    ]
    return PushSubscription.objects.filter(user_id__in=staff_ids)


def notify_new_order(order_id: UUID) -> DispatchResult:
    """Send the "New Order Received" alert to staff."""
    from apps.orders.models import Order

    try:
        order = Order.objects.get(id=order_id)
    except Order.DoesNotExist:
        logger.warning(f"New-order alert skipped: order {order_id} not found")
        return DispatchResult(skipped=True)

    notification = build_notification(
        title="New Order Received",
        body=f"Order #{order.order_number} received from {order.customer_name}. Total: {order.total} DA",
        url=f"/admin/orders/{order.id}",
        data={"orderId": str(order.id)},
    )
    return send_to_subscriptions(staff_subscriptions(), notification)
