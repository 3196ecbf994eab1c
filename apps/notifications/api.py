"""
Push notification API endpoints.

Browsers fetch the VAPID public key, subscribe through the Push API,
then register the resulting subscription here.
"""
from django.conf import settings
from django.http import HttpRequest
from ninja import Router
from ninja.errors import HttpError

from .dtos import MessageOut, SamplePushIn, SamplePushOut, SubscribeIn, VapidKeyOut
from .services import build_notification, send_to_user, upsert_subscription

router = Router(tags=["Notifications"])


@router.get("/vapid-key", response=VapidKeyOut, auth=None)
def get_vapid_key(request: HttpRequest):
    """Public VAPID key for PushManager.subscribe()."""
    return {"publicKey": settings.VAPID_PUBLIC_KEY}


@router.post("/subscribe", response={201: MessageOut}, auth=None)
def subscribe(request: HttpRequest, payload: SubscribeIn):
    """
    Register (or refresh) a push subscription.

    Upserts by endpoint: a browser that re-subscribes keeps a single row.
    """
    upsert_subscription(
        user_id=payload.user_id,
        endpoint=payload.subscription.endpoint,
        p256dh=payload.subscription.keys.p256dh,
        auth=payload.subscription.keys.auth,
    )
    return 201, {"message": "Subscription added successfully"}


@router.post("/test", response=SamplePushOut, auth=None)
def send_test_notification(request: HttpRequest, payload: SamplePushIn):
    """Queue a sample notification to every subscription of a user."""
    if not (settings.VAPID_PUBLIC_KEY and settings.VAPID_PRIVATE_KEY):
        raise HttpError(503, "Push notifications are not configured")

    queued = send_to_user(
        payload.user_id,
        build_notification(title=payload.title, body=payload.body, url="/"),
    )
    message = "Test notification queued" if queued else "No subscriptions for user"
    return {"message": message, "queued": queued}
