import uuid
from django.db import models


class PushSubscription(models.Model):
    """
    A browser Web Push subscription.

    One row per push endpoint; re-subscribing from the same browser
    updates the keys and owner in place.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    # Opaque id sent by the client, no FK to keep anonymous subscribers possible
    user_id = models.CharField(max_length=64, db_index=True)

    endpoint = models.TextField(unique=True)
    p256dh = models.CharField(max_length=255)
    auth = models.CharField(max_length=255)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-updated_at']
        verbose_name = "Push Subscription"
        verbose_name_plural = "Push Subscriptions"

    def __str__(self):
        return f"Push subscription for {self.user_id}"

    def as_subscription_info(self) -> dict:
        """Shape expected by pywebpush.webpush()."""
        return {
            "endpoint": self.endpoint,
            "keys": {"p256dh": self.p256dh, "auth": self.auth},
        }
