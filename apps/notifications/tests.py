import json
from decimal import Decimal
from unittest.mock import MagicMock, patch

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from pywebpush import WebPushException

from apps.orders.models import Order
from .models import PushSubscription
from .services import build_notification, notify_new_order, send_to_subscriptions

VAPID = {
    "VAPID_PUBLIC_KEY": "BPublicKeyForTests",
    "VAPID_PRIVATE_KEY": "privateKeyForTests",
    "VAPID_CLAIMS_EMAIL": "ops@example.com",
}


def make_subscription(user_id="42", endpoint="https://push.example.com/sub/1"):
    return PushSubscription.objects.create(
        user_id=user_id,
        endpoint=endpoint,
        p256dh="p256dh-key",
        auth="auth-secret",
    )


def gone(status_code):
    response = MagicMock()
    response.status_code = status_code
    return WebPushException("push failed", response=response)


class SubscribeApiTest(TestCase):
    url = "/api/notifications/subscribe"

    def post(self, payload):
        return self.client.post(self.url, data=json.dumps(payload), content_type="application/json")

    def payload(self, user_id="42", p256dh="key-1"):
        return {
            "userId": user_id,
            "subscription": {
                "endpoint": "https://push.example.com/sub/abc",
                "keys": {"p256dh": p256dh, "auth": "auth-1"},
            },
        }

    def test_subscribe_creates_subscription(self):
        response = self.post(self.payload())

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json(), {"message": "Subscription added successfully"})
        sub = PushSubscription.objects.get()
        self.assertEqual(sub.user_id, "42")
        self.assertEqual(sub.p256dh, "key-1")

    def test_resubscribe_same_endpoint_updates_row(self):
        self.post(self.payload())
        response = self.post(self.payload(user_id="43", p256dh="key-2"))

        self.assertEqual(response.status_code, 201)
        self.assertEqual(PushSubscription.objects.count(), 1)
        sub = PushSubscription.objects.get()
        self.assertEqual(sub.user_id, "43")
        self.assertEqual(sub.p256dh, "key-2")

    def test_invalid_payload(self):
        response = self.post({"userId": "42", "subscription": {"endpoint": "https://x"}})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Invalid request data")
        self.assertFalse(PushSubscription.objects.exists())

    def test_overlong_user_id_is_rejected(self):
        response = self.post(self.payload(user_id="u" * 65))

        self.assertEqual(response.status_code, 400)
        self.assertFalse(PushSubscription.objects.exists())


class VapidKeyApiTest(TestCase):
    @override_settings(**VAPID)
    def test_returns_public_key(self):
        response = self.client.get("/api/notifications/vapid-key")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"publicKey": "BPublicKeyForTests"})


@override_settings(TASK_BACKEND="local", **VAPID)
class SamplePushApiTest(TestCase):
    url = "/api/notifications/test"

    @patch("apps.notifications.services.webpush")
    def test_sends_to_user_subscriptions(self, mock_webpush):
        make_subscription(user_id="42")
        make_subscription(user_id="99", endpoint="https://push.example.com/sub/other")

        response = self.client.post(
            self.url,
            data=json.dumps({"userId": "42", "title": "Hi"}),
            content_type="application/json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"message": "Test notification queued", "queued": 1})
        mock_webpush.assert_called_once()
        sent = json.loads(mock_webpush.call_args.kwargs["data"])
        self.assertEqual(sent["title"], "Hi")
        self.assertEqual(sent["body"], "Push notifications are working.")

    @patch("apps.notifications.services.webpush")
    def test_user_without_subscriptions(self, mock_webpush):
        response = self.client.post(
            self.url, data=json.dumps({"userId": "nobody"}), content_type="application/json"
        )

        self.assertEqual(response.json(), {"message": "No subscriptions for user", "queued": 0})
        mock_webpush.assert_not_called()

    @override_settings(VAPID_PUBLIC_KEY=None, VAPID_PRIVATE_KEY=None)
    def test_unavailable_without_vapid_keys(self):
        make_subscription(user_id="42")

        response = self.client.post(
            self.url, data=json.dumps({"userId": "42"}), content_type="application/json"
        )

        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.json(), {"detail": "Push notifications are not configured"})


class SendToSubscriptionsTest(TestCase):
    def setUp(self):
        self.first = make_subscription(endpoint="https://push.example.com/sub/1")
        self.second = make_subscription(endpoint="https://push.example.com/sub/2")
        self.notification = build_notification("Title", "Body")

    @override_settings(**VAPID)
    @patch("apps.notifications.services.webpush")
    def test_delivers_with_vapid_claims(self, mock_webpush):
        result = send_to_subscriptions(PushSubscription.objects.all(), self.notification)

        self.assertEqual(result.sent, 2)
        kwargs = mock_webpush.call_args.kwargs
        self.assertEqual(kwargs["vapid_private_key"], "privateKeyForTests")
        self.assertEqual(kwargs["vapid_claims"], {"sub": "mailto:ops@example.com"})
        self.assertEqual(kwargs["subscription_info"]["keys"]["auth"], "auth-secret")

    @override_settings(**VAPID)
    @patch("apps.notifications.services.webpush")
    def test_gone_subscription_is_deleted(self, mock_webpush):
        mock_webpush.side_effect = [gone(410), None]

        result = send_to_subscriptions(PushSubscription.objects.order_by("endpoint"), self.notification)

        self.assertEqual(result.expired, 1)
        self.assertEqual(result.sent, 1)
        self.assertFalse(PushSubscription.objects.filter(id=self.first.id).exists())
        self.assertTrue(PushSubscription.objects.filter(id=self.second.id).exists())

    @override_settings(**VAPID)
    @patch("apps.notifications.services.webpush")
    def test_other_failures_keep_subscription(self, mock_webpush):
        mock_webpush.side_effect = [gone(500), None]

        result = send_to_subscriptions(PushSubscription.objects.order_by("endpoint"), self.notification)

        self.assertEqual(result.failed, 1)
        self.assertEqual(result.sent, 1)
        self.assertEqual(PushSubscription.objects.count(), 2)

    @override_settings(VAPID_PUBLIC_KEY=None, VAPID_PRIVATE_KEY=None)
    @patch("apps.notifications.services.webpush")
    def test_skipped_without_vapid_keys(self, mock_webpush):
        result = send_to_subscriptions(PushSubscription.objects.all(), self.notification)

        self.assertTrue(result.skipped)
        mock_webpush.assert_not_called()


@override_settings(**VAPID)
class NewOrderAlertTest(TestCase):
    def setUp(self):
        User = get_user_model()
        self.staff = User.objects.create_user(username="staff", password="x", is_staff=True)
        self.customer = User.objects.create_user(username="customer", password="x")
        make_subscription(user_id=str(self.staff.pk), endpoint="https://push.example.com/staff")
        make_subscription(user_id=str(self.customer.pk), endpoint="https://push.example.com/customer")

    @patch("apps.notifications.services.webpush")
    def test_only_staff_are_alerted(self, mock_webpush):
        order = Order.objects.create(customer_name="Karim", total=Decimal("2500.00"))

        result = notify_new_order(order.id)

        self.assertEqual(result.sent, 1)
        kwargs = mock_webpush.call_args.kwargs
        self.assertEqual(kwargs["subscription_info"]["endpoint"], "https://push.example.com/staff")
        sent = json.loads(kwargs["data"])
        self.assertEqual(sent["title"], "New Order Received")
        self.assertEqual(sent["body"], f"Order #{order.order_number} received from Karim. Total: 2500.00 DA")
        self.assertEqual(sent["data"], {"orderId": str(order.id)})

    @patch("apps.notifications.services.webpush")
    def test_missing_order_is_skipped(self, mock_webpush):
        import uuid

        result = notify_new_order(uuid.uuid4())

        self.assertTrue(result.skipped)
        mock_webpush.assert_not_called()
