from decimal import Decimal
from unittest.mock import patch

from django.test import TestCase

from .models import Order, CallCenterStatus
from .reconciler import (
    SyncOutcome,
    apply_delivery_status,
    find_order_by_tracking,
    sync_delivery_status,
)


def make_order(**kwargs):
    defaults = {
        "customer_name": "Amine B.",
        "customer_phone": "0550000000",
        "total": Decimal("4500.00"),
    }
    defaults.update(kwargs)
    return Order.objects.create(**defaults)


class OrderModelTest(TestCase):
    def test_order_numbers_are_sequential(self):
        first = make_order()
        second = make_order()
        self.assertEqual(first.order_number, "ORD-000001")
        self.assertEqual(second.order_number, "ORD-000002")

    def test_numbering_continues_past_six_digits(self):
        make_order(order_number="ORD-999999")

        first = make_order()
        second = make_order()

        self.assertEqual(first.order_number, "ORD-1000000")
        self.assertEqual(second.order_number, "ORD-1000001")

    def test_non_numeric_order_numbers_are_ignored(self):
        make_order(order_number="ORD-LEGACY")
        make_order(order_number="ORD-000041")

        self.assertEqual(make_order().order_number, "ORD-000042")

    def test_defaults(self):
        order = make_order()
        self.assertEqual(order.delivery_status, "")
        self.assertEqual(order.call_center_status, CallCenterStatus.NEW)
        self.assertIsNone(order.tracking_number)


class ApplyDeliveryStatusTest(TestCase):
    """Webhook path: unconditional overwrite by tracking number."""

    def setUp(self):
        self.order = make_order(tracking_number="yal-ABC123", delivery_status="En préparation")

    def test_updates_matching_order(self):
        updated = apply_delivery_status("yal-ABC123", "Livré")

        self.assertEqual(updated.id, self.order.id)
        self.order.refresh_from_db()
        self.assertEqual(self.order.delivery_status, "Livré")

    def test_unknown_tracking_writes_nothing(self):
        before = self.order.updated_at

        # Only the lookup, no UPDATE
        with self.assertNumQueries(1):
            result = apply_delivery_status("yal-UNKNOWN", "Livré")

        self.assertIsNone(result)
        self.order.refresh_from_db()
        self.assertEqual(self.order.delivery_status, "En préparation")
        self.assertEqual(self.order.updated_at, before)

    def test_overwrites_even_when_status_goes_backwards(self):
        apply_delivery_status("yal-ABC123", "Livré")
        apply_delivery_status("yal-ABC123", "En livraison")

        self.order.refresh_from_db()
        self.assertEqual(self.order.delivery_status, "En livraison")

    def test_first_matching_order_wins(self):
        duplicate = make_order(tracking_number="yal-ABC123")

        apply_delivery_status("yal-ABC123", "Livré")

        self.order.refresh_from_db()
        duplicate.refresh_from_db()
        self.assertEqual(self.order.delivery_status, "Livré")
        self.assertEqual(duplicate.delivery_status, "")
        self.assertEqual(find_order_by_tracking("yal-ABC123").id, self.order.id)

    def test_missing_status_clears_field(self):
        apply_delivery_status("yal-ABC123", None)
        self.order.refresh_from_db()
        self.assertEqual(self.order.delivery_status, "")


class SyncDeliveryStatusTest(TestCase):
    """History-sync path: skip no-op writes."""

    def setUp(self):
        self.order = make_order(tracking_number="yal-XYZ", delivery_status="Livré")

    def test_unchanged_status(self):
        self.assertEqual(sync_delivery_status("yal-XYZ", "Livré"), SyncOutcome.UNCHANGED)

    def test_changed_status(self):
        self.assertEqual(sync_delivery_status("yal-XYZ", "Retourné"), SyncOutcome.UPDATED)
        self.order.refresh_from_db()
        self.assertEqual(self.order.delivery_status, "Retourné")

    def test_dry_run_does_not_write(self):
        self.assertEqual(
            sync_delivery_status("yal-XYZ", "Retourné", dry_run=True),
            SyncOutcome.UPDATED,
        )
        self.order.refresh_from_db()
        self.assertEqual(self.order.delivery_status, "Livré")

    def test_not_found(self):
        self.assertEqual(sync_delivery_status("yal-NOPE", "Livré"), SyncOutcome.NOT_FOUND)


class NewOrderSignalTest(TestCase):
    @patch("apps.orders.signals.TaskService.notify_new_order")
    def test_new_order_queues_alert_after_commit(self, mock_notify):
        with self.captureOnCommitCallbacks(execute=True):
            order = make_order()

        mock_notify.assert_called_once_with(order.id)

    @patch("apps.orders.signals.TaskService.notify_new_order")
    def test_update_does_not_queue_alert(self, mock_notify):
        order = make_order()
        with self.captureOnCommitCallbacks(execute=True):
            order.delivery_status = "Livré"
            order.save()

        mock_notify.assert_not_called()

    @patch("apps.orders.signals.TaskService.notify_new_order", side_effect=RuntimeError("queue down"))
    def test_queue_failure_does_not_break_order_creation(self, mock_notify):
        with self.captureOnCommitCallbacks(execute=True):
            order = make_order()

        self.assertTrue(Order.objects.filter(id=order.id).exists())
        mock_notify.assert_called_once()
