from decimal import Decimal
from io import StringIO
from unittest.mock import MagicMock, patch

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase, override_settings

from apps.orders.models import Order
from apps.shipping import services, tasks
from apps.shipping.yalidine import YalidineError, YalidineNotConfigured


def make_order(tracking, status):
    return Order.objects.create(
        customer_name="Sync Customer",
        total=Decimal("1000.00"),
        tracking_number=tracking,
        delivery_status=status,
    )


def paged_client(*pages):
    client = MagicMock()
    client.is_configured = True
    client.list_parcels.side_effect = list(pages)
    return client


class FetchAllParcelsTest(TestCase):
    def test_stops_when_no_more_pages(self):
        client = paged_client(
            {"data": [{"tracking": "a"}], "has_more": True},
            {"data": [{"tracking": "b"}], "has_more": False},
        )

        parcels = services.fetch_all_parcels(client, pause=0)

        self.assertEqual([p["tracking"] for p in parcels], ["a", "b"])
        self.assertEqual(client.list_parcels.call_count, 2)

    def test_respects_max_pages(self):
        client = paged_client(*[{"data": [{"tracking": str(i)}], "has_more": True} for i in range(5)])

        parcels = services.fetch_all_parcels(client, max_pages=2, pause=0)

        self.assertEqual(len(parcels), 2)
        self.assertEqual(client.list_parcels.call_count, 2)

    def test_api_error_keeps_fetched_pages(self):
        client = paged_client(
            {"data": [{"tracking": "a"}], "has_more": True},
            YalidineError("boom"),
        )

        parcels = services.fetch_all_parcels(client, pause=0)

        self.assertEqual(len(parcels), 1)


class SyncHistoryTest(TestCase):
    def setUp(self):
        self.moving = make_order("yal-1", "En livraison")
        self.delivered = make_order("yal-2", "Livré")
        self.carrier = paged_client(
            {
                "data": [
                    {"tracking": "yal-1", "last_status": "Livré"},
                    {"tracking": "yal-2", "last_status": "Livré"},
                    {"tracking": "yal-3", "last_status": "Livré"},
                    {"last_status": "Livré"},
                ],
                "has_more": False,
            }
        )

    def test_only_changed_orders_are_written(self):
        report = services.sync_history(client=self.carrier, pause=0)

        self.assertEqual(report.fetched, 4)
        self.assertEqual(report.updated, 1)
        self.assertEqual(report.unchanged, 1)
        self.assertEqual(report.not_found, 1)
        self.assertEqual(report.errors, 0)
        self.moving.refresh_from_db()
        self.assertEqual(self.moving.delivery_status, "Livré")

    def test_dry_run(self):
        report = services.sync_history(client=self.carrier, pause=0, dry_run=True)

        self.assertEqual(report.updated, 1)
        self.moving.refresh_from_db()
        self.assertEqual(self.moving.delivery_status, "En livraison")

    def test_requires_credentials(self):
        client = MagicMock()
        client.is_configured = False
        with self.assertRaises(YalidineNotConfigured):
            services.sync_history(client=client)


class SyncCommandTest(TestCase):
    def test_command_reports_counts(self):
        make_order("yal-9", "En préparation")
        client = paged_client({"data": [{"tracking": "yal-9", "last_status": "Expédié"}], "has_more": False})
        out = StringIO()

        with patch("apps.shipping.services.YalidineClient", return_value=client):
            call_command("sync_yalidine_history", "--pause", "0", stdout=out)

        output = out.getvalue()
        self.assertIn("Fetched: 1 shipments", output)
        self.assertIn("Updated: 1 orders", output)
        self.assertIn("Sync complete.", output)

    def test_command_dry_run_wording(self):
        make_order("yal-9", "En préparation")
        client = paged_client({"data": [{"tracking": "yal-9", "last_status": "Expédié"}], "has_more": False})
        out = StringIO()

        with patch("apps.shipping.services.YalidineClient", return_value=client):
            call_command("sync_yalidine_history", "--dry-run", "--pause", "0", stdout=out)

        self.assertIn("Would update: 1 orders", out.getvalue())

    @override_settings(YALIDINE_API_ID=None, YALIDINE_API_TOKEN=None)
    def test_command_without_credentials(self):
        with self.assertRaises(CommandError):
            call_command("sync_yalidine_history", stdout=StringIO())

    @override_settings(YALIDINE_API_ID=None, YALIDINE_API_TOKEN=None)
    def test_task_skips_without_credentials(self):
        self.assertIsNone(tasks.sync_yalidine_history(max_pages=1))
