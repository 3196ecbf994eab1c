import time
from unittest.mock import MagicMock, patch

import requests
from django.test import SimpleTestCase

from apps.shipping.yalidine import (
    QUOTA_MAX_AGE,
    QuotaExceeded,
    YalidineClient,
    YalidineError,
    YalidineNotConfigured,
)


def fake_response(status_code=200, payload=None, headers=None):
    response = MagicMock()
    response.status_code = status_code
    response.headers = headers or {}
    response.json.return_value = payload if payload is not None else {}
    response.text = ""
    return response


@patch("apps.shipping.yalidine.time.sleep")
class YalidineClientTest(SimpleTestCase):
    def setUp(self):
        self.session = MagicMock()
        self.api = YalidineClient(
            api_id="id-123",
            api_token="token-456",
            base_url="https://api.yalidine.test/v1/",
            session=self.session,
        )

    def test_sends_credentials_and_timeout(self, _sleep):
        self.session.request.return_value = fake_response(payload={"data": []})

        self.api.list_parcels(page=1)

        method, url = self.session.request.call_args.args
        kwargs = self.session.request.call_args.kwargs
        self.assertEqual(method, "GET")
        self.assertEqual(url, "https://api.yalidine.test/v1/parcels/")
        self.assertEqual(kwargs["headers"]["X-API-ID"], "id-123")
        self.assertEqual(kwargs["headers"]["X-API-TOKEN"], "token-456")
        self.assertEqual(kwargs["timeout"], 30)

    def test_list_parcels_params(self, _sleep):
        self.session.request.return_value = fake_response(payload={"data": []})

        self.api.list_parcels(page=3, page_size=5000, last_status="Livré", tracking="", is_exchange=False)

        params = self.session.request.call_args.kwargs["params"]
        self.assertEqual(
            params,
            {"page_size": 1000, "page": 3, "last_status": "Livré", "is_exchange": "false"},
        )

    def test_get_parcel_quotes_tracking(self, _sleep):
        self.session.request.return_value = fake_response(payload={"data": []})

        self.api.get_parcel("yal-12/34")

        url = self.session.request.call_args.args[1]
        self.assertEqual(url, "https://api.yalidine.test/v1/parcels/yal-12%2F34")

    def test_missing_credentials(self, _sleep):
        client = YalidineClient(api_id="", api_token="", session=self.session)
        self.assertFalse(client.is_configured)
        with self.assertRaises(YalidineNotConfigured):
            client.list_parcels()
        self.session.request.assert_not_called()

    def test_quota_headers_are_recorded(self, _sleep):
        self.session.request.return_value = fake_response(
            headers={"day-quota-left": "8000", "hour-quota-left": "900", "minute-quota-left": "abc"},
        )

        self.api.get_parcel_history("yal-1")

        self.assertEqual(self.api.quota["day"].left, 8000)
        self.assertEqual(self.api.quota["hour"].left, 900)
        self.assertIsNone(self.api.quota["minute"].left)

    def test_low_quota_blocks_next_request(self, _sleep):
        self.session.request.return_value = fake_response(headers={"hour-quota-left": "4"})
        self.api.get_parcel("yal-1")

        with self.assertRaises(QuotaExceeded) as ctx:
            self.api.get_parcel("yal-2")

        self.assertEqual(ctx.exception.window, "hour")
        self.assertEqual(ctx.exception.left, 4)
        self.assertEqual(self.session.request.call_count, 1)

    def test_stale_quota_is_ignored(self, _sleep):
        self.api.update_quota({"day-quota-left": "1"})
        self.api.quota["day"].updated_at = time.time() - QUOTA_MAX_AGE - 1
        self.session.request.return_value = fake_response()

        self.api.get_parcel("yal-1")

        self.assertEqual(self.session.request.call_count, 1)

    def test_429_raises_quota_exceeded(self, _sleep):
        self.session.request.return_value = fake_response(status_code=429)
        with self.assertRaises(QuotaExceeded):
            self.api.list_parcels()

    def test_http_error(self, _sleep):
        self.session.request.return_value = fake_response(status_code=500)
        with self.assertRaises(YalidineError):
            self.api.list_parcels()

    def test_network_error_is_wrapped(self, _sleep):
        self.session.request.side_effect = requests.ConnectionError("unreachable")
        with self.assertRaises(YalidineError):
            self.api.list_parcels()

    def test_consecutive_requests_are_spaced(self, mock_sleep):
        self.session.request.return_value = fake_response()

        self.api.get_parcel("yal-1")
        self.api.get_parcel("yal-2")

        mock_sleep.assert_called()
        self.assertLessEqual(mock_sleep.call_args.args[0], 0.2)
