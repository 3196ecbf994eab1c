"""
Yalidine REST API client.

The API meters every account per second, minute, hour and day and
reports what is left in `<window>-quota-left` response headers. The
client remembers the last values it saw and refuses to send a request
that would run an almost-exhausted window dry, which keeps a long sync
from locking the account out for the rest of the day.
"""
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests
from django.conf import settings

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30
MIN_REQUEST_INTERVAL = 0.2
MAX_PAGE_SIZE = 1000

QUOTA_WINDOWS = ("second", "minute", "hour", "day")
# Refuse to call when a window has fewer requests left than this
QUOTA_FLOORS = {"second": 2, "minute": 2, "hour": 5, "day": 10}
# Warn when a window drops below this
QUOTA_WARNINGS = {"minute": 5, "hour": 20, "day": 100}
QUOTA_MAX_AGE = 5 * 60


class YalidineError(Exception):
    """Any failure talking to the Yalidine API."""


class YalidineNotConfigured(YalidineError):
    pass


class QuotaExceeded(YalidineError):
    def __init__(self, message: str, window: Optional[str] = None, left: Optional[int] = None):
        super().__init__(message)
        self.window = window
        self.left = left


@dataclass
class QuotaWindow:
    left: Optional[int] = None
    updated_at: Optional[float] = None


class YalidineClient:
    """
    Thin synchronous wrapper around https://api.yalidine.app/v1.

    One instance per process is enough; it is not thread-safe.
    """

    def __init__(
        self,
        api_id: Optional[str] = None,
        api_token: Optional[str] = None,
        base_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: int = DEFAULT_TIMEOUT,
    ):
        self.api_id = api_id if api_id is not None else settings.YALIDINE_API_ID
        self.api_token = api_token if api_token is not None else settings.YALIDINE_API_TOKEN
        self.base_url = (base_url or settings.YALIDINE_API_URL).rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout
        self.quota = {window: QuotaWindow() for window in QUOTA_WINDOWS}
        self._last_request_at = 0.0

    @property
    def is_configured(self) -> bool:
        return bool(self.api_id and self.api_token)

    # -------------------------------------------------------------------------
    # Quota bookkeeping
    # -------------------------------------------------------------------------

    def update_quota(self, headers) -> None:
        now = time.time()
        for window in QUOTA_WINDOWS:
            value = headers.get(f"{window}-quota-left")
            if value is None:
                continue
            try:
                self.quota[window] = QuotaWindow(left=int(value), updated_at=now)
            except (TypeError, ValueError):
                logger.debug(f"Ignoring malformed {window}-quota-left header: {value!r}")

        for window, threshold in QUOTA_WARNINGS.items():
            left = self.quota[window].left
            if left is not None and left < threshold:
                logger.warning(f"Low Yalidine {window} quota remaining: {left}")

    def check_quota(self) -> None:
        """Raise QuotaExceeded if a recently seen window is below its floor."""
        now = time.time()
        timestamps = [w.updated_at for w in self.quota.values() if w.updated_at is not None]
        if not timestamps or now - max(timestamps) > QUOTA_MAX_AGE:
            return  # stale or no info: let the request through to refresh it

        for window, floor in QUOTA_FLOORS.items():
            left = self.quota[window].left
            if left is not None and left < floor:
                raise QuotaExceeded(
                    f"Yalidine {window} quota too low ({left} remaining)",
                    window=window,
                    left=left,
                )

    def _throttle(self) -> None:
        elapsed = time.monotonic() - self._last_request_at
        if elapsed < MIN_REQUEST_INTERVAL:
            time.sleep(MIN_REQUEST_INTERVAL - elapsed)
        self._last_request_at = time.monotonic()

    # -------------------------------------------------------------------------
    # HTTP
    # -------------------------------------------------------------------------

    def _request(self, method: str, path: str, **kwargs) -> Any:
        if not self.is_configured:
            raise YalidineNotConfigured("Yalidine API credentials not configured")

        self.check_quota()
        self._throttle()

        url = f"{self.base_url}/{path.lstrip('/')}"
        headers = {
            "X-API-ID": self.api_id,
            "X-API-TOKEN": self.api_token,
            "Content-Type": "application/json",
        }
        try:
            response = self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise YalidineError(f"{method} {path} failed: {e}") from e

        self.update_quota(response.headers)

        if response.status_code == 429:
            raise QuotaExceeded("Yalidine API quota exceeded")
        if response.status_code >= 400:
            logger.error(f"Yalidine {method} {path} returned {response.status_code}: {response.text[:500]}")
            raise YalidineError(f"{method} {path} returned HTTP {response.status_code}")

        return response.json()

    def list_parcels(self, page: Optional[int] = None, page_size: int = MAX_PAGE_SIZE, **filters) -> Dict[str, Any]:
        """
        One page of parcels.

        Filters map to Yalidine query parameters (last_status, tracking,
        order_id, to_wilaya_id, date_last_status, ...); empty values are
        dropped. Returns the raw envelope: {data, has_more, total_data, ...}.
        """
        params = {"page_size": min(page_size, MAX_PAGE_SIZE)}
        if page and page > 0:
            params["page"] = page
        for key, value in filters.items():
            if value is None or (isinstance(value, str) and not value.strip()):
                continue
            params[key] = str(value).lower() if isinstance(value, bool) else value
        return self._request("GET", "/parcels/", params=params)

    def get_parcel(self, tracking: str) -> Dict[str, Any]:
        return self._request("GET", f"/parcels/{quote(tracking, safe='')}")

    def get_parcel_history(self, tracking: str) -> Dict[str, Any]:
        return self._request("GET", "/histories/", params={"tracking": tracking})
