from __future__ import annotations

import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from datetime import date
from types import MappingProxyType
from typing import Mapping

from prayer_dispatch.config import Config
from prayer_dispatch.errors import AdapterError
from prayer_dispatch.windows import to_event_set

logger = logging.getLogger(__name__)


def _timings_url(lat: float, lon: float, method: int, for_date: date) -> str:
    date_str = f"{for_date.day:02d}-{for_date.month:02d}-{for_date.year}"
    query = urllib.parse.urlencode({"latitude": lat, "longitude": lon, "method": method})
    return f"{Config.PRAYER_API_URL.rstrip('/')}/timings/{date_str}?{query}"


def _clean_timing(raw) -> str:
    # The API may append a zone label, e.g. "05:12 (+06)".
    return str(raw).split(" ")[0].strip()


def fetch_daily_events(lat: float, lon: float, method: int | None = None, for_date: date | None = None) -> dict[str, str]:
    """Raw ``HH:MM`` timings for one day and location. Not retried."""
    method = Config.PRAYER_CALC_METHOD if method is None else method
    for_date = for_date or date.today()
    url = _timings_url(lat, lon, method, for_date)
    req = urllib.request.Request(url, headers={"Accept": "application/json"}, method="GET")
    try:
        with urllib.request.urlopen(req, timeout=Config.HTTP_TIMEOUT_S) as resp:
            body = resp.read()
    except (urllib.error.URLError, TimeoutError, OSError) as exc:
        raise AdapterError(f"Prayer times request failed: {exc}") from exc

    try:
        timings = json.loads(body)["data"]["timings"]
    except (ValueError, KeyError, TypeError) as exc:
        raise AdapterError(f"Unexpected prayer times response: {exc}") from exc
    if not isinstance(timings, dict):
        raise AdapterError("Prayer times response has no timings mapping")

    logger.debug("Fetched timings for %s,%s on %s", lat, lon, for_date)
    return {name: _clean_timing(value) for name, value in timings.items()}


def fetch_event_set(lat: float, lon: float, method: int | None = None, for_date: date | None = None) -> Mapping[str, int]:
    return MappingProxyType(to_event_set(fetch_daily_events(lat, lon, method, for_date)))
