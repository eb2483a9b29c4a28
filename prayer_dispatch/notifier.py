from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request

from prayer_dispatch.config import Config
from prayer_dispatch.errors import DeliveryError

logger = logging.getLogger(__name__)


class Notifier:
    def send(self, subscription: dict, payload: dict) -> bool:
        """Deliver ``payload`` to one endpoint. Raises DeliveryError on transport failure."""
        raise NotImplementedError


class NoopNotifier(Notifier):
    def send(self, subscription: dict, payload: dict) -> bool:
        return False


class _HttpNotifier(Notifier):
    timeout_s = Config.HTTP_TIMEOUT_S

    def _post_json(self, url: str, body: dict) -> dict:
        req = urllib.request.Request(
            url,
            data=json.dumps(body).encode("utf-8"),
            headers={"Accept": "application/json", "Content-Type": "application/json"},
            method="POST",
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout_s) as resp:
                raw = resp.read()
        except (urllib.error.URLError, TimeoutError, OSError) as exc:
            raise DeliveryError(f"POST {url} failed: {exc}") from exc
        try:
            return json.loads(raw or b"{}")
        except ValueError as exc:
            raise DeliveryError(f"POST {url} returned invalid JSON") from exc


class ExpoNotifier(_HttpNotifier):
    """Push-token delivery through the Expo push API."""

    def __init__(self, push_url: str | None = None) -> None:
        self.push_url = push_url or Config.EXPO_PUSH_URL

    def send(self, subscription: dict, payload: dict) -> bool:
        token = subscription.get("expo_push_token")
        if not token:
            raise DeliveryError("Subscription has no Expo push token")
        message = {
            "to": token,
            "sound": "default",
            "title": payload.get("title", ""),
            "body": payload.get("body", ""),
            "data": {"url": payload.get("url", "/dashboard")},
        }
        result = self._post_json(self.push_url, message)
        data = result.get("data") if isinstance(result, dict) else None
        if isinstance(data, list):
            data = data[0] if data else None
        if not isinstance(data, dict):
            raise DeliveryError(f"Unexpected Expo response: {result!r}")
        status = data.get("status", "error")
        if status != "ok":
            logger.warning("Expo rejected push for token %s: %s", token[:12], data.get("message", status))
        return status == "ok"


class WebPushNotifier(Notifier):
    """Subscription-endpoint delivery. VAPID signing is not implemented, so nothing is sent."""

    def __init__(self, public_key: str | None = None, private_key: str | None = None) -> None:
        self.public_key = Config.VAPID_PUBLIC_KEY if public_key is None else public_key
        self.private_key = Config.VAPID_PRIVATE_KEY if private_key is None else private_key

    def send(self, subscription: dict, payload: dict) -> bool:
        if not self.public_key or not self.private_key:
            logger.error("VAPID keys not configured")
            return False
        logger.warning(
            "Web push delivery not implemented; not sending %r to %s",
            payload.get("tag"),
            subscription.get("endpoint"),
        )
        return False


def build_notifier(subscription: dict) -> Notifier:
    if subscription.get("expo_push_token"):
        return ExpoNotifier()
    if subscription.get("endpoint"):
        return WebPushNotifier()
    return NoopNotifier()
