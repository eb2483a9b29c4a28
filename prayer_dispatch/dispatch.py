"""One dispatch cycle: resolve recipients, evaluate their windows, notify, log.

Each recipient moves through FETCHING -> EVALUATING -> NOTIFYING -> DONE. An
exception at any step puts that recipient in FAILED; it is logged and the
cycle continues with the next recipient. Outcomes already delivered and
logged for a failed recipient stay in the cycle summary. Only a failure to
resolve the recipient list aborts the whole cycle.
"""
from __future__ import annotations

import enum
import logging
import random
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterator, Mapping

from prayer_dispatch import content, db, event_source, generator
from prayer_dispatch.db import Recipient
from prayer_dispatch.errors import DeliveryError
from prayer_dispatch.notifier import ExpoNotifier, Notifier, build_notifier
from prayer_dispatch.timewindow import current_offset, local_date
from prayer_dispatch.windows import ActiveWindow, WindowKind, evaluate_windows

logger = logging.getLogger(__name__)

NUDGE_CATEGORY = "daily_nudge"
NUDGE_TITLE = "Meek Reminder 🔔"
INACTIVITY = timedelta(hours=24)

EventFetcher = Callable[..., Mapping[str, int]]
NotifierFactory = Callable[[dict], Notifier]


class RecipientState(enum.Enum):
    FETCHING = "fetching"
    EVALUATING = "evaluating"
    NOTIFYING = "notifying"
    DONE = "done"
    FAILED = "failed"


def _deliver(notifier: Notifier, subscription: dict, payload: dict) -> bool:
    try:
        return bool(notifier.send(subscription, payload))
    except DeliveryError as exc:
        logger.warning("Push failed for subscription %s: %s", subscription.get("id"), exc)
        return False


def _notify_window(
    recipient: Recipient,
    window: ActiveWindow,
    subscriptions: list[dict],
    notifier_factory: NotifierFactory,
    rng: random.Random | None,
) -> Iterator[dict]:
    message = content.message_for(window, rng)
    payload = content.payload_for(window, message)
    prayer_name = None if window.kind is WindowKind.PERIODIC else window.name

    for sub in subscriptions:
        sent = _deliver(notifier_factory(sub), sub, payload)
        db.insert_notification_log(recipient.user_id, window.category, message, sent, prayer_name=prayer_name)
        yield {"userId": recipient.user_id, "type": window.detail_type, "sent": sent}


def process_recipient(
    recipient: Recipient,
    now: datetime,
    fetch_events: EventFetcher,
    notifier_factory: NotifierFactory,
    rng: random.Random | None = None,
) -> list[dict]:
    if not recipient.opted_in:
        logger.debug("Recipient %s opted into nothing; skipping", recipient.user_id)
        return []

    state = RecipientState.FETCHING
    results: list[dict] = []
    try:
        subscriptions = db.get_active_subscriptions(recipient.user_id)
        if not subscriptions:
            logger.debug("Recipient %s has no active subscriptions; skipping", recipient.user_id)
            return []
        events = fetch_events(
            recipient.latitude,
            recipient.longitude,
            for_date=local_date(recipient.timezone, now),
        )

        state = RecipientState.EVALUATING
        now_offset = current_offset(recipient.timezone, now)
        windows = evaluate_windows(now_offset, events, recipient.flags)

        state = RecipientState.NOTIFYING
        for window in windows:
            for detail in _notify_window(recipient, window, subscriptions, notifier_factory, rng):
                results.append(detail)

        state = RecipientState.DONE
        return results
    except Exception:
        logger.exception(
            "Error processing user %s: %s -> %s", recipient.user_id, state.value, RecipientState.FAILED.value
        )
        return results


def run_scheduled_notifications(
    now: datetime | None = None,
    fetch_events: EventFetcher | None = None,
    notifier_factory: NotifierFactory | None = None,
    rng: random.Random | None = None,
) -> dict:
    """Run one dispatch cycle over every opted-in recipient."""
    now = now or datetime.now(timezone.utc)
    fetch_events = fetch_events or event_source.fetch_event_set
    notifier_factory = notifier_factory or build_notifier

    recipients = db.get_opted_in_recipients()
    if not recipients:
        return {"message": "No users to notify"}

    results: list[dict] = []
    for recipient in recipients:
        results.extend(process_recipient(recipient, now, fetch_events, notifier_factory, rng))

    logger.info("Dispatch cycle: %d recipients, %d notifications", len(recipients), len(results))
    return {
        "success": True,
        "processed": len(recipients),
        "notifications": len(results),
        "details": results,
    }


def run_daily_nudge(now: datetime | None = None, client=None, notifier: Notifier | None = None) -> dict:
    """Send a generated nudge to every profile inactive for the last 24 hours."""
    now = now or datetime.now(timezone.utc)
    notifier = notifier or ExpoNotifier()

    profiles = db.get_inactive_profiles((now - INACTIVITY).isoformat())
    if not profiles:
        return {"message": "No inactive users found"}

    results = []
    for profile in profiles:
        sent = False
        try:
            message = generator.generate_dynamic(profile, client)
            payload = {"title": NUDGE_TITLE, "body": message, "url": "/dashboard"}
            sent = _deliver(notifier, {"expo_push_token": profile["expo_push_token"]}, payload)
            db.insert_notification_log(profile["id"], NUDGE_CATEGORY, message, sent)
        except Exception:
            logger.exception("Error nudging profile %s", profile["id"])
        results.append({"username": profile["username"], "status": "ok" if sent else "error"})

    return {"success": True, "processed": len(results), "details": results}
