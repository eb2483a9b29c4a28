from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

import prayer_dispatch.db as db
from prayer_dispatch.config import Config
from prayer_dispatch.errors import AdapterError


class DBIsolatedTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self._old_db = db.DB_PATH
        db.DB_PATH = Path(self._tmp.name) / "test.sqlite3"
        db.init_db()

    def tearDown(self) -> None:
        db.DB_PATH = self._old_db
        self._tmp.cleanup()


class RecipientResolverTests(DBIsolatedTestCase):
    def test_only_opted_in_recipients_are_returned(self) -> None:
        db.upsert_settings("a", prayer_start=True, timezone_name="Asia/Dhaka", latitude=1.5, longitude=2.5)
        db.upsert_settings("b")
        db.upsert_settings("c", dua_reminders=True)

        recipients = db.get_opted_in_recipients()

        self.assertEqual([r.user_id for r in recipients], ["a", "c"])
        first = recipients[0]
        self.assertEqual(first.timezone, "Asia/Dhaka")
        self.assertEqual((first.latitude, first.longitude), (1.5, 2.5))
        self.assertEqual(first.flags, {"prayer_start": True, "prayer_ending": False, "dua_reminders": False})
        self.assertTrue(first.opted_in)

    def test_defaults_applied_when_location_missing(self) -> None:
        db.upsert_settings("c", prayer_ending=True)
        recipient = db.get_opted_in_recipients()[0]
        self.assertEqual(recipient.timezone, Config.DEFAULT_TIMEZONE)
        self.assertEqual(recipient.latitude, Config.DEFAULT_LATITUDE)
        self.assertEqual(recipient.longitude, Config.DEFAULT_LONGITUDE)

    def test_only_active_subscriptions(self) -> None:
        db.add_subscription("a", endpoint="https://web.push/1", p256dh="k", auth="s")
        db.add_subscription("a", endpoint="https://web.push/2", is_active=False)
        db.add_subscription("a", expo_push_token="ExponentPushToken[x]")
        db.add_subscription("b", endpoint="https://web.push/3")

        subs = db.get_active_subscriptions("a")

        self.assertEqual([s["endpoint"] for s in subs], ["https://web.push/1", None])
        self.assertEqual(subs[1]["expo_push_token"], "ExponentPushToken[x]")

    def test_unreachable_store_is_an_adapter_error(self) -> None:
        db.DB_PATH = Path(self._tmp.name)  # a directory cannot be opened as a database
        with self.assertRaises(AdapterError):
            db.get_opted_in_recipients()
        with self.assertRaises(AdapterError):
            db.get_active_subscriptions("a")
        with self.assertRaises(AdapterError):
            db.insert_notification_log("a", "prayer_start", "hi", True)


class NotificationLogTests(DBIsolatedTestCase):
    def test_log_rows_are_appended(self) -> None:
        db.insert_notification_log("a", "prayer_start", "Go!", True, prayer_name="Fajr")
        db.insert_notification_log("a", "dua_morning", "Rise!", False)

        logs = db.get_notification_logs("a")

        self.assertEqual(len(logs), 2)
        self.assertEqual(logs[0]["notification_type"], "prayer_start")
        self.assertEqual(logs[0]["prayer_name"], "Fajr")
        self.assertEqual(logs[0]["delivered"], 1)
        self.assertIsNone(logs[1]["prayer_name"])
        self.assertEqual(logs[1]["delivered"], 0)
        self.assertTrue(logs[1]["created_at"])


class InactiveProfileTests(DBIsolatedTestCase):
    def test_inactive_profiles_with_tokens(self) -> None:
        conn = db.get_conn()
        conn.executemany(
            "INSERT INTO profiles (id, username, streak_count, preferred_language, expo_push_token, last_active_at) VALUES (?, ?, ?, ?, ?, ?)",
            [
                ("p1", "sleepy", 4, "Arabic", "ExponentPushToken[1]", "2026-03-01T00:00:00+00:00"),
                ("p2", "busy", 9, "Urdu", "ExponentPushToken[2]", "2026-03-05T00:00:00+00:00"),
                ("p3", "silent", 1, "Turkish", None, "2026-03-01T00:00:00+00:00"),
            ],
        )
        conn.commit()
        conn.close()

        profiles = db.get_inactive_profiles("2026-03-04T00:00:00+00:00")

        self.assertEqual([p["username"] for p in profiles], ["sleepy"])

    def test_last_active_compared_as_instants(self) -> None:
        conn = db.get_conn()
        conn.executemany(
            "INSERT INTO profiles (id, username, streak_count, preferred_language, expo_push_token, last_active_at) VALUES (?, ?, ?, ?, ?, ?)",
            [
                ("p1", "karachi", 2, "Urdu", "ExponentPushToken[1]", "2026-03-04T03:00:00+05:00"),
                ("p2", "newyork", 3, "English", "ExponentPushToken[2]", "2026-03-03T22:00:00-05:00"),
                ("p3", "zulu", 5, "Arabic", "ExponentPushToken[3]", "2026-03-03T23:59:59.500000Z"),
                ("p4", "never", 0, "Arabic", "ExponentPushToken[4]", None),
            ],
        )
        conn.commit()
        conn.close()

        profiles = db.get_inactive_profiles("2026-03-04T00:00:00+00:00")

        self.assertEqual([p["username"] for p in profiles], ["karachi", "zulu"])


if __name__ == "__main__":
    unittest.main()
