from __future__ import annotations

import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from fastapi.testclient import TestClient

import prayer_dispatch.db as db
import prayer_dispatch.main as main
from prayer_dispatch.config import Config
from prayer_dispatch.errors import AdapterError, ConfigurationError

SUMMARY = {"success": True, "processed": 2, "notifications": 1, "details": [{"userId": "u1", "type": "Fajr_start", "sent": True}]}


class HttpTriggerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.old_db = db.DB_PATH
        db.DB_PATH = Path(self.tmp.name) / "test.sqlite3"
        db.init_db()
        self.client = TestClient(main.app)

    def tearDown(self) -> None:
        db.DB_PATH = self.old_db
        self.tmp.cleanup()

    def test_preflight_returns_ok(self) -> None:
        response = self.client.options("/send-scheduled-notifications")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.text, "ok")
        self.assertEqual(response.headers["access-control-allow-origin"], "*")

    @patch.object(Config, "CRON_SECRET", "")
    @patch("prayer_dispatch.dispatch.run_scheduled_notifications", return_value=SUMMARY)
    def test_returns_summary(self, run) -> None:
        response = self.client.post("/send-scheduled-notifications")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), SUMMARY)
        run.assert_called_once()

    @patch.object(Config, "CRON_SECRET", "")
    def test_empty_store_reports_no_users(self) -> None:
        response = self.client.get("/send-scheduled-notifications")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"message": "No users to notify"})

    @patch.object(Config, "CRON_SECRET", "")
    @patch("prayer_dispatch.dispatch.run_scheduled_notifications", side_effect=AdapterError("Failed to fetch users"))
    def test_top_level_failure_is_500(self, run) -> None:
        with self.assertLogs("prayer_dispatch.main", level="ERROR"):
            response = self.client.post("/send-scheduled-notifications")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"error": "Failed to fetch users"})

    @patch.object(Config, "CRON_SECRET", "s3cret")
    @patch.object(Config, "CRON_SECRET_ENFORCED", True)
    @patch("prayer_dispatch.dispatch.run_scheduled_notifications", return_value=SUMMARY)
    def test_wrong_secret_rejected_when_enforced(self, run) -> None:
        with self.assertLogs("prayer_dispatch.main", level="WARNING"):
            response = self.client.post("/send-scheduled-notifications", headers={"Authorization": "Bearer nope"})
        self.assertEqual(response.status_code, 401)
        run.assert_not_called()

    @patch.object(Config, "CRON_SECRET", "s3cret")
    @patch.object(Config, "CRON_SECRET_ENFORCED", True)
    @patch("prayer_dispatch.dispatch.run_scheduled_notifications", return_value=SUMMARY)
    def test_matching_secret_accepted(self, run) -> None:
        response = self.client.post("/send-scheduled-notifications", headers={"Authorization": "Bearer s3cret"})
        self.assertEqual(response.status_code, 200)
        run.assert_called_once()

    @patch.object(Config, "CRON_SECRET", "s3cret")
    @patch.object(Config, "CRON_SECRET_ENFORCED", False)
    @patch("prayer_dispatch.dispatch.run_scheduled_notifications", return_value=SUMMARY)
    def test_wrong_secret_only_warns_when_not_enforced(self, run) -> None:
        with self.assertLogs("prayer_dispatch.main", level="WARNING"):
            response = self.client.post("/send-scheduled-notifications")
        self.assertEqual(response.status_code, 200)
        run.assert_called_once()

    @patch.object(Config, "CRON_SECRET", "")
    @patch("prayer_dispatch.dispatch.run_daily_nudge", return_value={"success": True, "processed": 0, "details": []})
    def test_daily_nudge_endpoint(self, run) -> None:
        response = self.client.post("/send-daily-nudge")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["processed"], 0)

    def test_health(self) -> None:
        self.assertEqual(self.client.get("/health").json(), {"status": "ok"})

    @patch.object(Config, "POLL_INTERVAL_MINUTES", 5)
    @patch("prayer_dispatch.main.configure_logging")
    def test_startup_validates_config(self, configure_logging) -> None:
        with patch("prayer_dispatch.main.Config.validate", wraps=Config.validate) as validate:
            with TestClient(main.app) as client:
                self.assertEqual(client.get("/health").status_code, 200)
        validate.assert_called_once_with(5, 7)

    @patch.object(Config, "HTTP_TIMEOUT_S", 0)
    @patch("prayer_dispatch.main.configure_logging")
    @patch("prayer_dispatch.main.init_db")
    def test_startup_refuses_bad_config(self, init_db, configure_logging) -> None:
        with self.assertRaises(ConfigurationError):
            with TestClient(main.app):
                pass
        init_db.assert_not_called()


if __name__ == "__main__":
    unittest.main()
