from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from prayer_dispatch.config import Config
from prayer_dispatch.errors import AdapterError
from prayer_dispatch.windows import DUA_REMINDERS, OPT_IN_FLAGS, PRAYER_ENDING, PRAYER_START

logger = logging.getLogger(__name__)

DB_PATH = Path(Config.DB_PATH)


@dataclass(frozen=True)
class Recipient:
    user_id: str
    timezone: str
    latitude: float
    longitude: float
    flags: dict = field(default_factory=dict)

    @property
    def opted_in(self) -> bool:
        return any(self.flags.get(flag) for flag in OPT_IN_FLAGS)


def get_conn() -> sqlite3.Connection:
    conn = sqlite3.connect(DB_PATH)
    conn.row_factory = sqlite3.Row
    return conn


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _ensure_column(conn: sqlite3.Connection, table: str, column: str, definition: str) -> None:
    cols = conn.execute(f"PRAGMA table_info({table})").fetchall()
    if column not in {c[1] for c in cols}:
        conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {definition}")


def init_db() -> None:
    conn = get_conn()
    try:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS notification_settings (
                user_id TEXT PRIMARY KEY,
                prayer_start INTEGER NOT NULL DEFAULT 0,
                prayer_ending INTEGER NOT NULL DEFAULT 0,
                dua_reminders INTEGER NOT NULL DEFAULT 0,
                timezone TEXT,
                latitude REAL,
                longitude REAL
            );

            CREATE TABLE IF NOT EXISTS notification_subscriptions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                endpoint TEXT,
                p256dh TEXT,
                auth TEXT,
                is_active INTEGER NOT NULL DEFAULT 1,
                created_at TEXT
            );

            CREATE TABLE IF NOT EXISTS notification_logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                notification_type TEXT NOT NULL,
                prayer_name TEXT,
                message TEXT NOT NULL,
                delivered INTEGER NOT NULL,
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS profiles (
                id TEXT PRIMARY KEY,
                username TEXT,
                streak_count INTEGER NOT NULL DEFAULT 0,
                preferred_language TEXT,
                expo_push_token TEXT,
                last_active_at TEXT
            );
            """
        )
        _ensure_column(conn, "notification_subscriptions", "expo_push_token", "TEXT")
        conn.commit()
    finally:
        conn.close()


def _recipient_from_row(row: sqlite3.Row) -> Recipient:
    return Recipient(
        user_id=row["user_id"],
        timezone=row["timezone"] or Config.DEFAULT_TIMEZONE,
        latitude=row["latitude"] if row["latitude"] is not None else Config.DEFAULT_LATITUDE,
        longitude=row["longitude"] if row["longitude"] is not None else Config.DEFAULT_LONGITUDE,
        flags={
            PRAYER_START: bool(row["prayer_start"]),
            PRAYER_ENDING: bool(row["prayer_ending"]),
            DUA_REMINDERS: bool(row["dua_reminders"]),
        },
    )


def get_opted_in_recipients() -> list[Recipient]:
    try:
        conn = get_conn()
        try:
            rows = conn.execute(
                """
                SELECT user_id, prayer_start, prayer_ending, dua_reminders, timezone, latitude, longitude
                FROM notification_settings
                WHERE prayer_start = 1 OR prayer_ending = 1 OR dua_reminders = 1
                ORDER BY user_id
                """
            ).fetchall()
        finally:
            conn.close()
    except sqlite3.Error as exc:
        raise AdapterError(f"Failed to fetch users: {exc}") from exc
    return [_recipient_from_row(row) for row in rows]


def get_active_subscriptions(user_id: str) -> list[dict]:
    try:
        conn = get_conn()
        try:
            rows = conn.execute(
                """
                SELECT id, endpoint, p256dh, auth, expo_push_token
                FROM notification_subscriptions
                WHERE user_id = ? AND is_active = 1
                ORDER BY id
                """,
                (user_id,),
            ).fetchall()
        finally:
            conn.close()
    except sqlite3.Error as exc:
        raise AdapterError(f"Failed to fetch subscriptions for {user_id}: {exc}") from exc
    return [dict(row) for row in rows]


def insert_notification_log(user_id: str, notification_type: str, message: str, delivered: bool, prayer_name: str | None = None) -> None:
    """Append one outcome row. Rows are never updated."""
    try:
        conn = get_conn()
        try:
            conn.execute(
                """
                INSERT INTO notification_logs (user_id, notification_type, prayer_name, message, delivered, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (user_id, notification_type, prayer_name, message, int(bool(delivered)), utc_now_iso()),
            )
            conn.commit()
        finally:
            conn.close()
    except sqlite3.Error as exc:
        raise AdapterError(f"Failed to log notification for {user_id}: {exc}") from exc


def get_notification_logs(user_id: str | None = None) -> list[dict]:
    conn = get_conn()
    try:
        if user_id is None:
            rows = conn.execute("SELECT * FROM notification_logs ORDER BY id").fetchall()
        else:
            rows = conn.execute("SELECT * FROM notification_logs WHERE user_id = ? ORDER BY id", (user_id,)).fetchall()
        return [dict(row) for row in rows]
    finally:
        conn.close()


def get_inactive_profiles(since_iso: str) -> list[dict]:
    """Profiles with a push token whose last activity is older than ``since_iso``."""
    try:
        conn = get_conn()
        try:
            rows = conn.execute(
                """
                SELECT id, username, streak_count, preferred_language, expo_push_token
                FROM profiles
                WHERE julianday(last_active_at) < julianday(?) AND expo_push_token IS NOT NULL AND expo_push_token != ''
                ORDER BY id
                """,
                (since_iso,),
            ).fetchall()
        finally:
            conn.close()
    except sqlite3.Error as exc:
        raise AdapterError(f"Failed to fetch inactive profiles: {exc}") from exc
    return [dict(row) for row in rows]


def upsert_settings(
    user_id: str,
    prayer_start: bool = False,
    prayer_ending: bool = False,
    dua_reminders: bool = False,
    timezone_name: str | None = None,
    latitude: float | None = None,
    longitude: float | None = None,
) -> None:
    conn = get_conn()
    try:
        conn.execute(
            """
            INSERT INTO notification_settings (user_id, prayer_start, prayer_ending, dua_reminders, timezone, latitude, longitude)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET
                prayer_start = excluded.prayer_start,
                prayer_ending = excluded.prayer_ending,
                dua_reminders = excluded.dua_reminders,
                timezone = excluded.timezone,
                latitude = excluded.latitude,
                longitude = excluded.longitude
            """,
            (user_id, int(prayer_start), int(prayer_ending), int(dua_reminders), timezone_name, latitude, longitude),
        )
        conn.commit()
    finally:
        conn.close()


def add_subscription(
    user_id: str,
    endpoint: str | None = None,
    p256dh: str | None = None,
    auth: str | None = None,
    expo_push_token: str | None = None,
    is_active: bool = True,
) -> int:
    conn = get_conn()
    try:
        cur = conn.execute(
            """
            INSERT INTO notification_subscriptions (user_id, endpoint, p256dh, auth, expo_push_token, is_active, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (user_id, endpoint, p256dh, auth, expo_push_token, int(is_active), utc_now_iso()),
        )
        conn.commit()
        return cur.lastrowid
    finally:
        conn.close()
