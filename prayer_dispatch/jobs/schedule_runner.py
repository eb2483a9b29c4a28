from __future__ import annotations

import argparse
import json
import logging
import time

from prayer_dispatch.config import Config, configure_logging
from prayer_dispatch.db import init_db
from prayer_dispatch.dispatch import run_scheduled_notifications
from prayer_dispatch.windows import ENDING_SOON_WINDOW_MINUTES, START_WINDOW_MINUTES

logger = logging.getLogger(__name__)


def run_once() -> dict:
    summary = run_scheduled_notifications()
    logger.info("Cycle summary: %s", json.dumps({k: v for k, v in summary.items() if k != "details"}))
    return summary


def run_forever(interval_minutes: int | None = None) -> None:
    interval = interval_minutes or Config.POLL_INTERVAL_MINUTES
    while True:
        started = time.monotonic()
        try:
            run_once()
        except Exception:
            logger.exception("Dispatch cycle failed")
        time.sleep(max(0.0, interval * 60 - (time.monotonic() - started)))


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Run the prayer notification dispatch cycle")
    parser.add_argument("--loop", action="store_true", help="Keep running every POLL_INTERVAL_MINUTES")
    args = parser.parse_args(argv)

    configure_logging()
    Config.validate(START_WINDOW_MINUTES, ENDING_SOON_WINDOW_MINUTES)
    init_db()

    # Run this command every 5 minutes via cron/systemd timer, or pass --loop.
    if args.loop:
        run_forever()
    else:
        run_once()


if __name__ == "__main__":
    main()
