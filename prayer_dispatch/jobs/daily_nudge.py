from __future__ import annotations

import logging

from prayer_dispatch.config import configure_logging
from prayer_dispatch.db import init_db
from prayer_dispatch.dispatch import run_daily_nudge

logger = logging.getLogger(__name__)


def main() -> None:
    configure_logging()
    init_db()
    summary = run_daily_nudge()
    logger.info("Daily nudge: %s", summary.get("message") or f"{summary['processed']} processed")


if __name__ == "__main__":
    main()
