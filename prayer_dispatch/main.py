from __future__ import annotations

import logging
from typing import Callable

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from prayer_dispatch import dispatch
from prayer_dispatch.config import Config, configure_logging
from prayer_dispatch.db import init_db
from prayer_dispatch.windows import ENDING_SOON_WINDOW_MINUTES, START_WINDOW_MINUTES

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}

TRIGGER_METHODS = ["GET", "POST", "OPTIONS"]

app = FastAPI(title="Prayer Dispatch")


@app.on_event("startup")
def startup() -> None:
    configure_logging()
    Config.validate(START_WINDOW_MINUTES, ENDING_SOON_WINDOW_MINUTES)
    init_db()


def _json(body: dict, status_code: int = 200) -> JSONResponse:
    return JSONResponse(body, status_code=status_code, headers=CORS_HEADERS)


def _authorized(request: Request) -> bool:
    if not Config.CRON_SECRET:
        return True
    if request.headers.get("authorization") == f"Bearer {Config.CRON_SECRET}":
        return True
    if Config.CRON_SECRET_ENFORCED:
        logger.warning("Rejected request without cron secret from %s", request.client.host if request.client else "?")
        return False
    logger.warning("Request without cron secret")
    return True


def _trigger(request: Request, job: Callable[[], dict]) -> Response:
    if request.method == "OPTIONS":
        return PlainTextResponse("ok", headers=CORS_HEADERS)
    if not _authorized(request):
        return _json({"error": "Unauthorized"}, status_code=401)
    try:
        return _json(job())
    except Exception as exc:
        logger.exception("Dispatch failed")
        return _json({"error": str(exc)}, status_code=500)


@app.api_route("/send-scheduled-notifications", methods=TRIGGER_METHODS)
def send_scheduled_notifications(request: Request) -> Response:
    return _trigger(request, dispatch.run_scheduled_notifications)


@app.api_route("/send-daily-nudge", methods=TRIGGER_METHODS)
def send_daily_nudge(request: Request) -> Response:
    return _trigger(request, dispatch.run_daily_nudge)


@app.get("/health", response_class=JSONResponse)
def health() -> JSONResponse:
    return JSONResponse({"status": "ok"})
