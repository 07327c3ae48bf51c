"""FastAPI webhook that receives Telegram updates."""

import json
import logging
from datetime import UTC, datetime

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from starlette.concurrency import run_in_threadpool

from .dispatcher import Dispatcher

logger = logging.getLogger(__name__)

WEBHOOK_PATH = "/api/telegram"


def create_app(dispatcher: Dispatcher) -> FastAPI:
    """Build the webhook app around a dispatcher."""
    app = FastAPI(title="splitbill", description="Telegram bill-splitting bot webhook")

    @app.get(WEBHOOK_PATH)
    def health():
        return {
            "ok": True,
            "msg": "webhook online",
            "time": datetime.now(UTC).isoformat(),
        }

    @app.post(WEBHOOK_PATH, response_class=PlainTextResponse)
    async def receive_update(request: Request):
        try:
            update = json.loads(await request.body())
            logger.debug(f"Incoming update: {update}")
            await run_in_threadpool(dispatcher.handle_update, update)
        except Exception:
            logger.exception("Webhook error")
            return PlainTextResponse("error", status_code=500)
        return PlainTextResponse("ok")

    return app
