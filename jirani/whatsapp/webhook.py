"""FastAPI webhook server for WhatsApp Cloud API integration."""
from __future__ import annotations

import asyncio
import contextlib
import logging

from fastapi import BackgroundTasks, FastAPI, Query, Request
from fastapi.responses import PlainTextResponse

from jirani.config import CONVERSATION_SWEEP_SECONDS, WHATSAPP_VERIFY_TOKEN
from jirani.graph.replies import ERROR_REPLY
from jirani.whatsapp.client import (
    IncomingMessage,
    is_configured,
    parse_webhook_message,
    send_text_message,
)
from jirani.whatsapp.graph_adapter import GraphAdapter

logger = logging.getLogger(__name__)

_adapter: GraphAdapter | None = None


def _get_adapter() -> GraphAdapter:
    global _adapter
    if _adapter is None:
        _adapter = GraphAdapter()
    return _adapter


def set_adapter(adapter: GraphAdapter | None) -> None:
    """Install a pre-built adapter (tests, custom wiring)."""
    global _adapter
    _adapter = adapter


def sweep_idle_conversations() -> int:
    """Evict idle conversations from the hot cache; durable copies stay."""
    evicted = _get_adapter().evict_idle()
    if evicted:
        logger.info("Evicted %d idle conversations from cache", evicted)
    return evicted


async def _sweep_forever(interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        try:
            sweep_idle_conversations()
        except Exception:
            logger.exception("Idle conversation sweep failed")


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    sweeper = asyncio.create_task(_sweep_forever(CONVERSATION_SWEEP_SECONDS))
    yield
    sweeper.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await sweeper


app = FastAPI(title="Jirani Safety Reporting Bot", lifespan=lifespan)


@app.get("/webhook")
async def verify_webhook(
    hub_mode: str = Query(None, alias="hub.mode"),
    hub_verify_token: str = Query(None, alias="hub.verify_token"),
    hub_challenge: str = Query(None, alias="hub.challenge"),
) -> PlainTextResponse:
    """Webhook verification endpoint required by Meta."""
    if not WHATSAPP_VERIFY_TOKEN:
        logger.error("WHATSAPP_VERIFY_TOKEN not configured")
        return PlainTextResponse(content="Server configuration error", status_code=500)
    if hub_mode == "subscribe" and hub_verify_token == WHATSAPP_VERIFY_TOKEN:
        logger.info("Webhook verified successfully")
        return PlainTextResponse(content=hub_challenge)
    logger.warning("Webhook verification failed: invalid token")
    return PlainTextResponse(content="Forbidden", status_code=403)


@app.post("/webhook")
async def receive_message(
    request: Request, background_tasks: BackgroundTasks
) -> dict:
    """Receive incoming WhatsApp messages.

    Returns 200 immediately (Meta requires <5s response) and
    processes the message in a background task.
    """
    payload = await request.json()
    messages = parse_webhook_message(payload)

    for msg in messages:
        background_tasks.add_task(_process_message, msg)

    return {"status": "ok", "received": len(messages)}


@app.get("/reports")
async def list_reports(limit: int = Query(50, ge=1, le=500)) -> dict:
    """Recently filed incidents for the map view."""
    incidents = _get_adapter().recent_incidents(limit)
    return {
        "events": [i.model_dump(mode="json", by_alias=True) for i in incidents],
        "count": len(incidents),
    }


@app.post("/reset/{phone_number}")
async def reset_thread(phone_number: str) -> dict:
    """Reset a user's conversation so the next message starts fresh.

    Usage: POST /reset/254712345678
    """
    await _get_adapter().reset_thread(phone_number)
    return {"status": "ok", "phone": phone_number, "message": "Conversation reset"}


@app.get("/status")
async def status() -> dict:
    """Which collaborators are configured and reachable."""
    return _get_adapter().status()


async def _process_message(msg: IncomingMessage) -> None:
    """Run one message through the adapter and send the reply back."""
    try:
        reply = await _get_adapter().handle_message(msg)
    except Exception:
        logger.exception("Error processing message from %s", msg.from_number)
        reply = ERROR_REPLY

    if not is_configured():
        logger.info("WhatsApp credentials not configured, reply not sent: %s...", reply[:80])
        return
    try:
        await send_text_message(msg.from_number, reply)
        logger.info("Replied to %s: %s...", msg.from_number, reply[:80])
    except Exception:
        logger.exception("Failed to send reply to %s", msg.from_number)
