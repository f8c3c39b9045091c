"""Thin async client for Meta's WhatsApp Cloud API (Graph API v21.0)."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

import httpx

from jirani.config import WHATSAPP_ACCESS_TOKEN, WHATSAPP_PHONE_NUMBER_ID

logger = logging.getLogger(__name__)

GRAPH_API_BASE = "https://graph.facebook.com/v21.0"

# Cloud API rejects text bodies longer than this.
MAX_BODY_CHARS = 4096


@dataclass
class IncomingMessage:
    from_number: str
    message_id: str
    type: str  # "text" | "image"
    text: str = ""
    media_ids: list[str] = field(default_factory=list)
    timestamp: str = ""


def is_configured() -> bool:
    """True when outbound replies can be sent."""
    return bool(WHATSAPP_ACCESS_TOKEN and WHATSAPP_PHONE_NUMBER_ID)


def _auth_headers() -> dict[str, str]:
    return {
        "Authorization": f"Bearer {WHATSAPP_ACCESS_TOKEN}",
        "Content-Type": "application/json",
    }


async def send_text_message(to: str, body: str) -> dict:
    """Send *body* to *to*, truncated to what the Cloud API accepts."""
    if len(body) > MAX_BODY_CHARS:
        logger.warning("Reply to %s truncated from %d chars", to, len(body))
        body = body[: MAX_BODY_CHARS - 1] + "…"

    async with httpx.AsyncClient(timeout=30) as client:
        resp = await client.post(
            f"{GRAPH_API_BASE}/{WHATSAPP_PHONE_NUMBER_ID}/messages",
            headers=_auth_headers(),
            json={
                "messaging_product": "whatsapp",
                "recipient_type": "individual",
                "to": to,
                "type": "text",
                "text": {"preview_url": False, "body": body},
            },
        )
        resp.raise_for_status()
        return resp.json()


def _to_incoming(raw: dict) -> IncomingMessage | None:
    msg_type = raw.get("type", "")
    if msg_type == "text":
        text = raw.get("text", {}).get("body", "")
        media_ids: list[str] = []
    elif msg_type == "image":
        # Captions carry the reporter's words; the image id rides along.
        image = raw.get("image", {})
        text = image.get("caption") or ""
        media_ids = [image["id"]] if image.get("id") else []
    else:
        logger.debug("Skipping unsupported %r message", msg_type)
        return None

    return IncomingMessage(
        from_number=raw.get("from", ""),
        message_id=raw.get("id", ""),
        type=msg_type,
        text=text,
        media_ids=media_ids,
        timestamp=raw.get("timestamp", ""),
    )


def parse_webhook_message(payload: dict) -> list[IncomingMessage]:
    """Extract supported messages from a webhook payload.

    Status callbacks (delivered, read) carry no ``messages`` key and yield
    nothing.
    """
    found: list[IncomingMessage] = []
    for entry in payload.get("entry", []):
        for change in entry.get("changes", []):
            for raw in change.get("value", {}).get("messages", []):
                incoming = _to_incoming(raw)
                if incoming is not None:
                    found.append(incoming)
    return found
