"""Bridge between WhatsApp messages and the dialog engine.

Handles slash commands and rate limiting before a message reaches the
engine, and turns storage failures into a polite reply.
"""
from __future__ import annotations

import logging

from jirani.config import LLM_PROVIDER
from jirani.graph.builder import DialogEngine, build_engine
from jirani.graph.replies import (
    ERROR_REPLY,
    HELP_REPLY,
    RATE_LIMITED_REPLY,
    RESET_REPLY,
)
from jirani.models import InboundMessage, StoredIncident, TurnResult
from jirani.pipeline.commit import CommitError
from jirani.whatsapp.client import IncomingMessage, is_configured
from jirani.whatsapp.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


class GraphAdapter:
    """Routes WhatsApp messages into the dialog engine."""

    def __init__(
        self,
        engine: DialogEngine | None = None,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        self.engine = engine if engine is not None else build_engine()
        self.rate_limiter = rate_limiter if rate_limiter is not None else RateLimiter()

    # ── public API ──────────────────────────────────────────────────

    async def reset_thread(self, sender_id: str) -> None:
        """Forget all conversation state for a sender."""
        await self.engine.nodes.store.forget(sender_id)
        logger.info("Conversation %s reset", sender_id)

    def recent_incidents(self, limit: int = 50) -> list[StoredIncident]:
        return self.engine.nodes.pipeline.list_recent(limit)

    def evict_idle(self) -> int:
        """Drop idle conversations from the in-memory cache."""
        return self.engine.nodes.store.evict_idle()

    def status(self) -> dict:
        return {
            "llm_provider": LLM_PROVIDER,
            "whatsapp_configured": is_configured(),
            "primary_store_ready": self.engine.nodes.pipeline.primary_available(),
        }

    async def handle_message(self, msg: IncomingMessage) -> str:
        """Process an incoming WhatsApp message and return the reply text."""
        result = await self.handle(msg)
        return result.reply_text

    async def handle(self, msg: IncomingMessage) -> TurnResult:
        sender_id = msg.from_number

        command_reply = await self._handle_command(msg.text, sender_id)
        if command_reply is not None:
            return TurnResult(reply_text=command_reply)

        decision = self.rate_limiter.check(sender_id)
        if not decision.allowed:
            logger.warning(
                "Rate limited %s for another %.0fs", sender_id, decision.reset_in
            )
            return TurnResult(reply_text=RATE_LIMITED_REPLY)

        inbound = InboundMessage(
            sender_id=sender_id, text=msg.text, attachments=list(msg.media_ids)
        )
        try:
            result = await self.engine.handle(inbound)
        except CommitError:
            logger.exception("Could not store incident for %s", sender_id)
            return TurnResult(reply_text=ERROR_REPLY)

        if result.confirmed_incident is not None:
            logger.info(
                "Incident %s filed by %s", result.confirmed_incident.id, sender_id
            )
        return result

    # ── private helpers ─────────────────────────────────────────────

    async def _handle_command(self, text: str, sender_id: str) -> str | None:
        """Run *text* as a slash command, or return None to continue."""
        stripped = (text or "").strip().lower()
        if not stripped.startswith("/"):
            return None

        cmd = stripped.split()[0]
        if cmd == "/reset":
            await self.reset_thread(sender_id)
            return RESET_REPLY
        if cmd == "/help":
            return HELP_REPLY
        return f"Unknown command: {cmd}\nSend /help to see what I understand."
