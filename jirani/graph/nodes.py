"""LangGraph node functions for one reporter turn.

Happy path of a conversation across turns:
1. greeting: small talk, nothing pending
2. collecting: detector found an incident, draft attached
3. confirming: assistant asked "shall I file this?"
4. completed: reporter said yes, incident committed

Within a turn the yes/no check runs before any model call.
"""
from __future__ import annotations

import logging

from jirani.config import CONTEXT_WINDOW_MESSAGES, MAX_HISTORY_MESSAGES
from jirani.conversation.store import ConversationStore
from jirani.detection import rules
from jirani.detection.detector import IncidentDetector
from jirani.graph.replies import CONFIRMED_REPLY, DECLINED_REPLY, fallback_reply
from jirani.llm.client import LLMClient, LLMError
from jirani.models import ConversationState, Phase, Role
from jirani.pipeline.commit import CommitPipeline
from jirani.prompts.loader import render

logger = logging.getLogger(__name__)


def format_context(conv: ConversationState, window: int) -> str:
    """Render the last *window* messages before the current one."""
    history = conv.messages[:-1][-window:] if window > 0 else []
    return "\n".join(f"{m.role.value}: {m.text}" for m in history)


class DialogNodes:
    """Node callables bound to the collaborators they need."""

    def __init__(
        self,
        store: ConversationStore,
        detector: IncidentDetector,
        llm: LLMClient,
        pipeline: CommitPipeline,
        max_history: int = MAX_HISTORY_MESSAGES,
        context_window: int = CONTEXT_WINDOW_MESSAGES,
    ) -> None:
        self.store = store
        self.detector = detector
        self.llm = llm
        self.pipeline = pipeline
        self.max_history = max_history
        self.context_window = context_window

    # ─── Load ──────────────────────────────────────────────────────────

    async def load_node(self, state: dict) -> dict:
        msg = state["message"]
        conv = await self.store.load(msg.sender_id)

        if conv.awaiting_confirmation and conv.active_draft is None:
            logger.warning(
                "Conversation %s awaiting confirmation without a draft, resetting flag",
                conv.sender_id,
            )
            conv.awaiting_confirmation = False
            if conv.phase == Phase.CONFIRMING:
                conv.phase = Phase.GREETING if conv.current_incident is None else Phase.COMPLETED

        conv.add_message(Role.USER, msg.text, self.max_history)
        return {"conversation": conv, "current_node": "load"}

    # ─── Confirmation short-circuit ───────────────────────────────────

    async def check_confirmation_node(self, state: dict) -> dict:
        conv: ConversationState = state["conversation"]
        intent = None
        if conv.awaiting_confirmation and conv.active_draft is not None:
            intent = rules.confirmation_intent(state["message"].text)
            logger.debug("Confirmation intent for %s: %s", conv.sender_id, intent)
        return {"intent": intent, "current_node": "check_confirmation"}

    async def commit_node(self, state: dict) -> dict:
        """Store the pending draft, then mark it confirmed.

        CommitError propagates: the draft stays pending so a later "yes"
        can retry.
        """
        conv: ConversationState = state["conversation"]
        msg = state["message"]
        draft = conv.active_draft
        if draft is None:
            logger.warning("Commit requested for %s with no pending draft", conv.sender_id)
            conv.awaiting_confirmation = False
            return {
                "reply": fallback_reply(msg.text, conv),
                "current_node": "commit",
            }

        stored = await self.pipeline.commit(draft, conv.sender_id, msg.attachments)

        draft.confirmed = True
        conv.awaiting_confirmation = False
        conv.phase = Phase.COMPLETED
        logger.info("Incident %s confirmed by %s", stored.id, conv.sender_id)
        return {
            "reply": CONFIRMED_REPLY,
            "confirmed_incident": stored,
            "current_node": "commit",
        }

    async def cancel_node(self, state: dict) -> dict:
        conv: ConversationState = state["conversation"]
        conv.current_incident = None
        conv.awaiting_confirmation = False
        conv.phase = Phase.GREETING
        logger.info("Draft cancelled by %s", conv.sender_id)
        return {"reply": DECLINED_REPLY, "current_node": "cancel"}

    # ─── Conversational reply ─────────────────────────────────────────

    async def generate_node(self, state: dict) -> dict:
        conv: ConversationState = state["conversation"]
        system_prompt = render(
            "reply_system.j2",
            draft=conv.active_draft,
            awaiting_confirmation=conv.awaiting_confirmation,
        )
        context = format_context(conv, self.context_window)
        try:
            reply = await self.llm.generate(system_prompt, state["message"].text, context)
        except LLMError as exc:
            logger.warning("Reply generation failed for %s: %s", conv.sender_id, exc)
            reply = None
        return {"reply": reply or None, "current_node": "generate"}

    # ─── Incident detection ───────────────────────────────────────────

    async def detect_node(self, state: dict) -> dict:
        conv: ConversationState = state["conversation"]
        if conv.active_draft is not None:
            return {"detected": False, "current_node": "detect"}

        draft = await self.detector.detect(state["message"].text)
        if draft is None:
            return {"detected": False, "current_node": "detect"}

        # A new report supersedes any committed one
        conv.current_incident = draft
        conv.awaiting_confirmation = False
        conv.phase = Phase.COLLECTING
        return {"detected": True, "current_node": "detect"}

    async def refine_location_node(self, state: dict) -> dict:
        conv: ConversationState = state["conversation"]
        draft = conv.active_draft
        if (
            draft is not None
            and not state.get("detected")
            and conv.phase in (Phase.COLLECTING, Phase.CONFIRMING)
        ):
            location = await self.detector.extract_location(state["message"].text)
            if location:
                logger.info("Location for %s refined to %r", conv.sender_id, location)
                draft.location = location
        return {"current_node": "refine_location"}

    # ─── Arm confirmation ─────────────────────────────────────────────

    async def arm_confirmation_node(self, state: dict) -> dict:
        conv: ConversationState = state["conversation"]
        reply = state.get("reply")
        if reply is None:
            reply = fallback_reply(state["message"].text, conv)

        if (
            conv.active_draft is not None
            and not conv.awaiting_confirmation
            and rules.solicits_confirmation(reply)
        ):
            conv.awaiting_confirmation = True
            conv.phase = Phase.CONFIRMING
            logger.info("Awaiting confirmation from %s", conv.sender_id)
        return {"reply": reply, "current_node": "arm_confirmation"}

    # ─── Persist ──────────────────────────────────────────────────────

    async def persist_node(self, state: dict) -> dict:
        conv: ConversationState = state["conversation"]
        conv.add_message(Role.ASSISTANT, state["reply"], self.max_history)
        await self.store.save(conv)
        return {"current_node": "persist"}
