"""LangGraph state for a single inbound-message turn."""
from __future__ import annotations

from typing import Optional

from typing_extensions import TypedDict

from jirani.models import ConversationState, InboundMessage, StoredIncident


class TurnState(TypedDict, total=False):
    message: InboundMessage
    conversation: ConversationState
    # "confirm" | "cancel" | None, only set while awaiting confirmation
    intent: Optional[str]
    # Model reply; None means the model failed and a canned reply is needed
    reply: Optional[str]
    # True when the detector created the draft during this turn
    detected: bool
    confirmed_incident: Optional[StoredIncident]
    current_node: str
