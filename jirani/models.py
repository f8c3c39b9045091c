from __future__ import annotations

import enum
import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# ── Enums ──────────────────────────────────────────────────────────────

class Phase(str, enum.Enum):
    GREETING = "greeting"
    COLLECTING = "collecting"
    CONFIRMING = "confirming"
    COMPLETED = "completed"


class Role(str, enum.Enum):
    USER = "user"
    ASSISTANT = "assistant"


class IncidentType(str, enum.Enum):
    ARMED_ROBBERY = "Armed Robbery"
    THEFT = "Theft/Robbery"
    ASSAULT = "Assault"
    THREAT = "Threat/Harassment"
    GENERAL = "General Incident"


Coordinates = tuple[float, float]  # (lon, lat)


def _new_id() -> str:
    return uuid.uuid4().hex


# ── Conversation ──────────────────────────────────────────────────────

class ChatMessage(BaseModel):
    id: str = Field(default_factory=_new_id)
    timestamp: datetime = Field(default_factory=datetime.now)
    role: Role
    text: str


class IncidentDraft(BaseModel):
    type: IncidentType = IncidentType.GENERAL
    description: str  # verbatim reporter text; sanitized only at commit
    location: Optional[str] = None
    timestamp: str = Field(default_factory=lambda: datetime.now().isoformat())
    severity: int = Field(default=3, ge=1, le=5)
    coordinates: Optional[Coordinates] = None
    confirmed: bool = False


class ConversationState(BaseModel):
    sender_id: str
    messages: list[ChatMessage] = Field(default_factory=list)
    current_incident: Optional[IncidentDraft] = None
    awaiting_confirmation: bool = False
    phase: Phase = Phase.GREETING
    last_activity: datetime = Field(default_factory=datetime.now)

    def add_message(self, role: Role, text: str, limit: int) -> ChatMessage:
        """Append to the bounded history, evicting the oldest entries."""
        msg = ChatMessage(role=role, text=text)
        self.messages.append(msg)
        if len(self.messages) > limit:
            del self.messages[: len(self.messages) - limit]
        self.last_activity = msg.timestamp
        return msg

    @property
    def active_draft(self) -> Optional[IncidentDraft]:
        """The pending draft, or None when absent or already confirmed."""
        if self.current_incident is None or self.current_incident.confirmed:
            return None
        return self.current_incident


# ── Stored incident (durable record) ──────────────────────────────────

class StoredIncident(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=_new_id)
    type: str = "Unknown"
    severity: int = 1
    location: str = "Unknown location"
    description: str = "No description provided"
    timestamp: str = Field(default_factory=lambda: datetime.now().isoformat())
    coordinates: Optional[Coordinates] = None
    from_: str = Field(default="", alias="from")
    created_at: str = Field(default_factory=lambda: datetime.now().isoformat())
    images: list[str] = Field(default_factory=list)
    source: str = "whatsapp"


# ── Engine I/O ────────────────────────────────────────────────────────

class InboundMessage(BaseModel):
    sender_id: str
    text: str = ""
    attachments: list[str] = Field(default_factory=list)


class TurnResult(BaseModel):
    reply_text: str
    confirmed_incident: Optional[StoredIncident] = None
