"""Decide whether a message reports an incident and pull out its fields."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from jirani.detection import rules
from jirani.llm.client import LLMClient, LLMError
from jirani.models import IncidentDraft
from jirani.prompts.loader import render

logger = logging.getLogger(__name__)


class IncidentDetector:
    def __init__(self, llm: LLMClient) -> None:
        self._llm = llm
        self._location_prompt = render("extract_location.j2")

    async def detect(self, text: str) -> Optional[IncidentDraft]:
        """Return a fresh draft for incident-bearing text, else None."""
        if not text or not rules.looks_like_incident(text):
            return None

        incident_type = rules.classify_type(text)
        location = await self.extract_location(text)
        draft = IncidentDraft(
            type=incident_type,
            description=text,
            location=location,
            timestamp=datetime.now().isoformat(),
            severity=rules.severity_for(incident_type),
        )
        logger.info(
            "Detected %s (severity %d), location=%r",
            draft.type.value, draft.severity, draft.location,
        )
        return draft

    async def extract_location(self, text: str) -> Optional[str]:
        """Ask the model for the stated place phrase. None on any failure."""
        if not text or not text.strip():
            return None
        try:
            return await self._llm.extract_field(self._location_prompt, text)
        except LLMError as exc:
            logger.warning("Location extraction failed: %s", exc)
            return None
