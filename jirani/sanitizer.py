"""Privacy-safe rewrite of incident narratives before they are published."""
from __future__ import annotations

import logging
from typing import Optional

from jirani.llm.client import LLMClient, LLMError
from jirani.prompts.loader import render

logger = logging.getLogger(__name__)

FALLBACK_EXCERPT_CHARS = 180


def fallback_summary(
    raw_text: str, incident_type: str, location: Optional[str], timestamp: str
) -> str:
    """Deterministic summary used when the model is unavailable.

    NOTE: no PII scrubbing happens here; the excerpt is the reporter's own text.
    """
    excerpt = (raw_text or "").strip()[:FALLBACK_EXCERPT_CHARS] or "No details provided."
    return (
        f"{incident_type} reported near {location or 'an unspecified location'}. "
        f"Approx time: {timestamp}. Summary: {excerpt}"
    )


class DescriptionSanitizer:
    def __init__(self, llm: LLMClient) -> None:
        self._llm = llm

    async def sanitize(
        self,
        raw_text: str,
        incident_type: str,
        location: Optional[str],
        timestamp: str,
    ) -> str:
        """Return a short third-person summary. Never raises."""
        system_prompt = render(
            "sanitize.j2",
            incident_type=incident_type,
            location=location or "unspecified",
            timestamp=timestamp,
        )
        try:
            summary = await self._llm.generate(system_prompt, raw_text)
        except LLMError as exc:
            logger.warning("Sanitizer falling back to template: %s", exc)
            summary = ""

        if not summary:
            return fallback_summary(raw_text, incident_type, location, timestamp)
        return summary
