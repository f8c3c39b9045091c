"""Turn a confirmed draft into a stored incident."""
from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Protocol

from jirani.config import STORE_BACKOFF_SECONDS
from jirani.db.repositories import RepositoryError
from jirani.location.resolver import resolve
from jirani.models import IncidentDraft, StoredIncident
from jirani.sanitizer import DescriptionSanitizer

logger = logging.getLogger(__name__)

# Location strings that carry no place information.
PLACEHOLDER_LOCATIONS = {
    "",
    "unknown",
    "unknown location",
    "location mentioned in description",
    "not specified",
    "n/a",
}


class CommitError(Exception):
    """Neither the primary store nor the file fallback accepted the incident."""


class IncidentStore(Protocol):
    def insert(self, record: StoredIncident) -> StoredIncident: ...

    def list_recent(self, limit: int = 50) -> list[StoredIncident]: ...


class ProbedIncidentStore(IncidentStore, Protocol):
    def ping(self) -> bool: ...


class AvailabilityGate:
    """Caches a failed probe for *backoff* seconds before probing again."""

    def __init__(
        self,
        probe: Callable[[], bool],
        backoff: float = STORE_BACKOFF_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._probe = probe
        self.backoff = backoff
        self._clock = clock
        self._down_until: float | None = None

    def is_available(self) -> bool:
        if self._down_until is not None and self._clock() < self._down_until:
            return False
        if self._probe():
            self._down_until = None
            return True
        self.mark_failed()
        return False

    def mark_failed(self) -> None:
        self._down_until = self._clock() + self.backoff


def is_placeholder(location: Optional[str]) -> bool:
    return (location or "").strip().lower() in PLACEHOLDER_LOCATIONS


class CommitPipeline:
    def __init__(
        self,
        sanitizer: DescriptionSanitizer,
        primary: ProbedIncidentStore,
        fallback: IncidentStore,
        gate: AvailabilityGate | None = None,
    ) -> None:
        self._sanitizer = sanitizer
        self._primary = primary
        self._fallback = fallback
        self._gate = gate if gate is not None else AvailabilityGate(primary.ping)

    async def commit(
        self,
        draft: IncidentDraft,
        sender_id: str,
        attachments: list[str] | None = None,
    ) -> StoredIncident:
        """Sanitize, geocode and persist *draft*. Raises CommitError on double failure."""
        description = await self._sanitizer.sanitize(
            draft.description, draft.type.value, draft.location, draft.timestamp
        )

        coordinates = draft.coordinates
        if coordinates is None and not is_placeholder(draft.location):
            coordinates = resolve(draft.location)

        record = StoredIncident(
            type=draft.type.value,
            severity=draft.severity,
            location=draft.location if not is_placeholder(draft.location) else "Unknown location",
            description=description,
            timestamp=draft.timestamp,
            coordinates=coordinates,
            from_=sender_id,
            images=list(attachments or []),
        )
        return self._store(record)

    def primary_available(self) -> bool:
        return self._gate.is_available()

    def list_recent(self, limit: int = 50) -> list[StoredIncident]:
        """Newest incidents from both stores; either may be unreadable."""
        found: dict[str, StoredIncident] = {}
        for name, repo in (("primary", self._primary), ("fallback", self._fallback)):
            try:
                for incident in repo.list_recent(limit):
                    found.setdefault(incident.id, incident)
            except RepositoryError as exc:
                logger.warning("Cannot list %s incidents: %s", name, exc)
        ordered = sorted(found.values(), key=lambda i: i.created_at, reverse=True)
        return ordered[:limit]

    def _store(self, record: StoredIncident) -> StoredIncident:
        if self._gate.is_available():
            try:
                stored = self._primary.insert(record)
                logger.info("Incident %s stored (%s)", stored.id, stored.type)
                return stored
            except RepositoryError as exc:
                logger.error("Primary store failed, using file fallback: %s", exc)
                self._gate.mark_failed()
        else:
            logger.warning("Primary store known down, using file fallback")

        try:
            stored = self._fallback.insert(record)
        except RepositoryError as exc:
            raise CommitError(f"incident {record.id} could not be stored: {exc}") from exc
        logger.info("Incident %s stored in file fallback", stored.id)
        return stored
