"""Per-sender conversation state: in-memory hot cache over a durable repository."""
from __future__ import annotations

import logging
import time
from collections import OrderedDict
from typing import Callable, Optional, Protocol

from pydantic import ValidationError

from jirani.config import CONVERSATION_CACHE_SIZE, CONVERSATION_TIMEOUT_SECONDS
from jirani.db.repositories import RepositoryError
from jirani.models import ConversationState

logger = logging.getLogger(__name__)


class ConversationBackend(Protocol):
    def get(self, sender_id: str) -> Optional[dict]: ...

    def upsert(self, sender_id: str, record: dict) -> None: ...

    def delete(self, sender_id: str) -> bool: ...


class HotCache:
    """Bounded LRU that also drops entries idle longer than *ttl* seconds.

    Eviction only affects this process; the durable copy is untouched.
    """

    def __init__(
        self,
        max_size: int = CONVERSATION_CACHE_SIZE,
        ttl: float = CONVERSATION_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_size = max_size
        self.ttl = ttl
        self._clock = clock
        self._items: OrderedDict[str, tuple[float, ConversationState]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, key: str) -> bool:
        return key in self._items

    def get(self, key: str) -> Optional[ConversationState]:
        entry = self._items.get(key)
        if entry is None:
            return None
        touched, value = entry
        if self._clock() - touched > self.ttl:
            del self._items[key]
            return None
        self._items.move_to_end(key)
        return value

    def put(self, key: str, value: ConversationState) -> None:
        self._items[key] = (self._clock(), value)
        self._items.move_to_end(key)
        while len(self._items) > self.max_size:
            self._items.popitem(last=False)

    def pop(self, key: str) -> None:
        self._items.pop(key, None)

    def evict_idle(self) -> int:
        """Drop every idle entry. Returns how many were removed."""
        now = self._clock()
        stale = [k for k, (touched, _) in self._items.items() if now - touched > self.ttl]
        for key in stale:
            del self._items[key]
        return len(stale)


class ConversationStore:
    """Read-through / write-through store for ConversationState."""

    def __init__(self, backend: ConversationBackend, cache: HotCache | None = None) -> None:
        self._backend = backend
        self._cache = cache if cache is not None else HotCache()

    async def load(self, sender_id: str) -> ConversationState:
        """Return the sender's state, creating a fresh one if none exists."""
        cached = self._cache.get(sender_id)
        if cached is not None:
            return cached

        state: ConversationState | None = None
        try:
            record = self._backend.get(sender_id)
        except RepositoryError as exc:
            logger.warning("Durable read failed for %s: %s", sender_id, exc)
            record = None

        if record is not None:
            try:
                state = ConversationState.model_validate(record)
            except ValidationError:
                logger.exception("Discarding unreadable conversation for %s", sender_id)

        if state is None:
            state = ConversationState(sender_id=sender_id)
            logger.info("New conversation for %s", sender_id)

        self._cache.put(sender_id, state)
        return state

    async def save(self, state: ConversationState) -> bool:
        """Persist *state*. Durable failures are logged and reported as False."""
        self._cache.put(state.sender_id, state)
        try:
            self._backend.upsert(state.sender_id, state.model_dump(mode="json"))
        except RepositoryError as exc:
            logger.error(
                "Durable write failed for %s, keeping in-memory copy: %s",
                state.sender_id, exc,
            )
            return False
        return True

    async def forget(self, sender_id: str) -> None:
        """Drop the sender's state from both tiers."""
        self._cache.pop(sender_id)
        try:
            self._backend.delete(sender_id)
        except RepositoryError as exc:
            logger.error("Durable delete failed for %s: %s", sender_id, exc)

    def evict_idle(self) -> int:
        return self._cache.evict_idle()
