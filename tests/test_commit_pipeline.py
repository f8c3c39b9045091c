"""Tests for the incident commit pipeline and its storage fallback."""

import asyncio
import json

import pytest

from conftest import SANITIZED, FakeLLM

from jirani.db.repositories import JsonFileIncidentRepository, RepositoryError
from jirani.location.resolver import GAZETTEER
from jirani.models import IncidentDraft, IncidentType, StoredIncident
from jirani.pipeline.commit import AvailabilityGate, CommitError, CommitPipeline
from jirani.sanitizer import DescriptionSanitizer


class MemoryStore:
    def __init__(self, up=True, insert_fails=False):
        self.up = up
        self.insert_fails = insert_fails
        self.items: list[StoredIncident] = []
        self.pings = 0

    def ping(self):
        self.pings += 1
        return self.up

    def insert(self, record):
        if self.insert_fails:
            raise RepositoryError("insert rejected")
        self.items.append(record)
        return record

    def list_recent(self, limit=50):
        if not self.up:
            raise RepositoryError("down")
        return list(reversed(self.items))[:limit]


class BrokenFileStore:
    def insert(self, record):
        raise RepositoryError("disk full")

    def list_recent(self, limit=50):
        raise RepositoryError("disk full")


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def _draft(**overrides):
    data = dict(
        type=IncidentType.THEFT,
        description="Someone stole my bag near Yaya Centre",
        location="Yaya Centre",
        timestamp="2025-01-01T15:00:00",
        severity=3,
    )
    data.update(overrides)
    return IncidentDraft(**data)


def _pipeline(primary, fallback, llm=None, gate=None):
    return CommitPipeline(DescriptionSanitizer(llm or FakeLLM()), primary, fallback, gate)


def _commit(pipeline, draft=None, attachments=None):
    return asyncio.run(pipeline.commit(draft or _draft(), "+254700000001", attachments))


class TestCommit:
    def test_stores_merged_record_in_primary(self, fallback_path):
        primary = MemoryStore()
        stored = _commit(_pipeline(primary, JsonFileIncidentRepository(fallback_path)), attachments=["img-1"])

        assert primary.items == [stored]
        assert stored.type == "Theft/Robbery"
        assert stored.severity == 3
        assert stored.description == SANITIZED
        assert stored.coordinates == GAZETTEER["yaya centre"]
        assert stored.from_ == "+254700000001"
        assert stored.images == ["img-1"]
        assert not fallback_path.exists()

    def test_existing_coordinates_are_kept(self):
        stored = _commit(
            _pipeline(MemoryStore(), BrokenFileStore()),
            _draft(coordinates=(1.0, 2.0)),
        )
        assert stored.coordinates == (1.0, 2.0)

    @pytest.mark.parametrize("location", [None, "", "Location mentioned in description"])
    def test_placeholder_location_is_not_geocoded(self, location):
        stored = _commit(_pipeline(MemoryStore(), BrokenFileStore()), _draft(location=location))
        assert stored.coordinates is None
        assert stored.location == "Unknown location"

    def test_sanitizer_failure_uses_template(self):
        stored = _commit(_pipeline(MemoryStore(), BrokenFileStore(), llm=FakeLLM(fail=True)))
        assert stored.description.startswith("Theft/Robbery reported near Yaya Centre.")

    def test_primary_error_falls_back_to_file(self, fallback_path):
        primary = MemoryStore(insert_fails=True)
        stored = _commit(_pipeline(primary, JsonFileIncidentRepository(fallback_path)))

        data = json.loads(fallback_path.read_text())
        assert [d["id"] for d in data] == [stored.id]
        assert primary.items == []

    def test_known_down_primary_is_skipped(self, fallback_path):
        primary = MemoryStore(up=False)
        _commit(_pipeline(primary, JsonFileIncidentRepository(fallback_path)))
        assert primary.items == []
        assert len(json.loads(fallback_path.read_text())) == 1

    def test_double_failure_raises(self):
        with pytest.raises(CommitError):
            _commit(_pipeline(MemoryStore(insert_fails=True), BrokenFileStore()))


class TestAvailabilityGate:
    def test_failed_probe_is_cached_for_backoff(self):
        clock = FakeClock()
        primary = MemoryStore(up=False)
        gate = AvailabilityGate(primary.ping, backoff=60, clock=clock)

        assert gate.is_available() is False
        primary.up = True
        clock.now = 30
        assert gate.is_available() is False
        assert primary.pings == 1

        clock.now = 61
        assert gate.is_available() is True
        assert primary.pings == 2

    def test_insert_failure_opens_backoff(self, fallback_path):
        clock = FakeClock()
        primary = MemoryStore(insert_fails=True)
        gate = AvailabilityGate(primary.ping, backoff=60, clock=clock)
        pipeline = _pipeline(primary, JsonFileIncidentRepository(fallback_path), gate=gate)

        _commit(pipeline)
        primary.insert_fails = False
        _commit(pipeline)
        # second commit skipped the primary entirely
        assert primary.items == []
        assert primary.pings == 1

        clock.now = 61
        _commit(pipeline)
        assert len(primary.items) == 1


class TestListRecent:
    def test_merges_both_stores_newest_first(self, fallback_path):
        primary = MemoryStore()
        fallback = JsonFileIncidentRepository(fallback_path)
        primary.insert(StoredIncident(id="p", created_at="2025-01-02T00:00:00"))
        fallback.insert(StoredIncident(id="f", created_at="2025-01-03T00:00:00"))

        recent = _pipeline(primary, fallback).list_recent(10)
        assert [i.id for i in recent] == ["f", "p"]

    def test_unreadable_store_is_skipped(self, fallback_path):
        fallback = JsonFileIncidentRepository(fallback_path)
        fallback.insert(StoredIncident(id="f"))
        recent = _pipeline(MemoryStore(up=False), fallback).list_recent(10)
        assert [i.id for i in recent] == ["f"]
