"""Repositories for conversation snapshots and stored incidents."""
from __future__ import annotations

import json
import logging
import os
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from jirani.models import StoredIncident

logger = logging.getLogger(__name__)


class RepositoryError(Exception):
    """A storage backend rejected or could not complete an operation."""


class ConversationRepository:
    """Durable conversation snapshots, one JSON document per sender."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def get(self, sender_id: str) -> Optional[dict]:
        try:
            row = self.conn.execute(
                "SELECT state FROM conversations WHERE sender_id = ?", (sender_id,)
            ).fetchone()
        except sqlite3.Error as exc:
            raise RepositoryError(f"conversation read failed: {exc}") from exc
        if row is None:
            return None
        try:
            return json.loads(row["state"])
        except ValueError as exc:
            raise RepositoryError(f"conversation for {sender_id} is corrupt: {exc}") from exc

    def upsert(self, sender_id: str, record: dict) -> None:
        try:
            self.conn.execute(
                """INSERT INTO conversations (sender_id, state, phase, updated_at)
                   VALUES (?, ?, ?, ?)
                   ON CONFLICT(sender_id) DO UPDATE SET
                     state=excluded.state, phase=excluded.phase,
                     updated_at=excluded.updated_at
                """,
                (
                    sender_id,
                    json.dumps(record),
                    record.get("phase", "greeting"),
                    datetime.now().isoformat(),
                ),
            )
            self.conn.commit()
        except sqlite3.Error as exc:
            raise RepositoryError(f"conversation write failed: {exc}") from exc

    def delete(self, sender_id: str) -> bool:
        """Delete a sender's snapshot. Returns True if a row was deleted."""
        try:
            cur = self.conn.execute(
                "DELETE FROM conversations WHERE sender_id = ?", (sender_id,)
            )
            self.conn.commit()
        except sqlite3.Error as exc:
            raise RepositoryError(f"conversation delete failed: {exc}") from exc
        return cur.rowcount > 0


def _row_to_incident(row: sqlite3.Row) -> StoredIncident:
    coords = None
    if row["longitude"] is not None and row["latitude"] is not None:
        coords = (row["longitude"], row["latitude"])
    return StoredIncident(
        id=row["id"],
        type=row["type"],
        severity=row["severity"],
        location=row["location"],
        description=row["description"],
        timestamp=row["event_timestamp"],
        coordinates=coords,
        from_=row["from_phone"] or "",
        created_at=row["created_at"],
        images=json.loads(row["images"] or "[]"),
        source=row["source"],
    )


class IncidentRepository:
    """Primary incident store."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def ping(self) -> bool:
        try:
            self.conn.execute("SELECT 1 FROM incidents LIMIT 1").fetchall()
        except sqlite3.Error:
            logger.warning("Incident store probe failed", exc_info=True)
            return False
        return True

    def insert(self, record: StoredIncident) -> StoredIncident:
        lon, lat = record.coordinates if record.coordinates else (None, None)
        try:
            self.conn.execute(
                """INSERT INTO incidents
                   (id, type, severity, location, description, event_timestamp,
                    longitude, latitude, from_phone, images, source, created_at)
                   VALUES (?,?,?,?,?,?,?,?,?,?,?,?)
                """,
                (
                    record.id,
                    record.type,
                    record.severity,
                    record.location,
                    record.description,
                    record.timestamp,
                    lon,
                    lat,
                    record.from_,
                    json.dumps(record.images),
                    record.source,
                    record.created_at,
                ),
            )
            self.conn.commit()
        except sqlite3.Error as exc:
            raise RepositoryError(f"incident insert failed: {exc}") from exc
        return record

    def list_recent(self, limit: int = 50) -> list[StoredIncident]:
        try:
            rows = self.conn.execute(
                "SELECT * FROM incidents ORDER BY created_at DESC LIMIT ?",
                (limit,),
            ).fetchall()
        except sqlite3.Error as exc:
            raise RepositoryError(f"incident listing failed: {exc}") from exc
        try:
            return [_row_to_incident(r) for r in rows]
        except (ValueError, ValidationError) as exc:
            raise RepositoryError(f"unreadable incident row: {exc}") from exc


class JsonFileIncidentRepository:
    """Emergency incident store: a single JSON array rewritten on every insert."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def _load(self) -> list[dict]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise RepositoryError(f"cannot read {self.path}: {exc}") from exc
        if not raw.strip():
            return []
        try:
            data = json.loads(raw)
        except ValueError as exc:
            raise RepositoryError(f"{self.path} is not valid JSON: {exc}") from exc
        if not isinstance(data, list):
            raise RepositoryError(f"{self.path} does not hold a JSON array")
        return data

    def insert(self, record: StoredIncident) -> StoredIncident:
        items = self._load()
        items.append(record.model_dump(mode="json", by_alias=True))
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(items, indent=2), encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as exc:
            raise RepositoryError(f"cannot write {self.path}: {exc}") from exc
        return record

    def list_recent(self, limit: int = 50) -> list[StoredIncident]:
        try:
            items = [StoredIncident.model_validate(i) for i in self._load()]
        except ValidationError as exc:
            raise RepositoryError(f"{self.path} holds an invalid incident: {exc}") from exc
        items.sort(key=lambda i: i.created_at, reverse=True)
        return items[:limit]
