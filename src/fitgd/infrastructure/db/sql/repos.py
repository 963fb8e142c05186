from __future__ import annotations

import json
import logging
from typing import List, Optional, Sequence

from sqlalchemy import text

from fitgd.domain.models.command import CommandHistoryEntry, Snapshot
from fitgd.domain.repositories import HistoryRepository, SnapshotRepository

from .connection import SessionLocal

logger = logging.getLogger(__name__)


def _dialect(session) -> str:
    return session.bind.dialect.name if session.bind is not None else "sqlite"


def ensure_schema() -> None:
    with SessionLocal.begin() as session:
        if _dialect(session) == "mysql":
            key = "BIGINT PRIMARY KEY AUTO_INCREMENT"
            text_type = "LONGTEXT"
        else:
            key = "INTEGER PRIMARY KEY AUTOINCREMENT"
            text_type = "TEXT"
        session.execute(
            text(
                f"""
                CREATE TABLE IF NOT EXISTS command_history (
                    seq {key},
                    command_id VARCHAR(64) NOT NULL UNIQUE,
                    command_type VARCHAR(64) NOT NULL,
                    payload_json {text_type} NOT NULL,
                    created_at DOUBLE PRECISION NOT NULL,
                    user_id VARCHAR(64),
                    version INTEGER NOT NULL
                )
                """
            )
        )
        session.execute(
            text(
                f"""
                CREATE TABLE IF NOT EXISTS state_snapshot (
                    snapshot_id {key},
                    created_at DOUBLE PRECISION NOT NULL,
                    last_command_id VARCHAR(64),
                    version INTEGER NOT NULL,
                    state_json {text_type} NOT NULL
                )
                """
            )
        )


def _row_to_entry(row) -> CommandHistoryEntry:
    return CommandHistoryEntry(
        command_id=str(row.command_id),
        type=str(row.command_type),
        payload=json.loads(row.payload_json or "{}"),
        timestamp=float(row.created_at or 0.0),
        user_id=row.user_id,
        version=int(row.version or 1),
    )


_INSERT_ENTRY = text(
    """
    INSERT INTO command_history (command_id, command_type, payload_json, created_at, user_id, version)
    VALUES (:command_id, :command_type, :payload_json, :created_at, :user_id, :version)
    """
)


def _entry_params(entry: CommandHistoryEntry) -> dict:
    return {
        "command_id": entry.command_id,
        "command_type": entry.type,
        "payload_json": json.dumps(entry.payload, sort_keys=True),
        "created_at": float(entry.timestamp),
        "user_id": entry.user_id,
        "version": int(entry.version),
    }


class SqlHistoryRepository(HistoryRepository):
    def append(self, entries: Sequence[CommandHistoryEntry]) -> None:
        if not entries:
            return
        with SessionLocal.begin() as session:
            for entry in entries:
                session.execute(_INSERT_ENTRY, _entry_params(entry))

    def list_all(self) -> List[CommandHistoryEntry]:
        with SessionLocal() as session:
            rows = session.execute(
                text(
                    """
                    SELECT command_id, command_type, payload_json, created_at, user_id, version
                    FROM command_history
                    ORDER BY seq
                    """
                )
            ).all()
        return [_row_to_entry(row) for row in rows]

    def replace_all(self, entries: Sequence[CommandHistoryEntry]) -> None:
        with SessionLocal.begin() as session:
            session.execute(text("DELETE FROM command_history"))
            for entry in entries:
                session.execute(_INSERT_ENTRY, _entry_params(entry))
        logger.debug("Command history replaced", extra={"entry_count": len(entries)})

    def count(self) -> int:
        with SessionLocal() as session:
            return int(session.execute(text("SELECT COUNT(*) FROM command_history")).scalar() or 0)


class SqlSnapshotRepository(SnapshotRepository):
    def save(self, snapshot: Snapshot) -> None:
        with SessionLocal.begin() as session:
            session.execute(
                text(
                    """
                    INSERT INTO state_snapshot (created_at, last_command_id, version, state_json)
                    VALUES (:created_at, :last_command_id, :version, :state_json)
                    """
                ),
                {
                    "created_at": float(snapshot.timestamp),
                    "last_command_id": snapshot.last_command_id,
                    "version": int(snapshot.version),
                    "state_json": json.dumps(snapshot.state, sort_keys=True),
                },
            )

    def latest(self) -> Optional[Snapshot]:
        with SessionLocal() as session:
            row = session.execute(
                text(
                    """
                    SELECT created_at, last_command_id, version, state_json
                    FROM state_snapshot
                    ORDER BY snapshot_id DESC
                    LIMIT 1
                    """
                )
            ).first()
        if row is None:
            return None
        return Snapshot(
            timestamp=float(row.created_at or 0.0),
            state=json.loads(row.state_json or "{}"),
            version=int(row.version or 1),
            last_command_id=row.last_command_id,
        )
