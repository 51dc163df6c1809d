# src/ledger/sqlite_store.py - v1
"""SQLite-based ledger store (LEDGER_BACKEND=sqlite).

Uses stdlib sqlite3. The primary key on (project_id, sha256) makes the
database itself enforce at most one completed entry per content hash, and
the claims table provides the conditional insert taken before copying.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone
from pathlib import Path

from slotingest.ledger.base_ledger_store import (
    DEFAULT_CLAIM_TTL_SECONDS,
    BaseLedgerStore,
    DuplicateLedgerEntryError,
)
from slotingest.ledger.models import LedgerEntry

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS ledger_entries (
    project_id TEXT NOT NULL,
    sha256 TEXT NOT NULL,
    slot_id TEXT NOT NULL,
    final_path TEXT NOT NULL,
    filename TEXT NOT NULL,
    size_bytes INTEGER NOT NULL,
    sequence INTEGER NOT NULL,
    completed_at TEXT NOT NULL,
    PRIMARY KEY (project_id, sha256)
);
CREATE TABLE IF NOT EXISTS ledger_claims (
    project_id TEXT NOT NULL,
    sha256 TEXT NOT NULL,
    claimant TEXT NOT NULL,
    claimed_at TEXT NOT NULL,
    PRIMARY KEY (project_id, sha256)
);
CREATE TABLE IF NOT EXISTS slot_sequences (
    slot_id TEXT PRIMARY KEY,
    current_sequence INTEGER NOT NULL DEFAULT 0
);
CREATE INDEX IF NOT EXISTS idx_entries_slot ON ledger_entries(slot_id);
"""

_ENTRY_COLUMNS = (
    "project_id, sha256, slot_id, final_path, filename, size_bytes, sequence, completed_at"
)


class SqliteLedgerStore(BaseLedgerStore):
    """SQLite-backed ledger store."""

    def __init__(
        self, db_path: Path | str, claim_ttl_seconds: int = DEFAULT_CLAIM_TTL_SECONDS,
    ) -> None:
        self._db_path = Path(db_path).expanduser()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._claim_ttl = timedelta(seconds=claim_ttl_seconds)
        self._conn = sqlite3.connect(str(self._db_path), isolation_level=None)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)

    async def query_completed_shas(
        self, project_id: str, shas: Iterable[str],
    ) -> set[str]:
        wanted = list(set(shas))
        found: set[str] = set()
        # Stay below SQLite's bound-parameter limit
        for start in range(0, len(wanted), 500):
            batch = wanted[start : start + 500]
            placeholders = ",".join("?" for _ in batch)
            cursor = self._conn.execute(
                f"SELECT sha256 FROM ledger_entries WHERE project_id = ? "  # noqa: S608
                f"AND sha256 IN ({placeholders})",
                (project_id, *batch),
            )
            found.update(row[0] for row in cursor.fetchall())
        return found

    async def insert_entry(self, entry: LedgerEntry) -> None:
        self._conn.execute("BEGIN IMMEDIATE")
        try:
            self._conn.execute(
                f"INSERT INTO ledger_entries ({_ENTRY_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    entry.project_id,
                    entry.sha256,
                    entry.slot_id,
                    entry.final_path,
                    entry.filename,
                    entry.size_bytes,
                    entry.sequence,
                    entry.completed_at.isoformat(),
                ),
            )
            self._conn.execute(
                "DELETE FROM ledger_claims WHERE project_id = ? AND sha256 = ?",
                (entry.project_id, entry.sha256),
            )
            self._conn.execute("COMMIT")
        except sqlite3.IntegrityError as exc:
            self._conn.execute("ROLLBACK")
            raise DuplicateLedgerEntryError(
                f"Ledger entry already exists for {entry.project_id}/{entry.sha256}"
            ) from exc
        except sqlite3.Error:
            self._conn.execute("ROLLBACK")
            raise

    async def try_claim(self, project_id: str, sha256: str, claimant: str) -> bool:
        now = datetime.now(timezone.utc)
        stale_before = (now - self._claim_ttl).isoformat()
        self._conn.execute("BEGIN IMMEDIATE")
        try:
            row = self._conn.execute(
                "SELECT 1 FROM ledger_entries WHERE project_id = ? AND sha256 = ?",
                (project_id, sha256),
            ).fetchone()
            if row is not None:
                self._conn.execute("COMMIT")
                return False

            self._conn.execute(
                "DELETE FROM ledger_claims WHERE project_id = ? AND sha256 = ? "
                "AND claimant != ? AND claimed_at <= ?",
                (project_id, sha256, claimant, stale_before),
            )
            self._conn.execute(
                "INSERT OR IGNORE INTO ledger_claims (project_id, sha256, claimant, claimed_at) "
                "VALUES (?, ?, ?, ?)",
                (project_id, sha256, claimant, now.isoformat()),
            )
            holder = self._conn.execute(
                "SELECT claimant FROM ledger_claims WHERE project_id = ? AND sha256 = ?",
                (project_id, sha256),
            ).fetchone()
            self._conn.execute("COMMIT")
        except sqlite3.Error:
            self._conn.execute("ROLLBACK")
            raise
        return holder is not None and holder[0] == claimant

    async def release_claim(self, project_id: str, sha256: str, claimant: str) -> None:
        self._conn.execute(
            "DELETE FROM ledger_claims WHERE project_id = ? AND sha256 = ? AND claimant = ?",
            (project_id, sha256, claimant),
        )

    async def get_slot_sequence(self, slot_id: str) -> int:
        row = self._conn.execute(
            "SELECT current_sequence FROM slot_sequences WHERE slot_id = ?", (slot_id,),
        ).fetchone()
        return int(row[0]) if row else 0

    async def advance_slot_sequence(self, slot_id: str, new_max: int) -> int:
        self._conn.execute(
            """INSERT INTO slot_sequences (slot_id, current_sequence) VALUES (?, ?)
               ON CONFLICT(slot_id) DO UPDATE
               SET current_sequence = MAX(current_sequence, excluded.current_sequence)""",
            (slot_id, new_max),
        )
        return await self.get_slot_sequence(slot_id)

    async def list_entries(self, project_id: str) -> list[LedgerEntry]:
        cursor = self._conn.execute(
            f"SELECT {_ENTRY_COLUMNS} FROM ledger_entries WHERE project_id = ? "  # noqa: S608
            "ORDER BY slot_id, sequence",
            (project_id,),
        )
        return [
            LedgerEntry(
                project_id=row[0],
                sha256=row[1],
                slot_id=row[2],
                final_path=row[3],
                filename=row[4],
                size_bytes=row[5],
                sequence=row[6],
                completed_at=datetime.fromisoformat(row[7]),
            )
            for row in cursor.fetchall()
        ]

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
