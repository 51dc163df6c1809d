# src/ledger/json_store.py - v1
"""JSON file-based ledger store (default LEDGER_BACKEND=json).

Layout under LEDGER_ROOT::

    projects/{project_id}/entries/{sha256}.json
    projects/{project_id}/claims/{sha256}/{generation:08d}.json
    slots/{slot_id}.json

Entries are created with exclusive file creation, so the filesystem
enforces one entry per (project_id, sha256). Claims are numbered
generations: the highest generation is the current claim, and taking a
claim means publishing the next generation with os.link, which fails if
another executor published it first. A released claim is renamed to
``{generation:08d}.released`` so generations keep counting up while the
content is pending.
"""

from __future__ import annotations

import json
import logging
import os
import re
import uuid
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import NamedTuple

from pydantic import ValidationError

from slotingest.ledger.base_ledger_store import (
    DEFAULT_CLAIM_TTL_SECONDS,
    BaseLedgerStore,
    DuplicateLedgerEntryError,
)
from slotingest.ledger.models import LedgerClaim, LedgerEntry

logger = logging.getLogger(__name__)

_GENERATION_RE = re.compile(r"^(\d+)\.(json|released)$")


class ClaimSlot(NamedTuple):
    """Highest claim generation found on disk for one content hash."""

    generation: int
    path: Path
    released: bool


class JsonLedgerStore(BaseLedgerStore):
    """File-based ledger using one JSON document per entry."""

    def __init__(
        self, ledger_root: Path | str, claim_ttl_seconds: int = DEFAULT_CLAIM_TTL_SECONDS,
    ) -> None:
        self._root = Path(ledger_root).expanduser()
        self._root.mkdir(parents=True, exist_ok=True)
        self._claim_ttl = timedelta(seconds=claim_ttl_seconds)

    async def query_completed_shas(
        self, project_id: str, shas: Iterable[str],
    ) -> set[str]:
        return {sha for sha in set(shas) if self._entry_path(project_id, sha).exists()}

    async def insert_entry(self, entry: LedgerEntry) -> None:
        path = self._entry_path(entry.project_id, entry.sha256)
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with path.open("x", encoding="utf-8") as fh:
                fh.write(entry.model_dump_json(indent=2))
        except FileExistsError as exc:
            raise DuplicateLedgerEntryError(
                f"Ledger entry already exists for {entry.project_id}/{entry.sha256}"
            ) from exc
        self._prune_claims(self._claim_dir(entry.project_id, entry.sha256))

    async def try_claim(self, project_id: str, sha256: str, claimant: str) -> bool:
        if self._entry_path(project_id, sha256).exists():
            return False

        claim_dir = self._claim_dir(project_id, sha256)
        claim_dir.mkdir(parents=True, exist_ok=True)
        now = datetime.now(timezone.utc)

        current = self._current_claim(claim_dir)
        if current is None:
            generation = 1
        elif current.released:
            generation = current.generation + 1
        else:
            existing = self._read_claim(current.path)
            if existing is not None and existing.claimant == claimant:
                return True
            if not self._is_stale(current.path, existing, now):
                return False
            logger.warning(
                "Taking over stale claim on %s/%s held by %s",
                project_id, sha256, existing.claimant if existing else "<unreadable>",
            )
            generation = current.generation + 1

        claim = LedgerClaim(
            project_id=project_id, sha256=sha256, claimant=claimant, claimed_at=now,
        )
        path = claim_dir / f"{generation:08d}.json"
        if not self._publish(path, claim.model_dump_json()):
            # Another executor took this generation first
            return False
        self._prune_claims(claim_dir, below=generation)

        if self._entry_path(project_id, sha256).exists():
            # Completed between the entry check and the claim
            path.unlink(missing_ok=True)
            return False
        return True

    async def release_claim(self, project_id: str, sha256: str, claimant: str) -> None:
        current = self._current_claim(self._claim_dir(project_id, sha256))
        if current is None or current.released:
            return
        existing = self._read_claim(current.path)
        if existing is None or existing.claimant != claimant:
            return
        try:
            os.replace(current.path, current.path.with_suffix(".released"))
        except FileNotFoundError:
            pass

    async def get_slot_sequence(self, slot_id: str) -> int:
        path = self._slot_path(slot_id)
        if not path.exists():
            return 0
        data = json.loads(path.read_text(encoding="utf-8"))
        return int(data.get("current_sequence", 0))

    async def advance_slot_sequence(self, slot_id: str, new_max: int) -> int:
        # Read-modify-write; only ever increases the stored value
        current = await self.get_slot_sequence(slot_id)
        value = max(current, new_max)
        if value != current:
            path = self._slot_path(slot_id)
            path.parent.mkdir(parents=True, exist_ok=True)
            self._write_atomic(
                path, json.dumps({"slot_id": slot_id, "current_sequence": value}),
            )
        return value

    async def list_entries(self, project_id: str) -> list[LedgerEntry]:
        entries_dir = self._project_dir(project_id) / "entries"
        entries: list[LedgerEntry] = []
        if not entries_dir.is_dir():
            return entries
        for path in sorted(entries_dir.glob("*.json")):
            try:
                entries.append(LedgerEntry.model_validate_json(path.read_text(encoding="utf-8")))
            except ValidationError as e:
                logger.warning("Skipping malformed ledger entry %s: %s", path, e)
        return entries

    # --- claims ---

    @staticmethod
    def _current_claim(claim_dir: Path) -> ClaimSlot | None:
        best: ClaimSlot | None = None
        if not claim_dir.is_dir():
            return None
        for child in claim_dir.iterdir():
            match = _GENERATION_RE.match(child.name)
            if match is None:
                continue
            slot = ClaimSlot(int(match.group(1)), child, match.group(2) == "released")
            if best is None or slot.generation > best.generation:
                best = slot
        return best

    def _is_stale(self, path: Path, claim: LedgerClaim | None, now: datetime) -> bool:
        if claim is not None:
            return now - claim.claimed_at >= self._claim_ttl
        # Unreadable claim: age it by the file itself
        try:
            written = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
        except FileNotFoundError:
            return True
        return now - written >= self._claim_ttl

    @staticmethod
    def _publish(path: Path, text: str) -> bool:
        """Create path with text, or return False if it already exists.

        The claim is written to a private temp file first, so a published
        claim is never partially written.
        """
        tmp = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
        tmp.write_text(text, encoding="utf-8")
        try:
            os.link(tmp, path)
            return True
        except FileExistsError:
            return False
        finally:
            tmp.unlink(missing_ok=True)

    @staticmethod
    def _prune_claims(claim_dir: Path, below: int | None = None) -> None:
        if not claim_dir.is_dir():
            return
        for child in claim_dir.iterdir():
            match = _GENERATION_RE.match(child.name)
            if match is None:
                continue
            if below is None or int(match.group(1)) < below:
                child.unlink(missing_ok=True)

    def _read_claim(self, path: Path) -> LedgerClaim | None:
        try:
            return LedgerClaim.model_validate_json(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except ValidationError as e:
            logger.warning("Ignoring malformed claim %s: %s", path, e)
            return None

    @staticmethod
    def _write_atomic(path: Path, text: str) -> None:
        tmp = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
        tmp.write_text(text, encoding="utf-8")
        os.replace(tmp, path)

    # --- paths ---

    def _project_dir(self, project_id: str) -> Path:
        return self._root / "projects" / _safe_key(project_id)

    def _entry_path(self, project_id: str, sha256: str) -> Path:
        return self._project_dir(project_id) / "entries" / f"{_safe_key(sha256)}.json"

    def _claim_dir(self, project_id: str, sha256: str) -> Path:
        return self._project_dir(project_id) / "claims" / _safe_key(sha256)

    def _slot_path(self, slot_id: str) -> Path:
        return self._root / "slots" / f"{_safe_key(slot_id)}.json"


def _safe_key(key: str) -> str:
    return key.replace("/", "_").replace("\\", "_")
