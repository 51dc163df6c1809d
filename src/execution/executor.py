# src/execution/executor.py - v1
"""Streaming executor: sequential, fail-fast copy of pending plan items.

A batch is a small state machine over a pending queue, the completed
results and an optional halting error:

    running --step()--> running      item succeeded or was skipped
    running --step()--> halted       item failed or is claimed by another
                                     executor; nothing after it runs
    running --step()--> cancelled    token cancelled before the next item
    running --step()--> completed    queue drained

Per item:
  1. Re-query the ledger for the content hash (skip if completed)
  2. Claim (project_id, sha256) in the ledger (halt if held elsewhere)
  3. Stream-copy into the destination layout
  4. Verify destination size against the planned size
  5. Record exactly one ledger entry

Sequence numbers are contiguous provenance within a slot, so no item may be
recorded after an earlier item of the batch failed or was left to another
claimant. After the batch, every slot with no failed or unattempted item
has its counter advanced to max(existing, batch max).
"""

from __future__ import annotations

import logging
import os
import socket
import uuid
from collections import deque
from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path

from slotingest.core.cancellation import CancellationToken
from slotingest.execution.filesystem import BaseFileSystem, LocalFileSystem
from slotingest.execution.models import BatchState, ExecutionResult, ItemResult
from slotingest.ledger.base_ledger_store import BaseLedgerStore
from slotingest.ledger.models import LedgerEntry
from slotingest.logging.context import slot_scope
from slotingest.logging.logger import log_event
from slotingest.planning.models import RenamePlanItem
from slotingest.scan.hashing import DEFAULT_CHUNK_SIZE
from slotingest.storage.layout import destination_path

logger = logging.getLogger(__name__)


class ExecutionError(Exception):
    """Base error for a failed batch item."""


class IntegrityError(ExecutionError):
    """Destination does not match what was planned (size or content)."""


def make_claimant_id() -> str:
    """Identify this executor instance in ledger claims."""
    return f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"


class ExecutionBatch:
    """One batch run, advanced one item at a time by step()."""

    def __init__(
        self,
        items: Sequence[RenamePlanItem],
        ledger: BaseLedgerStore,
        filesystem: BaseFileSystem,
        project_id: str,
        project_code: str,
        destination_root: Path,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        claimant: str | None = None,
        token: CancellationToken | None = None,
    ) -> None:
        self._pending: deque[RenamePlanItem] = deque(items)
        self._token = token
        self._ledger = ledger
        self._fs = filesystem
        self._project_id = project_id
        self._project_code = project_code
        self._destination_root = Path(destination_root)
        self._chunk_size = chunk_size
        self._claimant = claimant or make_claimant_id()

        self.state: BatchState = "running" if self._pending else "completed"
        self.results: list[ItemResult] = []
        self.failed_item: RenamePlanItem | None = None
        self.error: str | None = None
        self.per_slot_max_sequence: dict[str, int] = {}

    @property
    def pending(self) -> list[RenamePlanItem]:
        return list(self._pending)

    async def step(self) -> BatchState:
        """Process the next pending item and return the new state."""
        if self.state != "running":
            return self.state

        if self._token is not None and self._token.cancelled:
            logger.warning("Execution cancelled with %d items not attempted", len(self._pending))
            self.error = "Execution cancelled by user"
            self.state = "cancelled"
            return self.state

        item = self._pending.popleft()
        with slot_scope(item.slot_id):
            await self._process(item)

        if self.state == "running" and not self._pending:
            self.state = "completed"
        return self.state

    async def run(self) -> BatchState:
        while self.state == "running":
            await self.step()
        return self.state

    async def _process(self, item: RenamePlanItem) -> None:
        try:
            completed = await self._ledger.query_completed_shas(
                self._project_id, {item.sha256},
            )
        except Exception as exc:
            self._halt(item, exc)
            return
        if item.sha256 in completed:
            logger.info("Skipping %s: content already uploaded", item.relative_path)
            self._record(item, "skipped", skip_reason="already_uploaded")
            return

        try:
            claimed = await self._ledger.try_claim(
                self._project_id, item.sha256, self._claimant,
            )
        except Exception as exc:
            self._halt(item, exc)
            return
        if not claimed:
            # Recording later items would leave a gap in this slot's sequence
            self._record(item, "skipped", skip_reason="claimed_elsewhere")
            self._stop(item, "Content is claimed by another executor")
            return

        dest = destination_path(
            self._destination_root, self._project_code,
            item.file_type, item.slot_code, item.planned_filename,
        )
        try:
            await self._transfer(item, dest)
            await self._ledger.insert_entry(LedgerEntry(
                project_id=self._project_id,
                slot_id=item.slot_id,
                sha256=item.sha256,
                final_path=str(dest),
                filename=item.planned_filename,
                size_bytes=item.size_bytes,
                sequence=item.planned_sequence,
                completed_at=datetime.now(timezone.utc),
            ))
        except Exception as exc:
            await self._release_claim(item)
            self._halt(item, exc, dest)
            return

        previous = self.per_slot_max_sequence.get(item.slot_id, 0)
        self.per_slot_max_sequence[item.slot_id] = max(previous, item.planned_sequence)
        log_event(
            logger, logging.INFO, "Uploaded",
            source=item.relative_path, destination=str(dest),
            sequence=item.planned_sequence, sha256=item.sha256,
        )
        self._record(item, "success", destination=dest)

    async def _transfer(self, item: RenamePlanItem, dest: Path) -> None:
        """Copy and verify one file. Removes a destination it wrote on failure."""
        await self._fs.makedirs(dest.parent)

        if await self._fs.exists(dest):
            # Left by an earlier run that copied but did not record the entry
            existing_sha = await self._fs.sha256(dest)
            if existing_sha != item.sha256:
                raise IntegrityError(
                    f"Refusing to overwrite {dest}: it holds different content"
                )
            logger.info("Reusing identical destination file %s", dest)
            wrote = False
        else:
            wrote = True

        try:
            if wrote:
                await self._fs.copy_stream(Path(item.source_path), dest, self._chunk_size)
            actual = (await self._fs.stat(dest)).size
            if actual != item.size_bytes:
                raise IntegrityError(
                    f"Size mismatch for {dest}: expected {item.size_bytes} bytes, "
                    f"wrote {actual} bytes"
                )
        except Exception:
            if wrote:
                await self._fs.remove(dest)
            raise

    async def _release_claim(self, item: RenamePlanItem) -> None:
        try:
            await self._ledger.release_claim(self._project_id, item.sha256, self._claimant)
        except Exception:
            logger.exception("Failed to release claim on %s", item.sha256)

    def _record(
        self,
        item: RenamePlanItem,
        status: str,
        destination: Path | None = None,
        skip_reason: str | None = None,
        error: str | None = None,
    ) -> None:
        self.results.append(ItemResult(
            source_path=item.source_path,
            slot_id=item.slot_id,
            sha256=item.sha256,
            planned_filename=item.planned_filename,
            planned_sequence=item.planned_sequence,
            status=status,  # type: ignore[arg-type]
            destination_path=str(destination) if destination else None,
            skip_reason=skip_reason,  # type: ignore[arg-type]
            error=error,
        ))

    def _halt(self, item: RenamePlanItem, exc: BaseException, dest: Path | None = None) -> None:
        self._record(item, "failed", destination=dest, error=str(exc))
        self._stop(item, str(exc))

    def _stop(self, item: RenamePlanItem, error: str) -> None:
        logger.error(
            "Halting batch at %s: %s (%d items not attempted)",
            item.relative_path, error, len(self._pending),
        )
        self.failed_item = item
        self.error = error
        self.state = "halted"


class StreamingExecutor:
    """Run pending plan items as one fail-fast batch and advance slot counters."""

    def __init__(
        self,
        ledger: BaseLedgerStore,
        project_id: str,
        project_code: str,
        destination_root: Path | str,
        filesystem: BaseFileSystem | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        claimant: str | None = None,
    ) -> None:
        self._ledger = ledger
        self._project_id = project_id
        self._project_code = project_code
        self._destination_root = Path(destination_root)
        self._fs = filesystem or LocalFileSystem()
        self._chunk_size = chunk_size
        self._claimant = claimant

    async def execute(
        self,
        pending_items: Sequence[RenamePlanItem],
        token: CancellationToken | None = None,
    ) -> ExecutionResult:
        """Copy pending items strictly one at a time, in the given order.

        Args:
            pending_items: Items to copy, in plan order.
            token: Checked between items; once cancelled, the remaining
                items are reported as not attempted.

        Returns:
            ExecutionResult; state "halted" with failed_item and error if an
            item failed or is claimed elsewhere, "cancelled" if the token
            fired, otherwise "completed".
        """
        batch = ExecutionBatch(
            pending_items,
            ledger=self._ledger,
            filesystem=self._fs,
            project_id=self._project_id,
            project_code=self._project_code,
            destination_root=self._destination_root,
            chunk_size=self._chunk_size,
            claimant=self._claimant,
            token=token,
        )
        logger.info("Executing batch of %d items", len(pending_items))
        await batch.run()

        not_attempted = batch.pending
        advanced, sequence_errors = await self._advance_sequences(
            pending_items, batch, not_attempted,
        )

        return ExecutionResult(
            state=batch.state,
            results=batch.results,
            failed_item=batch.failed_item,
            error=batch.error,
            not_attempted=not_attempted,
            per_slot_max_sequence=dict(batch.per_slot_max_sequence),
            advanced_slots=advanced,
            sequence_errors=sequence_errors,
        )

    async def _advance_sequences(
        self,
        items: Sequence[RenamePlanItem],
        batch: ExecutionBatch,
        not_attempted: Sequence[RenamePlanItem],
    ) -> tuple[dict[str, int], dict[str, str]]:
        """Advance counters of slots whose every batch item went through."""
        incomplete = {i.slot_id for i in not_attempted}
        if batch.failed_item is not None:
            incomplete.add(batch.failed_item.slot_id)

        advanced: dict[str, int] = {}
        errors: dict[str, str] = {}
        for slot_id in dict.fromkeys(i.slot_id for i in items):
            batch_max = batch.per_slot_max_sequence.get(slot_id)
            if batch_max is None:
                continue
            if slot_id in incomplete:
                logger.warning("Not advancing sequence of slot %s: batch incomplete", slot_id)
                continue
            try:
                advanced[slot_id] = await self._ledger.advance_slot_sequence(slot_id, batch_max)
            except Exception as exc:
                logger.exception("Failed to advance sequence of slot %s", slot_id)
                errors[slot_id] = str(exc)
        return advanced, errors
