# src/verification/verifier.py - v1
"""Verification engine: audit ledger entries against the live filesystem.

Detects drift (external deletion, rename, truncation) by re-statting each
recorded destination. File contents are never read.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from slotingest.execution.filesystem import BaseFileSystem, LocalFileSystem
from slotingest.ledger.models import LedgerEntry
from slotingest.verification.models import VerificationDetail, VerificationSummary

logger = logging.getLogger(__name__)


class VerificationEngine:
    """Check that every recorded upload is still where the ledger says it is."""

    def __init__(self, filesystem: BaseFileSystem | None = None) -> None:
        self._fs = filesystem or LocalFileSystem()

    async def verify(self, entries: Sequence[LedgerEntry]) -> VerificationSummary:
        summary = VerificationSummary()
        for entry in entries:
            detail = await self._check(entry)
            summary.details.append(detail)
            summary.checked += 1
            if detail.valid:
                summary.valid += 1
            else:
                summary.invalid += 1
                logger.warning("Ledger drift for %s: %s", entry.final_path, detail.message)

        logger.info(
            "Verified %d ledger entries: %d valid, %d invalid",
            summary.checked, summary.valid, summary.invalid,
        )
        return summary

    async def _check(self, entry: LedgerEntry) -> VerificationDetail:
        path = Path(entry.final_path)
        filename_matches = path.name == entry.filename

        try:
            st = await self._fs.stat(path)
        except FileNotFoundError:
            return self._detail(entry, False, filename_matches, False, None, "File not found.")
        except OSError as exc:
            return self._detail(entry, False, filename_matches, False, None, str(exc))

        if not st.is_file:
            return self._detail(
                entry, False, filename_matches, False, None, "Path is not a regular file.",
            )

        size_matches = st.size == entry.size_bytes
        message = None
        if not filename_matches:
            message = f"Filename {path.name!r} does not match recorded {entry.filename!r}."
        elif not size_matches:
            message = f"Expected {entry.size_bytes} bytes, found {st.size} bytes."
        return self._detail(entry, True, filename_matches, size_matches, st.size, message)

    @staticmethod
    def _detail(
        entry: LedgerEntry,
        exists: bool,
        filename_matches: bool,
        size_matches: bool,
        actual_size: int | None,
        message: str | None,
    ) -> VerificationDetail:
        return VerificationDetail(
            sha256=entry.sha256,
            slot_id=entry.slot_id,
            final_path=entry.final_path,
            exists=exists,
            filename_matches=filename_matches,
            size_matches=size_matches,
            expected_size_bytes=entry.size_bytes,
            actual_size_bytes=actual_size,
            valid=exists and filename_matches and size_matches,
            message=message,
        )
