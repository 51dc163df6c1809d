# src/execution/dry_run.py - v1
"""Dry-run validator: cheap readability and size probe of planned source files.

Never reads file content or recomputes hashes; it only stats each file and
opens/closes a read handle. ``hash_mismatch`` means the size changed since
the scan, which signals an external modification.
"""

from __future__ import annotations

import errno
import logging
from collections.abc import Sequence
from pathlib import Path

from slotingest.execution.filesystem import BaseFileSystem, LocalFileSystem
from slotingest.execution.models import (
    DryRunErrorType,
    DryRunFileResult,
    DryRunRequestItem,
    ExecutionValidation,
    ReadinessIssue,
)
from slotingest.planning.models import RenamePlanItem

logger = logging.getLogger(__name__)


def classify_fs_error(error: BaseException) -> DryRunErrorType:
    """Map an OS error to a dry-run error type."""
    if isinstance(error, FileNotFoundError):
        return "missing"
    if isinstance(error, PermissionError):
        return "permission"
    if isinstance(error, OSError):
        if error.errno == errno.ENOENT:
            return "missing"
        if error.errno in (errno.EACCES, errno.EPERM):
            return "permission"
    return "unreadable"


class DryRunValidator:
    """Probe planned source files without transferring bytes."""

    def __init__(self, filesystem: BaseFileSystem | None = None) -> None:
        self._fs = filesystem or LocalFileSystem()

    async def probe(self, items: Sequence[DryRunRequestItem]) -> list[DryRunFileResult]:
        """Probe every item, in order. One result per item."""
        results = [await self._probe_one(item) for item in items]
        failed = sum(1 for r in results if not r.ok)
        logger.info("Dry run: %d/%d files ok", len(results) - failed, len(results))
        return results

    async def _probe_one(self, item: DryRunRequestItem) -> DryRunFileResult:
        path = Path(item.source_path)
        expected = item.expected_size_bytes
        try:
            st = await self._fs.stat(path)
            if not st.is_file:
                return _failure(item, "unreadable", "Path is not a regular file.")
            if st.size == 0:
                return _failure(item, "zero_byte", "File size is zero bytes.", st.size)
            if st.size != expected:
                return _failure(
                    item, "hash_mismatch",
                    f"Expected {expected} bytes, found {st.size} bytes.", st.size,
                )
            await self._fs.probe_open(path)
        except OSError as exc:
            error_type = classify_fs_error(exc)
            logger.debug("Dry run failed for %s: %s (%s)", path, exc, error_type)
            return _failure(item, error_type, str(exc))

        return DryRunFileResult(
            source_path=item.source_path,
            ok=True,
            expected_size_bytes=expected,
            current_size_bytes=st.size,
        )


def _failure(
    item: DryRunRequestItem,
    error_type: DryRunErrorType,
    message: str,
    current_size: int | None = None,
) -> DryRunFileResult:
    return DryRunFileResult(
        source_path=item.source_path,
        ok=False,
        error_type=error_type,
        message=message,
        expected_size_bytes=item.expected_size_bytes,
        current_size_bytes=current_size,
    )


def requests_for_plan(plan_items: Sequence[RenamePlanItem]) -> list[DryRunRequestItem]:
    return [
        DryRunRequestItem(source_path=i.source_path, expected_size_bytes=i.size_bytes)
        for i in plan_items
    ]


def summarize_readiness(
    plan_items: Sequence[RenamePlanItem],
    results: Sequence[DryRunFileResult],
) -> ExecutionValidation:
    """Attribute dry-run failures to slots and decide execution readiness.

    An empty plan is never ready.
    """
    if not plan_items:
        return ExecutionValidation(
            all_files_readable=False,
            no_critical_errors=False,
            execution_ready=False,
            errors=[ReadinessIssue(
                slot_id="unmapped",
                slot_label="Unmapped",
                source_path="",
                source_filename="",
                error_type="unreadable",
                message="No execution items. Complete folder-to-slot mapping first.",
            )],
        )

    item_by_path = {i.source_path: i for i in plan_items}
    errors: list[ReadinessIssue] = []
    for result in results:
        if result.ok or result.error_type is None:
            continue
        item = item_by_path.get(result.source_path)
        if item is None:
            continue
        errors.append(ReadinessIssue(
            slot_id=item.slot_id,
            slot_label=item.slot_label,
            source_path=item.source_path,
            source_filename=item.source_filename,
            error_type=result.error_type,
            message=result.message or "Dry-run validation error",
        ))

    ok = not errors
    return ExecutionValidation(
        all_files_readable=ok,
        no_critical_errors=ok,
        execution_ready=ok,
        errors=errors,
    )
