# src/api/facade.py - v1
"""Public API facade: one entry point per ingestion stage plus the full run.

Usage:
    from slotingest.api.facade import run_ingestion
    report = await run_ingestion(job, ledger=ledger)

Stages can also be driven one by one (the CLI does this):
scan_source -> plan_ingestion -> dry_run_plan -> preflight_plan ->
execute_pending -> verify_project.
"""

from __future__ import annotations

import logging
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from slotingest.api.models import IngestionJob, IngestionReport
from slotingest.config.settings import Settings
from slotingest.execution.dry_run import DryRunValidator, requests_for_plan, summarize_readiness
from slotingest.execution.executor import StreamingExecutor
from slotingest.execution.preflight import ResumePreflightEngine
from slotingest.logging.context import set_run_context, set_step_context
from slotingest.planning.builder import IngestionPlanBuilder
from slotingest.scan.models import ScanOptions
from slotingest.scan.scanner import DirectoryScanner
from slotingest.verification.verifier import VerificationEngine

if TYPE_CHECKING:
    from slotingest.core.cancellation import CancellationToken
    from slotingest.execution.filesystem import BaseFileSystem
    from slotingest.execution.models import (
        DryRunFileResult,
        ExecutionPreflight,
        ExecutionResult,
        ExecutionValidation,
    )
    from slotingest.ledger.base_ledger_store import BaseLedgerStore
    from slotingest.planning.models import IngestionPlan
    from slotingest.scan.models import ScanResult
    from slotingest.verification.models import VerificationSummary

logger = logging.getLogger(__name__)


class NotReadyError(Exception):
    """Raised when execution is requested for a plan that is not ready."""


async def scan_source(
    source_root: Path,
    settings: Settings | None = None,
    token: CancellationToken | None = None,
) -> ScanResult:
    """Scan and hash the source directory."""
    settings = settings or Settings()
    set_step_context("scan")
    scanner = DirectoryScanner(
        options=ScanOptions(
            ignore_hidden=settings.scan_ignore_hidden,
            ignore_system_files=settings.scan_ignore_system_files,
        ),
        chunk_size=settings.hash_chunk_size,
    )
    return await scanner.scan(source_root, token)


def plan_ingestion(
    job: IngestionJob,
    scan: ScanResult,
    settings: Settings | None = None,
) -> IngestionPlan:
    """Build the rename plan for a completed scan.

    Raises:
        NotReadyError: If the scan did not complete.
    """
    if not scan.success:
        raise NotReadyError(f"Cannot plan from a {scan.status} scan")
    settings = settings or Settings()
    set_step_context("plan")
    builder = IngestionPlanBuilder(
        project_code=job.project_code,
        default_padding=settings.default_sequence_padding,
    )
    return builder.build_plan(
        scan.folder_groups,
        scan.files,
        job.folder_assignments,
        job.slots,
        naming_overrides=job.naming_overrides,
        selected_slot_id=job.selected_slot_id,
    )


async def dry_run_plan(
    plan: IngestionPlan,
    filesystem: BaseFileSystem | None = None,
) -> tuple[list[DryRunFileResult], ExecutionValidation]:
    """Probe every planned source file and summarize readiness."""
    set_step_context("dry_run")
    validator = DryRunValidator(filesystem)
    results = await validator.probe(requests_for_plan(plan.rename_plan))
    return results, summarize_readiness(plan.rename_plan, results)


async def preflight_plan(
    project_id: str,
    plan: IngestionPlan,
    ledger: BaseLedgerStore,
    dry_run_results: list[DryRunFileResult],
) -> ExecutionPreflight:
    """Classify plan items against the ledger's completed set."""
    set_step_context("preflight")
    completed = await ledger.query_completed_shas(
        project_id, {item.sha256 for item in plan.rename_plan},
    )
    return ResumePreflightEngine().preflight(plan.rename_plan, completed, dry_run_results)


async def execute_pending(
    job: IngestionJob,
    plan: IngestionPlan,
    preflight: ExecutionPreflight,
    ledger: BaseLedgerStore,
    settings: Settings | None = None,
    filesystem: BaseFileSystem | None = None,
    token: CancellationToken | None = None,
) -> ExecutionResult:
    """Stream the pending items of a ready plan.

    Raises:
        NotReadyError: If the plan has blocking validation errors, preflight
            found blocked items, or the destination root is missing or not
            a readable and writable directory.
    """
    settings = settings or Settings()
    if plan.validation.has_blocking_errors:
        raise NotReadyError("Plan has rename collisions or invalid names")
    if not preflight.is_executable:
        raise NotReadyError(f"{len(preflight.blocked)} planned files are missing or unreadable")

    destination_root = job.destination_root or settings.destination_root
    if destination_root is None:
        raise NotReadyError("No destination root configured")
    root = validate_destination_root(destination_root)

    set_step_context("execute")
    executor = StreamingExecutor(
        ledger=ledger,
        project_id=job.project_id,
        project_code=job.project_code,
        destination_root=root,
        filesystem=filesystem,
        chunk_size=settings.copy_chunk_size,
    )
    return await executor.execute(preflight.pending_items, token)


async def verify_project(
    project_id: str,
    ledger: BaseLedgerStore,
    filesystem: BaseFileSystem | None = None,
) -> VerificationSummary:
    """Audit every ledger entry of a project against the filesystem."""
    set_step_context("verify")
    entries = await ledger.list_entries(project_id)
    return await VerificationEngine(filesystem).verify(entries)


async def run_ingestion(
    job: IngestionJob,
    ledger: BaseLedgerStore,
    settings: Settings | None = None,
    token: CancellationToken | None = None,
    filesystem: BaseFileSystem | None = None,
) -> IngestionReport:
    """Run scan, plan, dry run, preflight and execution for one job.

    Stops at the first stage that is not ready and reports why; never
    raises for a blocked plan.
    """
    settings = settings or Settings()
    run_id = _generate_run_id()
    set_run_context(job.project_id, run_id)
    logger.info("Starting ingestion run %s for project %s", run_id, job.project_id)

    scan = await scan_source(job.source_root, settings, token)
    report = IngestionReport(run_id=run_id, project_id=job.project_id, scan=scan)
    if not scan.success:
        report.stopped_reason = f"Scan {scan.status}: {scan.error}"
        return report

    report.plan = plan_ingestion(job, scan, settings)
    if not report.plan.is_ready:
        report.stopped_reason = "Plan is empty or has blocking validation errors"
        return report

    report.dry_run, report.readiness = await dry_run_plan(report.plan, filesystem)
    report.preflight = await preflight_plan(
        job.project_id, report.plan, ledger, report.dry_run,
    )
    if not report.preflight.is_executable:
        report.stopped_reason = "Preflight found missing or unreadable files"
        return report

    try:
        report.execution = await execute_pending(
            job, report.plan, report.preflight, ledger, settings, filesystem, token,
        )
    except NotReadyError as exc:
        report.stopped_reason = str(exc)
        return report
    if not report.execution.success:
        report.stopped_reason = (
            f"Execution {report.execution.state}: {report.execution.error}"
        )
    return report


def validate_destination_root(path: Path | str) -> Path:
    """Check that the destination root is an existing readable and writable directory.

    A mistyped or unmounted drive must not be silently created.

    Raises:
        NotReadyError: If the path does not qualify.
    """
    root = Path(path).expanduser()
    if not root.exists():
        raise NotReadyError(f"Destination root does not exist: {root}")
    if not root.is_dir():
        raise NotReadyError(f"Destination root is not a directory: {root}")
    if not os.access(root, os.R_OK | os.W_OK):
        raise NotReadyError(f"Destination root is not readable and writable: {root}")
    return root


def _generate_run_id() -> str:
    """Generate run ID: {yyyymmdd_hhmmss}_{uuid_short}."""
    now = datetime.now(timezone.utc)
    return f"{now.strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:5]}"
