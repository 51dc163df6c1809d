# src/main.py - v1
"""CLI entry point: scan, plan, dry-run, preflight, execute, verify, run.

Usage:
    slotingest scan <directory> [--json]
    slotingest plan <job.json> [--json]
    slotingest dry-run <job.json>
    slotingest preflight <job.json>
    slotingest execute <job.json>
    slotingest verify <job.json>
    slotingest run <job.json>

Every job command rescans the source root: plans are never persisted, they
are recomputed deterministically on each invocation.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys
from pathlib import Path

from slotingest.version import __version__

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return EXIT_ERROR

    try:
        _setup_logging(args.verbose)
        return asyncio.run(args.func(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return EXIT_INTERRUPTED
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return EXIT_ERROR


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="slotingest",
        description=f"slotingest v{__version__}: resumable media ingestion into project slots",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    p_scan = subparsers.add_parser("scan", help="Scan and hash a source directory")
    p_scan.add_argument("directory", type=Path, help="Directory to scan")
    p_scan.add_argument("--json", action="store_true", help="Print the full result as JSON")
    p_scan.set_defaults(func=_cmd_scan)

    job_commands = {
        "plan": ("Build and validate the rename plan", _cmd_plan),
        "dry-run": ("Probe planned source files without copying", _cmd_dry_run),
        "preflight": ("Classify planned files against the ledger", _cmd_preflight),
        "execute": ("Copy pending files and record them in the ledger", _cmd_execute),
        "verify": ("Audit ledger entries against the destination", _cmd_verify),
        "run": ("Scan, plan, dry-run, preflight and execute in one go", _cmd_run),
    }
    for name, (help_text, func) in job_commands.items():
        p = subparsers.add_parser(name, help=help_text)
        p.add_argument("job", type=Path, help="Path to the ingestion job JSON file")
        p.add_argument("--json", action="store_true", help="Print the full result as JSON")
        p.set_defaults(func=func)

    return parser


async def _cmd_scan(args: argparse.Namespace) -> int:
    """Scan a directory and print its folder groups."""
    settings = _load_settings()
    scan = await _scan_with_interrupt(args.directory, settings)
    if args.json:
        print(scan.model_dump_json(indent=2))
        return _scan_exit_code(scan)
    if not scan.success:
        print(f"Scan {scan.status}: {scan.error}")
        return _scan_exit_code(scan)

    print(f"\nScan complete: {scan.root_path}")
    print(f"  Files:    {scan.total_files}")
    print(f"  Bytes:    {_format_bytes(scan.total_bytes)}")
    print(f"  Skipped:  {len(scan.skipped)}")
    for group in scan.folder_groups:
        tc = group.type_counts
        print(
            f"  {group.relative_path:40s} {group.file_count:6d} files "
            f"{_format_bytes(group.total_bytes):>10s}  "
            f"img={tc.image} vid={tc.video} other={tc.other}"
        )
    return EXIT_OK


async def _cmd_plan(args: argparse.Namespace) -> int:
    """Print the rename plan and its validation findings."""
    from slotingest.api.facade import plan_ingestion

    job, settings = _load_job(args.job)
    scan = await _scan_with_interrupt(job.source_root, settings)
    if not scan.success:
        print(f"Scan {scan.status}: {scan.error}")
        return _scan_exit_code(scan)

    plan = plan_ingestion(job, scan, settings)
    if args.json:
        print(plan.model_dump_json(indent=2))
        return EXIT_OK if plan.is_ready else EXIT_ERROR

    print(f"\nMapped folders: {plan.mapped_folder_count}/{plan.total_folder_count}")
    for folder in plan.unmapped_folders:
        print(f"  unmapped: {folder}")
    for item in plan.rename_plan:
        print(f"  [{item.slot_code}] {item.relative_path} -> {item.planned_filename}")
    _print_validation(plan)
    return EXIT_OK if plan.is_ready else EXIT_ERROR


async def _cmd_dry_run(args: argparse.Namespace) -> int:
    """Probe planned files and print readiness."""
    from slotingest.api.facade import dry_run_plan, plan_ingestion

    job, settings = _load_job(args.job)
    scan = await _scan_with_interrupt(job.source_root, settings)
    if not scan.success:
        print(f"Scan {scan.status}: {scan.error}")
        return _scan_exit_code(scan)

    plan = plan_ingestion(job, scan, settings)
    _, readiness = await dry_run_plan(plan)
    if args.json:
        print(readiness.model_dump_json(indent=2))
    else:
        print(f"\nExecution ready: {readiness.execution_ready}")
        for issue in readiness.errors:
            print(f"  [{issue.slot_label}] {issue.source_filename}: "
                  f"{issue.error_type} ({issue.message})")
    return EXIT_OK if readiness.execution_ready and plan.is_ready else EXIT_ERROR


async def _cmd_preflight(args: argparse.Namespace) -> int:
    """Print the resume-aware classification of the plan."""
    from slotingest.api.facade import dry_run_plan, plan_ingestion, preflight_plan
    from slotingest.ledger.ledger_factory import create_ledger_store

    job, settings = _load_job(args.job)
    scan = await _scan_with_interrupt(job.source_root, settings)
    if not scan.success:
        print(f"Scan {scan.status}: {scan.error}")
        return _scan_exit_code(scan)

    plan = plan_ingestion(job, scan, settings)
    results, _ = await dry_run_plan(plan)
    ledger = create_ledger_store(settings)
    try:
        preflight = await preflight_plan(job.project_id, plan, ledger, results)
    finally:
        ledger.close()

    if args.json:
        print(preflight.model_dump_json(indent=2))
    else:
        _print_preflight(preflight)
    return EXIT_OK if preflight.is_executable else EXIT_ERROR


async def _cmd_execute(args: argparse.Namespace) -> int:
    """Run preflight then execute the pending items."""
    return await _cmd_run(args)


async def _cmd_run(args: argparse.Namespace) -> int:
    """Full pipeline for one job."""
    from slotingest.api.facade import run_ingestion
    from slotingest.core.cancellation import CancellationToken
    from slotingest.ledger.ledger_factory import create_ledger_store

    job, settings = _load_job(args.job)
    token = CancellationToken()
    ledger = create_ledger_store(settings)
    try:
        with _cancel_on_sigint(token):
            report = await run_ingestion(job, ledger, settings, token=token)
    finally:
        ledger.close()

    if args.json:
        print(report.model_dump_json(indent=2))
        return EXIT_OK if report.success else EXIT_ERROR

    if report.plan is not None:
        _print_validation(report.plan)
    if report.preflight is not None:
        _print_preflight(report.preflight)
    if report.execution is not None:
        ex = report.execution
        print(f"\nExecution {ex.state}:")
        print(f"  Uploaded:       {ex.uploaded_count}")
        print(f"  Skipped:        {ex.skipped_count}")
        print(f"  Not attempted:  {len(ex.not_attempted)}")
        if ex.failed_item is not None:
            print(f"  Failed:         {ex.failed_item.relative_path}: {ex.error}")
        for slot_id, value in ex.advanced_slots.items():
            print(f"  Slot {slot_id} sequence -> {value}")
    if report.stopped_reason:
        print(f"\nStopped: {report.stopped_reason}")
    if report.scan.status == "cancelled":
        return EXIT_INTERRUPTED
    if report.execution is not None and report.execution.state == "cancelled":
        return EXIT_INTERRUPTED
    return EXIT_OK if report.success else EXIT_ERROR


async def _cmd_verify(args: argparse.Namespace) -> int:
    """Audit ledger entries of the job's project."""
    from slotingest.api.facade import verify_project
    from slotingest.ledger.ledger_factory import create_ledger_store

    job, settings = _load_job(args.job)
    ledger = create_ledger_store(settings)
    try:
        summary = await verify_project(job.project_id, ledger)
    finally:
        ledger.close()

    if args.json:
        print(summary.model_dump_json(indent=2))
    else:
        print(f"\nVerified {summary.checked} entries: "
              f"{summary.valid} valid, {summary.invalid} invalid")
        for detail in summary.details:
            if not detail.valid:
                print(f"  {detail.final_path}: {detail.message}")
    return EXIT_OK if summary.all_valid else EXIT_ERROR


# --- helpers ---


def _load_settings():
    from slotingest.config.settings import load_settings

    return load_settings()


def _load_job(path: Path):
    from slotingest.api.models import IngestionJob

    settings = _load_settings()
    return IngestionJob.from_file(path), settings


async def _scan_with_interrupt(directory: Path, settings):
    from slotingest.api.facade import scan_source
    from slotingest.core.cancellation import CancellationToken

    token = CancellationToken()
    with _cancel_on_sigint(token):
        return await scan_source(directory, settings, token)


@contextlib.contextmanager
def _cancel_on_sigint(token):
    """Turn Ctrl-C into a cooperative cancel while the block runs."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, token.cancel)
    except (NotImplementedError, RuntimeError):
        # Windows event loops have no signal handler support
        yield
        return
    try:
        yield
    finally:
        loop.remove_signal_handler(signal.SIGINT)


def _scan_exit_code(scan) -> int:
    if scan.status == "cancelled":
        return EXIT_INTERRUPTED
    return EXIT_OK if scan.success else EXIT_ERROR


def _print_validation(plan) -> None:
    v = plan.validation
    for c in v.rename_collisions:
        print(f"  ERROR collision {c.planned_filename!r}: {', '.join(c.source_paths)}")
    for n in v.invalid_names:
        print(f"  ERROR invalid name {n.planned_filename!r} ({n.source_path}): {n.reason}")
    for label in v.empty_slots:
        print(f"  warning: slot {label!r} has no files")
    for d in v.duplicate_hashes:
        print(f"  warning: duplicate content {d.sha256[:12]}... across {', '.join(d.paths)}")
    for message in v.file_type_mismatches:
        print(f"  warning: {message}")


def _print_preflight(preflight) -> None:
    print("\nPreflight:")
    print(f"  Already uploaded: {len(preflight.already_uploaded)}")
    print(f"  Pending:          {len(preflight.pending)}")
    print(f"  Blocked:          {len(preflight.blocked)}")
    for s in preflight.per_slot_summary:
        print(f"  [{s.slot_label}] {s.status}: {s.already_uploaded} done, "
              f"{s.pending} pending, {s.blocked} blocked")
    for b in preflight.blocked:
        print(f"  blocked: {b.item.relative_path} ({b.error_type}: {b.message})")


def _format_bytes(n: int) -> str:
    if n < 1024:
        return f"{n} B"
    if n < 1024**2:
        return f"{n / 1024:.1f} KB"
    if n < 1024**3:
        return f"{n / 1024**2:.1f} MB"
    return f"{n / 1024**3:.2f} GB"


def _setup_logging(verbose: bool) -> None:
    """Configure logging for CLI usage from settings; -v forces DEBUG."""
    from slotingest.logging.logger import setup_logging

    settings = _load_settings()
    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )


if __name__ == "__main__":
    sys.exit(main())
