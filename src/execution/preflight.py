# src/execution/preflight.py - v1
"""Resume preflight: classify plan items against the ledger and the dry run.

Dedup is content-addressed: an item whose sha256 is already completed for
the project is ``already_uploaded`` whatever its current path or slot.
Re-running preflight after a crash recomputes exactly the remaining work.
"""

from __future__ import annotations

import logging
from collections.abc import Collection, Sequence

from slotingest.execution.models import (
    DryRunFileResult,
    ExecutionPreflight,
    PreflightItem,
    SlotPreflightSummary,
)
from slotingest.planning.models import RenamePlanItem

logger = logging.getLogger(__name__)


class ResumePreflightEngine:
    """Split a rename plan into already-uploaded, pending and blocked items."""

    def preflight(
        self,
        plan_items: Sequence[RenamePlanItem],
        completed_shas: Collection[str],
        dry_run_results: Sequence[DryRunFileResult],
    ) -> ExecutionPreflight:
        """Classify every plan item.

        Args:
            plan_items: Rename plan, in plan order.
            completed_shas: sha256 values already completed for the project.
            dry_run_results: Probe results keyed by source path. An item
                without a result counts as unreadable.

        Returns:
            ExecutionPreflight with per-slot summaries in first-seen slot order.
        """
        probe_by_path = {r.source_path: r for r in dry_run_results}
        preflight = ExecutionPreflight()
        summaries: dict[str, SlotPreflightSummary] = {}

        for item in plan_items:
            summary = summaries.get(item.slot_id)
            if summary is None:
                summary = SlotPreflightSummary(slot_id=item.slot_id, slot_label=item.slot_label)
                summaries[item.slot_id] = summary
            summary.total += 1

            if item.sha256 in completed_shas:
                preflight.already_uploaded.append(
                    PreflightItem(item=item, status="already_uploaded")
                )
                summary.already_uploaded += 1
                continue

            probe = probe_by_path.get(item.source_path)
            if probe is not None and probe.ok:
                preflight.pending.append(PreflightItem(item=item, status="pending_upload"))
                summary.pending += 1
                continue

            preflight.blocked.append(PreflightItem(
                item=item,
                status="missing_unreadable",
                error_type=probe.error_type if probe else "unreadable",
                message=probe.message if probe else "No dry-run result for this file.",
            ))
            summary.blocked += 1

        for summary in summaries.values():
            if summary.blocked:
                summary.status = "blocked"
            elif summary.already_uploaded == summary.total:
                summary.status = "complete"
            else:
                summary.status = "partial"

        preflight.per_slot_summary = list(summaries.values())
        logger.info(
            "Preflight: %d already uploaded, %d pending, %d blocked",
            len(preflight.already_uploaded), len(preflight.pending), len(preflight.blocked),
        )
        return preflight
