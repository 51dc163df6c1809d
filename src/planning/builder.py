# src/planning/builder.py - v1
"""Ingestion plan builder: folder-to-slot mapping and deterministic rename plan.

The plan is a pure function of its inputs. Within a slot, files are ordered
by relative path (code-point order) and numbered 1..N, so re-planning the
same inputs always yields byte-identical filenames.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

from slotingest.core.models import Slot, SlotNamingOverride
from slotingest.planning.models import (
    IngestionPlan,
    RenamePlanItem,
    SlotMappingSummary,
    SlotNamingConfig,
)
from slotingest.planning.naming import (
    clamp_padding,
    default_slot_prefix,
    format_planned_filename,
    format_planned_name,
    sanitize_filename_token,
)
from slotingest.planning.validation import validate_plan
from slotingest.scan.models import FolderGroup, ScannedFile

logger = logging.getLogger(__name__)


class IngestionPlanBuilder:
    """Build rename plans for one project."""

    def __init__(self, project_code: str = "PROJECT", default_padding: int = 4) -> None:
        self._project_code = project_code.strip() or "PROJECT"
        self._default_padding = clamp_padding(default_padding)

    def build_plan(
        self,
        folder_groups: Sequence[FolderGroup],
        files: Sequence[ScannedFile],
        slot_assignments: Mapping[str, str],
        slots: Sequence[Slot],
        naming_overrides: Mapping[str, SlotNamingOverride] | None = None,
        selected_slot_id: str | None = None,
    ) -> IngestionPlan:
        """Map folders to slots and compute the validated rename plan.

        Args:
            folder_groups: Folder aggregates from the scan.
            files: Scanned files.
            slot_assignments: Folder relative path -> slot id.
            slots: Slot registry for the project.
            naming_overrides: Optional per-slot prefix/padding overrides.
            selected_slot_id: Slot currently selected by the operator, if any.
                It counts as referenced for the empty-slot check.

        Returns:
            IngestionPlan with rename plan and validation findings.
        """
        naming_overrides = naming_overrides or {}
        slot_by_id = {s.id: s for s in slots}
        known_folders = {g.relative_path for g in folder_groups}

        files_by_folder: dict[str, list[ScannedFile]] = {}
        for f in files:
            files_by_folder.setdefault(f.parent_relative_path, []).append(f)

        summaries_by_id: dict[str, SlotMappingSummary] = {}
        for group in folder_groups:
            slot_id = slot_assignments.get(group.relative_path)
            if not slot_id or slot_id not in slot_by_id:
                continue
            slot = slot_by_id[slot_id]
            summary = summaries_by_id.get(slot_id)
            if summary is None:
                summary = SlotMappingSummary(
                    slot_id=slot.id, slot_code=slot.code, slot_label=slot.label,
                )
                summaries_by_id[slot_id] = summary
            for f in files_by_folder.get(group.relative_path, []):
                summary.file_count += 1
                summary.total_bytes += f.size_bytes
                summary.type_counts.add(f.file_type)
                summary.planned_files.append(f)

        summaries = sorted(
            summaries_by_id.values(), key=lambda s: (s.slot_label, s.slot_id),
        )
        naming_configs = [
            self._naming_for(slot_by_id[s.slot_id], naming_overrides.get(s.slot_id))
            for s in summaries
        ]
        naming_by_slot = {n.slot_id: n for n in naming_configs}

        rename_plan: list[RenamePlanItem] = []
        for summary in summaries:
            rename_plan.extend(
                _plan_slot(summary, naming_by_slot[summary.slot_id])
            )

        referenced = set(slot_assignments.values())
        if selected_slot_id:
            referenced.add(selected_slot_id)

        validation = validate_plan(
            rename_plan,
            summaries,
            naming_configs,
            referenced_slot_ids=referenced,
            slot_labels={s.id: s.label for s in slots},
        )

        mapped = [f for f, sid in slot_assignments.items() if sid and f in known_folders]
        unmapped = [
            g.relative_path for g in folder_groups
            if not slot_assignments.get(g.relative_path)
        ]

        logger.info(
            "Planned %d files across %d slots (%d collisions, %d invalid names)",
            len(rename_plan), len(summaries),
            len(validation.rename_collisions), len(validation.invalid_names),
        )
        return IngestionPlan(
            mapped_folder_count=len(mapped),
            total_folder_count=len(folder_groups),
            unmapped_folders=unmapped,
            slot_summaries=summaries,
            naming_configs=naming_configs,
            rename_plan=rename_plan,
            validation=validation,
        )

    def _naming_for(
        self, slot: Slot, override: SlotNamingOverride | None,
    ) -> SlotNamingConfig:
        """Resolve prefix and padding: override, then slot registry, then defaults."""
        if override is not None and override.prefix and override.prefix.strip():
            prefix = sanitize_filename_token(override.prefix)
        elif slot.naming_prefix:
            prefix = slot.naming_prefix
        else:
            prefix = default_slot_prefix(self._project_code, slot.label)

        if override is not None and override.padding is not None:
            padding = clamp_padding(override.padding)
        else:
            padding = clamp_padding(slot.sequence_padding or self._default_padding)

        return SlotNamingConfig(
            slot_id=slot.id, slot_label=slot.label, prefix=prefix, padding=padding,
        )


def _plan_slot(
    summary: SlotMappingSummary, naming: SlotNamingConfig,
) -> list[RenamePlanItem]:
    ordered = sorted(summary.planned_files, key=lambda f: f.relative_path)
    items: list[RenamePlanItem] = []
    for sequence, f in enumerate(ordered, start=1):
        items.append(RenamePlanItem(
            slot_id=summary.slot_id,
            slot_code=summary.slot_code,
            slot_label=summary.slot_label,
            source_path=f.absolute_path,
            relative_path=f.relative_path,
            source_filename=f.name,
            file_type=f.file_type,
            sha256=f.sha256,
            size_bytes=f.size_bytes,
            planned_sequence=sequence,
            planned_name=format_planned_name(naming.prefix, sequence, naming.padding),
            planned_filename=format_planned_filename(
                naming.prefix, sequence, naming.padding, f.extension,
            ),
        ))
    return items


def build_plan(
    folder_groups: Sequence[FolderGroup],
    files: Sequence[ScannedFile],
    slot_assignments: Mapping[str, str],
    slots: Sequence[Slot],
    naming_overrides: Mapping[str, SlotNamingOverride] | None = None,
    project_code: str = "PROJECT",
    selected_slot_id: str | None = None,
) -> IngestionPlan:
    """Convenience: build a plan with a one-off builder."""
    return IngestionPlanBuilder(project_code=project_code).build_plan(
        folder_groups, files, slot_assignments, slots,
        naming_overrides=naming_overrides, selected_slot_id=selected_slot_id,
    )
