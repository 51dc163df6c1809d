# src/planning/validation.py - v1
"""Independent validation checks over a rename plan.

Each check is a pure function; ``validate_plan`` runs them all and
assembles a PlanValidation.
"""

from __future__ import annotations

from collections.abc import Iterable

from slotingest.planning.models import (
    DuplicateHash,
    InvalidName,
    PlanValidation,
    RenameCollision,
    RenamePlanItem,
    SlotMappingSummary,
    SlotNamingConfig,
)
from slotingest.planning.naming import INVALID_FILENAME_CHARS, MAX_FILENAME_LENGTH


def find_rename_collisions(items: Iterable[RenamePlanItem]) -> list[RenameCollision]:
    """Planned filenames shared by more than one source file, within or across slots."""
    by_name: dict[str, list[str]] = {}
    for item in items:
        by_name.setdefault(item.planned_filename, []).append(item.relative_path)
    return [
        RenameCollision(planned_filename=name, source_paths=paths)
        for name, paths in by_name.items()
        if len(paths) > 1
    ]


def find_invalid_names(
    items: Iterable[RenamePlanItem],
    naming_by_slot: dict[str, SlotNamingConfig],
) -> list[InvalidName]:
    """Empty base names, disallowed characters and over-long filenames."""
    invalid: list[InvalidName] = []
    for item in items:
        naming = naming_by_slot.get(item.slot_id)
        if naming is None or not naming.prefix.strip():
            invalid.append(InvalidName(
                source_path=item.relative_path,
                planned_filename=item.planned_filename,
                reason="Planned base name is empty.",
            ))
        if INVALID_FILENAME_CHARS.search(item.planned_filename):
            invalid.append(InvalidName(
                source_path=item.relative_path,
                planned_filename=item.planned_filename,
                reason="Filename contains invalid characters.",
            ))
        if len(item.planned_filename) > MAX_FILENAME_LENGTH:
            invalid.append(InvalidName(
                source_path=item.relative_path,
                planned_filename=item.planned_filename,
                reason=f"Filename is longer than {MAX_FILENAME_LENGTH} characters.",
            ))
    return invalid


def find_empty_slots(
    referenced_slot_ids: Iterable[str],
    summaries: dict[str, SlotMappingSummary],
    slot_labels: dict[str, str],
) -> list[str]:
    """Labels of referenced slots that ended up with no planned files."""
    empty: list[str] = []
    for slot_id in sorted(set(referenced_slot_ids)):
        summary = summaries.get(slot_id)
        if summary is not None and summary.file_count > 0:
            continue
        if slot_id in slot_labels:
            empty.append(slot_labels[slot_id])
    return sorted(empty)


def find_duplicate_hashes(summaries: Iterable[SlotMappingSummary]) -> list[DuplicateHash]:
    """Content shared by more than one planned source file."""
    by_hash: dict[str, list[str]] = {}
    for summary in summaries:
        for f in summary.planned_files:
            by_hash.setdefault(f.sha256, []).append(f.relative_path)
    return [
        DuplicateHash(sha256=sha, paths=sorted(paths))
        for sha, paths in sorted(by_hash.items())
        if len(paths) > 1
    ]


def find_file_type_mismatches(summaries: Iterable[SlotMappingSummary]) -> list[str]:
    return [
        f'Slot "{s.slot_label}" has mixed file types.'
        for s in summaries
        if s.type_counts.distinct_types > 1
    ]


def validate_plan(
    rename_plan: list[RenamePlanItem],
    summaries: list[SlotMappingSummary],
    naming_configs: list[SlotNamingConfig],
    referenced_slot_ids: Iterable[str],
    slot_labels: dict[str, str],
) -> PlanValidation:
    """Run every check over one planning pass."""
    summaries_by_id = {s.slot_id: s for s in summaries}
    naming_by_slot = {n.slot_id: n for n in naming_configs}
    return PlanValidation(
        rename_collisions=find_rename_collisions(rename_plan),
        invalid_names=find_invalid_names(rename_plan, naming_by_slot),
        empty_slots=find_empty_slots(referenced_slot_ids, summaries_by_id, slot_labels),
        duplicate_hashes=find_duplicate_hashes(summaries),
        file_type_mismatches=find_file_type_mismatches(summaries),
    )
