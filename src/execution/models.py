# src/execution/models.py - v1
"""Execution models: dry-run probe results, readiness, preflight and batch results."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from slotingest.planning.models import RenamePlanItem

DryRunErrorType = Literal["missing", "permission", "unreadable", "zero_byte", "hash_mismatch"]
PreflightStatus = Literal["already_uploaded", "pending_upload", "missing_unreadable"]
SlotPreflightStatus = Literal["blocked", "complete", "partial"]
ItemStatus = Literal["success", "failed", "skipped"]
BatchState = Literal["running", "completed", "halted", "cancelled"]


# === Dry run ===


class DryRunRequestItem(BaseModel):
    source_path: str
    expected_size_bytes: int


class DryRunFileResult(BaseModel):
    """Outcome of the cheap structural probe of one source file."""

    source_path: str
    ok: bool
    error_type: DryRunErrorType | None = None
    message: str | None = None
    expected_size_bytes: int
    current_size_bytes: int | None = None


class ReadinessIssue(BaseModel):
    """A dry-run failure attributed to its slot."""

    slot_id: str
    slot_label: str
    source_path: str
    source_filename: str
    error_type: DryRunErrorType
    message: str


class ExecutionValidation(BaseModel):
    all_files_readable: bool
    no_critical_errors: bool
    execution_ready: bool
    errors: list[ReadinessIssue] = Field(default_factory=list)


# === Preflight ===


class PreflightItem(BaseModel):
    item: RenamePlanItem
    status: PreflightStatus
    error_type: DryRunErrorType | None = None
    message: str | None = None


class SlotPreflightSummary(BaseModel):
    slot_id: str
    slot_label: str
    total: int = 0
    already_uploaded: int = 0
    pending: int = 0
    blocked: int = 0
    status: SlotPreflightStatus = "partial"


class ExecutionPreflight(BaseModel):
    """Resume-aware classification of a rename plan."""

    already_uploaded: list[PreflightItem] = Field(default_factory=list)
    pending: list[PreflightItem] = Field(default_factory=list)
    blocked: list[PreflightItem] = Field(default_factory=list)
    per_slot_summary: list[SlotPreflightSummary] = Field(default_factory=list)

    @property
    def is_executable(self) -> bool:
        return not self.blocked

    @property
    def pending_items(self) -> list[RenamePlanItem]:
        return [p.item for p in self.pending]


# === Execution ===


class ItemResult(BaseModel):
    """Outcome of one attempted item."""

    source_path: str
    slot_id: str
    sha256: str
    planned_filename: str
    planned_sequence: int
    status: ItemStatus
    destination_path: str | None = None
    skip_reason: Literal["already_uploaded", "claimed_elsewhere"] | None = None
    error: str | None = None


class ExecutionResult(BaseModel):
    """Result of one streaming batch.

    A halted or cancelled batch keeps every success recorded before it
    stopped; ``not_attempted`` lists the items it never reached.
    """

    state: BatchState
    results: list[ItemResult] = Field(default_factory=list)
    failed_item: RenamePlanItem | None = None
    error: str | None = None
    not_attempted: list[RenamePlanItem] = Field(default_factory=list)
    per_slot_max_sequence: dict[str, int] = Field(default_factory=dict)
    advanced_slots: dict[str, int] = Field(default_factory=dict)
    sequence_errors: dict[str, str] = Field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.state == "completed"

    @property
    def uploaded_count(self) -> int:
        return sum(1 for r in self.results if r.status == "success")

    @property
    def skipped_count(self) -> int:
        return sum(1 for r in self.results if r.status == "skipped")
