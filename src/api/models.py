# src/api/models.py - v1
"""API-level models: IngestionJob (operator input) and IngestionReport (output)."""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel, Field, model_validator

from slotingest.core.models import Slot, SlotNamingOverride
from slotingest.execution.models import (
    DryRunFileResult,
    ExecutionPreflight,
    ExecutionResult,
    ExecutionValidation,
)
from slotingest.planning.models import IngestionPlan
from slotingest.scan.models import ScanResult


class IngestionJob(BaseModel):
    """Everything the engine needs from its collaborators for one project.

    Typically loaded from a JSON job file written by the operator tooling.
    """

    project_id: str = Field(min_length=1)
    project_code: str = Field(min_length=1)
    source_root: Path
    destination_root: Path | None = None
    slots: list[Slot] = Field(default_factory=list)
    folder_assignments: dict[str, str] = Field(default_factory=dict)
    naming_overrides: dict[str, SlotNamingOverride] = Field(default_factory=dict)
    selected_slot_id: str | None = None

    @model_validator(mode="after")
    def validate_slot_references(self) -> IngestionJob:
        ids = [s.id for s in self.slots]
        if len(ids) != len(set(ids)):
            raise ValueError("slot ids must be unique")
        codes = [s.code for s in self.slots]
        if len(codes) != len(set(codes)):
            raise ValueError("slot codes must be unique within a project")
        return self

    @classmethod
    def from_file(cls, path: Path | str) -> IngestionJob:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls.model_validate(data)


class IngestionReport(BaseModel):
    """Return value of facade.run_ingestion(): every stage's output.

    Stages after the first blocking one are None.
    """

    run_id: str
    project_id: str
    scan: ScanResult
    plan: IngestionPlan | None = None
    dry_run: list[DryRunFileResult] = Field(default_factory=list)
    readiness: ExecutionValidation | None = None
    preflight: ExecutionPreflight | None = None
    execution: ExecutionResult | None = None
    stopped_reason: str | None = None

    @property
    def success(self) -> bool:
        return self.execution is not None and self.execution.success
