# src/planning/models.py - v1
"""Planning models: slot summaries, naming configs, rename plan and validation."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from slotingest.scan.models import FileType, ScannedFile, TypeCounts


class SlotNamingConfig(BaseModel):
    """Effective naming convention for one slot."""

    slot_id: str
    slot_label: str
    prefix: str
    padding: int


class SlotMappingSummary(BaseModel):
    """Files assigned to one slot through folder mapping."""

    slot_id: str
    slot_code: str
    slot_label: str
    file_count: int = 0
    total_bytes: int = 0
    type_counts: TypeCounts = Field(default_factory=TypeCounts)
    planned_files: list[ScannedFile] = Field(default_factory=list)


class RenamePlanItem(BaseModel):
    """One source file with its deterministic destination name."""

    model_config = ConfigDict(frozen=True)

    slot_id: str
    slot_code: str
    slot_label: str
    source_path: str
    relative_path: str
    source_filename: str
    file_type: FileType
    sha256: str
    size_bytes: int
    planned_sequence: int
    planned_name: str
    planned_filename: str


class DuplicateHash(BaseModel):
    sha256: str
    paths: list[str]


class RenameCollision(BaseModel):
    planned_filename: str
    source_paths: list[str]


class InvalidName(BaseModel):
    source_path: str
    planned_filename: str
    reason: str


class PlanValidation(BaseModel):
    """Findings of one planning pass.

    Collisions and invalid names block execution; the rest are advisory.
    """

    rename_collisions: list[RenameCollision] = Field(default_factory=list)
    invalid_names: list[InvalidName] = Field(default_factory=list)
    empty_slots: list[str] = Field(default_factory=list)
    duplicate_hashes: list[DuplicateHash] = Field(default_factory=list)
    file_type_mismatches: list[str] = Field(default_factory=list)

    @property
    def has_blocking_errors(self) -> bool:
        return bool(self.rename_collisions or self.invalid_names)

    @property
    def has_warnings(self) -> bool:
        return bool(
            self.empty_slots or self.duplicate_hashes or self.file_type_mismatches
        )


class IngestionPlan(BaseModel):
    """Folder-to-slot mapping result with the rename plan and its validation."""

    mapped_folder_count: int
    total_folder_count: int
    unmapped_folders: list[str] = Field(default_factory=list)
    slot_summaries: list[SlotMappingSummary] = Field(default_factory=list)
    naming_configs: list[SlotNamingConfig] = Field(default_factory=list)
    rename_plan: list[RenamePlanItem] = Field(default_factory=list)
    validation: PlanValidation = Field(default_factory=PlanValidation)

    @property
    def is_ready(self) -> bool:
        return bool(self.rename_plan) and not self.validation.has_blocking_errors
