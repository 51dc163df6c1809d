# src/scan/models.py - v1
"""Scan models: ScannedFile, FolderGroup, ScanIssue, ScanResult."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

FileType = Literal["image", "video", "other"]
ScanStatus = Literal["completed", "cancelled", "failed"]

ROOT_FOLDER = "/"


class ScanOptions(BaseModel):
    """Filters applied while walking the source tree."""

    ignore_hidden: bool = True
    ignore_system_files: bool = True


class ScannedFile(BaseModel):
    """A single file discovered and hashed during a scan."""

    model_config = ConfigDict(frozen=True)

    absolute_path: str
    relative_path: str
    parent_relative_path: str
    name: str
    size_bytes: int
    extension: str
    file_type: FileType
    sha256: str


class TypeCounts(BaseModel):
    image: int = 0
    video: int = 0
    other: int = 0

    def add(self, file_type: FileType, count: int = 1) -> None:
        setattr(self, file_type, getattr(self, file_type) + count)

    @property
    def distinct_types(self) -> int:
        return sum(1 for n in (self.image, self.video, self.other) if n > 0)


class FolderGroup(BaseModel):
    """Aggregate of the files sharing one parent folder."""

    relative_path: str
    file_count: int = 0
    total_bytes: int = 0
    type_counts: TypeCounts = Field(default_factory=TypeCounts)


class ScanIssue(BaseModel):
    """A file or directory skipped because it could not be read."""

    path: str
    reason: str


class ScanResult(BaseModel):
    """Outcome of one scan invocation.

    Only a ``completed`` result carries files. A cancelled or failed scan
    never exposes a partial inventory.
    """

    status: ScanStatus
    root_path: str
    scanned_at: datetime
    files: list[ScannedFile] = Field(default_factory=list)
    folder_groups: list[FolderGroup] = Field(default_factory=list)
    total_files: int = 0
    total_bytes: int = 0
    skipped: list[ScanIssue] = Field(default_factory=list)
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.status == "completed"
