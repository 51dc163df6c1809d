# src/storage/layout.py - v1
"""Destination directory structure.

Ingested files land under::

    {destination_root}/{project_code}/source/{IMG|VID|OTHER}/{slot_code}/{planned_filename}
"""

from __future__ import annotations

from pathlib import Path

from slotingest.scan.file_types import asset_kind
from slotingest.scan.models import FileType

SOURCE_DIR = "source"


def project_root(destination_root: Path, project_code: str) -> Path:
    """Return root directory for a project."""
    return destination_root / project_code


def source_dir(destination_root: Path, project_code: str) -> Path:
    """Return source/ directory for a project."""
    return project_root(destination_root, project_code) / SOURCE_DIR


def slot_dir(
    destination_root: Path, project_code: str, file_type: FileType, slot_code: str,
) -> Path:
    """Return the directory holding one slot's files of a given asset kind."""
    return source_dir(destination_root, project_code) / asset_kind(file_type) / slot_code


def destination_path(
    destination_root: Path,
    project_code: str,
    file_type: FileType,
    slot_code: str,
    planned_filename: str,
) -> Path:
    """Return the final path of a planned file."""
    return slot_dir(destination_root, project_code, file_type, slot_code) / planned_filename
