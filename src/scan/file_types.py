# src/scan/file_types.py - v1
"""Extension tables and ignore rules for source media."""

from __future__ import annotations

from slotingest.scan.models import FileType

IMAGE_EXTENSIONS: frozenset[str] = frozenset({
    ".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp", ".tif", ".tiff",
    ".heic", ".heif",
    # camera raw
    ".dng", ".arw", ".cr2", ".cr3", ".nef", ".orf", ".rw2",
})

VIDEO_EXTENSIONS: frozenset[str] = frozenset({
    ".mp4", ".mov", ".mkv", ".avi", ".mxf", ".mts", ".m2ts", ".r3d",
    ".braw", ".prores", ".webm",
})

SYSTEM_DIRECTORIES: frozenset[str] = frozenset({".git", "node_modules"})
SYSTEM_FILES: frozenset[str] = frozenset({".DS_Store", "Thumbs.db", "desktop.ini"})

# Asset kind directory names used in the destination layout
ASSET_KINDS: dict[FileType, str] = {
    "image": "IMG",
    "video": "VID",
    "other": "OTHER",
}


def detect_file_type(extension: str) -> FileType:
    """Classify a lower-cased extension (with leading dot)."""
    ext = extension.lower()
    if ext in IMAGE_EXTENSIONS:
        return "image"
    if ext in VIDEO_EXTENSIONS:
        return "video"
    return "other"


def asset_kind(file_type: FileType) -> str:
    return ASSET_KINDS[file_type]


def is_hidden(name: str) -> bool:
    return name.startswith(".")


def is_system_file(name: str) -> bool:
    # "._name" are AppleDouble resource forks written by macOS on foreign volumes
    return name in SYSTEM_FILES or name.startswith("._")


def is_system_directory(name: str) -> bool:
    return name in SYSTEM_DIRECTORIES
