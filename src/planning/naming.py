# src/planning/naming.py - v1
"""Filename conventions for planned destination files.

Planned filename: ``{prefix}_{sequence zero-padded}{extension}``, e.g.
``PRJ_HERO_0001.jpg``.
"""

from __future__ import annotations

import re

from slotingest.config.settings import MAX_SEQUENCE_PADDING, MIN_SEQUENCE_PADDING

# Characters rejected by at least one common filesystem (Windows is the strictest)
INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
MAX_FILENAME_LENGTH = 255


def sanitize_filename_token(token: str) -> str:
    """Strip disallowed characters and collapse whitespace to underscores."""
    cleaned = INVALID_FILENAME_CHARS.sub("", token.strip())
    return re.sub(r"\s+", "_", cleaned)


def default_slot_prefix(project_code: str, slot_label: str) -> str:
    """Default naming prefix ``{PROJECT}_{SLOT}`` for a slot."""
    project = sanitize_filename_token(project_code)
    label = sanitize_filename_token(slot_label)
    return sanitize_filename_token(f"{project}_{label}")


def normalize_slot_code(raw_label: str) -> str:
    """Upper-case slot code derived from a label: ``"Hero shots"`` -> ``"HERO_SHOTS"``."""
    code = re.sub(r"\s+", "_", raw_label.strip().upper())
    return re.sub(r"[^A-Z0-9_]", "", code)


def slot_name_from_folder(folder_relative_path: str) -> str:
    """Suggest a slot name from a scanned folder path (last path component)."""
    if folder_relative_path == "/":
        return "ROOT"
    parts = [p for p in folder_relative_path.split("/") if p]
    return parts[-1] if parts else "NEW_SLOT"


def clamp_padding(padding: int) -> int:
    return min(MAX_SEQUENCE_PADDING, max(MIN_SEQUENCE_PADDING, padding))


def format_planned_name(prefix: str, sequence: int, padding: int) -> str:
    return f"{prefix}_{str(sequence).zfill(padding)}"


def format_planned_filename(
    prefix: str, sequence: int, padding: int, extension: str,
) -> str:
    return f"{format_planned_name(prefix, sequence, padding)}{extension}"
