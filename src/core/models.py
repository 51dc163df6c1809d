# src/core/models.py - v1
"""Shared domain models used across scan, planning, execution and ledger.

Slot is the one explicit schema for the external slot registry. Rows from
the metadata store must be mapped onto it by the caller; field names are
never guessed at runtime.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from slotingest.config.settings import MAX_SEQUENCE_PADDING, MIN_SEQUENCE_PADDING


class Slot(BaseModel):
    """A destination bucket within a project with a monotonic sequence counter."""

    id: str = Field(min_length=1)
    code: str = Field(min_length=1)
    label: str
    naming_prefix: str | None = None
    sequence_padding: int | None = Field(
        default=None, ge=MIN_SEQUENCE_PADDING, le=MAX_SEQUENCE_PADDING,
    )
    current_sequence: int = Field(default=0, ge=0)


class SlotNamingOverride(BaseModel):
    """Per-slot naming override supplied by the operator."""

    prefix: str | None = None
    padding: int | None = None
