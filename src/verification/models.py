# src/verification/models.py - v1
"""Verification models: per-entry check details and the audit summary."""

from __future__ import annotations

from pydantic import BaseModel, Field


class VerificationDetail(BaseModel):
    """Filesystem state of one ledger entry's destination."""

    sha256: str
    slot_id: str
    final_path: str
    exists: bool
    filename_matches: bool
    size_matches: bool
    expected_size_bytes: int
    actual_size_bytes: int | None = None
    valid: bool
    message: str | None = None


class VerificationSummary(BaseModel):
    checked: int = 0
    valid: int = 0
    invalid: int = 0
    details: list[VerificationDetail] = Field(default_factory=list)

    @property
    def all_valid(self) -> bool:
        return self.invalid == 0
