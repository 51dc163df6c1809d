# src/ledger/models.py - v1
"""Ledger domain models: LedgerEntry, LedgerClaim."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class LedgerEntry(BaseModel):
    """Durable record of one completed, verified upload.

    At most one entry exists per (project_id, sha256).
    """

    model_config = ConfigDict(frozen=True)

    project_id: str
    slot_id: str
    sha256: str
    final_path: str
    filename: str
    size_bytes: int = Field(ge=0)
    sequence: int = Field(ge=1)
    completed_at: datetime

    @property
    def key(self) -> tuple[str, str]:
        return (self.project_id, self.sha256)


class LedgerClaim(BaseModel):
    """Provisional marker taken on (project_id, sha256) before copying."""

    project_id: str
    sha256: str
    claimant: str
    claimed_at: datetime
