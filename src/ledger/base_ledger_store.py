# src/ledger/base_ledger_store.py - v1
"""Abstract ledger store interface.

The ledger is the single shared mutable resource of the system: every
dedup decision defers to it, and executors re-query it right before each
irreversible write.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable

from slotingest.ledger.models import LedgerEntry

DEFAULT_CLAIM_TTL_SECONDS = 3600


class LedgerError(Exception):
    """Base error for ledger operations."""


class DuplicateLedgerEntryError(LedgerError):
    """Raised when an entry already exists for (project_id, sha256)."""


class BaseLedgerStore(ABC):
    """Unified interface for ledger storage backends."""

    @abstractmethod
    async def query_completed_shas(
        self, project_id: str, shas: Iterable[str],
    ) -> set[str]:
        """Return the subset of shas that already have a completed entry."""

    @abstractmethod
    async def insert_entry(self, entry: LedgerEntry) -> None:
        """Append a completed entry and settle any claim on its key.

        Raises:
            DuplicateLedgerEntryError: If (project_id, sha256) is already recorded.
        """

    @abstractmethod
    async def try_claim(self, project_id: str, sha256: str, claimant: str) -> bool:
        """Atomically claim (project_id, sha256) before copying.

        Returns False if the content is already completed or a live claim is
        held by another claimant. Re-claiming one's own claim succeeds.
        Claims older than the store's TTL may be taken over.
        """

    @abstractmethod
    async def release_claim(self, project_id: str, sha256: str, claimant: str) -> None:
        """Drop a claim held by claimant (no-op otherwise)."""

    @abstractmethod
    async def get_slot_sequence(self, slot_id: str) -> int:
        """Return the persisted current sequence of a slot (0 if unknown)."""

    @abstractmethod
    async def advance_slot_sequence(self, slot_id: str, new_max: int) -> int:
        """Store max(existing, new_max) and return the resulting value.

        Never decreases the counter.
        """

    @abstractmethod
    async def list_entries(self, project_id: str) -> list[LedgerEntry]:
        """List all completed entries of a project."""

    def close(self) -> None:
        """Release backend resources."""
