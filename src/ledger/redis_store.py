# src/ledger/redis_store.py - v1
"""Redis-based ledger store (LEDGER_BACKEND=redis).

Requires 'redis' package: pip install redis.
Suitable when several installations ingest into the same project.

Keys::

    {prefix}:ledger:{project_id}           hash  sha256 -> LedgerEntry JSON
    {prefix}:claim:{project_id}:{sha256}   string claimant, with TTL
    {prefix}:slot:{slot_id}:sequence       string current sequence
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from pydantic import ValidationError

from slotingest.ledger.base_ledger_store import (
    DEFAULT_CLAIM_TTL_SECONDS,
    BaseLedgerStore,
    DuplicateLedgerEntryError,
)
from slotingest.ledger.models import LedgerEntry

logger = logging.getLogger(__name__)


class RedisLedgerStore(BaseLedgerStore):
    """Redis-backed ledger store for shared multi-instance deployments."""

    def __init__(
        self,
        redis_url: str,
        key_prefix: str = "slotingest",
        claim_ttl_seconds: int = DEFAULT_CLAIM_TTL_SECONDS,
    ) -> None:
        try:
            import redis
        except ImportError as e:
            raise ImportError(
                "redis package required: pip install redis"
            ) from e

        self._redis = redis
        self._client = redis.Redis.from_url(redis_url, decode_responses=True)
        self._prefix = key_prefix
        self._claim_ttl = claim_ttl_seconds

    async def query_completed_shas(
        self, project_id: str, shas: Iterable[str],
    ) -> set[str]:
        wanted = sorted(set(shas))
        if not wanted:
            return set()
        values = self._client.hmget(self._ledger_key(project_id), wanted)
        return {sha for sha, value in zip(wanted, values) if value is not None}

    async def insert_entry(self, entry: LedgerEntry) -> None:
        created = self._client.hsetnx(
            self._ledger_key(entry.project_id), entry.sha256, entry.model_dump_json(),
        )
        if not created:
            raise DuplicateLedgerEntryError(
                f"Ledger entry already exists for {entry.project_id}/{entry.sha256}"
            )
        self._client.delete(self._claim_key(entry.project_id, entry.sha256))

    async def try_claim(self, project_id: str, sha256: str, claimant: str) -> bool:
        if self._client.hexists(self._ledger_key(project_id), sha256):
            return False
        key = self._claim_key(project_id, sha256)
        # SET NX EX: stale claims expire on their own
        if self._client.set(key, claimant, nx=True, ex=self._claim_ttl):
            return True
        return self._client.get(key) == claimant

    async def release_claim(self, project_id: str, sha256: str, claimant: str) -> None:
        key = self._claim_key(project_id, sha256)
        if self._client.get(key) == claimant:
            self._client.delete(key)

    async def get_slot_sequence(self, slot_id: str) -> int:
        value = self._client.get(self._slot_key(slot_id))
        return int(value) if value is not None else 0

    async def advance_slot_sequence(self, slot_id: str, new_max: int) -> int:
        key = self._slot_key(slot_id)
        with self._client.pipeline() as pipe:
            while True:
                try:
                    pipe.watch(key)
                    current = pipe.get(key)
                    value = max(int(current) if current is not None else 0, new_max)
                    pipe.multi()
                    pipe.set(key, value)
                    pipe.execute()
                    return value
                except self._redis.WatchError:
                    logger.debug("Sequence of slot %s changed concurrently, retrying", slot_id)

    async def list_entries(self, project_id: str) -> list[LedgerEntry]:
        raw = self._client.hgetall(self._ledger_key(project_id))
        entries: list[LedgerEntry] = []
        for sha, data in raw.items():
            try:
                entries.append(LedgerEntry.model_validate_json(data))
            except ValidationError as e:
                logger.warning("Skipping malformed ledger entry %s: %s", sha, e)
        return sorted(entries, key=lambda e: (e.slot_id, e.sequence))

    def close(self) -> None:
        """Close the Redis connection."""
        self._client.close()

    def _ledger_key(self, project_id: str) -> str:
        return f"{self._prefix}:ledger:{project_id}"

    def _claim_key(self, project_id: str, sha256: str) -> str:
        return f"{self._prefix}:claim:{project_id}:{sha256}"

    def _slot_key(self, slot_id: str) -> str:
        return f"{self._prefix}:slot:{slot_id}:sequence"
