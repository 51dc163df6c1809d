# src/ledger/ledger_factory.py - v1
"""Factory for ledger store instantiation."""

from __future__ import annotations

from slotingest.config.settings import Settings
from slotingest.ledger.base_ledger_store import BaseLedgerStore


class UnsupportedLedgerBackendError(ValueError):
    """Raised when LEDGER_BACKEND names an unknown backend."""


def create_ledger_store(settings: Settings | None = None) -> BaseLedgerStore:
    """Instantiate the configured ledger backend.

    Args:
        settings: Application settings. Loaded from the environment if omitted.

    Returns:
        Configured BaseLedgerStore implementation.
    """
    settings = settings or Settings()
    backend = settings.ledger_backend
    ledger_root = settings.ledger_root.expanduser()
    claim_ttl = settings.ledger_claim_ttl_seconds

    if backend == "json":
        from slotingest.ledger.json_store import JsonLedgerStore
        return JsonLedgerStore(ledger_root=ledger_root, claim_ttl_seconds=claim_ttl)

    if backend == "sqlite":
        from slotingest.ledger.sqlite_store import SqliteLedgerStore
        return SqliteLedgerStore(
            db_path=ledger_root / "slotingest_ledger.db", claim_ttl_seconds=claim_ttl,
        )

    if backend == "redis":
        from slotingest.ledger.redis_store import RedisLedgerStore
        if not settings.ledger_redis_url:
            raise ValueError(
                "LEDGER_REDIS_URL must be set when LEDGER_BACKEND=redis"
            )
        return RedisLedgerStore(
            redis_url=settings.ledger_redis_url,
            key_prefix=settings.ledger_key_prefix,
            claim_ttl_seconds=claim_ttl,
        )

    raise UnsupportedLedgerBackendError(f"Unsupported ledger backend: {backend!r}")
