# tests/unit/ledger/test_unit_ledger_factory.py - v1
"""Tests for ledger/ledger_factory.py."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from slotingest.config.settings import Settings
from slotingest.ledger.json_store import JsonLedgerStore
from slotingest.ledger.ledger_factory import create_ledger_store
from slotingest.ledger.sqlite_store import SqliteLedgerStore


class TestLedgerFactory:
    def test_json_backend(self, tmp_path):
        settings = Settings(_env_file=None, ledger_backend="json", ledger_root=tmp_path)
        store = create_ledger_store(settings)
        assert isinstance(store, JsonLedgerStore)

    def test_sqlite_backend(self, tmp_path):
        settings = Settings(_env_file=None, ledger_backend="sqlite", ledger_root=tmp_path)
        store = create_ledger_store(settings)
        try:
            assert isinstance(store, SqliteLedgerStore)
            assert (tmp_path / "slotingest_ledger.db").exists()
        finally:
            store.close()

    def test_redis_backend(self):
        fake_redis = MagicMock()
        settings = Settings(
            _env_file=None, ledger_backend="redis",
            ledger_redis_url="redis://localhost:6379/0", ledger_key_prefix="t",
        )
        with patch.dict("sys.modules", {"redis": fake_redis}):
            store = create_ledger_store(settings)
        fake_redis.Redis.from_url.assert_called_once_with(
            "redis://localhost:6379/0", decode_responses=True,
        )
        assert store._prefix == "t"

    def test_claim_ttl_forwarded(self, tmp_path):
        settings = Settings(
            _env_file=None, ledger_backend="json", ledger_root=tmp_path,
            ledger_claim_ttl_seconds=42,
        )
        store = create_ledger_store(settings)
        assert store._claim_ttl.total_seconds() == 42

    def test_redis_requires_url(self):
        settings = Settings(_env_file=None, ledger_backend="json")
        settings.ledger_backend = "redis"
        with pytest.raises(ValueError, match="LEDGER_REDIS_URL"):
            create_ledger_store(settings)

    def test_defaults_follow_settings(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path))
        for name in ("SLOTINGEST_LEDGER_BACKEND", "SLOTINGEST_LEDGER_ROOT"):
            monkeypatch.delenv(name, raising=False)
        store = create_ledger_store()
        assert isinstance(store, JsonLedgerStore)
        assert store._root == tmp_path / ".slotingest" / "ledger"
