# tests/integration/test_int_ingestion.py - v1
"""End-to-end ingestion against real temporary directories and a SQLite ledger.

Covers the crash/resume cycle and two executors racing on one ledger.
"""

from __future__ import annotations

import asyncio
import errno
from pathlib import Path

import pytest

from slotingest.api.facade import (
    dry_run_plan,
    plan_ingestion,
    preflight_plan,
    run_ingestion,
    scan_source,
    verify_project,
)
from slotingest.api.models import IngestionJob
from slotingest.config.settings import Settings
from slotingest.core.models import Slot
from slotingest.execution.executor import StreamingExecutor
from slotingest.execution.filesystem import LocalFileSystem
from slotingest.ledger.sqlite_store import SqliteLedgerStore

pytestmark = pytest.mark.integration


class CrashingFileSystem(LocalFileSystem):
    """Local filesystem whose copy fails for one source file name."""

    def __init__(self, crash_on: str) -> None:
        self.crash_on = crash_on

    async def copy_stream(self, src: Path, dst: Path, chunk_size: int = 1024) -> int:
        if Path(src).name == self.crash_on:
            raise OSError(errno.EIO, "simulated device error")
        return await super().copy_stream(src, dst, chunk_size)


@pytest.fixture
def card(tmp_path) -> Path:
    root = tmp_path / "card"
    (root / "DCIM" / "100CANON").mkdir(parents=True)
    for i in range(1, 6):
        (root / "DCIM" / "100CANON" / f"IMG_{i:04d}.JPG").write_bytes(f"frame-{i}".encode() * 100)
    return root


@pytest.fixture
def job(card, tmp_path) -> IngestionJob:
    (tmp_path / "dest").mkdir()
    return IngestionJob(
        project_id="proj-e2e",
        project_code="PRJ",
        source_root=card,
        destination_root=tmp_path / "dest",
        slots=[Slot(id="slot-hero", code="HERO", label="Hero", naming_prefix="PRJ_HERO")],
        folder_assignments={"DCIM/100CANON": "slot-hero"},
    )


@pytest.fixture
def ledger(tmp_path):
    store = SqliteLedgerStore(db_path=tmp_path / "ledger" / "ledger.db")
    yield store
    store.close()


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, copy_chunk_size=64, hash_chunk_size=64)


class TestIngestionEndToEnd:
    @pytest.mark.asyncio
    async def test_crash_and_resume(self, job, ledger, settings):
        first = await run_ingestion(
            job, ledger, settings, filesystem=CrashingFileSystem("IMG_0003.JPG"),
        )
        assert first.execution.state == "halted"
        assert first.execution.uploaded_count == 2
        assert await ledger.get_slot_sequence("slot-hero") == 0

        slot_dir = job.destination_root / "PRJ" / "source" / "IMG" / "HERO"
        assert sorted(p.name for p in slot_dir.iterdir()) == [
            "PRJ_HERO_0001.jpg", "PRJ_HERO_0002.jpg",
        ]

        second = await run_ingestion(job, ledger, settings)
        assert second.success
        assert len(second.preflight.already_uploaded) == 2
        assert [i.planned_sequence for i in second.preflight.pending_items] == [3, 4, 5]
        assert second.execution.uploaded_count == 3

        entries = await ledger.list_entries(job.project_id)
        assert [e.sequence for e in entries] == [1, 2, 3, 4, 5]
        assert len({e.sha256 for e in entries}) == 5
        assert await ledger.get_slot_sequence("slot-hero") == 5

        summary = await verify_project(job.project_id, ledger)
        assert summary.all_valid
        assert summary.checked == 5

    @pytest.mark.asyncio
    async def test_renamed_source_is_not_reuploaded(self, job, card, ledger, settings):
        await run_ingestion(job, ledger, settings)
        folder = card / "DCIM" / "100CANON"
        (folder / "IMG_0001.JPG").rename(folder / "renamed.JPG")

        report = await run_ingestion(job, ledger, settings)

        assert report.success
        assert len(report.preflight.already_uploaded) == 5
        assert report.execution.results == []

    @pytest.mark.asyncio
    async def test_racing_executors_copy_each_file_once(self, job, tmp_path, settings):
        db = tmp_path / "shared" / "ledger.db"
        ledger_a = SqliteLedgerStore(db_path=db)
        ledger_b = SqliteLedgerStore(db_path=db)
        try:
            scan = await scan_source(job.source_root, settings)
            plan = plan_ingestion(job, scan, settings)
            results, _ = await dry_run_plan(plan)
            preflight = await preflight_plan(job.project_id, plan, ledger_a, results)

            def executor(store, claimant):
                return StreamingExecutor(
                    ledger=store, project_id=job.project_id, project_code=job.project_code,
                    destination_root=job.destination_root, chunk_size=16, claimant=claimant,
                )

            result_a, result_b = await asyncio.gather(
                executor(ledger_a, "host-a").execute(preflight.pending_items),
                executor(ledger_b, "host-b").execute(preflight.pending_items),
            )

            states = {result_a.state, result_b.state}
            assert "completed" in states
            assert states <= {"completed", "halted"}
            for result in (result_a, result_b):
                if result.state == "halted":
                    assert result.results[-1].skip_reason == "claimed_elsewhere"
            assert result_a.uploaded_count + result_b.uploaded_count == 5
            entries = await ledger_a.list_entries(job.project_id)
            assert len(entries) == 5
            assert await ledger_a.get_slot_sequence("slot-hero") == 5
        finally:
            ledger_a.close()
            ledger_b.close()
