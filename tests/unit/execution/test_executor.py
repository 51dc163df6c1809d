# tests/unit/execution/test_executor.py - v1
"""Tests for execution/executor.py - fail-fast batch, claims, sequence advance."""

from __future__ import annotations

import errno
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from slotingest.core.cancellation import CancellationToken
from slotingest.execution.executor import ExecutionBatch, StreamingExecutor
from slotingest.execution.models import DryRunFileResult
from slotingest.execution.preflight import ResumePreflightEngine
from slotingest.ledger.models import LedgerEntry

PROJECT = "proj-1"
DEST = Path("/dest")


def _dest(item) -> Path:
    kind = {"image": "IMG", "video": "VID", "other": "OTHER"}[item.file_type]
    return DEST / "PRJ" / "source" / kind / item.slot_code / item.planned_filename


def _executor(ledger, fs, claimant="exec-1"):
    return StreamingExecutor(
        ledger=ledger, project_id=PROJECT, project_code="PRJ",
        destination_root=DEST, filesystem=fs, chunk_size=4, claimant=claimant,
    )


def _stage(fs, items, contents):
    for item, content in zip(items, contents):
        fs.add(item.source_path, content)


def _entry(item, path="/elsewhere/x.jpg"):
    return LedgerEntry(
        project_id=PROJECT, slot_id=item.slot_id, sha256=item.sha256,
        final_path=path, filename=Path(path).name, size_bytes=item.size_bytes,
        sequence=item.planned_sequence, completed_at=datetime.now(timezone.utc),
    )


class TestStreamingExecutor:
    @pytest.mark.asyncio
    async def test_all_items_uploaded(self, fake_fs, json_ledger, make_plan_item):
        contents = [b"one", b"two", b"three"]
        items = [make_plan_item(i + 1, c) for i, c in enumerate(contents)]
        _stage(fake_fs, items, contents)

        result = await _executor(json_ledger, fake_fs).execute(items)

        assert result.state == "completed"
        assert result.success
        assert result.uploaded_count == 3
        assert [r.destination_path for r in result.results] == [str(_dest(i)) for i in items]
        assert fake_fs.files[_dest(items[2])] == b"three"
        entries = await json_ledger.list_entries(PROJECT)
        assert {e.sha256 for e in entries} == {i.sha256 for i in items}
        assert result.advanced_slots == {"slot-hero": 3}
        assert await json_ledger.get_slot_sequence("slot-hero") == 3

    @pytest.mark.asyncio
    async def test_empty_batch(self, fake_fs, json_ledger):
        result = await _executor(json_ledger, fake_fs).execute([])
        assert result.state == "completed"
        assert result.results == []
        assert result.advanced_slots == {}

    @pytest.mark.asyncio
    async def test_first_item_fails_halts_batch(self, fake_fs, json_ledger, make_plan_item):
        items = [make_plan_item(1, b"first"), make_plan_item(2, b"second")]
        _stage(fake_fs, items, [b"first", b"second"])
        fake_fs.copy_errors[Path(items[0].source_path)] = OSError(errno.EIO, "I/O error")

        result = await _executor(json_ledger, fake_fs).execute(items)

        assert result.state == "halted"
        assert result.failed_item == items[0]
        assert "I/O error" in result.error
        assert result.not_attempted == [items[1]]
        assert [r.status for r in result.results] == ["failed"]
        assert await json_ledger.list_entries(PROJECT) == []
        assert result.advanced_slots == {}
        assert await json_ledger.get_slot_sequence("slot-hero") == 0
        assert fake_fs.copies == []

    @pytest.mark.asyncio
    async def test_failed_item_claim_released(self, fake_fs, json_ledger, make_plan_item):
        item = make_plan_item(1, b"first")
        _stage(fake_fs, [item], [b"first"])
        fake_fs.copy_errors[Path(item.source_path)] = OSError(errno.EIO, "I/O error")

        await _executor(json_ledger, fake_fs, claimant="a").execute([item])

        assert await json_ledger.try_claim(PROJECT, item.sha256, "b") is True

    @pytest.mark.asyncio
    async def test_size_mismatch_fails_and_cleans_up(self, fake_fs, json_ledger, make_plan_item):
        item = make_plan_item(1, b"payload")
        _stage(fake_fs, [item], [b"payload"])
        fake_fs.short_writes.add(_dest(item))

        result = await _executor(json_ledger, fake_fs).execute([item])

        assert result.state == "halted"
        assert "Size mismatch" in result.error
        assert _dest(item) not in fake_fs.files
        assert _dest(item) in fake_fs.removed
        assert await json_ledger.list_entries(PROJECT) == []

    @pytest.mark.asyncio
    async def test_success_before_failure_is_kept(self, fake_fs, json_ledger, make_plan_item):
        items = [make_plan_item(i, f"c{i}".encode()) for i in range(1, 4)]
        _stage(fake_fs, items, [f"c{i}".encode() for i in range(1, 4)])
        fake_fs.copy_errors[Path(items[1].source_path)] = OSError(errno.EIO, "boom")

        result = await _executor(json_ledger, fake_fs).execute(items)

        assert [r.status for r in result.results] == ["success", "failed"]
        assert result.not_attempted == [items[2]]
        assert result.per_slot_max_sequence == {"slot-hero": 1}
        assert result.advanced_slots == {}
        entries = await json_ledger.list_entries(PROJECT)
        assert [e.sha256 for e in entries] == [items[0].sha256]

    @pytest.mark.asyncio
    async def test_skips_content_completed_meanwhile(self, fake_fs, json_ledger, make_plan_item):
        items = [make_plan_item(1, b"a"), make_plan_item(2, b"b")]
        _stage(fake_fs, items, [b"a", b"b"])
        await json_ledger.insert_entry(_entry(items[0]))

        result = await _executor(json_ledger, fake_fs).execute(items)

        assert result.state == "completed"
        assert result.results[0].status == "skipped"
        assert result.results[0].skip_reason == "already_uploaded"
        assert result.skipped_count == 1
        assert result.uploaded_count == 1
        assert result.advanced_slots == {"slot-hero": 2}

    @pytest.mark.asyncio
    async def test_content_claimed_elsewhere_halts(self, fake_fs, json_ledger, make_plan_item):
        item = make_plan_item(1, b"a")
        _stage(fake_fs, [item], [b"a"])
        assert await json_ledger.try_claim(PROJECT, item.sha256, "other-host")

        result = await _executor(json_ledger, fake_fs, claimant="me").execute([item])

        assert result.state == "halted"
        assert not result.success
        assert result.results[0].skip_reason == "claimed_elsewhere"
        assert result.failed_item == item
        assert "claimed by another executor" in result.error
        assert fake_fs.copies == []
        assert await json_ledger.list_entries(PROJECT) == []

    @pytest.mark.asyncio
    async def test_leftover_claim_keeps_later_items_unrecorded(
        self, fake_fs, json_ledger, make_plan_item,
    ):
        contents = [b"first", b"second"]
        items = [make_plan_item(i + 1, c) for i, c in enumerate(contents)]
        _stage(fake_fs, items, contents)
        # Claim left behind by a run that crashed mid-copy, still within its TTL
        assert await json_ledger.try_claim(PROJECT, items[0].sha256, "crashed-run")

        result = await _executor(json_ledger, fake_fs, claimant="resumed").execute(items)

        assert result.state == "halted"
        assert [(r.planned_sequence, r.status) for r in result.results] == [(1, "skipped")]
        assert result.not_attempted == [items[1]]
        assert await json_ledger.list_entries(PROJECT) == []
        assert result.advanced_slots == {}
        assert await json_ledger.get_slot_sequence("slot-hero") == 0

    @pytest.mark.asyncio
    async def test_cancel_between_items(self, fake_fs, json_ledger, make_plan_item):
        contents = [b"one", b"two", b"three"]
        items = [make_plan_item(i + 1, c) for i, c in enumerate(contents)]
        _stage(fake_fs, items, contents)
        token = CancellationToken()
        copy = fake_fs.copy_stream

        async def copy_then_cancel(src, dst, chunk_size):
            written = await copy(src, dst, chunk_size)
            token.cancel()
            return written

        fake_fs.copy_stream = copy_then_cancel
        result = await _executor(json_ledger, fake_fs).execute(items, token)

        assert result.state == "cancelled"
        assert not result.success
        assert result.uploaded_count == 1
        assert result.not_attempted == items[1:]
        assert result.error == "Execution cancelled by user"
        assert len(await json_ledger.list_entries(PROJECT)) == 1
        assert result.advanced_slots == {}

    @pytest.mark.asyncio
    async def test_sequence_never_decreases(self, fake_fs, json_ledger, make_plan_item):
        await json_ledger.advance_slot_sequence("slot-hero", 10)
        item = make_plan_item(2, b"a")
        _stage(fake_fs, [item], [b"a"])

        result = await _executor(json_ledger, fake_fs).execute([item])

        assert result.advanced_slots == {"slot-hero": 10}
        assert await json_ledger.get_slot_sequence("slot-hero") == 10

    @pytest.mark.asyncio
    async def test_reuses_identical_existing_destination(
        self, fake_fs, json_ledger, make_plan_item,
    ):
        item = make_plan_item(1, b"payload")
        _stage(fake_fs, [item], [b"payload"])
        fake_fs.add(_dest(item), b"payload")

        result = await _executor(json_ledger, fake_fs).execute([item])

        assert result.state == "completed"
        assert fake_fs.copies == []
        assert len(await json_ledger.list_entries(PROJECT)) == 1

    @pytest.mark.asyncio
    async def test_refuses_to_overwrite_different_destination(
        self, fake_fs, json_ledger, make_plan_item,
    ):
        item = make_plan_item(1, b"payload")
        _stage(fake_fs, [item], [b"payload"])
        fake_fs.add(_dest(item), b"someone else's file")

        result = await _executor(json_ledger, fake_fs).execute([item])

        assert result.state == "halted"
        assert "Refusing to overwrite" in result.error
        assert fake_fs.files[_dest(item)] == b"someone else's file"

    @pytest.mark.asyncio
    async def test_ledger_query_failure_halts(self, fake_fs, make_plan_item):
        ledger = AsyncMock()
        ledger.query_completed_shas.side_effect = ConnectionError("ledger down")
        items = [make_plan_item(1, b"a"), make_plan_item(2, b"b")]
        _stage(fake_fs, items, [b"a", b"b"])

        result = await _executor(ledger, fake_fs).execute(items)

        assert result.state == "halted"
        assert result.error == "ledger down"
        assert fake_fs.copies == []
        ledger.advance_slot_sequence.assert_not_called()

    @pytest.mark.asyncio
    async def test_insert_failure_releases_claim(self, fake_fs, make_plan_item):
        ledger = AsyncMock()
        ledger.query_completed_shas.return_value = set()
        ledger.try_claim.return_value = True
        ledger.insert_entry.side_effect = RuntimeError("write failed")
        item = make_plan_item(1, b"a")
        _stage(fake_fs, [item], [b"a"])

        result = await _executor(ledger, fake_fs, claimant="me").execute([item])

        assert result.state == "halted"
        ledger.release_claim.assert_awaited_once_with(PROJECT, item.sha256, "me")

    @pytest.mark.asyncio
    async def test_other_slot_advances_when_it_completed(
        self, fake_fs, json_ledger, make_plan_item,
    ):
        a1 = make_plan_item(1, b"a1", slot_id="sa", slot_code="A", slot_label="A")
        a2 = make_plan_item(2, b"a2", slot_id="sa", slot_code="A", slot_label="A")
        b1 = make_plan_item(1, b"b1", slot_id="sb", slot_code="B", slot_label="B")
        _stage(fake_fs, [a1, a2, b1], [b"a1", b"a2", b"b1"])
        fake_fs.copy_errors[Path(b1.source_path)] = OSError(errno.EIO, "boom")

        result = await _executor(json_ledger, fake_fs).execute([a1, a2, b1])

        assert result.state == "halted"
        assert result.advanced_slots == {"sa": 2}
        assert await json_ledger.get_slot_sequence("sb") == 0

    @pytest.mark.asyncio
    async def test_advance_failure_recorded(self, fake_fs, make_plan_item):
        ledger = AsyncMock()
        ledger.query_completed_shas.return_value = set()
        ledger.try_claim.return_value = True
        ledger.advance_slot_sequence.side_effect = RuntimeError("counter store down")
        item = make_plan_item(1, b"a")
        _stage(fake_fs, [item], [b"a"])

        result = await _executor(ledger, fake_fs).execute([item])

        assert result.state == "completed"
        assert result.sequence_errors == {"slot-hero": "counter store down"}

    @pytest.mark.asyncio
    async def test_resume_uploads_remaining_without_duplicates(
        self, fake_fs, json_ledger, make_plan_item,
    ):
        contents = [f"file-{i}".encode() for i in range(1, 6)]
        items = [make_plan_item(i + 1, c) for i, c in enumerate(contents)]
        _stage(fake_fs, items, contents)
        fake_fs.copy_errors[Path(items[2].source_path)] = OSError(errno.EIO, "crash")

        first = await _executor(json_ledger, fake_fs).execute(items)
        assert first.uploaded_count == 2

        del fake_fs.copy_errors[Path(items[2].source_path)]
        completed = await json_ledger.query_completed_shas(PROJECT, {i.sha256 for i in items})
        probes = [
            DryRunFileResult(source_path=i.source_path, ok=True, expected_size_bytes=i.size_bytes)
            for i in items
        ]
        preflight = ResumePreflightEngine().preflight(items, completed, probes)
        assert [i.planned_sequence for i in preflight.pending_items] == [3, 4, 5]

        second = await _executor(json_ledger, fake_fs).execute(preflight.pending_items)

        assert second.uploaded_count == 3
        entries = await json_ledger.list_entries(PROJECT)
        assert len(entries) == 5
        assert len({e.sha256 for e in entries}) == 5
        assert len(fake_fs.copies) == 5
        assert await json_ledger.get_slot_sequence("slot-hero") == 5


class TestExecutionBatch:
    @pytest.mark.asyncio
    async def test_step_transitions(self, fake_fs, json_ledger, make_plan_item):
        items = [make_plan_item(1, b"a"), make_plan_item(2, b"b")]
        _stage(fake_fs, items, [b"a", b"b"])
        batch = ExecutionBatch(
            items, ledger=json_ledger, filesystem=fake_fs, project_id=PROJECT,
            project_code="PRJ", destination_root=DEST,
        )
        assert batch.state == "running"
        assert await batch.step() == "running"
        assert len(batch.pending) == 1
        assert await batch.step() == "completed"
        assert await batch.step() == "completed"
        assert len(batch.results) == 2

    @pytest.mark.asyncio
    async def test_halted_is_terminal(self, fake_fs, json_ledger, make_plan_item):
        items = [make_plan_item(1, b"a"), make_plan_item(2, b"b")]
        batch = ExecutionBatch(
            items, ledger=json_ledger, filesystem=fake_fs, project_id=PROJECT,
            project_code="PRJ", destination_root=DEST,
        )
        # Sources were never staged, so the first copy fails
        assert await batch.step() == "halted"
        assert await batch.step() == "halted"
        assert batch.pending == [items[1]]
