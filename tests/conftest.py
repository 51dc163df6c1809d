# tests/conftest.py - v1
"""Shared test fixtures for all unit and integration tests.

Provides sample slots, a rename plan item factory, an in-memory filesystem
and a JSON ledger rooted in a temp directory.
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path

import pytest

from slotingest.core.models import Slot
from slotingest.execution.filesystem import BaseFileSystem, FileStat
from slotingest.ledger.json_store import JsonLedgerStore
from slotingest.logging.context import clear_context
from slotingest.planning.models import RenamePlanItem
from slotingest.scan.models import ScannedFile


# === FAKES ===


class FakeFileSystem(BaseFileSystem):
    """In-memory filesystem keyed by Path.

    Failure injection:
        stat_errors / open_errors / copy_errors: path -> exception to raise
        short_writes: destinations that receive one byte less than the source
        directories: paths that stat as non-files
    """

    def __init__(self) -> None:
        self.files: dict[Path, bytes] = {}
        self.directories: set[Path] = set()
        self.stat_errors: dict[Path, OSError] = {}
        self.open_errors: dict[Path, OSError] = {}
        self.copy_errors: dict[Path, OSError] = {}
        self.short_writes: set[Path] = set()
        self.copies: list[tuple[Path, Path]] = []
        self.removed: list[Path] = []

    def add(self, path: str | Path, data: bytes) -> Path:
        p = Path(path)
        self.files[p] = data
        return p

    async def stat(self, path: Path) -> FileStat:
        path = Path(path)
        if path in self.stat_errors:
            raise self.stat_errors[path]
        if path in self.directories:
            return FileStat(size=0, is_file=False)
        if path not in self.files:
            raise FileNotFoundError(2, "No such file or directory", str(path))
        return FileStat(size=len(self.files[path]), is_file=True)

    async def exists(self, path: Path) -> bool:
        return Path(path) in self.files

    async def probe_open(self, path: Path) -> None:
        path = Path(path)
        if path in self.open_errors:
            raise self.open_errors[path]
        await self.stat(path)

    async def makedirs(self, path: Path) -> None:
        self.directories.add(Path(path))

    async def copy_stream(self, src: Path, dst: Path, chunk_size: int) -> int:
        src, dst = Path(src), Path(dst)
        if src in self.copy_errors:
            raise self.copy_errors[src]
        if src not in self.files:
            raise FileNotFoundError(2, "No such file or directory", str(src))
        data = self.files[src]
        if dst in self.short_writes:
            data = data[:-1]
        self.files[dst] = data
        self.copies.append((src, dst))
        return len(data)

    async def sha256(self, path: Path) -> str:
        return hashlib.sha256(self.files[Path(path)]).hexdigest()

    async def remove(self, path: Path) -> None:
        self.files.pop(Path(path), None)
        self.removed.append(Path(path))


# === FIXTURES: Sample data ===


@pytest.fixture(autouse=True)
def _reset_log_context():
    clear_context()
    yield
    clear_context()
    # Handlers installed by setup_logging may hold a stream captured by pytest
    logging.getLogger("slotingest").handlers.clear()


@pytest.fixture
def hero_slot() -> Slot:
    return Slot(id="slot-hero", code="HERO", label="Hero")


@pytest.fixture
def bts_slot() -> Slot:
    return Slot(id="slot-bts", code="BTS", label="Behind the scenes")


@pytest.fixture
def make_scanned_file():
    """Factory for ScannedFile; sha256 and size derive from the content."""

    def _make(
        relative_path: str,
        content: bytes = b"data",
        root: str = "/src",
    ) -> ScannedFile:
        parent, _, name = relative_path.rpartition("/")
        ext = Path(name).suffix.lower()
        file_type = "image" if ext in (".jpg", ".png") else "video" if ext in (".mp4", ".mov") else "other"
        return ScannedFile(
            absolute_path=f"{root}/{relative_path}",
            relative_path=relative_path,
            parent_relative_path=parent or "/",
            name=name,
            size_bytes=len(content),
            extension=ext,
            file_type=file_type,
            sha256=hashlib.sha256(content).hexdigest(),
        )

    return _make


@pytest.fixture
def make_plan_item():
    """Factory for RenamePlanItem; sha256 and size derive from the content."""

    def _make(
        sequence: int = 1,
        content: bytes = b"image-bytes",
        source_path: str | None = None,
        slot_id: str = "slot-hero",
        slot_code: str = "HERO",
        slot_label: str = "Hero",
        prefix: str = "PRJ_HERO",
        extension: str = ".jpg",
        file_type: str = "image",
    ) -> RenamePlanItem:
        name = f"{prefix}_{sequence:04d}"
        source = source_path or f"/src/{slot_code.lower()}/file_{sequence}{extension}"
        return RenamePlanItem(
            slot_id=slot_id,
            slot_code=slot_code,
            slot_label=slot_label,
            source_path=source,
            relative_path=source.removeprefix("/src/"),
            source_filename=Path(source).name,
            file_type=file_type,
            sha256=hashlib.sha256(content).hexdigest(),
            size_bytes=len(content),
            planned_sequence=sequence,
            planned_name=name,
            planned_filename=f"{name}{extension}",
        )

    return _make


@pytest.fixture
def fake_fs() -> FakeFileSystem:
    return FakeFileSystem()


@pytest.fixture
def json_ledger(tmp_path) -> JsonLedgerStore:
    return JsonLedgerStore(ledger_root=tmp_path / "ledger")


@pytest.fixture
def media_tree(tmp_path) -> Path:
    """A small real source tree.

    source/
        hero/a.jpg, hero/b.jpg
        bts/clip.mp4
        notes.txt
        .hidden.jpg, .DS_Store
    """
    root = tmp_path / "source"
    (root / "hero").mkdir(parents=True)
    (root / "bts").mkdir()
    (root / "hero" / "a.jpg").write_bytes(b"hero-a")
    (root / "hero" / "b.jpg").write_bytes(b"hero-b-longer")
    (root / "bts" / "clip.mp4").write_bytes(b"video-clip")
    (root / "notes.txt").write_bytes(b"notes")
    (root / ".hidden.jpg").write_bytes(b"hidden")
    (root / ".DS_Store").write_bytes(b"junk")
    return root
