# src/execution/filesystem.py - v1
"""Filesystem access used by the dry run, the executor and verification.

Kept behind a small interface so batch transitions can be exercised against
an in-memory fake instead of real I/O.
"""

from __future__ import annotations

import asyncio
import os
import stat
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from slotingest.scan.hashing import DEFAULT_CHUNK_SIZE, hash_file_sha256


@dataclass(frozen=True)
class FileStat:
    size: int
    is_file: bool


class BaseFileSystem(ABC):
    """Interface for the filesystem operations the engine performs."""

    @abstractmethod
    async def stat(self, path: Path) -> FileStat:
        """Stat a path. Raises OSError (FileNotFoundError, PermissionError, ...)."""

    @abstractmethod
    async def exists(self, path: Path) -> bool:
        """True if a path exists."""

    @abstractmethod
    async def probe_open(self, path: Path) -> None:
        """Open and immediately close a read handle without reading content."""

    @abstractmethod
    async def makedirs(self, path: Path) -> None:
        """Create a directory tree (no error if present)."""

    @abstractmethod
    async def copy_stream(self, src: Path, dst: Path, chunk_size: int) -> int:
        """Stream src into dst (truncating it). Returns bytes written."""

    @abstractmethod
    async def sha256(self, path: Path) -> str:
        """Content hash of a file."""

    @abstractmethod
    async def remove(self, path: Path) -> None:
        """Delete a file if present."""


class LocalFileSystem(BaseFileSystem):
    """Local disk implementation."""

    async def stat(self, path: Path) -> FileStat:
        st = os.stat(path)
        return FileStat(size=st.st_size, is_file=stat.S_ISREG(st.st_mode))

    async def exists(self, path: Path) -> bool:
        return path.exists()

    async def probe_open(self, path: Path) -> None:
        with open(path, "rb"):
            pass

    async def makedirs(self, path: Path) -> None:
        path.mkdir(parents=True, exist_ok=True)

    async def copy_stream(self, src: Path, dst: Path, chunk_size: int = DEFAULT_CHUNK_SIZE) -> int:
        written = 0
        with open(src, "rb") as reader, open(dst, "wb") as writer:
            while True:
                chunk = reader.read(chunk_size)
                if not chunk:
                    break
                writer.write(chunk)
                written += len(chunk)
                await asyncio.sleep(0)
        return written

    async def sha256(self, path: Path) -> str:
        return await hash_file_sha256(path)

    async def remove(self, path: Path) -> None:
        path.unlink(missing_ok=True)
