# src/scan/scanner.py - v1
"""Directory scanner: recursive discovery and content hashing of source media.

Walks the source tree depth-first over an explicit worklist, hashes every
eligible file and aggregates the inventory into folder groups.

Workflow:
    1. Pop a directory, list its entries in name order
    2. Skip symlinks, hidden and system entries per ScanOptions
    3. Queue subdirectories, lstat + stream-hash regular files
    4. Aggregate files into FolderGroups keyed by parent folder
"""

from __future__ import annotations

import logging
import os
import stat
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath

from slotingest.core.cancellation import CancellationToken, OperationCancelledError
from slotingest.scan.file_types import (
    detect_file_type,
    is_hidden,
    is_system_directory,
    is_system_file,
)
from slotingest.scan.hashing import DEFAULT_CHUNK_SIZE, hash_file_sha256
from slotingest.scan.models import (
    ROOT_FOLDER,
    FolderGroup,
    ScanIssue,
    ScannedFile,
    ScanOptions,
    ScanResult,
)

logger = logging.getLogger(__name__)


class DirectoryScanner:
    """Scan a source directory into a content-addressed file inventory."""

    def __init__(
        self,
        options: ScanOptions | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self._options = options or ScanOptions()
        self._chunk_size = chunk_size

    async def scan(
        self,
        root_path: Path | str,
        token: CancellationToken | None = None,
    ) -> ScanResult:
        """Scan root_path recursively.

        Args:
            root_path: Directory to scan.
            token: Cooperative cancellation token. A fresh one is used if None.

        Returns:
            ScanResult with status "completed", "cancelled" or "failed".
            Only a completed result carries files.
        """
        token = token or CancellationToken()
        root = Path(root_path).expanduser().resolve()
        scanned_at = datetime.now(timezone.utc)

        if not root.is_dir():
            msg = f"Scan root is not a directory: {root}"
            logger.error(msg)
            return ScanResult(
                status="failed", root_path=str(root), scanned_at=scanned_at, error=msg,
            )

        files: list[ScannedFile] = []
        skipped: list[ScanIssue] = []
        try:
            await self._walk(root, token, files, skipped)
            token.raise_if_cancelled("Scan cancelled by user")
        except OperationCancelledError as exc:
            logger.info("Scan of %s cancelled after %d files", root, len(files))
            return ScanResult(
                status="cancelled", root_path=str(root), scanned_at=scanned_at,
                error=str(exc),
            )
        except OSError as exc:
            logger.error("Scan of %s failed: %s", root, exc)
            return ScanResult(
                status="failed", root_path=str(root), scanned_at=scanned_at,
                error=f"Unable to read scan root: {exc}",
            )

        files.sort(key=lambda f: f.relative_path)
        folder_groups = build_folder_groups(files)
        total_bytes = sum(f.size_bytes for f in files)

        logger.info(
            "Scanned %s: %d files, %d folders, %d bytes, %d skipped",
            root, len(files), len(folder_groups), total_bytes, len(skipped),
        )
        return ScanResult(
            status="completed",
            root_path=str(root),
            scanned_at=scanned_at,
            files=files,
            folder_groups=folder_groups,
            total_files=len(files),
            total_bytes=total_bytes,
            skipped=skipped,
        )

    async def _walk(
        self,
        root: Path,
        token: CancellationToken,
        files: list[ScannedFile],
        skipped: list[ScanIssue],
    ) -> None:
        """Depth-first traversal over an explicit stack of directories.

        Raises OSError only when the root itself cannot be listed.
        """
        stack: list[Path] = [root]
        while stack:
            current = stack.pop()
            token.raise_if_cancelled("Scan cancelled by user")

            try:
                with os.scandir(current) as it:
                    entries = sorted(it, key=lambda e: e.name)
            except OSError as exc:
                if current == root:
                    raise
                logger.warning("Skipping unreadable directory %s: %s", current, exc)
                skipped.append(ScanIssue(path=str(current), reason=str(exc)))
                continue

            subdirs: list[Path] = []
            for entry in entries:
                token.raise_if_cancelled("Scan cancelled by user")

                if entry.is_symlink():
                    logger.debug("Skipping symlink %s", entry.path)
                    continue

                try:
                    is_dir = entry.is_dir(follow_symlinks=False)
                    is_file = entry.is_file(follow_symlinks=False)
                except OSError as exc:
                    skipped.append(ScanIssue(path=entry.path, reason=str(exc)))
                    continue

                if is_dir:
                    if self._ignore_directory(entry.name):
                        continue
                    subdirs.append(Path(entry.path))
                    continue

                if not is_file or self._ignore_file(entry.name):
                    continue

                scanned = await self._scan_file(root, Path(entry.path), token, skipped)
                if scanned is not None:
                    files.append(scanned)

            # Reversed so the alphabetically first subdirectory is visited next
            stack.extend(reversed(subdirs))

    async def _scan_file(
        self,
        root: Path,
        path: Path,
        token: CancellationToken,
        skipped: list[ScanIssue],
    ) -> ScannedFile | None:
        """Stat and hash one file. Returns None if the file had to be skipped."""
        try:
            st = path.lstat()
            if not stat.S_ISREG(st.st_mode):
                return None
            sha256 = await hash_file_sha256(path, token, self._chunk_size)
        except OSError as exc:
            logger.warning("Skipping unreadable file %s: %s", path, exc)
            skipped.append(ScanIssue(path=str(path), reason=str(exc)))
            return None

        relative = PurePosixPath(path.relative_to(root).as_posix())
        parent = relative.parent.as_posix()
        extension = path.suffix.lower()
        return ScannedFile(
            absolute_path=str(path),
            relative_path=relative.as_posix(),
            parent_relative_path=ROOT_FOLDER if parent == "." else parent,
            name=path.name,
            size_bytes=st.st_size,
            extension=extension,
            file_type=detect_file_type(extension),
            sha256=sha256,
        )

    def _ignore_directory(self, name: str) -> bool:
        if self._options.ignore_hidden and is_hidden(name):
            return True
        return self._options.ignore_system_files and is_system_directory(name)

    def _ignore_file(self, name: str) -> bool:
        if self._options.ignore_hidden and is_hidden(name):
            return True
        return self._options.ignore_system_files and is_system_file(name)


def build_folder_groups(files: list[ScannedFile]) -> list[FolderGroup]:
    """Aggregate files by parent folder, sorted by folder path."""
    groups: dict[str, FolderGroup] = {}
    for f in files:
        group = groups.get(f.parent_relative_path)
        if group is None:
            group = FolderGroup(relative_path=f.parent_relative_path)
            groups[f.parent_relative_path] = group
        group.file_count += 1
        group.total_bytes += f.size_bytes
        group.type_counts.add(f.file_type)
    return [groups[key] for key in sorted(groups)]
