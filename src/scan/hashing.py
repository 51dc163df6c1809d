# src/scan/hashing.py - v1
"""Streaming SHA-256 content hashing with cooperative cancellation."""

from __future__ import annotations

import asyncio
import hashlib
from pathlib import Path

from slotingest.core.cancellation import CancellationToken

DEFAULT_CHUNK_SIZE = 1024 * 1024


async def hash_file_sha256(
    path: Path | str,
    token: CancellationToken | None = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> str:
    """Compute the SHA-256 of a file by streaming it chunk by chunk.

    The token is checked before every chunk, so a cancel request is honoured
    within one chunk read. Control is yielded to the event loop between
    chunks.

    Args:
        path: File to hash.
        token: Optional cancellation token.
        chunk_size: Bytes read per iteration.

    Returns:
        Lower-case hex digest.

    Raises:
        OperationCancelledError: If the token is cancelled mid-hash.
        OSError: On any read failure.
    """
    digest = hashlib.sha256()
    with open(path, "rb") as fh:
        while True:
            if token is not None:
                token.raise_if_cancelled("Scan cancelled by user")
            chunk = fh.read(chunk_size)
            if not chunk:
                break
            digest.update(chunk)
            await asyncio.sleep(0)
    return digest.hexdigest()


def hash_bytes_sha256(data: bytes) -> str:
    """SHA-256 of an in-memory buffer."""
    return hashlib.sha256(data).hexdigest()
