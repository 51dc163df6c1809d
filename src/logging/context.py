# src/logging/context.py - v1
"""Run context attached to every log line: project, run, step and slot.

A single context variable holds an immutable LogContext, so asyncio tasks
spawned during a run inherit a consistent snapshot.
"""

from __future__ import annotations

import contextvars
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass, replace
from typing import Any


@dataclass(frozen=True)
class LogContext:
    project_id: str | None = None
    run_id: str | None = None
    slot_id: str | None = None
    step: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Set fields only, for JSON log injection."""
        return {k: v for k, v in asdict(self).items() if v is not None}


_EMPTY = LogContext()
_current: contextvars.ContextVar[LogContext] = contextvars.ContextVar(
    "slotingest_log_context", default=_EMPTY
)


def get_context() -> LogContext:
    return _current.get()


def set_run_context(project_id: str, run_id: str) -> None:
    """Bind project and run ids (once per ingestion run)."""
    _current.set(replace(_current.get(), project_id=project_id, run_id=run_id))


def set_step_context(step: str, slot_id: str | None = None) -> None:
    """Enter a pipeline step; the slot is reset unless given."""
    _current.set(replace(_current.get(), step=step, slot_id=slot_id))


@contextmanager
def slot_scope(slot_id: str) -> Iterator[None]:
    """Tag log lines with slot_id for the duration of the block."""
    token = _current.set(replace(_current.get(), slot_id=slot_id))
    try:
        yield
    finally:
        _current.reset(token)


def clear_context() -> None:
    _current.set(_EMPTY)
