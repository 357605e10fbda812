"""Log context enrichment utilities."""

from __future__ import annotations

import contextlib
from collections.abc import Iterator

import structlog


def bind_context(**kwargs: object) -> None:
    """Bind key-value pairs to the current logging context (task-local)."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear the current logging context."""
    structlog.contextvars.clear_contextvars()


@contextlib.contextmanager
def snapshot_context(sequence: int) -> Iterator[None]:
    """Tag every log line emitted while processing one snapshot."""
    with structlog.contextvars.bound_contextvars(snapshot_seq=sequence):
        yield
