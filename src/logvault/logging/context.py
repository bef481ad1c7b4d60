"""
Diagnostic context bound to the current thread or task.

Values bound here are merged into every event logged from the same context
and persisted under the document's `context` key. Values are stored as
strings.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

import structlog


def bind_context(**values: Any) -> None:
    structlog.contextvars.bind_contextvars(**{k: str(v) for k, v in values.items()})


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


def get_context() -> dict[str, str]:
    return {k: str(v) for k, v in structlog.contextvars.get_contextvars().items()}


@contextmanager
def bound_context(**values: Any) -> Iterator[None]:
    """Bind values for the duration of a block, restoring the previous context after."""
    with structlog.contextvars.bound_contextvars(**{k: str(v) for k, v in values.items()}):
        yield
