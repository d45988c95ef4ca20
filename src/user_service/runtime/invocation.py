"""Per-invocation logging context.

Each request or trigger invocation opens an ``invocation_scope``. The scope
yields an ``InvocationContext`` that callers pass explicitly where an id is
needed (e.g. the event publisher), and it contextualizes loguru for the
duration of the block so every log line emitted underneath carries the same
fields. The fields are removed when the block exits, however it exits.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from loguru import logger


@dataclass(frozen=True)
class InvocationContext:
    """Identity of a single invocation, threaded through its operations."""

    correlation_id: str
    user_id: str | None = None
    fields: dict[str, Any] = field(default_factory=dict)

    @property
    def log(self):
        """Logger bound to this invocation's fields."""
        return logger.bind(**self.log_fields())

    def log_fields(self) -> dict[str, Any]:
        values: dict[str, Any] = {"correlation_id": self.correlation_id}
        if self.user_id is not None:
            values["user_id"] = self.user_id
        values.update(self.fields)
        return values


@contextmanager
def invocation_scope(
    correlation_id: str | None = None,
    user_id: str | None = None,
    **fields: Any,
) -> Iterator[InvocationContext]:
    """Open a logging scope for one invocation.

    Args:
        correlation_id: Tracing id; a uuid4 is generated when omitted.
        user_id: Caller or subject id, if known.
        **fields: Extra structured fields attached to every log line.
    """
    ctx = InvocationContext(
        correlation_id=correlation_id or str(uuid.uuid4()),
        user_id=user_id,
        fields=fields,
    )
    with logger.contextualize(**ctx.log_fields()):
        yield ctx
