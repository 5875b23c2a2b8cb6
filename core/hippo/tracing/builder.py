"""TraceBuilder - records the steps of one in-flight agent run.

Usage:
    builder = TraceBuilder(trace_id, session_id, query, plugins=manager)
    builder.add_step(StepKind.USER_MESSAGE, query)
    builder.add_step(StepKind.TOOL_CALL, "", tool_name="search", tool_args={"q": "x"})
    trace = builder.complete(summary="...")

The builder is owned by the single run that produces the trace. Steps are
append-only; ``complete()`` freezes the trace and any further mutation
raises ``TraceCompletedError``.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable
from uuid import uuid4

from hippo.errors import TraceCompletedError
from hippo.tracing.plugins import PluginManager
from hippo.tracing.schemas import ReasoningTrace, StepKind, TraceStep, now_ms

logger = logging.getLogger(__name__)


class TraceBuilder:
    """Append-only recorder for an active trace.

    Thread-safe: uses a lock around step appends and completion.
    """

    def __init__(
        self,
        trace_id: str | None = None,
        session_id: str = "default",
        query: str = "",
        plugins: PluginManager | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.trace_id = trace_id or f"trace-{uuid4().hex[:12]}"
        self.session_id = session_id
        self.query = query
        self._plugins = plugins
        self._clock = clock
        self._steps: list[TraceStep] = []
        self._started_at = clock()
        self._trace: ReasoningTrace | None = None
        self._lock = threading.Lock()

        if self._plugins:
            self._plugins.emit_start(self.trace_id, query)

    @property
    def completed(self) -> bool:
        return self._trace is not None

    @property
    def steps(self) -> tuple[TraceStep, ...]:
        return tuple(self._steps)

    def add_step(
        self,
        kind: StepKind | str,
        content: str = "",
        tool_name: str | None = None,
        tool_args: dict[str, Any] | None = None,
    ) -> TraceStep:
        """Append a step, timing it against the previous step (or trace start)."""
        with self._lock:
            if self._trace is not None:
                raise TraceCompletedError(self.trace_id)

            now = self._clock()
            previous = self._steps[-1].timestamp if self._steps else self._started_at
            step = TraceStep(
                id=f"step-{len(self._steps) + 1}",
                kind=StepKind(kind),
                content=content,
                tool_name=tool_name,
                tool_args=dict(tool_args) if tool_args is not None else None,
                latency_ms=now - previous,
                timestamp=now,
            )
            self._steps.append(step)

        if self._plugins:
            self._plugins.emit_step(self.trace_id, step)
        return step

    def complete(self, summary: str | None = None) -> ReasoningTrace:
        """Freeze the trace. Derived fields are recomputed from the steps."""
        with self._lock:
            if self._trace is not None:
                raise TraceCompletedError(self.trace_id)

            trace = ReasoningTrace(
                id=self.trace_id,
                session_id=self.session_id,
                query=self.query,
                # Steps handed out by add_step must not alias the frozen trace.
                steps=tuple(step.model_copy(deep=True) for step in self._steps),
                started_at=self._started_at,
                completed_at=self._clock(),
                summary=summary,
            )
            if self._plugins:
                trace = self._plugins.transform(trace)
            self._trace = trace

        if self._plugins:
            self._plugins.emit_complete(trace)
        logger.debug(f"Completed trace {trace.id} with {trace.step_count} steps")
        return trace
