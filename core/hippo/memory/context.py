"""Prompt context assembly from past traces.

Given a new query, pick the most similar completed traces of the same
session and render them as compact text blocks for injection into a model
prompt.
"""

from __future__ import annotations

import json
import logging

from hippo.memory.similarity import find_similar
from hippo.tracing.schemas import ReasoningTrace, StepKind
from hippo.tracing.store import TraceStore

logger = logging.getLogger(__name__)

RESULT_PREVIEW_CHARS = 200


def format_trace_block(trace: ReasoningTrace) -> str:
    """Render one trace as a "past trace" block."""
    lines = [f'[Past reasoning trace - "{trace.query}"]']
    if trace.summary:
        lines.append(f"Summary: {trace.summary}")

    tool_calls = [
        f"  - {step.tool_name}({json.dumps(step.tool_args, sort_keys=True)})"
        for step in trace.steps_of(StepKind.TOOL_CALL)
    ]
    if tool_calls:
        lines.append("Tools used:")
        lines.extend(tool_calls)

    response = trace.final_response()
    lines.append(f"Result: {response[:RESULT_PREVIEW_CHARS] if response else 'N/A'}")
    lines.append("---")
    return "\n".join(lines)


class ContextAssembler:
    """Builds reasoning context for a query from a trace store."""

    def __init__(self, store: TraceStore, max_traces: int = 3) -> None:
        self._store = store
        self._max_traces = max_traces

    def select(
        self, query: str, session_id: str, max_traces: int | None = None
    ) -> list[ReasoningTrace]:
        pool = self._store.list(session_id)
        limit = self._max_traces if max_traces is None else max_traces
        return find_similar(query, pool, limit)

    def assemble_context(
        self, query: str, session_id: str, max_traces: int | None = None
    ) -> str:
        """Formatted past-trace blocks, or "" when the session has no traces."""
        selected = self.select(query, session_id, max_traces)
        if not selected:
            return ""
        logger.debug(f"Assembled context from {len(selected)} traces for session {session_id}")
        return "\n\n".join(format_trace_block(trace) for trace in selected)
