"""
Shared fixtures for hippo tests.

Traces are built directly from step specs so scores, ages and latencies are
exact and independent of the wall clock.
"""

from typing import Callable

import pytest

from hippo.tracing.schemas import ReasoningTrace, StepKind, TraceStep

BASE_TIME_MS = 1_700_000_000_000

StepSpec = tuple  # (kind, content) or (kind, content, tool_name)


def build_trace(
    query: str = "find papers on agent memory",
    steps: list[StepSpec] | None = None,
    summary: str | None = None,
    session_id: str = "session-1",
    trace_id: str = "trace-1",
    started_at: int = BASE_TIME_MS,
    latency_ms: int = 1000,
) -> ReasoningTrace:
    specs = steps or []
    per_step = latency_ms // len(specs) if specs else 0
    built = []
    for i, spec in enumerate(specs):
        kind, content = spec[0], spec[1]
        tool_name = spec[2] if len(spec) > 2 else None
        built.append(
            TraceStep(
                id=f"step-{i + 1}",
                kind=StepKind(kind),
                content=content,
                tool_name=tool_name,
                tool_args={"q": content} if tool_name else None,
                latency_ms=per_step,
                timestamp=started_at + per_step * (i + 1),
            )
        )
    return ReasoningTrace(
        id=trace_id,
        session_id=session_id,
        query=query,
        steps=tuple(built),
        started_at=started_at,
        completed_at=started_at + latency_ms,
        summary=summary,
    )


@pytest.fixture
def make_trace() -> Callable[..., ReasoningTrace]:
    """
    Factory fixture building a completed trace.

    Steps are ``(kind, content)`` or ``(kind, content, tool_name)`` tuples;
    total latency is spread evenly over the steps.
    """
    return build_trace


@pytest.fixture
def research_trace(make_trace) -> ReasoningTrace:
    return make_trace(
        steps=[
            ("user_message", "find papers on agent memory"),
            ("tool_call", "agent memory", "search"),
            ("tool_result", "3 papers found"),
            ("assistant_message", "Here are three papers on agent memory."),
        ],
        summary="Searched the literature for agent memory papers. " * 5,
        latency_ms=2000,
    )
