"""Structural diff between two traces.

Steps are aligned by position, not by edit distance: row ``i`` compares
step ``i`` of each trace. Traces being compared are usually near-parallel
runs of the same query, where positional alignment is the meaningful view.
One inserted step early on shifts every later row to ``changed``; no
re-synchronization is attempted.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field

from hippo.tracing.schemas import ReasoningTrace, TraceStep


class DiffStatus(StrEnum):
    EQUAL = "equal"
    CHANGED = "changed"
    ADDED = "added"  # only B has a step here
    REMOVED = "removed"  # only A has a step here


class DiffRow(BaseModel):
    index: int
    status: DiffStatus
    step_a: TraceStep | None = None
    step_b: TraceStep | None = None


class TraceDiff(BaseModel):
    """Row-level diff plus metadata deltas (B relative to A)."""

    trace_a_id: str
    trace_b_id: str
    rows: list[DiffRow] = Field(default_factory=list)

    step_count_delta: int = 0
    latency_delta_ms: int = 0
    tools_only_in_a: list[str] = Field(default_factory=list)
    tools_only_in_b: list[str] = Field(default_factory=list)

    def counts(self) -> dict[str, int]:
        counts = {status.value: 0 for status in DiffStatus}
        for row in self.rows:
            counts[row.status.value] += 1
        return counts

    @property
    def identical(self) -> bool:
        return all(row.status == DiffStatus.EQUAL for row in self.rows)


def _step_key(step: TraceStep) -> tuple:
    return (step.kind, step.content, step.tool_name)


def diff_steps(steps_a: tuple[TraceStep, ...], steps_b: tuple[TraceStep, ...]) -> list[DiffRow]:
    """Classify each position ``0..max(len(a), len(b)) - 1``."""
    rows: list[DiffRow] = []
    for i in range(max(len(steps_a), len(steps_b))):
        a = steps_a[i] if i < len(steps_a) else None
        b = steps_b[i] if i < len(steps_b) else None

        if a is not None and b is not None:
            status = DiffStatus.EQUAL if _step_key(a) == _step_key(b) else DiffStatus.CHANGED
            rows.append(DiffRow(index=i, status=status, step_a=a, step_b=b))
        elif a is not None:
            rows.append(DiffRow(index=i, status=DiffStatus.REMOVED, step_a=a))
        else:
            rows.append(DiffRow(index=i, status=DiffStatus.ADDED, step_b=b))
    return rows


def diff_traces(trace_a: ReasoningTrace, trace_b: ReasoningTrace) -> TraceDiff:
    """Diff two traces. Pure: neither input is modified."""
    tools_a = trace_a.tools_used
    tools_b = trace_b.tools_used
    return TraceDiff(
        trace_a_id=trace_a.id,
        trace_b_id=trace_b.id,
        rows=diff_steps(trace_a.steps, trace_b.steps),
        step_count_delta=trace_b.step_count - trace_a.step_count,
        latency_delta_ms=trace_b.total_latency_ms - trace_a.total_latency_ms,
        tools_only_in_a=[t for t in tools_a if t not in tools_b],
        tools_only_in_b=[t for t in tools_b if t not in tools_a],
    )
