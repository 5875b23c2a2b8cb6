"""Pydantic schemas for reasoning traces.

Trace format:
    ReasoningTrace
    ├── id, session_id, query
    ├── steps: tuple[TraceStep, ...]   (ordered, immutable once appended)
    ├── started_at / completed_at      (epoch milliseconds)
    ├── summary
    └── derived: total_latency_ms, tools_used, step_count

Derived fields are computed from the steps and timestamps on every access.
They are serialized for readers but ignored on load, so a stored or
caller-supplied value can never disagree with the steps.
"""

from __future__ import annotations

import time
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class StepKind(StrEnum):
    """Kind of event recorded in a trace step."""

    USER_MESSAGE = "user_message"
    ASSISTANT_MESSAGE = "assistant_message"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    REASONING = "reasoning"


class TraceStep(BaseModel):
    """A single ordered event within a trace."""

    model_config = ConfigDict(frozen=True)

    id: str
    kind: StepKind
    content: str = ""
    tool_name: str | None = None
    tool_args: dict[str, Any] | None = None
    latency_ms: int = 0  # since previous step, or since trace start for the first step
    timestamp: int = Field(default_factory=now_ms)


class ReasoningTrace(BaseModel):
    """A completed, immutable record of how an agent answered one query."""

    model_config = ConfigDict(frozen=True)

    id: str
    session_id: str
    query: str
    steps: tuple[TraceStep, ...] = ()
    started_at: int
    completed_at: int
    summary: str | None = None

    @computed_field
    @property
    def total_latency_ms(self) -> int:
        return self.completed_at - self.started_at

    @computed_field
    @property
    def tools_used(self) -> list[str]:
        tools: list[str] = []
        for step in self.steps:
            if step.kind == StepKind.TOOL_CALL and step.tool_name and step.tool_name not in tools:
                tools.append(step.tool_name)
        return tools

    @computed_field
    @property
    def step_count(self) -> int:
        return len(self.steps)

    def to_document(self) -> str:
        """Searchable text: query, space-joined tool names and summary."""
        parts = [self.query] if self.query else []
        tools = self.tools_used
        if tools:
            parts.append(" ".join(tools))
        if self.summary:
            parts.append(self.summary)
        return " ".join(parts)

    def steps_of(self, kind: StepKind) -> list[TraceStep]:
        return [s for s in self.steps if s.kind == kind]

    def final_response(self) -> str | None:
        """Content of the last assistant message, if any."""
        messages = self.steps_of(StepKind.ASSISTANT_MESSAGE)
        return messages[-1].content if messages else None


class TraceStats(BaseModel):
    """Aggregate statistics over a trace population."""

    total_traces: int = 0
    avg_steps: int = 0
    avg_latency_ms: int = 0
    total_tool_calls: int = 0

    @classmethod
    def from_traces(cls, traces: list[ReasoningTrace]) -> "TraceStats":
        """Compute statistics from a list of traces."""
        if not traces:
            return cls()

        n = len(traces)
        return cls(
            total_traces=n,
            avg_steps=round(sum(t.step_count for t in traces) / n),
            avg_latency_ms=round(sum(t.total_latency_ms for t in traces) / n),
            total_tool_calls=sum(len(t.tools_used) for t in traces),
        )
