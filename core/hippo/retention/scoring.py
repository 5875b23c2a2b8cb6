"""Trace scoring - how worth keeping a trace is.

Three dimensions, each 0-100 and rounded only once it is fully computed:

quality (weight 0.35)
    base 50; -30 if the summary is under 100 chars, +15 if it is 200+;
    +10 per distinct tool (max +30); -40 for a trace with no steps

usefulness (weight 0.40)
    up to 65 for step count (full marks at 20 steps);
    +5 per distinct tool (max +25); +10 if a summary exists

efficiency (weight 0.25)
    100, minus 5 per second of average step latency above 1 s/step,
    minus 1 per second of total duration beyond 60 s (max -40);
    a trace with no steps scores 0

Out-of-range inputs (negative latency from clock skew) are clamped, never
rejected.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from hippo.tracing.schemas import ReasoningTrace

WEIGHTS = {"quality": 0.35, "usefulness": 0.40, "efficiency": 0.25}

SHORT_SUMMARY_CHARS = 100
LONG_SUMMARY_CHARS = 200
FULL_MARKS_STEPS = 20
SLOW_TRACE_SECONDS = 60
MAX_DURATION_PENALTY = 40


def clamp_score(value: float) -> int:
    """Round half up and clamp to 0-100."""
    return int(max(0, min(100, math.floor(value + 0.5))))


@dataclass(frozen=True)
class TraceScore:
    """Score of a single trace."""

    trace_id: str
    quality: int
    usefulness: int
    efficiency: int
    overall: int
    weights: dict[str, float] = field(default_factory=lambda: dict(WEIGHTS), compare=False)

    def to_dict(self) -> dict[str, int | str]:
        return {
            "trace_id": self.trace_id,
            "quality": self.quality,
            "usefulness": self.usefulness,
            "efficiency": self.efficiency,
            "overall": self.overall,
        }


def _quality(summary_len: int, tool_count: int, step_count: int) -> int:
    quality = 50.0
    if summary_len < SHORT_SUMMARY_CHARS:
        quality -= 30
    elif summary_len >= LONG_SUMMARY_CHARS:
        quality += 15
    quality += min(tool_count * 10, 30)
    if step_count == 0:
        quality -= 40
    return clamp_score(quality)


def _usefulness(has_summary: bool, tool_count: int, step_count: int) -> int:
    usefulness = min(step_count, FULL_MARKS_STEPS) / FULL_MARKS_STEPS * 65
    usefulness += min(tool_count * 5, 25)
    if has_summary:
        usefulness += 10
    return clamp_score(usefulness)


def _efficiency(total_latency_ms: int, step_count: int) -> int:
    if step_count == 0:
        return 0

    efficiency = 100.0
    latency_ms = max(0, total_latency_ms)

    seconds_per_step = latency_ms / step_count / 1000
    if seconds_per_step > 1:
        efficiency -= (seconds_per_step - 1) * 5

    total_seconds = latency_ms / 1000
    if total_seconds > SLOW_TRACE_SECONDS:
        efficiency -= min(total_seconds - SLOW_TRACE_SECONDS, MAX_DURATION_PENALTY)

    return clamp_score(efficiency)


def score_trace(trace: ReasoningTrace) -> TraceScore:
    """Score a trace. Pure: depends only on the trace."""
    summary = trace.summary or ""
    tool_count = len(trace.tools_used)
    step_count = trace.step_count

    quality = _quality(len(summary), tool_count, step_count)
    usefulness = _usefulness(bool(summary), tool_count, step_count)
    efficiency = _efficiency(trace.total_latency_ms, step_count)

    overall = clamp_score(
        quality * WEIGHTS["quality"]
        + usefulness * WEIGHTS["usefulness"]
        + efficiency * WEIGHTS["efficiency"]
    )

    return TraceScore(
        trace_id=trace.id,
        quality=quality,
        usefulness=usefulness,
        efficiency=efficiency,
        overall=overall,
    )
