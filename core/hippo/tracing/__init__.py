"""Reasoning trace recording, storage and comparison.

- TraceBuilder: append-only recorder for one agent run
- ReasoningTrace / TraceStep: immutable trace records
- TraceStore: in-memory and file-backed trace populations
- PluginManager: lifecycle hooks with per-plugin fault isolation
- diff_traces: positional structural diff of two traces
"""

from hippo.tracing.builder import TraceBuilder
from hippo.tracing.diff import DiffRow, DiffStatus, TraceDiff, diff_traces
from hippo.tracing.plugins import (
    LatencyAlertPlugin,
    LoggingPlugin,
    PluginManager,
    SensitiveDataPlugin,
    TracePlugin,
)
from hippo.tracing.schemas import ReasoningTrace, StepKind, TraceStats, TraceStep
from hippo.tracing.store import FileTraceStore, InMemoryTraceStore, TraceStore, require_trace

__all__ = [
    "TraceBuilder",
    "ReasoningTrace",
    "TraceStep",
    "StepKind",
    "TraceStats",
    "TraceStore",
    "InMemoryTraceStore",
    "FileTraceStore",
    "require_trace",
    "TracePlugin",
    "PluginManager",
    "LoggingPlugin",
    "LatencyAlertPlugin",
    "SensitiveDataPlugin",
    "DiffRow",
    "DiffStatus",
    "TraceDiff",
    "diff_traces",
]
