"""Hippo - reasoning-trace memory for agents.

Records agent reasoning traces, retrieves the most relevant past traces for
a new query, retires stale or low-value traces, diffs traces and gates
deployments on regression tests derived from them.
"""

from hippo.config import HippoConfig
from hippo.engine import HippoEngine
from hippo.errors import (
    HippoError,
    NoRegressionTestsError,
    NotFoundError,
    RegressionTestNotFoundError,
    TraceCompletedError,
    TraceNotFoundError,
)
from hippo.tracing.schemas import ReasoningTrace, StepKind, TraceStep

__version__ = "0.3.0"

__all__ = [
    "HippoConfig",
    "HippoEngine",
    "ReasoningTrace",
    "TraceStep",
    "StepKind",
    "HippoError",
    "NotFoundError",
    "TraceNotFoundError",
    "RegressionTestNotFoundError",
    "TraceCompletedError",
    "NoRegressionTestsError",
]
