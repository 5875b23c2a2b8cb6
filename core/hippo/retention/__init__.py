"""Trace Retention - outcome-driven scoring, decay and eviction."""

from hippo.retention.policy import (
    AGGRESSIVE_POLICY,
    ARCHIVE_ALL_POLICY,
    BALANCED_POLICY,
    POLICIES,
    RetentionPolicy,
    RetentionReport,
    RetentionSweeper,
    ScoredTrace,
    apply_policy,
    decay_threshold,
    evaluate_policy,
    get_policy,
)
from hippo.retention.scoring import TraceScore, clamp_score, score_trace

__all__ = [
    "TraceScore",
    "score_trace",
    "clamp_score",
    "RetentionPolicy",
    "RetentionReport",
    "RetentionSweeper",
    "ScoredTrace",
    "AGGRESSIVE_POLICY",
    "BALANCED_POLICY",
    "ARCHIVE_ALL_POLICY",
    "POLICIES",
    "apply_policy",
    "evaluate_policy",
    "decay_threshold",
    "get_policy",
]
