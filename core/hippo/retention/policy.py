"""Retention policies - which traces stay queryable.

apply_policy(traces, policy):
1. score every trace and compute its age from ``completed_at``
2. decayed = clamp(overall - age_hours * decay_rate * 100)
3. drop traces whose undecayed overall is below ``min_score``
4. drop traces the policy's ``should_retain`` predicate rejects
5. sort by decayed score, best first, and keep ``max_traces``

The input is never mutated. ``RetentionSweeper`` applies a policy to a
trace store and deletes whatever was not retained.
"""

from __future__ import annotations

import logging
from contextlib import nullcontext
from dataclasses import dataclass, field
from typing import Callable

from hippo.retention.scoring import TraceScore, clamp_score, score_trace
from hippo.tracing.schemas import ReasoningTrace, now_ms
from hippo.tracing.store import TraceStore

logger = logging.getLogger(__name__)

MS_PER_HOUR = 3_600_000

RetainPredicate = Callable[[ReasoningTrace, TraceScore, float], bool]


def decayed_score(overall: int, age_hours: float, decay_rate: float) -> int:
    return clamp_score(overall - age_hours * decay_rate * 100)


def _retain_all(trace: ReasoningTrace, score: TraceScore, age_hours: float) -> bool:
    return True


@dataclass(frozen=True)
class RetentionPolicy:
    """A retention policy.

    ``decay_rate`` is the fraction of the 0-100 scale lost per hour of age.
    ``should_retain`` receives the trace, its undecayed score and its age in
    hours, and may apply its own notion of decay.
    """

    id: str
    name: str
    max_traces: int
    min_score: int
    decay_rate: float
    should_retain: RetainPredicate = field(default=_retain_all, compare=False)


def decay_threshold(decay_rate: float, threshold: int) -> RetainPredicate:
    """Predicate keeping traces whose decayed score is still >= ``threshold``."""

    def _should_retain(trace: ReasoningTrace, score: TraceScore, age_hours: float) -> bool:
        return score.overall - age_hours * decay_rate * 100 >= threshold

    return _should_retain


AGGRESSIVE_POLICY = RetentionPolicy(
    id="aggressive",
    name="Aggressive",
    max_traces=50,
    min_score=60,
    decay_rate=0.1,
    should_retain=decay_threshold(0.1, 60),
)

BALANCED_POLICY = RetentionPolicy(
    id="balanced",
    name="Balanced",
    max_traces=200,
    min_score=30,
    decay_rate=0.05,
    should_retain=decay_threshold(0.05, 30),
)

ARCHIVE_ALL_POLICY = RetentionPolicy(
    id="archive-all",
    name="Archive All",
    max_traces=1000,
    min_score=0,
    decay_rate=0.0,
)

POLICIES: dict[str, RetentionPolicy] = {
    policy.id: policy for policy in (AGGRESSIVE_POLICY, BALANCED_POLICY, ARCHIVE_ALL_POLICY)
}


def get_policy(name: str) -> RetentionPolicy:
    try:
        return POLICIES[name]
    except KeyError:
        raise ValueError(
            f"Unknown retention policy '{name}', expected one of {', '.join(POLICIES)}"
        ) from None


@dataclass(frozen=True)
class ScoredTrace:
    trace: ReasoningTrace
    score: TraceScore
    age_hours: float
    decayed_overall: int


def evaluate_policy(
    traces: list[ReasoningTrace],
    policy: RetentionPolicy,
    now: int | None = None,
) -> list[ScoredTrace]:
    """Scored survivors of ``policy``, best decayed score first."""
    now = now_ms() if now is None else now

    scored = []
    for trace in traces:
        score = score_trace(trace)
        age_hours = max(0.0, (now - trace.completed_at) / MS_PER_HOUR)
        scored.append(
            ScoredTrace(
                trace=trace,
                score=score,
                age_hours=age_hours,
                decayed_overall=decayed_score(score.overall, age_hours, policy.decay_rate),
            )
        )

    retained = [
        s
        for s in scored
        if s.score.overall >= policy.min_score
        and policy.should_retain(s.trace, s.score, s.age_hours)
    ]
    retained.sort(key=lambda s: s.decayed_overall, reverse=True)
    return retained[: policy.max_traces]


def apply_policy(
    traces: list[ReasoningTrace],
    policy: RetentionPolicy,
    now: int | None = None,
) -> list[ReasoningTrace]:
    """Traces retained by ``policy``. Returns a new list."""
    return [s.trace for s in evaluate_policy(traces, policy, now)]


@dataclass
class RetentionReport:
    policy_id: str
    retained: list[str] = field(default_factory=list)
    evicted: list[str] = field(default_factory=list)
    dry_run: bool = False

    def to_dict(self) -> dict:
        return {
            "policy_id": self.policy_id,
            "retained": list(self.retained),
            "evicted": list(self.evicted),
            "dry_run": self.dry_run,
        }


class RetentionSweeper:
    """Applies a retention policy to a trace store.

    When the store offers ``exclusive()`` the whole list-score-evict sequence
    runs under the population lock. A store without it is swept from a
    possibly stale snapshot: a trace added mid-sweep survives until the next
    sweep, and an evicted id that was re-put mid-sweep is deleted.
    """

    def __init__(self, store: TraceStore, policy: RetentionPolicy = BALANCED_POLICY) -> None:
        self._store = store
        self.policy = policy

    def sweep(self, dry_run: bool = False, now: int | None = None) -> RetentionReport:
        exclusive = getattr(self._store, "exclusive", None)
        with exclusive() if exclusive is not None else nullcontext():
            traces = self._store.list()
            kept = apply_policy(traces, self.policy, now)
            kept_ids = {t.id for t in kept}

            report = RetentionReport(policy_id=self.policy.id, dry_run=dry_run)
            report.retained = [t.id for t in kept]
            report.evicted = [t.id for t in traces if t.id not in kept_ids]

            if not dry_run:
                for trace_id in report.evicted:
                    self._store.delete(trace_id)

        logger.info(
            f"Retention sweep ({self.policy.id}{', dry run' if dry_run else ''}): "
            f"{len(report.retained)} retained, {len(report.evicted)} evicted"
        )
        return report
