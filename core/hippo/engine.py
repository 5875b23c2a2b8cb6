"""HippoEngine - an explicitly constructed handle over one trace population.

Every component (trace store, regression storage, plugins, retention,
context assembly, regression gate) hangs off the engine instance instead of
process-wide globals, so several isolated engines can coexist.

Usage:
    with HippoEngine(HippoConfig(storage_path=Path(".hippo"))) as engine:
        builder = engine.start_trace("find papers on agent memory", session_id="s1")
        builder.add_step(StepKind.USER_MESSAGE, "find papers on agent memory")
        engine.record_trace(builder.complete(summary="..."))

        context = engine.assemble_context("agent memory benchmarks", "s1")
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from hippo.config import HippoConfig
from hippo.memory.context import ContextAssembler
from hippo.memory.similarity import find_similar
from hippo.retention.policy import RetentionPolicy, RetentionReport, RetentionSweeper, get_policy
from hippo.retention.scoring import TraceScore, score_trace
from hippo.testing.regression.gate import RegressionGate, ResponseJudge
from hippo.testing.regression.schemas import RegressionTest
from hippo.testing.regression.storage import RegressionStorage
from hippo.tracing.builder import TraceBuilder
from hippo.tracing.diff import TraceDiff, diff_traces
from hippo.tracing.plugins import PluginManager, default_plugins
from hippo.tracing.schemas import ReasoningTrace, TraceStats
from hippo.tracing.store import FileTraceStore, InMemoryTraceStore, TraceStore, require_trace

logger = logging.getLogger(__name__)


class HippoEngine:
    """Reasoning-trace memory engine."""

    def __init__(
        self,
        config: HippoConfig | None = None,
        trace_store: TraceStore | None = None,
        regression_storage: RegressionStorage | None = None,
        plugins: PluginManager | None = None,
        judge: ResponseJudge | None = None,
    ) -> None:
        self.config = config or HippoConfig()
        storage_path = self.config.storage_path

        if trace_store is None:
            trace_store = FileTraceStore(storage_path) if storage_path else InMemoryTraceStore()
        self.traces = trace_store
        self.regressions = regression_storage or RegressionStorage(storage_path)
        self.plugins = plugins if plugins is not None else PluginManager(default_plugins())

        self.policy = get_policy(self.config.retention_policy)
        self.sweeper = RetentionSweeper(self.traces, self.policy)
        self.context = ContextAssembler(self.traces, self.config.context_max_traces)
        self.gate = RegressionGate(
            self.regressions,
            judge,
            default_min_score=self.config.regression_min_score,
        )

        self._recorded = 0
        self._counter_lock = threading.Lock()
        self._closed = False

        logger.info(
            f"HippoEngine opened ({'file' if storage_path else 'memory'} storage, "
            f"policy {self.policy.id})"
        )

    def __enter__(self) -> "HippoEngine":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        logger.info("HippoEngine closed")

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("HippoEngine is closed")

    # Traces

    def start_trace(
        self, query: str, session_id: str = "default", trace_id: str | None = None
    ) -> TraceBuilder:
        self._ensure_open()
        return TraceBuilder(trace_id, session_id, query, plugins=self.plugins)

    def record_trace(self, trace: ReasoningTrace) -> ReasoningTrace:
        """Add a completed trace to the population.

        With ``sweep_every`` set, every Nth recorded trace triggers a
        retention sweep.
        """
        self._ensure_open()
        self.traces.put(trace)

        sweep_every = self.config.sweep_every
        if sweep_every:
            with self._counter_lock:
                self._recorded += 1
                due = self._recorded % sweep_every == 0
            if due:
                self.apply_retention()
        return trace

    def get_trace(self, trace_id: str) -> ReasoningTrace:
        return require_trace(self.traces, trace_id)

    def list_traces(self, session_id: str | None = None) -> list[ReasoningTrace]:
        return self.traces.list(session_id)

    def delete_trace(self, trace_id: str) -> bool:
        return self.traces.delete(trace_id)

    def stats(self) -> TraceStats:
        return TraceStats.from_traces(self.traces.list())

    # Retrieval

    def find_similar(
        self, query: str, session_id: str | None = None, top_k: int = 3
    ) -> list[ReasoningTrace]:
        return find_similar(query, self.traces.list(session_id), top_k)

    def assemble_context(
        self, query: str, session_id: str, max_traces: int | None = None
    ) -> str:
        return self.context.assemble_context(query, session_id, max_traces)

    # Scoring and retention

    def score(self, trace_id: str) -> TraceScore:
        return score_trace(self.get_trace(trace_id))

    def apply_retention(
        self, policy: RetentionPolicy | None = None, dry_run: bool = False
    ) -> RetentionReport:
        self._ensure_open()
        if policy is None:
            return self.sweeper.sweep(dry_run=dry_run)
        return RetentionSweeper(self.traces, policy).sweep(dry_run=dry_run)

    # Diff

    def diff(self, trace_a_id: str, trace_b_id: str) -> TraceDiff:
        return diff_traces(self.get_trace(trace_a_id), self.get_trace(trace_b_id))

    # Regression

    def create_regression_test(
        self, trace_id: str, name: str | None = None, min_score: float | None = None
    ) -> RegressionTest:
        self._ensure_open()
        return self.gate.create_test(self.get_trace(trace_id), name=name, min_score=min_score)


def open_engine(storage_path: str | Path | None = None, **overrides: object) -> HippoEngine:
    """Engine configured from the environment, with an optional storage override."""
    config = HippoConfig.from_env()
    if storage_path is not None:
        config.storage_path = Path(storage_path)
    for key, value in overrides.items():
        setattr(config, key, value)
    return HippoEngine(config)
