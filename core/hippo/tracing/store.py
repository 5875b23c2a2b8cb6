"""TraceStore - the trace population the engine reads, ranks and evicts.

Two implementations share one contract (get / list / put / delete):

- InMemoryTraceStore: dict-backed, for tests and ephemeral sessions
- FileTraceStore: one JSON file per trace

    {base_path}/
      traces/
        {trace_id}.json

Only completed (immutable) traces enter a store, so readers get a snapshot
list and never observe a trace mid-append. Traces cross the store boundary
as copies: mutating the ``tool_args`` of a returned step never reaches the
stored trace. ``exclusive()`` holds the population lock across a
read-score-evict sequence so a retention sweep is serialized against
concurrent ``put`` calls.

File-backed trace ids must match ``[A-Za-z0-9][A-Za-z0-9_.-]*``; anything
else could name a path outside ``traces/``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Protocol, runtime_checkable

from hippo.errors import TraceNotFoundError
from hippo.tracing.schemas import ReasoningTrace, TraceStats

logger = logging.getLogger(__name__)

TRACE_ID_PATTERN = re.compile(r"[A-Za-z0-9][A-Za-z0-9_.-]*")


@runtime_checkable
class TraceStore(Protocol):
    """Key-value store of completed traces."""

    def get(self, trace_id: str) -> ReasoningTrace | None:
        ...

    def list(self, session_id: str | None = None) -> list[ReasoningTrace]:
        """Traces (optionally of one session), newest first."""
        ...

    def put(self, trace: ReasoningTrace) -> None:
        ...

    def delete(self, trace_id: str) -> bool:
        ...


def require_trace(store: TraceStore, trace_id: str) -> ReasoningTrace:
    """Look up a trace or raise ``TraceNotFoundError``."""
    trace = store.get(trace_id)
    if trace is None:
        raise TraceNotFoundError(trace_id)
    return trace


def _detached(trace: ReasoningTrace) -> ReasoningTrace:
    """Deep copy, so mutable step payloads (tool_args) are never shared."""
    return trace.model_copy(deep=True)


def _newest_first(traces: list[ReasoningTrace]) -> list[ReasoningTrace]:
    return sorted(traces, key=lambda t: t.started_at, reverse=True)


class _LockedStore:
    """Shared population lock and helpers."""

    def __init__(self) -> None:
        self._lock = threading.RLock()

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        """Hold the population lock for a multi-step read-then-write."""
        with self._lock:
            yield

    def require(self, trace_id: str) -> ReasoningTrace:
        return require_trace(self, trace_id)  # type: ignore[arg-type]

    def count(self) -> int:
        return len(self.list())  # type: ignore[attr-defined]

    def stats(self) -> TraceStats:
        return TraceStats.from_traces(self.list())  # type: ignore[attr-defined]


class InMemoryTraceStore(_LockedStore):
    """Dict-backed trace store. Not persistent."""

    def __init__(self) -> None:
        super().__init__()
        self._traces: dict[str, ReasoningTrace] = {}

    def get(self, trace_id: str) -> ReasoningTrace | None:
        with self._lock:
            trace = self._traces.get(trace_id)
        return _detached(trace) if trace is not None else None

    def list(self, session_id: str | None = None) -> list[ReasoningTrace]:
        with self._lock:
            snapshot = [_detached(t) for t in self._traces.values()]
        if session_id is not None:
            snapshot = [t for t in snapshot if t.session_id == session_id]
        return _newest_first(snapshot)

    def put(self, trace: ReasoningTrace) -> None:
        stored = _detached(trace)
        with self._lock:
            self._traces[stored.id] = stored

    def delete(self, trace_id: str) -> bool:
        with self._lock:
            return self._traces.pop(trace_id, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._traces.clear()

    def count(self) -> int:
        with self._lock:
            return len(self._traces)


class FileTraceStore(_LockedStore):
    """Persistent trace store, one JSON file per trace."""

    def __init__(self, base_path: Path) -> None:
        super().__init__()
        self._base_path = Path(base_path)
        self._traces_dir = self._base_path / "traces"

    def ensure_dirs(self) -> None:
        """Create storage directories if they don't exist."""
        self._traces_dir.mkdir(parents=True, exist_ok=True)

    def get_trace_path(self, trace_id: str) -> Path:
        if not TRACE_ID_PATTERN.fullmatch(trace_id):
            raise ValueError(f"Invalid trace id for file storage: {trace_id!r}")
        return self._traces_dir / f"{trace_id}.json"

    def get(self, trace_id: str) -> ReasoningTrace | None:
        if not TRACE_ID_PATTERN.fullmatch(trace_id):
            return None
        path = self.get_trace_path(trace_id)
        with self._lock:
            if not path.exists():
                return None
            return self._read(path)

    def list(self, session_id: str | None = None) -> list[ReasoningTrace]:
        self.ensure_dirs()
        results: list[ReasoningTrace] = []
        with self._lock:
            paths = list(self._traces_dir.glob("*.json"))
            for path in paths:
                trace = self._read(path)
                if trace is None:
                    continue
                if session_id is not None and trace.session_id != session_id:
                    continue
                results.append(trace)
        return _newest_first(results)

    def put(self, trace: ReasoningTrace) -> None:
        self.ensure_dirs()
        path = self.get_trace_path(trace.id)
        content = trace.model_dump_json(indent=2)
        with self._lock:
            path.write_text(content, encoding="utf-8")
        logger.debug(f"Saved trace {trace.id} to {path}")

    def delete(self, trace_id: str) -> bool:
        if not TRACE_ID_PATTERN.fullmatch(trace_id):
            return False
        path = self.get_trace_path(trace_id)
        with self._lock:
            if path.exists():
                path.unlink()
                return True
        return False

    async def get_async(self, trace_id: str) -> ReasoningTrace | None:
        return await asyncio.to_thread(self.get, trace_id)

    async def list_async(self, session_id: str | None = None) -> list[ReasoningTrace]:
        return await asyncio.to_thread(self.list, session_id)

    async def put_async(self, trace: ReasoningTrace) -> None:
        await asyncio.to_thread(self.put, trace)

    def _read(self, path: Path) -> ReasoningTrace | None:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return ReasoningTrace.model_validate(data)
        except Exception as e:
            logger.warning(f"Failed to load trace from {path}: {e}")
            return None
