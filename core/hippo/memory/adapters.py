"""Composable external memory.

External memory systems (Mem0, Zep, ...) plug in through the
``MemoryAdapter`` protocol. They are a best-effort side channel:

- writes go through an ``AdapterDispatcher`` that owns one bounded queue and
  one worker task per adapter; a full queue drops the write, a failing
  adapter is logged, and neither ever blocks the primary store
- reads (search) run in parallel with a timeout; failures are logged and the
  adapter simply contributes nothing

Worker results are pushed onto a bounded outcome channel (the oldest
outcome is dropped when it is full); ``ComposableMemory`` drains it on
every operation.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections import Counter
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable
from urllib.parse import quote

import httpx
from pydantic import BaseModel

from hippo.config import HippoConfig
from hippo.errors import AdapterError
from hippo.tracing.schemas import ReasoningTrace

if TYPE_CHECKING:
    from hippo.engine import HippoEngine

logger = logging.getLogger(__name__)

MEM0_API_BASE = "https://api.mem0.ai/v1/memories"
ZEP_API_BASE = "https://api.getzep.com/api/v2"


class AdapterHit(BaseModel):
    key: str
    data: Any = None
    score: float = 0.0


@runtime_checkable
class MemoryAdapter(Protocol):
    """Protocol for external memory systems."""

    id: str
    name: str

    async def store(self, key: str, data: Any) -> None:
        ...

    async def retrieve(self, key: str) -> Any | None:
        ...

    async def search(self, query: str, limit: int = 5) -> list[AdapterHit]:
        ...

    async def delete(self, key: str) -> None:
        ...


def _as_text(data: Any) -> str:
    return data if isinstance(data, str) else json.dumps(data, default=str)


class _HttpAdapter:
    """Shared httpx plumbing for REST-backed adapters."""

    id = "http"

    def __init__(
        self,
        api_key: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._api_key = api_key
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def _headers(self) -> dict[str, str]:
        raise NotImplementedError

    def _check(self, response: httpx.Response, action: str, allow_404: bool = False) -> None:
        if response.status_code == 404 and allow_404:
            return
        if response.status_code >= 400:
            raise AdapterError(
                self.id, f"{action} failed: HTTP {response.status_code} {response.text[:200]}"
            )

    async def aclose(self) -> None:
        await self._client.aclose()


class Mem0Adapter(_HttpAdapter):
    """Mem0 cloud memory."""

    id = "mem0"
    name = "Mem0 Cloud"

    def __init__(
        self,
        api_key: str,
        user_id: str = "hippo-reasoning",
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        super().__init__(api_key, client=client, timeout=timeout)
        self._user_id = user_id

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Token {self._api_key}",
            "Content-Type": "application/json",
        }

    async def store(self, key: str, data: Any) -> None:
        response = await self._client.post(
            MEM0_API_BASE,
            headers=self._headers,
            json={
                "messages": [{"role": "user", "content": _as_text(data)}],
                "user_id": self._user_id,
                "metadata": {"hippo_key": key},
            },
        )
        self._check(response, "store")

    async def retrieve(self, key: str) -> Any | None:
        response = await self._client.get(
            f"{MEM0_API_BASE}/{quote(key, safe='')}", headers=self._headers
        )
        if response.status_code == 404:
            return None
        self._check(response, "retrieve")
        return response.json()

    async def search(self, query: str, limit: int = 5) -> list[AdapterHit]:
        response = await self._client.post(
            f"{MEM0_API_BASE}/search",
            headers=self._headers,
            json={"query": query, "user_id": self._user_id, "limit": limit},
        )
        self._check(response, "search")
        results = response.json().get("results") or []
        return [
            AdapterHit(key=r.get("id", ""), data=r.get("memory"), score=r.get("score", 0.0))
            for r in results
        ]

    async def delete(self, key: str) -> None:
        response = await self._client.delete(
            f"{MEM0_API_BASE}/{quote(key, safe='')}", headers=self._headers
        )
        self._check(response, "delete", allow_404=True)


class ZepAdapter(_HttpAdapter):
    """Zep cloud session memory."""

    id = "zep"
    name = "Zep Cloud"

    def __init__(
        self,
        api_key: str,
        session_id: str = "hippo-reasoning",
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        super().__init__(api_key, client=client, timeout=timeout)
        self._session_id = session_id

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    @property
    def _session_url(self) -> str:
        return f"{ZEP_API_BASE}/sessions/{quote(self._session_id, safe='')}"

    async def store(self, key: str, data: Any) -> None:
        response = await self._client.post(
            f"{self._session_url}/memory",
            headers=self._headers,
            json={
                "messages": [
                    {
                        "role_type": "assistant",
                        "content": _as_text(data),
                        "metadata": {"hippo_key": key},
                    }
                ]
            },
        )
        self._check(response, "store")

    async def retrieve(self, key: str) -> Any | None:
        response = await self._client.get(f"{self._session_url}/memory", headers=self._headers)
        if response.status_code == 404:
            return None
        self._check(response, "retrieve")

        for message in response.json().get("messages") or []:
            if (message.get("metadata") or {}).get("hippo_key") == key:
                content = message.get("content", "")
                try:
                    return json.loads(content)
                except (json.JSONDecodeError, TypeError):
                    return content
        return None

    async def search(self, query: str, limit: int = 5) -> list[AdapterHit]:
        response = await self._client.post(
            f"{self._session_url}/search",
            headers=self._headers,
            json={"text": query, "search_type": "similarity", "limit": limit},
        )
        self._check(response, "search")

        hits = []
        for result in response.json().get("results") or []:
            message = result.get("message")
            if not message:
                continue
            hits.append(
                AdapterHit(
                    key=(message.get("metadata") or {}).get("hippo_key", "unknown"),
                    data=message.get("content"),
                    score=result.get("score") or 0.0,
                )
            )
        return hits

    async def delete(self, key: str) -> None:
        # Zep only deletes whole sessions; per-message deletes are unsupported.
        if key != self._session_id:
            logger.debug(f"Zep cannot delete individual memory '{key}', skipping")
            return
        response = await self._client.delete(f"{self._session_url}/memory", headers=self._headers)
        self._check(response, "delete", allow_404=True)


def trace_to_summary(trace: ReasoningTrace) -> str:
    """Plain-text rendering of a trace for external memory systems."""
    tools = f"Tools: {', '.join(trace.tools_used)}" if trace.tools_used else "No tools used"
    response = trace.final_response()
    lines = [f"Query: {trace.query}"]
    if trace.summary:
        lines.append(f"Summary: {trace.summary}")
    lines.append(tools)
    lines.append(f"Steps: {trace.step_count}, Latency: {trace.total_latency_ms}ms")
    lines.append(f"Result: {response[:300] if response else 'N/A'}")
    return "\n".join(lines)


@dataclass
class AdapterOutcome:
    """Result of one background adapter write."""

    adapter_id: str
    key: str
    ok: bool
    error: str | None = None


class AdapterDispatcher:
    """Fans trace writes out to adapters through bounded per-adapter queues.

    Usage:
        dispatcher = AdapterDispatcher([Mem0Adapter(key)], queue_size=100)
        await dispatcher.start()
        dispatcher.submit(trace)          # never blocks
        outcomes = dispatcher.drain()     # whatever has finished so far
        await dispatcher.close()
    """

    def __init__(
        self,
        adapters: list[MemoryAdapter] | None = None,
        queue_size: int = 100,
        search_timeout: float = 10.0,
        outcome_limit: int = 1000,
    ) -> None:
        self._adapters: dict[str, MemoryAdapter] = {a.id: a for a in adapters or []}
        self._queue_size = queue_size
        self._search_timeout = search_timeout
        self._queues: dict[str, asyncio.Queue[tuple[str, str]]] = {}
        self._workers: dict[str, asyncio.Task[None]] = {}
        self._outcomes: asyncio.Queue[AdapterOutcome] = asyncio.Queue(maxsize=outcome_limit)
        self._started = False

    @classmethod
    def from_config(cls, config: HippoConfig) -> "AdapterDispatcher":
        """Dispatcher over the adapters enabled in ``config``."""
        return cls(
            configured_adapters(config),
            queue_size=config.adapter_queue_size,
            search_timeout=config.adapter_timeout_seconds,
        )

    @property
    def adapters(self) -> list[MemoryAdapter]:
        return list(self._adapters.values())

    async def start(self) -> None:
        if self._started:
            return
        for adapter in self._adapters.values():
            self._start_worker(adapter)
        self._started = True

    def _start_worker(self, adapter: MemoryAdapter) -> None:
        queue: asyncio.Queue[tuple[str, str]] = asyncio.Queue(maxsize=self._queue_size)
        self._queues[adapter.id] = queue
        self._workers[adapter.id] = asyncio.create_task(self._run_worker(adapter, queue))

    async def add_adapter(self, adapter: MemoryAdapter) -> None:
        await self.remove_adapter(adapter.id)
        self._adapters[adapter.id] = adapter
        if self._started:
            self._start_worker(adapter)
        logger.info(f"Added memory adapter: {adapter.name} ({adapter.id})")

    async def remove_adapter(self, adapter_id: str) -> bool:
        adapter = self._adapters.pop(adapter_id, None)
        if adapter is None:
            return False
        self._queues.pop(adapter_id, None)
        worker = self._workers.pop(adapter_id, None)
        if worker is not None:
            worker.cancel()
            await asyncio.gather(worker, return_exceptions=True)
        logger.info(f"Removed memory adapter: {adapter_id}")
        return True

    def submit(self, trace: ReasoningTrace) -> int:
        """Queue a trace for every adapter. Returns how many writes were queued."""
        if not self._started:
            logger.warning("AdapterDispatcher not started, dropping adapter writes")
            return 0

        summary = trace_to_summary(trace)
        queued = 0
        for adapter_id, queue in self._queues.items():
            try:
                queue.put_nowait((trace.id, summary))
                queued += 1
            except asyncio.QueueFull:
                logger.warning(f"Adapter '{adapter_id}' queue full, dropping trace {trace.id}")
                self._push_outcome(
                    AdapterOutcome(adapter_id, trace.id, ok=False, error="queue full")
                )
        return queued

    async def _run_worker(self, adapter: MemoryAdapter, queue: asyncio.Queue) -> None:
        while True:
            key, summary = await queue.get()
            try:
                await adapter.store(key, summary)
                self._push_outcome(AdapterOutcome(adapter.id, key, ok=True))
            except Exception as e:
                logger.warning(f"Adapter '{adapter.id}' store failed (non-blocking): {e}")
                self._push_outcome(AdapterOutcome(adapter.id, key, ok=False, error=str(e)))
            finally:
                queue.task_done()

    def _push_outcome(self, outcome: AdapterOutcome) -> None:
        """Record an outcome, dropping the oldest one when the channel is full."""
        if self._outcomes.full():
            self._outcomes.get_nowait()
        self._outcomes.put_nowait(outcome)

    def drain(self) -> list[AdapterOutcome]:
        """Collect every outcome produced so far without waiting."""
        outcomes = []
        while True:
            try:
                outcomes.append(self._outcomes.get_nowait())
            except asyncio.QueueEmpty:
                return outcomes

    async def flush(self) -> None:
        """Wait until every queued write has been attempted."""
        await asyncio.gather(*(queue.join() for queue in self._queues.values()))

    async def search(
        self, query: str, limit: int = 3
    ) -> list[tuple[MemoryAdapter, list[AdapterHit]]]:
        """Search every adapter in parallel; failed or slow adapters are skipped."""
        adapters = self.adapters

        async def _search(adapter: MemoryAdapter) -> list[AdapterHit]:
            return await asyncio.wait_for(adapter.search(query, limit), self._search_timeout)

        results = await asyncio.gather(*(_search(a) for a in adapters), return_exceptions=True)

        hits = []
        for adapter, result in zip(adapters, results):
            if isinstance(result, BaseException):
                logger.warning(f"Adapter '{adapter.id}' search failed (non-blocking): {result}")
                continue
            if result:
                hits.append((adapter, result))
        return hits

    async def close(self) -> None:
        for worker in self._workers.values():
            worker.cancel()
        await asyncio.gather(*self._workers.values(), return_exceptions=True)
        self._workers.clear()
        self._queues.clear()
        self._started = False

        for adapter in self._adapters.values():
            aclose = getattr(adapter, "aclose", None)
            if aclose is not None:
                await aclose()


def format_adapter_hits(adapter: MemoryAdapter, hits: list[AdapterHit]) -> str:
    lines = [f"[External memory - {adapter.name}]"]
    for hit in hits:
        lines.append(f"  - (score: {hit.score:.2f}) {_as_text(hit.data)[:300]}")
    return "\n".join(lines)


class ComposableMemory:
    """Primary engine plus best-effort external memory adapters.

    Engine calls may touch disk (file stores, retention sweeps) and run in a
    worker thread. Every operation drains the dispatcher's outcome channel
    into ``write_counts``.
    """

    def __init__(self, engine: HippoEngine, dispatcher: AdapterDispatcher) -> None:
        self._engine = engine
        self._dispatcher = dispatcher
        self.write_counts: Counter[str] = Counter()

    @classmethod
    def from_config(
        cls, engine: HippoEngine, config: HippoConfig | None = None
    ) -> "ComposableMemory":
        """Composable memory over the adapters enabled in ``config``.

        Defaults to the engine's own configuration.
        """
        return cls(engine, AdapterDispatcher.from_config(config or engine.config))

    @property
    def dispatcher(self) -> AdapterDispatcher:
        return self._dispatcher

    async def start(self) -> None:
        await self._dispatcher.start()

    async def close(self) -> None:
        self._collect_outcomes()
        await self._dispatcher.close()

    def _collect_outcomes(self) -> None:
        outcomes = self._dispatcher.drain()
        if not outcomes:
            return
        for outcome in outcomes:
            self.write_counts["ok" if outcome.ok else "failed"] += 1
        failed = sum(1 for o in outcomes if not o.ok)
        logger.debug(f"Adapter writes: {len(outcomes) - failed} ok, {failed} failed")

    async def record_trace(self, trace: ReasoningTrace) -> ReasoningTrace:
        """Store in the engine first, then hand the trace to the adapters."""
        await asyncio.to_thread(self._engine.record_trace, trace)
        self._dispatcher.submit(trace)
        self._collect_outcomes()
        return trace

    async def assemble_context(
        self, query: str, session_id: str, max_traces: int | None = None
    ) -> str:
        base = await asyncio.to_thread(
            self._engine.assemble_context, query, session_id, max_traces
        )
        enrichment = "\n\n".join(
            format_adapter_hits(adapter, hits)
            for adapter, hits in await self._dispatcher.search(query)
        )
        self._collect_outcomes()
        if not enrichment:
            return base
        return f"{base}\n\n{enrichment}" if base else enrichment


def configured_adapters(config: HippoConfig) -> list[MemoryAdapter]:
    """Adapters enabled by API keys in the configuration."""
    adapters: list[MemoryAdapter] = []
    if config.mem0_api_key:
        adapters.append(Mem0Adapter(config.mem0_api_key, timeout=config.adapter_timeout_seconds))
        logger.info("Mem0 adapter configured")
    if config.zep_api_key:
        adapters.append(ZepAdapter(config.zep_api_key, timeout=config.adapter_timeout_seconds))
        logger.info("Zep adapter configured")
    if not adapters:
        logger.info("No external memory adapters configured (set MEM0_API_KEY or ZEP_API_KEY)")
    return adapters
