"""Trace plugins - hooks and transforms around the trace lifecycle.

A plugin subclasses ``TracePlugin`` and overrides any of:

- on_start(trace_id, query)     a trace was started
- on_step(trace_id, step)       a step was appended
- on_complete(trace)            a trace was completed
- transform(trace) -> trace     rewrite a completed trace before it is stored

The ``PluginManager`` calls every registered plugin in registration order.
A failing plugin is logged and skipped; it never breaks the host or the
plugins after it.
"""

from __future__ import annotations

import json
import logging
import re

from hippo.tracing.schemas import ReasoningTrace, TraceStep

logger = logging.getLogger(__name__)


class TracePlugin:
    """Base plugin. Every hook is a no-op unless overridden."""

    id: str = "plugin"
    name: str = "Plugin"
    version: str = "1.0.0"

    def on_start(self, trace_id: str, query: str) -> None:
        pass

    def on_step(self, trace_id: str, step: TraceStep) -> None:
        pass

    def on_complete(self, trace: ReasoningTrace) -> None:
        pass

    def transform(self, trace: ReasoningTrace) -> ReasoningTrace:
        return trace


class PluginManager:
    """Dispatches lifecycle hooks to registered plugins with per-call isolation."""

    def __init__(self, plugins: list[TracePlugin] | None = None) -> None:
        self._plugins: dict[str, TracePlugin] = {}
        for plugin in plugins or []:
            self.register(plugin)

    def register(self, plugin: TracePlugin) -> None:
        """Register a plugin, replacing any plugin with the same id."""
        self._plugins[plugin.id] = plugin

    def unregister(self, plugin_id: str) -> None:
        self._plugins.pop(plugin_id, None)

    @property
    def plugins(self) -> list[TracePlugin]:
        return list(self._plugins.values())

    def emit_start(self, trace_id: str, query: str) -> None:
        for plugin in self.plugins:
            try:
                plugin.on_start(trace_id, query)
            except Exception as e:
                logger.warning(f"Plugin '{plugin.id}' failed in on_start: {e}")

    def emit_step(self, trace_id: str, step: TraceStep) -> None:
        for plugin in self.plugins:
            try:
                plugin.on_step(trace_id, step)
            except Exception as e:
                logger.warning(f"Plugin '{plugin.id}' failed in on_step: {e}")

    def emit_complete(self, trace: ReasoningTrace) -> None:
        for plugin in self.plugins:
            try:
                plugin.on_complete(trace)
            except Exception as e:
                logger.warning(f"Plugin '{plugin.id}' failed in on_complete: {e}")

    def transform(self, trace: ReasoningTrace) -> ReasoningTrace:
        """Run transforms as a pipeline. A failing transform passes its input through."""
        current = trace
        for plugin in self.plugins:
            try:
                current = plugin.transform(current)
            except Exception as e:
                logger.warning(f"Plugin '{plugin.id}' failed in transform: {e}")
        return current


class LoggingPlugin(TracePlugin):
    """Logs trace lifecycle events."""

    id = "hippo:logging"
    name = "Logging Plugin"

    def on_start(self, trace_id: str, query: str) -> None:
        logger.info(f"Trace started: {trace_id} | query: {query!r}")

    def on_step(self, trace_id: str, step: TraceStep) -> None:
        logger.debug(f"Step added to {trace_id}: [{step.kind}] {step.content[:120]}")

    def on_complete(self, trace: ReasoningTrace) -> None:
        logger.info(
            f"Trace completed: {trace.id} | {trace.step_count} steps | "
            f"{trace.total_latency_ms}ms"
        )


class LatencyAlertPlugin(TracePlugin):
    """Warns when a step or a whole trace exceeds a latency threshold."""

    id = "hippo:latency-alert"
    name = "Latency Alert Plugin"

    def __init__(self, step_threshold_ms: int = 5000, trace_threshold_ms: int = 30000) -> None:
        self.step_threshold_ms = step_threshold_ms
        self.trace_threshold_ms = trace_threshold_ms

    def on_step(self, trace_id: str, step: TraceStep) -> None:
        if step.latency_ms > self.step_threshold_ms:
            logger.warning(
                f"Step '{step.id}' of {trace_id} exceeded {self.step_threshold_ms}ms: "
                f"{step.latency_ms}ms"
            )

    def on_complete(self, trace: ReasoningTrace) -> None:
        if trace.total_latency_ms > self.trace_threshold_ms:
            logger.warning(
                f"Trace '{trace.id}' exceeded {self.trace_threshold_ms}ms: "
                f"{trace.total_latency_ms}ms"
            )


API_KEY_PATTERN = re.compile(r"\b(?:sk|key|api)[_-][A-Za-z0-9_-]{16,}", re.IGNORECASE)
EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
REDACTED = "[REDACTED]"


def redact(text: str) -> str:
    """Replace API-key-like tokens and e-mail addresses."""
    return EMAIL_PATTERN.sub(REDACTED, API_KEY_PATTERN.sub(REDACTED, text))


class SensitiveDataPlugin(TracePlugin):
    """Redacts secrets and e-mail addresses from a completed trace."""

    id = "hippo:sensitive-data"
    name = "Sensitive Data Redaction Plugin"

    def transform(self, trace: ReasoningTrace) -> ReasoningTrace:
        steps = []
        for step in trace.steps:
            update: dict = {"content": redact(step.content)}
            if step.tool_args is not None:
                update["tool_args"] = json.loads(redact(json.dumps(step.tool_args)))
            steps.append(step.model_copy(update=update))

        return trace.model_copy(
            update={
                "query": redact(trace.query),
                "steps": tuple(steps),
                "summary": redact(trace.summary) if trace.summary else trace.summary,
            }
        )


def default_plugins() -> list[TracePlugin]:
    return [LoggingPlugin(), LatencyAlertPlugin(), SensitiveDataPlugin()]
