"""Tests for trace recording, plugins, stores and export."""

import json
import logging

import pytest
from pydantic import ValidationError

from hippo.errors import TraceCompletedError, TraceNotFoundError
from hippo.tracing import (
    FileTraceStore,
    InMemoryTraceStore,
    PluginManager,
    ReasoningTrace,
    SensitiveDataPlugin,
    StepKind,
    TraceBuilder,
    TracePlugin,
    TraceStats,
)
from hippo.tracing.export import (
    CSV_HEADER,
    to_anthropic_messages,
    to_openai_finetune,
    traces_to_csv,
    traces_to_jsonl,
)
from hippo.tracing.plugins import LatencyAlertPlugin, redact


class FakeClock:
    def __init__(self, start: int = 1_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class RecordingPlugin(TracePlugin):
    id = "test:recording"

    def __init__(self):
        self.events = []

    def on_start(self, trace_id, query):
        self.events.append(("start", trace_id))

    def on_step(self, trace_id, step):
        self.events.append(("step", step.id))

    def on_complete(self, trace):
        self.events.append(("complete", trace.id))


class ExplodingPlugin(TracePlugin):
    id = "test:exploding"

    def on_start(self, trace_id, query):
        raise RuntimeError("boom")

    def on_step(self, trace_id, step):
        raise RuntimeError("boom")

    def on_complete(self, trace):
        raise RuntimeError("boom")

    def transform(self, trace):
        raise RuntimeError("boom")


class UppercaseSummaryPlugin(TracePlugin):
    id = "test:upper"

    def transform(self, trace):
        return trace.model_copy(update={"summary": (trace.summary or "").upper()})


# === TraceBuilder ===


class TestTraceBuilder:
    def test_step_latency_measured_from_previous_step(self):
        clock = FakeClock()
        builder = TraceBuilder("t1", "s1", "query", clock=clock)

        clock.advance(100)
        first = builder.add_step(StepKind.USER_MESSAGE, "hello")
        clock.advance(250)
        second = builder.add_step(StepKind.TOOL_CALL, tool_name="search", tool_args={"q": "x"})

        assert first.id == "step-1"
        assert first.latency_ms == 100
        assert second.id == "step-2"
        assert second.latency_ms == 250
        assert second.tool_args == {"q": "x"}

    def test_complete_derives_fields(self):
        clock = FakeClock()
        builder = TraceBuilder("t1", "s1", "query", clock=clock)
        builder.add_step(StepKind.TOOL_CALL, tool_name="search")
        builder.add_step(StepKind.TOOL_RESULT, "ok")
        builder.add_step(StepKind.TOOL_CALL, tool_name="fetch")
        builder.add_step(StepKind.TOOL_CALL, tool_name="search")
        builder.add_step(StepKind.ASSISTANT_MESSAGE, "done")
        clock.advance(1500)

        trace = builder.complete(summary="summary")

        assert trace.step_count == 5
        assert trace.total_latency_ms == 1500
        assert trace.tools_used == ["search", "fetch"]
        assert trace.summary == "summary"
        assert builder.completed

    def test_completed_trace_rejects_mutation(self):
        builder = TraceBuilder("t1", "s1", "query")
        builder.add_step(StepKind.USER_MESSAGE, "hi")
        builder.complete()

        with pytest.raises(TraceCompletedError):
            builder.add_step(StepKind.ASSISTANT_MESSAGE, "late")
        with pytest.raises(TraceCompletedError):
            builder.complete()

    def test_trace_is_frozen(self):
        trace = TraceBuilder("t1", "s1", "query").complete()

        with pytest.raises(ValidationError):
            trace.summary = "changed"

    def test_generates_trace_id(self):
        builder = TraceBuilder(query="q")
        assert builder.trace_id.startswith("trace-")

    def test_string_kind_accepted(self):
        builder = TraceBuilder("t1", "s1", "q")
        step = builder.add_step("reasoning", "thinking")
        assert step.kind == StepKind.REASONING

        with pytest.raises(ValueError):
            builder.add_step("not-a-kind", "x")

    def test_completed_trace_does_not_alias_returned_steps(self):
        builder = TraceBuilder("t1", "s1", "q")
        step = builder.add_step(StepKind.TOOL_CALL, tool_name="search", tool_args={"q": "x"})
        trace = builder.complete()

        step.tool_args["q"] = "changed"

        assert trace.steps[0].tool_args == {"q": "x"}

    def test_plugins_receive_lifecycle_events(self):
        plugin = RecordingPlugin()
        builder = TraceBuilder("t1", "s1", "q", plugins=PluginManager([plugin]))
        builder.add_step(StepKind.USER_MESSAGE, "hi")
        builder.complete()

        assert plugin.events == [("start", "t1"), ("step", "step-1"), ("complete", "t1")]


# === ReasoningTrace ===


class TestReasoningTrace:
    def test_final_response_is_last_assistant_message(self, make_trace):
        trace = make_trace(
            steps=[
                ("assistant_message", "first"),
                ("tool_call", "", "search"),
                ("assistant_message", "final"),
            ]
        )
        assert trace.final_response() == "final"

    def test_final_response_none_without_assistant(self, make_trace):
        trace = make_trace(steps=[("user_message", "hi")])
        assert trace.final_response() is None

    def test_to_document(self, research_trace):
        doc = research_trace.to_document()
        assert doc.startswith("find papers on agent memory search ")
        assert doc.endswith(research_trace.summary)

    def test_derived_fields_ignored_on_load(self, research_trace):
        data = json.loads(research_trace.model_dump_json())
        data["step_count"] = 999
        data["tools_used"] = ["bogus"]

        loaded = ReasoningTrace.model_validate(data)

        assert loaded.step_count == 4
        assert loaded.tools_used == ["search"]

    def test_stats(self, make_trace):
        traces = [
            make_trace(trace_id="a", steps=[("tool_call", "", "x")], latency_ms=1000),
            make_trace(trace_id="b", steps=[("user_message", "u")] * 3, latency_ms=3000),
        ]
        stats = TraceStats.from_traces(traces)

        assert stats.total_traces == 2
        assert stats.avg_steps == 2
        assert stats.avg_latency_ms == 2000
        assert stats.total_tool_calls == 1

    def test_stats_empty(self):
        assert TraceStats.from_traces([]).total_traces == 0


# === Plugins ===


class TestPlugins:
    def test_failing_plugin_is_isolated(self, caplog):
        recorder = RecordingPlugin()
        manager = PluginManager([ExplodingPlugin(), recorder])

        with caplog.at_level(logging.WARNING):
            builder = TraceBuilder("t1", "s1", "q", plugins=manager)
            builder.add_step(StepKind.USER_MESSAGE, "hi")
            trace = builder.complete(summary="ok")

        assert trace.summary == "ok"
        assert [e[0] for e in recorder.events] == ["start", "step", "complete"]
        assert "failed in on_step" in caplog.text
        assert "failed in transform" in caplog.text

    def test_transforms_run_in_registration_order(self):
        manager = PluginManager([UppercaseSummaryPlugin(), SensitiveDataPlugin()])
        builder = TraceBuilder("t1", "s1", "q", plugins=manager)
        trace = builder.complete(summary="mail bob@example.com")

        assert trace.summary == "MAIL [REDACTED]"

    def test_register_replaces_same_id(self):
        manager = PluginManager([RecordingPlugin()])
        replacement = RecordingPlugin()
        manager.register(replacement)

        assert manager.plugins == [replacement]
        manager.unregister("test:recording")
        assert manager.plugins == []

    def test_redact(self):
        text = "key sk-abcdefghijklmnop1234 and alice@example.org"
        assert redact(text) == "key [REDACTED] and [REDACTED]"

    def test_sensitive_data_plugin_redacts_steps(self, make_trace):
        trace = make_trace(
            query="email me at carol@example.com",
            steps=[("tool_call", "api_ABCDEFGHIJKLMNOPQRST", "send")],
        )
        redacted = SensitiveDataPlugin().transform(trace)

        assert redacted.query == "email me at [REDACTED]"
        assert redacted.steps[0].content == "[REDACTED]"
        assert redacted.steps[0].tool_args == {"q": "[REDACTED]"}
        assert trace.steps[0].content == "api_ABCDEFGHIJKLMNOPQRST"

    def test_latency_alert(self, make_trace, caplog):
        plugin = LatencyAlertPlugin(step_threshold_ms=10, trace_threshold_ms=100)
        trace = make_trace(steps=[("user_message", "a")], latency_ms=500)

        with caplog.at_level(logging.WARNING):
            plugin.on_step(trace.id, trace.steps[0])
            plugin.on_complete(trace)

        assert "exceeded 10ms" in caplog.text
        assert "exceeded 100ms" in caplog.text


# === Stores ===


@pytest.fixture(params=["memory", "file"])
def store(request, tmp_path):
    if request.param == "memory":
        return InMemoryTraceStore()
    return FileTraceStore(tmp_path)


class TestTraceStore:
    def test_put_get(self, store, research_trace):
        store.put(research_trace)

        loaded = store.get(research_trace.id)
        assert loaded == research_trace
        assert store.get("missing") is None

    def test_list_newest_first_and_by_session(self, store, make_trace):
        store.put(make_trace(trace_id="old", started_at=1_000, session_id="a"))
        store.put(make_trace(trace_id="new", started_at=5_000, session_id="a"))
        store.put(make_trace(trace_id="other", started_at=3_000, session_id="b"))

        assert [t.id for t in store.list()] == ["new", "other", "old"]
        assert [t.id for t in store.list("a")] == ["new", "old"]
        assert store.list("nobody") == []

    def test_delete(self, store, research_trace):
        store.put(research_trace)

        assert store.delete(research_trace.id) is True
        assert store.delete(research_trace.id) is False
        assert store.count() == 0

    def test_require(self, store):
        with pytest.raises(TraceNotFoundError) as exc_info:
            store.require("nope")
        assert exc_info.value.entity_id == "nope"

    def test_exclusive_is_reentrant(self, store, research_trace):
        with store.exclusive():
            store.put(research_trace)
            assert store.count() == 1

    def test_stored_trace_cannot_be_changed_through_copies(self, store, research_trace):
        store.put(research_trace)

        store.get(research_trace.id).steps[1].tool_args["q"] = "changed"
        store.list()[0].steps[1].tool_args["q"] = "changed"
        research_trace.steps[1].tool_args["q"] = "changed"

        assert store.get(research_trace.id).steps[1].tool_args == {"q": "agent memory"}


class TestFileTraceStore:
    def test_persists_across_instances(self, tmp_path, research_trace):
        FileTraceStore(tmp_path).put(research_trace)

        reopened = FileTraceStore(tmp_path)
        assert reopened.get(research_trace.id) == research_trace
        assert (tmp_path / "traces" / f"{research_trace.id}.json").exists()

    def test_corrupt_file_skipped(self, tmp_path, research_trace, caplog):
        store = FileTraceStore(tmp_path)
        store.put(research_trace)
        (tmp_path / "traces" / "broken.json").write_text("{not json")

        with caplog.at_level(logging.WARNING):
            traces = store.list()

        assert [t.id for t in traces] == [research_trace.id]
        assert "Failed to load trace" in caplog.text

    @pytest.mark.parametrize("bad_id", ["../regression/tests/x", "a/b", "..", ".hidden", ""])
    def test_rejects_ids_outside_traces_dir(self, tmp_path, make_trace, bad_id):
        store = FileTraceStore(tmp_path)

        with pytest.raises(ValueError):
            store.put(make_trace(trace_id=bad_id))
        assert store.get(bad_id) is None
        assert store.delete(bad_id) is False
        assert not (tmp_path / "regression").exists()

    def test_accepts_generated_ids(self, tmp_path, make_trace):
        store = FileTraceStore(tmp_path)
        store.put(make_trace(trace_id="trace-1a2b3c_v1.2"))
        assert store.get("trace-1a2b3c_v1.2") is not None

    @pytest.mark.asyncio
    async def test_async_access(self, tmp_path, research_trace):
        store = FileTraceStore(tmp_path)
        await store.put_async(research_trace)

        assert await store.get_async(research_trace.id) == research_trace
        assert len(await store.list_async("session-1")) == 1


# === Export ===


class TestExport:
    def test_openai_finetune(self, research_trace):
        messages = to_openai_finetune(research_trace)["messages"]

        assert [m["role"] for m in messages] == ["system", "user", "assistant", "tool", "assistant"]
        call = messages[2]["tool_calls"][0]
        assert call["function"]["name"] == "search"
        assert json.loads(call["function"]["arguments"]) == {"q": "agent memory"}
        assert messages[3]["tool_call_id"] == call["id"]

    def test_anthropic_messages_alternate(self, make_trace):
        trace = make_trace(
            steps=[
                ("user_message", "question"),
                ("reasoning", "thinking"),
                ("tool_call", "x", "search"),
                ("tool_result", "result"),
                ("assistant_message", "answer"),
            ]
        )
        payload = to_anthropic_messages(trace)
        messages = payload["messages"]

        assert [m["role"] for m in messages] == ["user", "assistant", "user", "assistant"]
        assistant_blocks = messages[1]["content"]
        assert assistant_blocks[0] == {"type": "text", "text": "thinking"}
        assert assistant_blocks[1]["type"] == "tool_use"
        assert messages[2]["content"][0]["tool_use_id"] == assistant_blocks[1]["id"]
        assert messages[3]["content"] == "answer"
        assert "system" in payload

    def test_jsonl_one_line_per_trace(self, make_trace):
        traces = [make_trace(trace_id="a"), make_trace(trace_id="b")]
        lines = traces_to_jsonl(traces, "openai").splitlines()

        assert len(lines) == 2
        assert all("messages" in json.loads(line) for line in lines)

    def test_jsonl_unknown_format(self, research_trace):
        with pytest.raises(ValueError):
            traces_to_jsonl([research_trace], "xml")

    def test_csv(self, research_trace):
        lines = traces_to_csv([research_trace]).splitlines()

        assert lines[0] == ",".join(CSV_HEADER)
        assert lines[1].startswith("trace-1,find papers on agent memory,search,4,2000,")
