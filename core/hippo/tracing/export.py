"""Export traces as fine-tuning datasets.

Formats:
- OpenAI fine-tuning: ``{"messages": [...]}`` with tool_calls / tool messages
- Anthropic Messages: ``{"system": ..., "messages": [...]}`` with strict
  user/assistant alternation (same-role neighbours merged into content blocks)
- JSONL of either format, one trace per line
- CSV summary: trace_id, query, tools_used, step_count, latency_ms, summary
"""

from __future__ import annotations

import csv
import io
import json
from typing import Any, Literal

from hippo.tracing.schemas import ReasoningTrace, StepKind

ExportFormat = Literal["openai", "anthropic"]

CSV_HEADER = ["trace_id", "query", "tools_used", "step_count", "latency_ms", "summary"]


def _system_prompt(trace: ReasoningTrace) -> str:
    return f"You are a reasoning assistant. Trace session: {trace.session_id}"


def to_openai_finetune(trace: ReasoningTrace) -> dict[str, Any]:
    """Map a trace onto OpenAI chat fine-tuning messages.

    user_message -> user; assistant_message / reasoning -> assistant;
    tool_call -> assistant with tool_calls; tool_result -> tool, paired with
    the most recent tool call id.
    """
    messages: list[dict[str, Any]] = [{"role": "system", "content": _system_prompt(trace)}]
    last_call_id: str | None = None
    counter = 0

    for step in trace.steps:
        if step.kind == StepKind.USER_MESSAGE:
            messages.append({"role": "user", "content": step.content})
        elif step.kind in (StepKind.ASSISTANT_MESSAGE, StepKind.REASONING):
            messages.append({"role": "assistant", "content": step.content})
        elif step.kind == StepKind.TOOL_CALL:
            last_call_id = f"call_{trace.id}_{counter}"
            counter += 1
            messages.append(
                {
                    "role": "assistant",
                    "content": "",
                    "tool_calls": [
                        {
                            "id": last_call_id,
                            "type": "function",
                            "function": {
                                "name": step.tool_name or "unknown",
                                "arguments": json.dumps(step.tool_args or {}),
                            },
                        }
                    ],
                }
            )
        elif step.kind == StepKind.TOOL_RESULT:
            messages.append(
                {
                    "role": "tool",
                    "content": step.content,
                    "tool_call_id": last_call_id or f"call_{trace.id}_orphan",
                }
            )

    return {"messages": messages}


def _push_block(messages: list[dict[str, Any]], role: str, block: dict[str, Any]) -> None:
    if messages and messages[-1]["role"] == role:
        last = messages[-1]
        if isinstance(last["content"], str):
            last["content"] = [{"type": "text", "text": last["content"]}]
        last["content"].append(block)
    else:
        messages.append({"role": role, "content": [block]})


def _push_text(messages: list[dict[str, Any]], role: str, text: str) -> None:
    if messages and messages[-1]["role"] == role:
        _push_block(messages, role, {"type": "text", "text": text})
    else:
        messages.append({"role": role, "content": text})


def to_anthropic_messages(trace: ReasoningTrace) -> dict[str, Any]:
    """Map a trace onto the Anthropic Messages format."""
    messages: list[dict[str, Any]] = []
    last_tool_use_id: str | None = None
    counter = 0

    for step in trace.steps:
        if step.kind == StepKind.USER_MESSAGE:
            _push_text(messages, "user", step.content)
        elif step.kind in (StepKind.ASSISTANT_MESSAGE, StepKind.REASONING):
            _push_text(messages, "assistant", step.content)
        elif step.kind == StepKind.TOOL_CALL:
            last_tool_use_id = f"toolu_{trace.id}_{counter}"
            counter += 1
            _push_block(
                messages,
                "assistant",
                {
                    "type": "tool_use",
                    "id": last_tool_use_id,
                    "name": step.tool_name or "unknown",
                    "input": step.tool_args or {},
                },
            )
        elif step.kind == StepKind.TOOL_RESULT:
            _push_block(
                messages,
                "user",
                {
                    "type": "tool_result",
                    "tool_use_id": last_tool_use_id or f"toolu_{trace.id}_orphan",
                    "content": step.content,
                },
            )

    return {"system": _system_prompt(trace), "messages": messages}


def traces_to_jsonl(traces: list[ReasoningTrace], fmt: ExportFormat) -> str:
    if fmt == "openai":
        convert = to_openai_finetune
    elif fmt == "anthropic":
        convert = to_anthropic_messages
    else:
        raise ValueError(f"Unsupported export format: {fmt}")
    return "\n".join(json.dumps(convert(trace)) for trace in traces)


def traces_to_csv(traces: list[ReasoningTrace]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for trace in traces:
        writer.writerow(
            [
                trace.id,
                trace.query,
                ";".join(trace.tools_used),
                trace.step_count,
                trace.total_latency_ms,
                trace.summary or "",
            ]
        )
    return buffer.getvalue().rstrip("\n")
