"""
Command-line interface for hippo.

    hippo [--storage PATH] gate [--scores FILE] [--verbose]
    hippo [--storage PATH] regress-create TRACE_ID [--name NAME] [--min-score N]
    hippo [--storage PATH] regress-list
    hippo [--storage PATH] diff TRACE_A TRACE_B
    hippo [--storage PATH] retain [--policy NAME] [--dry-run]
    hippo [--storage PATH] export --format {openai,anthropic,csv} [--output FILE]
    hippo [--storage PATH] stats
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from hippo.config import HippoConfig
from hippo.engine import open_engine
from hippo.errors import NotFoundError
from hippo.retention.policy import POLICIES, get_policy
from hippo.testing.regression.cli import register_regression_commands
from hippo.tracing.diff import DiffStatus
from hippo.tracing.export import traces_to_csv, traces_to_jsonl

DEFAULT_STORAGE_DIR = Path(".hippo")

STATUS_LABELS = {
    DiffStatus.EQUAL: "[=]",
    DiffStatus.CHANGED: "[~]",
    DiffStatus.ADDED: "[+]",
    DiffStatus.REMOVED: "[-]",
}


def register_trace_commands(subparsers: argparse._SubParsersAction) -> None:
    """Register trace inspection and maintenance commands."""

    diff_parser = subparsers.add_parser("diff", help="Step-by-step diff of two traces")
    diff_parser.add_argument("trace_a", help="Baseline trace ID")
    diff_parser.add_argument("trace_b", help="Trace ID to compare")
    diff_parser.set_defaults(func=cmd_diff)

    retain_parser = subparsers.add_parser("retain", help="Apply a retention policy")
    retain_parser.add_argument(
        "--policy",
        "-p",
        choices=sorted(POLICIES),
        default=None,
        help="Retention policy (default from HIPPO_RETENTION_POLICY)",
    )
    retain_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what would be evicted without deleting",
    )
    retain_parser.set_defaults(func=cmd_retain)

    export_parser = subparsers.add_parser("export", help="Export traces as a dataset")
    export_parser.add_argument(
        "--format",
        "-f",
        choices=["openai", "anthropic", "csv"],
        default="openai",
        help="Output format",
    )
    export_parser.add_argument("--output", "-o", help="Output file (default: stdout)")
    export_parser.set_defaults(func=cmd_export)

    stats_parser = subparsers.add_parser("stats", help="Trace population statistics")
    stats_parser.set_defaults(func=cmd_stats)


def cmd_diff(args: argparse.Namespace) -> int:
    with open_engine(args.storage) as engine:
        try:
            result = engine.diff(args.trace_a, args.trace_b)
        except NotFoundError as e:
            print(f"Error: {e}")
            return 1

    print(f"$ diff {result.trace_a_id} {result.trace_b_id}")
    for row in result.rows:
        a = row.step_a
        b = row.step_b
        left = f"{a.kind}: {a.content[:60]}" if a else ""
        right = f"{b.kind}: {b.content[:60]}" if b else ""
        if row.status == DiffStatus.EQUAL:
            print(f"{STATUS_LABELS[row.status]} {row.index:>3} {left}")
        else:
            print(f"{STATUS_LABELS[row.status]} {row.index:>3} {left} | {right}")

    counts = result.counts()
    print("")
    print(
        f"equal {counts['equal']}  changed {counts['changed']}  "
        f"added {counts['added']}  removed {counts['removed']}"
    )
    print(f"steps {result.step_count_delta:+d}  latency {result.latency_delta_ms:+d}ms")
    if result.tools_only_in_a:
        print(f"tools only in A: {', '.join(result.tools_only_in_a)}")
    if result.tools_only_in_b:
        print(f"tools only in B: {', '.join(result.tools_only_in_b)}")
    return 0


def cmd_retain(args: argparse.Namespace) -> int:
    with open_engine(args.storage) as engine:
        policy = get_policy(args.policy) if args.policy else None
        report = engine.apply_retention(policy, dry_run=args.dry_run)

    verb = "would evict" if report.dry_run else "evicted"
    print(f"Policy {report.policy_id}: {len(report.retained)} retained, {len(report.evicted)} {verb}")
    for trace_id in report.evicted:
        print(f"  - {trace_id}")
    return 0


def cmd_export(args: argparse.Namespace) -> int:
    with open_engine(args.storage) as engine:
        traces = engine.list_traces()

    if args.format == "csv":
        content = traces_to_csv(traces)
    else:
        content = traces_to_jsonl(traces, args.format)

    if args.output:
        Path(args.output).write_text(content + "\n", encoding="utf-8")
        print(f"Exported {len(traces)} traces to {args.output}")
    else:
        print(content)
    return 0


def cmd_stats(args: argparse.Namespace) -> int:
    with open_engine(args.storage) as engine:
        stats = engine.stats()
        regressions = engine.regressions.status_counts()

    print(json.dumps({"traces": stats.model_dump(), "regressions": regressions}, indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hippo",
        description="Reasoning-trace memory: retrieval, retention, diffs and regression gates",
    )
    parser.add_argument(
        "--storage",
        default=None,
        help=f"Storage directory (default: HIPPO_STORAGE_PATH, else {DEFAULT_STORAGE_DIR})",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    register_trace_commands(subparsers)
    register_regression_commands(subparsers)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    config = HippoConfig.from_env()
    if args.storage is None:
        # CLI commands always run against persistent storage.
        args.storage = config.storage_path or DEFAULT_STORAGE_DIR
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
