# ruff: noqa: T201

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import UTC, datetime
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from telewatch.app import TelemetryContext
from telewatch.config import ConfigurationError, configure_logging, get_backend_config
from telewatch.domain.model import StreamKind

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from pydantic import BaseModel

    from telewatch.adapters.backend import AssistantChannel
    from telewatch.app import Feed
    from telewatch.domain.model import StreamItem
    from telewatch.domain.reconciler import ReconciledView

log = logging.getLogger(__name__)

WATCH_TARGETS = ("alerts", "insights", "events", "rates")


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Watch live security telemetry")
    parser.add_argument(
        "--api-url",
        type=str,
        help="Backend base URL (defaults to TELEWATCH_API_URL)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    watch = subparsers.add_parser("watch", help="Follow a live feed")
    watch.add_argument("target", choices=WATCH_TARGETS, help="Feed to follow")
    watch.add_argument(
        "--seconds",
        type=float,
        help="Stop after this many seconds (default: run until interrupted)",
    )

    subparsers.add_parser("rules", help="List detection rules")

    stats = subparsers.add_parser("stats", help="Show system statistics")
    stats.add_argument(
        "--probes",
        action="store_true",
        help="Include per-probe statistics",
    )

    workloads = subparsers.add_parser("workloads", help="List workloads or show one")
    workloads.add_argument("workload_id", nargs="?", help="Workload id to show")

    ancestors = subparsers.add_parser("ancestors", help="Show the process ancestry of a pid")
    ancestors.add_argument("pid", type=int)

    learning = subparsers.add_parser("learning", help="Learning mode commands")
    learning_sub = learning.add_subparsers(dest="learning_command", required=True)
    learning_sub.add_parser("status", help="Show learning status")
    learning_start = learning_sub.add_parser("start", help="Start learning")
    learning_start.add_argument("duration", type=int, help="Learning window in seconds")
    learning_sub.add_parser("stop", help="Stop learning and list generated rules")
    learning_apply = learning_sub.add_parser("apply", help="Apply generated rules")
    learning_apply.add_argument("indices", type=int, nargs="+", help="Generated rule indices")

    subparsers.add_parser("diagnose", help="Ask the assistant to diagnose the system")
    subparsers.add_parser("ai-status", help="Show assistant availability")

    chat = subparsers.add_parser("chat", help="Send a message to the assistant")
    chat.add_argument("message", type=str)
    chat.add_argument(
        "--stream",
        action="store_true",
        help="Print the reply token by token",
    )

    generate = subparsers.add_parser("generate-rule", help="Draft a rule from a description")
    generate.add_argument("description", type=str)

    explain = subparsers.add_parser("explain", help="Explain an event")
    explain.add_argument("event_id", type=str)
    explain.add_argument("--question", type=str, help="Optional follow-up question")

    analyze = subparsers.add_parser("analyze", help="Analyze a process, workload or rule")
    analyze.add_argument("kind", choices=("process", "workload", "rule"))
    analyze.add_argument("identifier", type=str)

    ask = subparsers.add_parser("ask", help="Ask a question about an insight")
    ask.add_argument("insight_id", type=str)
    ask.add_argument("question", type=str)

    return parser.parse_args(list(argv))


def _format_timestamp(timestamp_ms: int) -> str:
    if timestamp_ms <= 0:
        return "-"
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=UTC).strftime("%H:%M:%S")


def format_item(item: StreamItem) -> str:
    payload = item.payload
    when = _format_timestamp(item.timestamp)
    match item.kind:
        case StreamKind.ALERT:
            marker = "BLOCKED" if payload.get("blocked") is True else "alert"
            return (
                f"{when} [{item.severity_or_type}] {marker} {payload.get('ruleName', '')}: "
                f"{payload.get('description', '')} (pid {payload.get('pid', '?')} "
                f"{payload.get('processName', '')})"
            )
        case StreamKind.INSIGHT:
            actions = ", ".join(action.action_id for action in item.actions)
            suffix = f" [{actions}]" if actions else ""
            return (
                f"{when} [{item.severity_or_type}] {payload.get('type', '')}: "
                f"{payload.get('title', '')}{suffix}"
            )
        case StreamKind.EVENT:
            detail = payload.get("comm") or payload.get("addr") or payload.get("filename") or ""
            return f"{when} {item.severity_or_type} pid {payload.get('pid', '?')} {detail}"


def _print_model(model: BaseModel) -> None:
    print(model.model_dump_json(by_alias=True, indent=2))


async def _wait(seconds: float | None) -> None:
    if seconds is None:
        await asyncio.Event().wait()
    else:
        await asyncio.sleep(seconds)


def _follow(feed: Feed) -> None:
    printed: set[str] = set()

    def show(view: ReconciledView) -> None:
        for item in reversed(view.items):
            if item.id in printed:
                continue
            printed.add(item.id)
            print(format_item(item))
        printed.intersection_update(item.id for item in view.items)

    feed.on_update(show)
    show(feed.view())


async def _watch(context: TelemetryContext, target: str, seconds: float | None) -> int:
    if target == "alerts":
        _follow(context.alerts)
        await context.alerts.start()
    elif target == "insights":
        _follow(context.insights)
        await context.insights.start()
    elif target == "events":
        _follow(context.events)
        context.events.on_rules_reload(lambda _reload: print("-- detection rules reloaded --"))
        context.events.start()
    else:
        context.rates.on_update(
            lambda rates: print(
                f"exec {rates.exec}/s  file {rates.file}/s  network {rates.network}/s"
            )
        )
        context.rates.start()
    await _wait(seconds)
    return 0


async def _learning(context: TelemetryContext, args: argparse.Namespace) -> int:
    client = context.client
    if args.learning_command == "status":
        _print_model(await client.get_learning_status())
    elif args.learning_command == "start":
        await client.start_learning(args.duration)
        log.info("Learning started for %ss", args.duration)
    elif args.learning_command == "stop":
        for index, rule in enumerate(await client.stop_learning()):
            print(f"{index:3d} [{rule.severity}] {rule.name} ({rule.action}) {rule.description}")
    elif args.learning_command == "apply":
        await client.apply_learning(args.indices)
        log.info("Applied %s generated rule(s)", len(args.indices))
    return 0


def _report(assistant: AssistantChannel, result: BaseModel | None) -> int:
    if result is None:
        print(f"Error: {assistant.error}", file=sys.stderr)
        return 1
    _print_model(result)
    return 0


async def _chat(context: TelemetryContext, message: str, *, stream: bool) -> int:
    assistant = context.assistant
    if stream:
        async for token in assistant.chat_stream(context.conversation, message):
            print(token, end="", flush=True)
        print()
        if assistant.error is not None:
            print(f"Error: {assistant.error}", file=sys.stderr)
            return 1
        return 0
    result = await assistant.chat(context.conversation, message)
    if result is None:
        print(f"Error: {assistant.error}", file=sys.stderr)
        return 1
    print(result.message)
    return 0


async def _ask(context: TelemetryContext, insight_id: str, question: str) -> int:
    for item in await context.client.get_insights():
        if item.id == insight_id:
            return _report(
                context.assistant,
                await context.assistant.ask_about_insight(item.payload, question),
            )
    print(f"Error: insight {insight_id} not found", file=sys.stderr)
    return 1


async def _run(args: argparse.Namespace) -> int:  # noqa: C901, PLR0911
    config = get_backend_config()
    if args.api_url:
        config = config.with_base_url(args.api_url)

    async with TelemetryContext(config) as context:
        client = context.client
        assistant = context.assistant
        if args.command == "watch":
            return await _watch(context, args.target, args.seconds)
        if args.command == "rules":
            for rule in await client.get_rules():
                print(f"[{rule.severity}] {rule.name} ({rule.action}) {rule.description}")
            return 0
        if args.command == "stats":
            _print_model(await client.get_stats())
            if args.probes:
                for name, value in (await client.get_probe_stats()).items():
                    print(f"{name}: {value}")
            return 0
        if args.command == "workloads":
            if args.workload_id:
                _print_model(await client.get_workload(args.workload_id))
                return 0
            for workload in await client.get_workloads():
                print(
                    f"{workload.id} {workload.cgroup_path} alerts={workload.alert_count} "
                    f"blocked={workload.blocked_count}"
                )
            return 0
        if args.command == "ancestors":
            for process in await client.get_ancestors(args.pid):
                print(f"{process.pid:>7} {process.comm}")
            return 0
        if args.command == "learning":
            return await _learning(context, args)
        if args.command == "diagnose":
            return _report(assistant, await assistant.diagnose())
        if args.command == "ai-status":
            status = await assistant.get_status()
            if status is None:
                print("Assistant unavailable")
                return 1
            _print_model(status)
            return 0
        if args.command == "chat":
            return await _chat(context, args.message, stream=args.stream)
        if args.command == "generate-rule":
            return _report(assistant, await assistant.generate_rule(args.description))
        if args.command == "explain":
            return _report(
                assistant,
                await assistant.explain_event(event_id=args.event_id, question=args.question),
            )
        if args.command == "analyze":
            return _report(assistant, await assistant.analyze_context(args.kind, args.identifier))
        if args.command == "ask":
            return await _ask(context, args.insight_id, args.question)
        raise ValueError(f"Unsupported command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    load_dotenv()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args: argparse.Namespace
    try:
        parsed_args = _parse_args(args_list)
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)
    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)

    try:
        exit_code = asyncio.run(_run(parsed_args))
    except ConfigurationError:
        log.exception("Invalid configuration")
        sys.exit(2)
    except Exception:
        log.exception("Fatal error")
        sys.exit(1)
    if exit_code:
        sys.exit(exit_code)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


if __name__ == "__main__":
    signal(SIGINT, sigint_handler)
    main()
