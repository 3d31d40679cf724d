"""Command line entry point: ``flowrunner <command>``."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional, Sequence

from replay.config import load_config

from .errors import FlowRunnerError
from .models import ErrorPolicy, RunStatus
from .recording.normalizer import describe_step
from .service import FlowRunnerService

log = logging.getLogger(__name__)


def _parse_days(value: str) -> list[int]:
    try:
        return [int(part) for part in value.split(",") if part.strip()]
    except ValueError as exc:
        raise argparse.ArgumentTypeError("days must be comma separated numbers 0-6") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="flowrunner", description="Replay recorded browser flows")
    parser.add_argument("--config", type=Path, default=None, help="Path to flowrunner.toml")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    import_cmd = sub.add_parser("import", help="Import a recorder JSON export as a task")
    import_cmd.add_argument("file", type=Path)
    import_cmd.add_argument("--name", default=None)
    import_cmd.add_argument("--policy", choices=[p.value for p in ErrorPolicy], default=ErrorPolicy.STOP.value)

    list_cmd = sub.add_parser("list", help="List tasks")
    list_cmd.add_argument("--json", action="store_true", help="Emit JSON")
    list_cmd.add_argument("--steps", action="store_true", help="Show step descriptions")

    run_cmd = sub.add_parser("run", help="Execute a task now")
    run_cmd.add_argument("task_id")

    schedule_cmd = sub.add_parser("schedule", help="Enable or disable the daily trigger of a task")
    schedule_cmd.add_argument("task_id")
    schedule_cmd.add_argument("--time", default=None, help="HH:MM")
    schedule_cmd.add_argument("--days", type=_parse_days, default=None, help="0=Sunday .. 6=Saturday, e.g. 1,2,3,4,5")
    schedule_cmd.add_argument("--disable", action="store_true")

    policy_cmd = sub.add_parser("policy", help="Change the error policy of a task")
    policy_cmd.add_argument("task_id")
    policy_cmd.add_argument("policy", choices=[p.value for p in ErrorPolicy])

    delete_cmd = sub.add_parser("delete", help="Delete a task and its trigger")
    delete_cmd.add_argument("task_id")

    logs_cmd = sub.add_parser("logs", help="Show recent run logs")
    logs_cmd.add_argument("--task", default=None)
    logs_cmd.add_argument("--limit", type=int, default=50)
    logs_cmd.add_argument("--json", action="store_true")

    sub.add_parser("serve", help="Run scheduled tasks until interrupted")
    return parser


async def _dispatch(service: FlowRunnerService, args: argparse.Namespace) -> int:
    command = args.command
    if command == "import":
        task = await service.import_recording(
            args.file.read_text(encoding="utf-8"), name=args.name, error_policy=args.policy
        )
        print(f"Imported {task.name} as {task.id} ({len(task.steps)} steps, start {task.start_url or '-'})")
        return 0

    if command == "list":
        tasks = await service.list_tasks()
        if args.json:
            print(json.dumps([task.to_storage() for task in tasks], indent=2, ensure_ascii=False))
            return 0
        for task in tasks:
            schedule = f"{task.schedule.time} {task.schedule.days}" if task.schedule.enabled else "manual"
            status = task.last_status.value if task.last_status else "never run"
            print(f"{task.id}  {task.name}  [{task.error_policy.value}, {schedule}, {status}]")
            if args.steps:
                for step in task.steps:
                    print(f"    {step.index + 1:>3}. {describe_step(step)}")
        return 0

    if command == "run":
        try:
            outcome = await service.execute_task(args.task_id)
        finally:
            await service.stop()
        print(json.dumps(outcome.as_dict(), ensure_ascii=False))
        return 0 if outcome.status is RunStatus.SUCCESS else 1

    if command == "schedule":
        plan = await service.set_schedule(
            args.task_id, enabled=not args.disable, time=args.time, days=args.days
        )
        service.triggers.cancel_all()
        if plan is None:
            print(f"Schedule disabled for {args.task_id}")
        else:
            print(f"Next run of {args.task_id} at {plan.at.isoformat()} (every 24h)")
        return 0

    if command == "policy":
        task = await service.update_task(args.task_id, error_policy=ErrorPolicy(args.policy))
        print(f"{task.name}: error policy {task.error_policy.value}")
        return 0

    if command == "delete":
        await service.delete_task(args.task_id)
        print(f"Deleted {args.task_id}")
        return 0

    if command == "logs":
        entries = await service.get_logs(args.task, args.limit)
        if args.json:
            print(json.dumps([e.model_dump(mode="json", by_alias=True) for e in entries], indent=2, ensure_ascii=False))
            return 0
        for entry in entries:
            print(f"{entry.executed_at}  {entry.task_name}  {entry.status.value}  {entry.duration}ms  {entry.message}")
        return 0

    if command == "serve":
        await service.start()
        try:
            await asyncio.Event().wait()
        finally:
            await service.stop()
        return 0

    raise ValueError(f"Unknown command {command}")


def main(argv: Optional[Sequence[str]] = None, *, service: Optional[Any] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        if service is None:
            service = FlowRunnerService(load_config(args.config))
        return asyncio.run(_dispatch(service, args))
    except FlowRunnerError as exc:
        print(f"error: {exc.message}", file=sys.stderr)
        return 2
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:  # pragma: no cover - interactive
        return 130


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
