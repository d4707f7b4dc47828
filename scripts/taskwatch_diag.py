"""taskwatch diagnostics CLI."""

from __future__ import annotations

import argparse
import json
from pathlib import Path

from taskwatch_mcp.config import TaskwatchSettings
from taskwatch_mcp.descriptor import (
    DescriptorParseError,
    find_descriptor,
    load_descriptor,
    write_default_descriptor,
)
from taskwatch_mcp.resolution import ResolutionError, TaskResolver
from taskwatch_mcp.taskwarrior import TaskExportError, TaskRunner, TaskRunnerError


def load_runner(settings: TaskwatchSettings) -> TaskRunner:
    try:
        return TaskRunner(
            Path(settings.task_path) if settings.task_path else None,
            taskrc=settings.taskrc,
            taskdata=settings.taskdata,
        )
    except TaskRunnerError as exc:
        print(f"Taskwarrior unavailable: {exc}")
        raise SystemExit(1)


def cmd_locate(args: argparse.Namespace) -> None:
    settings = TaskwatchSettings()
    path = find_descriptor(Path(args.path), settings.descriptor_file_name)
    if path is None:
        print(f"No {settings.descriptor_file_name} found above {args.path}")
        raise SystemExit(1)
    print(path)


def cmd_resolve(args: argparse.Namespace) -> None:
    settings = TaskwatchSettings()
    try:
        document = load_descriptor(Path(args.path), settings.descriptor_file_name)
    except DescriptorParseError as exc:
        print(f"Invalid descriptor: {exc}")
        raise SystemExit(1)
    if document is None:
        print(f"No {settings.descriptor_file_name} found above {args.path}")
        raise SystemExit(1)

    resolver = TaskResolver(
        load_runner(settings),
        export_filter=settings.export_filter,
        helper_timeout=settings.helper_timeout,
    )
    try:
        task = resolver.resolve(document.descriptor, Path(args.path))
    except (ResolutionError, TaskRunnerError, TaskExportError) as exc:
        print(f"Resolution failed: {exc}")
        raise SystemExit(1)

    if args.json:
        print(json.dumps(task.summary(), indent=2))
    else:
        print(f"{task.id} [{task.status}] {task.description} ({task.uuid})")


def cmd_init(args: argparse.Namespace) -> None:
    settings = TaskwatchSettings()
    path = write_default_descriptor(Path(args.path), settings.descriptor_file_name)
    print(path)


def cmd_tasks(args: argparse.Namespace) -> None:
    settings = TaskwatchSettings()
    runner = load_runner(settings)
    try:
        tasks = runner.export_all_sync(args.filter or settings.export_filter)
    except (TaskRunnerError, TaskExportError) as exc:
        print(f"Export failed: {exc}")
        raise SystemExit(1)
    for task in sorted(tasks, key=lambda item: item.urgency, reverse=True):
        marker = "*" if task.is_started else " "
        print(f"{marker} {task.id:>4} {task.urgency:6.2f} {task.description}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="taskwatch diagnostics")
    sub = parser.add_subparsers(dest="cmd")

    p_locate = sub.add_parser("locate", help="Print the descriptor governing a directory")
    p_locate.add_argument("path", nargs="?", default=".")
    p_locate.set_defaults(func=cmd_locate)

    p_resolve = sub.add_parser("resolve", help="Resolve a directory to its task")
    p_resolve.add_argument("path", nargs="?", default=".")
    p_resolve.add_argument("--json", action="store_true", help="Output JSON")
    p_resolve.set_defaults(func=cmd_resolve)

    p_init = sub.add_parser("init", help="Write the default descriptor into a directory")
    p_init.add_argument("path", nargs="?", default=".")
    p_init.set_defaults(func=cmd_init)

    p_tasks = sub.add_parser("tasks", help="List tasks matching a filter, most urgent first")
    p_tasks.add_argument("filter", nargs="*")
    p_tasks.set_defaults(func=cmd_tasks)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    args.func(args)


if __name__ == "__main__":
    main()
