"""Tool registration for taskwatch MCP."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from fastmcp import FastMCP

from ..config import TaskwatchSettings
from ..descriptor import find_descriptor, load_descriptor, write_default_descriptor
from ..resolution import TaskResolver
from ..sessions import DirectoryVisited, LoggingNotifier, SessionManager
from ..taskwarrior import TaskExportError, TaskRunner, TaskRunnerError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ToolHandles:
    visit_directory: Any
    record_activity: Any
    session_status: Any
    resolve_task: Any
    init_descriptor: Any
    list_notifications: Any
    run_task_command: Any
    manager: SessionManager


def register_tools(
    server: FastMCP,
    *,
    manager: SessionManager,
    runner: TaskRunner,
    resolver: TaskResolver,
    settings: TaskwatchSettings,
) -> ToolHandles:
    """Register taskwatch's MCP tools on the server."""

    async def _visit_directory(
        path: str,
        consumer: str = "default",
        buffer_type: str | None = None,
    ) -> dict[str, Any]:
        """Report that the user is working in ``path``; starts or refreshes its task."""

        await manager.dispatch(DirectoryVisited(path=path, consumer=consumer, buffer_type=buffer_type))
        sessions = manager.snapshot(path)
        _emit_log("debug", "Directory visited", extra={"session_path": path, "consumer": consumer})
        return {"path": path, "session": sessions[0] if sessions else None}

    async def _record_activity(consumer: str = "default") -> dict[str, Any]:
        """Refresh the idle timer of every active session watched by ``consumer``."""

        manager.start()
        refreshed = manager.activity.notify(consumer)
        await manager.drain()
        return {"consumer": consumer, "refreshed": refreshed}

    async def _session_status(refresh: bool = False) -> dict[str, Any]:
        """List sessions; with ``refresh`` the bound tasks are re-exported for fresh urgency."""

        sessions = manager.snapshot()
        if refresh:
            for entry in sessions:
                task = entry.get("task")
                if task is None:
                    continue
                try:
                    latest = await runner.export_by_field("uuid", task["uuid"])
                except (TaskRunnerError, TaskExportError) as exc:
                    entry["refresh_error"] = str(exc)
                    continue
                entry["latest"] = latest.summary() if latest is not None else None
        return {"count": len(sessions), "sessions": sessions}

    def _resolve_task(path: str) -> dict[str, Any]:
        """Resolve the descriptor governing ``path`` without starting anything."""

        document = load_descriptor(Path(path), settings.descriptor_file_name)
        if document is None:
            return {"path": path, "found": False, "task": None}
        task = resolver.resolve(document.descriptor, Path(path))
        _emit_log("info", "Resolved task", extra={"session_path": path, "task_uuid": task.uuid})
        return {
            "path": path,
            "found": True,
            "descriptor_path": str(document.path),
            "task": task.summary(),
        }

    def _init_descriptor(path: str) -> dict[str, Any]:
        """Write the default git-based descriptor into ``path`` unless one already exists there."""

        existed = find_descriptor(Path(path), settings.descriptor_file_name)
        target = write_default_descriptor(Path(path), settings.descriptor_file_name)
        created = existed is None or existed != target
        _emit_log("info", "Descriptor initialised", extra={"descriptor_path": str(target), "created": created})
        return {"path": str(target), "created": created}

    def _list_notifications(limit: int = 20) -> list[dict[str, Any]]:
        """Return the most recent start/stop/error notifications."""

        notifier = manager.notifier
        if not isinstance(notifier, LoggingNotifier):
            return []
        return [
            {
                "message": item.message,
                "severity": item.severity,
                "timestamp": item.timestamp.isoformat(),
            }
            for item in notifier.recent(limit)
        ]

    async def _run_task_command(args: list[str]) -> dict[str, Any]:
        """Run an arbitrary ``task`` command and return its output."""

        if not args:
            raise ValueError("At least one argument is required")
        result = await runner.run(args)
        _emit_log("info", "Ran task command", extra={"task_args": args, "returncode": result.returncode})
        return {
            "returncode": result.returncode,
            "lines": result.lines,
            "stderr": result.stderr,
        }

    tool_visit = server.tool(
        name="visit_directory",
        description=(
            "Report that the user entered a working directory. Resolves the directory's "
            "descriptor, starts its Taskwarrior task and arms the idle timer."
        ),
    )(_visit_directory)

    tool_activity = server.tool(
        name="record_activity",
        description="Signal user activity (write, insert-leave) for a consumer to postpone the idle stop.",
    )(_record_activity)

    tool_status = server.tool(
        name="session_status",
        description="List tracked directories with their task, running flag and timer state.",
    )(_session_status)

    tool_resolve = server.tool(
        name="resolve_task",
        description="Resolve the task a directory maps to without starting it.",
    )(_resolve_task)

    tool_init = server.tool(
        name="init_descriptor",
        description="Create a default descriptor (git remote + branch) in a directory.",
    )(_init_descriptor)

    tool_notifications = server.tool(
        name="list_notifications",
        description="Show recent task started/stopped and error notifications.",
    )(_list_notifications)

    tool_task = server.tool(
        name="run_task_command",
        description="Run a raw Taskwarrior command (confirmation prompts disabled).",
        annotations={"destructiveHint": True},
    )(_run_task_command)

    return ToolHandles(
        visit_directory=tool_visit,
        record_activity=tool_activity,
        session_status=tool_status,
        resolve_task=tool_resolve,
        init_descriptor=tool_init,
        list_notifications=tool_notifications,
        run_task_command=tool_task,
        manager=manager,
    )


def _emit_log(level: str, message: str, *, extra: dict[str, Any] | None = None) -> None:
    fallback = getattr(logger, level, logger.info)
    fallback(message, extra=extra or {})


__all__ = ["register_tools", "ToolHandles"]
