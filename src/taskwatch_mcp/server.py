"""FastMCP server bootstrap for taskwatch."""

import atexit
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from fastmcp import FastMCP

from . import __version__
from .config import TaskwatchSettings, get_settings
from .resolution import TaskResolver
from .sessions import ActivityHub, LoggingNotifier, SessionManager, SessionStore
from .taskwarrior import TaskBinaryNotFoundError, TaskRunner
from .tools import register_tools


def configure_logging(level: str) -> None:
    """Configure root logging for the taskwatch server."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def create_server(
    settings: Optional[TaskwatchSettings] = None,
    task_runner: TaskRunner | None = None,
    *,
    register_teardown: bool = True,
) -> FastMCP:
    """Instantiate the FastMCP server with the session manager wired in."""

    settings = settings or get_settings()

    if task_runner is None:
        task_runner = TaskRunner(
            Path(settings.task_path) if settings.task_path else None,
            taskrc=settings.taskrc,
            taskdata=settings.taskdata,
        )

    task_metadata = {
        "executable": str(task_runner.executable),
        "version": None,
        "error": None,
    }
    try:
        version_result = task_runner.run_sync(["_version"])
        if version_result.ok:
            task_metadata["version"] = version_result.stdout.strip()
        else:
            task_metadata["error"] = version_result.message
    except OSError as exc:
        task_metadata["error"] = str(exc)

    resolver = TaskResolver(
        task_runner,
        export_filter=settings.export_filter,
        helper_timeout=settings.helper_timeout,
    )
    notifier = LoggingNotifier()
    manager = SessionManager(
        SessionStore(),
        task_runner,
        resolver,
        settings,
        notifier=notifier,
        activity=ActivityHub(),
    )

    server = FastMCP(
        name="taskwatch",
        instructions=(
            "taskwatch starts and stops Taskwarrior tasks based on the directory the user "
            "works in. Report directory changes with visit_directory and user activity with "
            "record_activity; inspect state with session_status."
        ),
    )

    handles = register_tools(
        server,
        manager=manager,
        runner=task_runner,
        resolver=resolver,
        settings=settings,
    )

    def status_resource() -> str:
        """Return a JSON string summarizing basic runtime state."""

        sessions = manager.snapshot()
        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "server_version": __version__,
            "log_level": settings.log_level,
            "granularity": settings.granularity,
            "single_active": settings.single_active,
            "descriptor_file_name": settings.descriptor_file_name,
            "taskwarrior": task_metadata,
            "sessions": {
                "count": len(sessions),
                "running": sum(1 for entry in sessions if entry["running"]),
                "items": sessions,
            },
        }
        return json.dumps(payload)

    server.resource(
        "resource://taskwatch/status",
        name="taskwatch_status",
        description="Provides the current session table and Taskwarrior availability.",
        mime_type="application/json",
    )(status_resource)

    if register_teardown:
        atexit.register(manager.teardown)

    setattr(server, "status_resource", status_resource)
    setattr(server, "task_runner", task_runner)
    setattr(server, "task_metadata", task_metadata)
    setattr(server, "session_manager", manager)
    setattr(server, "tool_handles", handles)
    return server


def main() -> None:
    """Entry point for running the taskwatch MCP server via CLI."""

    settings = get_settings()
    configure_logging(settings.log_level)

    try:
        server = create_server(settings)
    except TaskBinaryNotFoundError as exc:
        logging.getLogger(__name__).error("Cannot start taskwatch: %s", exc)
        raise SystemExit(1)

    logging.getLogger(__name__).info(
        "Launching taskwatch MCP server",
        extra={
            "version": __version__,
            "log_level": settings.log_level,
            "task_version": getattr(server, "task_metadata", {}).get("version"),
        },
    )
    server.run()


if __name__ == "__main__":
    main()
