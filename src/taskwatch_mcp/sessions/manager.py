"""Directory-scoped task session state machine."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable

from ..config import TaskwatchSettings
from ..descriptor import DescriptorDocument, DescriptorParseError, load_descriptor
from ..resolution import ResolutionError, TaskResolver
from ..taskwarrior import Task, TaskExecutionResult, TaskExportError, TaskRunner, TaskRunnerError
from .activity import ActivityHub
from .models import (
    ActivityObserved,
    CommandCompleted,
    Consumer,
    DirectoryVisited,
    Event,
    IdleTimerExpired,
    Session,
    Teardown,
)
from .notify import LoggingNotifier, Notifier
from .store import SessionStore

logger = logging.getLogger(__name__)

DescriptorLoader = Callable[[Path, str], "DescriptorDocument | None"]


class SessionManager:
    """Start, refresh, idle out and switch tasks as the user moves between directories.

    Events are processed one at a time by :meth:`run`. Taskwarrior start/stop
    calls issued by a transition run in the background and report back with a
    :class:`CommandCompleted` event tagged with the task UUID they were issued
    for; completions for a UUID the session is no longer bound to, or for an
    operation that is no longer outstanding, are ignored.

    A transition that has to stop a session (switch, single-active start,
    teardown) first waits for that session's outstanding command and applies
    its outcome, so a start still in flight is never left running untracked.
    """

    def __init__(
        self,
        store: SessionStore,
        runner: TaskRunner,
        resolver: TaskResolver,
        settings: TaskwatchSettings,
        *,
        notifier: Notifier | None = None,
        activity: ActivityHub | None = None,
        loader: DescriptorLoader = load_descriptor,
    ) -> None:
        self._store = store
        self._runner = runner
        self._resolver = resolver
        self._settings = settings
        self._notifier = notifier or LoggingNotifier()
        self._activity = activity or ActivityHub()
        self._loader = loader
        self._queue: asyncio.Queue[Event] = asyncio.Queue()
        self._inflight: set[asyncio.Task[TaskExecutionResult]] = set()
        self._worker: asyncio.Task[None] | None = None

    @property
    def store(self) -> SessionStore:
        return self._store

    @property
    def activity(self) -> ActivityHub:
        return self._activity

    @property
    def notifier(self) -> Notifier:
        return self._notifier

    # Dispatcher

    def post(self, event: Event) -> None:
        self._queue.put_nowait(event)

    def start(self) -> asyncio.Task[None]:
        """Start the dispatcher loop on the running event loop if it is not running."""

        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self.run())
        return self._worker

    async def run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self.handle(event)
            except Exception:
                logger.exception("Unhandled error while processing event", extra={"event": repr(event)})
            finally:
                self._queue.task_done()
            if isinstance(event, Teardown):
                return

    async def drain(self) -> None:
        """Wait until no event is queued and no Taskwarrior command is in flight."""

        while True:
            await self._queue.join()
            if not self._inflight:
                return
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def dispatch(self, event: Event) -> None:
        self.start()
        self.post(event)
        await self.drain()

    async def shutdown(self) -> None:
        if self._worker is not None and not self._worker.done():
            self.post(Teardown())
            await self._worker
        else:
            self.teardown()

    async def handle(self, event: Event) -> None:
        if isinstance(event, DirectoryVisited):
            await self._on_visit(event)
        elif isinstance(event, ActivityObserved):
            self._on_activity(event)
        elif isinstance(event, IdleTimerExpired):
            self._on_idle(event)
        elif isinstance(event, CommandCompleted):
            await self._on_completed(event)
        elif isinstance(event, Teardown):
            for session in self._store:
                await self._settle(session)
            self.teardown()
        else:
            raise TypeError(f"Unsupported event {event!r}")

    # Transitions

    async def _on_visit(self, event: DirectoryVisited) -> None:
        if event.buffer_type is not None and event.buffer_type in self._settings.ignored_buffer_types:
            logger.debug("Ignoring visit from filtered buffer", extra={"buffer_type": event.buffer_type})
            return

        session = self._store.get(event.path)
        try:
            document = self._loader(Path(event.path), self._settings.descriptor_file_name)
        except DescriptorParseError as exc:
            self._report_error(str(exc))
            return

        if session is None:
            if document is None:
                return
            task = self._resolve(document, event.path)
            if task is None:
                return
            session = self._store.add(
                Session(path=event.path, task=task, descriptor_text=document.text)
            )
            logger.info("Created session", extra={"session_path": event.path, "task_uuid": task.uuid})
            await self._begin_start(session, event.consumer)
            return

        if document is None:
            await self._settle(session)
            if session.running:
                session.pending = "stop"
                self._launch(session, "stop", None)
            return

        if document.text != session.descriptor_text or session.task is None:
            task = self._resolve(document, event.path)
            if task is None:
                return
            if session.task is None or task.uuid != session.task.uuid:
                await self._switch(session, task, document.text, event.consumer)
                return
            session.task = task
            session.descriptor_text = document.text

        if session.pending == "stop":
            session.resume_consumer = event.consumer
        elif session.running:
            self._refresh(session, event.consumer)
        elif session.pending != "start":
            await self._begin_start(session, event.consumer)

    def _on_activity(self, event: ActivityObserved) -> None:
        session = self._store.get(event.path)
        if (
            session is None
            or not session.running
            or session.pending == "stop"
            or event.consumer not in session.watchers
        ):
            logger.debug("Ignoring activity", extra={"session_path": event.path})
            return
        self._arm_timer(session)

    def _on_idle(self, event: IdleTimerExpired) -> None:
        session = self._store.get(event.path)
        if (
            session is None
            or session.task is None
            or session.task.uuid != event.uuid
            or session.timer_token != event.token
        ):
            logger.debug("Ignoring stale idle timer", extra={"session_path": event.path})
            return
        session.timer = None
        if not session.running or session.pending == "stop":
            return
        logger.info("Session idle", extra={"session_path": session.path, "task_uuid": event.uuid})
        session.pending = "stop"
        self._launch(session, "stop", None)

    async def _on_completed(self, event: CommandCompleted) -> None:
        session = self._store.get(event.path)
        if (
            session is None
            or session.task is None
            or session.task.uuid != event.uuid
            or session.pending != event.operation
        ):
            logger.debug(
                "Ignoring stale completion",
                extra={"session_path": event.path, "task_uuid": event.uuid, "operation": event.operation},
            )
            return
        await self._finish(session, event.operation, event.result, event.consumer)

    def teardown(self) -> None:
        """Stop every running task synchronously and forget all sessions.

        Without a running event loop an outstanding start cannot be awaited,
        so its task is stopped as well.
        """

        for session in self._store:
            self._cancel_timer(session)
            self._unregister_watchers(session)
            starting = session.pending == "start"
            session.pending = None
            session.command = None
            session.resume_consumer = None
            if session.running or starting:
                self._stop_now(session)
        self._store.clear()
        logger.info("Session manager torn down")

    # Helpers

    def _resolve(self, document: DescriptorDocument, path: str) -> Task | None:
        try:
            return self._resolver.resolve(document.descriptor, Path(path))
        except (ResolutionError, TaskRunnerError, TaskExportError) as exc:
            self._report_error(str(exc))
            return None

    async def _settle(self, session: Session) -> None:
        """Wait for the session's outstanding start or stop and apply its outcome."""

        job = session.command
        operation = session.pending
        if job is None or operation is None:
            return
        session.resume_consumer = None
        result = await job
        if session.command is job:
            await self._finish(session, operation, result, None)

    async def _finish(
        self,
        session: Session,
        operation: str,
        result: TaskExecutionResult,
        consumer: Consumer | None,
    ) -> None:
        session.pending = None
        session.command = None
        task = session.task
        if task is None:
            return

        if not result.ok:
            session.resume_consumer = None
            self._report_failure(operation, task, result)
            return

        if operation == "start":
            session.running = True
            self._arm_timer(session)
            if consumer is not None:
                self._register_watcher(session, consumer)
            if self._settings.notify_start:
                self._notifier.notify(f"Task '{task.description}' has started.", "info")
            return

        session.running = False
        self._cancel_timer(session)
        self._unregister_watchers(session)
        if self._settings.notify_stop:
            self._notifier.notify(f"Task '{task.description}' has stopped.", "info")
        if session.resume_consumer is not None:
            resume, session.resume_consumer = session.resume_consumer, None
            await self._begin_start(session, resume)

    async def _switch(self, session: Session, task: Task, text: str, consumer: Consumer) -> None:
        await self._settle(session)
        if session.running and not self._stop_now(session):
            return
        self._cancel_timer(session)
        self._unregister_watchers(session)
        logger.info(
            "Rebinding session",
            extra={
                "session_path": session.path,
                "old_uuid": session.task.uuid if session.task else None,
                "task_uuid": task.uuid,
            },
        )
        session.task = task
        session.descriptor_text = text
        session.running = False
        session.pending = None
        session.resume_consumer = None
        await self._begin_start(session, consumer)

    async def _begin_start(self, session: Session, consumer: Consumer | None) -> None:
        if self._settings.single_active:
            for other in self._store:
                if other is session:
                    continue
                await self._settle(other)
                if other.running:
                    self._stop_now(other)
        session.pending = "start"
        self._launch(session, "start", consumer)

    def _stop_now(self, session: Session) -> bool:
        """Blocking stop used before a switch and at teardown."""

        task = session.task
        if task is None:
            return True
        result = self._runner.stop_sync(task.uuid)
        if not result.ok:
            self._report_failure("stop", task, result)
            return False
        session.running = False
        self._cancel_timer(session)
        self._unregister_watchers(session)
        if self._settings.notify_stop:
            self._notifier.notify(f"Task '{task.description}' has stopped.", "info")
        return True

    def _launch(self, session: Session, operation: str, consumer: Consumer | None) -> None:
        if session.task is None:
            return
        path = session.path
        uuid = session.task.uuid

        async def _execute() -> TaskExecutionResult:
            try:
                if operation == "start":
                    result = await self._runner.start(uuid)
                else:
                    result = await self._runner.stop(uuid)
            except OSError as exc:
                result = TaskExecutionResult(args=(operation, uuid), returncode=-1, stdout="", stderr=str(exc))
            self.post(CommandCompleted(path, uuid, operation, result, consumer))  # type: ignore[arg-type]
            return result

        job = asyncio.get_running_loop().create_task(_execute())
        session.command = job
        self._inflight.add(job)
        job.add_done_callback(self._inflight.discard)

    def _refresh(self, session: Session, consumer: Consumer | None) -> None:
        self._arm_timer(session)
        if consumer is not None:
            self._register_watcher(session, consumer)

    def _arm_timer(self, session: Session) -> None:
        self._cancel_timer(session)
        if session.task is None:
            return
        expiry = IdleTimerExpired(session.path, session.task.uuid, session.timer_token)
        session.timer = asyncio.get_running_loop().call_later(
            self._settings.granularity, self.post, expiry
        )

    @staticmethod
    def _cancel_timer(session: Session) -> None:
        if session.timer is not None:
            session.timer.cancel()
            session.timer = None
        session.timer_token += 1

    def _register_watcher(self, session: Session, consumer: Consumer) -> None:
        if consumer in session.watchers:
            return
        path = session.path
        session.watchers[consumer] = self._activity.subscribe(
            consumer, lambda: self.post(ActivityObserved(path, consumer))
        )

    def _unregister_watchers(self, session: Session) -> None:
        for subscription_id in session.watchers.values():
            self._activity.unsubscribe(subscription_id)
        session.watchers.clear()

    def _report_error(self, message: str) -> None:
        if self._settings.notify_error:
            self._notifier.notify(message, "error")
        else:
            logger.warning(message)

    def _report_failure(self, operation: str, task: Task, result: TaskExecutionResult) -> None:
        self._report_error(f"Unable to {operation} task '{task.description}': {result.message}")

    def snapshot(self, path: str | None = None) -> list[dict[str, Any]]:
        sessions = [self._store.get(path)] if path is not None else list(self._store)
        return [session.snapshot() for session in sessions if session is not None]


__all__ = ["SessionManager"]
