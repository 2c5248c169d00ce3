"""CompletionMonitor: push-style completion events over a poll-only API.

The service only answers "what is the job's state right now". The monitor
turns that into two events, ``complete`` (final metadata) and ``error``
(the exception that ended monitoring), and polls only while at least one
``complete`` listener is registered.

States:

- IDLE: no ``complete`` listener, nothing scheduled.
- POLLING: a poll task runs; one fetch per cycle, then a sleep.
- TERMINAL: a ``complete`` or ``error`` event was delivered; no further
  fetches happen until :meth:`CompletionMonitor.rearm` is called.

Registering the first ``complete`` listener starts polling, removing the
last one stops it. A fetch that is already in flight when the last listener
goes away is not cancelled; its outcome is discarded. A new poll cycle
never starts while an earlier fetch is still outstanding.

Listeners registered after the TERMINAL state was reached are not replayed
the event. :meth:`CompletionMonitor.wait` is the exception: it returns (or
raises) the recorded outcome.
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from bqjob.core.config import JobMonitorConfig
from bqjob.core.exceptions import MonitorStateError
from bqjob.core.interfaces.observers import CompleteListener, ErrorListener
from bqjob.core.logging_config import job_id_var
from bqjob.core.models.job import JobMetadata
from bqjob.core.settings import app_settings, logger

COMPLETE = "complete"
ERROR = "error"
EVENTS = (COMPLETE, ERROR)

PollFunc = Callable[[], Awaitable[Optional[JobMetadata]]]
Listener = Union[CompleteListener, ErrorListener]


class MonitorState(StrEnum):
    IDLE = "idle"
    POLLING = "polling"
    TERMINAL = "terminal"


@dataclass
class _Listener:
    callback: Listener
    once: bool = False


class CompletionMonitor:
    """Lazily polling completion monitor for one job.

    Args:
        poll: Coroutine function performing one status fetch. It must raise
            on failure (transport error or job error), return None while the
            job is not done and return the metadata once it is done.
        config: Poll interval policy.
        job_id: Used for logging only.

    Listener registration must happen inside a running event loop since
    the first ``complete`` listener schedules the poll task.
    """

    def __init__(
        self,
        poll: PollFunc,
        config: Optional[JobMonitorConfig] = None,
        job_id: Optional[str] = None,
    ) -> None:
        self._poll = poll
        self.config = config or JobMonitorConfig.from_app_settings(app_settings)
        self.job_id = job_id
        self.state = MonitorState.IDLE
        self.metadata: Optional[JobMetadata] = None
        self.error: Optional[BaseException] = None
        self._listeners: Dict[str, List[_Listener]] = {event: [] for event in EVENTS}
        self._task: Optional[asyncio.Task] = None
        self._fetching: Optional[asyncio.Task] = None
        # Bumped on every start/stop; a poll task only acts on results
        # while its own generation is current.
        self._generation = 0

    # ---------------- Listener API -----------------
    def on(self, event: str, callback: Listener) -> "CompletionMonitor":
        self._add(event, _Listener(callback))
        return self

    def once(self, event: str, callback: Listener) -> "CompletionMonitor":
        self._add(event, _Listener(callback, once=True))
        return self

    def off(self, event: str, callback: Listener) -> "CompletionMonitor":
        """Remove one registration of ``callback``; unknown callbacks are ignored."""
        self._check_event(event)
        listeners = self._listeners[event]
        for index, listener in enumerate(listeners):
            if listener.callback == callback:
                del listeners[index]
                break
        if event == COMPLETE and not listeners:
            self._stop()
        return self

    def remove_all_listeners(self, event: Optional[str] = None) -> "CompletionMonitor":
        events = EVENTS if event is None else (event,)
        for name in events:
            self._check_event(name)
            self._listeners[name].clear()
        if COMPLETE in events:
            self._stop()
        return self

    def listener_count(self, event: str) -> int:
        self._check_event(event)
        return len(self._listeners[event])

    def _add(self, event: str, listener: _Listener) -> None:
        self._check_event(event)
        listeners = self._listeners[event]
        listeners.append(listener)
        if event == COMPLETE and len(listeners) == 1:
            self._start()

    @staticmethod
    def _check_event(event: str) -> None:
        if event not in EVENTS:
            raise MonitorStateError(f"Unknown event {event!r}; expected one of {EVENTS}")

    # ---------------- Lifecycle -----------------
    @property
    def polling(self) -> bool:
        return self.state == MonitorState.POLLING

    def rearm(self) -> None:
        """Leave TERMINAL and start a new monitoring cycle.

        Polling resumes right away if ``complete`` listeners are registered.
        Calling this in any other state is a no-op.
        """
        if self.state != MonitorState.TERMINAL:
            return
        logger.debug(f"[monitor:rearm] job_id={self.job_id}")
        self.state = MonitorState.IDLE
        self.metadata = None
        self.error = None
        if self._listeners[COMPLETE]:
            self._start()

    async def wait(self) -> JobMetadata:
        """Wait for the job to finish and return its final metadata.

        Raises the terminal error instead when monitoring ended with one. On
        a monitor that is already TERMINAL the recorded outcome is returned
        without polling again.
        """
        if self.state == MonitorState.TERMINAL:
            if self.error is not None:
                raise self.error
            return self.metadata

        future: asyncio.Future = asyncio.get_running_loop().create_future()

        def on_complete(metadata: JobMetadata) -> None:
            if not future.done():
                future.set_result(metadata)

        def on_error(error: BaseException) -> None:
            if not future.done():
                future.set_exception(error)

        self.once(ERROR, on_error)
        self.once(COMPLETE, on_complete)
        try:
            return await future
        finally:
            self.off(COMPLETE, on_complete)
            self.off(ERROR, on_error)

    async def shutdown(self) -> None:
        """Drop all listeners and cancel the poll task, in-flight fetch included."""
        self.remove_all_listeners()
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    def _start(self) -> None:
        if self.state == MonitorState.TERMINAL:
            logger.debug(
                f"[monitor:start] job_id={self.job_id} already terminal; late listener gets no replay"
            )
            return
        if self.state == MonitorState.POLLING:
            return
        self.state = MonitorState.POLLING
        self._generation += 1
        previous = self._fetching
        logger.debug(f"[monitor:start] job_id={self.job_id} generation={self._generation}")
        self._task = asyncio.create_task(self._run(self._generation, previous))

    def _stop(self) -> None:
        if self.state != MonitorState.POLLING:
            return
        logger.debug(f"[monitor:stop] job_id={self.job_id} no complete listeners left")
        self.state = MonitorState.IDLE
        self._generation += 1
        task = self._task
        # A fetch in flight is left alone; its result is discarded.
        if task is not None and not task.done() and task is not self._fetching:
            task.cancel()

    # ---------------- Poll loop -----------------
    async def _run(self, generation: int, previous: Optional[asyncio.Task]) -> None:
        job_id_var.set(self.job_id or "-")
        if previous is not None and not previous.done():
            # Keep cycles sequential: let a stale fetch settle first.
            await asyncio.wait({previous})
        interval = self.config.poll_interval
        while generation == self._generation:
            self._fetching = asyncio.current_task()
            try:
                metadata = await self._poll()
            except Exception as exc:
                if generation != self._generation:
                    logger.debug(f"[monitor:poll] discarding stale error job_id={self.job_id} err={exc}")
                    return
                await self._finish_with_error(exc)
                return
            finally:
                self._fetching = None

            if generation != self._generation:
                logger.debug(f"[monitor:poll] discarding stale result job_id={self.job_id}")
                return
            if metadata is not None:
                await self._finish_with_metadata(metadata)
                return

            logger.debug(f"[monitor:poll] job_id={self.job_id} not done; next poll in {interval:.2f}s")
            await asyncio.sleep(interval)
            interval = self.config.next_interval(interval)

    async def _finish_with_metadata(self, metadata: JobMetadata) -> None:
        self.state = MonitorState.TERMINAL
        self.metadata = metadata
        logger.info(f"[monitor:complete] job_id={self.job_id}")
        await self._emit(COMPLETE, metadata)

    async def _finish_with_error(self, error: BaseException) -> None:
        self.state = MonitorState.TERMINAL
        self.error = error
        logger.warning(f"[monitor:error] job_id={self.job_id} error={error}")
        if not self._listeners[ERROR]:
            logger.error(f"[monitor:error] job_id={self.job_id} no error listener registered; error={error!r}")
        await self._emit(ERROR, error)

    async def _emit(self, event: str, payload: Any) -> None:
        listeners = list(self._listeners[event])
        # One-shot registrations are dropped before delivery so a listener
        # that re-registers itself is kept.
        self._listeners[event] = [listener for listener in listeners if not listener.once]
        for listener in listeners:
            try:
                result = listener.callback(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                logger.error(
                    f"[monitor:listener] {event} listener failed job_id={self.job_id} "
                    f"listener={getattr(listener.callback, '__name__', listener.callback)!r} error={exc}"
                )
