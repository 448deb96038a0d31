"""Per-document diagnostic runs with cancel-on-supersede semantics."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from functools import partial

from .documents import DocumentNotFoundError
from .models import Diagnostic

LOG = logging.getLogger(__name__)

DiagnoseFn = Callable[[str], Awaitable[Mapping[str, Sequence[Diagnostic]]]]
PublishFn = Callable[[str, Sequence[Diagnostic]], Awaitable[None] | None]


@dataclass(frozen=True, slots=True)
class _Finished:
    uri: str
    task: asyncio.Task[None]


class DiagnosticScheduler:
    """Coalesces diagnostic requests so each URI has at most one run in flight.

    ``notify`` only enqueues the URI. A single coordinator task drains the
    queue, cancelling the previous run for a URI before starting the next one
    without waiting for either to finish.
    """

    def __init__(self, diagnose: DiagnoseFn, publish: PublishFn, *, delay: float = 0.0) -> None:
        self._diagnose = diagnose
        self._publish = publish
        self._delay = delay
        self._queue: asyncio.Queue[str | _Finished | None] = asyncio.Queue()
        self._coordinator: asyncio.Task[None] | None = None
        self._closed = False

    def start(self) -> None:
        """Start the coordinator on the running loop if it is not running yet."""

        if self._coordinator is None:
            loop = asyncio.get_running_loop()
            self._coordinator = loop.create_task(self._coordinate())

    def notify(self, uri: str) -> None:
        """Request a fresh diagnostic run for ``uri``."""

        if self._closed:
            LOG.debug("Ignoring notify after close", extra={"uri": uri})
            return
        self.start()
        self._queue.put_nowait(uri)

    def close(self) -> None:
        """Stop the coordinator once queued requests are dispatched.

        Runs already started are not awaited.
        """

        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)

    async def wait_closed(self) -> None:
        if self._coordinator is not None:
            await self._coordinator

    async def _coordinate(self) -> None:
        running: dict[str, asyncio.Task[None]] = {}
        while True:
            message = await self._queue.get()
            if message is None:
                return
            if isinstance(message, _Finished):
                if running.get(message.uri) is message.task:
                    del running[message.uri]
                    LOG.debug("Discarded finished diagnostic run", extra={"uri": message.uri})
                continue
            previous = running.pop(message, None)
            if previous is not None and not previous.done():
                previous.cancel()
            task = asyncio.get_running_loop().create_task(self._run(message))
            task.add_done_callback(partial(self._finished, message))
            running[message] = task

    def _finished(self, uri: str, task: asyncio.Task[None]) -> None:
        if not self._closed:
            self._queue.put_nowait(_Finished(uri, task))

    async def _run(self, uri: str) -> None:
        try:
            if self._delay > 0:
                await asyncio.sleep(self._delay)
            diagnostics = await self._diagnose(uri)
            for file_uri, items in diagnostics.items():
                result = self._publish(file_uri, list(items))
                if asyncio.iscoroutine(result):
                    await result
        except asyncio.CancelledError:
            return
        except DocumentNotFoundError:
            LOG.debug("Document closed before diagnostics ran", extra={"uri": uri})
        except Exception:
            LOG.exception("Diagnostic run failed", extra={"uri": uri})


__all__ = ["DiagnosticScheduler"]
