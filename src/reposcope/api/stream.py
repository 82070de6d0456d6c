"""Per-request progress channel rendered as server-sent events.

Grammar on the wire:

* progress: unnamed ``message`` frames whose data is ``{"step", "progress"}``
* ``complete``: one frame carrying the camelCase ``AnalysisReport``
* ``error``: one frame carrying ``{"error": "<message>"}``
* ``: keep-alive`` comment frames while the producer is idle

Exactly one of ``complete`` or ``error`` is sent, after every progress frame.
"""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING, Any

import structlog

from reposcope.exceptions import ChannelClosedError
from reposcope.models import ProgressEvent

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from reposcope.models import AnalysisReport

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

KEEPALIVE_FRAME = ": keep-alive\n\n"


def format_sse(data: Any, event: str | None = None) -> str:
    """Render one server-sent event frame.

    Args:
        data: JSON-serializable payload.
        event: Event name; omitted for the default ``message`` type.

    Returns:
        The encoded frame, terminated by a blank line.
    """
    body = json.dumps(data, ensure_ascii=False)
    if event is None:
        return f"data: {body}\n\n"
    return f"event: {event}\ndata: {body}\n\n"


def parse_sse_frame(frame: str) -> tuple[str, Any] | None:
    """Decode a frame produced by :func:`format_sse`.

    Returns:
        ``(event, data)`` with ``event`` defaulting to ``"message"``, or
        ``None`` for comment-only frames such as keep-alives.
    """
    event = "message"
    data_lines: list[str] = []
    for line in frame.splitlines():
        if line.startswith("event:"):
            event = line[len("event:") :].strip()
        elif line.startswith("data:"):
            data_lines.append(line[len("data:") :].strip())
    if not data_lines:
        return None
    return event, json.loads("\n".join(data_lines))


class ProgressChannel:
    """Single-producer, single-consumer event channel for one analysis run.

    The producer calls :meth:`progress` any number of times, then exactly one
    of :meth:`complete` or :meth:`fail`. The consumer iterates
    :meth:`events` and marks the channel :attr:`closed` when it goes away.

    Attributes:
        terminated: Whether a terminal event has been sent.
        closed: Whether the consumer disconnected.
        terminal_event: ``"complete"`` or ``"error"`` once terminated.
    """

    def __init__(self, keepalive_seconds: float = 30.0) -> None:
        self.keepalive_seconds = keepalive_seconds
        self.terminated = False
        self.closed = False
        self.terminal_event: str | None = None
        self._queue: asyncio.Queue[tuple[str, bool]] = asyncio.Queue()

    # -- producer side -------------------------------------------------

    def progress(self, step: str, progress: int) -> None:
        """Enqueue a progress frame; dropped once the channel is terminated."""
        if self.terminated:
            logger.warning("progress_after_terminal", step=step, progress=progress)
            return
        event = ProgressEvent(step=step, progress=progress)
        self._queue.put_nowait((format_sse(event.to_wire()), False))

    def complete(self, report: AnalysisReport) -> None:
        """Send the terminal ``complete`` event.

        Raises:
            ChannelClosedError: If a terminal event was already sent.
        """
        self._terminate("complete", report.to_wire())

    def fail(self, message: str) -> None:
        """Send the terminal ``error`` event.

        Raises:
            ChannelClosedError: If a terminal event was already sent.
        """
        self._terminate("error", {"error": message})

    def _terminate(self, event: str, payload: dict[str, Any]) -> None:
        if self.terminated:
            raise ChannelClosedError(
                f"Cannot send {event!r}: channel already ended with "
                f"{self.terminal_event!r}"
            )
        self.terminated = True
        self.terminal_event = event
        self._queue.put_nowait((format_sse(payload, event=event), True))

    # -- consumer side -------------------------------------------------

    def close(self) -> None:
        """Mark the consumer as gone; the producer stops at its next check."""
        if not self.closed:
            logger.info("channel_closed", terminated=self.terminated)
        self.closed = True

    async def events(self) -> AsyncIterator[str]:
        """Yield encoded frames until the terminal frame has been yielded.

        A keep-alive comment is yielded whenever no frame arrives within
        ``keepalive_seconds``.
        """
        while True:
            try:
                frame, terminal = await asyncio.wait_for(
                    self._queue.get(), timeout=self.keepalive_seconds
                )
            except TimeoutError:
                yield KEEPALIVE_FRAME
                continue
            yield frame
            if terminal:
                return
