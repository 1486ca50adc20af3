"""StreamManager: per-report event buffering and SSE subscriber management."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import Any, AsyncGenerator

from .events import ReportEventType, SSEEvent


class StreamManager:
    """Manages SSE event distribution for report runs.

    Each report_id has:
    - A list of subscriber queues (asyncio.Queue instances)
    - A buffer of all emitted events for replay on reconnect
    - A monotonically increasing sequence counter

    Buffers are evicted `retention_seconds` after a terminal event is published.
    """

    def __init__(self, retention_seconds: float = 300.0) -> None:
        self._subscribers: dict[str, list[asyncio.Queue[SSEEvent]]] = defaultdict(list)
        self._buffers: dict[str, list[SSEEvent]] = defaultdict(list)
        self._sequences: dict[str, int] = defaultdict(int)
        self._retention_seconds = retention_seconds

    def evict(self, report_id: str) -> None:
        """Drop a report's replay buffer and sequence counter."""
        self._buffers.pop(report_id, None)
        self._sequences.pop(report_id, None)
        if not self._subscribers.get(report_id):
            self._subscribers.pop(report_id, None)

    async def subscribe(self, report_id: str) -> asyncio.Queue[SSEEvent]:
        """Create and return a new subscriber queue for a report."""
        queue: asyncio.Queue[SSEEvent] = asyncio.Queue()
        self._subscribers[report_id].append(queue)
        return queue

    async def unsubscribe(self, report_id: str, queue: asyncio.Queue[SSEEvent]) -> None:
        subs = self._subscribers.get(report_id, [])
        if queue in subs:
            subs.remove(queue)
        if not subs and report_id not in self._buffers:
            self._subscribers.pop(report_id, None)

    async def emit(self, report_id: str, event: SSEEvent) -> None:
        """Broadcast an event to all subscribers and buffer it for replay."""
        self._buffers[report_id].append(event)
        for queue in self._subscribers[report_id]:
            await queue.put(event)

    async def publish(
        self, report_id: str, event_type: ReportEventType, data: dict[str, Any]
    ) -> SSEEvent:
        """Build an event with the next sequence id for the report and emit it."""
        self._sequences[report_id] += 1
        event = SSEEvent(
            event_type=event_type,
            data={"report_id": report_id, **data},
            sequence_id=self._sequences[report_id],
        )
        await self.emit(report_id, event)
        if event.is_terminal:
            asyncio.get_running_loop().call_later(self._retention_seconds, self.evict, report_id)
        return event

    def buffered(self, report_id: str) -> list[SSEEvent]:
        return list(self._buffers.get(report_id, []))

    async def event_generator(
        self, report_id: str, last_event_id: int | None = None
    ) -> AsyncGenerator[str, None]:
        """Async generator yielding SSE strings for a report.

        Buffered events with sequence_id > last_event_id are replayed first
        (all of them when last_event_id is None). The stream ends after a
        report_completed or report_failed event.
        """
        queue = await self.subscribe(report_id)
        try:
            # SSE comment as connection heartbeat (ignored by browsers)
            yield ": connected\n\n"

            replayed = 0
            for event in self._buffers.get(report_id, []):
                if last_event_id is None or event.sequence_id > last_event_id:
                    yield event.to_sse_string()
                replayed = event.sequence_id
                if event.is_terminal:
                    return

            while True:
                event = await queue.get()
                if event.sequence_id <= replayed:
                    continue
                yield event.to_sse_string()
                if event.is_terminal:
                    return
        finally:
            await self.unsubscribe(report_id, queue)
