"""
Server-Sent Events fan-out.

Each session's event bus gets one observer that copies notifications
into the queues of every connected SSE client for that session. Bus
observers run synchronously on the event loop, so publishing never
blocks. A client whose queue is full is evicted and told to reconnect
rather than silently missing notifications.
"""
import asyncio
import json
import logging
from typing import AsyncGenerator, Dict, List, Optional, Set

from fastapi import Request
from fastapi.responses import StreamingResponse

from scriptroom.orchestration.events import Notification

logger = logging.getLogger(__name__)

HEARTBEAT_SECONDS = 15.0
CLIENT_QUEUE_SIZE = 1000

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class SessionBroadcaster:
    """Per-session subscriber queues for the SSE endpoint."""

    def __init__(self, queue_size: int = CLIENT_QUEUE_SIZE):
        self._subscribers: Dict[str, List[asyncio.Queue]] = {}
        self._overflowed: Set[asyncio.Queue] = set()
        self._queue_size = queue_size

    def observer_for(self, session_id: str):
        """Bus observer that publishes into `session_id`'s client queues."""
        def _observe(notification: Notification) -> None:
            self.publish(session_id, notification)
        return _observe

    def publish(self, session_id: str, notification: Notification) -> None:
        payload = notification.to_dict()
        for queue in list(self._subscribers.get(session_id, [])):
            try:
                queue.put_nowait(payload)
            except asyncio.QueueFull:
                logger.warning(f"[SSE] Client queue full for {session_id}, evicting client")
                self._subscribers[session_id].remove(queue)
                self._overflowed.add(queue)

    def subscribe(self, session_id: str) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers.setdefault(session_id, []).append(queue)
        logger.info(f"[SSE] Client connected to {session_id} ({len(self._subscribers[session_id])} total)")
        return queue

    def unsubscribe(self, session_id: str, queue: asyncio.Queue) -> None:
        self._overflowed.discard(queue)
        queues = self._subscribers.get(session_id, [])
        if queue in queues:
            queues.remove(queue)
        if not queues:
            self._subscribers.pop(session_id, None)
        logger.info(f"[SSE] Client disconnected from {session_id}")

    def client_count(self, session_id: str) -> int:
        return len(self._subscribers.get(session_id, []))

    def is_overflowed(self, queue: asyncio.Queue) -> bool:
        return queue in self._overflowed


def format_sse(payload: dict, event: Optional[str] = None) -> str:
    data = json.dumps(payload, ensure_ascii=False, default=str)
    if event:
        return f"event: {event}\ndata: {data}\n\n"
    return f"data: {data}\n\n"


async def _sse_generator(
    request: Request,
    broadcaster: SessionBroadcaster,
    session_id: str,
    heartbeat: float,
) -> AsyncGenerator[str, None]:
    queue = broadcaster.subscribe(session_id)
    try:
        # Initial event so the browser fires onopen reliably
        yield format_sse({"sessionId": session_id}, event="connected")
        while True:
            if await request.is_disconnected():
                break
            if queue.empty() and broadcaster.is_overflowed(queue):
                yield format_sse({"sessionId": session_id}, event="overflow")
                break
            try:
                payload = await asyncio.wait_for(queue.get(), timeout=heartbeat)
            except asyncio.TimeoutError:
                yield ": heartbeat\n\n"
                continue
            yield format_sse(payload)
    finally:
        broadcaster.unsubscribe(session_id, queue)


def event_stream(
    request: Request,
    broadcaster: SessionBroadcaster,
    session_id: str,
    heartbeat: float = HEARTBEAT_SECONDS,
) -> StreamingResponse:
    """SSE response streaming a session's notifications in append order."""
    return StreamingResponse(
        _sse_generator(request, broadcaster, session_id, heartbeat),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
