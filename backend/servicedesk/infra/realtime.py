"""In-process fan-out of named events to connected WebSocket listeners."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

from fastapi.encoders import jsonable_encoder

logger = logging.getLogger(__name__)

EVENT_BOOKING_CREATED = "bookingCreated"
EVENT_BOOKING_UPDATED = "bookingUpdated"
EVENT_EMAIL_REPLY_RECEIVED = "emailReplyReceived"


class Listener(Protocol):
    async def send_json(self, data: Any) -> None: ...


class EventBroadcaster:
    def __init__(self) -> None:
        self._listeners: set[Listener] = set()
        self._lock = asyncio.Lock()

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    async def connect(self, listener: Listener) -> None:
        async with self._lock:
            self._listeners.add(listener)
        logger.info("realtime_listener_connected", extra={"extra": {"listeners": len(self._listeners)}})

    async def disconnect(self, listener: Listener) -> None:
        async with self._lock:
            self._listeners.discard(listener)
        logger.info("realtime_listener_disconnected", extra={"extra": {"listeners": len(self._listeners)}})

    async def emit(self, event: str, data: dict[str, Any]) -> int:
        """Send one frame to every listener; returns how many received it.

        Delivery is at-most-once. A listener whose send fails is dropped.
        """
        frame = {"event": event, "data": jsonable_encoder(data)}
        async with self._lock:
            listeners = list(self._listeners)
        delivered = 0
        for listener in listeners:
            try:
                await listener.send_json(frame)
                delivered += 1
            except Exception as exc:  # noqa: BLE001
                logger.info(
                    "realtime_listener_dropped",
                    extra={"extra": {"event": event, "reason": type(exc).__name__}},
                )
                await self.disconnect(listener)
        return delivered
