"""
broadcast_hub.py — Push of new and updated records to live subscribers.

Every connected dashboard holds a WebSocket on ``/ws``. The hub keeps the
set of open connections and sends each event to all of them:

    {"type": "new_disaster",  "data": {...disaster...}}
    {"type": "new_alert",     "data": {...alert...}}
    {"type": "alert_updated", "data": {...alert...}}

Delivery is best-effort. A subscriber that errors or times out is dropped
from the registry; other subscribers are unaffected. There is no backlog:
a client that connects later never sees earlier events.

The registry is guarded by a lock because connect / disconnect arrive from
concurrent handlers while a publish may be iterating. Publish works on a
snapshot so sends never happen under the lock.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Set, Union

from prism.app.core.config import settings
from prism.app.storage.models import Alert, Disaster

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    NEW_DISASTER  = "new_disaster"
    NEW_ALERT     = "new_alert"
    ALERT_UPDATED = "alert_updated"


class Subscriber(Protocol):
    """Anything with an async ``send_text``; FastAPI's WebSocket qualifies."""

    async def send_text(self, data: str) -> None: ...


def encode_event(kind: EventKind, record: Union[Disaster, Alert, Dict[str, Any]]) -> str:
    data = record if isinstance(record, dict) else record.to_dict()
    return json.dumps({"type": kind.value, "data": data}, default=str)


class BroadcastHub:
    """
    Registry of live subscribers.

    Usage:
        hub = BroadcastHub()
        hub.subscribe(websocket)
        await hub.publish(EventKind.NEW_DISASTER, disaster)
        hub.unsubscribe(websocket)
    """

    def __init__(self, *, send_timeout: Optional[float] = None):
        self._lock = threading.Lock()
        self._subscribers: Set[Subscriber] = set()
        self.send_timeout = (
            send_timeout if send_timeout is not None else settings.BROADCAST_SEND_TIMEOUT
        )

    def subscribe(self, connection: Subscriber) -> None:
        with self._lock:
            self._subscribers.add(connection)
            count = len(self._subscribers)
        logger.info("Live subscriber connected (%d open)", count,
                    extra={"subscriber_count": count})

    def unsubscribe(self, connection: Subscriber) -> None:
        """Remove a connection; unknown connections are ignored."""
        with self._lock:
            removed = connection in self._subscribers
            self._subscribers.discard(connection)
            count = len(self._subscribers)
        if removed:
            logger.info("Live subscriber removed (%d open)", count,
                        extra={"subscriber_count": count})

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def snapshot(self) -> List[Subscriber]:
        with self._lock:
            return list(self._subscribers)

    async def _send(self, connection: Subscriber, message: str) -> None:
        await asyncio.wait_for(connection.send_text(message), timeout=self.send_timeout)

    async def publish(
        self,
        kind: EventKind,
        record: Union[Disaster, Alert, Dict[str, Any]],
    ) -> int:
        """
        Send an event to every registered subscriber.

        Returns the number of subscribers that received it. Failed
        subscribers are unregistered; nothing is raised to the caller.
        """
        message = encode_event(kind, record)
        targets = self.snapshot()
        if not targets:
            return 0

        results = await asyncio.gather(
            *(self._send(conn, message) for conn in targets),
            return_exceptions=True,
        )

        delivered = 0
        for conn, result in zip(targets, results):
            if isinstance(result, BaseException):
                logger.warning(
                    "Dropping live subscriber after failed %s push: %s",
                    kind.value, type(result).__name__,
                )
                self.unsubscribe(conn)
            else:
                delivered += 1

        logger.debug(
            "Published %s to %d/%d subscribers", kind.value, delivered, len(targets),
            extra={"subscriber_count": delivered},
        )
        return delivered
