"""
feed_client.py — Python subscriber for the ``/ws`` live feed.

Used by operational scripts and integration checks that want the same
event stream the dashboard sees.

Connection lifecycle is an explicit state machine:

    DISCONNECTED ──► CONNECTING ──► CONNECTED
         ▲               │              │
         └───────────────┴──────────────┘   (failure or close)

After a failed attempt or a dropped connection the client waits with
bounded exponential backoff (1 s, 2 s, 4 s … capped at 30 s) and tries
again. A successful connection resets the backoff.
"""

from __future__ import annotations

import asyncio
import json
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Union

import websockets

from prism.app.core.config import settings

logger = logging.getLogger(__name__)

EventCallback = Callable[[Dict[str, Any]], Union[Awaitable[None], None]]


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING   = "connecting"
    CONNECTED    = "connected"


_ALLOWED_TRANSITIONS = {
    ConnectionState.DISCONNECTED: {ConnectionState.CONNECTING},
    ConnectionState.CONNECTING: {ConnectionState.CONNECTED, ConnectionState.DISCONNECTED},
    ConnectionState.CONNECTED: {ConnectionState.DISCONNECTED},
}


class ReconnectBackoff:
    """Doubling delay between ``base`` and ``cap`` seconds."""

    def __init__(self, base: Optional[float] = None, cap: Optional[float] = None):
        self.base = base if base is not None else settings.LIVE_RECONNECT_BASE_SECONDS
        self.cap = cap if cap is not None else settings.LIVE_RECONNECT_CAP_SECONDS
        self._current = self.base

    def next_delay(self) -> float:
        delay = self._current
        self._current = min(self._current * 2, self.cap)
        return delay

    def reset(self) -> None:
        self._current = self.base


class LiveFeedClient:
    """
    Usage:
        async def on_event(event):
            print(event["type"], event["data"]["id"])

        client = LiveFeedClient(on_event=on_event)
        await client.start()
        ...
        await client.stop()
    """

    def __init__(
        self,
        url: Optional[str] = None,
        *,
        on_event: EventCallback,
        backoff: Optional[ReconnectBackoff] = None,
        connect: Optional[Callable[[str], Awaitable[Any]]] = None,
    ):
        self.url = url or settings.LIVE_FEED_URL
        self.on_event = on_event
        self.backoff = backoff or ReconnectBackoff()
        self._connect = connect or websockets.connect
        self._state = ConnectionState.DISCONNECTED
        self._ws: Any = None
        self._task: Optional[asyncio.Task] = None
        self._running = False

    @property
    def state(self) -> ConnectionState:
        return self._state

    def _transition(self, new_state: ConnectionState) -> None:
        if new_state == self._state:
            return
        if new_state not in _ALLOWED_TRANSITIONS[self._state]:
            raise RuntimeError(f"Illegal transition {self._state.value} → {new_state.value}")
        logger.debug("Live feed %s → %s", self._state.value, new_state.value)
        self._state = new_state

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._run_loop())

    async def stop(self) -> None:
        self._running = False
        if self._ws is not None:
            await self._ws.close()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self._transition(ConnectionState.DISCONNECTED)

    async def _run_loop(self) -> None:
        while self._running:
            try:
                await self._connect_and_listen()
            except asyncio.CancelledError:
                break
            except Exception as exc:
                logger.warning("Live feed connection to %s lost: %s", self.url, exc)

            self._transition(ConnectionState.DISCONNECTED)
            if not self._running:
                break
            delay = self.backoff.next_delay()
            logger.info("Reconnecting to live feed in %.1fs", delay)
            await asyncio.sleep(delay)

    async def _connect_and_listen(self) -> None:
        self._transition(ConnectionState.CONNECTING)
        self._ws = await self._connect(self.url)
        self._transition(ConnectionState.CONNECTED)
        self.backoff.reset()
        logger.info("Live feed connected: %s", self.url)

        try:
            await self._ws.send(json.dumps({"type": "subscribe"}))
            async for raw in self._ws:
                await self._handle_message(raw)
        finally:
            ws, self._ws = self._ws, None
            if ws is not None:
                await ws.close()

    async def _handle_message(self, raw: Union[str, bytes]) -> None:
        try:
            event = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Ignoring non-JSON live feed frame: %r", str(raw)[:200])
            return
        if not isinstance(event, dict) or "type" not in event:
            return

        result = self.on_event(event)
        if asyncio.iscoroutine(result):
            await result
