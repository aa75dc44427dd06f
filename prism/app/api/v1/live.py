"""
FastAPI route: Live feed.

    WS /ws — every new_disaster / new_alert / alert_updated event as
             {"type": ..., "data": {...}}

Clients may send {"type": "subscribe"}; every accepted connection is
already subscribed, so the message is only logged. Binary and other
frames are ignored.
"""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, WebSocket

from prism.app.core.middleware import connection_context

logger = logging.getLogger(__name__)

router = APIRouter(tags=["live"])


@router.websocket("/ws")
async def live_feed(websocket: WebSocket) -> None:
    hub = websocket.app.state.services.hub
    await websocket.accept()

    async with connection_context(websocket):
        hub.subscribe(websocket)
        try:
            while True:
                frame = await websocket.receive()
                if frame["type"] == "websocket.disconnect":
                    logger.debug("Live client disconnected (code %s)", frame.get("code"))
                    break

                raw = frame.get("text")
                if raw is None:
                    logger.debug("Ignoring binary frame on /ws")
                    continue
                try:
                    message = json.loads(raw)
                except ValueError:
                    logger.debug("Ignoring non-JSON frame on /ws")
                    continue
                if isinstance(message, dict) and message.get("type") == "subscribe":
                    logger.info(
                        "Live client subscribed",
                        extra={"subscriber_count": hub.subscriber_count},
                    )
        finally:
            hub.unsubscribe(websocket)
