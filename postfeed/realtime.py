"""
Realtime broadcast of post changes.

A single process-wide broadcaster is installed with `init_broadcaster` and
fetched with `get_broadcaster`. `WebSocketHub` delivers events to the sockets
connected to this process; `RedisBroadcaster` publishes through Redis pub/sub
so every process relays every event to its own sockets.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol

import redis.asyncio as aioredis
from fastapi import WebSocket, WebSocketDisconnect
from redis import exceptions as redis_exceptions

logger = logging.getLogger(__name__)

POSTS_EVENT = "posts"


class Broadcaster(Protocol):
    """Minimal interface the feed operations and socket endpoint need."""

    async def connect(self, websocket: WebSocket) -> None:
        ...

    def disconnect(self, websocket: WebSocket) -> None:
        ...

    async def emit(self, event: str, payload: dict) -> None:
        ...


@dataclass(eq=False)
class WebSocketHub:
    """Fans events out to the WebSockets connected to this process."""

    connections: set = field(default_factory=set)

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self.connections.add(websocket)
        logger.info("Socket connected (%d open)", len(self.connections))

    def disconnect(self, websocket: WebSocket) -> None:
        self.connections.discard(websocket)

    async def emit(self, event: str, payload: dict) -> None:
        message = {"event": event, "data": payload}
        for websocket in list(self.connections):
            try:
                await websocket.send_json(message)
            except (WebSocketDisconnect, RuntimeError, OSError) as exc:
                logger.info("Dropping socket after failed send: %s", exc)
                self.disconnect(websocket)


@dataclass(eq=False)
class RedisBroadcaster:
    """Redis pub/sub fan-out; `listen()` relays the channel to the local hub."""

    url: str
    channel: str = "postfeed:events"
    hub: WebSocketHub = field(default_factory=WebSocketHub)

    def __post_init__(self):
        self.client = aioredis.Redis.from_url(self.url)

    async def connect(self, websocket: WebSocket) -> None:
        await self.hub.connect(websocket)

    def disconnect(self, websocket: WebSocket) -> None:
        self.hub.disconnect(websocket)

    async def emit(self, event: str, payload: dict) -> None:
        await self.client.publish(
            self.channel, json.dumps({"event": event, "data": payload})
        )

    async def relay(self, raw: bytes | str) -> None:
        body = json.loads(raw)
        await self.hub.emit(body["event"], body["data"])

    async def listen(self, retry_seconds: float = 1.0) -> None:
        while True:
            pubsub = self.client.pubsub()
            try:
                await pubsub.subscribe(self.channel)
                async for message in pubsub.listen():
                    if message.get("type") != "message":
                        continue
                    try:
                        await self.relay(message["data"])
                    except (ValueError, KeyError, TypeError) as exc:
                        logger.warning("Dropping malformed realtime message: %r", exc)
            except redis_exceptions.ConnectionError:
                # Managed Redis drops idle connections; resubscribe.
                logger.warning("Lost Redis subscription, retrying in %.1fs", retry_seconds)
                await asyncio.sleep(retry_seconds)
            finally:
                await pubsub.reset()

    async def close(self) -> None:
        await self.client.aclose()


_broadcaster: Optional[Broadcaster] = None


def init_broadcaster(broadcaster: Broadcaster) -> Broadcaster:
    global _broadcaster
    _broadcaster = broadcaster
    return _broadcaster


def get_broadcaster() -> Broadcaster:
    if _broadcaster is None:
        raise RuntimeError("Realtime broadcaster is not initialized!")
    return _broadcaster


def reset_broadcaster() -> None:
    global _broadcaster
    _broadcaster = None
