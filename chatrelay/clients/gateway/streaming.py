import asyncio
import inspect
import json
from collections.abc import Awaitable, Callable
from typing import Any

import aiohttp
from cachetools import TTLCache
from loguru import logger

from ...shared.constants import (
    RECEIVE_TIMEOUT,
    STREAM_DEDUP_CACHE_MAX,
    STREAM_DEDUP_CACHE_TTL,
    STREAM_QUEUE_MAX,
    STREAM_QUEUE_PUT_TIMEOUT,
    STREAM_WORKERS,
    WS_RECONNECT_DELAY,
    WS_RECONNECT_MAX_DELAY,
)
from ...shared.exceptions import GatewayConnectionError, GatewayReconnectError
from ...shared.utils import maybe_log_event_dump
from .gateway_api import GatewayAPI

__all__ = ("EventStream",)

EventHandler = Callable[[dict[str, Any]], Awaitable[None] | None]

_CLOSED_TYPES = (
    aiohttp.WSMsgType.CLOSE,
    aiohttp.WSMsgType.CLOSED,
    aiohttp.WSMsgType.CLOSING,
    aiohttp.WSMsgType.ERROR,
)


class EventStream:
    """Inbound message events from the gateway WebSocket.

    Events are deduplicated by id, put on a bounded queue and handled by a
    pool of worker tasks, so handlers for different messages overlap in time.
    A lost connection is re-established with exponential backoff.
    """

    def __init__(self, gateway: GatewayAPI, *, log_dump_events: bool = False):
        self.gateway = gateway
        self.log_dump_events = log_dump_events
        self.handlers: list[EventHandler] = []
        self.running = False
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._seen: TTLCache[str, bool] = TTLCache(
            maxsize=STREAM_DEDUP_CACHE_MAX, ttl=STREAM_DEDUP_CACHE_TTL
        )
        self._queue: asyncio.Queue[dict[str, Any] | None] = asyncio.Queue(
            maxsize=STREAM_QUEUE_MAX
        )
        self._workers: list[asyncio.Task[None]] = []

    def on_message(self, handler: EventHandler) -> None:
        self.handlers.append(handler)

    async def connect(self, *, reconnect: bool = True) -> None:
        self.running = True
        self.start_workers()
        delay = WS_RECONNECT_DELAY
        while self.running:
            try:
                self._ws = await self.gateway.ws_connect()
                delay = WS_RECONNECT_DELAY
                await self._listen(self._ws)
            except GatewayConnectionError:
                if not reconnect or not self.running:
                    raise
                logger.warning(f"Gateway stream lost; reconnecting in {delay:.0f}s")
                await self._close_ws()
                await asyncio.sleep(delay)
                delay = min(delay * 2, WS_RECONNECT_MAX_DELAY)

    async def _listen(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        while self.running:
            try:
                msg = await asyncio.wait_for(ws.receive(), timeout=RECEIVE_TIMEOUT)
            except TimeoutError:
                continue
            except (aiohttp.ClientError, OSError) as e:
                raise GatewayReconnectError(str(e)) from e
            if msg.type in _CLOSED_TYPES:
                raise GatewayReconnectError(f"websocket closed ({msg.type.name})")
            if msg.type != aiohttp.WSMsgType.TEXT:
                continue
            try:
                payload = json.loads(msg.data)
            except json.JSONDecodeError as e:
                logger.error(f"Failed to parse gateway event: {e}")
                continue
            await self.process_event(payload)

    async def process_event(self, payload: Any) -> None:
        if not isinstance(payload, dict):
            logger.debug("Ignoring non-object gateway event")
            return
        maybe_log_event_dump(self.log_dump_events, kind="Event", payload=payload)
        event_id = payload.get("id")
        if isinstance(event_id, (str, int)) and event_id != "":
            key = str(event_id)
            if key in self._seen:
                logger.debug(f"Duplicate event skipped: {key}")
                return
            self._seen[key] = True
        try:
            await asyncio.wait_for(self._queue.put(payload), timeout=STREAM_QUEUE_PUT_TIMEOUT)
        except TimeoutError:
            logger.warning(f"Event queue full; dropping event {event_id!r}")

    def start_workers(self, count: int = STREAM_WORKERS) -> None:
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._work(), name=f"event-worker-{i}")
            for i in range(count)
        ]

    async def _work(self) -> None:
        while (event := await self._queue.get()) is not None:
            await self._dispatch(event)

    async def _dispatch(self, event: dict[str, Any]) -> None:
        for handler in self.handlers:
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception(f"Event handler failed: {e}")

    async def _close_ws(self) -> None:
        ws, self._ws = self._ws, None
        if ws is not None and not ws.closed:
            try:
                await ws.close()
            except (aiohttp.ClientError, OSError) as e:
                logger.debug(f"Error closing WebSocket: {e}")

    async def close(self) -> None:
        self.running = False
        await self._close_ws()
        if self._workers:
            while not self._queue.empty():
                self._queue.get_nowait()
            for _ in self._workers:
                await self._queue.put(None)
            await asyncio.gather(*self._workers, return_exceptions=True)
            self._workers.clear()
        self._seen.clear()
        logger.debug("Event stream closed")
