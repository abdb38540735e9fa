from __future__ import annotations
import asyncio
from typing import AsyncIterator, Optional, Protocol

import structlog

from clearauth.protocol.errors import ConnectionLostError
from clearauth.protocol.events import Closed, ConnectionEvent, Errored, FrameReceived, Opened


class Connection(Protocol):
    async def connect(self, endpoint: str) -> None: ...

    async def send(self, data: str) -> None: ...

    def events(self) -> AsyncIterator[ConnectionEvent]: ...

    async def close(self) -> None: ...


class WebSocketConnection:
    """Websocket transport delivering Opened/FrameReceived/Closed/Errored in order.

    A single receive task feeds a single queue; ``events()`` ends after the
    first Closed or Errored. There is no reconnect.
    """

    def __init__(self, logger=None, **connect_kwargs):
        self.logger = logger or structlog.get_logger("clearauth.connection")
        self.ws = None
        self.endpoint: Optional[str] = None
        self._connect_kwargs = connect_kwargs
        self._rx_task: Optional[asyncio.Task] = None
        self._rx_queue: asyncio.Queue = asyncio.Queue()
        self._running = False

    async def connect(self, endpoint: str) -> None:
        import websockets
        self.endpoint = endpoint
        # events from an earlier connection never leak into this one
        self._rx_queue = asyncio.Queue()
        try:
            self.ws = await websockets.connect(endpoint, **self._connect_kwargs)
        except (OSError, asyncio.TimeoutError, websockets.exceptions.WebSocketException) as e:
            self.logger.error("connect_failed", endpoint=endpoint, error=str(e))
            await self._rx_queue.put(Errored(cause=e))
            return

        self._running = True
        await self._rx_queue.put(Opened(endpoint=endpoint))
        self._rx_task = asyncio.create_task(self._recv_loop())
        self.logger.info("connection_opened", endpoint=endpoint)

    async def _recv_loop(self):
        from websockets.exceptions import ConnectionClosed
        ws = self.ws
        try:
            async for raw in ws:
                await self._rx_queue.put(FrameReceived(data=raw))
            await self._rx_queue.put(Closed(code=ws.close_code, reason=ws.close_reason or ""))
        except ConnectionClosed:
            await self._rx_queue.put(Closed(code=ws.close_code, reason=ws.close_reason or ""))
        except asyncio.CancelledError:
            await self._rx_queue.put(Closed(code=ws.close_code, reason="closed by client"))
            raise
        except Exception as e:
            if self._running:
                self.logger.error("recv_loop_error", error=str(e))
            await self._rx_queue.put(Errored(cause=e))
        finally:
            self._running = False

    async def send(self, data: str) -> None:
        from websockets.exceptions import ConnectionClosed
        if not self.ws:
            raise ConnectionLostError("not connected")
        try:
            await self.ws.send(data)
        except ConnectionClosed as e:
            raise ConnectionLostError(f"connection closed: {e}") from e

    async def events(self) -> AsyncIterator[ConnectionEvent]:
        while True:
            event = await self._rx_queue.get()
            yield event
            if isinstance(event, (Closed, Errored)):
                return

    async def close(self) -> None:
        self._running = False
        if self._rx_task:
            self._rx_task.cancel()
            try:
                await self._rx_task
            except asyncio.CancelledError:
                pass
            self._rx_task = None
        if self.ws:
            await self.ws.close()
            self.ws = None
