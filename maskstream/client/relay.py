"""
maskstream.client.relay
~~~~~~~~~~~~~~~~~~~~~~~

信令中继的客户端一侧：一条 WebSocket 连接，收到的每个事件都在本地以同名事件触发。

用法::

    async with RelayClient("ws://localhost:4000/ws") as relay:
        relay.on("chat", print)
        relay.on("disconnect", lambda: print("中继已断开"))
        await relay.send("join", {"streamId": stream_id, "role": "viewer"})
"""
from __future__ import annotations

import asyncio
import contextlib
from typing import Any

from pydantic import ValidationError
from pyee.asyncio import AsyncIOEventEmitter
from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed

from maskstream.core.logging import get_logger
from maskstream.core.settings import settings
from maskstream.schemas.signaling import Envelope, RelayEvent

logger = get_logger(__name__)

# 连接被对端或网络关闭时在本地触发的事件，不经过中继
RELAY_DISCONNECT = "disconnect"


class RelayClient(AsyncIOEventEmitter):
    """中继客户端。

    Attributes:
        url: 中继 WebSocket 地址。
    """

    def __init__(self, url: str | None = None) -> None:
        super().__init__()
        self.url = url or settings.RELAY_URL
        self._ws: ClientConnection | None = None
        self._listener: asyncio.Task[None] | None = None

    async def connect(self) -> None:
        """建立连接并开始后台接收。"""
        self._ws = await connect(self.url)
        self._listener = asyncio.create_task(self._listen())
        logger.info("已连接信令中继 | url=%s", self.url)

    async def send(self, event: RelayEvent | str, data: Any) -> None:
        """向中继发送一帧。"""
        if self._ws is None:
            raise RuntimeError("RelayClient 尚未连接")
        name = event.value if isinstance(event, RelayEvent) else event
        await self._ws.send(Envelope(event=name, data=data).model_dump_json())

    async def _listen(self) -> None:
        assert self._ws is not None
        try:
            async for raw in self._ws:
                try:
                    envelope = Envelope.model_validate_json(raw)
                except ValidationError as e:
                    logger.warning("无法解析中继消息，已丢弃: %s", e.errors())
                    continue
                self.emit(envelope.event, envelope.data)
        except ConnectionClosed as e:
            logger.warning("信令中继连接异常关闭: %s", e)
        else:
            logger.info("信令中继连接已关闭")
        # close() 取消本任务时不会走到这里
        self.emit(RELAY_DISCONNECT)

    async def close(self) -> None:
        """停止接收并关闭连接。"""
        if self._listener is not None:
            self._listener.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._listener
            self._listener = None
        if self._ws is not None:
            await self._ws.close()
            self._ws = None

    async def __aenter__(self) -> RelayClient:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
