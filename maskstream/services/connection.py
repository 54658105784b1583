"""
maskstream.services.connection
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

实时连接封装：给每条 WebSocket 分配连接 ID，并提供事件发送与房间广播能力。
"""
from __future__ import annotations

import asyncio
from collections.abc import Iterable
from typing import Any, Protocol

from fastapi import WebSocket

from maskstream.core.logging import get_logger
from maskstream.schemas.signaling import RelayEvent

logger = get_logger(__name__)


class Member(Protocol):
    """房间成员需要具备的最小能力。"""

    conn_id: str

    async def emit(self, event: RelayEvent | str, data: Any) -> None: ...


def _event_name(event: RelayEvent | str) -> str:
    return event.value if isinstance(event, RelayEvent) else event


class RelayConnection:
    """一条实时信道会话。

    Attributes:
        websocket: 底层 FastAPI WebSocket。
        conn_id: 连接 ID，同时作为 ``viewer-joined`` 中的 ``viewerId``。
    """

    def __init__(self, websocket: WebSocket, conn_id: str) -> None:
        self.websocket = websocket
        self.conn_id = conn_id

    async def accept(self) -> None:
        """接受 WebSocket 握手。"""
        await self.websocket.accept()

    async def emit(self, event: RelayEvent | str, data: Any) -> None:
        """向本连接发送一帧 ``{"event", "data"}``。"""
        await self.websocket.send_json({"event": _event_name(event), "data": data})

    def __repr__(self) -> str:
        return f"RelayConnection({self.conn_id})"


async def broadcast(members: Iterable[Member], event: RelayEvent | str, data: Any) -> None:
    """向一组成员并发发送同一事件。

    单个成员发送失败只记录日志并丢弃该次投递，成员的移除交给断连流程处理。
    """
    targets = list(members)
    if not targets:
        return
    results = await asyncio.gather(
        *(member.emit(event, data) for member in targets),
        return_exceptions=True,
    )
    for member, result in zip(targets, results):
        if isinstance(result, Exception):
            logger.warning(
                "投递失败，丢弃 | event=%s | conn=%s | %s",
                _event_name(event), member.conn_id, result,
            )
