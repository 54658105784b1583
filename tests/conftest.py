"""
tests.conftest
~~~~~~~~~~~~~~

共享 pytest fixtures：mock 掉 MongoDB（Stream Directory），
提供假的房间成员与挂载了信令中继的 TestClient，使测试可在无外部依赖下运行。
"""
from __future__ import annotations

import os
from collections.abc import Iterator
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

# ── 在所有测试导入前设置环境变量 ─────────────────────────────────────
os.environ.setdefault("ENVIRONMENT", "test")

from fastapi.testclient import TestClient  # noqa: E402

from maskstream.schemas.signaling import RelayEvent  # noqa: E402
from maskstream.services.room_registry import RoomRegistry  # noqa: E402
from maskstream.services.signaling_router import SignalingRouter  # noqa: E402

STREAM_ID: str = "123e4567-e89b-12d3-a456-426614174000"
OTHER_STREAM_ID: str = "9b2f6c1e-3d4a-4f5b-8c7d-0e1f2a3b4c5d"


class FakeConnection:
    """记录收到的所有事件的假房间成员。"""

    def __init__(self, conn_id: str) -> None:
        self.conn_id = conn_id
        self.received: list[tuple[str, Any]] = []

    async def emit(self, event: RelayEvent | str, data: Any) -> None:
        name = event.value if isinstance(event, RelayEvent) else event
        self.received.append((name, data))

    def events(self, name: str) -> list[Any]:
        """某个事件收到过的全部负载。"""
        return [data for event, data in self.received if event == name]


@pytest.fixture()
def registry() -> RoomRegistry:
    """宽限期很短的房间注册表，方便测试回收。"""
    return RoomRegistry(grace_seconds=0.05)


@pytest.fixture()
def signaling(registry: RoomRegistry) -> SignalingRouter:
    return SignalingRouter(registry)


@pytest.fixture()
def stream_repo() -> MagicMock:
    """假的 Stream Directory 仓库。"""
    repo = MagicMock()
    repo.ensure_schema = AsyncMock()
    repo.create_stream = AsyncMock(return_value=STREAM_ID)
    repo.stream_exists = AsyncMock(return_value=True)
    return repo


@pytest.fixture()
def client(stream_repo: MagicMock) -> Iterator[TestClient]:
    """跑完整 lifespan 的 TestClient，MongoDB 全部替换为 mock。

    所有 WebSocket 共用同一个事件循环，才能在同一房间内互相投递。
    """
    from maskstream.core.rate_limit import limiter
    from maskstream.main import app

    with patch("maskstream.main.connect_mongo", new=AsyncMock()), \
         patch("maskstream.main.close_mongo", new=AsyncMock()), \
         patch("maskstream.main.get_database", return_value=MagicMock()), \
         patch("maskstream.main.StreamRepository", return_value=stream_repo):
        limiter.enabled = False
        try:
            with TestClient(app) as test_client:
                yield test_client
        finally:
            limiter.enabled = True
