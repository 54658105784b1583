"""
tests.test_room_registry
~~~~~~~~~~~~~~~~~~~~~~~~

RoomRegistry 单元测试：成员关系、主播席位、offer 缓存与延迟回收。

回收依赖事件循环的 ``call_later``，因此变更类测试都以异步方式运行。
"""
from __future__ import annotations

import asyncio

import pytest

from maskstream.services.room_registry import RoomRegistry
from tests.conftest import OTHER_STREAM_ID, STREAM_ID, FakeConnection

OFFER = {"type": "offer", "sdp": "v=0 host"}


class TestMembership:
    """测试加入、离开与切换房间。"""

    @pytest.mark.asyncio
    async def test_join_creates_room(self, registry: RoomRegistry) -> None:
        conn = FakeConnection("ws-a")
        room, added = registry.join(STREAM_ID, conn)

        assert added is True
        assert room.room_id == STREAM_ID
        assert registry.get(STREAM_ID) is room
        assert registry.room_of("ws-a") == STREAM_ID
        assert room.member_count == 1

    @pytest.mark.asyncio
    async def test_rejoin_same_room_is_noop(self, registry: RoomRegistry) -> None:
        conn = FakeConnection("ws-a")
        registry.join(STREAM_ID, conn)
        room, added = registry.join(STREAM_ID, conn)

        assert added is False
        assert room.member_count == 1

    @pytest.mark.asyncio
    async def test_join_other_room_leaves_previous(self, registry: RoomRegistry) -> None:
        """一个连接同一时刻只属于一个房间。"""
        conn = FakeConnection("ws-a")
        registry.join(STREAM_ID, conn)
        registry.join(OTHER_STREAM_ID, conn)

        assert registry.room_of("ws-a") == OTHER_STREAM_ID
        assert registry.get(STREAM_ID).member_count == 0
        assert registry.get(OTHER_STREAM_ID).member_count == 1

    @pytest.mark.asyncio
    async def test_others_excludes_self(self, registry: RoomRegistry) -> None:
        a, b, c = FakeConnection("ws-a"), FakeConnection("ws-b"), FakeConnection("ws-c")
        for conn in (a, b, c):
            room, _ = registry.join(STREAM_ID, conn)

        assert room.others("ws-b") == [a, c]

    @pytest.mark.asyncio
    async def test_leave_unknown_connection(self, registry: RoomRegistry) -> None:
        assert registry.leave("ws-missing") is None

    @pytest.mark.asyncio
    async def test_leave_releases_host_slot(self, registry: RoomRegistry) -> None:
        host, viewer = FakeConnection("ws-host"), FakeConnection("ws-v")
        room, _ = registry.join(STREAM_ID, host)
        registry.join(STREAM_ID, viewer)
        assert registry.claim_host(room, "ws-host") is True

        registry.leave("ws-host")
        assert room.host_id is None
        assert registry.claim_host(room, "ws-v") is True


class TestHostSlot:
    """测试主播席位的占用规则。"""

    @pytest.mark.asyncio
    async def test_second_host_refused(self, registry: RoomRegistry) -> None:
        room, _ = registry.join(STREAM_ID, FakeConnection("ws-1"))
        registry.join(STREAM_ID, FakeConnection("ws-2"))

        assert registry.claim_host(room, "ws-1") is True
        assert registry.claim_host(room, "ws-2") is False
        assert registry.claim_host(room, "ws-1") is True
        assert room.host_id == "ws-1"


class TestOfferCache:
    """测试 offer 缓存。"""

    @pytest.mark.asyncio
    async def test_record_offer_overwrites(self, registry: RoomRegistry) -> None:
        registry.join(STREAM_ID, FakeConnection("ws-a"))
        registry.record_offer(STREAM_ID, OFFER)
        newer = {"type": "offer", "sdp": "v=0 newer"}
        registry.record_offer(STREAM_ID, newer)

        assert registry.cached_offer(STREAM_ID) == newer

    @pytest.mark.asyncio
    async def test_offer_survives_member_leaving(self, registry: RoomRegistry) -> None:
        registry.join(STREAM_ID, FakeConnection("ws-host"))
        registry.join(STREAM_ID, FakeConnection("ws-v"))
        registry.record_offer(STREAM_ID, OFFER)

        registry.leave("ws-host")
        assert registry.cached_offer(STREAM_ID) == OFFER

    @pytest.mark.asyncio
    async def test_record_offer_creates_room(self, registry: RoomRegistry) -> None:
        registry.record_offer(STREAM_ID, OFFER)

        room = registry.get(STREAM_ID)
        assert room is not None
        assert room.member_count == 0
        assert room.info().has_offer is True

    def test_cached_offer_unknown_room(self, registry: RoomRegistry) -> None:
        assert registry.cached_offer(STREAM_ID) is None


class TestEviction:
    """测试房间清空后的延迟回收。"""

    @pytest.mark.asyncio
    async def test_empty_room_evicted_after_grace(self, registry: RoomRegistry) -> None:
        registry.join(STREAM_ID, FakeConnection("ws-a"))
        registry.record_offer(STREAM_ID, OFFER)
        registry.leave("ws-a")

        # 宽限期内房间与 offer 缓存都还在
        assert registry.cached_offer(STREAM_ID) == OFFER

        await asyncio.sleep(registry.grace_seconds * 3)
        assert registry.get(STREAM_ID) is None
        assert registry.cached_offer(STREAM_ID) is None

    @pytest.mark.asyncio
    async def test_rejoin_within_grace_cancels_eviction(self, registry: RoomRegistry) -> None:
        registry.join(STREAM_ID, FakeConnection("ws-a"))
        registry.record_offer(STREAM_ID, OFFER)
        registry.leave("ws-a")

        registry.join(STREAM_ID, FakeConnection("ws-b"))
        await asyncio.sleep(registry.grace_seconds * 3)

        assert registry.get(STREAM_ID) is not None
        assert registry.cached_offer(STREAM_ID) == OFFER

    @pytest.mark.asyncio
    async def test_offer_only_room_evicted(self, registry: RoomRegistry) -> None:
        """只有 offer、从未有人加入的房间同样会被回收。"""
        registry.record_offer(STREAM_ID, OFFER)

        await asyncio.sleep(registry.grace_seconds * 3)
        assert registry.list_rooms() == []

    @pytest.mark.asyncio
    async def test_occupied_room_never_evicted(self, registry: RoomRegistry) -> None:
        registry.join(STREAM_ID, FakeConnection("ws-a"))
        registry.join(STREAM_ID, FakeConnection("ws-b"))
        registry.leave("ws-a")

        await asyncio.sleep(registry.grace_seconds * 3)
        assert registry.get(STREAM_ID).member_count == 1
