"""
maskstream.services.room_registry
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

房间注册表 + Offer 缓存：中继进程内唯一的共享可变状态。

所有方法都是同步的：在单线程事件循环里，每次调用都不会被其他事件打断，
因此无需加锁。房间在首次加入（或首次记录 offer）时隐式创建；
成员清空后按宽限期延迟回收，期间若有人重新加入则取消回收。
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

from maskstream.core.logging import get_logger
from maskstream.schemas.streams import RoomInfoData
from maskstream.services.connection import Member

logger = get_logger(__name__)


@dataclass
class Room:
    """一个直播间。

    Attributes:
        room_id: 规范化后的流标识。
        members: 连接 ID → 成员，按加入顺序排列。
        offer: 最近一次记录的 offer 负载（原样保存）。
        host_id: 显式声明为主播的连接 ID。
    """

    room_id: str
    members: dict[str, Member] = field(default_factory=dict)
    offer: dict[str, Any] | None = None
    host_id: str | None = None
    eviction: asyncio.TimerHandle | None = field(default=None, repr=False)

    def others(self, conn_id: str) -> list[Member]:
        """除指定连接外的其他成员。"""
        return [m for cid, m in self.members.items() if cid != conn_id]

    @property
    def member_count(self) -> int:
        return len(self.members)

    def info(self) -> RoomInfoData:
        """返回房间摘要信息。"""
        return RoomInfoData(
            room_id=self.room_id,
            member_count=self.member_count,
            has_offer=self.offer is not None,
            host_id=self.host_id,
        )


class RoomRegistry:
    """房间注册表。

    一个连接同一时刻只属于一个房间：加入新房间会先离开旧房间。

    Attributes:
        grace_seconds: 房间清空后到回收之间的宽限期（秒）。
    """

    def __init__(self, grace_seconds: float = 30.0) -> None:
        self.grace_seconds = grace_seconds
        self._rooms: dict[str, Room] = {}
        self._membership: dict[str, str] = {}

    # ── 查询 ──────────────────────────────────────────────────────────

    def get(self, room_id: str) -> Room | None:
        return self._rooms.get(room_id)

    def list_rooms(self) -> list[Room]:
        return list(self._rooms.values())

    def room_of(self, conn_id: str) -> str | None:
        """连接当前所在的房间 ID。"""
        return self._membership.get(conn_id)

    def cached_offer(self, room_id: str) -> dict[str, Any] | None:
        room = self._rooms.get(room_id)
        return room.offer if room else None

    # ── 变更 ──────────────────────────────────────────────────────────

    def join(self, room_id: str, member: Member) -> tuple[Room, bool]:
        """把成员加入房间，房间不存在则创建。

        Returns:
            ``(room, added)``；同一房间重复加入时 ``added`` 为 False。
        """
        current = self._membership.get(member.conn_id)
        if current == room_id:
            return self._rooms[room_id], False
        if current is not None:
            logger.info(
                "连接切换房间 | conn=%s | %s -> %s", member.conn_id, current, room_id,
            )
            self.leave(member.conn_id)

        room = self._get_or_create(room_id)
        self._cancel_eviction(room)
        room.members[member.conn_id] = member
        self._membership[member.conn_id] = room_id
        return room, True

    def leave(self, conn_id: str) -> Room | None:
        """把连接移出所在房间。只由断连（或切换房间）触发。"""
        room_id = self._membership.pop(conn_id, None)
        if room_id is None:
            return None
        room = self._rooms[room_id]
        room.members.pop(conn_id, None)
        if room.host_id == conn_id:
            room.host_id = None
        if not room.members:
            self._schedule_eviction(room)
        return room

    def claim_host(self, room: Room, conn_id: str) -> bool:
        """为连接占用主播席位。已有其他在线主播时返回 False。"""
        if room.host_id is not None and room.host_id != conn_id:
            return False
        room.host_id = conn_id
        return True

    def record_offer(self, room_id: str, payload: dict[str, Any]) -> None:
        """缓存房间最近一次的 offer，覆盖旧值。"""
        room = self._get_or_create(room_id)
        room.offer = payload
        if not room.members:
            self._schedule_eviction(room)

    # ── 回收 ──────────────────────────────────────────────────────────

    def _get_or_create(self, room_id: str) -> Room:
        room = self._rooms.get(room_id)
        if room is None:
            room = Room(room_id=room_id)
            self._rooms[room_id] = room
            logger.info("房间已创建 | room=%s", room_id)
        return room

    def _schedule_eviction(self, room: Room) -> None:
        self._cancel_eviction(room)
        loop = asyncio.get_running_loop()
        room.eviction = loop.call_later(self.grace_seconds, self._evict, room.room_id)
        logger.debug("房间已清空，%.1fs 后回收 | room=%s", self.grace_seconds, room.room_id)

    @staticmethod
    def _cancel_eviction(room: Room) -> None:
        if room.eviction is not None:
            room.eviction.cancel()
            room.eviction = None

    def _evict(self, room_id: str) -> None:
        room = self._rooms.get(room_id)
        if room is None or room.members:
            return
        del self._rooms[room_id]
        logger.info("房间已回收 | room=%s | 丢弃 offer 缓存: %s", room_id, room.offer is not None)
