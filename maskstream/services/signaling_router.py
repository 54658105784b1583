"""
maskstream.services.signaling_router
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

信令路由 + 聊天广播：处理客户端发来的 ``join`` / ``signal`` /
``request-offer`` / ``chat`` 事件。

约定:
  - 每个事件先规范化 ``streamId`` 再作为房间键使用。
  - 信令负载原样转发给同房间的其他成员，绝不回发给发送者；
    ``type == "offer"`` 的负载同时写入 offer 缓存，供后来的观众重放。
  - 聊天消息原样广播给房间内全部成员（含发送者）。
  - 信令与聊天都是 fire-and-forget，成功时不回执。
"""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ValidationError

from maskstream.core.logging import get_logger
from maskstream.schemas.signaling import (
    ChatRequest,
    Envelope,
    JoinRequest,
    RelayEvent,
    RequestOfferRequest,
    SignalRequest,
    validate_signal_payload,
)
from maskstream.services.connection import Member, broadcast
from maskstream.services.room_registry import RoomRegistry
from maskstream.services.stream_id import normalize_stream_id

logger = get_logger(__name__)


class SignalingRouter:
    """按房间路由实时事件。

    Attributes:
        registry: 房间注册表（独占）。
    """

    def __init__(self, registry: RoomRegistry) -> None:
        self.registry = registry

    async def dispatch(self, conn: Member, envelope: Envelope) -> None:
        """按事件名分发一帧消息。未知事件与畸形负载记录日志后丢弃。"""
        try:
            event = RelayEvent(envelope.event)
        except ValueError:
            logger.warning("未知事件，已丢弃 | event=%s", envelope.event)
            return

        if event is RelayEvent.JOIN:
            data = envelope.data
            if isinstance(data, str):
                data = {"streamId": data}
            request = self._parse(JoinRequest, data, event)
            if request is not None:
                await self.join(conn, request)
        elif event is RelayEvent.SIGNAL:
            try:
                signal_request = SignalRequest.model_validate(envelope.data)
            except ValidationError as e:
                await self._reject_signal(conn, e)
                return
            await self.signal(conn, signal_request)
        elif event is RelayEvent.REQUEST_OFFER:
            offer_request = self._parse(RequestOfferRequest, envelope.data, event)
            if offer_request is not None:
                await self.request_offer(conn, offer_request)
        elif event is RelayEvent.CHAT:
            chat_request = self._parse(ChatRequest, envelope.data, event)
            if chat_request is not None:
                await self.chat(conn, chat_request)
        else:
            logger.warning("客户端不应发送此事件，已丢弃 | event=%s", event.value)

    # ── 事件处理 ──────────────────────────────────────────────────────

    async def join(self, conn: Member, request: JoinRequest) -> None:
        """加入房间。

        - 以 ``host`` 身份加入而房间已有其他在线主播时，回 ``join-error`` 且不加入。
        - 非主播加入后，通知房间内其他成员 ``viewer-joined``。
        - 加入前房间已有成员且存在 offer 缓存时，立即把缓存重放给加入者。
        """
        room_id = normalize_stream_id(request.streamId)
        existing = self.registry.get(room_id)
        is_host = request.role == "host"

        if is_host and existing is not None and existing.host_id not in (None, conn.conn_id):
            logger.warning("重复的主播加入被拒绝 | room=%s | conn=%s", room_id, conn.conn_id)
            await conn.emit(
                RelayEvent.JOIN_ERROR,
                {"streamId": room_id, "error": "Stream already has a host"},
            )
            return

        had_others = existing is not None and bool(existing.others(conn.conn_id))
        room, added = self.registry.join(room_id, conn)
        if not added:
            logger.debug("重复加入同一房间，忽略 | room=%s", room_id)
            return
        if is_host:
            self.registry.claim_host(room, conn.conn_id)

        # 快照须在任何 await 之前取得，与本次加入保持原子
        cached = room.offer if had_others else None
        others = room.others(conn.conn_id)
        logger.info(
            "加入房间 | room=%s | role=%s | 成员: %d",
            room_id, request.role or "-", room.member_count,
        )

        if is_host:
            return
        await broadcast(others, RelayEvent.VIEWER_JOINED, {"viewerId": conn.conn_id})
        if cached is not None:
            logger.info("向迟到的观众重放 offer | room=%s", room_id)
            await conn.emit(RelayEvent.SIGNAL, {"data": cached})

    async def signal(self, conn: Member, request: SignalRequest) -> None:
        """把信令负载转发给房间内除发送者外的所有成员。"""
        room_id = normalize_stream_id(request.streamId)
        try:
            payload = validate_signal_payload(request.data)
        except ValidationError as e:
            await self._reject_signal(conn, e, room_id)
            return

        if payload.type == "offer":
            self.registry.record_offer(room_id, request.data)
        room = self.registry.get(room_id)
        targets = room.others(conn.conn_id) if room else []
        logger.debug(
            "转发信令 | room=%s | type=%s | 目标: %d", room_id, payload.type, len(targets),
        )
        await broadcast(targets, RelayEvent.SIGNAL, {"data": request.data})

    async def request_offer(self, conn: Member, request: RequestOfferRequest) -> None:
        """有缓存的 offer 时只发给请求者，否则什么都不做。"""
        room_id = normalize_stream_id(request.streamId)
        cached = self.registry.cached_offer(room_id)
        if cached is None:
            logger.debug("暂无 offer 可重放 | room=%s", room_id)
            return
        await conn.emit(RelayEvent.SIGNAL, {"data": cached})

    async def chat(self, conn: Member, request: ChatRequest) -> None:
        """把聊天消息原样广播给房间内所有成员（含发送者）。

        发送者不在该房间时先静默补加入，修正客户端与服务端的成员关系漂移。
        """
        room_id = normalize_stream_id(request.streamId)
        if self.registry.room_of(conn.conn_id) != room_id:
            logger.info("聊天发送者不在房间内，自动补加入 | room=%s", room_id)
            self.registry.join(room_id, conn)
        room = self.registry.get(room_id)
        members = list(room.members.values()) if room else [conn]
        await broadcast(members, RelayEvent.CHAT, request.message)

    def disconnect(self, conn: Member) -> None:
        """连接断开：移出房间。offer 缓存保留，直到房间清空且宽限期结束。"""
        room = self.registry.leave(conn.conn_id)
        if room is not None:
            logger.info("离开房间 | room=%s | 剩余成员: %d", room.room_id, room.member_count)

    # ── 内部 ──────────────────────────────────────────────────────────

    @staticmethod
    def _parse(model: type[BaseModel], data: Any, event: RelayEvent) -> Any:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.warning("负载格式错误，已丢弃 | event=%s | %s", event.value, e.errors())
            return None

    @staticmethod
    async def _reject_signal(
        conn: Member, error: ValidationError, room_id: str | None = None,
    ) -> None:
        logger.warning("信令负载校验失败 | room=%s | %s", room_id, error.errors())
        await conn.emit(
            RelayEvent.SIGNAL_ERROR,
            {"streamId": room_id, "error": _summarize(error)},
        )


def _summarize(error: ValidationError) -> str:
    """把校验错误压缩成一行，便于客户端展示。"""
    parts = []
    for item in error.errors():
        loc = ".".join(str(p) for p in item.get("loc", ())) or "payload"
        parts.append(f"{loc}: {item.get('msg', 'invalid')}")
    return "; ".join(parts)
