"""
maskstream.client.session
~~~~~~~~~~~~~~~~~~~~~~~~~

连接角色协议：驱动本端对等连接完成一次 offer/answer 交换。

两种角色:

- 主播（发起方）::

    idle → capturing-media → awaiting-local-signal → offering → connected | failed

  采集本地音视频，以发起方模式创建对等连接，把产出的 offer 经中继发给观众，
  再把观众的 answer 喂回对等连接。

- 观众（应答方）::

    idle → awaiting-offer → answering → connected | failed

  不采集媒体，加入房间后等待 offer（可能是中继重放的缓存，也可能是实时转发），
  喂入对等连接得到 answer 后经中继发回。

任意状态都可以进入 ``closed``：``close()`` 按固定顺序释放采集设备、解绑监听、
销毁对等连接、清理播放端，并且每个会话只执行一次。作为异步上下文管理器使用时，
建立阶段出错也会走同一条清理路径。
"""
from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

from maskstream.client.media import LocalMedia, Playback, capture_local_media
from maskstream.client.peer import AiortcPeer, PeerConnection
from maskstream.client.relay import RELAY_DISCONNECT, RelayClient
from maskstream.core.logging import get_logger
from maskstream.schemas.signaling import ChatMessage, RelayEvent
from maskstream.services.stream_id import normalize_stream_id

logger = get_logger(__name__)

MediaFactory = Callable[[], Awaitable[LocalMedia]]
PeerFactory = Callable[..., PeerConnection]


class SessionState(str, Enum):
    IDLE = "idle"
    CAPTURING_MEDIA = "capturing-media"
    AWAITING_LOCAL_SIGNAL = "awaiting-local-signal"
    OFFERING = "offering"
    AWAITING_OFFER = "awaiting-offer"
    ANSWERING = "answering"
    CONNECTED = "connected"
    FAILED = "failed"
    CLOSED = "closed"


# closed 不在表中：close() 可从任意状态进入
_TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.IDLE: frozenset({
        SessionState.CAPTURING_MEDIA, SessionState.AWAITING_OFFER, SessionState.FAILED,
    }),
    SessionState.CAPTURING_MEDIA: frozenset({
        SessionState.AWAITING_LOCAL_SIGNAL, SessionState.FAILED,
    }),
    SessionState.AWAITING_LOCAL_SIGNAL: frozenset({SessionState.OFFERING, SessionState.FAILED}),
    SessionState.OFFERING: frozenset({SessionState.CONNECTED, SessionState.FAILED}),
    SessionState.AWAITING_OFFER: frozenset({SessionState.ANSWERING, SessionState.FAILED}),
    SessionState.ANSWERING: frozenset({SessionState.CONNECTED, SessionState.FAILED}),
    SessionState.CONNECTED: frozenset({SessionState.FAILED}),
    SessionState.FAILED: frozenset(),
    SessionState.CLOSED: frozenset(),
}


class SessionError(Exception):
    """角色协议内部错误（非法状态迁移、重复启动等）。"""


class SessionSetupError(SessionError):
    """会话建立失败：采集设备、对等连接或中继出错。不会自动重试。"""


def default_nickname() -> str:
    return f"User-{random.randint(0, 9998)}"


class StreamSession:
    """一个直播页会话（主播或观众）。

    Attributes:
        stream_id: 规范化后的流标识。
        relay: 已连接的中继客户端。
        is_host: 是否以主播（发起方）身份参与。
        state: 当前状态。
        error: 进入 ``failed`` 的原因。
        media: 主播端采集到的本地媒体。
        peer: 本端对等连接。
        playback: 远端媒体播放端。
    """

    def __init__(
        self,
        stream_id: str,
        relay: RelayClient,
        *,
        is_host: bool,
        peer_factory: PeerFactory = AiortcPeer,
        media_factory: MediaFactory = capture_local_media,
        playback: Playback | None = None,
        nickname: str | None = None,
    ) -> None:
        self.stream_id = normalize_stream_id(stream_id)
        self.relay = relay
        self.is_host = is_host
        self.nickname = nickname or default_nickname()
        self.playback = playback or Playback()

        self._peer_factory = peer_factory
        self._media_factory = media_factory

        self.state = SessionState.IDLE
        self.error: BaseException | None = None
        self.media: LocalMedia | None = None
        self.peer: PeerConnection | None = None

        self._relay_handlers: list[tuple[str, Callable[..., Any]]] = []
        self._closed = False
        self._settled = asyncio.Event()

    @property
    def role(self) -> str:
        return "host" if self.is_host else "viewer"

    # ── 生命周期 ──────────────────────────────────────────────────────

    async def start(self) -> None:
        """建立会话。

        Raises:
            SessionError: 会话不处于 ``idle``。
            SessionSetupError: 建立过程中任何一步失败（会话随之进入 ``failed``）。
        """
        if self.state is not SessionState.IDLE:
            raise SessionError(f"会话只能从 idle 启动，当前: {self.state.value}")
        try:
            if self.is_host:
                await self._start_host()
            else:
                await self._start_viewer()
        except Exception as e:
            self._fail(e)
            raise SessionSetupError(f"{self.role} 会话建立失败: {e}") from e

    async def _start_host(self) -> None:
        self._transition(SessionState.CAPTURING_MEDIA)
        self.media = await self._media_factory()

        self.peer = self._peer_factory(initiator=True, media=self.media)
        self._transition(SessionState.AWAITING_LOCAL_SIGNAL)
        self._attach(self.peer)

        await self.relay.send(RelayEvent.JOIN, {"streamId": self.stream_id, "role": "host"})
        await self.peer.start()

    async def _start_viewer(self) -> None:
        self.peer = self._peer_factory(initiator=False, media=None)
        self._transition(SessionState.AWAITING_OFFER)
        self._attach(self.peer)

        await self.relay.send(RelayEvent.JOIN, {"streamId": self.stream_id, "role": "viewer"})
        await self.peer.start()

    async def close(self) -> None:
        """释放会话持有的全部资源。重复调用无副作用。"""
        if self._closed:
            return
        self._closed = True

        steps: list[tuple[str, Callable[[], Awaitable[None]]]] = [
            ("释放本地媒体", self._release_media),
            ("解绑事件监听", self._detach_listeners),
            ("销毁对等连接", self._destroy_peer),
            ("清理播放端", self.playback.clear),
        ]
        for name, step in steps:
            try:
                await step()
            except Exception as e:
                logger.warning("清理步骤失败: %s | %s", name, e, exc_info=True)

        logger.info("会话已关闭 | role=%s | 最终状态: %s", self.role, self.state.value)
        self.state = SessionState.CLOSED
        self._settled.set()

    async def wait_settled(self) -> SessionState:
        """等待会话进入 connected / failed / closed 之一。"""
        await self._settled.wait()
        return self.state

    async def __aenter__(self) -> StreamSession:
        try:
            await self.start()
        except BaseException:
            await self.close()
            raise
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # ── 对外操作 ──────────────────────────────────────────────────────

    async def request_offer(self) -> None:
        """请求中继重放已缓存的 offer。没有缓存时中继不回应。"""
        await self.relay.send(RelayEvent.REQUEST_OFFER, {"streamId": self.stream_id})

    async def send_chat(self, text: str) -> ChatMessage | None:
        """发送聊天消息。空白消息不发送。"""
        text = text.strip()
        if not text:
            return None
        message = ChatMessage.compose(text, self.nickname)
        await self.relay.send(
            RelayEvent.CHAT,
            {"streamId": self.stream_id, "message": message.model_dump()},
        )
        return message

    # ── 事件处理 ──────────────────────────────────────────────────────

    def _attach(self, peer: PeerConnection) -> None:
        peer.on("signal", self._on_local_signal)
        peer.on("stream", self._on_remote_stream)
        peer.on("connect", self._on_connect)
        peer.on("error", self._on_peer_error)

        for event, handler in (
            (RelayEvent.SIGNAL.value, self._on_remote_signal),
            (RelayEvent.JOIN_ERROR.value, self._on_relay_error),
            (RelayEvent.SIGNAL_ERROR.value, self._on_relay_error),
            (RelayEvent.VIEWER_JOINED.value, self._on_viewer_joined),
            (RELAY_DISCONNECT, self._on_relay_disconnect),
        ):
            self.relay.on(event, handler)
            self._relay_handlers.append((event, handler))

    async def _on_local_signal(self, data: dict[str, Any]) -> None:
        if self._closed:
            return
        if self.state is SessionState.AWAITING_LOCAL_SIGNAL:
            self._transition(SessionState.OFFERING)
        logger.info("发送本地信令 | role=%s | type=%s", self.role, data.get("type"))
        try:
            await self.relay.send(RelayEvent.SIGNAL, {"streamId": self.stream_id, "data": data})
        except Exception as e:
            self._fail(e)

    async def _on_remote_signal(self, message: Any) -> None:
        if self._closed or self.peer is None:
            return
        data = message.get("data") if isinstance(message, dict) else None
        if not isinstance(data, dict):
            logger.warning("收到格式错误的远端信令，已忽略")
            return

        kind = data.get("type")
        if self.is_host:
            if kind == "offer":
                logger.warning("主播端忽略远端 offer")
                return
            if kind == "answer" and self.state is not SessionState.OFFERING:
                logger.info("已与观众配对，忽略多余的 answer | state=%s", self.state.value)
                return
        elif kind == "offer":
            if self.state is not SessionState.AWAITING_OFFER:
                logger.info("已收到过 offer，忽略重复的 offer | state=%s", self.state.value)
                return
            self._transition(SessionState.ANSWERING)
        elif kind == "answer" or self.state is SessionState.AWAITING_OFFER:
            # 同房间其他观众的 answer 也会被转发过来
            logger.debug("观众端忽略信令 | type=%s | state=%s", kind, self.state.value)
            return

        logger.info("喂入远端信令 | role=%s | type=%s", self.role, kind)
        try:
            await self.peer.signal(data)
        except Exception as e:
            self._fail(e)

    async def _on_remote_stream(self, track: Any) -> None:
        if self._closed:
            return
        try:
            await self.playback.attach(track)
        except Exception as e:
            logger.error("挂载远端媒体失败: %s", e, exc_info=True)

    def _on_connect(self) -> None:
        if self.state in (SessionState.OFFERING, SessionState.ANSWERING):
            self._transition(SessionState.CONNECTED)
            logger.info("对等连接已建立 | role=%s", self.role)
            self._settled.set()

    def _on_peer_error(self, error: BaseException) -> None:
        logger.error("对等连接出错 | role=%s | %s", self.role, error)
        self._fail(error)

    def _on_relay_error(self, data: Any) -> None:
        logger.error("中继拒绝了请求 | role=%s | %s", self.role, data)
        self._fail(SessionError(str(data.get("error") if isinstance(data, dict) else data)))

    def _on_relay_disconnect(self) -> None:
        logger.error("信令中继连接已断开 | role=%s | state=%s", self.role, self.state.value)
        self._fail(ConnectionError("信令中继连接已断开"))

    def _on_viewer_joined(self, data: Any) -> None:
        logger.info("有观众加入 | %s", data)

    # ── 内部 ──────────────────────────────────────────────────────────

    def _transition(self, target: SessionState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise SessionError(f"非法状态迁移: {self.state.value} -> {target.value}")
        logger.debug("状态迁移 | role=%s | %s -> %s", self.role, self.state.value, target.value)
        self.state = target

    def _fail(self, error: BaseException) -> None:
        if self._closed or self.state is SessionState.FAILED:
            return
        self.error = error
        self._transition(SessionState.FAILED)
        self._settled.set()

    async def _release_media(self) -> None:
        if self.media is not None:
            self.media.stop()
            self.media = None

    async def _detach_listeners(self) -> None:
        for event, handler in self._relay_handlers:
            self.relay.remove_listener(event, handler)
        self._relay_handlers.clear()
        if self.peer is not None:
            self.peer.remove_all_listeners()

    async def _destroy_peer(self) -> None:
        if self.peer is not None:
            await self.peer.destroy()
            self.peer = None
