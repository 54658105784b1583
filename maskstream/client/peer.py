"""
maskstream.client.peer
~~~~~~~~~~~~~~~~~~~~~~

对等连接适配层。

角色协议只依赖 ``PeerConnection`` 协议描述的能力：
  - ``signal`` 事件：产出需要发给对端的本地信令负载
  - ``signal(data)``：喂入对端发来的信令负载
  - ``stream`` 事件：收到远端媒体轨道
  - ``connect`` / ``error`` 事件：连接建立 / 失败

``AiortcPeer`` 用 aiortc 实现上述能力。aiortc 在 ``setLocalDescription``
中等待 ICE 收集完成，所有候选地址都合并在一份 SDP 里（关闭 trickle）。
"""
from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol

from aiortc import RTCConfiguration, RTCPeerConnection, RTCSessionDescription
from pyee.asyncio import AsyncIOEventEmitter

from maskstream.client.media import LocalMedia
from maskstream.core.logging import get_logger

logger = get_logger(__name__)


class PeerConnection(Protocol):
    """角色协议所需的对等连接能力。"""

    def on(self, event: str, f: Callable[..., Any]) -> Any: ...

    def remove_all_listeners(self, event: str | None = None) -> None: ...

    async def start(self) -> None: ...

    async def signal(self, data: dict[str, Any]) -> None: ...

    async def destroy(self) -> None: ...


class AiortcPeer(AsyncIOEventEmitter):
    """基于 aiortc ``RTCPeerConnection`` 的对等连接。

    Args:
        initiator: 是否为发起方（主播）。发起方在 ``start()`` 时生成 offer。
        media: 发起方附带的本地媒体。
        trickle: 只支持 False。
        configuration: 可选的 ``RTCConfiguration``。
    """

    def __init__(
        self,
        initiator: bool,
        media: LocalMedia | None = None,
        *,
        trickle: bool = False,
        configuration: RTCConfiguration | None = None,
    ) -> None:
        super().__init__()
        if trickle:
            raise ValueError("AiortcPeer 只支持关闭 trickle 的信令交换")
        self.initiator = initiator
        self._pc = RTCPeerConnection(configuration)
        self._destroyed = False

        if media is not None:
            for track in media.tracks:
                self._pc.addTrack(track)

        self._pc.on("track", self._on_track)
        self._pc.on("connectionstatechange", self._on_connection_state)

    def _on_track(self, track: Any) -> None:
        self.emit("stream", track)

    async def _on_connection_state(self) -> None:
        state = self._pc.connectionState
        logger.debug("对等连接状态: %s", state)
        if state == "connected":
            self.emit("connect")
        elif state == "failed":
            self.emit("error", ConnectionError("对等连接建立失败"))

    async def start(self) -> None:
        """发起方生成 offer；应答方无事可做。"""
        if not self.initiator:
            return
        offer = await self._pc.createOffer()
        await self._pc.setLocalDescription(offer)
        self._emit_local_description()

    async def signal(self, data: dict[str, Any]) -> None:
        """喂入对端信令。收到 offer 时自动生成 answer 并通过 ``signal`` 事件产出。"""
        kind = data.get("type")
        if kind == "candidate":
            # 关闭 trickle 时候选地址已包含在 SDP 中
            logger.debug("忽略单独的 ICE candidate")
            return
        if kind not in ("offer", "answer"):
            logger.debug("忽略不支持的信令类型: %s", kind)
            return

        await self._pc.setRemoteDescription(RTCSessionDescription(sdp=data["sdp"], type=kind))
        if kind == "offer":
            answer = await self._pc.createAnswer()
            await self._pc.setLocalDescription(answer)
            self._emit_local_description()

    def _emit_local_description(self) -> None:
        desc = self._pc.localDescription
        self.emit("signal", {"type": desc.type, "sdp": desc.sdp})

    async def destroy(self) -> None:
        """关闭底层连接，可重复调用。"""
        if self._destroyed:
            return
        self._destroyed = True
        await self._pc.close()
