"""
maskstream.client.media
~~~~~~~~~~~~~~~~~~~~~~~

本地媒体采集与远端媒体播放，基于 aiortc 的 ``MediaPlayer`` / ``MediaRecorder``。
"""
from __future__ import annotations

from typing import Any

from aiortc import MediaStreamTrack
from aiortc.contrib.media import MediaBlackhole, MediaPlayer, MediaRecorder

from maskstream.core.logging import get_logger
from maskstream.core.settings import settings

logger = get_logger(__name__)


class MediaAccessError(Exception):
    """采集设备不可用或没有权限。"""


class LocalMedia:
    """主播端采集到的音视频轨道。"""

    def __init__(self, player: MediaPlayer) -> None:
        self._player = player

    @property
    def tracks(self) -> list[MediaStreamTrack]:
        return [t for t in (self._player.audio, self._player.video) if t is not None]

    def stop(self) -> None:
        """停止所有轨道，释放采集设备。"""
        for track in self.tracks:
            track.stop()


async def capture_local_media(
    device: str | None = None,
    fmt: str | None = None,
    options: dict[str, Any] | None = None,
) -> LocalMedia:
    """打开采集设备。

    Raises:
        MediaAccessError: 设备不存在、被占用或无权限。
    """
    device = device or settings.MEDIA_DEVICE
    fmt = fmt or settings.MEDIA_FORMAT
    try:
        player = MediaPlayer(device, format=fmt, options=options or {})
    except Exception as e:
        raise MediaAccessError(f"无法打开采集设备 {device}: {e}") from e
    if player.audio is None and player.video is None:
        raise MediaAccessError(f"采集设备 {device} 没有可用的音视频轨道")
    logger.info("本地媒体已采集 | device=%s | format=%s", device, fmt)
    return LocalMedia(player)


class Playback:
    """远端媒体的播放端。

    ``sink`` 为空时消费后丢弃，否则录制到指定文件。
    """

    def __init__(self, sink: str | None = None) -> None:
        self.sink = settings.PLAYBACK_SINK if sink is None else sink
        self._recorder: MediaBlackhole | MediaRecorder | None = None
        self.tracks: list[MediaStreamTrack] = []

    async def attach(self, track: MediaStreamTrack) -> None:
        """挂载一条远端轨道并开始消费。"""
        if self._recorder is None:
            self._recorder = MediaRecorder(self.sink) if self.sink else MediaBlackhole()
        self._recorder.addTrack(track)
        self.tracks.append(track)
        # start() 只会为尚未消费的轨道启动任务
        await self._recorder.start()
        logger.info("远端媒体已挂载 | kind=%s", getattr(track, "kind", "?"))

    async def clear(self) -> None:
        """停止消费并清空已挂载的轨道。"""
        if self._recorder is not None:
            await self._recorder.stop()
            self._recorder = None
        self.tracks.clear()
