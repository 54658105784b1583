"""
maskstream.client.stream_url
~~~~~~~~~~~~~~~~~~~~~~~~~~~~

直播页 URL 的解析与拼装。

直播页形如 ``/stream/<streamId>``，主播链接额外带 ``?host=1``。
"""
from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import parse_qs, urlsplit

from maskstream.services.stream_id import normalize_stream_id


@dataclass(frozen=True)
class StreamTarget:
    """要进入的直播间及本端角色。"""

    stream_id: str
    is_host: bool


def parse_stream_url(url: str) -> StreamTarget:
    """从直播页 URL（或裸流标识）中取出流标识与角色。"""
    parts = urlsplit(url.strip())
    segment = parts.path.rstrip("/").rsplit("/", 1)[-1] or url
    is_host = parse_qs(parts.query).get("host", [""])[0] == "1"
    return StreamTarget(stream_id=normalize_stream_id(segment), is_host=is_host)


def viewer_url(base_url: str, stream_id: str) -> str:
    """分享给观众的链接。"""
    return f"{base_url.rstrip('/')}/stream/{stream_id}"


def host_url(base_url: str, stream_id: str) -> str:
    """主播自己的链接。"""
    return f"{viewer_url(base_url, stream_id)}?host=1"
