"""
maskstream.client.__main__
~~~~~~~~~~~~~~~~~~~~~~~~~~

无头推流 / 观看客户端。

用法::

    # 创建直播流并以主播身份开播
    python -m maskstream.client --create

    # 打开直播页链接（带 ?host=1 即为主播）
    python -m maskstream.client http://localhost:3000/stream/<streamId>

会话建立后，标准输入的每一行作为聊天消息发送，EOF 结束。
"""
from __future__ import annotations

import argparse
import asyncio
import functools
import sys
from typing import Any

from websockets.exceptions import ConnectionClosed

from maskstream.client.directory import StreamDirectoryClient, StreamDirectoryError
from maskstream.client.media import Playback, capture_local_media
from maskstream.client.relay import RelayClient
from maskstream.client.session import SessionSetupError, StreamSession
from maskstream.client.stream_url import StreamTarget, parse_stream_url, viewer_url
from maskstream.core.logging import get_logger, setup_logging
from maskstream.core.settings import settings

logger = get_logger("maskstream.client")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="maskstream-client", description="Mask Stream 无头客户端")
    parser.add_argument("target", nargs="?", help="直播页链接或流标识")
    parser.add_argument("--create", action="store_true", help="创建新直播流并以主播身份开播")
    parser.add_argument("--relay", default=settings.RELAY_URL, help="信令中继 WebSocket 地址")
    parser.add_argument("--api", default=settings.API_URL, help="Stream Directory 地址")
    parser.add_argument("--web", default="http://localhost:3000", help="直播页站点地址（用于打印分享链接）")
    parser.add_argument("--nickname", default=None, help="聊天昵称")
    parser.add_argument("--device", default=settings.MEDIA_DEVICE, help="主播端采集设备")
    parser.add_argument("--format", default=settings.MEDIA_FORMAT, help="采集设备格式")
    parser.add_argument("--sink", default=settings.PLAYBACK_SINK, help="远端媒体录制文件，留空则丢弃")
    return parser


def _print_chat(message: Any) -> None:
    if isinstance(message, dict):
        logger.info("💬 %s: %s", message.get("nickname") or "Anon", message.get("text"))


async def _chat_from_stdin(session: StreamSession) -> None:
    while True:
        line = await asyncio.to_thread(sys.stdin.readline)
        if not line or session.error is not None:
            return
        await session.send_chat(line)


async def run(args: argparse.Namespace) -> int:
    try:
        async with StreamDirectoryClient(args.api) as directory:
            if args.create:
                target = StreamTarget(stream_id=await directory.create_stream(), is_host=True)
                logger.info("分享给观众: %s", viewer_url(args.web, target.stream_id))
            elif args.target:
                target = parse_stream_url(args.target)
                if not await directory.stream_exists(target.stream_id):
                    logger.error("直播流不存在: %s", target.stream_id)
                    return 1
            else:
                logger.error("需要提供直播页链接，或使用 --create")
                return 2
    except StreamDirectoryError as e:
        logger.error("%s", e)
        return 1

    media_factory = functools.partial(capture_local_media, args.device, args.format)
    try:
        async with RelayClient(args.relay) as relay:
            relay.on("chat", _print_chat)
            async with StreamSession(
                target.stream_id,
                relay,
                is_host=target.is_host,
                media_factory=media_factory,
                playback=Playback(args.sink),
                nickname=args.nickname,
            ) as session:
                logger.info("会话已启动 | role=%s | stream=%s", session.role, session.stream_id)
                await _chat_from_stdin(session)
            if session.error is not None:
                logger.error("会话已失败: %s", session.error)
                return 1
    except SessionSetupError as e:
        logger.error("%s", e)
        return 1
    except (ConnectionClosed, OSError) as e:
        logger.error("信令中继不可用: %s", e)
        return 1
    return 0


def main() -> None:
    setup_logging()
    args = build_parser().parse_args()
    try:
        sys.exit(asyncio.run(run(args)))
    except KeyboardInterrupt:
        logger.info("👋 已退出")


if __name__ == "__main__":
    main()
