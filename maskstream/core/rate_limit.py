"""
maskstream.core.rate_limit
~~~~~~~~~~~~~~~~~~~~~~~~~~

HTTP 接口限流配置。

只约束 Stream Directory 的写接口（创建直播流）。信令与聊天走 WebSocket，
按协议约定不做限流。
"""
from __future__ import annotations

from slowapi import Limiter
from slowapi.util import get_remote_address

# 基于客户端 IP 地址进行限流，计数保存在进程内存
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
)
