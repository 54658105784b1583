"""
maskstream.services.stream_id
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

直播流标识规范化。

流标识可能经过百分号编码，也可能被夹在 URL 片段或多余文本中。
规范化规则：百分号解码 → 去首尾空白 → 取第一个 UUID 形状的子串（统一小写）。
找不到 UUID 时退回去除首尾空白后的原始输入，保证函数总能返回结果且幂等。
"""
from __future__ import annotations

import re
from urllib.parse import unquote

_UUID_RE = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}",
    re.IGNORECASE,
)


def normalize_stream_id(raw: str) -> str:
    """把任意形式的流标识规范化为房间键。

    >>> normalize_stream_id("abc/ID123e4567-e89b-12d3-a456-426614174000xyz")
    '123e4567-e89b-12d3-a456-426614174000'
    >>> normalize_stream_id("  room-42 ")
    'room-42'
    """
    decoded = unquote(raw).strip()
    match = _UUID_RE.search(decoded)
    if match:
        return match.group(0).lower()
    # 回退值不解码：normalize(normalize(x)) == normalize(x)
    return raw.strip()
