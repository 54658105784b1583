"""
tests.test_stream_id
~~~~~~~~~~~~~~~~~~~~

流标识规范化单元测试。
"""
from __future__ import annotations

import pytest

from maskstream.services.stream_id import normalize_stream_id
from tests.conftest import STREAM_ID


class TestNormalizeStreamId:
    """测试规范化的提取、回退与幂等性。"""

    def test_extracts_uuid_from_noise(self) -> None:
        """UUID 前后夹带多余文本时，应只保留 UUID。"""
        assert normalize_stream_id(f"abc/ID{STREAM_ID}xyz") == STREAM_ID

    def test_percent_decoded(self) -> None:
        """百分号编码的输入应先解码。"""
        assert normalize_stream_id(f"%20stream%2F{STREAM_ID}%3Fhost%3D1") == STREAM_ID

    def test_trims_whitespace(self) -> None:
        assert normalize_stream_id(f"  {STREAM_ID}\n") == STREAM_ID

    def test_case_insensitive_and_lowercased(self) -> None:
        """大写 UUID 同样能匹配，并统一为小写。"""
        assert normalize_stream_id(STREAM_ID.upper()) == STREAM_ID

    def test_first_uuid_wins(self) -> None:
        other = "00000000-0000-4000-8000-000000000000"
        assert normalize_stream_id(f"{STREAM_ID}/{other}") == STREAM_ID

    def test_fallback_to_trimmed_raw(self) -> None:
        """找不到 UUID 时退回去空白后的原始输入，绝不报错。"""
        assert normalize_stream_id("  my-room ") == "my-room"
        assert normalize_stream_id("") == ""

    def test_fallback_keeps_percent_encoding(self) -> None:
        assert normalize_stream_id("room%2541") == "room%2541"

    @pytest.mark.parametrize(
        "raw",
        [
            STREAM_ID,
            f"abc/ID{STREAM_ID}xyz",
            f"%7B{STREAM_ID.upper()}%7D",
            "  plain-text  ",
            "%2541%2520",
            "%E4%BD%A0%E5%A5%BD",
            "%zz not-encoded",
            "",
        ],
    )
    def test_idempotent(self, raw: str) -> None:
        """normalize(normalize(x)) == normalize(x)。"""
        once = normalize_stream_id(raw)
        assert normalize_stream_id(once) == once
