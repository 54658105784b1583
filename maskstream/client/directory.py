"""
maskstream.client.directory
~~~~~~~~~~~~~~~~~~~~~~~~~~~

Stream Directory 的 HTTP 客户端（httpx）。
"""
from __future__ import annotations

from typing import Any

import httpx

from maskstream.core.logging import get_logger
from maskstream.core.settings import settings

logger = get_logger(__name__)


class StreamDirectoryError(Exception):
    """Stream Directory 不可达或返回了异常响应。"""


def _json_object(response: httpx.Response) -> dict[str, Any]:
    """解析 JSON 对象响应体。

    Raises:
        StreamDirectoryError: 响应体不是 JSON 对象。
    """
    try:
        body = response.json()
    except ValueError as e:
        raise StreamDirectoryError(f"无法解析 Stream Directory 响应: {e}") from e
    if not isinstance(body, dict):
        raise StreamDirectoryError(f"Stream Directory 响应不是 JSON 对象: {body!r}")
    return body


def _error_of(response: httpx.Response) -> str:
    try:
        return _json_object(response).get("error") or f"HTTP {response.status_code}"
    except StreamDirectoryError:
        return f"HTTP {response.status_code}"


class StreamDirectoryClient:
    """签发 / 查询直播流标识。

    Args:
        base_url: 中继服务的 HTTP 基础地址。
        transport: 可选的 httpx transport（测试时注入 ``MockTransport``）。
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.API_URL,
            transport=transport,
            timeout=timeout,
        )

    async def create_stream(self) -> str:
        """创建直播流并返回其标识。

        Raises:
            StreamDirectoryError: 服务不可达、返回非 200 或响应缺少 ``streamId``。
        """
        try:
            response = await self._client.post("/streams")
        except httpx.HTTPError as e:
            raise StreamDirectoryError(f"无法连接 Stream Directory: {e}") from e
        if response.status_code != 200:
            raise StreamDirectoryError(f"创建直播流失败: {_error_of(response)}")

        stream_id = _json_object(response).get("streamId")
        if not stream_id:
            raise StreamDirectoryError("创建直播流失败: 响应中没有 streamId")
        logger.info("直播流已创建 | stream_id=%s", stream_id)
        return stream_id

    async def stream_exists(self, stream_id: str) -> bool:
        """查询直播流是否存在。

        Raises:
            StreamDirectoryError: 服务不可达或返回 200/404 以外的状态。
        """
        try:
            response = await self._client.get(f"/streams/{stream_id}")
        except httpx.HTTPError as e:
            raise StreamDirectoryError(f"无法连接 Stream Directory: {e}") from e
        if response.status_code == 404:
            return False
        if response.status_code != 200:
            raise StreamDirectoryError(f"查询直播流失败: {_error_of(response)}")
        return bool(_json_object(response).get("exists"))

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> StreamDirectoryClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
