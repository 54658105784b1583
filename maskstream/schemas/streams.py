"""
maskstream.schemas.streams
~~~~~~~~~~~~~~~~~~~~~~~~~~

Stream Directory HTTP 接口的 Pydantic 响应模型，以及房间查询数据类型。
"""
from __future__ import annotations

from pydantic import BaseModel, Field


class StreamCreatedData(BaseModel):
    """创建直播流成功的响应体。"""

    streamId: str = Field(..., description="新签发的直播流标识（UUID）")


class StreamExistsData(BaseModel):
    """直播流存在性查询的响应体。"""

    exists: bool = Field(..., description="直播流是否存在")


class ErrorData(BaseModel):
    """Stream Directory 出错时的响应体。"""

    error: str = Field(..., description="错误描述")


class RoomInfoData(BaseModel):
    """房间摘要信息数据类型"""

    room_id: str = Field(..., description="房间唯一标识（规范化后的流标识）")
    member_count: int = Field(..., description="当前连接数")
    has_offer: bool = Field(..., description="是否缓存了 offer")
    host_id: str | None = Field(default=None, description="声明为主播的连接 ID")
