"""
maskstream.db.stream_repository
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

Stream Directory 仓库：封装 MongoDB ``streams`` 集合的发号与存在性查询。

每个直播流一个文档，``_id`` 即流标识（UUID 字符串），天然唯一。
集合索引在服务启动时由 ``ensure_schema()`` 建立，失败即视为致命错误。
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import TypedDict

from motor.motor_asyncio import AsyncIOMotorDatabase

from maskstream.core.logging import get_logger

logger = get_logger(__name__)

# 集合名称
_COLLECTION_NAME = "streams"


class StreamDocument(TypedDict):
    """代表 MongoDB 中 streams 集合的单条记录"""
    _id: str
    created_at: datetime


class StreamRepository:
    """直播流标识仓库。

    Attributes:
        db: MongoDB 数据库实例。
    """

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self.db = db
        self._collection = db[_COLLECTION_NAME]

    async def ensure_schema(self) -> None:
        """建立 streams 集合的索引。应在 lifespan startup 中调用一次。"""
        await self._collection.create_index(
            [("created_at", 1)],
            name="idx_created_at",
        )
        logger.info("streams 集合已就绪")

    async def create_stream(self) -> str:
        """签发一个新的直播流标识并落库。

        Returns:
            新流的 UUID 字符串。
        """
        stream_id = str(uuid.uuid4())
        doc: StreamDocument = {
            "_id": stream_id,
            "created_at": datetime.now(timezone.utc),
        }
        await self._collection.insert_one(doc)
        logger.debug("直播流已创建 | stream_id=%s", stream_id)
        return stream_id

    async def stream_exists(self, stream_id: str) -> bool:
        """查询指定直播流是否存在。"""
        doc = await self._collection.find_one({"_id": stream_id}, {"_id": 1})
        return doc is not None
