"""
maskstream.db
~~~~~~~~~~~~~

Stream Directory 的存储后端（MongoDB，``streams`` 集合）。

中继进程只持有一个 ``AsyncIOMotorClient``：lifespan 启动时 ``connect_mongo()``
建立并 ping 一次，随后 ``StreamRepository`` 通过 ``get_database()`` 取库；
关闭时 ``close_mongo()`` 释放。任何一步失败都直接抛出，由 lifespan 终止进程。
"""
from __future__ import annotations

from urllib.parse import urlsplit, urlunsplit

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from maskstream.core.logging import get_logger
from maskstream.core.settings import settings

logger = get_logger(__name__)

_client: AsyncIOMotorClient | None = None


def _mask_uri(uri: str) -> str:
    """隐藏连接串里的密码，只用于日志。"""
    parts = urlsplit(uri)
    if not parts.password:
        return uri
    host = parts.netloc.rsplit("@", 1)[1]
    return urlunsplit(parts._replace(netloc=f"{parts.username}:***@{host}"))


async def connect_mongo() -> None:
    """连接 Stream Directory 所在的数据库并确认可达。

    Raises:
        Exception: 节点选择超时、认证失败等，原样抛出。
    """
    global _client
    client = AsyncIOMotorClient(
        settings.MONGO_URI,
        serverSelectionTimeoutMS=settings.MONGO_TIMEOUT_MS,
    )
    try:
        await client[settings.MONGO_DB_NAME].command("ping")
    except Exception as e:
        client.close()
        logger.error(
            "Stream Directory 不可达 | uri=%s | %s", _mask_uri(settings.MONGO_URI), e,
        )
        raise

    _client = client
    logger.info(
        "Stream Directory 已连接 | uri=%s | db=%s | collection=streams",
        _mask_uri(settings.MONGO_URI),
        settings.MONGO_DB_NAME,
    )


async def close_mongo() -> None:
    """释放连接池。未连接时什么都不做。"""
    global _client
    if _client is None:
        return
    _client.close()
    _client = None
    logger.info("Stream Directory 连接已释放")


def get_database() -> AsyncIOMotorDatabase:
    """返回 Stream Directory 所在的数据库。

    Raises:
        RuntimeError: ``connect_mongo()`` 尚未成功。
    """
    if _client is None:
        raise RuntimeError("Stream Directory 尚未连接，lifespan 应先调用 connect_mongo()")
    return _client[settings.MONGO_DB_NAME]
