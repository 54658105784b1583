"""
maskstream.api.streams
~~~~~~~~~~~~~~~~~~~~~~

Stream Directory HTTP 接口：签发直播流标识、查询标识是否存在。

端点:
  - ``POST /streams``        → 创建直播流，返回 ``{streamId}``
  - ``GET  /streams/{id}``   → 查询直播流，返回 ``{exists}``（不存在时 404）

响应体保持前端约定的裸结构，出错时返回 ``{error}`` 与 500。
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from maskstream.api.deps import get_stream_repository
from maskstream.core.logging import get_logger
from maskstream.core.rate_limit import limiter
from maskstream.core.settings import settings
from maskstream.db.stream_repository import StreamRepository
from maskstream.schemas.streams import ErrorData, StreamCreatedData, StreamExistsData
from maskstream.services.stream_id import normalize_stream_id

logger = get_logger(__name__)

router: APIRouter = APIRouter()


@router.post(
    "/streams",
    summary="创建直播流",
    response_model=StreamCreatedData,
    responses={500: {"model": ErrorData}},
)
@limiter.limit(settings.STREAM_CREATE_RATE_LIMIT)
async def create_stream(
    request: Request,
    repo: StreamRepository = Depends(get_stream_repository),
):
    """签发一个新的直播流标识。主播拿到后以 ``?host=1`` 进入直播页。"""
    try:
        stream_id = await repo.create_stream()
    except Exception as e:
        logger.error("创建直播流失败: %s", e, exc_info=True)
        return JSONResponse(
            status_code=500,
            content=ErrorData(error="Failed to create stream").model_dump(),
        )
    logger.info("直播流已签发 | stream_id=%s", stream_id)
    return StreamCreatedData(streamId=stream_id)


@router.get(
    "/streams/{stream_id}",
    summary="查询直播流是否存在",
    response_model=StreamExistsData,
    responses={404: {"model": StreamExistsData}, 500: {"model": ErrorData}},
)
async def check_stream(
    stream_id: str,
    repo: StreamRepository = Depends(get_stream_repository),
):
    """查询直播流是否存在。路径中的标识会先做规范化。

    Args:
        stream_id: 直播流标识，允许百分号编码或夹带多余文本。
    """
    normalized = normalize_stream_id(stream_id)
    try:
        exists = await repo.stream_exists(normalized)
    except Exception as e:
        logger.error("查询直播流失败: %s", e, exc_info=True)
        return JSONResponse(
            status_code=500,
            content=ErrorData(error="Failed to check stream").model_dump(),
        )
    if not exists:
        return JSONResponse(
            status_code=404,
            content=StreamExistsData(exists=False).model_dump(),
        )
    return StreamExistsData(exists=True)
