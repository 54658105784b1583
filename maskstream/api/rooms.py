"""
maskstream.api.rooms
~~~~~~~~~~~~~~~~~~~~

房间查询接口：只读地查看中继进程内的房间状态，便于排查信令问题。

端点:
  - ``GET /rooms``               → 活跃房间列表
  - ``GET /rooms/{stream_id}``   → 单个房间详情（不存在时 404）
"""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from maskstream.api.deps import get_signaling_router
from maskstream.schemas.api_response import ApiResponse
from maskstream.schemas.streams import RoomInfoData
from maskstream.services.signaling_router import SignalingRouter
from maskstream.services.stream_id import normalize_stream_id

router: APIRouter = APIRouter()


@router.get("/rooms", summary="获取活跃房间列表", response_model=ApiResponse[list[RoomInfoData]])
async def list_rooms(signaling: SignalingRouter = Depends(get_signaling_router)):
    """返回中继进程内所有尚未回收的房间。"""
    rooms = [room.info() for room in signaling.registry.list_rooms()]
    return ApiResponse.ok(data=rooms)


@router.get("/rooms/{stream_id}", summary="获取房间详情", response_model=ApiResponse[RoomInfoData])
async def room_info(stream_id: str, signaling: SignalingRouter = Depends(get_signaling_router)):
    """返回指定房间的成员数、offer 缓存与主播信息。

    Args:
        stream_id: 直播流标识（会先做规范化）。
    """
    room = signaling.registry.get(normalize_stream_id(stream_id))
    if room is None:
        return JSONResponse(
            status_code=404,
            content=ApiResponse.fail(msg="房间不存在", code=404).model_dump(),
        )
    return ApiResponse.ok(data=room.info())
