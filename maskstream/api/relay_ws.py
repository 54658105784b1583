"""
maskstream.api.relay_ws
~~~~~~~~~~~~~~~~~~~~~~~

WebSocket 实时信道：信令交换与聊天共用同一条连接。

提供 ``/ws`` 端点。连接建立后客户端通过 ``join`` 事件进入以流标识命名的房间，
之后的 ``signal`` / ``request-offer`` / ``chat`` 事件都在房间范围内路由。

消息协议（每帧一个 JSON 信封 ``{"event": ..., "data": ...}``）:
  - ``join``           ``"<streamId>"`` 或 ``{streamId, role}``
  - ``signal``         ``{streamId, data}``          → 对端收到 ``{data}``
  - ``request-offer``  ``{streamId}``                → 自己收到 ``signal {data}``
  - ``chat``           ``{streamId, message}``       → 全房间收到 ``message``
  - ``viewer-joined``  ``{viewerId}``（仅下行）
  - ``signal-error`` / ``join-error``  ``{streamId, error}``（仅下行）
"""
from __future__ import annotations

import uuid

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from maskstream.core.logging import get_logger, request_id_ctx_var
from maskstream.schemas.signaling import Envelope
from maskstream.services.connection import RelayConnection
from maskstream.services.signaling_router import SignalingRouter

logger = get_logger(__name__)

router: APIRouter = APIRouter()


@router.websocket("/ws")
async def relay_endpoint(websocket: WebSocket) -> None:
    """实时信道端点。

    同一连接上的事件按到达顺序逐个处理；单个事件处理失败只记录日志并丢弃，
    不会断开连接，也不会向发送者回报（``signal`` 校验失败除外）。

    Args:
        websocket: FastAPI WebSocket 连接对象。
    """
    conn_id = f"ws-{uuid.uuid4().hex[:8]}"
    token = request_id_ctx_var.set(conn_id)
    signaling: SignalingRouter = websocket.app.state.signaling
    connection = RelayConnection(websocket, conn_id)

    try:
        await connection.accept()
        logger.info("实时连接已建立")

        try:
            while True:
                raw: str = await websocket.receive_text()
                try:
                    envelope = Envelope.model_validate_json(raw)
                except ValidationError as e:
                    logger.warning("无法解析的消息帧，已丢弃: %s", e.errors())
                    continue

                try:
                    await signaling.dispatch(connection, envelope)
                except Exception as e:
                    logger.error(
                        "事件处理异常，已丢弃 | event=%s | %s", envelope.event, e, exc_info=True,
                    )
        except WebSocketDisconnect:
            pass  # 正常断开
        except Exception as e:
            logger.error("WebSocket 接收异常: %s", e, exc_info=True)
        finally:
            signaling.disconnect(connection)
            logger.info("实时连接已断开")

    finally:
        request_id_ctx_var.reset(token)
