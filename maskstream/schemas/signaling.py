"""
maskstream.schemas.signaling
~~~~~~~~~~~~~~~~~~~~~~~~~~~~

实时信道（WebSocket）上的消息模型。

每一帧都是 ``{"event": <事件名>, "data": <负载>}`` 形式的 JSON 信封。
信令负载（offer / answer / candidate ...）按 ``type`` 字段做带标签联合校验，
校验只用于拒绝畸形负载，转发时始终使用客户端发来的原始字典。
"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

Role = Literal["host", "viewer"]


class RelayEvent(str, Enum):
    """实时信道事件名。"""

    # 客户端 → 中继
    JOIN = "join"
    SIGNAL = "signal"
    REQUEST_OFFER = "request-offer"
    CHAT = "chat"

    # 中继 → 客户端（``signal`` / ``chat`` 双向复用）
    VIEWER_JOINED = "viewer-joined"
    SIGNAL_ERROR = "signal-error"
    JOIN_ERROR = "join-error"


# ── 信封 ──────────────────────────────────────────────────────────────

class Envelope(BaseModel):
    """一帧实时消息。"""

    event: str = Field(..., description="事件名")
    data: Any = Field(default=None, description="事件负载")


class JoinRequest(BaseModel):
    """加入房间。旧版客户端只发送裸 streamId 字符串，此时 role 为空。"""

    streamId: str = Field(..., description="直播流标识（未规范化）")
    role: Role | None = Field(default=None, description="显式声明的角色")


class SignalRequest(BaseModel):
    """转发信令负载。"""

    streamId: str = Field(..., description="直播流标识（未规范化）")
    data: dict[str, Any] = Field(..., description="对等连接栈产生的信令负载")


class RequestOfferRequest(BaseModel):
    """请求重放已缓存的 offer。"""

    streamId: str = Field(..., description="直播流标识（未规范化）")


class ChatRequest(BaseModel):
    """房间内聊天。消息体不做校验，原样广播。"""

    streamId: str = Field(..., description="直播流标识（未规范化）")
    message: Any = Field(..., description="聊天消息")


class ChatMessage(BaseModel):
    """聊天消息。"""

    text: str = Field(..., description="消息文本")
    nickname: str = Field(..., description="发送者昵称")
    createdAt: str = Field(..., description="创建时间（ISO 格式）")

    @classmethod
    def compose(cls, text: str, nickname: str) -> ChatMessage:
        """以当前 UTC 时间构造一条消息。"""
        return cls(
            text=text,
            nickname=nickname,
            createdAt=datetime.now(timezone.utc).isoformat(),
        )


# ── 信令负载（带标签联合）─────────────────────────────────────────────

class _SignalBase(BaseModel):
    # 对等连接栈可能附带额外字段，一律保留
    model_config = ConfigDict(extra="allow")


class OfferSignal(_SignalBase):
    type: Literal["offer"]
    sdp: str


class AnswerSignal(_SignalBase):
    type: Literal["answer"]
    sdp: str


class CandidateSignal(_SignalBase):
    type: Literal["candidate"]
    candidate: dict[str, Any] | str


class RenegotiateSignal(_SignalBase):
    type: Literal["renegotiate"]
    renegotiate: bool = True


class TransceiverRequestSignal(_SignalBase):
    type: Literal["transceiverRequest"]
    transceiverRequest: dict[str, Any]


SignalPayload = Annotated[
    Union[
        OfferSignal,
        AnswerSignal,
        CandidateSignal,
        RenegotiateSignal,
        TransceiverRequestSignal,
    ],
    Field(discriminator="type"),
]

_signal_payload_adapter: TypeAdapter[SignalPayload] = TypeAdapter(SignalPayload)


def validate_signal_payload(data: Any) -> SignalPayload:
    """校验信令负载形状。

    Raises:
        pydantic.ValidationError: 缺少 ``type``、类型未知或必需字段缺失。
    """
    return _signal_payload_adapter.validate_python(data)
