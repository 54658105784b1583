"""
maskstream.schemas
~~~~~~~~~~~~~~~~~~
Pydantic schemas and models for the API.
"""
from maskstream.schemas.api_response import ApiResponse
from maskstream.schemas.signaling import (
    ChatMessage,
    ChatRequest,
    Envelope,
    JoinRequest,
    RelayEvent,
    RequestOfferRequest,
    SignalRequest,
    validate_signal_payload,
)
from maskstream.schemas.streams import (
    ErrorData,
    RoomInfoData,
    StreamCreatedData,
    StreamExistsData,
)

# Call model_rebuild to resolve forward references in generic Pydantic models.
ApiResponse.model_rebuild()
