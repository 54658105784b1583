from fastapi import Request

from maskstream.db.stream_repository import StreamRepository
from maskstream.services.signaling_router import SignalingRouter


def get_stream_repository(request: Request) -> StreamRepository:
    return request.app.state.stream_repo


def get_signaling_router(request: Request) -> SignalingRouter:
    return request.app.state.signaling
