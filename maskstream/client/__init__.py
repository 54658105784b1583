"""
maskstream.client
~~~~~~~~~~~~~~~~~

无头客户端：连接信令中继，按主播 / 观众角色完成对等连接的信令交换。
"""
from maskstream.client.directory import StreamDirectoryClient, StreamDirectoryError
from maskstream.client.media import LocalMedia, MediaAccessError, Playback, capture_local_media
from maskstream.client.peer import AiortcPeer, PeerConnection
from maskstream.client.relay import RelayClient
from maskstream.client.session import (
    SessionError,
    SessionSetupError,
    SessionState,
    StreamSession,
)
from maskstream.client.stream_url import StreamTarget, parse_stream_url
