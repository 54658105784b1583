"""
tests.test_peer
~~~~~~~~~~~~~~~

AiortcPeer 适配层测试。``RTCPeerConnection`` 被替换为 mock，只验证调用顺序与产出的事件。
"""
from __future__ import annotations

import asyncio
from collections.abc import Iterator
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from maskstream.client.peer import AiortcPeer


@pytest.fixture()
def fake_pc() -> Iterator[MagicMock]:
    pc = MagicMock()
    pc.createOffer = AsyncMock(return_value=SimpleNamespace(type="offer", sdp="v=0 offer"))
    pc.createAnswer = AsyncMock(return_value=SimpleNamespace(type="answer", sdp="v=0 answer"))
    pc.setLocalDescription = AsyncMock(
        side_effect=lambda desc: setattr(pc, "localDescription", desc),
    )
    pc.setRemoteDescription = AsyncMock()
    pc.close = AsyncMock()
    with patch("maskstream.client.peer.RTCPeerConnection", return_value=pc):
        yield pc


class TestAiortcPeer:

    @pytest.mark.asyncio
    async def test_initiator_emits_offer(self, fake_pc: MagicMock) -> None:
        peer = AiortcPeer(initiator=True)
        signals: list[dict] = []
        peer.on("signal", signals.append)

        await peer.start()

        assert signals == [{"type": "offer", "sdp": "v=0 offer"}]
        fake_pc.setLocalDescription.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_responder_start_does_nothing(self, fake_pc: MagicMock) -> None:
        peer = AiortcPeer(initiator=False)
        await peer.start()

        fake_pc.createOffer.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_offer_produces_answer(self, fake_pc: MagicMock) -> None:
        peer = AiortcPeer(initiator=False)
        signals: list[dict] = []
        peer.on("signal", signals.append)

        await peer.signal({"type": "offer", "sdp": "v=0 remote"})

        remote = fake_pc.setRemoteDescription.await_args.args[0]
        assert (remote.type, remote.sdp) == ("offer", "v=0 remote")
        assert signals == [{"type": "answer", "sdp": "v=0 answer"}]

    @pytest.mark.asyncio
    async def test_answer_applied_without_reply(self, fake_pc: MagicMock) -> None:
        peer = AiortcPeer(initiator=True)
        signals: list[dict] = []
        peer.on("signal", signals.append)

        await peer.signal({"type": "answer", "sdp": "v=0 remote"})

        fake_pc.setRemoteDescription.assert_awaited_once()
        fake_pc.createAnswer.assert_not_awaited()
        assert signals == []

    @pytest.mark.asyncio
    async def test_candidate_ignored(self, fake_pc: MagicMock) -> None:
        peer = AiortcPeer(initiator=False)
        await peer.signal({"type": "candidate", "candidate": "a=1"})

        fake_pc.setRemoteDescription.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_media_tracks_added(self, fake_pc: MagicMock) -> None:
        tracks = [MagicMock(kind="audio"), MagicMock(kind="video")]
        AiortcPeer(initiator=True, media=SimpleNamespace(tracks=tracks))

        assert [c.args[0] for c in fake_pc.addTrack.call_args_list] == tracks

    @pytest.mark.asyncio
    async def test_connection_state_events(self, fake_pc: MagicMock) -> None:
        peer = AiortcPeer(initiator=True)
        events: list[str] = []
        peer.on("connect", lambda: events.append("connect"))
        peer.on("error", lambda e: events.append(type(e).__name__))

        fake_pc.connectionState = "connected"
        await peer._on_connection_state()
        fake_pc.connectionState = "failed"
        await peer._on_connection_state()

        assert events == ["connect", "ConnectionError"]

    @pytest.mark.asyncio
    async def test_destroy_is_idempotent(self, fake_pc: MagicMock) -> None:
        peer = AiortcPeer(initiator=True)
        await peer.destroy()
        await peer.destroy()

        fake_pc.close.assert_awaited_once()

    def test_trickle_not_supported(self, fake_pc: MagicMock) -> None:
        with pytest.raises(ValueError):
            AiortcPeer(initiator=True, trickle=True)

    @pytest.mark.asyncio
    async def test_remote_track_emitted_as_stream(self, fake_pc: MagicMock) -> None:
        peer = AiortcPeer(initiator=False)
        streams: list[object] = []
        peer.on("stream", streams.append)
        track = object()

        peer._on_track(track)
        await asyncio.sleep(0)

        assert streams == [track]
