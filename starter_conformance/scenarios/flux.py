# SPDX-License-Identifier: Apache-2.0
"""
Flux streaming scenarios.

Protocol:
  connect (optional ?model=, ?encoding=&sample_rate=) → Connected{request_id, sequence_id: 0}
  binary PCM16 audio → TurnInfo{event, turn_index, transcript} …
  unsupported ?encoding= → Error{code, description}
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from ..fixtures import silent_pcm16
from ..harness import Harness
from ..messages import parse_message
from ..transport.streaming import Frame, Session, SessionState
from ..waits import event, matches, of_type, wait_for_count, wait_for_one
from .registry import scenario

PCM_QUERY = {"encoding": "linear16", "sample_rate": 16000}
CHUNK_SAMPLES = 1024
TURN_INFO_TIMEOUT_MS = 30_000


async def _open(h: Harness, query: Optional[Mapping[str, Any]] = None) -> Session:
    return await h.streaming().open(h.ws_url("flux", query), auth=h.auth)


async def _connected(h: Harness, session: Session) -> Frame:
    frame = await wait_for_one(
        session.log, of_type("Connected"),
        timeout_ms=h.config.wait_timeout_ms, poll_ms=h.config.poll_ms,
    )
    h.schemas.assert_valid("flux/connected", frame.data, context="first server message")
    return frame


def _json_reply():
    return matches(lambda f: getattr(f, "is_json", False), "any JSON message")


@scenario("flux")
async def connect(h: Harness) -> Dict[str, Any]:
    """Connected carries a request_id and sequence_id 0."""
    async with await _open(h) as session:
        frame = await _connected(h, session)
        msg = parse_message(frame)
        assert msg.request_id, "Connected.request_id is empty"
        assert msg.sequence_id == 0, f"Connected.sequence_id must be 0, got {msg.sequence_id!r}"
        return dict(frame.data)


@scenario("flux")
async def accept_model_parameter(h: Harness, model: str = "flux-general-en") -> str:
    """A ``model`` query parameter is accepted on the handshake."""
    async with await _open(h, {"model": model}) as session:
        await _connected(h, session)
        return session.state.value


@scenario("flux")
async def accept_encoding_parameters(h: Harness) -> str:
    """linear16 at 16 kHz is accepted on the handshake."""
    async with await _open(h, PCM_QUERY) as session:
        await _connected(h, session)
        return session.state.value


@scenario("flux")
async def audio_chunk_gets_response(h: Harness) -> List[str]:
    """A PCM16 chunk yields at least one JSON event."""
    async with await _open(h, PCM_QUERY) as session:
        await session.send_binary(silent_pcm16(CHUNK_SAMPLES))
        await wait_for_one(
            session.log, _json_reply(),
            timeout_ms=h.config.wait_timeout_ms, poll_ms=h.config.poll_ms,
        )
        return [f.type for f in session.messages if f.is_json]


@scenario("flux")
async def multiple_chunks(h: Harness, chunks: int = 3) -> int:
    """Several consecutive audio chunks are accepted without the session failing."""
    async with await _open(h, PCM_QUERY) as session:
        for _ in range(chunks):
            await session.send_binary(silent_pcm16(CHUNK_SAMPLES))
        replies = await wait_for_count(
            session.log, _json_reply(), 1,
            timeout_ms=h.config.wait_timeout_ms, poll_ms=h.config.poll_ms,
        )
        assert session.state is SessionState.OPEN, f"session left OPEN: {session.history}"
        return len(replies)


@scenario("flux")
async def turn_info_events(h: Harness, audio: Optional[bytes] = None) -> List[Dict[str, Any]]:
    """Streaming speech yields schema-valid TurnInfo events ending in EndOfTurn."""
    pcm = audio if audio is not None else h.fixtures.audio_pcm()
    async with await _open(h, PCM_QUERY) as session:
        await _connected(h, session)
        for offset in range(0, len(pcm), CHUNK_SAMPLES * 2):
            await session.send_binary(pcm[offset:offset + CHUNK_SAMPLES * 2])
        end = await wait_for_one(
            session.log, of_type("TurnInfo") & event("EndOfTurn"),
            timeout_ms=TURN_INFO_TIMEOUT_MS, poll_ms=h.config.poll_ms,
        )
        turns = [f for f in session.messages if f.type == "TurnInfo" and f.index <= end.index]
        for f in turns:
            h.schemas.assert_valid("flux/turn-info", f.data, context=f"TurnInfo #{f.index}")
        return [dict(f.data) for f in turns]


@scenario("flux")
async def reject_unsupported_encoding(h: Harness, encoding: str = "not-an-encoding") -> Dict[str, Any]:
    """An unknown ``encoding`` on the handshake is answered with a schema-valid Error."""
    async with await _open(h, {"encoding": encoding, "sample_rate": 16000}) as session:
        frame = await wait_for_one(
            session.log, of_type("Error"),
            timeout_ms=h.config.wait_timeout_ms, poll_ms=h.config.poll_ms,
        )
        h.schemas.assert_valid("flux/error", frame.data, context=f"encoding={encoding}")
        assert not [f for f in session.messages if f.type == "TurnInfo"], "TurnInfo sent for a rejected stream"
        return dict(frame.data)


@scenario("flux")
async def close_gracefully(h: Harness) -> List[str]:
    """Closing right after the handshake ends in CLOSED without a transport error."""
    session = await _open(h)
    await session.close()
    assert session.state is SessionState.CLOSED, f"expected CLOSED, got {session.state.value}"
    assert session.error is None, f"close reported an error: {session.error}"
    return [s.value for s in session.history]
