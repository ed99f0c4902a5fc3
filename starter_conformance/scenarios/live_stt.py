# SPDX-License-Identifier: Apache-2.0
"""
Live STT streaming scenarios.

The client streams binary audio (or sends ``{"url": ...}`` for a hosted
file) and the starter relays Results events with ``channel.alternatives``.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from ..fixtures import silent_pcm16
from ..harness import Harness
from ..messages import parse_message
from ..transport.streaming import Session, SessionState
from ..waits import is_final, matches, of_type, wait_for_one
from .registry import scenario
from .transcription import SAMPLE_AUDIO_URL

CHUNK_SAMPLES = 1024


async def _open(h: Harness, query: Optional[Mapping[str, Any]] = None) -> Session:
    return await h.streaming().open(h.ws_url("live-stt", query), auth=h.auth)


@scenario("live-stt")
async def connect(h: Harness) -> str:
    """The live-stt endpoint accepts a WebSocket handshake."""
    async with await _open(h) as session:
        return session.state.value


@scenario("live-stt")
async def accept_model_and_language(h: Harness) -> str:
    """``model`` and ``language`` query parameters are accepted."""
    async with await _open(h, {"model": "nova-3", "language": "es"}) as session:
        assert session.state is SessionState.OPEN
        return session.state.value


@scenario("live-stt")
async def audio_chunks_get_response(h: Harness, chunks: int = 3) -> List[str]:
    """Binary audio chunks yield at least one JSON event."""
    async with await _open(h, {"model": "nova-3"}) as session:
        for _ in range(chunks):
            await session.send_binary(silent_pcm16(CHUNK_SAMPLES))
        await wait_for_one(
            session.log, matches(lambda f: getattr(f, "is_json", False), "any JSON message"),
            timeout_ms=h.config.wait_timeout_ms, poll_ms=h.config.poll_ms,
        )
        return [f.type for f in session.messages if f.is_json]


@scenario("live-stt")
async def final_results_from_url(h: Harness, url: str = SAMPLE_AUDIO_URL) -> Dict[str, Any]:
    """A hosted audio URL produces a schema-valid final Results event."""
    async with await _open(h, {"model": "nova-3"}) as session:
        await session.send_text({"url": url})
        frame = await wait_for_one(
            session.log, of_type("Results") & is_final(),
            timeout_ms=h.config.turn_timeout_ms, poll_ms=h.config.poll_ms,
        )
        h.schemas.assert_valid("live-stt/results", frame.data, context="final Results")
        results = parse_message(frame)
        assert results.alternatives, "Results.channel.alternatives is empty"
        return dict(frame.data)
