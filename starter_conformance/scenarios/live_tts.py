# SPDX-License-Identifier: Apache-2.0
"""
Live TTS streaming scenarios.

Protocol:
  Speak{text} + Flush → Metadata{request_id, model_*} and binary audio frames
  Speak without text  → Error{error: {code, message}}
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from ..harness import Harness
from ..messages import flush_message, parse_message, speak_message
from ..transport.streaming import Session
from ..waits import is_binary, of_type, wait_for_all, wait_for_one
from .registry import scenario

SPEAK_TEXT = "Hello, this is a test of the streaming text to speech service."


async def _open(h: Harness, query: Optional[Mapping[str, Any]] = None) -> Session:
    return await h.streaming().open(h.ws_url("live-tts", query), auth=h.auth)


async def _speak(session: Session, text: Optional[str]) -> None:
    await session.send_text(speak_message(text))
    if text is not None:
        await session.send_text(flush_message())


@scenario("live-tts")
async def speak_returns_audio(h: Harness) -> int:
    """Speak + Flush streams at least one binary audio frame."""
    async with await _open(h) as session:
        await _speak(session, SPEAK_TEXT)
        await wait_for_one(
            session.log, is_binary(),
            timeout_ms=h.config.wait_timeout_ms, poll_ms=h.config.poll_ms,
        )
        return len(session.log.binary_frames())


@scenario("live-tts")
async def metadata_event(h: Harness) -> Dict[str, Any]:
    """Speak + Flush yields a schema-valid Metadata event alongside audio."""
    async with await _open(h) as session:
        await _speak(session, SPEAK_TEXT)
        snap = await wait_for_all(
            session.log, [of_type("Metadata"), is_binary()],
            timeout_ms=h.config.wait_timeout_ms, poll_ms=h.config.poll_ms,
        )
        frame = next(f for f in snap if f.type == "Metadata")
        h.schemas.assert_valid("live-tts/metadata", frame.data, context="Metadata")
        meta = parse_message(frame)
        assert meta.request_id, "Metadata.request_id is empty"
        return dict(frame.data)


@scenario("live-tts")
async def accept_model_parameter(h: Harness, model: str = "aura-luna-en") -> int:
    """A ``model`` query parameter is accepted and audio still streams."""
    async with await _open(h, {"model": model}) as session:
        await _speak(session, SPEAK_TEXT)
        await wait_for_one(
            session.log, is_binary(),
            timeout_ms=h.config.wait_timeout_ms, poll_ms=h.config.poll_ms,
        )
        return len(session.log.binary_frames())


async def _expect_error(h: Harness, session: Session, context: str) -> Dict[str, Any]:
    frame = await wait_for_one(
        session.log, of_type("Error"),
        timeout_ms=h.config.wait_timeout_ms, poll_ms=h.config.poll_ms,
    )
    h.schemas.assert_valid("live-tts/error", frame.data, context=context)
    assert parse_message(frame).code, f"Error event must carry error.code: {frame.data!r}"
    return dict(frame.data)


@scenario("live-tts")
async def reject_missing_text(h: Harness) -> Dict[str, Any]:
    """Speak without ``text`` is answered with Error{error: {code, message}}."""
    async with await _open(h) as session:
        await _speak(session, None)
        return await _expect_error(h, session, "Speak without text")


@scenario("live-tts")
async def reject_invalid_model(h: Harness) -> Dict[str, Any]:
    """An unknown ``model`` is reported with an Error event."""
    async with await _open(h, {"model": "invalid-model"}) as session:
        await _speak(session, SPEAK_TEXT)
        return await _expect_error(h, session, "invalid model")
