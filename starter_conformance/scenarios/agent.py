# SPDX-License-Identifier: Apache-2.0
"""
Voice agent streaming scenarios.

Protocol (server events forwarded by the starter from the agent backend):
  connect → Welcome{request_id}
  Settings → SettingsApplied            (or Error{code} when Settings is invalid)
  InjectUserMessage{content} → ConversationText{role: user}
                             → ConversationText{role: assistant}
                             → binary audio … → AgentAudioDone
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..harness import Harness
from ..messages import inject_user_message, parse_message, settings_message
from ..transport.streaming import Frame, Session
from ..waits import after, is_binary, of_type, wait_for_one, where
from .registry import scenario

logger = logging.getLogger(__name__)

SETTINGS_REJECTION_TIMEOUT_MS = 25_000
GREETING = "Hello, how are you?"


async def _open(h: Harness) -> Session:
    return await h.streaming().open(h.ws_url("agent"), auth=h.auth)


async def _welcome(h: Harness, session: Session) -> Frame:
    frame = await wait_for_one(
        session.log, of_type("Welcome"),
        timeout_ms=h.config.wait_timeout_ms, poll_ms=h.config.poll_ms,
    )
    h.schemas.assert_valid("agent/welcome", frame.data, context="first server message")
    return frame


async def _configure(h: Harness, session: Session) -> Frame:
    settings = settings_message()
    h.schemas.assert_valid("agent/settings", settings, context="outbound Settings")
    await session.send_text(settings)
    return await wait_for_one(
        session.log, of_type("SettingsApplied"),
        timeout_ms=h.config.wait_timeout_ms, poll_ms=h.config.poll_ms,
    )


@scenario("agent")
async def connect(h: Harness) -> str:
    """The agent endpoint accepts a WebSocket handshake."""
    async with await _open(h) as session:
        return session.state.value


@scenario("agent")
async def welcome(h: Harness) -> Optional[str]:
    """The first agent event is Welcome with a request_id."""
    async with await _open(h) as session:
        frame = await _welcome(h, session)
        return parse_message(frame).request_id


@scenario("agent")
async def settings_applied(h: Harness) -> List[str]:
    """Welcome, then a minimal Settings message is acknowledged with SettingsApplied."""
    async with await _open(h) as session:
        await _welcome(h, session)
        await _configure(h, session)
        return [f.type for f in session.messages if f.is_json]


async def _expect_settings_rejected(h: Harness, omit: str) -> Dict[str, Any]:
    async with await _open(h) as session:
        await _welcome(h, session)
        invalid = settings_message(omit=[omit])
        result = h.schemas.validate("agent/settings", invalid)
        assert not result.valid, f"Settings without {omit} unexpectedly matches the Settings schema"
        await session.send_text(invalid)
        frame = await wait_for_one(
            session.log, of_type("Error"),
            timeout_ms=SETTINGS_REJECTION_TIMEOUT_MS, poll_ms=h.config.poll_ms,
        )
        h.schemas.assert_valid("agent/error", frame.data, context=f"Settings missing {omit}")
        error = parse_message(frame)
        assert error.code, f"Error event must carry a code: {frame.data!r}"
        return dict(frame.data)


@scenario("agent")
async def reject_settings_missing_listen(h: Harness) -> Dict[str, Any]:
    """Settings without agent.listen is answered with Error{code}."""
    return await _expect_settings_rejected(h, "agent.listen")


@scenario("agent")
async def reject_settings_missing_audio(h: Harness) -> Dict[str, Any]:
    """Settings without audio is answered with Error{code}."""
    return await _expect_settings_rejected(h, "audio")


@scenario("agent")
async def reject_settings_missing_think(h: Harness) -> Dict[str, Any]:
    """Settings without agent.think is answered with Error{code}."""
    return await _expect_settings_rejected(h, "agent.think")


@scenario("agent")
async def reject_settings_missing_speak(h: Harness) -> Dict[str, Any]:
    """Settings without agent.speak is answered with Error{code}."""
    return await _expect_settings_rejected(h, "agent.speak")


@scenario("agent")
async def multi_turn(h: Harness, content: str = GREETING) -> Dict[str, Any]:
    """InjectUserMessage echoes as a user turn, followed by a non-empty assistant turn."""
    async with await _open(h) as session:
        await _welcome(h, session)
        await _configure(h, session)
        await session.send_text(inject_user_message(content))

        user = await wait_for_one(
            session.log, of_type("ConversationText") & where(role="user"),
            timeout_ms=h.config.wait_timeout_ms, poll_ms=h.config.poll_ms,
        )
        h.schemas.assert_valid("agent/conversation-text", user.data, context="user turn")

        assistant = await wait_for_one(
            session.log, of_type("ConversationText") & where(role="assistant") & after(user.index),
            timeout_ms=h.config.turn_timeout_ms, poll_ms=h.config.poll_ms,
        )
        h.schemas.assert_valid("agent/conversation-text", assistant.data, context="assistant turn")
        reply = parse_message(assistant)
        assert reply.content and reply.content.strip(), "assistant ConversationText content is empty"
        logger.debug("agent replied: %s", reply.content)
        return {"user": user.data, "assistant": assistant.data}


@scenario("agent")
async def audio_then_done(h: Harness, content: str = GREETING) -> int:
    """The assistant reply streams binary audio and finishes with AgentAudioDone."""
    async with await _open(h) as session:
        await _welcome(h, session)
        await _configure(h, session)
        await session.send_text(inject_user_message(content))

        first_audio = await wait_for_one(
            session.log, is_binary(),
            timeout_ms=h.config.turn_timeout_ms, poll_ms=h.config.poll_ms,
        )
        done = await wait_for_one(
            session.log, of_type("AgentAudioDone"),
            timeout_ms=h.config.turn_timeout_ms, poll_ms=h.config.poll_ms,
        )
        assert done.index > first_audio.index, "AgentAudioDone arrived before any agent audio"
        return len(session.log.binary_frames())
