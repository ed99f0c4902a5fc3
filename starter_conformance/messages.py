# SPDX-License-Identifier: Apache-2.0
"""
Streaming message variants.

Starter WebSocket protocols distinguish messages only by a ``type`` string.
``parse_message`` turns a decoded JSON frame into one variant per known kind,
with ``Unknown`` as the catch-all so a starter that emits a newer message
type never crashes the harness.

Outbound builders produce the client-side control messages (Settings,
InjectUserMessage, Speak, Flush) as plain dicts ready for ``send_text``.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

__all__ = [
    "Welcome",
    "Connected",
    "SettingsApplied",
    "ConversationText",
    "Error",
    "TurnInfo",
    "Metadata",
    "AgentAudioDone",
    "Results",
    "Unknown",
    "Message",
    "parse_message",
    "settings_message",
    "inject_user_message",
    "speak_message",
    "flush_message",
    "MINIMAL_AGENT_SETTINGS",
]


# ---------------------------------------------------------------------------
# Inbound variants
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Welcome:
    request_id: Optional[str]
    raw: Mapping[str, Any] = field(repr=False, default_factory=dict)
    type: str = "Welcome"


@dataclass(frozen=True)
class Connected:
    request_id: Optional[str]
    sequence_id: Optional[int]
    raw: Mapping[str, Any] = field(repr=False, default_factory=dict)
    type: str = "Connected"


@dataclass(frozen=True)
class SettingsApplied:
    raw: Mapping[str, Any] = field(repr=False, default_factory=dict)
    type: str = "SettingsApplied"


@dataclass(frozen=True)
class ConversationText:
    role: Optional[str]
    content: Optional[str]
    raw: Mapping[str, Any] = field(repr=False, default_factory=dict)
    type: str = "ConversationText"


@dataclass(frozen=True)
class Error:
    """
    Error event. Starters put the code either at the top level
    (``{"type": "Error", "code": ...}``) or nested
    (``{"type": "Error", "error": {"code": ..., "message": ...}}``);
    both are read.
    """
    code: Optional[str]
    message: Optional[str]
    raw: Mapping[str, Any] = field(repr=False, default_factory=dict)
    type: str = "Error"


@dataclass(frozen=True)
class TurnInfo:
    event: Optional[str]
    turn_index: Optional[int]
    transcript: Optional[str]
    sequence_id: Optional[int] = None
    raw: Mapping[str, Any] = field(repr=False, default_factory=dict)
    type: str = "TurnInfo"


@dataclass(frozen=True)
class Metadata:
    request_id: Optional[str]
    model_name: Optional[str]
    model_version: Optional[str]
    model_uuid: Optional[str]
    raw: Mapping[str, Any] = field(repr=False, default_factory=dict)
    type: str = "Metadata"


@dataclass(frozen=True)
class AgentAudioDone:
    raw: Mapping[str, Any] = field(repr=False, default_factory=dict)
    type: str = "AgentAudioDone"


@dataclass(frozen=True)
class Results:
    transcript: Optional[str]
    is_final: bool
    alternatives: List[Mapping[str, Any]] = field(default_factory=list)
    raw: Mapping[str, Any] = field(repr=False, default_factory=dict)
    type: str = "Results"


@dataclass(frozen=True)
class Unknown:
    type: Optional[str]
    raw: Any = field(repr=False, default=None)


Message = Union[
    Welcome,
    Connected,
    SettingsApplied,
    ConversationText,
    Error,
    TurnInfo,
    Metadata,
    AgentAudioDone,
    Results,
    Unknown,
]


def _str(v: Any) -> Optional[str]:
    return v if isinstance(v, str) else None


def _int(v: Any) -> Optional[int]:
    return v if isinstance(v, int) and not isinstance(v, bool) else None


def _parse_error(m: Mapping[str, Any]) -> Error:
    nested = m.get("error") if isinstance(m.get("error"), Mapping) else {}
    code = _str(m.get("code")) or _str(nested.get("code"))
    message = (
        _str(m.get("description"))
        or _str(m.get("message"))
        or _str(nested.get("message"))
    )
    return Error(code=code, message=message, raw=m)


def _parse_results(m: Mapping[str, Any]) -> Results:
    channel = m.get("channel") if isinstance(m.get("channel"), Mapping) else {}
    alternatives = channel.get("alternatives")
    alternatives = [a for a in alternatives if isinstance(a, Mapping)] if isinstance(alternatives, list) else []
    transcript = _str(alternatives[0].get("transcript")) if alternatives else None
    return Results(
        transcript=transcript,
        is_final=m.get("is_final") is True,
        alternatives=alternatives,
        raw=m,
    )


_PARSERS = {
    "Welcome": lambda m: Welcome(request_id=_str(m.get("request_id")), raw=m),
    "Connected": lambda m: Connected(
        request_id=_str(m.get("request_id")),
        sequence_id=_int(m.get("sequence_id")),
        raw=m,
    ),
    "SettingsApplied": lambda m: SettingsApplied(raw=m),
    "ConversationText": lambda m: ConversationText(
        role=_str(m.get("role")), content=_str(m.get("content")), raw=m
    ),
    "Error": _parse_error,
    "TurnInfo": lambda m: TurnInfo(
        event=_str(m.get("event")),
        turn_index=_int(m.get("turn_index")),
        transcript=_str(m.get("transcript")),
        sequence_id=_int(m.get("sequence_id")),
        raw=m,
    ),
    "Metadata": lambda m: Metadata(
        request_id=_str(m.get("request_id")),
        model_name=_str(m.get("model_name")),
        model_version=_str(m.get("model_version")),
        model_uuid=_str(m.get("model_uuid")),
        raw=m,
    ),
    "AgentAudioDone": lambda m: AgentAudioDone(raw=m),
    "Results": _parse_results,
}


def parse_message(obj: Any) -> Message:
    """Map a decoded JSON frame (or a Frame) onto its variant. Never raises."""
    data = getattr(obj, "data", obj) if not isinstance(obj, Mapping) else obj
    if not isinstance(data, Mapping):
        return Unknown(type=None, raw=data)
    msg_type = data.get("type")
    parser = _PARSERS.get(msg_type) if isinstance(msg_type, str) else None
    if parser is None:
        return Unknown(type=_str(msg_type), raw=data)
    return parser(data)


# ---------------------------------------------------------------------------
# Outbound builders
# ---------------------------------------------------------------------------

MINIMAL_AGENT_SETTINGS: Dict[str, Any] = {
    "type": "Settings",
    "audio": {
        "input": {"encoding": "linear16", "sample_rate": 24000},
        "output": {"encoding": "linear16", "sample_rate": 24000, "container": "none"},
    },
    "agent": {
        "listen": {"provider": {"type": "deepgram", "model": "nova-3"}},
        "think": {"provider": {"type": "open_ai", "model": "gpt-4o-mini"}},
        "speak": {"provider": {"type": "deepgram", "model": "aura-2-thalia-en"}},
    },
}


def settings_message(*, omit: Optional[List[str]] = None, **overrides: Any) -> Dict[str, Any]:
    """
    A fresh agent Settings message.

    ``omit`` takes dotted paths to drop, e.g. ``["agent.listen"]`` builds the
    invalid-Settings message used by rejection scenarios. ``overrides``
    replace top-level keys.
    """
    msg = copy.deepcopy(MINIMAL_AGENT_SETTINGS)
    msg.update(copy.deepcopy(overrides))
    for dotted in omit or []:
        parts = dotted.split(".")
        node: Any = msg
        for p in parts[:-1]:
            node = node.get(p) if isinstance(node, dict) else None
        if isinstance(node, dict):
            node.pop(parts[-1], None)
    return msg


def inject_user_message(content: str) -> Dict[str, Any]:
    return {"type": "InjectUserMessage", "content": content}


def speak_message(text: Optional[str]) -> Dict[str, Any]:
    msg: Dict[str, Any] = {"type": "Speak"}
    if text is not None:
        msg["text"] = text
    return msg


def flush_message() -> Dict[str, Any]:
    return {"type": "Flush"}
