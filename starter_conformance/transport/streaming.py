# SPDX-License-Identifier: Apache-2.0
"""
Streaming (WebSocket) driver.

A Session owns one connection and an append-only MessageLog. A background
reader task appends every inbound frame to the log in arrival order; the
wait engine polls the log and never talks to the socket directly.

Session state machine:

    CONNECTING --handshake ok--> OPEN --close()--> CLOSING --> CLOSED
        |                          |                  |
        +--handshake error-------> FAILED <-----------+
                                   ^   |
        OPEN --abrupt drop---------+   +--close() (release only)--> CLOSED

CLOSED is terminal. FAILED only moves to CLOSED when the owner releases the
session, so buffered frames and the recorded error stay inspectable.

Usage:
    driver = StreamingDriver(open_timeout_ms=5000)
    async with driver.session(url, auth=auth) as session:
        await session.send_text(settings_message())
        msg = await wait_for_one(session.log, of_type("SettingsApplied"))
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import threading
import time
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple, Union

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, ConnectionClosedError, InvalidHandshake, InvalidURI
from websockets.typing import Subprotocol

from ..auth import AuthContext
from ..errors import ProtocolStateError, TransportError, TransportTimeoutError

logger = logging.getLogger(__name__)

__all__ = [
    "SessionState",
    "Frame",
    "MessageLog",
    "Session",
    "StreamingDriver",
    "BINARY_TYPE",
]

# Type label used for binary frames in observed-type counts.
BINARY_TYPE = "<binary>"


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------

class SessionState(str, Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"
    FAILED = "failed"


_TRANSITIONS: Dict[SessionState, FrozenSet[SessionState]] = {
    SessionState.CONNECTING: frozenset({SessionState.OPEN, SessionState.FAILED}),
    SessionState.OPEN: frozenset({SessionState.CLOSING, SessionState.FAILED}),
    SessionState.CLOSING: frozenset({SessionState.CLOSED, SessionState.FAILED}),
    SessionState.FAILED: frozenset({SessionState.CLOSED}),
    SessionState.CLOSED: frozenset(),
}


def can_transition(src: SessionState, dst: SessionState) -> bool:
    return dst in _TRANSITIONS[src]


# ---------------------------------------------------------------------------
# Frames and log
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Frame:
    """One inbound frame. ``kind`` is "json" for parsed frames, else "binary"."""
    kind: str
    data: Any
    index: int
    received_at: float

    @property
    def is_json(self) -> bool:
        return self.kind == "json"

    @property
    def is_binary(self) -> bool:
        return self.kind == "binary"

    @property
    def type(self) -> Optional[str]:
        if self.is_json and isinstance(self.data, dict):
            t = self.data.get("type")
            return t if isinstance(t, str) else None
        return None

    def get(self, key: str, default: Any = None) -> Any:
        if self.is_json and isinstance(self.data, dict):
            return self.data.get(key, default)
        return default


def decode_frame(raw: Union[str, bytes], *, decode_binary_json: bool = False) -> Tuple[str, Any]:
    """Tag a raw websocket message as ("json", obj) or ("binary", bytes)."""
    if isinstance(raw, str):
        try:
            return "json", json.loads(raw)
        except ValueError:
            return "binary", raw.encode("utf-8")
    if decode_binary_json:
        try:
            return "json", json.loads(raw)
        except (ValueError, UnicodeDecodeError):
            pass
    return "binary", bytes(raw)


class MessageLog:
    """
    Append-only, arrival-ordered record of a session's inbound frames.

    Frames are never reordered or dropped. Readers take snapshots; the
    snapshot is an immutable tuple so a predicate can never observe a
    half-appended state.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._frames: List[Frame] = []
        self._error: Optional[TransportError] = None

    def append(self, kind: str, data: Any) -> Frame:
        with self._lock:
            frame = Frame(kind=kind, data=data, index=len(self._frames), received_at=time.monotonic())
            self._frames.append(frame)
            return frame

    def snapshot(self) -> Tuple[Frame, ...]:
        with self._lock:
            return tuple(self._frames)

    def __len__(self) -> int:
        with self._lock:
            return len(self._frames)

    def __iter__(self):
        return iter(self.snapshot())

    @property
    def error(self) -> Optional[TransportError]:
        return self._error

    def record_error(self, err: TransportError) -> None:
        with self._lock:
            if self._error is None:
                self._error = err

    def type_counts(self) -> Dict[str, int]:
        counts: Counter = Counter()
        for frame in self.snapshot():
            if frame.is_binary:
                counts[BINARY_TYPE] += 1
            else:
                counts[frame.type or "<untyped>"] += 1
        return dict(counts)

    def json_messages(self) -> List[Any]:
        return [f.data for f in self.snapshot() if f.is_json]

    def binary_frames(self) -> List[bytes]:
        return [f.data for f in self.snapshot() if f.is_binary]


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

class Session:
    """One streaming connection, exclusively owned by the scenario that opened it."""

    def __init__(self, url: str, *, decode_binary_json: bool = False):
        self.url = url
        self.decode_binary_json = decode_binary_json
        self.log = MessageLog()
        self.subprotocol: Optional[str] = None
        self._state = SessionState.CONNECTING
        self._ws: Optional[ClientConnection] = None
        self._reader: Optional[asyncio.Task] = None
        self._history: List[SessionState] = [SessionState.CONNECTING]

    def __repr__(self) -> str:
        return f"Session(url={self.url!r}, state={self._state.value}, frames={len(self.log)})"

    # -------- state --------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def history(self) -> Tuple[SessionState, ...]:
        return tuple(self._history)

    def _transition(self, dst: SessionState) -> None:
        if not can_transition(self._state, dst):
            raise ProtocolStateError(
                f"illegal session transition {self._state.value} -> {dst.value}",
                details={"url": self.url},
            )
        logger.debug("session %s: %s -> %s", self.url, self._state.value, dst.value)
        self._state = dst
        self._history.append(dst)

    def _fail(self, err: TransportError) -> None:
        self.log.record_error(err)
        if can_transition(self._state, SessionState.FAILED):
            self._transition(SessionState.FAILED)

    def _attach(self, ws: ClientConnection) -> None:
        self._ws = ws
        self.subprotocol = ws.subprotocol
        self._transition(SessionState.OPEN)
        self._reader = asyncio.create_task(self._read_loop(), name=f"ws-reader:{self.url}")

    # -------- reader --------

    async def _read_loop(self) -> None:
        assert self._ws is not None
        try:
            async for raw in self._ws:
                kind, data = decode_frame(raw, decode_binary_json=self.decode_binary_json)
                frame = self.log.append(kind, data)
                logger.debug(
                    "session %s: frame #%d %s %s",
                    self.url, frame.index, kind, frame.type or (len(data) if kind == "binary" else ""),
                )
        except ConnectionClosedError as e:
            logger.warning("session %s dropped: %s", self.url, e)
            self._fail(TransportError(
                f"connection dropped: {e}",
                cause=e,
                details={"url": self.url, "close_code": _close_code(e)},
            ))
            return
        # Peer closed cleanly while we still considered the session open.
        if self._state is SessionState.OPEN:
            self._transition(SessionState.CLOSING)
            self._transition(SessionState.CLOSED)

    # -------- send --------

    def _require_open(self) -> ClientConnection:
        if self._state is not SessionState.OPEN or self._ws is None:
            raise ProtocolStateError(
                f"cannot send on a {self._state.value} session",
                details={"url": self.url},
            )
        return self._ws

    async def send_text(self, obj: Any) -> None:
        """Serialize ``obj`` to JSON and send it as a text frame."""
        await self._send(json.dumps(obj))

    async def send_raw_text(self, text: str) -> None:
        """Send ``text`` verbatim as a text frame (for malformed-message checks)."""
        await self._send(text)

    async def send_binary(self, data: bytes) -> None:
        await self._send(bytes(data))

    async def _send(self, payload: Union[str, bytes]) -> None:
        ws = self._require_open()
        try:
            await ws.send(payload)
        except ConnectionClosed as e:
            err = TransportError(f"send failed, connection closed: {e}", cause=e, details={"url": self.url})
            self._fail(err)
            raise err from e

    # -------- release --------

    async def close(self, code: int = 1000, reason: str = "") -> None:
        """Release the connection. Idempotent; safe on every exit path."""
        if self._state is SessionState.CLOSED:
            return
        if self._state is SessionState.OPEN:
            self._transition(SessionState.CLOSING)
        if self._ws is not None:
            await self._ws.close(code, reason)
        if self._reader is not None:
            if not self._reader.done():
                self._reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader
        if self._state is not SessionState.CLOSED:
            self._transition(SessionState.CLOSED)

    async def __aenter__(self) -> "Session":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # -------- convenience views --------

    @property
    def messages(self) -> Tuple[Frame, ...]:
        return self.log.snapshot()

    @property
    def error(self) -> Optional[TransportError]:
        return self.log.error


def _close_code(e: ConnectionClosed) -> Optional[int]:
    rcvd = getattr(e, "rcvd", None)
    return getattr(rcvd, "code", None)


# ---------------------------------------------------------------------------
# Driver
# ---------------------------------------------------------------------------

class StreamingDriver:
    def __init__(
        self,
        *,
        open_timeout_ms: int = 5_000,
        subprotocol_template: str = "access_token.{token}",
        decode_binary_json: bool = False,
    ):
        self.open_timeout_ms = open_timeout_ms
        self.subprotocol_template = subprotocol_template
        self.decode_binary_json = decode_binary_json

    async def open(
        self,
        url: str,
        *,
        auth: Optional[AuthContext] = None,
        subprotocols: Optional[Sequence[str]] = None,
        headers: Optional[Mapping[str, str]] = None,
        open_timeout_ms: Optional[int] = None,
    ) -> Session:
        """
        Perform the handshake and return an OPEN session.

        Bearer tokens travel as a subprotocol (``access_token.<jwt>`` by
        default) because browsers cannot set headers on a WebSocket upgrade.

        Raises:
            TransportTimeoutError: the handshake did not finish in time.
            TransportError: refused connection, bad URI or non-101 response.
        """
        offered: List[str] = list(subprotocols or [])
        if auth is not None:
            offered.extend(auth.subprotocols(self.subprotocol_template))
        if open_timeout_ms is None:
            open_timeout_ms = self.open_timeout_ms
        timeout_s = open_timeout_ms / 1000.0

        session = Session(url, decode_binary_json=self.decode_binary_json)
        try:
            ws = await connect(
                url,
                subprotocols=[Subprotocol(p) for p in offered] or None,
                additional_headers=dict(headers) if headers else None,
                open_timeout=timeout_s,
                max_size=None,
            )
        except (TimeoutError, asyncio.TimeoutError) as e:
            session._fail(TransportTimeoutError(f"handshake timed out: {url}", cause=e))
            raise session.error from e
        except (InvalidHandshake, InvalidURI, OSError) as e:
            session._fail(TransportError(f"handshake failed: {url}: {e}", cause=e, details={"url": url}))
            raise session.error from e

        session._attach(ws)
        return session

    @contextlib.asynccontextmanager
    async def session(self, url: str, **kwargs: Any) -> AsyncIterator[Session]:
        """Scoped session: closed on every exit path."""
        session = await self.open(url, **kwargs)
        try:
            yield session
        finally:
            await session.close()
