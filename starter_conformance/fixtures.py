# SPDX-License-Identifier: Apache-2.0
"""
Fixture/Example Provider.

File-backed fixtures (sample audio, sample text, golden request/response
examples) are read lazily on first use and cached for the life of the
provider; repeated loads of a name return byte-identical content. Parsed JSON
is handed out as a fresh deep copy so a scenario that mutates its copy (for
example, dropping a required field) cannot corrupt the cache for siblings.

Synthetic fixtures are generated in memory and are fully deterministic.
"""

from __future__ import annotations

import copy
import io
import json
import logging
import math
import struct
import threading
import uuid
import wave
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import FixtureNotFoundError, FixtureParseError

logger = logging.getLogger(__name__)

__all__ = [
    "FixtureProvider",
    "silent_pcm16",
    "tone_pcm16",
    "wav_bytes",
    "pcm_frames",
    "request_id",
]


# ---------------------------------------------------------------------------
# Synthetic audio
# ---------------------------------------------------------------------------

def silent_pcm16(samples: int) -> bytes:
    """``samples`` frames of silent 16-bit little-endian mono PCM."""
    if samples < 0:
        raise ValueError("samples must be >= 0")
    return b"\x00\x00" * samples


def tone_pcm16(samples: int, *, frequency: float = 440.0, sample_rate: int = 16000, amplitude: float = 0.25) -> bytes:
    """A deterministic sine tone as 16-bit little-endian mono PCM."""
    if samples < 0:
        raise ValueError("samples must be >= 0")
    peak = int(32767 * max(0.0, min(1.0, amplitude)))
    frames = (
        int(peak * math.sin(2.0 * math.pi * frequency * i / sample_rate))
        for i in range(samples)
    )
    return struct.pack(f"<{samples}h", *frames)


def wav_bytes(pcm: bytes, *, sample_rate: int = 16000, channels: int = 1, sample_width: int = 2) -> bytes:
    """Wrap raw PCM in a canonical 44-byte RIFF/WAVE header."""
    byte_rate = sample_rate * channels * sample_width
    block_align = channels * sample_width
    header = struct.pack(
        "<4sI4s4sIHHIIHH4sI",
        b"RIFF",
        36 + len(pcm),
        b"WAVE",
        b"fmt ",
        16,
        1,  # PCM
        channels,
        sample_rate,
        byte_rate,
        block_align,
        sample_width * 8,
        b"data",
        len(pcm),
    )
    return header + pcm


def pcm_frames(wav: bytes, *, name: str = "<wav>") -> bytes:
    """Frames of the ``data`` chunk of a PCM WAV; LIST, fact and other chunks are skipped."""
    try:
        with wave.open(io.BytesIO(wav), "rb") as reader:
            return reader.readframes(reader.getnframes())
    except (wave.Error, EOFError) as e:
        raise FixtureParseError(f"not a PCM WAV file: {name}: {e}", details={"name": name}) from e


def request_id() -> str:
    """A fresh X-Request-Id value."""
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Provider
# ---------------------------------------------------------------------------

class FixtureProvider:
    """
    Read-only access to the fixtures directory; safe to share across scenarios.

    ``fallback`` is a second directory consulted for names missing from
    ``root``. A user fixtures directory holding just ``audio.wav`` (and the
    matching ``sample-text.txt``) can then sit in front of the bundled set.
    """

    def __init__(self, root: Path, *, fallback: Optional[Path] = None):
        self.root = Path(root).resolve()
        self.fallback = Path(fallback).resolve() if fallback is not None else None
        if self.fallback == self.root:
            self.fallback = None
        self._lock = threading.RLock()
        self._bytes: Dict[str, bytes] = {}
        self._json: Dict[str, Any] = {}

    @property
    def roots(self) -> List[Path]:
        return [self.root] if self.fallback is None else [self.root, self.fallback]

    @staticmethod
    def _within(base: Path, name: str) -> Path:
        path = (base / name).resolve()
        if base not in path.parents and path != base:
            raise FixtureNotFoundError(f"fixture name escapes fixtures root: {name}")
        return path

    def _locate(self, name: str) -> Optional[Path]:
        for base in self.roots:
            path = self._within(base, name)
            if path.is_file():
                return path
        return None

    def exists(self, name: str) -> bool:
        try:
            return self._locate(name) is not None
        except FixtureNotFoundError:
            return False

    def load_binary(self, name: str) -> bytes:
        with self._lock:
            cached = self._bytes.get(name)
            if cached is not None:
                return cached
            path = self._locate(name)
            if path is None:
                raise FixtureNotFoundError(
                    f"fixture not found: {name}",
                    details={"roots": [str(r) for r in self.roots], "name": name},
                )
            data = path.read_bytes()
            self._bytes[name] = data
            logger.debug("loaded fixture %s from %s (%d bytes)", name, path.parent, len(data))
            return data

    def load_text(self, name: str) -> str:
        try:
            return self.load_binary(name).decode("utf-8")
        except UnicodeDecodeError as e:
            raise FixtureParseError(f"fixture is not UTF-8 text: {name}") from e

    def load_json(self, name: str) -> Any:
        with self._lock:
            if name not in self._json:
                text = self.load_text(name)
                try:
                    self._json[name] = json.loads(text)
                except json.JSONDecodeError as e:
                    raise FixtureParseError(
                        f"fixture is not valid JSON: {name}: {e}",
                        details={"name": name, "line": e.lineno, "column": e.colno},
                    ) from e
            return copy.deepcopy(self._json[name])

    # Named accessors for the fixtures every starter suite uses.

    def sample_text(self) -> str:
        return self.load_text("sample-text.txt").strip()

    def audio(self) -> bytes:
        return self.load_binary("audio.wav")

    def audio_pcm(self) -> bytes:
        return pcm_frames(self.audio(), name="audio.wav")

    def bad_audio(self) -> bytes:
        return self.load_binary("bad-audio.bin")
