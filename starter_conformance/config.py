# SPDX-License-Identifier: Apache-2.0
"""
Harness configuration.

All settings are optional and come from the environment so that the same
suite can be pointed at a local starter, a staging deploy or a CI container
without code changes. Configuration selects *which* deployment is checked;
it never changes the contract being checked.

Usage:
    config = HarnessConfig.from_env()
    url = config.http_url(config.endpoint("stt"))
    ws = config.ws_url_for(config.endpoint("flux"), {"model": "flux-general-en"})
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlencode

from .errors import ConfigError

logger = logging.getLogger(__name__)

_RESOURCES = Path(__file__).resolve().parent / "resources"

# Shipped as package data.
BUNDLED_SCHEMAS_ROOT = _RESOURCES / "schemas"
BUNDLED_FIXTURES_ROOT = _RESOURCES / "fixtures"

DEFAULT_BASE_URL = "http://localhost:8080"

# ---------------------------------------------------------------------------
# Endpoint table
# ---------------------------------------------------------------------------

DEFAULT_ENDPOINTS: Dict[str, str] = {
    "stt": "/stt/transcribe",
    "transcription": "/api/transcription",
    "tts": "/tts/synthesize",
    "text-to-speech": "/api/text-to-speech",
    "text-intelligence": "/api/text-intelligence",
    "agent": "/api/voice-agent",
    "flux": "/api/flux",
    "live-stt": "/live-stt/stream",
    "live-tts": "/live-tts/stream",
    "metadata": "/api/metadata",
    "session": "/api/session",
}

# Env var that overrides each endpoint path.
ENDPOINT_ENV: Dict[str, str] = {
    "stt": "STT_ENDPOINT",
    "transcription": "TRANSCRIPTION_ENDPOINT",
    "tts": "TTS_ENDPOINT",
    "text-to-speech": "TEXT_TO_SPEECH_ENDPOINT",
    "text-intelligence": "TEXT_INTEL_ENDPOINT",
    "agent": "AGENT_ENDPOINT",
    "flux": "FLUX_ENDPOINT",
    "live-stt": "LIVE_STT_ENDPOINT",
    "live-tts": "LIVE_TTS_ENDPOINT",
    "metadata": "METADATA_ENDPOINT",
    "session": "SESSION_ENDPOINT",
}


def _env_bool(env: Mapping[str, str], name: str, default: bool = False) -> bool:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_ms(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer number of milliseconds, got {raw!r}") from e
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {value}")
    return value


def derive_ws_url(base_url: str) -> str:
    """Map an http(s) base URL onto the matching ws(s) scheme."""
    if base_url.startswith("https://"):
        return "wss://" + base_url[len("https://"):]
    if base_url.startswith("http://"):
        return "ws://" + base_url[len("http://"):]
    return base_url


def _join(base: str, path: str) -> str:
    if path.startswith(("http://", "https://", "ws://", "wss://")):
        return path
    if not path.startswith("/"):
        path = "/" + path
    return base.rstrip("/") + path


@dataclass(frozen=True)
class HarnessConfig:
    """Immutable harness configuration; build with ``from_env`` or directly in tests."""

    base_url: str = DEFAULT_BASE_URL
    ws_url: str = ""
    auth_token: Optional[str] = None
    session_auth: bool = False
    endpoints: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_ENDPOINTS))

    request_timeout_ms: int = 30_000
    open_timeout_ms: int = 5_000
    wait_timeout_ms: int = 15_000
    turn_timeout_ms: int = 30_000
    poll_ms: int = 100

    subprotocol_template: str = "access_token.{token}"
    decode_binary_json: bool = False

    schemas_root: Path = BUNDLED_SCHEMAS_ROOT
    fixtures_root: Path = BUNDLED_FIXTURES_ROOT

    def __post_init__(self) -> None:
        if not self.ws_url:
            object.__setattr__(self, "ws_url", derive_ws_url(self.base_url))
        if "{token}" not in self.subprotocol_template:
            raise ConfigError(
                f"subprotocol template must contain '{{token}}': {self.subprotocol_template!r}"
            )

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "HarnessConfig":
        """Create configuration from environment variables."""
        env = os.environ if env is None else env

        base_url = env.get("BASE_URL") or DEFAULT_BASE_URL
        ws_url = env.get("WS_URL") or env.get("WS_BASE_URL") or ""

        endpoints = dict(DEFAULT_ENDPOINTS)
        for name, var in ENDPOINT_ENV.items():
            override = env.get(var)
            if override:
                endpoints[name] = override

        schemas_root = env.get("STARTER_SCHEMAS_ROOT")
        fixtures_root = env.get("STARTER_FIXTURES_ROOT")

        config = cls(
            base_url=base_url,
            ws_url=ws_url,
            auth_token=env.get("AUTH_TOKEN") or None,
            session_auth=_env_bool(env, "SESSION_AUTH"),
            endpoints=endpoints,
            request_timeout_ms=_env_ms(env, "CONFORMANCE_REQUEST_TIMEOUT_MS", 30_000),
            open_timeout_ms=_env_ms(env, "CONFORMANCE_OPEN_TIMEOUT_MS", 5_000),
            wait_timeout_ms=_env_ms(env, "CONFORMANCE_WAIT_TIMEOUT_MS", 15_000),
            turn_timeout_ms=_env_ms(env, "CONFORMANCE_TURN_TIMEOUT_MS", 30_000),
            poll_ms=_env_ms(env, "CONFORMANCE_POLL_MS", 100),
            subprotocol_template=env.get("CONFORMANCE_SUBPROTOCOL") or "access_token.{token}",
            decode_binary_json=_env_bool(env, "CONFORMANCE_DECODE_BINARY_JSON"),
            schemas_root=Path(schemas_root).resolve() if schemas_root else BUNDLED_SCHEMAS_ROOT,
            fixtures_root=Path(fixtures_root).resolve() if fixtures_root else BUNDLED_FIXTURES_ROOT,
        )
        logger.debug("harness config: base_url=%s ws_url=%s", config.base_url, config.ws_url)
        return config

    def with_overrides(self, **changes: Any) -> "HarnessConfig":
        """Return a copy with ``changes`` applied; ws_url is re-derived when base_url changes."""
        if "base_url" in changes and "ws_url" not in changes:
            changes["ws_url"] = ""
        return replace(self, **changes)

    def endpoint(self, name: str) -> str:
        try:
            return self.endpoints[name]
        except KeyError:
            raise ConfigError(
                f"unknown endpoint {name!r}; known: {', '.join(sorted(self.endpoints))}"
            ) from None

    def http_url(self, path: str) -> str:
        return _join(self.base_url, path)

    def ws_url_for(self, path: str, query: Optional[Mapping[str, Any]] = None) -> str:
        url = _join(self.ws_url, path)
        if query:
            sep = "&" if "?" in url else "?"
            url += sep + urlencode({k: _query_value(v) for k, v in query.items() if v is not None})
        return url


def _query_value(v: Any) -> str:
    if isinstance(v, bool):
        return "true" if v else "false"
    return str(v)
