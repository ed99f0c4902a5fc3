# SPDX-License-Identifier: Apache-2.0
"""
Scenario registry.

Scenario modules register their coroutines with ``@scenario``; the live
test suite parametrizes over the registry and the CLI lists it.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

ScenarioFn = Callable[..., Awaitable[Any]]

INTERFACES = (
    "stt",
    "transcription",
    "tts",
    "text-to-speech",
    "text-intelligence",
    "agent",
    "flux",
    "live-stt",
    "live-tts",
    "session",
    "metadata",
    "deploy",
)


@dataclass(frozen=True)
class Scenario:
    name: str
    interface: str
    fn: ScenarioFn
    description: str = ""
    # Only meaningful when the starter runs with SESSION_AUTH enabled.
    requires_session_auth: bool = False

    @property
    def id(self) -> str:
        return f"{self.interface}::{self.name}"


_LOCK = threading.RLock()
_SCENARIOS: Dict[str, Scenario] = {}


def scenario(interface: str, name: Optional[str] = None, *, requires_session_auth: bool = False):
    """Register the decorated coroutine under ``interface``."""
    if interface not in INTERFACES:
        raise ValueError(f"unknown interface {interface!r}")

    def _register(fn: ScenarioFn) -> ScenarioFn:
        doc = (fn.__doc__ or "").strip().splitlines()
        entry = Scenario(
            name=name or fn.__name__,
            interface=interface,
            fn=fn,
            description=doc[0] if doc else "",
            requires_session_auth=requires_session_auth,
        )
        with _LOCK:
            if entry.id in _SCENARIOS:
                raise ValueError(f"duplicate scenario {entry.id}")
            _SCENARIOS[entry.id] = entry
        return fn

    return _register


def all_scenarios() -> List[Scenario]:
    with _LOCK:
        return sorted(_SCENARIOS.values(), key=lambda s: (INTERFACES.index(s.interface), s.name))


def scenarios_for(interface: str) -> List[Scenario]:
    return [s for s in all_scenarios() if s.interface == interface]


def get_scenario(scenario_id: str) -> Scenario:
    with _LOCK:
        try:
            return _SCENARIOS[scenario_id]
        except KeyError:
            raise KeyError(f"unknown scenario {scenario_id!r}") from None


def marker_name(interface: str) -> str:
    """pytest marker for ``interface`` (``live-stt`` -> ``live_stt``)."""
    return interface.replace("-", "_")
