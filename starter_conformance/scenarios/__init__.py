# SPDX-License-Identifier: Apache-2.0
"""
Conformance scenarios, one module per starter interface.

Importing this package registers every scenario; use ``all_scenarios()`` or
``scenarios_for(interface)`` to enumerate them.
"""

from . import agent, flux, live_stt, live_tts, metadata, session, stt, text_intelligence, transcription, tts
from .registry import (
    INTERFACES,
    Scenario,
    all_scenarios,
    get_scenario,
    marker_name,
    scenario,
    scenarios_for,
)

__all__ = [
    "INTERFACES",
    "Scenario",
    "all_scenarios",
    "get_scenario",
    "marker_name",
    "scenario",
    "scenarios_for",
    "agent",
    "flux",
    "live_stt",
    "live_tts",
    "metadata",
    "session",
    "stt",
    "text_intelligence",
    "transcription",
    "tts",
]
