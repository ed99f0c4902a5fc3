# SPDX-License-Identifier: Apache-2.0
"""
Live conformance run against a deployed starter.

Every registered scenario becomes one test, marked with its interface so a
run can be narrowed with ``-m``. The module ships with the package so that
``starter-conformance run`` works from an installed copy; a checkout
re-exports it from tests/live:

    pytest tests/live --live -m "stt or agent"
    BASE_URL=https://staging.example.com starter-conformance run --live

Scenarios that only make sense behind session auth are skipped unless
SESSION_AUTH is enabled. Without ``--live`` every test here is skipped.
"""

from __future__ import annotations

import logging

import pytest

from .harness import Harness
from .scenarios import Scenario, all_scenarios, marker_name

logger = logging.getLogger(__name__)


def _params():
    return [
        pytest.param(
            s,
            id=s.id,
            marks=[pytest.mark.live, getattr(pytest.mark, marker_name(s.interface))],
        )
        for s in all_scenarios()
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize("scenario", _params())
async def test_scenario(harness: Harness, scenario: Scenario):
    if scenario.requires_session_auth and not harness.config.session_auth:
        pytest.skip(f"{scenario.id} requires SESSION_AUTH=true")
    logger.info("running %s against %s", scenario.id, harness.config.base_url)
    await scenario.fn(harness)
