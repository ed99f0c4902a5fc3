# SPDX-License-Identifier: Apache-2.0
"""
Shared test fixtures.

The conformance plugin supplies the session fixtures used by tests/live
(``harness``, ``schema_registry``, ...). The fixtures here build an offline
harness against the in-process mock starter in tests/mock.
"""

from __future__ import annotations

import shutil
from pathlib import Path

import pytest
import pytest_asyncio

from starter_conformance.auth import AuthContext
from starter_conformance.config import BUNDLED_FIXTURES_ROOT, BUNDLED_SCHEMAS_ROOT, HarnessConfig
from starter_conformance.fixtures import FixtureProvider, tone_pcm16, wav_bytes
from starter_conformance.harness import Harness
from starter_conformance.schema_registry import SchemaRegistry
from tests.mock.mock_starter import MockStarter, MockStreamingServer

pytest_plugins = ["starter_conformance.pytest_plugin", "pytester"]

SCHEMAS_ROOT = BUNDLED_SCHEMAS_ROOT
FIXTURES_ROOT = BUNDLED_FIXTURES_ROOT
MOCK_BASE_URL = "http://starter.test"

# One second of 440 Hz tone at 16 kHz: long enough to cross the mock's end-of-turn threshold.
AUDIO_SAMPLES = 16_000


@pytest.fixture(scope="session")
def repo_schemas() -> SchemaRegistry:
    registry = SchemaRegistry(SCHEMAS_ROOT)
    registry.preload()
    return registry


@pytest.fixture(scope="session")
def mock_fixtures_root(tmp_path_factory) -> Path:
    """Copy of the bundled fixtures with a generated audio.wav alongside."""
    root = tmp_path_factory.mktemp("fixtures")
    shutil.copytree(FIXTURES_ROOT, root, dirs_exist_ok=True)
    (root / "audio.wav").write_bytes(wav_bytes(tone_pcm16(AUDIO_SAMPLES)))
    return root


@pytest.fixture
def mock_starter(mock_fixtures_root: Path) -> MockStarter:
    return MockStarter(transcript=(mock_fixtures_root / "sample-text.txt").read_text(encoding="utf-8").strip())


@pytest_asyncio.fixture
async def streaming_server():
    async with MockStreamingServer() as server:
        yield server


@pytest.fixture
def mock_config(streaming_server: MockStreamingServer, mock_fixtures_root: Path) -> HarnessConfig:
    return HarnessConfig(
        base_url=MOCK_BASE_URL,
        ws_url=streaming_server.ws_url,
        request_timeout_ms=5_000,
        open_timeout_ms=2_000,
        wait_timeout_ms=2_000,
        turn_timeout_ms=3_000,
        poll_ms=10,
        schemas_root=SCHEMAS_ROOT,
        fixtures_root=mock_fixtures_root,
    )


@pytest.fixture
def mock_harness(
    mock_config: HarnessConfig,
    mock_starter: MockStarter,
    repo_schemas: SchemaRegistry,
    mock_fixtures_root: Path,
) -> Harness:
    return Harness(
        config=mock_config,
        auth=AuthContext.anonymous(),
        schemas=repo_schemas,
        fixtures=FixtureProvider(mock_fixtures_root),
        http_transport=mock_starter.transport(),
    )
