# SPDX-License-Identifier: Apache-2.0
"""
Streaming scenario details against the mock starter.

Covers:
  • Flux: Connected with sequence_id 0, query parameters on the handshake, TurnInfo through EndOfTurn
  • Flux: audio.wav is streamed from its data chunk when extra RIFF chunks precede it
  • Flux: an unsupported encoding is answered with a schema-valid Error and no TurnInfo
  • Live STT: final Results from a hosted URL, interim Results from audio chunks
  • Live TTS: Metadata alongside audio, Error events for missing text and unknown models
  • Agent: audio frames arrive before AgentAudioDone
  • Sessions are always released
"""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import pytest

from starter_conformance.auth import AuthContext
from starter_conformance.fixtures import FixtureProvider, tone_pcm16
from starter_conformance.harness import Harness
from starter_conformance.scenarios import agent, flux, live_stt, live_tts
from tests.mock.mock_starter import END_OF_TURN_BYTES, MockStreamingServer, wav_with_list_chunk

pytestmark = pytest.mark.asyncio


async def test_flux_connect(mock_harness: Harness):
    connected = await flux.connect(mock_harness)
    assert connected["sequence_id"] == 0 and connected["request_id"]


async def test_flux_turn_info_ends_with_end_of_turn(mock_harness: Harness):
    turns = await flux.turn_info_events(mock_harness)
    events = [t["event"] for t in turns]
    assert events[0] == "StartOfTurn"
    assert events[-1] == "EndOfTurn"
    assert events.count("EndOfTurn") == 1
    assert [t["sequence_id"] for t in turns] == list(range(1, len(turns) + 1))


async def test_flux_turn_info_with_explicit_audio(mock_harness: Harness):
    turns = await flux.turn_info_events(mock_harness, audio=tone_pcm16(12_000))
    assert turns[-1]["event"] == "EndOfTurn"


async def test_flux_streams_only_the_data_chunk(
    mock_harness: Harness, streaming_server: MockStreamingServer, tmp_path: Path
):
    pcm = tone_pcm16(12_000)
    (tmp_path / "audio.wav").write_bytes(wav_with_list_chunk(pcm))
    h = replace(mock_harness, fixtures=FixtureProvider(tmp_path))
    turns = await flux.turn_info_events(h)
    assert turns[-1]["event"] == "EndOfTurn"
    streamed = b"".join(streaming_server.flux_audio)
    assert streaming_server.flux_audio[0] == pcm[:flux.CHUNK_SAMPLES * 2]
    assert len(streamed) >= END_OF_TURN_BYTES
    assert pcm.startswith(streamed)


async def test_flux_rejects_unsupported_encoding(mock_harness: Harness):
    error = await flux.reject_unsupported_encoding(mock_harness, encoding="pcm99")
    assert error["type"] == "Error"
    assert error["code"] == "UNSUPPORTED_ENCODING"
    assert "pcm99" in error["description"]


async def test_flux_handshake_query(mock_harness: Harness, streaming_server: MockStreamingServer):
    assert await flux.accept_model_parameter(mock_harness, model="flux-general-en") == "open"
    assert await flux.multiple_chunks(mock_harness, chunks=4) >= 1


async def test_flux_close_history(mock_harness: Harness):
    assert await flux.close_gracefully(mock_harness) == ["connecting", "open", "closing", "closed"]


async def test_live_stt_final_results(mock_harness: Harness, streaming_server: MockStreamingServer):
    results = await live_stt.final_results_from_url(mock_harness, url="https://audio.test/sample.wav")
    assert results["is_final"] is True
    assert {"url": "https://audio.test/sample.wav"} in streaming_server.received


async def test_live_stt_audio_chunks(mock_harness: Harness):
    types = await live_stt.audio_chunks_get_response(mock_harness, chunks=2)
    assert types and set(types) == {"Results"}


async def test_live_tts_metadata(mock_harness: Harness):
    meta = await live_tts.metadata_event(mock_harness)
    assert meta["model_name"] == "aura-2-thalia-en"


async def test_live_tts_model_parameter(mock_harness: Harness):
    assert await live_tts.accept_model_parameter(mock_harness, model="aura-luna-en") >= 1


async def test_live_tts_errors(mock_harness: Harness, streaming_server: MockStreamingServer):
    missing = await live_tts.reject_missing_text(mock_harness)
    assert missing["error"]["code"] == "INVALID_REQUEST"
    assert {"type": "Speak"} in streaming_server.received
    unknown_model = await live_tts.reject_invalid_model(mock_harness)
    assert unknown_model["error"]["code"] == "UNSUPPORTED_MODEL"


async def test_agent_audio_before_done(mock_harness: Harness):
    assert await agent.audio_then_done(mock_harness) == 2


async def test_agent_token_offered_as_subprotocol(mock_harness: Harness, streaming_server: MockStreamingServer):
    h = replace(mock_harness, auth=AuthContext(token="a.b.c"))
    assert await agent.connect(h) == "open"
    assert streaming_server.offered_subprotocols[-1] == ["access_token.a.b.c"]
