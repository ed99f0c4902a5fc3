# SPDX-License-Identifier: Apache-2.0
"""
Text-to-speech REST scenarios.

Two starter shapes share one contract: ``/tts/synthesize`` (strict request
validation with TTS error codes) and ``/api/text-to-speech`` (the app-style
endpoint). Both take ``{"text": ...}`` as JSON and answer with audio bytes.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from ..assertions import expect_audio, expect_error, expect_status
from ..fixtures import request_id
from ..harness import Harness
from ..transport.rest import JsonBody, RawBody, RequestSpec, ResponseRecord
from .registry import scenario

MAX_TEXT_LENGTH = 2000


async def _synthesize(
    h: Harness,
    endpoint: str,
    body: Any,
    *,
    headers: Optional[Dict[str, str]] = None,
    query: Optional[Dict[str, Any]] = None,
) -> ResponseRecord:
    async with h.rest() as rest:
        return await rest.send(RequestSpec(
            "POST", h.endpoint(endpoint), headers=headers or {}, query=query or {}, body=body,
        ))


# ---------------------------------------------------------------------------
# /tts/synthesize
# ---------------------------------------------------------------------------

@scenario("tts")
async def synthesize_text(h: Harness) -> bytes:
    """Valid JSON text returns 200 with a non-empty audio body."""
    request = {"text": "Hello world, this is a test."}
    h.schemas.assert_valid("tts/request", request, context="outbound request")
    rec = await _synthesize(h, "tts", JsonBody(request))
    return expect_audio(rec)


@scenario("tts")
async def reject_non_json(h: Harness) -> Dict[str, Any]:
    """A text/plain body returns 415 INVALID_REQUEST_BODY."""
    rec = await _synthesize(h, "tts", RawBody(b"Hello world"), headers={"Content-Type": "text/plain"})
    expect_status(rec, 415)
    return expect_error(rec, h.schemas, "tts/error", code="INVALID_REQUEST_BODY")


@scenario("tts")
async def reject_malformed_json(h: Harness) -> Dict[str, Any]:
    """An unparsable JSON body is rejected with a TTS error envelope."""
    rec = await _synthesize(
        h, "tts", RawBody(b"{ invalid json"), headers={"Content-Type": "application/json"},
    )
    return expect_error(rec, h.schemas, "tts/error")


@scenario("tts")
async def reject_empty_text(h: Harness) -> Dict[str, Any]:
    """Empty text returns >= 400 INVALID_REQUEST_BODY."""
    rec = await _synthesize(h, "tts", JsonBody({"text": ""}))
    return expect_error(rec, h.schemas, "tts/error", code="INVALID_REQUEST_BODY")


@scenario("tts")
async def reject_text_too_long(h: Harness) -> Dict[str, Any]:
    """Text beyond the length limit returns TEXT_TOO_LONG."""
    rec = await _synthesize(h, "tts", JsonBody({"text": "A" * (MAX_TEXT_LENGTH * 3)}))
    return expect_error(rec, h.schemas, "tts/error", code="TEXT_TOO_LONG")


@scenario("tts")
async def echo_request_id(h: Harness) -> str:
    """The X-Request-Id request header is echoed on the response."""
    rid = request_id()
    rec = await _synthesize(h, "tts", JsonBody({"text": "Hello world"}), headers={"X-Request-Id": rid})
    echoed = rec.headers.get("x-request-id")
    assert echoed == rid, f"expected X-Request-Id {rid!r} to be echoed, got {echoed!r}"
    return rid


@scenario("tts")
async def content_length_matches(h: Harness) -> int:
    """When Content-Length is sent it equals the audio byte count."""
    rec = await _synthesize(h, "tts", JsonBody({"text": "Hello world"}))
    audio = expect_audio(rec)
    declared = rec.headers.get("content-length")
    if declared is not None:
        assert int(declared) == len(audio), f"Content-Length {declared} != body length {len(audio)}"
    return len(audio)


# ---------------------------------------------------------------------------
# /api/text-to-speech
# ---------------------------------------------------------------------------

@scenario("text-to-speech")
async def synthesize_sample_text(h: Harness) -> bytes:
    """The sample text is synthesized to audio."""
    rec = await _synthesize(h, "text-to-speech", JsonBody({"text": h.fixtures.sample_text()}))
    return expect_audio(rec)


@scenario("text-to-speech")
async def synthesize_with_model(h: Harness) -> bytes:
    """A ``model`` query parameter is accepted."""
    rec = await _synthesize(
        h, "text-to-speech", JsonBody({"text": h.fixtures.sample_text()}), query={"model": "aura-2-apollo-en"},
    )
    return expect_audio(rec)


@scenario("text-to-speech")
async def reject_empty(h: Harness) -> Dict[str, Any]:
    """Empty text yields an error envelope."""
    rec = await _synthesize(h, "text-to-speech", JsonBody({"text": ""}))
    return expect_error(rec, h.schemas, "common/error")


@scenario("text-to-speech")
async def long_text_handled(h: Harness) -> int:
    """Very long text is either synthesized or rejected with an envelope (200, 400 or 413)."""
    rec = await _synthesize(h, "text-to-speech", JsonBody({"text": "This is a test sentence. " * 200}))
    expect_status(rec, 200, 400, 413)
    if rec.status == 200:
        expect_audio(rec)
    else:
        expect_error(rec, h.schemas, "common/error")
    return rec.status
