# SPDX-License-Identifier: Apache-2.0
"""
STT REST scenarios (POST raw audio to the transcribe endpoint).

Covers:
  • audio/wav → 200 with a non-empty transcript that matches the transcript schema
  • application/json → 415 UNSUPPORTED_MEDIA_TYPE
  • undecodable audio → 4xx with BAD_AUDIO (or another documented STT code)
  • empty body → 4xx error envelope
  • X-Request-Id is echoed on the response
  • audio/mpeg and audio/webm are accepted or cleanly rejected (200 or 400)
  • unknown query parameters are ignored
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from ..assertions import expect_error, expect_json_object, expect_status
from ..fixtures import request_id
from ..harness import Harness
from ..transport.rest import JsonBody, RawBody, RequestSpec, ResponseRecord
from .registry import scenario

STT_ERROR_CODES = ("BAD_AUDIO", "UNSUPPORTED_MEDIA_TYPE", "AUDIO_TOO_LONG", "MODEL_NOT_FOUND")


async def _post_audio(
    h: Harness,
    content: bytes,
    content_type: Optional[str] = "audio/wav",
    *,
    headers: Optional[Dict[str, str]] = None,
    query: Optional[Dict[str, Any]] = None,
) -> ResponseRecord:
    hdrs = dict(headers or {})
    if content_type is not None:
        hdrs["Content-Type"] = content_type
    async with h.rest() as rest:
        return await rest.send(RequestSpec(
            "POST", h.endpoint("stt"), headers=hdrs, query=query or {}, body=RawBody(content),
        ))


@scenario("stt")
async def transcribe_wav(h: Harness, audio: Optional[bytes] = None) -> Dict[str, Any]:
    """POST audio/wav returns 200 and a schema-valid, non-empty transcript."""
    rec = await _post_audio(h, audio if audio is not None else h.fixtures.audio())
    expect_status(rec, 200)
    body = expect_json_object(rec)
    h.schemas.assert_valid("stt/response", body, context="transcribe audio/wav")
    assert isinstance(body["transcript"], str) and len(body["transcript"]) > 0, (
        f"transcript must be a non-empty string, got {body['transcript']!r}"
    )
    for word in body.get("words") or []:
        assert word["start"] <= word["end"], f"word timing out of order: {word}"
    return body


@scenario("stt")
async def reject_json_content_type(h: Harness) -> Dict[str, Any]:
    """POST application/json returns 415 UNSUPPORTED_MEDIA_TYPE."""
    async with h.rest() as rest:
        rec = await rest.send(RequestSpec(
            "POST", h.endpoint("stt"), body=JsonBody({"test": "data"}),
        ))
    expect_status(rec, 415)
    return expect_error(rec, h.schemas, "stt/error", code="UNSUPPORTED_MEDIA_TYPE")


@scenario("stt")
async def reject_bad_audio(h: Harness) -> Dict[str, Any]:
    """Undecodable audio is rejected with a documented STT error code."""
    rec = await _post_audio(h, h.fixtures.bad_audio())
    return expect_error(rec, h.schemas, "stt/error", codes=STT_ERROR_CODES)


@scenario("stt")
async def reject_empty_body(h: Harness) -> Dict[str, Any]:
    """An empty audio body is rejected with BAD_AUDIO or UNSUPPORTED_MEDIA_TYPE."""
    rec = await _post_audio(h, b"")
    return expect_error(rec, h.schemas, "stt/error", codes=("BAD_AUDIO", "UNSUPPORTED_MEDIA_TYPE"))


@scenario("stt")
async def echo_request_id(h: Harness) -> str:
    """The X-Request-Id request header is echoed on the response."""
    rid = request_id()
    rec = await _post_audio(h, h.fixtures.audio(), headers={"X-Request-Id": rid})
    echoed = rec.headers.get("x-request-id")
    assert echoed == rid, f"expected X-Request-Id {rid!r} to be echoed, got {echoed!r}"
    return rid


@scenario("stt")
async def alternate_audio_types(h: Harness) -> Dict[str, int]:
    """audio/mpeg and audio/webm are either transcribed (200) or cleanly rejected (400)."""
    statuses: Dict[str, int] = {}
    for ctype in ("audio/mpeg", "audio/webm"):
        rec = await _post_audio(h, h.fixtures.audio(), ctype)
        expect_status(rec, 200, 400)
        if rec.status == 400:
            expect_error(rec, h.schemas, "stt/error", codes=STT_ERROR_CODES)
        statuses[ctype] = rec.status
    return statuses


@scenario("stt")
async def ignore_unknown_query(h: Harness) -> Dict[str, Any]:
    """Unknown query parameters do not cause a rejection."""
    rec = await _post_audio(h, h.fixtures.audio(), query={"unknownParam": "value", "anotherBadParam": 123})
    expect_status(rec, 200)
    body = expect_json_object(rec)
    h.schemas.assert_valid("stt/response", body, context="unknown query parameters")
    return body
