# SPDX-License-Identifier: Apache-2.0
"""
Transcription REST scenarios (multipart/form-data upload).

The endpoint takes either a ``url`` form field or a ``file`` part, plus an
optional ``model`` field, and returns the transcript envelope.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from ..assertions import expect_error, expect_fuzzy_match, expect_json_object, expect_status
from ..harness import Harness
from ..text import DEFAULT_THRESHOLD
from ..transport.rest import FilePart, MultipartBody, RequestSpec, ResponseRecord
from .registry import scenario

SAMPLE_AUDIO_URL = "https://dpgr.am/spacewalk.wav"


async def _post_form(h: Harness, body: Optional[MultipartBody]) -> ResponseRecord:
    async with h.rest() as rest:
        return await rest.send(RequestSpec("POST", h.endpoint("transcription"), body=body))


def _audio_part(h: Harness) -> FilePart:
    return FilePart(name="file", filename="audio.wav", content=h.fixtures.audio(), content_type="audio/wav")


def _expect_transcript(h: Harness, rec: ResponseRecord, context: str) -> Dict[str, Any]:
    expect_status(rec, 200)
    body = expect_json_object(rec)
    h.schemas.assert_valid("common/transcript", body, context=context)
    assert body["transcript"], f"{context}: transcript is empty"
    return body


@scenario("transcription")
async def transcribe_url(h: Harness) -> Dict[str, Any]:
    """A ``url`` form field is transcribed."""
    rec = await _post_form(h, MultipartBody.of({"url": SAMPLE_AUDIO_URL}))
    return _expect_transcript(h, rec, "multipart url")


@scenario("transcription")
async def transcribe_url_with_model(h: Harness) -> Dict[str, Any]:
    """A ``model`` form field is accepted alongside ``url``."""
    rec = await _post_form(h, MultipartBody.of({"url": SAMPLE_AUDIO_URL, "model": "nova-2"}))
    return _expect_transcript(h, rec, "multipart url + model")


@scenario("transcription")
async def transcribe_file(h: Harness) -> Dict[str, Any]:
    """A ``file`` part is transcribed."""
    rec = await _post_form(h, MultipartBody.of(files=[_audio_part(h)]))
    return _expect_transcript(h, rec, "multipart file")


@scenario("transcription")
async def file_transcript_matches_reference(
    h: Harness,
    expected: Optional[str] = None,
    threshold: float = DEFAULT_THRESHOLD,
) -> str:
    """The uploaded sample audio transcribes to text close to the reference text."""
    rec = await _post_form(h, MultipartBody.of(files=[_audio_part(h)]))
    body = _expect_transcript(h, rec, "multipart file")
    expect_fuzzy_match(body["transcript"], expected if expected is not None else h.fixtures.sample_text(), threshold)
    return body["transcript"]


@scenario("transcription")
async def reject_invalid_url(h: Harness) -> Dict[str, Any]:
    """A malformed ``url`` yields an error envelope."""
    rec = await _post_form(h, MultipartBody.of({"url": "not-a-valid-url"}))
    return expect_error(rec, h.schemas, "common/error")


@scenario("transcription")
async def reject_missing_input(h: Harness) -> Dict[str, Any]:
    """A form with neither ``url`` nor ``file`` yields an error envelope."""
    rec = await _post_form(h, MultipartBody.of({"model": "nova-3"}))
    return expect_error(rec, h.schemas, "common/error")
