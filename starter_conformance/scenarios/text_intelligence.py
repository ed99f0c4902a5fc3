# SPDX-License-Identifier: Apache-2.0
"""
Text intelligence REST scenarios.

Analysis features are switched on by boolean query flags (summarize,
topics, sentiment, intents); the body carries either ``text`` or ``url``,
never both.
"""

from __future__ import annotations

from typing import Any, Dict

from ..assertions import expect_error, expect_json_object, expect_status
from ..harness import Harness
from ..transport.rest import JsonBody, RequestSpec, ResponseRecord
from .registry import scenario

SAMPLE_TEXT = (
    "This is a sample text for analysis. It contains multiple sentences. "
    "We can test the text intelligence features with this content. "
    "The system should be able to analyze and summarize this text effectively."
)


async def _analyze(h: Harness, body: Dict[str, Any], **flags: Any) -> ResponseRecord:
    h.schemas.assert_valid("text-intelligence/query", flags, context="outbound query")
    async with h.rest() as rest:
        return await rest.send(RequestSpec(
            "POST", h.endpoint("text-intelligence"), query=flags, body=JsonBody(body),
        ))


def _expect_analysis(h: Harness, rec: ResponseRecord, context: str) -> Dict[str, Any]:
    expect_status(rec, 200)
    body = expect_json_object(rec)
    h.schemas.assert_valid("text-intelligence/response", body, context=context)
    return body


@scenario("text-intelligence")
async def summarize_text(h: Harness) -> Dict[str, Any]:
    """summarize=true on a text body returns a non-empty summary."""
    rec = await _analyze(h, {"text": SAMPLE_TEXT}, summarize=True)
    body = _expect_analysis(h, rec, "summarize=true")
    summary = body["results"].get("summary")
    assert summary and summary.get("text"), f"results.summary.text missing or empty: {body['results']!r}"
    return body


@scenario("text-intelligence")
async def summarize_with_language(h: Harness) -> Dict[str, Any]:
    """A ``language`` query parameter is accepted."""
    rec = await _analyze(h, {"text": SAMPLE_TEXT}, summarize=True, language="en")
    body = _expect_analysis(h, rec, "summarize=true&language=en")
    assert "summary" in body["results"], "results.summary missing"
    return body


@scenario("text-intelligence")
async def all_features(h: Harness) -> Dict[str, Any]:
    """topics, sentiment and intents each produce their segment structure."""
    rec = await _analyze(h, {"text": SAMPLE_TEXT}, topics=True, sentiment=True, intents=True)
    body = _expect_analysis(h, rec, "topics+sentiment+intents")
    results = body["results"]
    for key in ("topics", "sentiments", "intents"):
        assert key in results, f"results.{key} missing; got keys {sorted(results)}"
        assert isinstance(results[key].get("segments"), list), f"results.{key}.segments must be a list"
    return body


@scenario("text-intelligence")
async def reject_empty_text(h: Harness) -> Dict[str, Any]:
    """Empty text yields a text-intelligence error envelope."""
    rec = await _analyze(h, {"text": ""}, summarize=True)
    return expect_error(rec, h.schemas, "text-intelligence/error")


@scenario("text-intelligence")
async def reject_text_and_url(h: Harness) -> Dict[str, Any]:
    """Sending both ``text`` and ``url`` returns 400."""
    rec = await _analyze(h, {"text": SAMPLE_TEXT, "url": "https://example.com/text.txt"}, summarize=True)
    expect_status(rec, 400)
    return expect_error(rec, h.schemas, "text-intelligence/error")


@scenario("text-intelligence")
async def reject_invalid_url(h: Harness) -> Dict[str, Any]:
    """A malformed ``url`` returns 400 INVALID_URL."""
    rec = await _analyze(h, {"url": "not-a-valid-url"}, summarize=True)
    expect_status(rec, 400)
    return expect_error(rec, h.schemas, "text-intelligence/error", code="INVALID_URL")
