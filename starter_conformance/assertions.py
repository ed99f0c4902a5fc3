# SPDX-License-Identifier: Apache-2.0
"""
Response assertions shared by the scenarios.

Each helper raises AssertionError (or ValidationError, which is one) with the
expected and actual values in the message so a CI log alone is enough to
diagnose the failure.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

from .schema_registry import SchemaRegistry
from .text import DEFAULT_THRESHOLD, fuzzy_text_match, normalize_text, similarity
from .transport.rest import ResponseRecord

__all__ = [
    "expect_status",
    "expect_json_object",
    "expect_error",
    "expect_audio",
    "expect_fuzzy_match",
]

AUDIO_CONTENT_TYPES = ("audio/", "application/octet-stream")


def expect_status(rec: ResponseRecord, *allowed: int) -> None:
    if rec.status not in allowed:
        expected = allowed[0] if len(allowed) == 1 else list(allowed)
        raise AssertionError(f"expected HTTP {expected}, got {rec.describe()}")


def expect_json_object(rec: ResponseRecord) -> Dict[str, Any]:
    if not isinstance(rec.body, dict):
        raise AssertionError(f"expected a JSON object body, got {rec.describe()}")
    return rec.body


def expect_error(
    rec: ResponseRecord,
    schemas: SchemaRegistry,
    schema_key: str,
    *,
    code: Optional[str] = None,
    codes: Optional[Iterable[str]] = None,
    min_status: int = 400,
) -> Dict[str, Any]:
    """Assert an error status and a schema-valid error envelope; returns ``error``."""
    if rec.status < min_status:
        raise AssertionError(f"expected HTTP >= {min_status}, got {rec.describe()}")
    body = expect_json_object(rec)
    schemas.assert_valid(schema_key, body, context=f"HTTP {rec.status} from {rec.url}")
    error = body["error"]
    if code is not None and error.get("code") != code:
        raise AssertionError(f"expected error.code {code!r}, got {error.get('code')!r}: {error}")
    if codes is not None:
        allowed = list(codes)
        if error.get("code") not in allowed:
            raise AssertionError(f"expected error.code in {allowed}, got {error.get('code')!r}: {error}")
    return error


def expect_audio(rec: ResponseRecord) -> bytes:
    expect_status(rec, 200)
    ctype = rec.content_type
    if not ctype.startswith(AUDIO_CONTENT_TYPES):
        raise AssertionError(f"expected an audio content type, got {ctype or '<none>'!r}")
    if not rec.content:
        raise AssertionError("audio response body is empty")
    return rec.content


def expect_fuzzy_match(actual: str, expected: str, threshold: float = DEFAULT_THRESHOLD) -> None:
    if not fuzzy_text_match(actual, expected, threshold, strip_punctuation=True):
        score = similarity(
            normalize_text(actual, strip_punctuation=True),
            normalize_text(expected, strip_punctuation=True),
        )
        raise AssertionError(
            f"transcript similarity {score:.3f} < {threshold}\n"
            f"  actual:   {actual!r}\n  expected: {expected!r}"
        )
