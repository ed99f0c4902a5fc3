# SPDX-License-Identifier: Apache-2.0
"""
Session auth scenarios.

``GET /api/session`` issues a JWT. With SESSION_AUTH enabled, protected REST
endpoints answer 401 with an AuthenticationError envelope when the bearer
token is missing (MISSING_TOKEN) or not one the starter issued
(INVALID_TOKEN).
"""

from __future__ import annotations

from typing import Any, Dict

from ..assertions import expect_error, expect_json_object, expect_status
from ..auth import AuthContext, looks_like_jwt
from ..errors import ConfigError
from ..harness import Harness
from ..transport.rest import JsonBody, RequestSpec, ResponseRecord
from .registry import scenario

# Probed in order; the first one the starter exposes is used.
PROTECTED_ENDPOINTS = ("transcription", "text-to-speech", "text-intelligence")
INVALID_TOKEN = "invalid.token.here"


def _protected_endpoint(h: Harness) -> str:
    for name in PROTECTED_ENDPOINTS:
        if h.config.endpoints.get(name):
            return h.config.endpoints[name]
    raise ConfigError(f"no protected REST endpoint configured; tried {', '.join(PROTECTED_ENDPOINTS)}")


async def _post_protected(h: Harness, auth: AuthContext) -> ResponseRecord:
    async with h.rest(auth=auth) as rest:
        return await rest.send(RequestSpec(
            "POST", _protected_endpoint(h), body=JsonBody({"text": "test"}),
        ))


@scenario("session")
async def issue_token(h: Harness) -> str:
    """GET on the session endpoint returns JSON ``{"token": <jwt>}``."""
    async with h.rest(auth=AuthContext.anonymous()) as rest:
        rec = await rest.send(RequestSpec("GET", h.endpoint("session")))
    expect_status(rec, 200)
    assert rec.is_json, f"expected application/json, got {rec.content_type or '<none>'!r}"
    body = expect_json_object(rec)
    h.schemas.assert_valid("session/session", body, context="session token")
    assert looks_like_jwt(body["token"]), "token is not three dot-separated segments"
    return body["token"]


@scenario("session", requires_session_auth=True)
async def reject_missing_token(h: Harness) -> Dict[str, Any]:
    """A protected endpoint without Authorization returns 401 MISSING_TOKEN."""
    rec = await _post_protected(h, AuthContext.anonymous())
    expect_status(rec, 401)
    return expect_error(rec, h.schemas, "session/auth-error", code="MISSING_TOKEN")


@scenario("session", requires_session_auth=True)
async def reject_invalid_token(h: Harness) -> Dict[str, Any]:
    """A protected endpoint with a forged bearer token returns 401 INVALID_TOKEN."""
    rec = await _post_protected(h, AuthContext(token=INVALID_TOKEN))
    expect_status(rec, 401)
    return expect_error(rec, h.schemas, "session/auth-error", code="INVALID_TOKEN")
