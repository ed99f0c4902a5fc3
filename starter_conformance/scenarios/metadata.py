# SPDX-License-Identifier: Apache-2.0
"""
Starter metadata and deployment scenarios.

``/api/metadata`` describes the running starter. The deploy checks read the
served index page, which a production deployment rewrites to carry a
per-request session nonce and a ``<base href>`` for subpath routing.
"""

from __future__ import annotations

import re
from typing import Any, Dict
from urllib.parse import urlparse

from ..assertions import expect_json_object, expect_status
from ..fixtures import request_id
from ..harness import Harness
from ..transport.rest import RequestSpec
from .registry import scenario

NONCE_META = re.compile(r'<meta\s+name="session-nonce"\s+content="([^"]+)"')
BASE_HREF = re.compile(r'<base\s+href="([^"]+)"')
SUBPATH = re.compile(r"^/[a-z0-9-]+/$")
UUID = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)


@scenario("metadata")
async def describe_starter(h: Harness) -> Dict[str, Any]:
    """GET /api/metadata returns JSON with a version and a known environment."""
    async with h.rest() as rest:
        rec = await rest.send(RequestSpec(
            "GET", h.endpoint("metadata"), headers={"X-Request-Id": request_id()},
        ))
    expect_status(rec, 200)
    assert rec.is_json, f"expected application/json, got {rec.content_type or '<none>'!r}"
    body = expect_json_object(rec)
    h.schemas.assert_valid("metadata/metadata", body, context="starter metadata")
    return body


async def _index_html(h: Harness) -> str:
    async with h.rest() as rest:
        rec = await rest.send(RequestSpec("GET", "/", headers={"Accept": "text/html"}))
    expect_status(rec, 200)
    return rec.content.decode("utf-8", errors="replace")


@scenario("deploy", requires_session_auth=True)
async def session_nonce(h: Harness) -> str:
    """The index page carries ``<meta name="session-nonce">`` with a UUID."""
    html = await _index_html(h)
    match = NONCE_META.search(html)
    assert match, 'missing <meta name="session-nonce"> tag in index HTML'
    assert UUID.match(match.group(1)), f"session nonce is not a UUID: {match.group(1)!r}"
    return match.group(1)


@scenario("deploy", requires_session_auth=True)
async def base_href(h: Harness) -> str:
    """The index page sets ``<base href>`` to the starter's subpath."""
    html = await _index_html(h)
    match = BASE_HREF.search(html)
    assert match, "missing <base href> tag in index HTML"
    base = match.group(1)
    assert SUBPATH.match(base), f"base href must look like /<starter-name>/, got {base!r}"
    url_path = urlparse(h.config.base_url).path.rstrip("/")
    if url_path:
        assert base == f"{url_path}/", f"base href {base!r} does not match BASE_URL path {url_path!r}"
    return base
