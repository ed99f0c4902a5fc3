# SPDX-License-Identifier: Apache-2.0
"""
Harness: the per-run bundle scenarios are written against.

Schemas and fixtures are read-only and shared by every scenario. Drivers are
created per scenario so that no connection or client outlives the scenario
that opened it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

import httpx

from .auth import AuthContext
from .config import BUNDLED_FIXTURES_ROOT, HarnessConfig
from .fixtures import FixtureProvider
from .schema_registry import SchemaRegistry
from .transport.rest import RestDriver
from .transport.streaming import StreamingDriver


@dataclass(frozen=True)
class Harness:
    config: HarnessConfig
    auth: AuthContext
    schemas: SchemaRegistry
    fixtures: FixtureProvider
    # Test seam: an httpx transport (MockTransport/ASGITransport) replacing the network.
    http_transport: Optional[httpx.AsyncBaseTransport] = None

    @classmethod
    def create(
        cls,
        config: HarnessConfig,
        auth: Optional[AuthContext] = None,
        *,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "Harness":
        return cls(
            config=config,
            auth=auth or AuthContext.anonymous(),
            schemas=SchemaRegistry(config.schemas_root),
            fixtures=FixtureProvider(config.fixtures_root, fallback=BUNDLED_FIXTURES_ROOT),
            http_transport=http_transport,
        )

    def rest(self, *, auth: Optional[AuthContext] = None) -> RestDriver:
        return RestDriver(
            self.config.base_url,
            timeout_ms=self.config.request_timeout_ms,
            auth=self.auth if auth is None else auth,
            transport=self.http_transport,
        )

    def streaming(self) -> StreamingDriver:
        return StreamingDriver(
            open_timeout_ms=self.config.open_timeout_ms,
            subprotocol_template=self.config.subprotocol_template,
            decode_binary_json=self.config.decode_binary_json,
        )

    def endpoint(self, name: str) -> str:
        return self.config.endpoint(name)

    def ws_url(self, name: str, query: Optional[Mapping[str, Any]] = None) -> str:
        return self.config.ws_url_for(self.config.endpoint(name), query)
