# SPDX-License-Identifier: Apache-2.0
"""
Explicit authentication context.

A starter protected by session auth hands out a short-lived JWT from its
session endpoint. The token is fetched once per test run and threaded through
every driver call as an ``AuthContext`` value instead of living in module
state, so independent scenarios never share hidden mutable auth.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import httpx

from .config import HarnessConfig
from .errors import TransportError, TransportTimeoutError

logger = logging.getLogger(__name__)


def looks_like_jwt(token: object) -> bool:
    """A JWT is three non-empty dot-separated segments."""
    if not isinstance(token, str):
        return False
    parts = token.split(".")
    return len(parts) == 3 and all(parts)


@dataclass(frozen=True)
class AuthContext:
    token: Optional[str] = None

    @classmethod
    def anonymous(cls) -> "AuthContext":
        return cls(token=None)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    def headers(self) -> Dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    def subprotocols(self, template: str = "access_token.{token}") -> List[str]:
        """Subprotocol list that carries the bearer token over a WebSocket handshake."""
        if not self.token:
            return []
        return [template.format(token=self.token)]

    def __repr__(self) -> str:
        # Never leak the token into assertion output or logs.
        return f"AuthContext(authenticated={self.is_authenticated})"


def fetch_auth_context(
    config: HarnessConfig,
    *,
    client: Optional[httpx.Client] = None,
) -> AuthContext:
    """
    Resolve the run's AuthContext.

    ``AUTH_TOKEN`` wins when set. Otherwise, with session auth enabled, the
    session endpoint is called exactly once. Without session auth the context
    is anonymous.

    Raises:
        TransportError: the session endpoint is unreachable or returns
            anything other than ``{"token": <jwt>}``.
    """
    if config.auth_token:
        return AuthContext(token=config.auth_token)
    if not config.session_auth:
        return AuthContext.anonymous()

    url = config.http_url(config.endpoint("session"))
    owns_client = client is None
    if client is None:
        client = httpx.Client(timeout=config.request_timeout_ms / 1000.0)
    try:
        resp = client.get(url)
    except httpx.TimeoutException as e:
        raise TransportTimeoutError(f"session token request timed out: {url}", cause=e) from e
    except httpx.RequestError as e:
        raise TransportError(f"session token request failed: {url}", cause=e) from e
    finally:
        if owns_client:
            client.close()

    if resp.status_code != 200:
        raise TransportError(
            f"session endpoint returned HTTP {resp.status_code}",
            details={"url": url, "status": resp.status_code},
        )
    try:
        token = resp.json().get("token")
    except (ValueError, AttributeError) as e:
        raise TransportError("session endpoint did not return a JSON object", cause=e) from e
    if not looks_like_jwt(token):
        raise TransportError("session endpoint token is not a JWT", details={"url": url})

    logger.debug("fetched session token from %s", url)
    return AuthContext(token=token)
