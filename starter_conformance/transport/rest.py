# SPDX-License-Identifier: Apache-2.0
"""
REST driver.

One ``send`` is exactly one HTTP exchange: no retries, no redirects followed
implicitly, no raising on 4xx/5xx. HTTP error statuses come back as ordinary
ResponseRecords for the scenario to assert on; only network-level failures
(refused connection, DNS, timeout) raise, as TransportError.

Usage:
    async with RestDriver(config.base_url, auth=auth) as rest:
        rec = await rest.send(RequestSpec(
            "POST", "/stt/transcribe",
            headers={"Content-Type": "audio/wav"},
            body=RawBody(audio),
        ))
        assert rec.status == 200
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple, Union

import httpx

from ..auth import AuthContext
from ..errors import TransportError, TransportTimeoutError

logger = logging.getLogger(__name__)

__all__ = [
    "RawBody",
    "JsonBody",
    "FilePart",
    "MultipartBody",
    "RequestSpec",
    "ResponseRecord",
    "RestDriver",
]


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RawBody:
    """Bytes sent as-is; the caller supplies Content-Type (or deliberately omits it)."""
    content: bytes


@dataclass(frozen=True)
class JsonBody:
    """A JSON-serializable value; Content-Type defaults to application/json."""
    value: Any


@dataclass(frozen=True)
class FilePart:
    name: str
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


@dataclass(frozen=True)
class MultipartBody:
    """multipart/form-data; the boundary and per-part headers are generated."""
    fields: Tuple[Tuple[str, str], ...] = ()
    files: Tuple[FilePart, ...] = ()

    @classmethod
    def of(cls, fields: Optional[Mapping[str, str]] = None, files: Sequence[FilePart] = ()) -> "MultipartBody":
        return cls(fields=tuple((fields or {}).items()), files=tuple(files))


Body = Union[None, RawBody, JsonBody, MultipartBody]


@dataclass(frozen=True)
class RequestSpec:
    method: str
    path: str
    headers: Mapping[str, str] = field(default_factory=dict)
    query: Mapping[str, Any] = field(default_factory=dict)
    body: Body = None

    def header(self, name: str) -> Optional[str]:
        return httpx.Headers(dict(self.headers)).get(name)


# ---------------------------------------------------------------------------
# Response record
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ResponseRecord:
    status: int
    headers: httpx.Headers
    body: Any
    content: bytes
    elapsed_ms: float
    url: str = ""

    @property
    def is_json(self) -> bool:
        return not isinstance(self.body, bytes)

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "").split(";")[0].strip().lower()

    def error(self) -> Dict[str, Any]:
        """The ``error`` object of an error envelope, or {} when absent."""
        if isinstance(self.body, dict) and isinstance(self.body.get("error"), dict):
            return self.body["error"]
        return {}

    @property
    def error_code(self) -> Optional[str]:
        return self.error().get("code")

    def describe(self) -> str:
        body = self.body if self.is_json else f"<{len(self.content)} bytes {self.content_type or 'unknown'}>"
        return f"HTTP {self.status} from {self.url}: {body!r}"


def decode_body(content: bytes) -> Any:
    """JSON-decode when possible, else return the raw bytes. Never raises."""
    if not content:
        return b""
    try:
        return json.loads(content)
    except (ValueError, UnicodeDecodeError):
        return content


def _query_value(v: Any) -> str:
    if isinstance(v, bool):
        return "true" if v else "false"
    return str(v)


# ---------------------------------------------------------------------------
# Driver
# ---------------------------------------------------------------------------

class RestDriver:
    """
    Async HTTP driver over httpx.

    ``transport`` lets tests inject an ``httpx.MockTransport`` or
    ``httpx.ASGITransport`` in place of the network.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout_ms: int = 30_000,
        auth: Optional[AuthContext] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_ms = timeout_ms
        self.auth = auth or AuthContext.anonymous()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "RestDriver":
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout_ms / 1000.0,
            transport=self._transport,
            follow_redirects=False,
        )
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _build(self, spec: RequestSpec) -> Dict[str, Any]:
        headers = httpx.Headers(self.auth.headers())
        headers.update(dict(spec.headers))
        kwargs: Dict[str, Any] = {
            "headers": headers,
            "params": {k: _query_value(v) for k, v in spec.query.items() if v is not None},
        }
        body = spec.body
        if body is None:
            pass
        elif isinstance(body, RawBody):
            kwargs["content"] = body.content
        elif isinstance(body, JsonBody):
            kwargs["content"] = json.dumps(body.value).encode("utf-8")
            headers.setdefault("Content-Type", "application/json")
        elif isinstance(body, MultipartBody):
            # httpx only emits multipart when `files` is non-empty; plain
            # fields are passed as (None, value) parts so a fields-only form
            # is still multipart/form-data rather than urlencoded.
            parts = [(name, (None, value)) for name, value in body.fields]
            parts.extend(
                (f.name, (f.filename, f.content, f.content_type)) for f in body.files
            )
            if not parts:
                raise ValueError("multipart body needs at least one field or file")
            kwargs["files"] = parts
        else:
            raise TypeError(f"unsupported body type: {type(body).__name__}")
        return kwargs

    async def send(self, spec: RequestSpec, *, timeout_ms: Optional[int] = None) -> ResponseRecord:
        """
        Execute ``spec`` once.

        Raises:
            TransportTimeoutError: no complete response within the timeout.
            TransportError: connection refused, DNS failure, protocol error.
        """
        if self._client is None:
            raise RuntimeError("RestDriver must be used as an async context manager")

        kwargs = self._build(spec)
        if timeout_ms is not None:
            kwargs["timeout"] = timeout_ms / 1000.0
        method = spec.method.upper()

        start = time.perf_counter()
        try:
            resp = await self._client.request(method, spec.path, **kwargs)
        except httpx.TimeoutException as e:
            raise TransportTimeoutError(
                f"{method} {spec.path} timed out",
                cause=e,
                details={"timeout_ms": timeout_ms or self.timeout_ms},
            ) from e
        except httpx.RequestError as e:
            raise TransportError(f"{method} {spec.path} failed: {e}", cause=e) from e
        elapsed_ms = (time.perf_counter() - start) * 1000.0

        content = resp.content
        record = ResponseRecord(
            status=resp.status_code,
            headers=resp.headers,
            body=decode_body(content),
            content=content,
            elapsed_ms=elapsed_ms,
            url=str(resp.request.url),
        )
        logger.debug("%s %s -> %d (%.1f ms)", method, record.url, record.status, elapsed_ms)
        return record
