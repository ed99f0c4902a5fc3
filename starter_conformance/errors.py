# SPDX-License-Identifier: Apache-2.0
"""
Error taxonomy for the starter conformance harness.

Every failure raised by the harness is a ``ConformanceError`` subclass so that
the reporting layer can turn it into a machine-readable diagnostic without
knowing which component produced it.

Severity (how the pytest layer treats each class):
  - SchemaError            fatal to the run (no valid contract to check against)
  - ValidationError        assertion failure, siblings continue
  - TransportError         scenario fails, siblings continue
  - WaitTimeoutError       assertion failure, carries observed message types
  - FixtureNotFoundError /
    FixtureParseError      fatal to the scenario only
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Sequence

__all__ = [
    "ConformanceError",
    "ConfigError",
    "SchemaError",
    "ValidationError",
    "TransportError",
    "TransportTimeoutError",
    "WaitTimeoutError",
    "FixtureNotFoundError",
    "FixtureParseError",
    "ProtocolStateError",
]


class ConformanceError(Exception):
    """
    Base exception for all harness errors.

    Attributes:
        message:
            Human-readable description.
        code:
            Upper-snake-case machine code; subclasses provide a default.
        details:
            Additional JSON-safe context surfaced in reports.
    """

    def __init__(
        self,
        message: str = "",
        *,
        code: Optional[str] = None,
        details: Optional[Mapping[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = dict(details or {})

    def __str__(self) -> str:
        base = self.message or self.__class__.__name__
        if self.code:
            base += f" [code={self.code}]"
        if self.details:
            base += f" details={self.details}"
        return base

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": dict(self.details),
        }


class ConfigError(ConformanceError):
    """Invalid harness configuration (bad env value, unknown endpoint name)."""

    def __init__(self, message: str, **kwargs: Any):
        kwargs.setdefault("code", "CONFIG_ERROR")
        super().__init__(message, **kwargs)


class SchemaError(ConformanceError):
    """A schema document is not a valid JSON Schema or cannot be loaded."""

    def __init__(self, message: str, **kwargs: Any):
        kwargs.setdefault("code", "SCHEMA_ERROR")
        super().__init__(message, **kwargs)


class ValidationError(ConformanceError, AssertionError):
    """
    A payload does not satisfy its schema.

    Subclasses AssertionError so pytest reports it as a test failure rather
    than an error.
    """

    def __init__(
        self,
        message: str,
        *,
        schema_id: Optional[str] = None,
        violations: Sequence[Any] = (),
        **kwargs: Any,
    ):
        kwargs.setdefault("code", "SCHEMA_VIOLATION")
        details = dict(kwargs.pop("details", None) or {})
        self.schema_id = schema_id
        self.violations = tuple(violations)
        if schema_id:
            details.setdefault("schema_id", schema_id)
        details.setdefault("violations", [_violation_dict(v) for v in self.violations])
        super().__init__(message, details=details, **kwargs)

    def __str__(self) -> str:
        lines = [self.message or "payload failed schema validation"]
        if self.schema_id:
            lines.append(f"Schema: {self.schema_id}")
        for v in self.violations:
            d = _violation_dict(v)
            lines.append(f"  - [{d.get('keyword')}] {d.get('path') or '<root>'}: {d.get('message')}")
        return "\n".join(lines)


class TransportError(ConformanceError):
    """Connection refused, DNS failure, handshake rejection or socket break."""

    def __init__(self, message: str, *, cause: Optional[BaseException] = None, **kwargs: Any):
        kwargs.setdefault("code", "TRANSPORT_ERROR")
        self.cause = cause
        if cause is not None:
            details = dict(kwargs.pop("details", None) or {})
            details.setdefault("cause", f"{type(cause).__name__}: {cause}")
            kwargs["details"] = details
        super().__init__(message, **kwargs)


class TransportTimeoutError(TransportError, TimeoutError):
    """A REST call or handshake did not complete within its timeout."""

    def __init__(self, message: str, **kwargs: Any):
        kwargs.setdefault("code", "TRANSPORT_TIMEOUT")
        super().__init__(message, **kwargs)


class WaitTimeoutError(ConformanceError, TimeoutError):
    """
    A wait predicate was not satisfied before its deadline.

    ``observed_types`` maps each message type seen in the log (``"<binary>"``
    for binary frames) to its count at the moment the wait gave up.
    """

    def __init__(
        self,
        message: str,
        *,
        predicate: str = "",
        timeout_ms: float = 0,
        observed_types: Optional[Mapping[str, int]] = None,
        **kwargs: Any,
    ):
        kwargs.setdefault("code", "WAIT_TIMEOUT")
        self.predicate = predicate
        self.timeout_ms = timeout_ms
        self.observed_types = dict(observed_types or {})
        details = dict(kwargs.pop("details", None) or {})
        details.update(
            predicate=predicate,
            timeout_ms=timeout_ms,
            observed_types=self.observed_types,
        )
        super().__init__(message, details=details, **kwargs)


class FixtureNotFoundError(ConformanceError):
    """A named fixture does not exist under the fixtures root."""

    def __init__(self, message: str, **kwargs: Any):
        kwargs.setdefault("code", "FIXTURE_NOT_FOUND")
        super().__init__(message, **kwargs)


class FixtureParseError(ConformanceError):
    """A JSON fixture exists but cannot be parsed."""

    def __init__(self, message: str, **kwargs: Any):
        kwargs.setdefault("code", "FIXTURE_PARSE_ERROR")
        super().__init__(message, **kwargs)


class ProtocolStateError(ConformanceError):
    """An illegal session state transition or an operation on a closed session."""

    def __init__(self, message: str, **kwargs: Any):
        kwargs.setdefault("code", "PROTOCOL_STATE")
        super().__init__(message, **kwargs)


def _violation_dict(v: Any) -> Dict[str, Any]:
    if hasattr(v, "to_dict"):
        return v.to_dict()
    if isinstance(v, Mapping):
        return dict(v)
    return {"keyword": None, "path": "", "message": str(v)}
