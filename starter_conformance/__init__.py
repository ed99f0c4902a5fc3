# SPDX-License-Identifier: Apache-2.0

"""
Starter Conformance - Public API

Protocol-conformance harness for starter speech/AI apps. All public types
are re-exported here for clean imports.
"""

from starter_conformance.auth import AuthContext, fetch_auth_context, looks_like_jwt
from starter_conformance.config import DEFAULT_ENDPOINTS, HarnessConfig
from starter_conformance.errors import (
    # Error types
    ConformanceError,
    ConfigError,
    SchemaError,
    ValidationError,
    TransportError,
    TransportTimeoutError,
    WaitTimeoutError,
    FixtureNotFoundError,
    FixtureParseError,
    ProtocolStateError,
)
from starter_conformance.fixtures import FixtureProvider
from starter_conformance.harness import Harness
from starter_conformance.reporting import ConformanceReport, ScenarioOutcome
from starter_conformance.schema_registry import (
    SchemaRegistry,
    SchemaViolation,
    ValidationResult,
    Validator,
    compile_schema,
)
from starter_conformance.text import fuzzy_text_match, normalize_text, similarity
from starter_conformance.transport import (
    FilePart,
    Frame,
    JsonBody,
    MessageLog,
    MultipartBody,
    RawBody,
    RequestSpec,
    ResponseRecord,
    RestDriver,
    Session,
    SessionState,
    StreamingDriver,
)
from starter_conformance.waits import wait_for_all, wait_for_count, wait_for_one

__version__ = "1.0.0"

__all__ = [
    "__version__",
    # Configuration and auth
    "HarnessConfig",
    "DEFAULT_ENDPOINTS",
    "AuthContext",
    "fetch_auth_context",
    "looks_like_jwt",
    # Error types
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
    # Schemas
    "SchemaRegistry",
    "SchemaViolation",
    "ValidationResult",
    "Validator",
    "compile_schema",
    # Fixtures
    "FixtureProvider",
    # Transport
    "FilePart",
    "Frame",
    "JsonBody",
    "MessageLog",
    "MultipartBody",
    "RawBody",
    "RequestSpec",
    "ResponseRecord",
    "RestDriver",
    "Session",
    "SessionState",
    "StreamingDriver",
    # Waits and text matching
    "wait_for_one",
    "wait_for_all",
    "wait_for_count",
    "fuzzy_text_match",
    "normalize_text",
    "similarity",
    # Runs
    "Harness",
    "ConformanceReport",
    "ScenarioOutcome",
]
