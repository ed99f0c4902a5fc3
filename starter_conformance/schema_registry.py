# SPDX-License-Identifier: Apache-2.0
"""
Schema Validator and Registry (Draft 2020-12)

- compile_schema(schema) -> Validator (raises SchemaError on a malformed schema)
- Validator.validate(payload) -> ValidationResult (never raises)
- SchemaRegistry: recursively loads every JSON Schema under ./schemas,
  indexes by $id and by relative file path, caches compiled validators and
  resolves $ref across files by $id.

Violations are reported one per failed constraint, each with the failing
keyword, the JSON pointer of the offending value and a readable message.
Schemas are loaded once and never mutated; ``get_schema`` hands out copies.
"""

from __future__ import annotations

import copy
import json
import logging
import re
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import jsonschema
from jsonschema import Draft202012Validator
from jsonschema.validators import validator_for
from referencing import Registry, Resource
from referencing.exceptions import Unresolvable

from .errors import SchemaError, ValidationError

logger = logging.getLogger(__name__)

DRAFT_2020_12 = "https://json-schema.org/draft/2020-12/schema"

# Files that may live beside schemas but are never schemas themselves.
_SKIP_FILES = {"package.json", "tsconfig.json", "package-lock.json"}


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SchemaViolation:
    """One violated constraint."""
    keyword: str
    path: str
    message: str
    schema_path: str = ""
    # Property names involved: the missing key for `required`, the unexpected
    # keys for `additionalProperties`, the format name for `format`.
    params: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "keyword": self.keyword,
            "path": self.path,
            "message": self.message,
            "schema_path": self.schema_path,
            "params": list(self.params),
        }


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: Tuple[SchemaViolation, ...] = field(default_factory=tuple)

    def __bool__(self) -> bool:
        return self.valid

    def keywords(self) -> List[str]:
        return [e.keyword for e in self.errors]

    def find(self, keyword: str) -> List[SchemaViolation]:
        return [e for e in self.errors if e.keyword == keyword]


def json_pointer(parts: Iterable[Any]) -> str:
    """RFC 6901 pointer for a jsonschema error path ('' is the document root)."""
    out = []
    for p in parts:
        out.append(str(p).replace("~", "~0").replace("/", "~1"))
    return "".join("/" + p for p in out)


def _required_params(err: jsonschema.ValidationError) -> Tuple[str, ...]:
    instance = err.instance if isinstance(err.instance, Mapping) else {}
    missing = [p for p in (err.validator_value or []) if p not in instance]
    for p in missing:
        if err.message.startswith(repr(p)):
            return (p,)
    return tuple(missing)


def _additional_params(err: jsonschema.ValidationError) -> Tuple[str, ...]:
    if not isinstance(err.instance, Mapping) or not isinstance(err.schema, Mapping):
        return ()
    declared = err.schema.get("properties", {}) or {}
    patterns = list((err.schema.get("patternProperties", {}) or {}).keys())
    extras = [
        k for k in err.instance
        if k not in declared and not any(re.search(p, k) for p in patterns)
    ]
    return tuple(sorted(extras))


def _to_violation(err: jsonschema.ValidationError) -> SchemaViolation:
    keyword = str(err.validator)
    params: Tuple[str, ...] = ()
    if keyword == "required":
        params = _required_params(err)
    elif keyword == "additionalProperties":
        params = _additional_params(err)
    elif keyword == "format":
        params = (str(err.validator_value),)
    return SchemaViolation(
        keyword=keyword,
        path=json_pointer(err.absolute_path),
        message=err.message,
        schema_path=json_pointer(err.absolute_schema_path),
        params=params,
    )


# ---------------------------------------------------------------------------
# Compile / validate
# ---------------------------------------------------------------------------

class Validator:
    """A compiled schema. Stateless after construction and safe to share."""

    def __init__(self, impl: jsonschema.protocols.Validator, schema_id: Optional[str] = None):
        self._impl = impl
        self.schema_id = schema_id

    @property
    def schema(self) -> Mapping[str, Any]:
        return self._impl.schema

    def validate(self, payload: Any) -> ValidationResult:
        """Validate ``payload``; returns every violation, ordered by instance path."""
        try:
            raw = list(self._impl.iter_errors(payload))
        except Unresolvable as e:
            return ValidationResult(
                valid=False,
                errors=(SchemaViolation(keyword="$ref", path="", message=f"unresolvable reference: {e}"),),
            )
        violations = sorted(
            (_to_violation(e) for e in raw),
            key=lambda v: (v.path, v.schema_path, v.params),
        )
        return ValidationResult(valid=not violations, errors=tuple(violations))

    def is_valid(self, payload: Any) -> bool:
        return self.validate(payload).valid

    def assert_valid(self, payload: Any, *, context: Optional[str] = None) -> None:
        """Pytest-friendly validation: raises ValidationError listing every violation."""
        result = self.validate(payload)
        if result.valid:
            return
        label = self.schema_id or "<inline schema>"
        message = f"JSON validation failed against {label}"
        if context:
            message += f" ({context})"
        raise ValidationError(message, schema_id=self.schema_id, violations=result.errors)


def compile_schema(schema: Any, *, registry: Optional[Registry] = None) -> Validator:
    """
    Compile a JSON Schema document into a Validator.

    The dialect comes from ``$schema`` and defaults to Draft 2020-12. Format
    assertions (uuid, uri, date-time, ...) are enabled.

    Raises:
        SchemaError: the document is not a structurally valid JSON Schema.
    """
    if not isinstance(schema, (Mapping, bool)):
        raise SchemaError(f"schema must be a JSON object, got {type(schema).__name__}")
    cls = validator_for(schema, default=Draft202012Validator)
    try:
        cls.check_schema(schema)
    except jsonschema.exceptions.SchemaError as e:
        raise SchemaError(
            f"invalid schema: {e.message}",
            details={"schema_path": json_pointer(e.absolute_path)},
        ) from e

    kwargs: Dict[str, Any] = {"format_checker": cls.FORMAT_CHECKER}
    if registry is not None:
        kwargs["registry"] = registry
    schema_id = schema.get("$id") if isinstance(schema, Mapping) else None
    return Validator(cls(schema, **kwargs), schema_id=schema_id)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

def _iter_schema_files(root: Path) -> List[Path]:
    return sorted(p for p in root.rglob("*.json") if p.name not in _SKIP_FILES)


def _check_metadata(schema: Any, file_path: Path) -> None:
    if not isinstance(schema, dict):
        raise SchemaError(f"Schema must be a JSON object: {file_path}")
    if schema.get("$schema") != DRAFT_2020_12:
        raise SchemaError(f"Schema must declare $schema as Draft 2020-12: {file_path}")
    schema_id = schema.get("$id")
    if not isinstance(schema_id, str) or not schema_id.startswith(("http://", "https://")):
        raise SchemaError(f"Schema $id must be an http(s) URI: {file_path} -> {schema_id!r}")


class SchemaRegistry:
    """
    Thread-safe store of every schema under ``root``.

    Lookup keys, in order: exact ``$id``, relative path (``stt/error.json``
    or ``stt/error``), unique ``$id`` suffix.
    """

    def __init__(self, root: Path):
        self.root = Path(root)
        self._lock = threading.RLock()
        self._schemas: Dict[str, dict] = {}
        self._paths: Dict[str, Path] = {}
        self._by_relpath: Dict[str, str] = {}
        self._validators: Dict[str, Validator] = {}
        self._refs: Optional[Registry] = None

    # -------- loading --------

    def _load(self) -> None:
        with self._lock:
            if self._refs is not None:
                return
            if not self.root.exists():
                raise SchemaError(f"Schemas root not found: {self.root}")

            duplicates = []
            resources = []
            for file_path in _iter_schema_files(self.root):
                try:
                    with file_path.open("r", encoding="utf-8") as f:
                        schema = json.load(f)
                except json.JSONDecodeError as e:
                    raise SchemaError(f"Invalid JSON in schema: {file_path}: {e}") from e
                _check_metadata(schema, file_path)

                schema_id = schema["$id"]
                if schema_id in self._schemas:
                    duplicates.append(
                        f"  {schema_id}\n    First:  {self._paths[schema_id]}\n    Second: {file_path}"
                    )
                    continue
                self._schemas[schema_id] = schema
                self._paths[schema_id] = file_path
                rel = file_path.relative_to(self.root).as_posix()
                self._by_relpath[rel] = schema_id
                self._by_relpath[rel[: -len(".json")]] = schema_id
                resources.append((schema_id, Resource.from_contents(schema)))

            if duplicates:
                raise SchemaError("Duplicate schema $id detected:\n" + "\n".join(duplicates))

            self._refs = Registry().with_resources(resources)
            logger.debug("loaded %d schemas from %s", len(self._schemas), self.root)

    def preload(self) -> None:
        """Load and compile every schema; a broken one raises SchemaError up front."""
        self._load()
        for schema_id in list(self._schemas):
            self.get_validator(schema_id)

    # -------- lookup --------

    def resolve_id(self, key: str) -> str:
        self._load()
        with self._lock:
            if key in self._schemas:
                return key
            if key in self._by_relpath:
                return self._by_relpath[key]
            matches = [sid for sid in self._schemas if sid.endswith(key)]
            if len(matches) == 1:
                return matches[0]
            if matches:
                raise KeyError(f"Schema key {key!r} is ambiguous:\n  " + "\n  ".join(sorted(matches)))
            raise KeyError(
                f"Schema not found: {key}\nAvailable schemas ({len(self._schemas)}):\n  "
                + "\n  ".join(sorted(self._schemas)[:10])
            )

    def get_validator(self, key: str) -> Validator:
        schema_id = self.resolve_id(key)
        with self._lock:
            cached = self._validators.get(schema_id)
            if cached is not None:
                return cached
            try:
                validator = compile_schema(self._schemas[schema_id], registry=self._refs)
            except SchemaError as e:
                e.details.setdefault("file", str(self._paths[schema_id]))
                raise
            self._validators[schema_id] = validator
            return validator

    def get_schema(self, key: str) -> dict:
        schema_id = self.resolve_id(key)
        return copy.deepcopy(self._schemas[schema_id])

    def list_schemas(self) -> Dict[str, str]:
        self._load()
        return {sid: str(p) for sid, p in self._paths.items()}

    def path_of(self, key: str) -> Path:
        return self._paths[self.resolve_id(key)]

    # -------- validation --------

    def validate(self, key: str, payload: Any) -> ValidationResult:
        return self.get_validator(key).validate(payload)

    def assert_valid(self, key: str, payload: Any, *, context: Optional[str] = None) -> None:
        self.get_validator(key).assert_valid(payload, context=context)
