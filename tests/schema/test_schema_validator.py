# SPDX-License-Identifier: Apache-2.0
"""
Schema validator: compile + validate.

Covers:
  • compile_schema rejects non-object documents and structurally invalid schemas
  • Dialect defaults to Draft 2020-12 when $schema is absent
  • validate() never raises; returns every violation with keyword + JSON pointer
  • required / additionalProperties / format violations carry the offending names
  • Violations are ordered deterministically
  • assert_valid raises ValidationError (an AssertionError) listing each violation
  • Unresolvable $ref is reported as a violation, not an exception
"""

from __future__ import annotations

import pytest

from starter_conformance.errors import SchemaError, ValidationError
from starter_conformance.schema_registry import ValidationResult, compile_schema, json_pointer

pytestmark = pytest.mark.schema

PERSON = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "$id": "https://schemas.example.test/person.json",
    "type": "object",
    "required": ["name", "id"],
    "additionalProperties": False,
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "id": {"type": "string", "format": "uuid"},
        "tags": {"type": "array", "items": {"type": "string"}},
    },
}


# ---------------------------------------------------------------------------
# compile
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("doc", [[], "schema", 42, None])
def test_compile_rejects_non_object(doc):
    with pytest.raises(SchemaError) as exc:
        compile_schema(doc)
    assert exc.value.code == "SCHEMA_ERROR"


def test_compile_rejects_invalid_keyword_value():
    with pytest.raises(SchemaError) as exc:
        compile_schema({"type": "not-a-type"})
    assert "invalid schema" in exc.value.message


def test_compile_rejects_non_array_required():
    with pytest.raises(SchemaError):
        compile_schema({"type": "object", "required": "name"})


def test_compile_accepts_boolean_schemas():
    assert compile_schema(True).is_valid({"anything": 1})
    assert not compile_schema(False).is_valid({})


def test_compile_defaults_to_draft_2020_12():
    # prefixItems only exists in 2020-12; earlier drafts would ignore it.
    v = compile_schema({"type": "array", "prefixItems": [{"type": "integer"}]})
    assert not v.is_valid(["x"])
    assert v.is_valid([1, "x"])


def test_compiled_validator_keeps_schema_id():
    assert compile_schema(PERSON).schema_id == PERSON["$id"]


# ---------------------------------------------------------------------------
# validate
# ---------------------------------------------------------------------------

def test_valid_payload_has_no_errors():
    result = compile_schema(PERSON).validate({"name": "Ada", "id": "0f8fad5b-d9cb-469f-a165-70867728950e"})
    assert isinstance(result, ValidationResult)
    assert result.valid and bool(result)
    assert result.errors == ()


def test_missing_required_names_the_property():
    result = compile_schema(PERSON).validate({"name": "Ada"})
    assert not result.valid
    (violation,) = result.find("required")
    assert violation.params == ("id",)
    assert violation.path == ""


def test_each_missing_required_is_reported():
    result = compile_schema(PERSON).validate({})
    missing = sorted(p for v in result.find("required") for p in v.params)
    assert missing == ["id", "name"]


def test_additional_property_is_named():
    result = compile_schema(PERSON).validate({
        "name": "Ada", "id": "0f8fad5b-d9cb-469f-a165-70867728950e", "extra": 1, "other": 2,
    })
    (violation,) = result.find("additionalProperties")
    assert violation.params == ("extra", "other")


def test_format_is_asserted():
    result = compile_schema(PERSON).validate({"name": "Ada", "id": "not-a-uuid"})
    (violation,) = result.find("format")
    assert violation.params == ("uuid",)
    assert violation.path == "/id"


def test_nested_path_is_a_json_pointer():
    result = compile_schema(PERSON).validate({
        "name": "Ada", "id": "0f8fad5b-d9cb-469f-a165-70867728950e", "tags": ["ok", 3],
    })
    (violation,) = result.errors
    assert violation.keyword == "type"
    assert violation.path == "/tags/1"


def test_validate_never_raises_on_wrong_root_type():
    result = compile_schema(PERSON).validate(["not", "an", "object"])
    assert result.keywords() == ["type"]


def test_violations_are_ordered_deterministically():
    payload = {"name": "", "id": "nope", "tags": [1, 2], "zzz": True}
    v = compile_schema(PERSON)
    first = v.validate(payload).errors
    second = v.validate(payload).errors
    assert first == second
    assert [e.path for e in first] == sorted(e.path for e in first)


def test_unresolvable_ref_is_a_violation():
    v = compile_schema({"$ref": "https://schemas.example.test/missing.json"})
    result = v.validate({})
    assert not result.valid
    assert result.keywords() == ["$ref"]


def test_json_pointer_escapes():
    assert json_pointer([]) == ""
    assert json_pointer(["a/b", "c~d", 0]) == "/a~1b/c~0d/0"


# ---------------------------------------------------------------------------
# assert_valid
# ---------------------------------------------------------------------------

def test_assert_valid_raises_validation_error():
    with pytest.raises(ValidationError) as exc:
        compile_schema(PERSON).assert_valid({"name": 5}, context="unit")
    err = exc.value
    assert isinstance(err, AssertionError)
    assert err.schema_id == PERSON["$id"]
    assert {v.keyword for v in err.violations} == {"required", "type"}
    text = str(err)
    assert "(unit)" in text
    assert "[required]" in text and "[type] /name" in text
    assert err.to_dict()["details"]["violations"]


def test_assert_valid_passes_silently():
    assert compile_schema(PERSON).assert_valid(
        {"name": "Ada", "id": "0f8fad5b-d9cb-469f-a165-70867728950e"},
    ) is None
