"""Unit tests for alternatives and conditional schemas."""

import pytest

from schemakit import alternatives, any as any_schema, boolean, number, object, ref, string, when
from schemakit.utils import SchemaDefinitionError


def error_types(result):
    return [detail.type for detail in result.error.details] if result.error else []


class TestTry:
    """Test alternatives().try_()."""

    def test_first_match_wins(self):
        """Should return the value produced by the first matching schema."""
        schema = alternatives().try_(number(), string())
        assert schema.validate("3").value == 3
        assert schema.validate("x").value == "x"

    def test_factory_arguments(self):
        """Should accept schemas passed to the factory."""
        assert alternatives(number(), string()).validate("x").error is None

    def test_literal_alternatives(self):
        """Should cast literals to allowed values."""
        schema = alternatives().try_("a", "b")
        assert schema.validate("b").error is None
        assert schema.validate("c").error is not None

    def test_all_errors_reported(self):
        """Should report every failed alternative."""
        result = alternatives().try_(number(), string()).validate(True)
        assert error_types(result) == ["number.base", "string.base"]
        assert result.error.message == '"value" must be a number, "value" must be a string'

    def test_no_alternatives(self):
        """Should fail when nothing was declared."""
        result = alternatives().validate(1)
        assert error_types(result) == ["alternatives.base"]
        assert result.error.message == '"value" not matching any of the allowed alternatives'

    def test_requires_a_schema(self):
        """Should refuse an empty try_()."""
        with pytest.raises(SchemaDefinitionError):
            alternatives().try_()

    def test_object_literal_as_key(self):
        """Should accept a list literal as alternatives for a key."""
        schema = object({"token": [string(), number()]})
        assert schema.validate({"token": 5}).error is None
        assert error_types(schema.validate({"token": True})) == ["string.base", "number.base"]


class TestWhen:
    """Test conditional branches."""

    def test_reference_condition(self):
        """Should select the branch from a sibling value."""
        schema = object(
            {
                "kind": string(),
                "val": alternatives().when("kind", {"is": "num", "then": number(), "otherwise": string()}),
            }
        )
        assert schema.validate({"kind": "num", "val": 5}).error is None
        result = schema.validate({"kind": "num", "val": "x"})
        assert error_types(result) == ["number.base"]
        assert result.error.details[0].path == ["val"]
        assert error_types(schema.validate({"kind": "str", "val": 5})) == ["string.base"]

    def test_literal_condition_does_not_match_missing(self):
        """Should use the otherwise branch when the reference is missing."""
        schema = object(
            {
                "kind": string().allow(None),
                "val": alternatives().when("kind", {"is": None, "then": number(), "otherwise": string()}),
            }
        )
        assert error_types(schema.validate({"val": 5})) == ["string.base"]
        assert schema.validate({"kind": None, "val": 5}).error is None

    def test_schema_condition(self):
        """Should test the value itself against a schema condition."""
        schema = alternatives().when(number().min(10), {"then": number().max(20), "otherwise": string()})
        assert schema.validate(15).error is None
        assert error_types(schema.validate(25)) == ["number.max"]
        assert error_types(schema.validate(5)) == ["string.base"]
        assert schema.validate("x").error is None

    def test_keyword_options(self):
        """Should accept is_/then/otherwise as keywords."""
        schema = object({"a": boolean(), "b": number().when("a", is_=True, then=number().min(10))})
        assert error_types(schema.validate({"a": True, "b": 5})) == ["number.min"]
        assert schema.validate({"a": False, "b": 5}).error is None

    def test_base_rules_still_apply(self):
        """Should concatenate the branch onto the schema it was chained from."""
        schema = object({"a": boolean(), "b": number().max(100).when("a", {"is": True, "then": number().min(10)})})
        assert error_types(schema.validate({"a": True, "b": 500})) == ["number.max"]
        assert error_types(schema.validate({"a": False, "b": "x"})) == ["number.base"]
        assert schema.validate({"a": False, "b": "7"}).value == {"a": False, "b": 7}

    def test_chained_when(self):
        """Should try each branch in order."""
        schema = object(
            {
                "kind": string(),
                "val": alternatives()
                .when("kind", {"is": "num", "then": number()})
                .when("kind", {"is": "bool", "then": boolean()}),
            }
        )
        assert schema.validate({"kind": "bool", "val": "true"}).value == {"kind": "bool", "val": True}
        assert error_types(schema.validate({"kind": "bool", "val": 5})) == ["boolean.base"]

    def test_context_condition(self):
        """Should resolve context references."""
        schema = alternatives().when(ref("$strict"), {"is": True, "then": number().strict(), "otherwise": number()})
        assert schema.validate("5", {"context": {"strict": False}}).value == 5
        assert error_types(schema.validate("5", {"context": {"strict": True}})) == ["number.base"]

    def test_top_level_when(self):
        """Should build conditions from the module-level helper."""
        schema = object({"a": any_schema(), "b": when("a", {"is": 1, "then": any_schema().required()})})
        assert error_types(schema.validate({"a": 1})) == ["any.required"]
        assert schema.validate({"a": 2}).error is None

    def test_missing_then_and_otherwise(self):
        """Should require a branch."""
        with pytest.raises(SchemaDefinitionError, match="then"):
            alternatives().when("a", {"is": 1})

    def test_missing_is(self):
        """Should require "is" for a reference condition."""
        with pytest.raises(SchemaDefinitionError, match='Missing "is" directive'):
            alternatives().when("a", {"then": number()})

    def test_is_with_schema_condition(self):
        """Should refuse "is" with a schema condition."""
        with pytest.raises(SchemaDefinitionError):
            alternatives().when(number(), {"is": 1, "then": number()})

    def test_invalid_condition(self):
        """Should refuse conditions that are not references or schemas."""
        with pytest.raises(SchemaDefinitionError, match="Invalid condition"):
            alternatives().when(5, {"is": 1, "then": number()})


class TestDescribe:
    """Test describe() output."""

    def test_try(self):
        """Should describe each alternative."""
        description = alternatives().try_(number(), string()).describe()
        assert description["type"] == "alternatives"
        assert [item["type"] for item in description["alternatives"]] == ["number", "string"]

    def test_when(self):
        """Should describe conditions and branches."""
        description = alternatives().when("kind", {"is": "num", "then": number()}).describe()
        condition = description["alternatives"][0]
        assert condition["ref"] == "ref:kind"
        assert condition["then"]["type"] == "number"
        assert "otherwise" not in condition
        assert condition["is"]["flags"]["presence"] == "required"
