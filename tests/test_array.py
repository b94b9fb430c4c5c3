"""Unit tests for the array schema."""

import pytest

from schemakit import any as any_schema
from schemakit import array, number, object, ref, string
from schemakit.types import UNDEFINED
from schemakit.utils import SchemaDefinitionError


def error_types(result):
    return [detail.type for detail in result.error.details] if result.error else []


class TestBase:
    """Test the base type check and conversion."""

    def test_lists(self):
        """Should accept lists and copy tuples into lists."""
        assert array().validate([1, "a"]).value == [1, "a"]
        assert array().validate((1, 2)).value == [1, 2]

    @pytest.mark.parametrize("value", [1, "abc", {}, None])
    def test_rejects_other_types(self, value):
        """Should reject values that are not lists."""
        assert error_types(array().validate(value)) == ["array.base"]

    def test_json_string(self):
        """Should parse JSON arrays when converting."""
        assert array().items(number()).validate("[1, 2]").value == [1, 2]
        assert error_types(array().validate("[1, 2]", {"convert": False})) == ["array.base"]

    def test_sparse(self):
        """Should reject missing elements unless sparse."""
        assert error_types(array().validate([1, UNDEFINED])) == ["array.sparse"]
        assert array().sparse().validate([1, UNDEFINED]).error is None


class TestItems:
    """Test items()."""

    def test_converts_items(self):
        """Should keep converted elements."""
        assert array().items(number()).validate(["1", 2]).value == [1, 2]

    def test_single_inclusion_error(self):
        """Should report the element error for a single item schema."""
        error = array().items(number()).validate([1, "x"]).error
        detail = error.details[0]
        assert detail.type == "number.base"
        assert detail.path == [1]
        assert error.message == '"value" at position 1 fails because ["1" must be a number]'

    def test_multiple_inclusions(self):
        """Should report elements matching none of the schemas."""
        schema = array().items(number(), string())
        assert schema.validate([1, "a"]).error is None
        error = schema.validate([True]).error
        assert error.details[0].type == "array.includes"
        assert error.details[0].context["pos"] == 0
        assert error.message == '"value" at position 0 does not match any of the allowed types'

    def test_required_items(self):
        """Should report required schemas matched by no element."""
        schema = array().items(string().required(), number())
        assert schema.validate(["a", 1]).error is None
        error = schema.validate([1]).error
        assert error.details[0].type == "array.includesRequiredUnknowns"
        assert error.details[0].context["unknownMisses"] == 1

    def test_required_labelled_items(self):
        """Should name labelled required schemas."""
        schema = array().items(string().label("name").required(), number().required())
        error = schema.validate([]).error
        assert error.details[0].type == "array.includesRequiredBoth"
        assert error.details[0].context["knownMisses"] == ["name"]
        assert error.details[0].context["unknownMisses"] == 1

    def test_forbidden_items(self):
        """Should reject elements matching a forbidden schema."""
        schema = array().items(number().forbidden())
        assert schema.validate(["a"]).error is None
        error = schema.validate(["a", 1]).error
        assert error.details[0].type == "array.excludes"
        assert error.details[0].context["pos"] == 1

    def test_strip_items(self):
        """Should remove elements matched by a stripped schema."""
        schema = array().items(string().strip(), number())
        assert schema.validate(["a", 1, "b", 2]).value == [1, 2]

    def test_strip_unknown_arrays(self):
        """Should drop elements that match nothing."""
        schema = array().items(number())
        result = schema.validate([1, "x", 2], {"strip_unknown": {"arrays": True}})
        assert result.error is None
        assert result.value == [1, 2]

    def test_collects_all_errors(self):
        """Should report every failing element when abort_early is off."""
        result = array().items(number()).validate(["x", 1, "y"], {"abort_early": False})
        assert [detail.path for detail in result.error.details] == [[0], [2]]

    def test_nested_paths(self):
        """Should report paths through objects and arrays."""
        schema = object({"list": array().items(object({"id": number()}))})
        error = schema.validate({"list": [{"id": 1}, {"id": "x"}]}).error
        assert error.details[0].path == ["list", 1, "id"]


class TestOrdered:
    """Test ordered()."""

    def test_positions(self):
        """Should match elements by position."""
        schema = array().ordered(string().required(), number())
        assert schema.validate(["a", "2"]).value == ["a", 2]

    def test_position_error(self):
        """Should report the failing position."""
        error = array().ordered(string(), number()).validate([1]).error
        assert error.details[0].type == "string.base"
        assert error.details[0].path == [0]

    def test_too_many(self):
        """Should reject extra elements when no items() were declared."""
        error = array().ordered(string(), number()).validate(["a", 1, 2]).error
        assert error.details[0].type == "array.orderedLength"
        assert error.details[0].context["limit"] == 2

    def test_extra_elements_with_items(self):
        """Should match extra elements against items()."""
        schema = array().ordered(string()).items(number())
        assert schema.validate(["a", 1, 2]).error is None

    def test_missing_required(self):
        """Should report required positions that were not reached."""
        schema = array().ordered(string(), number().required())
        assert error_types(schema.validate(["a"])) == ["array.includesRequiredUnknowns"]


class TestUnique:
    """Test unique()."""

    def test_primitives(self):
        """Should report the duplicate and its first position."""
        error = array().items(number()).unique().validate([1, 2, 2]).error
        detail = error.details[0]
        assert detail.type == "array.unique"
        assert detail.context["pos"] == 2
        assert detail.context["dupePos"] == 1
        assert detail.context["dupeValue"] == 2
        assert detail.path == [2]

    def test_distinguishes_types(self):
        """Should not treat 1 and "1" or 1 and True as duplicates."""
        assert array().unique().validate([1, "1", True]).error is None

    def test_objects(self):
        """Should compare dicts by value."""
        assert error_types(array().unique().validate([{"a": 1}, {"a": 1}])) == ["array.unique"]
        assert array().unique().validate([{"a": 1}, {"a": 2}]).error is None

    def test_path(self):
        """Should compare the value found at a path."""
        error = array().unique("id").validate([{"id": 1, "x": 1}, {"id": 1, "x": 2}]).error
        assert error.details[0].context["path"] == "id"

    def test_comparator(self):
        """Should use a custom comparator."""
        schema = array().unique(lambda a, b: a.lower() == b.lower())
        assert error_types(schema.validate(["A", "a"])) == ["array.unique"]
        assert schema.validate(["A", "b"]).error is None

    def test_invalid_comparator(self):
        """Should refuse comparators that are not functions or paths."""
        with pytest.raises(SchemaDefinitionError):
            array().unique(5)


class TestSingle:
    """Test single()."""

    def test_wraps_value(self):
        """Should wrap a non-list value."""
        schema = array().items(number()).single()
        assert schema.validate(5).value == [5]
        assert schema.validate("5").value == [5]

    def test_without_convert(self):
        """Should not wrap when not converting."""
        assert error_types(array().single().validate(5, {"convert": False})) == ["array.base"]

    def test_single_error(self):
        """Should report the element error for a wrapped value."""
        result = array().items(number()).single().validate("x")
        assert error_types(result) == ["number.base"]

    def test_retry_as_single_element(self):
        """Should retry a failing list as a single element."""
        schema = array().items(array().items(number())).single()
        assert schema.validate([1, 2]).value == [[1, 2]]


class TestLimits:
    """Test min, max and length."""

    def test_limits(self):
        """Should count elements."""
        assert error_types(array().min(2).validate([1])) == ["array.min"]
        assert error_types(array().max(1).validate([1, 2])) == ["array.max"]
        assert array().length(2).validate([1, 2]).error is None

    def test_reference(self):
        """Should read the limit from a sibling."""
        schema = object({"n": number(), "list": array().max(ref("n"))})
        error = schema.validate({"n": 1, "list": [1, 2]}).error
        assert error.details[0].type == "array.max"
        assert error.details[0].context["limit"] == 1

    def test_reference_validated_after_sibling(self):
        """Should convert the referenced sibling before checking the limit."""
        schema = object({"list": array().max(ref("n")), "n": number()})
        assert list(schema.describe()["children"]) == ["n", "list"]
        assert error_types(schema.validate({"list": [1, 2], "n": "1"})) == ["array.max"]
        assert schema.validate({"list": [1, 2], "n": "2"}).error is None

    def test_reference_not_an_integer(self):
        """Should report references that are not integers."""
        schema = object({"n": any_schema(), "list": array().max(ref("n"))})
        assert error_types(schema.validate({"n": "x", "list": [1]})) == ["array.ref"]

    def test_invalid_limit(self):
        """Should refuse negative limits."""
        with pytest.raises(SchemaDefinitionError):
            array().min(-1)


class TestDescribe:
    """Test describe() output."""

    def test_items(self):
        """Should describe items and ordered items."""
        description = array().ordered(string()).items(number()).describe()
        assert description["type"] == "array"
        assert [item["type"] for item in description["items"]] == ["number"]
        assert [item["type"] for item in description["ordered_items"]] == ["string"]
