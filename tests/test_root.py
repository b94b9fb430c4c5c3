"""Unit tests for the top-level helpers, defaults() and extend()."""

import re

import pytest

import schemakit
from schemakit import (
    UNDEFINED,
    Root,
    SchemaDefinitionError,
    ValidationError,
    any as any_schema,
    array,
    number,
    object,
    ref,
    string,
)
from schemakit.root import default_root
from schemakit.schemas.alternatives import AlternativesSchema
from schemakit.schemas.object import ObjectSchema
from schemakit.schemas.string import StringSchema


def error_types(result):
    return [detail.type for detail in result.error.details] if result.error else []


class TestCompile:
    """Test turning literals into schemas."""

    def test_schema_passes_through(self):
        """Should return schemas unchanged."""
        schema = number()
        assert schemakit.compile(schema) is schema

    def test_literals(self):
        """Should build the matching schema for each literal."""
        assert isinstance(schemakit.compile({"a": number()}), ObjectSchema)
        assert isinstance(schemakit.compile([number(), string()]), AlternativesSchema)
        assert isinstance(schemakit.compile(re.compile("^a")), StringSchema)
        assert schemakit.compile("x").validate("x").error is None
        assert schemakit.compile(5).validate(6).error is not None
        assert schemakit.compile(None).validate(None).error is None

    def test_invalid_literal_reports_path(self):
        """Should name the path of invalid nested content."""
        with pytest.raises(SchemaDefinitionError, match=r"\(a\.b\)"):
            schemakit.compile({"a": {"b": set()}})


class TestValidate:
    """Test the module-level validate()."""

    def test_literal_schema(self):
        """Should compile literal schemas."""
        result = schemakit.validate({"a": "1"}, {"a": number()})
        assert result.value == {"a": 1}

    def test_without_schema(self):
        """Should accept anything without a schema."""
        assert schemakit.validate({"anything": 1}).value == {"anything": 1}

    def test_callback(self):
        """Should call the callback in place of returning a result."""
        assert schemakit.validate("1", number(), lambda error, value: (error, value)) == (None, 1)
        error, value = schemakit.validate("x", number(), {"convert": True}, lambda err, val: (err, val))
        assert error.details[0].type == "number.base"

    def test_options(self):
        """Should pass options through."""
        result = schemakit.validate("1", number(), {"convert": False})
        assert error_types(result) == ["number.base"]

    def test_unknown_option(self):
        """Should refuse unknown options."""
        with pytest.raises(SchemaDefinitionError):
            schemakit.validate(1, number(), {"no_such_option": True})

    def test_describe(self):
        """Should describe literal schemas."""
        description = schemakit.describe({"a": number()})
        assert description["type"] == "object"
        assert description["children"]["a"]["type"] == "number"
        assert schemakit.describe()["type"] == "any"


class TestAttempt:
    """Test attempt() and assert_()."""

    def test_returns_value(self):
        """Should return the validated value."""
        assert schemakit.attempt("12", number()) == 12

    def test_raises_annotated_error(self):
        """Should raise a ValidationError with the annotated input."""
        with pytest.raises(ValidationError) as info:
            schemakit.attempt({"a": "x"}, {"a": number()})
        assert '"a" must be a number' in info.value.message
        assert info.value.details[0].path == ["a"]

    def test_message_prefix(self):
        """Should prefix the message."""
        with pytest.raises(ValidationError) as info:
            schemakit.attempt("x", number(), "Invalid input")
        assert info.value.message == 'Invalid input "value" must be a number'
        assert str(info.value) == 'Invalid input "value" must be a number'

    def test_custom_exception(self):
        """Should raise the given exception instead."""
        with pytest.raises(KeyError):
            schemakit.attempt("x", number(), KeyError("bad"))

    def test_assert(self):
        """Should return None or raise."""
        assert schemakit.assert_(1, number()) is None
        with pytest.raises(ValidationError):
            schemakit.assert_("x", number())


class TestReach:
    """Test reach()."""

    def test_nested(self):
        """Should find nested children by dotted path or list."""
        inner = number()
        schema = object({"a": object({"b": inner})})
        assert schemakit.reach(schema, "a.b") is inner
        assert schemakit.reach(schema, ["a", "b"]) is inner

    def test_missing(self):
        """Should return None for unknown paths."""
        schema = object({"a": number()})
        assert schemakit.reach(schema, "b") is None
        assert schemakit.reach(schema, "a.b") is None
        assert schemakit.reach(object(), "a") is None

    def test_invalid_arguments(self):
        """Should refuse values that are not schemas or paths."""
        with pytest.raises(SchemaDefinitionError, match="you must provide a schema"):
            schemakit.reach({"a": 1}, "a")
        with pytest.raises(SchemaDefinitionError, match="path must be a string"):
            schemakit.reach(object(), 5)


class TestRoot:
    """Test root objects and module-level factories."""

    def test_default_root_is_shared(self):
        """Should reuse the same default root."""
        assert default_root() is default_root()
        assert number()._root is default_root()

    def test_version(self):
        """Should expose the package version."""
        assert Root.version == schemakit.__version__

    def test_unknown_type(self):
        """Should raise AttributeError for unknown types."""
        with pytest.raises(AttributeError):
            Root().nope()

    def test_aliases(self):
        """Should expose shortcut aliases."""
        assert schemakit.bool().validate("true").value is True
        assert schemakit.alt(number(), string()).validate("x").error is None
        assert error_types(schemakit.valid("a").validate("b")) == ["any.allowOnly"]
        assert error_types(schemakit.invalid("a").validate("a")) == ["any.invalid"]
        assert error_types(schemakit.forbidden().validate(1)) == ["any.unknown"]
        assert error_types(schemakit.required().validate(UNDEFINED)) == ["any.required"]

    def test_is_ref(self):
        """Should recognize references."""
        assert schemakit.is_ref(ref("a"))
        assert not schemakit.is_ref("a")


class TestDefaults:
    """Test defaults()."""

    def test_applies_to_new_schemas(self):
        """Should pass every new schema through the function."""
        custom = schemakit.defaults(lambda schema: schema.required())
        error = custom.object({"a": custom.string()}).validate({}).error
        assert error.details[0].type == "any.required"
        assert error.details[0].path == ["a"]

    def test_does_not_change_original(self):
        """Should leave the default root untouched."""
        schemakit.defaults(lambda schema: schema.required())
        assert string().validate(UNDEFINED).error is None

    def test_chained(self):
        """Should apply earlier defaults first."""
        custom = schemakit.defaults(lambda schema: schema.required()).defaults(lambda schema: schema.strict())
        assert error_types(custom.number().validate(UNDEFINED)) == ["any.required"]
        assert error_types(custom.number().validate("1")) == ["number.base"]

    def test_requires_function(self):
        """Should refuse non-callables."""
        with pytest.raises(SchemaDefinitionError, match="Defaults must be a function"):
            schemakit.defaults("nope")

    def test_requires_schema_result(self):
        """Should refuse functions that do not return a schema."""
        with pytest.raises(SchemaDefinitionError, match="defaults\\(\\) must return a schema"):
            schemakit.defaults(lambda schema: None)


def _even(schema, value, state, options):
    if value % 2 == 0:
        return value
    return schema.create_error("even.odd", None, state, options)


def _divisible(schema, params, value, state, options):
    if value % params["by"] == 0:
        return value
    return schema.create_error("even.divisible", {"by": params["by"]}, state, options)


EVEN = {
    "name": "even",
    "base": number().integer().min(0),
    "language": {"odd": "must be an even number", "divisible": "must be divisible by {{by}}"},
    "pre": _even,
    "rules": [
        {"name": "divisible", "params": {"by": number().integer().required()}, "validate": _divisible},
        {
            "name": "at_least",
            "params": {"n": number().required()},
            "setup": lambda schema, params: schema.min(params["n"]),
        },
    ],
}


class TestExtend:
    """Test extend()."""

    def test_new_type(self):
        """Should register a factory for the new type."""
        custom = schemakit.extend(EVEN)
        schema = custom.even()
        assert schema.schema_type == "even"
        assert schema.validate(4).value == 4
        assert schema.validate("4").value == 4

    def test_base_rules_apply(self):
        """Should keep the rules of the base schema."""
        assert error_types(schemakit.extend(EVEN).even().validate(-2)) == ["number.min"]

    def test_pre_hook_and_language(self):
        """Should report hook errors with the extension messages."""
        error = schemakit.extend(EVEN).even().validate(3).error
        assert error.details[0].type == "even.odd"
        assert error.message == '"value" must be an even number'

    def test_rule(self):
        """Should add rules with validated parameters."""
        schema = schemakit.extend(EVEN).even().divisible(4)
        assert schema.validate(8).error is None
        error = schema.validate(6).error
        assert error.details[0].type == "even.divisible"
        assert error.message == '"value" must be divisible by 4'

    def test_rule_keyword_arguments(self):
        """Should accept parameters by name."""
        schema = schemakit.extend(EVEN).even().divisible(by=3)
        assert schema.validate(6).error is None

    def test_rule_parameters_validated(self):
        """Should refuse invalid parameters."""
        custom = schemakit.extend(EVEN)
        with pytest.raises(ValidationError):
            custom.even().divisible("x")
        with pytest.raises(ValidationError):
            custom.even().divisible()
        with pytest.raises(SchemaDefinitionError, match="Unexpected number of arguments"):
            custom.even().divisible(1, 2)

    def test_setup_rule(self):
        """Should let setup return a replacement schema."""
        schema = schemakit.extend(EVEN).even().at_least(10)
        assert error_types(schema.validate(8)) == ["number.min"]
        assert schema.validate(12).error is None

    def test_describe(self):
        """Should describe extension rules."""
        description = schemakit.extend(EVEN).even().divisible(4).describe()
        assert description["type"] == "even"
        assert {"name": "divisible", "arg": {"by": 4}} in description["rules"]

    def test_describe_hook(self):
        """Should post-process descriptions."""
        custom = schemakit.extend(
            {"name": "tagged", "describe": lambda schema, description: {**description, "tagged": True}}
        )
        assert custom.tagged().describe()["tagged"] is True

    def test_coerce(self):
        """Should convert values before presence checks."""
        custom = schemakit.extend(
            {
                "name": "csv",
                "base": array().items(string()),
                "coerce": lambda schema, value, state, options: value.split(",") if isinstance(value, str) else value,
            }
        )
        assert custom.csv().validate("a,b").value == ["a", "b"]
        assert error_types(custom.csv().validate([1])) == ["string.base"]

    def test_function_definition(self):
        """Should call definition functions with the new root."""
        custom = schemakit.extend(lambda root: {"name": "shout", "base": root.string().uppercase()})
        assert custom.shout().validate("hey").value == "HEY"

    def test_override_builtin(self):
        """Should replace a built-in type on the new root only."""
        custom = schemakit.extend({"name": "number", "base": number().integer()})
        assert error_types(custom.number().validate(1.5)) == ["number.integer"]
        assert number().validate(1.5).error is None

    def test_literals_use_extended_root(self):
        """Should keep extensions available to nested schemas."""
        custom = schemakit.extend(EVEN)
        schema = custom.object({"n": custom.even()})
        assert error_types(schema.validate({"n": 3})) == ["even.odd"]

    def test_chained_extensions(self):
        """Should keep earlier extensions on later roots."""
        custom = schemakit.extend(EVEN).extend({"name": "anything"})
        assert custom.even().validate(2).error is None
        assert custom.anything().validate(1).error is None

    def test_original_root_unchanged(self):
        """Should not register types on the original root."""
        schemakit.extend(EVEN)
        with pytest.raises(AttributeError):
            default_root().even()

    def test_unknown_language_code(self):
        """Should explain missing messages."""
        custom = schemakit.extend(
            {
                "name": "mute",
                "pre": lambda schema, value, state, options: schema.create_error("mute.oops", None, state, options),
            }
        )
        assert 'Error code "mute.oops" is not defined' in custom.mute().validate(1).error.message

    @pytest.mark.parametrize(
        "definition",
        [
            {"name": 1},
            {"name": ""},
            {"base": number()},
            {"name": "x", "unexpected": True},
            {"name": "x", "base": "number"},
            {"name": "x", "rules": [{"name": "r"}]},
            {"name": "x", "rules": [{"name": "r", "validate": _divisible, "params": {"by": 5}}]},
        ],
    )
    def test_invalid_definitions(self, definition):
        """Should refuse malformed definitions."""
        with pytest.raises(SchemaDefinitionError, match="Invalid extension"):
            schemakit.extend(definition)

    def test_requires_extensions(self):
        """Should refuse an empty call or non-definitions."""
        with pytest.raises(SchemaDefinitionError, match="at least one extension"):
            schemakit.extend()
        with pytest.raises(SchemaDefinitionError, match="Extension must be an object"):
            schemakit.extend(5)

    def test_any_based_extension(self):
        """Should default to an any() base."""
        custom = schemakit.extend({"name": "thing"})
        assert custom.thing().validate({"x": 1}).value == {"x": 1}
        assert isinstance(custom.thing(), type(any_schema()))
