"""Unit tests for validation options."""

from types import MappingProxyType

import pytest

from schemakit import number, ref
from schemakit.settings import DEFAULT_OPTIONS, check_options, concat_settings
from schemakit.utils import SchemaDefinitionError


class TestCheckOptions:
    """Test option checking."""

    def test_accepts_known_options(self):
        """Should accept every documented option."""
        check_options({
            "abort_early": False,
            "convert": True,
            "allow_unknown": True,
            "skip_functions": True,
            "strip_unknown": {"arrays": True},
            "language": {"any": {"required": "needed"}},
            "presence": "required",
            "context": {"a": 1},
            "no_defaults": True,
            "escape_html": True,
            "raw": True,
            "strip": False,
        })

    def test_context_may_be_any_container(self):
        """Should accept mappings and lists as the context root."""
        check_options({"context": MappingProxyType({"a": 1})})
        check_options({"context": [1, 2]})

    def test_rejects_scalar_context(self):
        """Should reject a context that references cannot walk into."""
        with pytest.raises(SchemaDefinitionError, match="context"):
            check_options({"context": "a"})

    def test_list_context_resolves_references(self):
        """Should resolve context references through a list root."""
        schema = number().max(ref("$0"))
        assert schema.validate(3, {"context": [5]}).error is None
        assert schema.validate(6, {"context": [5]}).error.details[0].type == "number.max"

    def test_rejects_unknown_option(self):
        """Should reject a misspelled option."""
        with pytest.raises(SchemaDefinitionError, match="abortEarly"):
            check_options({"abortEarly": False})

    def test_rejects_wrong_type(self):
        """Should reject an option of the wrong type."""
        with pytest.raises(SchemaDefinitionError, match="convert"):
            check_options({"convert": "yes"})

    def test_rejects_unknown_presence(self):
        """Should reject a presence outside the allowed values."""
        with pytest.raises(SchemaDefinitionError):
            check_options({"presence": "sometimes"})

    def test_rejects_empty_strip_unknown_object(self):
        """Should require arrays or objects in the strip_unknown object."""
        with pytest.raises(SchemaDefinitionError):
            check_options({"strip_unknown": {}})


class TestConcatSettings:
    """Test layering of option sets."""

    def test_source_wins(self):
        """Should let later layers replace plain keys."""
        merged = concat_settings(DEFAULT_OPTIONS, {"convert": False})
        assert merged["convert"] is False
        assert merged["abort_early"] is True

    def test_language_is_deep_merged(self):
        """Should merge language catalogs instead of replacing them."""
        merged = concat_settings(
            {"language": {"any": {"required": "a"}}},
            {"language": {"any": {"invalid": "b"}}},
        )
        assert merged["language"] == {"any": {"required": "a", "invalid": "b"}}

    def test_empty_source_copies_target(self):
        """Should return a copy of the target when there is nothing to add."""
        target = {"convert": True}
        merged = concat_settings(target, None)
        assert merged == target
        assert merged is not target

    def test_no_layers(self):
        """Should return None when both layers are missing."""
        assert concat_settings(None, None) is None

    def test_defaults_are_not_modified(self):
        """Should leave DEFAULT_OPTIONS untouched."""
        concat_settings(DEFAULT_OPTIONS, {"presence": "required"})
        assert DEFAULT_OPTIONS["presence"] == "optional"
