"""Unit tests for references.

Tests cover:
- Sibling and context resolution
- Custom separators and context prefixes
- Defaults and strict lookups
- Dependency root tracking
"""

import pytest

from schemakit.reference import Reference, create, is_ref, push
from schemakit.types import UNDEFINED
from schemakit.utils import SchemaDefinitionError


class TestResolution:
    """Test resolving references against values and context."""

    def test_resolves_sibling_path(self):
        """Should read a nested key from the parent object."""
        ref = create("a.b")
        assert ref({"a": {"b": 5}}, {}) == 5

    def test_resolves_context_path(self):
        """Should read from the context option when prefixed with $."""
        ref = create("$user.id")
        assert ref.is_context is True
        assert ref({"user": {"id": 1}}, {"context": {"user": {"id": 7}}}) == 7

    def test_missing_key_returns_undefined(self):
        """Should return UNDEFINED for a path that does not exist."""
        assert create("a.b")({"a": 1}, {}) is UNDEFINED

    def test_missing_key_returns_configured_default(self):
        """Should return the default option for a missing path."""
        ref = create("missing", default=3)
        assert ref({}, {}) == 3

    def test_strict_lookup_raises_on_intermediate_segment(self):
        """Should raise when an intermediate segment is missing in strict mode."""
        ref = create("a.b.c", strict=True)
        with pytest.raises(SchemaDefinitionError):
            ref({"a": {}}, {})

    def test_custom_separator(self):
        """Should split the key on a custom separator."""
        ref = create("a/b", separator="/")
        assert ref.path == ["a", "b"]
        assert ref({"a": {"b": "x"}}, {}) == "x"

    def test_custom_context_prefix(self):
        """Should honor a custom context prefix."""
        ref = create("#x", context_prefix="#")
        assert ref.is_context is True
        assert ref(None, {"context": {"x": 2}}) == 2

    def test_array_index_segments(self):
        """Should read list items by index."""
        assert create("a.1")({"a": [10, 20]}, {}) == 20


class TestReferenceMetadata:
    """Test reference attributes and rendering."""

    def test_path_depth_and_root(self):
        """Should expose path segments, depth and root."""
        ref = Reference("a.b.c")
        assert ref.path == ["a", "b", "c"]
        assert ref.depth == 3
        assert ref.root == "a"

    def test_string_rendering(self):
        """Should render as ref:key or context:key."""
        assert str(create("a.b")) == "ref:a.b"
        assert str(create("$a.b")) == "context:a.b"

    def test_is_ref(self):
        """Should recognise only Reference instances."""
        assert is_ref(create("a")) is True
        assert is_ref("a") is False

    def test_invalid_key_raises(self):
        """Should reject non-string keys."""
        with pytest.raises(SchemaDefinitionError):
            Reference(5)

    def test_push_records_sibling_roots_only(self):
        """Should record the root of sibling references, not context ones."""
        refs = []
        push(refs, create("a.b"))
        push(refs, create("$c"))
        push(refs, "plain")
        assert refs == ["a"]
