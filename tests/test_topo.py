"""Unit tests for dependency-aware ordering."""

import pytest

from schemakit.topo import Topo
from schemakit.utils import SchemaDefinitionError


class TestTopo:
    """Test ordering of grouped items."""

    def test_keeps_insertion_order_without_constraints(self):
        """Should keep items in the order they were added."""
        topo = Topo()
        topo.add("a", group="a")
        topo.add("b", group="b")
        assert topo.nodes == ["a", "b"]

    def test_after_constraint(self):
        """Should move an item after the group it depends on."""
        topo = Topo()
        topo.add("b", after="a", group="b")
        topo.add("a", group="a")
        assert topo.nodes == ["a", "b"]

    def test_before_constraint(self):
        """Should move an item before the group it precedes."""
        topo = Topo()
        topo.add("x", group="x")
        topo.add("y", before="x", group="y")
        assert topo.nodes == ["y", "x"]

    def test_list_of_nodes(self):
        """Should add every node of a list to the same group."""
        topo = Topo()
        topo.add(["a", "b"], group="g")
        assert topo.nodes == ["a", "b"]

    def test_cycle_raises(self):
        """Should reject dependencies that cannot be satisfied."""
        topo = Topo()
        topo.add("a", after="b", group="a")
        with pytest.raises(SchemaDefinitionError, match="dependencies error"):
            topo.add("b", after="a", group="b")

    def test_self_reference_raises(self):
        """Should reject an item that must come after itself."""
        with pytest.raises(SchemaDefinitionError):
            Topo().add("a", after="a", group="a")

    def test_merge(self):
        """Should combine items of several instances."""
        first = Topo()
        first.add("a", group="a")
        second = Topo()
        second.add("b", group="b")
        first.merge([second, None])
        assert first.nodes == ["a", "b"]
