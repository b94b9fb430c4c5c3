"""Dependency-aware ordering of grouped items.

Object schemas use this to validate a key after every sibling key it
references, so that defaults and conversions of the referenced keys are
visible when the dependent key is checked.
"""

from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from schemakit.utils import assert_that


@dataclass
class _Item:
    seq: int
    sort: int
    before: List[str]
    after: List[str]
    group: str
    node: Any = None


def _as_list(value: Union[None, str, Sequence[str]]) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return list(value)


class Topo:
    """Keeps ``nodes`` sorted so every item follows the groups it must come after.

    Examples:
        >>> topo = Topo()
        >>> topo.add("b", after="a", group="b")
        ['b']
        >>> topo.add("a", group="a")
        ['a', 'b']
    """

    def __init__(self) -> None:
        self._items: List[_Item] = []
        self.nodes: List[Any] = []

    def add(
        self,
        nodes: Any,
        before: Union[None, str, Sequence[str]] = None,
        after: Union[None, str, Sequence[str]] = None,
        group: Optional[str] = None,
        sort: int = 0,
    ) -> List[Any]:
        """Insert one node (or a list of nodes) and re-sort everything."""
        before_groups = _as_list(before)
        after_groups = _as_list(after)
        group = "?" if group is None else group

        assert_that(group not in before_groups, "Item cannot come before itself:", group)
        assert_that("?" not in before_groups, "Item cannot come before unassociated items")
        assert_that(group not in after_groups, "Item cannot come after itself:", group)
        assert_that("?" not in after_groups, "Item cannot come after unassociated items")

        for node in nodes if isinstance(nodes, list) else [nodes]:
            self._items.append(
                _Item(
                    seq=len(self._items),
                    sort=sort,
                    before=before_groups,
                    after=after_groups,
                    group=group,
                    node=node,
                )
            )

        valid = self._sort()
        assert_that(
            valid,
            "item",
            f"added into group {group}" if group != "?" else "",
            "created a dependencies error",
        )
        return self.nodes

    def merge(self, others: Union["Topo", Iterable[Optional["Topo"]]]) -> List[Any]:
        """Absorb the items of other instances, ordered by their ``sort`` value."""
        if isinstance(others, Topo):
            others = [others]
        for other in others:
            if other is None:
                continue
            self._items.extend(replace(item) for item in other._items)

        self._items.sort(key=lambda item: item.sort)
        for position, item in enumerate(self._items):
            item.seq = position

        assert_that(self._sort(), "merge created a dependencies error")
        return self.nodes

    def _sort(self) -> bool:
        graph: Dict[int, List[Any]] = {}
        graph_afters: Dict[str, List[int]] = {}
        groups: Dict[str, List[int]] = {}

        for item in self._items:
            groups.setdefault(item.group, []).append(item.seq)
            graph[item.seq] = list(item.before)
            for name in item.after:
                graph_afters.setdefault(name, []).append(item.seq)

        # Expand "before" groups into the sequence numbers they contain
        for node in list(graph):
            expanded: List[int] = []
            for name in graph[node]:
                expanded.extend(groups.setdefault(name, []))
            graph[node] = expanded

        for name, followers in graph_afters.items():
            for node in groups.get(name, []):
                graph[node] = graph[node] + followers

        ancestors: Dict[int, List[int]] = {}
        for node, children in graph.items():
            for child in children:
                ancestors.setdefault(child, []).append(node)

        visited: Dict[int, bool] = {}
        ordered: List[int] = []
        count = len(self._items)

        for position in range(count):
            candidate: Optional[int] = position
            if position in ancestors:
                candidate = None
                for seq in range(count):
                    if visited.get(seq):
                        continue
                    required = ancestors.setdefault(seq, [])
                    if all(visited.get(ancestor) for ancestor in required):
                        candidate = seq
                        break

            if candidate is not None:
                visited[candidate] = True
                ordered.append(candidate)

        if len(ordered) != count:
            return False

        by_seq = {item.seq: item for item in self._items}
        self._items = [by_seq[seq] for seq in ordered]
        self.nodes = [item.node for item in self._items]
        return True


__all__ = ["Topo"]
