"""Ordered allow/deny lists backing ``valid()``, ``allow()`` and ``invalid()``."""

from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from schemakit.reference import is_ref, push
from schemakit.types import UNDEFINED, State
from schemakit.utils import is_array, is_nan, same_value, to_millis, type_bucket


def _identity(value: Any) -> Tuple[str, Any]:
    """Hashable identity of ``value`` under same-value-zero equality."""
    bucket = type_bucket(value)
    if bucket == "number":
        return bucket, "NaN" if is_nan(value) else value
    if bucket in ("string", "boolean", "undefined"):
        return bucket, value
    if value is None:
        return "null", None
    return "object", id(value)


def _extended_check(value: Any, insensitive: Optional[bool]) -> Optional[Callable[[Any], bool]]:
    if isinstance(value, datetime):
        millis = to_millis(value)
        return lambda item: isinstance(item, datetime) and to_millis(item) == millis
    if isinstance(value, (bytes, bytearray)):
        data = bytes(value)
        return lambda item: isinstance(item, (bytes, bytearray)) and bytes(item) == data
    if insensitive and isinstance(value, str):
        lowered = value.lower()
        return lambda item: isinstance(item, str) and item.lower() == lowered
    return None


class ValueSet:
    """Insertion-ordered set with same-value-zero identity and reference support.

    Primitives match by value (``True`` never matches ``1``, NaN matches
    NaN); dicts, lists and other objects match by identity. Datetimes match
    on their instant, bytes on their content, and strings case-insensitively
    when requested. References are resolved against the state being
    validated.

    Examples:
        >>> values = ValueSet().add("a").add(1)
        >>> values.has(1.0, None, None, False)
        True
        >>> values.has(True, None, None, False)
        False
    """

    def __init__(self, items: Iterable[Any] = ()) -> None:
        self._items: List[Any] = []
        self._index: Dict[Tuple[str, Any], int] = {}
        self._has_ref = False
        for item in items:
            self._insert(item)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(self._items)

    def _insert(self, value: Any) -> None:
        identity = _identity(value)
        if identity in self._index:
            return
        self._index[identity] = len(self._items)
        self._items.append(value)
        self._has_ref = self._has_ref or is_ref(value)

    def add(self, value: Any, refs: Optional[List[str]] = None) -> "ValueSet":
        """Insert ``value`` unless an equal value is already present.

        When ``refs`` is given, the root of a sibling reference is recorded in
        it so the owning object can order its keys.
        """
        if not is_ref(value) and self.has(value, None, None, False):
            return self
        if refs is not None:
            push(refs, value)
        self._insert(value)
        return self

    def merge(self, add: "ValueSet", remove: "ValueSet") -> "ValueSet":
        for item in add._items:
            self.add(item)
        for item in remove._items:
            self.remove(item)
        return self

    def remove(self, value: Any) -> "ValueSet":
        identity = _identity(value)
        if identity not in self._index:
            return self
        self._items = [item for item in self._items if _identity(item) != identity]
        self._index = {_identity(item): position for position, item in enumerate(self._items)}
        return self

    def has(self, value: Any, state: Optional[State], options: Optional[Dict[str, Any]], insensitive: Optional[bool]) -> bool:
        if not self._items:
            return False

        if _identity(value) in self._index:
            return True

        check = _extended_check(value, insensitive)
        if check is None:
            if state is not None and self._has_ref:
                for item in self._items:
                    if not is_ref(item):
                        continue
                    resolved = item(state.ref_root, options)
                    if same_value(value, resolved):
                        return True
                    if is_array(resolved) and any(_identity(element) == _identity(value) for element in resolved):
                        return True
            return False

        return self._scan(value, state, options, check)

    def _scan(self, value: Any, state: Optional[State], options: Optional[Dict[str, Any]], check: Callable[[Any], bool]) -> bool:
        check_refs = state is not None and self._has_ref

        def really_equal(item: Any) -> bool:
            return same_value(value, item) or check(item)

        for item in self._items:
            if check_refs and is_ref(item):
                item = item(state.ref_root, options)
                if is_array(item):
                    if any(really_equal(element) for element in item):
                        return True
                    continue

            if really_equal(item):
                return True

        return False

    def values(self, strip_undefined: bool = False) -> List[Any]:
        if strip_undefined:
            return [item for item in self._items if item is not UNDEFINED]
        return list(self._items)

    def slice(self) -> "ValueSet":
        return ValueSet(self._items)

    def concat(self, source: "ValueSet") -> "ValueSet":
        return ValueSet(self._items + source._items)


__all__ = ["ValueSet"]
