"""Low-level helpers shared by the schemakit engine.

This module consolidates small, dependency-free utilities:
- Programmer-error assertions (SchemaDefinitionError, assert_that)
- Value classification that mirrors the engine's type buckets
- Path lookup (reach), structural clone and deep equality
- Argument flattening, dict merging and callable introspection
"""

import copy
import inspect
import math
from collections.abc import Mapping
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from schemakit.types import UNDEFINED


class SchemaDefinitionError(ValueError):
    """Raised when a schema is built or used incorrectly.

    These are programmer errors (bad builder arguments, cyclic key
    dependencies, misused lazy schemas), not validation failures, and are
    never collected into a validation result.
    """


def assert_that(condition: Any, *message: Any) -> None:
    """Raise SchemaDefinitionError built from ``message`` unless ``condition`` holds."""
    if condition:
        return
    parts = [part if isinstance(part, str) else repr(part) for part in message if part != ""]
    raise SchemaDefinitionError(" ".join(parts) or "Unknown error")


# --------------------------------------------------------------------------- #
# Classification                                                              #
# --------------------------------------------------------------------------- #

def type_bucket(value: Any) -> str:
    """Classify ``value`` into the engine's equality buckets.

    ``bool`` is kept apart from numbers, and ``None`` lands in the object
    bucket the way JSON null does.
    """
    if value is UNDEFINED:
        return "undefined"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if callable(value) and not isinstance(value, Mapping):
        return "function"
    return "object"


def is_nan(value: Any) -> bool:
    return isinstance(value, float) and math.isnan(value)


def is_number(value: Any) -> bool:
    """A real number that is not a bool and not NaN."""
    return isinstance(value, (int, float)) and not isinstance(value, bool) and not is_nan(value)


def is_safe_integer(value: Any) -> bool:
    if not is_number(value) or math.isinf(value):
        return False
    if isinstance(value, float) and not value.is_integer():
        return False
    return abs(value) <= 2 ** 53 - 1


def is_array(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def same_value(a: Any, b: Any) -> bool:
    """Strict equality: identical objects, or equal primitives of the same bucket."""
    if a is b:
        return True
    bucket = type_bucket(a)
    if bucket != type_bucket(b):
        return False
    if bucket in ("number", "string", "boolean"):
        return a == b
    return False


def to_millis(value: datetime) -> float:
    """Milliseconds since the epoch; naive datetimes are read as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp() * 1000


# --------------------------------------------------------------------------- #
# Reach / clone / equality                                                    #
# --------------------------------------------------------------------------- #

def _lookup(ref: Any, key: Any, functions: bool) -> "tuple[bool, Any]":
    if isinstance(ref, Mapping):
        if key in ref:
            return True, ref[key]
        return False, None
    if is_array(ref):
        if isinstance(key, str):
            if key.startswith("-") and key[1:].isdigit():
                key = len(ref) - int(key[1:])
            elif key.isdigit():
                key = int(key)
        if isinstance(key, int) and not isinstance(key, bool) and 0 <= key < len(ref):
            return True, ref[key]
        return False, None
    if functions and callable(ref) and isinstance(key, str):
        attributes = getattr(ref, "__dict__", {})
        if key in attributes:
            return True, attributes[key]
    return False, None


def reach(
    obj: Any,
    chain: Any,
    separator: str = ".",
    default: Any = UNDEFINED,
    strict: bool = False,
    functions: bool = True,
) -> Any:
    """Follow ``chain`` (dotted string or list of keys) into ``obj``.

    List segments accept integer strings and ``-n`` for counting from the
    end. A missing segment yields ``default`` unless ``strict`` asks for an
    error on an intermediate segment.

    Examples:
        >>> reach({"a": {"b": [1, 2, 3]}}, "a.b.-1")
        3
        >>> reach({"a": 1}, "a.b")
        undefined
    """
    if chain is None or chain is False:
        return obj

    path = chain.split(separator) if isinstance(chain, str) else list(chain)
    ref = obj
    for index, key in enumerate(path):
        found, value = _lookup(ref, key, functions)
        if not found:
            assert_that(not strict or index + 1 == len(path), "Missing segment", key, "in reach path", chain)
            return default
        ref = value
    return ref


def clone(value: Any) -> Any:
    """Structural copy; schemas and references copy as themselves."""
    return copy.deepcopy(value)


def deep_equal(a: Any, b: Any, _seen: Optional[set] = None) -> bool:
    """Structural equality that keeps bool apart from numbers and NaN equal to itself."""
    if a is b:
        return True
    if is_nan(a) and is_nan(b):
        return True

    bucket = type_bucket(a)
    if bucket != type_bucket(b):
        return False
    if bucket in ("number", "string", "boolean"):
        return a == b
    if a is None or b is None or a is UNDEFINED or b is UNDEFINED:
        return False

    if isinstance(a, datetime) and isinstance(b, datetime):
        return to_millis(a) == to_millis(b)
    if isinstance(a, date) or isinstance(b, date):
        return type(a) is type(b) and a == b
    if isinstance(a, (bytes, bytearray)) and isinstance(b, (bytes, bytearray)):
        return bytes(a) == bytes(b)

    if type(a) is not type(b):
        if not (isinstance(a, Mapping) and isinstance(b, Mapping)):
            return False

    seen = _seen if _seen is not None else set()
    pair = (id(a), id(b))
    if pair in seen:
        return True
    seen.add(pair)

    if isinstance(a, Mapping):
        if set(a.keys()) != set(b.keys()):
            return False
        return all(deep_equal(a[key], b[key], seen) for key in a)

    if isinstance(a, (list, tuple)):
        if len(a) != len(b):
            return False
        return all(deep_equal(x, y, seen) for x, y in zip(a, b))

    return a == b


# --------------------------------------------------------------------------- #
# Collections                                                                 #
# --------------------------------------------------------------------------- #

def flatten(values: Iterable[Any]) -> List[Any]:
    """Flatten nested lists/tuples of builder arguments into one list."""
    result: List[Any] = []
    for value in values:
        if is_array(value):
            result.extend(flatten(value))
        else:
            result.append(value)
    return result


def deep_merge(target: Dict[str, Any], source: Optional[Mapping]) -> Dict[str, Any]:
    """Return a copy of ``target`` with ``source`` merged in, recursing into dicts."""
    merged = dict(target)
    if not source:
        return merged
    for key, value in source.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def unique(values: Sequence[Any]) -> List[Any]:
    result: List[Any] = []
    for value in values:
        if value not in result:
            result.append(value)
    return result


# --------------------------------------------------------------------------- #
# Callables                                                                   #
# --------------------------------------------------------------------------- #

def arity(fn: Callable) -> int:
    """Number of required positional parameters, or -1 when it cannot be read."""
    try:
        signature = inspect.signature(fn)
    except (TypeError, ValueError):
        return -1
    count = 0
    for parameter in signature.parameters.values():
        if parameter.kind not in (parameter.POSITIONAL_ONLY, parameter.POSITIONAL_OR_KEYWORD):
            break
        if parameter.default is not parameter.empty:
            break
        count += 1
    return count


def positional_capacity(fn: Callable) -> int:
    """How many positional arguments ``fn`` accepts (a large number for ``*args``)."""
    try:
        signature = inspect.signature(fn)
    except (TypeError, ValueError):
        return 0
    count = 0
    for parameter in signature.parameters.values():
        if parameter.kind == parameter.VAR_POSITIONAL:
            return 2 ** 31
        if parameter.kind in (parameter.POSITIONAL_ONLY, parameter.POSITIONAL_OR_KEYWORD):
            count += 1
    return count


__all__ = [
    "SchemaDefinitionError",
    "assert_that",
    "type_bucket",
    "is_nan",
    "is_number",
    "is_safe_integer",
    "is_array",
    "same_value",
    "to_millis",
    "reach",
    "clone",
    "deep_equal",
    "flatten",
    "deep_merge",
    "unique",
    "arity",
    "positional_capacity",
]
