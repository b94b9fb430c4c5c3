"""Core type definitions for the schemakit validation engine.

This module defines the fundamental types shared by every schema kind:
- UNDEFINED: the "absent value" marker (distinct from ``None``, which is null)
- Presence: how a schema treats absent values
- Flags: the per-schema switches (presence, defaults, type-specific toggles)
- State: the position of the value currently being validated
- Outcome: what a single schema node hands back to its caller

These types form the contract between schema nodes during the recursive
validation walk.
"""

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple


class _Undefined:
    """Marker for a value that is not present at all.

    ``None`` is a legitimate value (JSON null) and can be allowed, denied or
    defaulted like any other; ``UNDEFINED`` is what a missing dictionary key
    or an omitted argument looks like to the engine.
    """

    _instance: Optional["_Undefined"] = None

    def __new__(cls) -> "_Undefined":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "undefined"

    def __copy__(self) -> "_Undefined":
        return self

    def __deepcopy__(self, memo: Dict[int, Any]) -> "_Undefined":
        return self

    def __reduce__(self) -> str:
        return "UNDEFINED"


UNDEFINED = _Undefined()


class _NotSet:
    """Marker for a flag that was never assigned."""

    def __repr__(self) -> str:
        return "<not set>"

    def __copy__(self) -> "_NotSet":
        return self

    def __deepcopy__(self, memo: Dict[int, Any]) -> "_NotSet":
        return self


NOT_SET = _NotSet()


class Presence(str, Enum):
    """Presence requirement for a schema node.

    ``ignore`` skips the presence short-circuit entirely so the node's own
    base logic decides (used by conditional ``when`` wrappers).
    """
    OPTIONAL = "optional"
    REQUIRED = "required"
    FORBIDDEN = "forbidden"
    IGNORE = "ignore"


@dataclass
class Flags:
    """Named switches carried by a schema node.

    ``None`` means "not set" for every field except ``default``, which uses
    ``NOT_SET`` so that ``None`` and ``UNDEFINED`` can both be configured as
    defaults. ``extra`` holds flags introduced by extensions.

    Examples:
        >>> flags = Flags(presence="required")
        >>> dict(flags.items())
        {'presence': 'required'}
    """
    presence: Optional[Presence] = None
    allow_only: Optional[bool] = None
    allow_unknown: Optional[bool] = None
    default: Any = NOT_SET
    empty: Any = None
    label: Optional[str] = None
    error: Any = None
    raw: Optional[bool] = None
    strip: Optional[bool] = None
    func: Optional[bool] = None
    lazy: Any = None
    insensitive: Optional[bool] = None
    encoding: Optional[str] = None
    normalize: Optional[str] = None
    case: Optional[str] = None
    trim: Optional[bool] = None
    truncate: Optional[bool] = None
    byte_aligned: Optional[bool] = None
    precision: Optional[int] = None
    single: Optional[bool] = None
    sparse: Optional[bool] = None
    format: Any = None
    timestamp: Optional[str] = None
    multiplier: Optional[int] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def is_set(self, name: str) -> bool:
        """Whether the flag ``name`` carries a value."""
        if name == "default":
            return self.default is not NOT_SET
        if hasattr(self, name) and name != "extra":
            return getattr(self, name) is not None
        return name in self.extra

    def copy(self) -> "Flags":
        return replace(self, extra=dict(self.extra))

    def merge(self, other: "Flags") -> "Flags":
        """Return a copy of ``self`` overridden by every flag set on ``other``."""
        merged = self.copy()
        for name, value in other.items():
            if name in merged.extra or not hasattr(merged, name):
                merged.extra[name] = value
            else:
                setattr(merged, name, value)
        return merged

    def items(self) -> Iterator[Tuple[str, Any]]:
        """Yield ``(name, value)`` for every set flag, in declaration order."""
        for f in fields(self):
            if f.name == "extra":
                continue
            if self.is_set(f.name):
                value = getattr(self, f.name)
                yield f.name, value.value if isinstance(value, Enum) else value
        yield from self.extra.items()


@dataclass(frozen=True)
class State:
    """Position of the value being validated within the input tree.

    Attributes:
        key: Property name or list index of the current value ('' at the root)
        path: Ordered keys from the root to the current value
        parent: The enclosing dict or list (None at the root)
        reference: Override root for reference resolution (used by
            alternatives conditions and object assertions)
    """
    key: Any = ""
    path: List[Any] = field(default_factory=list)
    parent: Any = None
    reference: Any = None

    @property
    def ref_root(self) -> Any:
        """The object references are resolved against."""
        return self.reference if self.reference is not None else self.parent

    def child(self, key: Any, parent: Any) -> "State":
        return State(key=key, path=self.path + [key], parent=parent, reference=self.reference)


@dataclass
class Outcome:
    """Result of running one schema node (or one of its stages).

    Attributes:
        value: The value visible to the caller (``UNDEFINED`` when stripped)
        errors: Accumulated error items, or None when the value passed
        final_value: The real value even when ``strip`` hid it from ``value``
    """
    value: Any = UNDEFINED
    errors: Optional[List[Any]] = None
    final_value: Any = UNDEFINED


__all__ = [
    "UNDEFINED",
    "NOT_SET",
    "Presence",
    "Flags",
    "State",
    "Outcome",
]
