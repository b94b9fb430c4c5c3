"""References to sibling values or to the validation context.

A reference is a lazy pointer resolved at validation time. ``ref("a.b")``
reads ``b`` inside ``a`` of the object enclosing the value being validated;
``ref("$user.id")`` reads from the ``context`` validation option instead.
"""

from typing import Any, Dict, List, Optional

from schemakit.types import UNDEFINED
from schemakit.utils import assert_that, reach


class Reference:
    """A resolvable pointer into the value graph or the validation context.

    Attributes:
        key: The key without its context prefix (e.g. ``"a.b"``)
        path: ``key`` split on the separator
        depth: Number of path segments
        root: First path segment, used to order dependent object keys
        is_context: Whether the key resolves against ``options["context"]``

    Examples:
        >>> ref = Reference("a.b")
        >>> ref({"a": {"b": 5}}, {})
        5
        >>> str(Reference("$x"))
        'context:x'
    """

    is_schemakit = True

    def __init__(
        self,
        key: str,
        context_prefix: str = "$",
        separator: str = ".",
        default: Any = UNDEFINED,
        strict: bool = False,
        functions: bool = True,
    ) -> None:
        assert_that(isinstance(key, str), "Invalid reference key:", key)
        assert_that(isinstance(context_prefix, str) and context_prefix, "Invalid context prefix:", context_prefix)
        assert_that(isinstance(separator, str) and separator, "Invalid separator:", separator)

        self.is_context = key[:1] == context_prefix
        self.key = key[len(context_prefix):] if self.is_context else key
        self.separator = separator
        self.path: List[str] = self.key.split(separator)
        self.depth = len(self.path)
        self.root = self.path[0]
        self._settings: Dict[str, Any] = {
            "default": default,
            "strict": strict,
            "functions": functions,
        }

    def __call__(self, value: Any, options: Optional[Dict[str, Any]] = None) -> Any:
        """Resolve against ``value`` (the parent object) or the context option."""
        source = (options or {}).get("context") if self.is_context else value
        return reach(source, self.key, separator=self.separator, **self._settings)

    def __str__(self) -> str:
        return ("context:" if self.is_context else "ref:") + self.key

    def __repr__(self) -> str:
        return f"<Reference {self}>"

    def __copy__(self) -> "Reference":
        return self

    def __deepcopy__(self, memo: Dict[int, Any]) -> "Reference":
        return self


def create(key: str, **options: Any) -> Reference:
    return Reference(key, **options)


def is_ref(value: Any) -> bool:
    return isinstance(value, Reference)


def push(refs: List[str], value: Any) -> None:
    """Record the root key of a sibling reference so dependents sort after it."""
    if is_ref(value) and not value.is_context:
        refs.append(value.root)


__all__ = [
    "Reference",
    "create",
    "is_ref",
    "push",
]
