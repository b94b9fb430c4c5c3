"""Lazy schema: resolve the schema at validation time (recursive structures)."""

from typing import Any, Callable, Dict

from schemakit.schemas.any import AnySchema
from schemakit.types import Outcome, State
from schemakit.utils import assert_that


class LazySchema(AnySchema):
    """Schema built by a factory function on every validation.

    Examples:
        >>> from schemakit import array, lazy, object, string
        >>> node = object({"name": string(), "children": array().items(lazy(lambda: node))})
        >>> node.validate({"name": "a", "children": [{"name": "b", "children": []}]}).is_valid
        True
    """

    def __init__(self) -> None:
        super().__init__()
        self._type = "lazy"

    def _base(self, value: Any, state: State, options: Dict[str, Any]) -> Outcome:
        factory = self._flags.lazy
        if factory is None:
            return Outcome(value=value, errors=[self.create_error("lazy.base", None, state, options)])

        schema = factory()
        if not isinstance(schema, AnySchema):
            return Outcome(value=value, errors=[self.create_error("lazy.schema", None, state, options)])

        return schema._validate(value, state, options)

    def set(self, fn: Callable[[], AnySchema]) -> "LazySchema":
        assert_that(callable(fn), "You must provide a function as first argument")

        obj = self.clone()
        obj._flags.lazy = fn
        return obj


__all__ = ["LazySchema"]
