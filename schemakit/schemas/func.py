"""Function schema: an object schema whose values must be callable."""

import inspect
from typing import Any, Callable, Dict

from schemakit.reference import is_ref
from schemakit.schemas.any import AnySchema
from schemakit.schemas.object import ObjectSchema
from schemakit.types import State
from schemakit.utils import arity, assert_that, is_safe_integer


class FuncSchema(ObjectSchema):
    """Schema for callables.

    Arity is the number of required positional parameters. Attributes set
    on a function can be validated with ``keys()`` like object keys.

    Examples:
        >>> from schemakit import func
        >>> func().arity(2).validate(lambda a, b: a + b).is_valid
        True
        >>> func().validate("nope").error.details[0].type
        'function.base'
    """

    def __init__(self) -> None:
        super().__init__()
        self._flags.func = True

    def _arity_rule(self, name: str, n: int, compare: Callable[[int, int], bool]) -> "FuncSchema":
        def check(schema: AnySchema, value: Any, state: State, options: Dict[str, Any]) -> Any:
            if compare(arity(value), n):
                return value
            return schema.create_error("function." + name, {"n": n}, state, options)

        return self._test(name, n, check)

    def arity(self, n: int) -> "FuncSchema":
        assert_that(is_safe_integer(n) and n >= 0, "n must be a positive integer")
        return self._arity_rule("arity", n, lambda count, n: count == n)

    def min_arity(self, n: int) -> "FuncSchema":
        assert_that(is_safe_integer(n) and n > 0, "n must be a strict positive integer")
        return self._arity_rule("minArity", n, lambda count, n: count >= n)

    def max_arity(self, n: int) -> "FuncSchema":
        assert_that(is_safe_integer(n) and n >= 0, "n must be a positive integer")
        return self._arity_rule("maxArity", n, lambda count, n: count <= n)

    def ref(self) -> "FuncSchema":
        """Require a reference created with ``ref()``."""

        def check(schema: AnySchema, value: Any, state: State, options: Dict[str, Any]) -> Any:
            if is_ref(value):
                return value
            return schema.create_error("function.ref", None, state, options)

        return self._test("ref", None, check)

    def class_(self) -> "FuncSchema":
        """Require a class."""

        def check(schema: AnySchema, value: Any, state: State, options: Dict[str, Any]) -> Any:
            if inspect.isclass(value):
                return value
            return schema.create_error("function.class", None, state, options)

        return self._test("class", None, check)


__all__ = ["FuncSchema"]
