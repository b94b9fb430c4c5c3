"""Number schema."""

import math
import re
from typing import Any, Callable, Dict, Union

from schemakit.reference import Reference, is_ref
from schemakit.schemas.any import AnySchema
from schemakit.types import Outcome, State
from schemakit.utils import assert_that, is_number, is_safe_integer

_NUMERIC = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")
_DECIMALS = re.compile(r"(?:\.(\d+))?(?:[eE]([+-]?\d+))?$")


def _parse(value: str) -> float:
    text = value.strip()
    if not _NUMERIC.match(text):
        return math.nan

    if "." not in text and "e" not in text.lower():
        try:
            return int(text)
        except ValueError:
            # Past the interpreter's int digit limit
            pass

    result = float(text)
    return result if math.isfinite(result) else math.nan


def _decimal_places(value: Union[int, float]) -> int:
    match = _DECIMALS.search(repr(value))
    if not match:
        return 0
    return max(0, len(match.group(1) or "") - int(match.group(2) or 0))


class NumberSchema(AnySchema):
    """Schema for ints and floats.

    Strings holding a number are converted when ``convert`` is on. Booleans
    are never numbers. ``inf`` and ``-inf`` are denied unless explicitly
    allowed.

    Examples:
        >>> from schemakit import number
        >>> number().min(3).validate("4").value
        4
        >>> number().integer().validate(1.5).error.details[0].type
        'number.integer'
    """

    def __init__(self) -> None:
        super().__init__()
        self._type = "number"
        self._invalids.add(math.inf)
        self._invalids.add(-math.inf)

    def _base(self, value: Any, state: State, options: Dict[str, Any]) -> Outcome:
        result = value

        if isinstance(value, str) and options.get("convert"):
            result = _parse(value)

        if options.get("convert") and self._flags.precision is not None and isinstance(result, float) and math.isfinite(result):
            precision = 10 ** self._flags.precision
            result = math.floor(result * precision + 0.5) / precision

        if is_number(result):
            return Outcome(value=result)
        return Outcome(value=result, errors=[self.create_error("number.base", None, state, options)])

    def _compare(self, name: str, limit: Any, compare: Callable[[Any, Any], bool]) -> "NumberSchema":
        if is_ref(limit):
            is_ref_limit = True
        else:
            is_ref_limit = False
            assert_that(is_number(limit), "limit must be a number")

        def check(schema: AnySchema, value: Any, state: State, options: Dict[str, Any]) -> Any:
            compare_to = limit
            if is_ref_limit:
                compare_to = limit(state.ref_root, options)
                if not is_number(compare_to):
                    return schema.create_error("number.ref", {"ref": limit.key}, state, options)

            if compare(value, compare_to):
                return value
            return schema.create_error("number." + name, {"limit": compare_to, "value": value}, state, options)

        return self._test(name, limit, check)

    def min(self, limit: Union[int, float, Reference]) -> "NumberSchema":
        return self._compare("min", limit, lambda value, limit: value >= limit)

    def max(self, limit: Union[int, float, Reference]) -> "NumberSchema":
        return self._compare("max", limit, lambda value, limit: value <= limit)

    def greater(self, limit: Union[int, float, Reference]) -> "NumberSchema":
        return self._compare("greater", limit, lambda value, limit: value > limit)

    def less(self, limit: Union[int, float, Reference]) -> "NumberSchema":
        return self._compare("less", limit, lambda value, limit: value < limit)

    def multiple(self, base: Union[int, float, Reference]) -> "NumberSchema":
        """Require the value to be a multiple of ``base`` (a positive number or a reference)."""
        is_ref_base = is_ref(base)
        if not is_ref_base:
            assert_that(is_number(base) and math.isfinite(base), "multiple must be a number")
            assert_that(base > 0, "multiple must be greater than 0")

        def check(schema: AnySchema, value: Any, state: State, options: Dict[str, Any]) -> Any:
            divisor = base(state.ref_root, options) if is_ref_base else base
            if is_ref_base and not (is_number(divisor) and math.isfinite(divisor)):
                return schema.create_error("number.ref", {"ref": base.key}, state, options)

            if divisor and value % divisor == 0:
                return value
            return schema.create_error("number.multiple", {"multiple": base, "value": value}, state, options)

        return self._test("multiple", base, check)

    def integer(self) -> "NumberSchema":
        def check(schema: AnySchema, value: Any, state: State, options: Dict[str, Any]) -> Any:
            if is_safe_integer(value):
                return value
            return schema.create_error("number.integer", {"value": value}, state, options)

        return self._test("integer", None, check)

    def negative(self) -> "NumberSchema":
        def check(schema: AnySchema, value: Any, state: State, options: Dict[str, Any]) -> Any:
            if value < 0:
                return value
            return schema.create_error("number.negative", {"value": value}, state, options)

        return self._test("negative", None, check)

    def positive(self) -> "NumberSchema":
        def check(schema: AnySchema, value: Any, state: State, options: Dict[str, Any]) -> Any:
            if value > 0:
                return value
            return schema.create_error("number.positive", {"value": value}, state, options)

        return self._test("positive", None, check)

    def precision(self, limit: int) -> "NumberSchema":
        """Allow at most ``limit`` decimal places (values are rounded first when converting)."""
        assert_that(is_safe_integer(limit), "limit must be an integer")
        assert_that(self._flags.precision is None, "precision already set")

        def check(schema: AnySchema, value: Any, state: State, options: Dict[str, Any]) -> Any:
            if _decimal_places(value) <= limit:
                return value
            return schema.create_error("number.precision", {"limit": limit, "value": value}, state, options)

        obj = self._test("precision", limit, check)
        obj._flags.precision = limit
        return obj

    def port(self) -> "NumberSchema":
        def check(schema: AnySchema, value: Any, state: State, options: Dict[str, Any]) -> Any:
            if is_safe_integer(value) and 0 <= value <= 65535:
                return value
            return schema.create_error("number.port", {"value": value}, state, options)

        return self._test("port", None, check)


__all__ = ["NumberSchema"]
