"""Boolean schema."""

from typing import Any, Dict, Optional

from schemakit.schemas.any import AnySchema
from schemakit.types import UNDEFINED, Outcome, State
from schemakit.utils import assert_that, flatten
from schemakit.value_set import ValueSet


class BooleanSchema(AnySchema):
    """Schema for ``True``/``False``.

    With ``convert`` on, the strings ``"true"`` and ``"false"`` are accepted
    (case-insensitively unless ``insensitive(False)``). Extra values can be
    mapped with ``truthy()`` and ``falsy()``.

    Examples:
        >>> from schemakit import boolean
        >>> boolean().validate("TRUE").value
        True
        >>> boolean().truthy("Y").validate("y").value
        True
    """

    def __init__(self) -> None:
        super().__init__()
        self._type = "boolean"
        self._flags.insensitive = True
        self._inner["truthy_set"] = ValueSet()
        self._inner["falsy_set"] = ValueSet()

    def _base(self, value: Any, state: State, options: Dict[str, Any]) -> Outcome:
        result = value
        insensitive = self._flags.insensitive

        if isinstance(value, str) and options.get("convert"):
            normalized = value.lower() if insensitive else value
            if normalized == "true":
                result = True
            elif normalized == "false":
                result = False

        if not isinstance(result, bool):
            if self._inner["truthy_set"].has(value, None, None, insensitive):
                result = True
            elif self._inner["falsy_set"].has(value, None, None, insensitive):
                result = False

        if isinstance(result, bool):
            return Outcome(value=result)
        return Outcome(value=result, errors=[self.create_error("boolean.base", None, state, options)])

    def truthy(self, *values: Any) -> "BooleanSchema":
        """Additional values converted to ``True``."""
        obj = self.clone()
        for value in flatten(values):
            assert_that(value is not UNDEFINED, "Cannot call truthy with undefined")
            obj._inner["truthy_set"].add(value)
        return obj

    def falsy(self, *values: Any) -> "BooleanSchema":
        """Additional values converted to ``False``."""
        obj = self.clone()
        for value in flatten(values):
            assert_that(value is not UNDEFINED, "Cannot call falsy with undefined")
            obj._inner["falsy_set"].add(value)
        return obj

    def insensitive(self, enabled: Optional[bool] = None) -> "BooleanSchema":
        insensitive = True if enabled is None else enabled
        if self._flags.insensitive == insensitive:
            return self

        obj = self.clone()
        obj._flags.insensitive = insensitive
        return obj

    def describe(self) -> Dict[str, Any]:
        description = super().describe()
        description["truthy"] = [True] + self._inner["truthy_set"].values()
        description["falsy"] = [False] + self._inner["falsy_set"].values()
        return description


__all__ = ["BooleanSchema"]
