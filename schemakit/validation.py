"""Result object returned by ``validate()``.

A ``ValidationResult`` can be consumed several ways:

- attribute access: ``result.error`` / ``result.value`` / ``result.is_valid``
- tuple unpacking: ``error, value = schema.validate(data)``
- promise style: ``schema.validate(data).then(on_value, on_error)``
- awaiting: ``value = await schema.validate(data)`` raises on failure
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Generator, Iterator, Optional

from schemakit.types import UNDEFINED


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one value against a schema.

    Attributes:
        error: The ValidationError (or the override exception configured with
            ``.error()``), None when the value is valid
        value: The validated value after conversions and defaults

    Examples:
        >>> from schemakit import number
        >>> result = number().validate("12")
        >>> result.is_valid
        True
        >>> result.value
        12
        >>> error, value = number().validate("x")
        >>> error.details[0].type
        'number.base'
    """
    error: Optional[BaseException]
    value: Any = UNDEFINED

    @property
    def is_valid(self) -> bool:
        return self.error is None

    def then(
        self,
        on_value: Optional[Callable[[Any], Any]] = None,
        on_error: Optional[Callable[[BaseException], Any]] = None,
    ) -> Any:
        """Call ``on_value`` with the value, or ``on_error`` with the error.

        Raises the error when validation failed and no ``on_error`` was given.
        """
        if self.error is not None:
            if on_error is None:
                raise self.error
            return on_error(self.error)
        return on_value(self.value) if on_value is not None else self.value

    def catch(self, on_error: Callable[[BaseException], Any]) -> Any:
        if self.error is not None:
            return on_error(self.error)
        return self.value

    async def _settle(self) -> Any:
        if self.error is not None:
            raise self.error
        return self.value

    def __await__(self) -> Generator[Any, None, Any]:
        return self._settle().__await__()

    def __iter__(self) -> Iterator[Any]:
        return iter((self.error, self.value))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {"isValid": self.is_valid}
        if self.value is not UNDEFINED:
            result["value"] = self.value
        if self.error is not None:
            to_dict = getattr(self.error, "to_dict", None)
            result["error"] = (
                to_dict() if callable(to_dict) else {"name": type(self.error).__name__, "message": str(self.error)}
            )
        return result


__all__ = ["ValidationResult"]
