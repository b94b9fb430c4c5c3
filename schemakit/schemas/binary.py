"""Binary schema."""

import base64
import binascii
from typing import Any, Callable, Dict

from schemakit.schemas.any import AnySchema
from schemakit.types import Outcome, State
from schemakit.utils import assert_that, is_safe_integer


def _decode_base64(value: str) -> bytes:
    return base64.b64decode(value + "=" * (-len(value) % 4))


ENCODINGS: Dict[str, Callable[[str], bytes]] = {
    "utf8": lambda value: value.encode("utf-8"),
    "utf-8": lambda value: value.encode("utf-8"),
    "ascii": lambda value: value.encode("ascii"),
    "latin1": lambda value: value.encode("latin-1"),
    "binary": lambda value: value.encode("latin-1"),
    "ucs2": lambda value: value.encode("utf-16-le"),
    "ucs-2": lambda value: value.encode("utf-16-le"),
    "utf16le": lambda value: value.encode("utf-16-le"),
    "utf-16le": lambda value: value.encode("utf-16-le"),
    "base64": _decode_base64,
    "hex": bytes.fromhex,
}


class BinarySchema(AnySchema):
    """Schema for ``bytes`` (``bytearray`` is accepted as is).

    With ``convert`` on, strings are encoded to bytes using the configured
    encoding (``utf8`` by default, ``base64`` and ``hex`` decode).

    Examples:
        >>> from schemakit import binary
        >>> binary().validate("abc").value
        b'abc'
        >>> binary().encoding("hex").validate("00ff").value
        b'\\x00\\xff'
    """

    def __init__(self) -> None:
        super().__init__()
        self._type = "binary"

    def _base(self, value: Any, state: State, options: Dict[str, Any]) -> Outcome:
        result = value

        if isinstance(value, str) and options.get("convert"):
            encode = ENCODINGS[self._flags.encoding or "utf8"]
            try:
                result = encode(value)
            except (ValueError, binascii.Error):
                result = value

        if isinstance(result, (bytes, bytearray)):
            return Outcome(value=result)
        return Outcome(value=result, errors=[self.create_error("binary.base", None, state, options)])

    def encoding(self, encoding: str) -> "BinarySchema":
        assert_that(encoding in ENCODINGS, "Invalid encoding:", encoding)

        if self._flags.encoding == encoding:
            return self

        obj = self.clone()
        obj._flags.encoding = encoding
        return obj

    def _limit(self, name: str, limit: int, compare: Callable[[int, int], bool]) -> "BinarySchema":
        assert_that(is_safe_integer(limit) and limit >= 0, "limit must be a positive integer")

        def check(schema: AnySchema, value: Any, state: State, options: Dict[str, Any]) -> Any:
            if compare(len(value), limit):
                return value
            return schema.create_error("binary." + name, {"limit": limit, "value": value}, state, options)

        return self._test(name, limit, check)

    def min(self, limit: int) -> "BinarySchema":
        return self._limit("min", limit, lambda length, limit: length >= limit)

    def max(self, limit: int) -> "BinarySchema":
        return self._limit("max", limit, lambda length, limit: length <= limit)

    def length(self, limit: int) -> "BinarySchema":
        return self._limit("length", limit, lambda length, limit: length == limit)


__all__ = ["BinarySchema", "ENCODINGS"]
