"""Date schema.

Values are ``datetime`` objects. With ``convert`` on, numbers (milliseconds
since the epoch, or seconds with ``timestamp("unix")``), numeric strings and
date strings are converted. Naive datetimes produced by parsing are taken as
UTC.
"""

import math
import re
import time
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional, Union

from dateutil import parser as date_parser

from schemakit.reference import Reference, is_ref
from schemakit.schemas.any import AnySchema
from schemakit.types import Outcome, State
from schemakit.utils import assert_that, to_millis

ISO_DATE = re.compile(
    r"^(?:[-+]\d{2})?(?:\d{4}(?!\d{2}\b))(?:(-?)(?:(?:0[1-9]|1[0-2])(?:\1(?:[12]\d|0[1-9]|3[01]))?"
    r"|W(?:[0-4]\d|5[0-2])(?:-?[1-7])?|(?:00[1-9]|0[1-9]\d|[12]\d{2}|3(?:[0-5]\d|6[1-6])))"
    r"(?![T]$|[T][\d]+Z$)(?:[T\s](?:(?:(?:[01]\d|2[0-3])(?:(:?)[0-5]\d)?|24:?00)(?:[.,]\d+(?!:))?)"
    r"(?:\2[0-5]\d(?:[.,]\d+)?)?(?:[Z]|(?:[+-])(?:[01]\d|2[0-3])(?::?[0-5]\d)?)?)?)?\Z"
)

_NUMERIC = re.compile(r"^[+-]?\d+(\.\d+)?$")
_BLANK = re.compile(r"^\s*$")
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

TIMESTAMP_MULTIPLIERS = {"javascript": 1, "unix": 1000}


def _from_millis(value: float) -> datetime:
    return _EPOCH + timedelta(milliseconds=value)


def parse_date_string(value: str) -> datetime:
    try:
        parsed = date_parser.isoparse(value)
    except ValueError:
        parsed = date_parser.parse(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _number_text(value: Union[int, float]) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def to_date(
    value: Any,
    format: Optional["re.Pattern[str]"] = None,
    timestamp: Optional[str] = None,
    multiplier: Optional[int] = None,
) -> Optional[datetime]:
    """Convert ``value`` to an aware datetime, or return None when it is not a date.

    Examples:
        >>> to_date(0)
        datetime.datetime(1970, 1, 1, 0, 0, tzinfo=datetime.timezone.utc)
        >>> to_date("1", timestamp="unix", multiplier=1000).year
        1970
        >>> to_date("not a date") is None
        True
    """
    if isinstance(value, datetime):
        return value

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)

    is_number = isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)
    if not isinstance(value, str) and not is_number:
        return None

    if isinstance(value, str) and _NUMERIC.match(value):
        value = float(value)

    try:
        if format is ISO_DATE:
            text = value if isinstance(value, str) else _number_text(value)
            if not ISO_DATE.match(text):
                return None
            return parse_date_string(value) if isinstance(value, str) else _from_millis(value)

        if timestamp and multiplier:
            if isinstance(value, str):
                if _BLANK.match(value):
                    return None
                value = float(value)
            return _from_millis(value * multiplier)

        if isinstance(value, str):
            return parse_date_string(value)
        return _from_millis(value)
    except (ValueError, OverflowError):
        return None


class DateSchema(AnySchema):
    """Schema for dates.

    Examples:
        >>> from schemakit import date
        >>> date().validate("2017-01-01").value.year
        2017
        >>> date().timestamp("unix").validate(86400).value.day
        2
    """

    def __init__(self) -> None:
        super().__init__()
        self._type = "date"

    def _base(self, value: Any, state: State, options: Dict[str, Any]) -> Outcome:
        result = value
        if options.get("convert"):
            converted = to_date(value, self._flags.format, self._flags.timestamp, self._flags.multiplier)
            if converted is not None:
                result = converted

        if isinstance(result, datetime):
            return Outcome(value=result)

        if not options.get("convert"):
            code = "strict"
        elif self._flags.format is ISO_DATE:
            code = "isoDate"
        elif self._flags.timestamp:
            code = "timestamp." + self._flags.timestamp
        else:
            code = "base"

        return Outcome(value=result, errors=[self.create_error("date." + code, None, state, options)])

    def iso(self) -> "DateSchema":
        """Accept only ISO 8601 strings when converting."""
        if self._flags.format is ISO_DATE:
            return self

        obj = self.clone()
        obj._flags.format = ISO_DATE
        return obj

    def timestamp(self, type: str = "javascript") -> "DateSchema":
        """Read numbers as milliseconds (``"javascript"``) or seconds (``"unix"``)."""
        allowed = list(TIMESTAMP_MULTIPLIERS)
        assert_that(type in allowed, '"type" must be one of "' + '", "'.join(allowed) + '"')

        if self._flags.timestamp == type:
            return self

        obj = self.clone()
        obj._flags.timestamp = type
        obj._flags.multiplier = TIMESTAMP_MULTIPLIERS[type]
        return obj

    def _compare(self, name: str, limit: Any, compare: Callable[[float, float], bool]) -> "DateSchema":
        is_now = limit == "now"
        is_ref_limit = is_ref(limit)

        if not is_now and not is_ref_limit:
            limit = to_date(limit)
        assert_that(limit is not None, "Invalid date format")

        def check(schema: AnySchema, value: Any, state: State, options: Dict[str, Any]) -> Any:
            if is_now:
                compare_to = time.time() * 1000
            elif is_ref_limit:
                resolved = to_date(limit(state.ref_root, options))
                if resolved is None:
                    return schema.create_error("date.ref", {"ref": limit.key}, state, options)
                compare_to = to_millis(resolved)
            else:
                compare_to = to_millis(limit)

            if compare(to_millis(value), compare_to):
                return value
            return schema.create_error("date." + name, {"limit": _from_millis(compare_to)}, state, options)

        return self._test(name, limit, check)

    def min(self, limit: Union[datetime, str, int, float, Reference]) -> "DateSchema":
        return self._compare("min", limit, lambda value, limit: value >= limit)

    def max(self, limit: Union[datetime, str, int, float, Reference]) -> "DateSchema":
        return self._compare("max", limit, lambda value, limit: value <= limit)


__all__ = ["DateSchema", "ISO_DATE", "to_date", "parse_date_string"]
