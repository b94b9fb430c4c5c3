"""Validation error types for the schemakit engine.

Two layers of errors exist:

- ``ErrorItem`` is the node-level record the engine accumulates while it
  walks a schema. Wrapper codes (``object.child``, ``array.includesOne``,
  ``alternatives.child``) carry their nested items under
  ``context["reason"]``.
- ``ValidationError`` is what callers receive: the tree of items flattened
  into leaf ``ErrorDetail`` records, a joined message and an ``annotate()``
  helper that renders the original input with numbered error markers.

Programmer errors (malformed schema construction) are ``SchemaDefinitionError``
and are raised immediately instead of being collected.
"""

import json
import math
import re
from dataclasses import dataclass
from datetime import date, datetime
from html import escape as escape_html
from typing import Any, Dict, List, Optional, Union

from schemakit.language import ERRORS
from schemakit.reference import Reference
from schemakit.types import UNDEFINED, Flags, State
from schemakit.utils import SchemaDefinitionError, assert_that, clone, reach


def format_pattern(pattern: "re.Pattern[str]") -> str:
    """Render a compiled pattern as ``/source/flags``."""
    return "/" + pattern.pattern + "/" + ("i" if pattern.flags & re.IGNORECASE else "")


def _stringify(value: Any, wrap_arrays: bool) -> str:
    if value is None:
        return "null"
    if isinstance(value, str):
        return value
    if isinstance(value, (ErrorItem, Reference)):
        return str(value)
    if value is UNDEFINED:
        return "undefined"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, (list, tuple)):
        partial = ", ".join(_stringify(item, wrap_arrays) for item in value)
        return "[" + partial + "]" if wrap_arrays else partial
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, re.Pattern):
        return format_pattern(value)
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    if callable(value):
        return getattr(value, "__name__", repr(value))
    if isinstance(value, dict):
        return json.dumps(value, default=str)
    return str(value)


class ErrorItem:
    """One error produced by one schema node.

    Attributes:
        type: Dotted error code (e.g. ``"string.min"``)
        context: Template variables; ``key`` and ``label`` are always filled
        path: Keys from the validation root to the failing value
        options: Validation options in effect (for language and escaping)
        flags: Flags of the schema that produced the error
        message: Explicit message overriding every template
        template: Explicit template overriding the catalog

    Examples:
        >>> item = ErrorItem("any.required", None, State(key="a", path=["a"]), {"language": {}})
        >>> str(item)
        '"a" is required'
    """

    is_schemakit = True

    def __init__(
        self,
        type: str,
        context: Optional[Dict[str, Any]],
        state: State,
        options: Dict[str, Any],
        flags: Optional[Flags] = None,
        message: Optional[str] = None,
        template: Optional[str] = None,
    ) -> None:
        self.type = type
        self.context: Dict[str, Any] = dict(context) if context else {}
        if state.path:
            self.context["key"] = state.path[-1]
        self.context["label"] = state.key
        self.path = list(state.path)
        self.options = options
        self.flags = flags if flags is not None else Flags()
        self.message = message
        self.template = template

        localized = self.options.get("language")
        if self.flags.label:
            self.context["label"] = self.flags.label
        elif localized is not None and self.context["label"] in ("", None):
            self.context["label"] = localized.get("root") or ERRORS["root"]

    def __str__(self) -> str:
        if self.message:
            return self.message

        localized = self.options.get("language")
        fmt = (
            self.template
            or reach(localized, self.type)
            or reach(ERRORS, self.type)
        )

        if fmt is UNDEFINED:
            return (
                f'Error code "{self.type}" is not defined, '
                "your custom type is missing the correct language definition"
            )

        wrap_arrays = reach(localized, "messages.wrapArrays")
        if not isinstance(wrap_arrays, bool):
            wrap_arrays = ERRORS["messages"]["wrapArrays"]

        if fmt is None:
            children = _stringify(self.context.get("reason"), wrap_arrays)
            return children[1:-1] if wrap_arrays else children

        has_key = re.search(r"\{\{!?label\}\}", fmt) is not None
        skip_key = len(fmt) > 2 and fmt.startswith("!!")
        if skip_key:
            fmt = fmt[2:]

        if not has_key and not skip_key:
            localized_key = reach(localized, "key")
            fmt = (localized_key if isinstance(localized_key, str) else ERRORS["key"]) + fmt

        def substitute(match: "re.Match[str]") -> str:
            value = reach(self.context, match.group(2))
            normalized = _stringify(value, wrap_arrays)
            if match.group(1) and self.options.get("escape_html"):
                return escape_html(normalized)
            return normalized

        return re.sub(r"\{\{(!?)([^}]+)\}\}", substitute, fmt)

    def __repr__(self) -> str:
        return f"<ErrorItem {self.type} path={self.path!r}>"


def create_error(
    type: str,
    context: Optional[Dict[str, Any]],
    state: State,
    options: Dict[str, Any],
    flags: Optional[Flags] = None,
    message: Optional[str] = None,
    template: Optional[str] = None,
) -> ErrorItem:
    return ErrorItem(type, context, state, options, flags, message, template)


@dataclass(frozen=True)
class ErrorDetail:
    """A single leaf error as reported to callers.

    Attributes:
        message: Rendered message including the label prefix
        path: Keys from the validation root to the failing value
        type: Dotted error code
        context: Template variables used to render the message
    """
    message: str
    path: List[Any]
    type: str
    context: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {
            "message": self.message,
            "path": list(self.path),
            "type": self.type,
            "context": self.context,
        }


class ValidationError(ValueError):
    """Aggregated validation failure returned (or raised) by ``validate``.

    Attributes:
        name: Always ``"ValidationError"``
        is_schemakit: Always True
        message: Top-level messages joined with ``". "``
        details: Leaf errors in the order they were found
        _object: The value that was validated
    """

    name = "ValidationError"
    is_schemakit = True

    def __init__(self, message: str, details: List[ErrorDetail], obj: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details
        self._object = obj

    def __str__(self) -> str:
        return self.message

    def annotate(self, strip_color_codes: bool = False) -> str:
        """Render the validated value with numbered markers next to each error."""
        return annotate(self, strip_color_codes)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {
            "name": self.name,
            "message": self.message,
            "details": [detail.to_dict() for detail in self.details],
        }


def process_errors(errors: Optional[List[Any]], obj: Any) -> Union[None, BaseException, Any]:
    """Flatten accumulated items into a ValidationError.

    Returns None when there are no errors. An exception found among the
    items, or a non-callable ``error`` flag on a failing schema, is returned
    as-is in place of the aggregated error.
    """
    if not errors:
        return None

    messages: List[str] = []
    details: List[ErrorDetail] = []

    def walk(items: List[Any], top_level: bool) -> Any:
        for item in items:
            if isinstance(item, BaseException):
                return item

            if item.flags.error is not None and not callable(item.flags.error):
                return item.flags.error

            item_message = None
            if top_level:
                item_message = str(item)
                messages.append(item_message)

            reason = item.context.get("reason")
            if isinstance(reason, list) and reason:
                override = walk(reason, False)
                if override is not None:
                    return override
            else:
                details.append(
                    ErrorDetail(
                        message=item_message if item_message is not None else str(item),
                        path=item.path,
                        type=item.type,
                        context=item.context,
                    )
                )
        return None

    override = walk(errors, True)
    if override is not None:
        return override

    return ValidationError(". ".join(messages), details, obj)


# --------------------------------------------------------------------------- #
# Annotation                                                                  #
# --------------------------------------------------------------------------- #

_RED_FG = "\u001b[31m"
_RED_BG = "\u001b[41m"
_END_COLOR = "\u001b[0m"

_KEY_MARKER = re.compile(r'_\$key\$_([, \d]+)_\$end\$_"')
_MISSING_MARKER = re.compile(r'"_\$miss\$_([^|]+)\|(\d+)_\$end\$_": "__missing__"')
_INDEX_MARKER = re.compile(r'\s*"_\$idx\$_([, \d]+)_\$end\$_",?\n(.*)')
_SPECIALS = re.compile(r'"\[(NaN|-?Infinity|function.*?|\(.*?)\]"')


class _Annotations:
    def __init__(self) -> None:
        self.errors: Dict[Any, List[int]] = {}
        self.missing: Dict[Any, int] = {}


def _child(ref: Any, segment: Any) -> Any:
    if isinstance(ref, dict):
        return ref.get(segment, UNDEFINED)
    if isinstance(ref, list) and isinstance(segment, int) and 0 <= segment < len(ref):
        return ref[segment]
    return UNDEFINED


def _plain(value: Any, annotations: Dict[int, _Annotations], stack: List[Any], keys: List[str]) -> Any:
    """Convert ``value`` into JSON-ready data, applying error annotations."""
    for position, ancestor in enumerate(stack):
        if ancestor is value:
            if position == 0:
                return "[Circular ~]"
            return "[Circular ~." + ".".join(keys[:position]) + "]"

    if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
        return "[" + _stringify(value, False) + "]"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, re.Pattern):
        return format_pattern(value)
    if callable(value) and not isinstance(value, (dict, list)):
        return "[function " + getattr(value, "__name__", "anonymous") + "]"

    if isinstance(value, dict):
        marks = annotations.get(id(value))
        stack.append(value)
        result: Dict[str, Any] = {}
        renamed: Dict[str, Any] = {}
        for key, item in value.items():
            if item is UNDEFINED:
                continue
            keys.append(str(key))
            converted = _plain(item, annotations, stack, keys)
            keys.pop()
            if marks is not None and key in marks.errors:
                positions = ", ".join(str(p) for p in sorted(marks.errors[key]))
                renamed[f"{key}_$key$_{positions}_$end$_"] = converted
            else:
                result[str(key)] = converted
        result.update(renamed)
        if marks is not None:
            for key, position in marks.missing.items():
                result[f"_$miss$_{key}|{position}_$end$_"] = "__missing__"
        stack.pop()
        return result

    if isinstance(value, (list, tuple)):
        marks = annotations.get(id(value))
        stack.append(value)
        items: List[Any] = []
        for index, item in enumerate(value):
            if marks is not None and index in marks.errors:
                positions = ", ".join(str(p) for p in sorted(marks.errors[index]))
                items.append(f"_$idx$_{positions}_$end$_")
            keys.append(str(index))
            items.append(None if item is UNDEFINED else _plain(item, annotations, stack, keys))
            keys.pop()
        stack.pop()
        return items

    if value is UNDEFINED:
        return None
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def annotate(error: ValidationError, strip_color_codes: bool = False) -> str:
    red_fg = "" if strip_color_codes else _RED_FG
    red_bg = "" if strip_color_codes else _RED_BG
    end_color = "" if strip_color_codes else _END_COLOR

    source = error._object
    if source is not None and not isinstance(source, (dict, list, tuple)):
        return error.details[0].message

    obj = clone(source if source is not None else {})
    if isinstance(obj, tuple):
        obj = list(obj)

    annotations: Dict[int, _Annotations] = {}
    # Deepest children first, so parents are annotated after their keys are.
    for index in range(len(error.details) - 1, -1, -1):
        position = index + 1
        detail = error.details[index]
        path = detail.path
        ref = obj
        depth = 0
        while True:
            segment = path[depth] if depth < len(path) else None
            child = _child(ref, segment)
            if depth + 1 < len(path) and child and not isinstance(child, str) and isinstance(child, (dict, list)):
                ref = child
                depth += 1
                continue

            marks = annotations.setdefault(id(ref), _Annotations())
            cache_key = segment if segment not in ("", None) else detail.context.get("label")
            if child is not UNDEFINED:
                marks.errors.setdefault(cache_key, []).append(position)
            else:
                marks.missing[cache_key] = position
            break

    message = json.dumps(_plain(obj, annotations, [], []), indent=2, ensure_ascii=False)
    message = _KEY_MARKER.sub(lambda m: f'" {red_fg}[{m.group(1)}]{end_color}', message)
    message = _MISSING_MARKER.sub(
        lambda m: f'{red_bg}"{m.group(1)}"{end_color}{red_fg} [{m.group(2)}]: -- missing --{end_color}',
        message,
    )
    message = _INDEX_MARKER.sub(lambda m: f"\n{m.group(2)} {red_fg}[{m.group(1)}]{end_color}", message)
    message = _SPECIALS.sub(lambda m: m.group(1), message)

    message = f"{message}\n{red_fg}"
    for index, detail in enumerate(error.details):
        message = f"{message}\n[{index + 1}] {detail.message}"
    return message + end_color


__all__ = [
    "SchemaDefinitionError",
    "assert_that",
    "ErrorItem",
    "create_error",
    "ErrorDetail",
    "ValidationError",
    "process_errors",
    "annotate",
    "format_pattern",
]
