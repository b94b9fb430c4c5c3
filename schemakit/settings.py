"""Validation options: defaults, checking and layering.

Options flow from three places, later layers winning:

1. ``DEFAULT_OPTIONS``
2. The options passed to ``validate()``
3. Options attached to a schema node with ``.options()`` / ``.strict()``,
   which apply to that node's subtree only

Options are checked against ``OPTIONS_SCHEMA`` with jsonschema so that a
misspelled key fails loudly instead of being ignored.
"""

from collections.abc import Mapping
from typing import Any, Dict, Optional, Union

from jsonschema import Draft7Validator, validators
from typing_extensions import Literal, TypedDict

from schemakit.utils import SchemaDefinitionError, deep_merge


class StripUnknownOptions(TypedDict, total=False):
    arrays: bool
    objects: bool


class ValidationOptions(TypedDict, total=False):
    """Keys recognised by ``validate()`` and ``.options()``."""
    abort_early: bool
    convert: bool
    allow_unknown: bool
    skip_functions: bool
    strip_unknown: Union[bool, StripUnknownOptions]
    language: Dict[str, Any]
    presence: Literal["required", "optional", "forbidden", "ignore"]
    raw: bool
    context: Any
    strip: bool
    no_defaults: bool
    escape_html: bool


DEFAULT_OPTIONS: ValidationOptions = {
    "abort_early": True,
    "convert": True,
    "allow_unknown": False,
    "skip_functions": False,
    "strip_unknown": False,
    "language": {},
    "presence": "optional",
    "strip": False,
    "no_defaults": False,
    "escape_html": False,
}

OPTIONS_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "abort_early": {"type": "boolean"},
        "convert": {"type": "boolean"},
        "allow_unknown": {"type": "boolean"},
        "skip_functions": {"type": "boolean"},
        "strip_unknown": {
            "oneOf": [
                {"type": "boolean"},
                {
                    "type": "object",
                    "properties": {
                        "arrays": {"type": "boolean"},
                        "objects": {"type": "boolean"},
                    },
                    "additionalProperties": False,
                    "anyOf": [{"required": ["arrays"]}, {"required": ["objects"]}],
                },
            ]
        },
        "language": {"type": "object"},
        "presence": {"enum": ["required", "optional", "forbidden", "ignore"]},
        "raw": {"type": "boolean"},
        "context": {"type": ["object", "array"]},
        "strip": {"type": "boolean"},
        "no_defaults": {"type": "boolean"},
        "escape_html": {"type": "boolean"},
    },
    "additionalProperties": False,
}

# Any mapping counts as an object and any list or tuple as an array
_type_checker = Draft7Validator.TYPE_CHECKER.redefine_many(
    {
        "object": lambda checker, instance: isinstance(instance, Mapping),
        "array": lambda checker, instance: isinstance(instance, (list, tuple)),
    }
)

OptionsValidator = validators.extend(Draft7Validator, type_checker=_type_checker)

_validator = OptionsValidator(OPTIONS_SCHEMA)


def _describe_violation(error: Any) -> str:
    location = ".".join(str(part) for part in error.absolute_path)
    if error.validator == "additionalProperties":
        return error.message
    return f'"{location}" {error.message}' if location else error.message


def check_options(options: Mapping[str, Any]) -> None:
    """Raise SchemaDefinitionError describing the first invalid option.

    Examples:
        >>> check_options({"abort_early": False})
        >>> check_options({"abortEarly": False})
        Traceback (most recent call last):
        ...
        schemakit.utils.SchemaDefinitionError: Additional properties are not allowed ('abortEarly' was unexpected)
    """
    errors = sorted(_validator.iter_errors(dict(options)), key=lambda e: list(e.absolute_path))
    if errors:
        raise SchemaDefinitionError(_describe_violation(errors[0]))


def concat_settings(
    target: Optional[Mapping[str, Any]], source: Optional[Mapping[str, Any]]
) -> Optional[Dict[str, Any]]:
    """Layer ``source`` over ``target``; ``language`` catalogs are deep-merged."""
    if not source:
        return dict(target) if target is not None else None

    merged: Dict[str, Any] = dict(target or {})
    for key, value in source.items():
        if key == "language" and key in merged and isinstance(merged[key], Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


__all__ = [
    "ValidationOptions",
    "StripUnknownOptions",
    "DEFAULT_OPTIONS",
    "OPTIONS_SCHEMA",
    "check_options",
    "concat_settings",
]
