"""Custom schema types registered with ``Root.extend()``.

An extension definition is a dict::

    {
        "name": "even",                      # factory name on the new root
        "base": number().integer(),          # schema to start from (any() by default)
        "language": {"odd": "must be even"}, # messages under "<name>.<code>"
        "coerce": fn(schema, value, state, options),
        "pre": fn(schema, value, state, options),
        "describe": fn(schema, description),
        "rules": [
            {
                "name": "divisible",
                "params": {"by": number().required()},
                "validate": fn(schema, params, value, state, options),
                "setup": fn(schema, params),
                "description": "...",
            },
        ],
    }

``coerce`` runs before presence checks and ``pre`` after the base type
check; both return the new value or an ErrorItem built with
``schema.create_error()``. Definitions are checked against
``EXTENSION_SCHEMA`` before they are registered.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from jsonschema import Draft7Validator, validators

from schemakit import cast
from schemakit.reference import is_ref, push
from schemakit.schemas.any import AnySchema
from schemakit.types import UNDEFINED, State
from schemakit.utils import SchemaDefinitionError, assert_that

if TYPE_CHECKING:
    from schemakit.root import Root

logger = logging.getLogger(__name__)


_type_checker = Draft7Validator.TYPE_CHECKER.redefine_many(
    {
        "callable": lambda checker, instance: callable(instance) and not isinstance(instance, AnySchema),
        "schema": lambda checker, instance: isinstance(instance, AnySchema),
    }
)

ExtensionValidator = validators.extend(Draft7Validator, type_checker=_type_checker)

RULE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "setup": {"type": "callable"},
        "validate": {"type": "callable"},
        "params": {
            "anyOf": [
                {"type": "schema"},
                {"type": "object", "additionalProperties": {"type": "schema"}},
            ]
        },
        "description": {"anyOf": [{"type": "string"}, {"type": "callable"}]},
    },
    "required": ["name"],
    "anyOf": [{"required": ["setup"]}, {"required": ["validate"]}],
    "additionalProperties": False,
}

EXTENSION_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "base": {"type": "schema"},
        "language": {"type": "object"},
        "coerce": {"type": "callable"},
        "pre": {"type": "callable"},
        "describe": {"type": "callable"},
        "rules": {"type": "array", "items": RULE_SCHEMA},
    },
    "required": ["name"],
    "additionalProperties": False,
}

_validator = ExtensionValidator(EXTENSION_SCHEMA)


@dataclass(frozen=True)
class Extension:
    """Hooks and rule builders contributed by one extension definition.

    Attributes:
        name: Type name of the schemas built from this extension
        coerce: Hook run before presence checks
        pre: Hook run after the base type check
        describe: Hook post-processing ``describe()`` output
        rules: Rule builders by name, called as ``builder(schema, *args, **kwargs)``
    """
    name: str
    coerce: Optional[Callable[..., Any]] = None
    pre: Optional[Callable[..., Any]] = None
    describe: Optional[Callable[..., Any]] = None
    rules: Dict[str, Callable[..., AnySchema]] = field(default_factory=dict)


def check_extension(definition: Any) -> None:
    """Raise SchemaDefinitionError when ``definition`` is not a valid extension."""
    assert_that(isinstance(definition, Mapping), "Extension must be an object or a function returning one")

    errors = sorted(_validator.iter_errors(dict(definition)), key=lambda e: list(e.absolute_path))
    if errors:
        error = errors[0]
        location = ".".join(str(part) for part in error.absolute_path)
        message = f'"{location}" {error.message}' if location else error.message
        raise SchemaDefinitionError("Invalid extension: " + message)


def _param_names(params: Any) -> List[str]:
    if params is None:
        return []
    if isinstance(params, AnySchema):
        return [child.key for child in params._inner.get("children") or []]
    return list(params)


def _rule_builder(root: "Root", type_name: str, rule: Mapping) -> Callable[..., AnySchema]:
    rule_name = rule["name"]
    params = rule.get("params")
    names = _param_names(params)
    params_schema = cast.schema(root, params) if params is not None else None
    validate = rule.get("validate")
    setup = rule.get("setup")

    def builder(schema: AnySchema, *args: Any, **kwargs: Any) -> AnySchema:
        if len(args) > len(names):
            raise SchemaDefinitionError("Unexpected number of arguments")
        unexpected = [key for key in kwargs if key not in names]
        assert_that(not unexpected, "Unexpected arguments:", ", ".join(unexpected))

        arg: Dict[str, Any] = {}
        has_ref = False
        for index, name in enumerate(names):
            value = args[index] if index < len(args) else kwargs.get(name, UNDEFINED)
            if value is UNDEFINED:
                continue
            arg[name] = value
            has_ref = has_ref or is_ref(value)

        if params_schema is not None:
            arg = root.attempt(arg, params_schema)

        if validate is not None:

            def check(owner: AnySchema, value: Any, state: State, options: Dict[str, Any]) -> Any:
                return validate(owner, arg, value, state, options)

            result = schema._test(
                rule_name, arg, check, {"description": rule.get("description"), "has_ref": has_ref}
            )
            for value in arg.values():
                push(result._refs, value)
        else:
            result = schema.clone()

        if setup is not None:
            replacement = setup(result, arg)
            if replacement is not None:
                assert_that(
                    isinstance(replacement, AnySchema),
                    f"Setup of extension {type_name}().{rule_name}() must return None or a schema",
                )
                result = replacement

        return result

    builder.__name__ = rule_name
    return builder


def build_extension(root: "Root", definition: Mapping) -> Extension:
    """Create the Extension descriptor for a checked definition."""
    name = definition["name"]
    rules = {rule["name"]: _rule_builder(root, name, rule) for rule in definition.get("rules") or []}

    logger.debug("Building extension %s with rules %s", name, sorted(rules))
    return Extension(
        name=name,
        coerce=definition.get("coerce"),
        pre=definition.get("pre"),
        describe=definition.get("describe"),
        rules=rules,
    )


__all__ = [
    "Extension",
    "EXTENSION_SCHEMA",
    "RULE_SCHEMA",
    "ExtensionValidator",
    "check_extension",
    "build_extension",
]
