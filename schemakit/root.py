"""Schema factories.

A ``Root`` builds schemas (``root.string()``, ``root.object({...})``) and
offers the top-level helpers (``validate``, ``compile``, ``attempt``,
``reach``...). ``extend()`` and ``defaults()`` return new roots; a root is
never modified. Every schema remembers the root that built it so literals
cast inside its builders use the same extensions.
"""

import logging
from collections.abc import Mapping
from typing import Any, Callable, Dict, List, Optional, Type, Union

from schemakit import cast
from schemakit.extensions import build_extension, check_extension
from schemakit.reference import Reference, create, is_ref
from schemakit.schemas.alternatives import AlternativesSchema
from schemakit.schemas.any import AnySchema
from schemakit.schemas.array import ArraySchema
from schemakit.schemas.binary import BinarySchema
from schemakit.schemas.boolean import BooleanSchema
from schemakit.schemas.date import DateSchema
from schemakit.schemas.func import FuncSchema
from schemakit.schemas.lazy import LazySchema
from schemakit.schemas.number import NumberSchema
from schemakit.schemas.object import ObjectSchema
from schemakit.schemas.string import StringSchema
from schemakit.settings import concat_settings
from schemakit.types import UNDEFINED
from schemakit.utils import SchemaDefinitionError, assert_that, flatten

logger = logging.getLogger(__name__)

BUILTIN_TYPES: Dict[str, Type[AnySchema]] = {
    "any": AnySchema,
    "alternatives": AlternativesSchema,
    "array": ArraySchema,
    "boolean": BooleanSchema,
    "binary": BinarySchema,
    "date": DateSchema,
    "func": FuncSchema,
    "lazy": LazySchema,
    "number": NumberSchema,
    "object": ObjectSchema,
    "string": StringSchema,
}

Defaults = Callable[[AnySchema], AnySchema]


class Root:
    """Factory for schemas, optionally carrying extensions and defaults.

    Attributes:
        version: Package version

    Examples:
        >>> root = Root()
        >>> root.validate("a", root.string()).value
        'a'
        >>> root.attempt("12", root.number())
        12
    """

    version = "0.1.0"

    def __init__(self, types: Optional[Dict[str, AnySchema]] = None, defaults: Optional[Defaults] = None) -> None:
        self._types: Dict[str, AnySchema] = dict(types or {})
        self._defaults = defaults

    def __getattr__(self, name: str) -> Callable[..., AnySchema]:
        types = self.__dict__.get("_types") or {}
        if name in types:
            return lambda: self._make(name)
        raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}")

    def __repr__(self) -> str:
        return f"<Root types={sorted(self._types)}>"

    def _make(self, name: str) -> AnySchema:
        prototype = self._types.get(name)
        schema = prototype.clone() if prototype is not None else BUILTIN_TYPES[name]()
        schema._root = self

        if self._defaults is not None:
            schema = self._defaults(schema)
            assert_that(isinstance(schema, AnySchema), "defaults() must return a schema")
        return schema

    # ------------------------------------------------------------------ #
    # Factories                                                          #
    # ------------------------------------------------------------------ #

    def any(self) -> AnySchema:
        return self._make("any")

    def alternatives(self, *schemas: Any) -> AlternativesSchema:
        """Alternatives schema; positional schemas are passed to ``try_()``."""
        alternatives = self._make("alternatives")
        return alternatives.try_(*schemas) if schemas else alternatives

    alt = alternatives

    def array(self) -> ArraySchema:
        return self._make("array")

    def boolean(self) -> BooleanSchema:
        return self._make("boolean")

    bool = boolean

    def binary(self) -> BinarySchema:
        return self._make("binary")

    def date(self) -> DateSchema:
        return self._make("date")

    def func(self) -> FuncSchema:
        return self._make("func")

    def number(self) -> NumberSchema:
        return self._make("number")

    def object(self, schema: Any = UNDEFINED) -> ObjectSchema:
        """Object schema; a mapping argument declares its keys."""
        obj = self._make("object")
        return obj if schema is UNDEFINED else obj.keys(schema)

    def string(self) -> StringSchema:
        return self._make("string")

    def lazy(self, fn: Callable[[], AnySchema]) -> LazySchema:
        return self._make("lazy").set(fn)

    def ref(self, key: str, **options: Any) -> Reference:
        return create(key, **options)

    def is_ref(self, value: Any) -> bool:
        return is_ref(value)

    # ------------------------------------------------------------------ #
    # Shortcuts on any()                                                 #
    # ------------------------------------------------------------------ #

    def allow(self, *values: Any) -> AnySchema:
        return self.any().allow(*values)

    def valid(self, *values: Any) -> AnySchema:
        return self.any().valid(*values)

    only = valid
    equal = valid

    def invalid(self, *values: Any) -> AnySchema:
        return self.any().invalid(*values)

    disallow = invalid
    not_ = invalid

    def required(self) -> AnySchema:
        return self.any().required()

    exist = required

    def optional(self) -> AnySchema:
        return self.any().optional()

    def forbidden(self) -> AnySchema:
        return self.any().forbidden()

    def strip(self) -> AnySchema:
        return self.any().strip()

    def empty(self, schema: Any = UNDEFINED) -> AnySchema:
        return self.any().empty(schema)

    def default(self, value: Any = UNDEFINED, description: Optional[str] = None) -> AnySchema:
        return self.any().default(value, description)

    def when(self, condition: Any, options: Optional[Mapping] = None, **kwargs: Any) -> AnySchema:
        return self.any().when(condition, options, **kwargs)

    # ------------------------------------------------------------------ #
    # Helpers                                                            #
    # ------------------------------------------------------------------ #

    def validate(
        self,
        value: Any,
        schema: Any = UNDEFINED,
        options: Any = None,
        callback: Optional[Callable[..., Any]] = None,
    ) -> Any:
        """Validate ``value`` against ``schema`` (any literal accepted by ``compile``).

        ``callback`` may also be passed in place of ``schema`` or ``options``.
        """
        if callable(schema) and not isinstance(schema, AnySchema) and not is_ref(schema):
            schema, callback = UNDEFINED, schema
        if callable(options) and not isinstance(options, Mapping):
            options, callback = None, options

        if schema is UNDEFINED:
            return self.any().validate(value, callback=callback)

        return self.compile(schema)._validate_with_options(value, options, callback)

    def compile(self, schema: Any) -> AnySchema:
        """Turn a schema-like literal into a schema."""
        try:
            return cast.schema(self, schema)
        except SchemaDefinitionError as err:
            logger.debug("Failed to compile schema: %s", err)
            if hasattr(err, "path"):
                raise SchemaDefinitionError(f"{err}({err.path})") from err
            raise

    def describe(self, schema: Any = UNDEFINED) -> Dict[str, Any]:
        target = self.any() if schema is UNDEFINED else self.compile(schema)
        return target.describe()

    def attempt(self, value: Any, schema: Any, message: Union[None, str, BaseException] = None) -> Any:
        """Return the validated value or raise.

        The ValidationError message is replaced by the annotated input,
        prefixed with ``message`` when it is a string. An exception passed
        as ``message`` is raised instead.
        """
        result = self.validate(value, schema)
        error = result.error
        if error is None:
            return result.value

        if isinstance(message, BaseException):
            raise message

        annotate = getattr(error, "annotate", None)
        if callable(annotate):
            text = annotate()
            error.message = f"{message} {text}" if message else text
            error.args = (error.message,)
        raise error

    def assert_(self, value: Any, schema: Any, message: Union[None, str, BaseException] = None) -> None:
        self.attempt(value, schema, message)

    def reach(self, schema: AnySchema, path: Union[str, List[str]]) -> Optional[AnySchema]:
        """Return the child schema at ``path`` (dotted string or list of keys), or None."""
        assert_that(isinstance(schema, AnySchema), "you must provide a schema")
        assert_that(isinstance(path, (str, list, tuple)), "path must be a string or an array of strings")

        keys = path.split(".") if isinstance(path, str) else list(path)
        current: Optional[AnySchema] = schema
        for key in keys:
            children = current._inner.get("children")
            if not children:
                return None
            current = next((child.schema for child in children if child.key == key), None)
            if current is None:
                return None
        return current

    def defaults(self, fn: Defaults) -> "Root":
        """Return a root whose schemas all pass through ``fn`` when created."""
        assert_that(callable(fn), "Defaults must be a function")
        assert_that(isinstance(fn(AnySchema()), AnySchema), "defaults() must return a schema")

        previous = self._defaults

        def apply(schema: AnySchema) -> AnySchema:
            if previous is not None:
                schema = previous(schema)
                assert_that(isinstance(schema, AnySchema), "defaults() must return a schema")
            return fn(schema)

        return Root(self._types, apply)

    def extend(self, *extensions: Any) -> "Root":
        """Return a root with additional schema types (see ``schemakit.extensions``)."""
        extensions = flatten(extensions)
        assert_that(extensions, "You need to provide at least one extension")
        for extension in extensions:
            assert_that(
                isinstance(extension, Mapping) or callable(extension),
                "Extension must be an object or a function returning one",
            )

        root = Root(self._types, self._defaults)

        for definition in extensions:
            if not isinstance(definition, Mapping):
                definition = definition(root)
            check_extension(definition)

            name = definition["name"]
            extension = build_extension(root, definition)

            base = definition.get("base")
            prototype = base.clone() if base is not None else root.any()
            prototype._type = name
            prototype._extensions = prototype._extensions + (extension,)

            language = definition.get("language")
            if language:
                prototype._settings = concat_settings(prototype._settings, {"language": {name: dict(language)}})

            root._types[name] = prototype
            logger.debug("Registered schema type %s", name)

        return root


_default_root: Optional[Root] = None


def default_root() -> Root:
    """The root used by the module-level helpers and by bare literal casting."""
    global _default_root
    if _default_root is None:
        _default_root = Root()
    return _default_root


__all__ = ["Root", "BUILTIN_TYPES", "default_root"]
