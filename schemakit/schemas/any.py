"""Base schema shared by every schema kind.

``AnySchema`` owns everything common to all schemas: presence, allowed and
denied values, defaults, ordered rules, documentation metadata, and the
recursive validation walk. Concrete kinds override ``_base`` to narrow and
convert the value, and register their rules with ``_test``.

Every builder returns a new schema; an existing schema is never modified.
"""

import copy
import functools
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple

from schemakit import cast
from schemakit.errors import ErrorItem, SchemaDefinitionError, create_error, process_errors
from schemakit.reference import is_ref, push
from schemakit.settings import DEFAULT_OPTIONS, check_options, concat_settings
from schemakit.types import NOT_SET, UNDEFINED, Flags, Outcome, Presence, State
from schemakit.utils import arity, assert_that, clone, flatten, positional_capacity, same_value
from schemakit.validation import ValidationResult
from schemakit.value_set import ValueSet


class Rule(NamedTuple):
    """A registered rule: ``func(schema, value, state, options)`` returns the
    (possibly converted) value or an ErrorItem."""
    name: str
    arg: Any
    func: Callable[..., Any]
    options: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class DefaultFactory:
    """A callable default value and the description shown by ``describe()``."""
    fn: Callable[..., Any]
    description: Optional[str] = None


def _copy_inner(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, ValueSet):
        return value.slice()
    return list(value)


def _concat_inner(target: Any, source: Any) -> Any:
    if isinstance(target, ValueSet):
        return target.concat(source)
    return list(target) + list(source)


class AnySchema:
    """Schema accepting any value, and the base of every other schema kind.

    Attributes:
        schema_type: Type tag (``"any"``, ``"string"``, an extension name...)

    Examples:
        >>> schema = AnySchema().valid("a", "b")
        >>> schema.validate("a").value
        'a'
        >>> schema.validate("c").error.message
        '"value" must be one of [a, b]'
    """

    is_schemakit = True
    _extensions: Tuple[Any, ...] = ()
    _base: Optional[Callable[..., Outcome]] = None

    def __init__(self) -> None:
        self._extensions = ()
        self._root: Any = None
        self._type = "any"
        self._settings: Optional[Dict[str, Any]] = None
        self._base_type: Optional["AnySchema"] = None
        self._valids = ValueSet()
        self._invalids = ValueSet()
        self._tests: List[Rule] = []
        self._refs: List[str] = []
        self._flags = Flags()

        self._description: Optional[str] = None
        self._unit: Optional[str] = None
        self._notes: List[str] = []
        self._tags: List[str] = []
        self._examples: List[Any] = []
        self._meta: List[Any] = []

        self._inner: Dict[str, Any] = {}

    def __getattribute__(self, name: str) -> Any:
        # Rules contributed by extensions take precedence over built-in builders
        if name[:1] != "_":
            extensions = object.__getattribute__(self, "_extensions")
            for extension in reversed(extensions):
                builder = extension.rules.get(name)
                if builder is not None:
                    return functools.partial(builder, self)
        return object.__getattribute__(self, name)

    def __deepcopy__(self, memo: Dict[int, Any]) -> "AnySchema":
        return self

    def __repr__(self) -> str:
        return f"<{type(self).__name__} type={self._type}>"

    @property
    def schema_type(self) -> str:
        return self._type

    # ------------------------------------------------------------------ #
    # Errors                                                             #
    # ------------------------------------------------------------------ #

    def create_error(
        self,
        type: str,
        context: Optional[Dict[str, Any]],
        state: State,
        options: Dict[str, Any],
        flags: Optional[Flags] = None,
    ) -> ErrorItem:
        return create_error(type, context, state, options, flags if flags is not None else self._flags)

    def create_override_error(
        self,
        type: str,
        context: Optional[Dict[str, Any]],
        state: State,
        options: Dict[str, Any],
        message: Optional[str] = None,
        template: Optional[str] = None,
    ) -> ErrorItem:
        return create_error(type, context, state, options, self._flags, message, template)

    # ------------------------------------------------------------------ #
    # Copying and combining                                              #
    # ------------------------------------------------------------------ #

    def clone(self) -> "AnySchema":
        obj = copy.copy(self)
        obj._valids = self._valids.slice()
        obj._invalids = self._invalids.slice()
        obj._tests = list(self._tests)
        obj._refs = list(self._refs)
        obj._flags = self._flags.copy()
        obj._notes = list(self._notes)
        obj._tags = list(self._tags)
        obj._examples = list(self._examples)
        obj._meta = list(self._meta)
        obj._inner = {key: _copy_inner(value) for key, value in self._inner.items()}
        return obj

    def concat(self, schema: "AnySchema") -> "AnySchema":
        """Merge ``schema`` into a copy of this schema; ``schema`` wins on flags.

        Object children sharing a key are concatenated recursively.
        """
        assert_that(isinstance(schema, AnySchema), "Invalid schema object")
        assert_that(
            self._type == "any" or schema._type == "any" or schema._type == self._type,
            "Cannot merge type",
            self._type,
            "with another type:",
            schema._type,
        )

        obj = self.clone()

        if self._type == "any" and schema._type != "any":
            # Take the concrete kind from schema but keep our own state
            target = schema.clone()
            for name in (
                "_settings", "_valids", "_invalids", "_tests", "_refs", "_flags", "_description",
                "_unit", "_notes", "_tags", "_examples", "_meta", "_inner",
            ):
                setattr(target, name, getattr(obj, name))
            obj = target

        obj._settings = concat_settings(obj._settings, schema._settings) if obj._settings else schema._settings
        obj._valids.merge(schema._valids, schema._invalids)
        obj._invalids.merge(schema._invalids, schema._valids)
        obj._tests = obj._tests + schema._tests
        obj._refs = obj._refs + schema._refs
        obj._flags = obj._flags.merge(schema._flags)

        obj._description = schema._description or obj._description
        obj._unit = schema._unit or obj._unit
        obj._notes = obj._notes + schema._notes
        obj._tags = obj._tags + schema._tags
        obj._examples = obj._examples + schema._examples
        obj._meta = obj._meta + schema._meta

        is_object = obj._type == "object"
        for key, source in schema._inner.items():
            if source is None:
                obj._inner.setdefault(key, None)
                continue

            target_inner = obj._inner.get(key)
            if target_inner is None:
                obj._inner[key] = _copy_inner(source)
            elif is_object and key == "children":
                positions = {child.key: index for index, child in enumerate(target_inner)}
                for child in source:
                    if child.key in positions:
                        index = positions[child.key]
                        target_inner[index] = target_inner[index]._replace(
                            schema=target_inner[index].schema.concat(child.schema)
                        )
                    else:
                        target_inner.append(child)
            else:
                obj._inner[key] = _concat_inner(target_inner, source)

        return obj

    def _test(
        self, name: str, arg: Any, func: Callable[..., Any], options: Optional[Dict[str, Any]] = None
    ) -> "AnySchema":
        obj = self.clone()
        obj._tests.append(Rule(name, arg, func, options))
        push(obj._refs, arg)
        return obj

    # ------------------------------------------------------------------ #
    # Settings and flags                                                 #
    # ------------------------------------------------------------------ #

    def options(self, options: Dict[str, Any]) -> "AnySchema":
        """Attach validation options to this schema and its subtree."""
        assert_that(not options.get("context"), "Cannot override context")
        check_options(options)

        obj = self.clone()
        obj._settings = concat_settings(obj._settings, options)
        return obj

    def strict(self, is_strict: Optional[bool] = None) -> "AnySchema":
        obj = self.clone()
        convert = False if is_strict is None else not is_strict
        obj._settings = concat_settings(obj._settings, {"convert": convert})
        return obj

    def raw(self, is_raw: Optional[bool] = None) -> "AnySchema":
        value = True if is_raw is None else is_raw
        if self._flags.raw == value:
            return self

        obj = self.clone()
        obj._flags.raw = value
        return obj

    def error(self, err: Any) -> "AnySchema":
        """Replace the errors of this schema with an exception or a mapping function.

        An exception instance is returned by ``validate()`` instead of the
        ValidationError. A function receives the list of errors and returns
        a message string, an exception, or error-like objects/dicts with
        ``type``, ``context``, ``message`` and ``template``.
        """
        assert_that(
            err is not None and (isinstance(err, BaseException) or callable(err)),
            "Must provide a valid Error object or a function",
        )
        obj = self.clone()
        obj._flags.error = err
        return obj

    def allow(self, *values: Any) -> "AnySchema":
        obj = self.clone()
        for value in flatten(values):
            assert_that(value is not UNDEFINED, "Cannot call allow/valid/invalid with undefined")
            obj._invalids.remove(value)
            obj._valids.add(value, obj._refs)
        return obj

    def valid(self, *values: Any) -> "AnySchema":
        obj = self.allow(*values)
        obj._flags.allow_only = True
        return obj

    def invalid(self, *values: Any) -> "AnySchema":
        obj = self.clone()
        for value in flatten(values):
            assert_that(value is not UNDEFINED, "Cannot call allow/valid/invalid with undefined")
            obj._valids.remove(value)
            obj._invalids.add(value, obj._refs)
        return obj

    def required(self) -> "AnySchema":
        if self._flags.presence == Presence.REQUIRED:
            return self

        obj = self.clone()
        obj._flags.presence = Presence.REQUIRED
        return obj

    def optional(self) -> "AnySchema":
        if self._flags.presence == Presence.OPTIONAL:
            return self

        obj = self.clone()
        obj._flags.presence = Presence.OPTIONAL
        return obj

    def forbidden(self) -> "AnySchema":
        if self._flags.presence == Presence.FORBIDDEN:
            return self

        obj = self.clone()
        obj._flags.presence = Presence.FORBIDDEN
        return obj

    def strip(self) -> "AnySchema":
        if self._flags.strip:
            return self

        obj = self.clone()
        obj._flags.strip = True
        return obj

    def apply_function_to_children(
        self, children: Any, fn: str, args: Tuple[Any, ...], root: Optional[str] = None
    ) -> "AnySchema":
        children = list(children) if isinstance(children, (list, tuple)) else [children]

        if len(children) != 1 or children[0] != "":
            prefix = root + "." if root else ""
            extra = children[1:] if children[0] == "" else children
            raise SchemaDefinitionError("unknown key(s) " + ", ".join(prefix + child for child in extra))

        return getattr(self, fn)(*args)

    def default(self, value: Any = UNDEFINED, description: Optional[str] = None) -> "AnySchema":
        """Value used when the input is missing.

        ``value`` may be a literal (deep-copied on use), a reference, or a
        function called as ``fn(parent, options)`` (or with no arguments when
        it takes none). Functions need a description, given here or as a
        ``description`` attribute, except on ``func()`` schemas where an
        undescribed function is the literal default. ``default()`` with no
        value on an object schema builds the object from its children's
        defaults.
        """
        if callable(value) and not is_ref(value):
            description = description or getattr(value, "description", None)
            if not self._flags.func:
                assert_that(
                    isinstance(description, str) and len(description) > 0,
                    "description must be provided when default value is a function",
                )
            if description:
                value = DefaultFactory(value, description)

        obj = self.clone()
        obj._flags.default = value
        push(obj._refs, value)
        return obj

    def empty(self, schema: Any = UNDEFINED) -> "AnySchema":
        """Treat values matching ``schema`` as missing; no argument clears it."""
        obj = self.clone()
        if schema is UNDEFINED:
            obj._flags.empty = None
        else:
            obj._flags.empty = cast.schema(self._root, schema)
        return obj

    def when(self, condition: Any, options: Optional[Mapping] = None, **kwargs: Any) -> "AnySchema":
        """Switch to ``then`` or ``otherwise`` (both concatenated onto this schema).

        Options may be passed as a dict (``{"is": ..., "then": ...}``) or as
        keyword arguments (``is_=..., then=..., otherwise=...``).
        """
        options = _when_options(options, kwargs)
        assert_that(
            options.get("then", UNDEFINED) is not UNDEFINED or options.get("otherwise", UNDEFINED) is not UNDEFINED,
            'options must have at least one of "then" or "otherwise"',
        )

        alternative_options: Dict[str, Any] = {
            "then": self.concat(cast.schema(self._root, options["then"])) if "then" in options else UNDEFINED,
            "otherwise": (
                self.concat(cast.schema(self._root, options["otherwise"])) if "otherwise" in options else UNDEFINED
            ),
        }
        if "is" in options:
            alternative_options["is"] = options["is"]

        from schemakit.schemas.alternatives import AlternativesSchema

        alternatives = AlternativesSchema()
        alternatives._root = self._root
        obj = alternatives.when(condition, alternative_options)
        obj._flags.presence = Presence.IGNORE
        obj._base_type = self
        return obj

    # ------------------------------------------------------------------ #
    # Documentation                                                      #
    # ------------------------------------------------------------------ #

    def description(self, desc: str) -> "AnySchema":
        assert_that(desc and isinstance(desc, str), "Description must be a non-empty string")

        obj = self.clone()
        obj._description = desc
        return obj

    def notes(self, notes: Any) -> "AnySchema":
        assert_that(notes and isinstance(notes, (str, list)), "Notes must be a non-empty string or array")

        obj = self.clone()
        obj._notes = obj._notes + (list(notes) if isinstance(notes, list) else [notes])
        return obj

    def tags(self, tags: Any) -> "AnySchema":
        assert_that(tags and isinstance(tags, (str, list)), "Tags must be a non-empty string or array")

        obj = self.clone()
        obj._tags = obj._tags + (list(tags) if isinstance(tags, list) else [tags])
        return obj

    def meta(self, meta: Any = UNDEFINED) -> "AnySchema":
        assert_that(meta is not UNDEFINED, "Meta cannot be undefined")

        obj = self.clone()
        obj._meta = obj._meta + (list(meta) if isinstance(meta, list) else [meta])
        return obj

    def example(self, *args: Any) -> "AnySchema":
        assert_that(len(args) == 1, "Missing example")

        obj = self.clone()
        obj._examples.append(args[0])
        return obj

    def unit(self, name: str) -> "AnySchema":
        assert_that(name and isinstance(name, str), "Unit name must be a non-empty string")

        obj = self.clone()
        obj._unit = name
        return obj

    def label(self, name: str) -> "AnySchema":
        assert_that(name and isinstance(name, str), "Label name must be a non-empty string")

        obj = self.clone()
        obj._flags.label = name
        return obj

    def _get_label(self, default: Any = None) -> Any:
        return self._flags.label or default

    # ------------------------------------------------------------------ #
    # Validation                                                         #
    # ------------------------------------------------------------------ #

    def _prepare_empty_value(self, value: Any) -> Any:
        if isinstance(value, str) and self._flags.trim:
            return value.strip()
        return value

    def _run_coerce(self, value: Any, state: State, options: Dict[str, Any]) -> Optional[Outcome]:
        hooks = [extension.coerce for extension in self._extensions if extension.coerce]
        if not hooks:
            return None

        for hook in hooks:
            result = hook(self, value, state, options)
            if isinstance(result, ErrorItem):
                return Outcome(value=value, errors=[result])
            value = result
        return Outcome(value=value)

    def _run_base(self, value: Any, state: State, options: Dict[str, Any]) -> Optional[Outcome]:
        hooks = [extension.pre for extension in self._extensions if extension.pre]
        if self._base is None and not hooks:
            return None

        if self._base is not None:
            result = self._base(value, state, options)
            if result.errors:
                return result
            value = result.value

        for hook in hooks:
            ret = hook(self, value, state, options)
            if isinstance(ret, ErrorItem):
                return Outcome(value=value, errors=[ret])
            value = ret
        return Outcome(value=value)

    def _denied_error(self, value: Any, state: State, options: Dict[str, Any]) -> ErrorItem:
        return self.create_error(
            "any.empty" if isinstance(value, str) and value == "" else "any.invalid",
            {"value": value, "invalids": self._invalids.values(strip_undefined=True)},
            state,
            options,
        )

    def _validate(
        self,
        value: Any,
        state: Optional[State],
        options: Dict[str, Any],
        reference: Any = None,
    ) -> Outcome:
        original_value = value

        if state is None:
            state = State(reference=reference)

        if self._settings:
            options = concat_settings(options, self._settings)

        errors: List[Any] = []

        coerced = self._run_coerce(value, state, options)
        if coerced is not None:
            if coerced.errors:
                return self._finish(coerced.value, original_value, coerced.errors, state, options)
            value = coerced.value

        empty = self._flags.empty
        if empty is not None and not empty._validate(self._prepare_empty_value(value), None, DEFAULT_OPTIONS).errors:
            value = UNDEFINED

        presence = self._flags.presence or options.get("presence")
        if presence == Presence.OPTIONAL:
            if value is UNDEFINED:
                if self._flags.default is UNDEFINED and self._type == "object":
                    value = {}
                else:
                    return self._finish(value, original_value, errors, state, options)
        elif presence == Presence.REQUIRED and value is UNDEFINED:
            errors.append(self.create_error("any.required", None, state, options))
            return self._finish(value, original_value, errors, state, options)
        elif presence == Presence.FORBIDDEN:
            if value is UNDEFINED:
                return self._finish(value, original_value, errors, state, options)
            errors.append(self.create_error("any.unknown", None, state, options))
            return self._finish(value, original_value, errors, state, options)

        insensitive = self._flags.insensitive
        if self._valids.has(value, state, options, insensitive):
            return self._finish(value, original_value, errors, state, options)

        if self._invalids.has(value, state, options, insensitive):
            errors.append(self._denied_error(value, state, options))
            if options.get("abort_early") or value is UNDEFINED:
                return self._finish(value, original_value, errors, state, options)

        base = self._run_base(value, state, options)
        if base is not None:
            if base.errors:
                return self._finish(base.value, original_value, errors + base.errors, state, options)

            if not same_value(base.value, value):
                value = base.value

                if self._valids.has(value, state, options, insensitive):
                    return self._finish(value, original_value, errors, state, options)

                if self._invalids.has(value, state, options, insensitive):
                    errors.append(self._denied_error(value, state, options))
                    if options.get("abort_early"):
                        return self._finish(value, original_value, errors, state, options)

        if self._flags.allow_only:
            errors.append(
                self.create_error(
                    "any.allowOnly",
                    {"value": value, "valids": self._valids.values(strip_undefined=True)},
                    state,
                    options,
                )
            )
            if options.get("abort_early"):
                return self._finish(value, original_value, errors, state, options)

        for rule in self._tests:
            ret = rule.func(self, value, state, options)
            if isinstance(ret, ErrorItem):
                errors.append(ret)
                if options.get("abort_early"):
                    return self._finish(value, original_value, errors, state, options)
            else:
                value = ret

        return self._finish(value, original_value, errors, state, options)

    def _finish(
        self, value: Any, original_value: Any, errors: List[Any], state: State, options: Dict[str, Any]
    ) -> Outcome:
        flags = self._flags
        errors = list(errors)

        if value is not UNDEFINED:
            final_value = original_value if flags.raw else value
        elif options.get("no_defaults"):
            final_value = value
        elif is_ref(flags.default):
            final_value = flags.default(state.parent, options)
        elif isinstance(flags.default, DefaultFactory):
            fn = flags.default.fn
            args: List[Any] = []
            if arity(fn) > 0:
                args = [clone(state.parent), options][: positional_capacity(fn)]
            try:
                final_value = fn(*args)
            except Exception as exc:
                final_value = UNDEFINED
                errors.append(self.create_error("any.default", {"error": exc}, state, options))
        elif flags.default is NOT_SET:
            final_value = UNDEFINED
        else:
            final_value = clone(flags.default)

        if errors and callable(flags.error) and not isinstance(flags.error, BaseException):
            try:
                change = flags.error(errors)
            except Exception as exc:
                errors = [self.create_error("any.default", {"error": exc}, state, options)]
            else:
                errors = self._apply_error_change(change, errors, state, options)

        return Outcome(
            value=UNDEFINED if flags.strip else final_value,
            errors=errors or None,
            final_value=final_value,
        )

    def _apply_error_change(
        self, change: Any, errors: List[Any], state: State, options: Dict[str, Any]
    ) -> List[Any]:
        if isinstance(change, str):
            return [self.create_override_error("override", {"reason": errors}, state, options, change)]

        items = change if isinstance(change, list) else [change]
        return [
            item if isinstance(item, BaseException) else self._override_from(item, state, options)
            for item in items
        ]

    def _override_from(self, item: Any, state: State, options: Dict[str, Any]) -> ErrorItem:
        if isinstance(item, Mapping):
            read = item.get
        else:
            def read(name: str) -> Any:
                return getattr(item, name, None)

        return self.create_override_error(
            read("type") or "override",
            read("context"),
            state,
            options,
            read("message"),
            read("template"),
        )

    def validate(self, value: Any, options: Any = None, callback: Optional[Callable[..., Any]] = None) -> Any:
        """Validate ``value`` and return a ValidationResult.

        When ``callback`` is given (or passed in place of ``options``) it is
        called as ``callback(error, value)`` and its return value is returned.
        """
        if callable(options) and not isinstance(options, Mapping):
            return self._validate_with_options(value, None, options)
        return self._validate_with_options(value, options, callback)

    def _validate_with_options(
        self, value: Any, options: Optional[Dict[str, Any]], callback: Optional[Callable[..., Any]]
    ) -> Any:
        if options:
            check_options(options)

        settings = concat_settings(DEFAULT_OPTIONS, options)
        result = self._validate(value, None, settings)
        error = process_errors(result.errors, value)

        if callback is not None:
            return callback(error, result.value)
        return ValidationResult(error, result.value)

    # ------------------------------------------------------------------ #
    # Introspection                                                      #
    # ------------------------------------------------------------------ #

    def describe(self) -> Dict[str, Any]:
        """Plain-dict description of this schema (type, flags, values, rules)."""
        description: Dict[str, Any] = {"type": self._type}

        flags = dict(self._flags.items())
        if flags:
            if any(name in flags for name in ("empty", "default", "lazy", "label")):
                described: Dict[str, Any] = {}
                for name, value in flags.items():
                    if name == "empty":
                        described[name] = value.describe()
                    elif name == "default":
                        described[name] = _describe_default(value)
                    elif name in ("lazy", "label"):
                        continue
                    else:
                        described[name] = value
                description["flags"] = described
            else:
                description["flags"] = flags

        if self._settings:
            description["options"] = clone(self._settings)

        if self._base_type is not None:
            description["base"] = self._base_type.describe()

        if self._description:
            description["description"] = self._description

        if self._notes:
            description["notes"] = list(self._notes)

        if self._tags:
            description["tags"] = list(self._tags)

        if self._meta:
            description["meta"] = list(self._meta)

        if self._examples:
            description["examples"] = list(self._examples)

        if self._unit:
            description["unit"] = self._unit

        valids = self._valids.values()
        if valids:
            description["valids"] = [str(v) if is_ref(v) else v for v in valids]

        invalids = self._invalids.values()
        if invalids:
            description["invalids"] = [str(v) if is_ref(v) else v for v in invalids]

        rules = [_describe_rule(rule) for rule in self._tests]
        if rules:
            description["rules"] = rules

        label = self._get_label()
        if label:
            description["label"] = label

        for extension in self._extensions:
            if extension.describe:
                description = extension.describe(self, description)

        return description

    # Aliases
    only = valid
    equal = valid
    disallow = invalid
    not_ = invalid
    exist = required


def _when_options(options: Optional[Mapping], kwargs: Dict[str, Any]) -> Dict[str, Any]:
    assert_that(options is None or isinstance(options, Mapping), "Invalid options")
    merged = dict(options or {})
    if "is_" in kwargs:
        merged["is"] = kwargs.pop("is_")
    merged.update(kwargs)
    assert_that(merged, "Invalid options")
    return merged


def _describe_default(value: Any) -> Any:
    if is_ref(value):
        return str(value)
    if isinstance(value, DefaultFactory):
        return {"description": value.description, "function": value.fn}
    if callable(value):
        return {"description": getattr(value, "description", None), "function": value}
    return value


def _describe_rule(rule: Rule) -> Dict[str, Any]:
    item: Dict[str, Any] = {"name": rule.name}

    if rule.arg is not UNDEFINED and rule.arg is not None:
        item["arg"] = str(rule.arg) if is_ref(rule.arg) else rule.arg

    options = rule.options
    if options:
        if options.get("has_ref"):
            item["arg"] = {key: str(value) if is_ref(value) else value for key, value in rule.arg.items()}

        description = options.get("description")
        if isinstance(description, str):
            item["description"] = description
        elif callable(description):
            item["description"] = description(item.get("arg"))

    return item


__all__ = ["AnySchema", "Rule", "DefaultFactory"]
