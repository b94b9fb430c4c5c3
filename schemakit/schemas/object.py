"""Object schema: keyed children, unknown keys, renames and key dependencies."""

import json
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Union

from schemakit import cast
from schemakit.errors import ErrorItem, SchemaDefinitionError, format_pattern
from schemakit.reference import Reference
from schemakit.schemas.any import AnySchema
from schemakit.topo import Topo
from schemakit.types import UNDEFINED, Flags, Outcome, State
from schemakit.utils import assert_that, flatten, is_safe_integer

_PRIMITIVES = (str, bytes, bytearray, bool, int, float, list, tuple, set, frozenset)


class Child(NamedTuple):
    key: Any
    schema: AnySchema


class Pattern(NamedTuple):
    regex: "re.Pattern[str]"
    rule: AnySchema


@dataclass(frozen=True)
class Rename:
    from_: Union[str, "re.Pattern[str]"]
    to: str
    options: Dict[str, bool] = field(default_factory=dict)

    @property
    def is_regex(self) -> bool:
        return isinstance(self.from_, re.Pattern)


class Dependency(NamedTuple):
    type: str
    key: Optional[str]
    peers: List[str]


def _safe_parse(value: str) -> Any:
    try:
        return json.loads(value)
    except ValueError:
        return value


def _is_object(value: Any) -> bool:
    if isinstance(value, Mapping):
        return True
    if value is None or value is UNDEFINED or isinstance(value, _PRIMITIVES):
        return False
    return not callable(value)


def _is_function(value: Any) -> bool:
    return callable(value) and not isinstance(value, Mapping)


def _key_count(value: Any) -> int:
    if isinstance(value, Mapping):
        return len(value)
    return len(getattr(value, "__dict__", {}))


def _present(parent: Dict[Any, Any], key: Any) -> bool:
    return key in parent and parent[key] is not UNDEFINED


def _group_children(children: List[str]) -> Dict[str, List[str]]:
    for child in children:
        assert_that(isinstance(child, str), "children must be strings")

    grouped: Dict[str, List[str]] = {}
    for child in sorted(children):
        group = child.split(".")[0]
        grouped.setdefault(group, []).append(child[len(group) + 1:])
    return grouped


def _keys_to_labels(schema: "ObjectSchema", keys: Any) -> Any:
    children = schema._inner["children"]
    if children is None:
        return keys

    def find_label(key: Any) -> Any:
        for child in children:
            if child.key == key:
                return child.schema._get_label(key)
        return key

    if isinstance(keys, list):
        return [find_label(key) for key in keys]
    return find_label(keys)


# --------------------------------------------------------------------------- #
# Dependency checks                                                           #
# --------------------------------------------------------------------------- #

def _with(schema, value, peers, parent, state, options):
    if value is UNDEFINED:
        return value

    for peer in peers:
        if not _present(parent, peer):
            return schema.create_error(
                "object.with",
                {
                    "main": state.key,
                    "mainWithLabel": _keys_to_labels(schema, state.key),
                    "peer": peer,
                    "peerWithLabel": _keys_to_labels(schema, peer),
                },
                state,
                options,
            )
    return value


def _without(schema, value, peers, parent, state, options):
    if value is UNDEFINED:
        return value

    for peer in peers:
        if _present(parent, peer):
            return schema.create_error(
                "object.without",
                {
                    "main": state.key,
                    "mainWithLabel": _keys_to_labels(schema, state.key),
                    "peer": peer,
                    "peerWithLabel": _keys_to_labels(schema, peer),
                },
                state,
                options,
            )
    return value


def _xor(schema, value, peers, parent, state, options):
    present = [peer for peer in peers if _present(parent, peer)]
    if len(present) == 1:
        return value

    context = {"peers": peers, "peersWithLabels": _keys_to_labels(schema, peers)}
    if not present:
        return schema.create_error("object.missing", context, state, options)
    return schema.create_error("object.xor", context, state, options)


def _or(schema, value, peers, parent, state, options):
    if any(_present(parent, peer) for peer in peers):
        return value

    return schema.create_error(
        "object.missing",
        {"peers": peers, "peersWithLabels": _keys_to_labels(schema, peers)},
        state,
        options,
    )


def _and(schema, value, peers, parent, state, options):
    missing = [peer for peer in peers if not _present(parent, peer)]
    present = [peer for peer in peers if _present(parent, peer)]

    if len(missing) == len(peers) or len(present) == len(peers):
        return None

    return schema.create_error(
        "object.and",
        {
            "present": present,
            "presentWithLabels": _keys_to_labels(schema, present),
            "missing": missing,
            "missingWithLabels": _keys_to_labels(schema, missing),
        },
        state,
        options,
    )


def _nand(schema, value, peers, parent, state, options):
    if not all(_present(parent, peer) for peer in peers):
        return None

    main, rest = peers[0], list(peers[1:])
    return schema.create_error(
        "object.nand",
        {
            "main": main,
            "mainWithLabel": _keys_to_labels(schema, main),
            "peers": rest,
            "peersWithLabels": _keys_to_labels(schema, rest),
        },
        state,
        options,
    )


_DEPENDENCY_CHECKS: Dict[str, Callable[..., Any]] = {
    "with": _with,
    "without": _without,
    "xor": _xor,
    "or": _or,
    "and": _and,
    "nand": _nand,
}


class ObjectSchema(AnySchema):
    """Schema for dicts (and, with ``func()``, for callables).

    ``keys()`` declares the known children; with children declared, any other
    key is an error unless ``unknown()`` or the ``allow_unknown`` option says
    otherwise. Children are validated in an order where a key referencing a
    sibling comes after that sibling.

    Examples:
        >>> from schemakit import number, object, string
        >>> schema = object({"a": number().required(), "b": string().default("x")})
        >>> schema.validate({"a": 5}).value
        {'a': 5, 'b': 'x'}
        >>> schema.validate({}).error.details[0].path
        ['a']
    """

    def __init__(self) -> None:
        super().__init__()
        self._type = "object"
        self._inner["children"] = None
        self._inner["renames"] = []
        self._inner["dependencies"] = []
        self._inner["patterns"] = []

    def _base(self, value: Any, state: State, options: Dict[str, Any]) -> Outcome:
        original = value
        errors: List[Any] = []

        if isinstance(value, str) and options.get("convert"):
            value = _safe_parse(value)

        kind = "function" if self._flags.func else "object"
        accepted = _is_function(value) if self._flags.func else _is_object(value)
        if not accepted:
            return Outcome(value=original, errors=[self.create_error(kind + ".base", None, state, options)])

        inner = self._inner
        if not inner["renames"] and not inner["dependencies"] and inner["children"] is None and not inner["patterns"]:
            return Outcome(value=value)

        # Keys are processed on a shallow copy; callables and instances keep
        # their identity and only have their attributes checked.
        if isinstance(value, Mapping):
            target: Dict[Any, Any] = dict(value)
        else:
            target = dict(getattr(value, "__dict__", {}))

        def done() -> Outcome:
            result = target if isinstance(value, Mapping) else value
            return Outcome(value=result, errors=errors or None)

        renamed: Dict[str, bool] = {}
        for rename in inner["renames"]:
            error = self._apply_rename(rename, target, renamed, state, options, errors)
            if error and options.get("abort_early"):
                return done()

        if inner["children"] is None and not inner["patterns"] and not inner["dependencies"]:
            return done()

        unprocessed = dict.fromkeys(target)

        if inner["children"] is not None:
            strip_props: List[Any] = []

            for child in inner["children"]:
                key = child.key
                item = target.get(key, UNDEFINED)
                unprocessed.pop(key, None)

                local_state = State(key=key, path=state.path + [key], parent=target, reference=state.reference)
                result = child.schema._validate(item, local_state, options)
                if result.errors:
                    errors.append(
                        self.create_error(
                            "object.child",
                            {"key": key, "child": child.schema._get_label(key), "reason": result.errors},
                            local_state,
                            options,
                        )
                    )
                    if options.get("abort_early"):
                        return done()
                elif child.schema._flags.strip or (result.value is UNDEFINED and item is not UNDEFINED):
                    strip_props.append(key)
                    target[key] = result.final_value
                elif result.value is not UNDEFINED:
                    target[key] = result.value

            for key in strip_props:
                target.pop(key, None)

        if unprocessed and inner["patterns"]:
            for key in list(unprocessed):
                local_state = State(key=key, path=state.path + [key], parent=target, reference=state.reference)
                item = target[key]

                for pattern in inner["patterns"]:
                    if not pattern.regex.search(str(key)):
                        continue

                    unprocessed.pop(key, None)
                    result = pattern.rule._validate(item, local_state, options)
                    if result.errors:
                        errors.append(
                            self.create_error(
                                "object.child",
                                {"key": key, "child": pattern.rule._get_label(key), "reason": result.errors},
                                local_state,
                                options,
                            )
                        )
                        if options.get("abort_early"):
                            return done()

                    target[key] = result.value

        if unprocessed and (inner["children"] is not None or inner["patterns"]):
            strip_unknown_option = options.get("strip_unknown")
            if (strip_unknown_option and self._flags.allow_unknown is not True) or options.get("skip_functions"):
                if isinstance(strip_unknown_option, Mapping):
                    strip_unknown = bool(strip_unknown_option.get("objects"))
                else:
                    strip_unknown = bool(strip_unknown_option)

                for key in list(unprocessed):
                    if strip_unknown:
                        target.pop(key, None)
                        unprocessed.pop(key, None)
                    elif callable(target[key]):
                        unprocessed.pop(key, None)

            if self._flags.allow_unknown is not None:
                forbid_unknown = not self._flags.allow_unknown
            else:
                forbid_unknown = not options.get("allow_unknown")

            if forbid_unknown:
                for key in unprocessed:
                    errors.append(
                        self.create_error(
                            "object.allowUnknown",
                            {"child": key},
                            State(key=key, path=state.path + [key]),
                            options,
                            Flags(),
                        )
                    )

        for dependency in inner["dependencies"]:
            main = target.get(dependency.key, UNDEFINED) if dependency.key is not None else False
            dependency_state = State(
                key=dependency.key,
                path=state.path if dependency.key is None else state.path + [dependency.key],
            )
            error = _DEPENDENCY_CHECKS[dependency.type](
                self, main, dependency.peers, target, dependency_state, options
            )
            if isinstance(error, ErrorItem):
                errors.append(error)
                if options.get("abort_early"):
                    return done()

        return done()

    def _apply_rename(
        self,
        rename: Rename,
        target: Dict[Any, Any],
        renamed: Dict[str, bool],
        state: State,
        options: Dict[str, Any],
        errors: List[Any],
    ) -> bool:
        """Apply one rename to ``target``; return True when it produced an error."""
        settings = rename.options
        failed = False

        if rename.is_regex:
            matched = [key for key in target if isinstance(key, str) and rename.from_.search(key)]
            all_undefined = all(target[key] is UNDEFINED for key in matched)
            if settings["ignore_undefined"] and all_undefined:
                return False
            source: Any = matched
            code = "object.rename.regex"
        else:
            all_undefined = target.get(rename.from_, UNDEFINED) is UNDEFINED
            if settings["ignore_undefined"] and all_undefined:
                return False
            source = rename.from_
            code = "object.rename"

        if not settings["multiple"] and renamed.get(rename.to):
            errors.append(self.create_error(code + ".multiple", {"from": source, "to": rename.to}, state, options))
            failed = True
            if options.get("abort_early"):
                return failed

        if rename.to in target and not settings["override"] and not renamed.get(rename.to):
            errors.append(self.create_error(code + ".override", {"from": source, "to": rename.to}, state, options))
            failed = True
            if options.get("abort_early"):
                return failed

        if all_undefined:
            target.pop(rename.to, None)
        else:
            target[rename.to] = target[matched[-1]] if rename.is_regex else target[rename.from_]

        renamed[rename.to] = True

        if not settings["alias"]:
            for key in matched if rename.is_regex else [rename.from_]:
                target.pop(key, None)

        return failed

    # ------------------------------------------------------------------ #
    # Builders                                                           #
    # ------------------------------------------------------------------ #

    def keys(self, schema: Optional[Mapping] = None) -> "ObjectSchema":
        """Declare (or extend) the known children.

        ``keys()`` allows any keys again; ``keys({})`` allows none. Keys
        already declared are replaced when given again.
        """
        assert_that(schema is None or isinstance(schema, Mapping), "Object schema must be a valid object")

        obj = self.clone()

        if schema is None:
            obj._inner["children"] = None
            return obj

        if not schema:
            obj._inner["children"] = []
            return obj

        topo = Topo()
        for child in obj._inner["children"] or []:
            if child.key not in schema:
                topo.add(child, after=child.schema._refs, group=child.key)

        for key, config in schema.items():
            try:
                candidate = cast.schema(self._root, config)
            except SchemaDefinitionError as err:
                err.path = f"{key}.{err.path}" if hasattr(err, "path") else key
                raise
            topo.add(Child(key, candidate), after=candidate._refs, group=key)

        obj._inner["children"] = topo.nodes
        return obj

    def append(self, schema: Optional[Mapping] = None) -> "ObjectSchema":
        if not schema:
            return self
        return self.keys(schema)

    def unknown(self, allow: bool = True) -> "ObjectSchema":
        value = allow is not False
        if self._flags.allow_unknown == value:
            return self

        obj = self.clone()
        obj._flags.allow_unknown = value
        return obj

    def _key_limit(self, name: str, limit: int, compare: Callable[[int, int], bool]) -> "ObjectSchema":
        assert_that(is_safe_integer(limit) and limit >= 0, "limit must be a positive integer")

        def check(schema: AnySchema, value: Any, state: State, options: Dict[str, Any]) -> Any:
            if compare(_key_count(value), limit):
                return value
            return schema.create_error("object." + name, {"limit": limit}, state, options)

        return self._test(name, limit, check)

    def length(self, limit: int) -> "ObjectSchema":
        return self._key_limit("length", limit, lambda count, limit: count == limit)

    def min(self, limit: int) -> "ObjectSchema":
        return self._key_limit("min", limit, lambda count, limit: count >= limit)

    def max(self, limit: int) -> "ObjectSchema":
        return self._key_limit("max", limit, lambda count, limit: count <= limit)

    def pattern(self, pattern: Any, schema: Any = UNDEFINED) -> "ObjectSchema":
        """Validate every unknown key matching ``pattern`` against ``schema``."""
        if isinstance(pattern, str):
            pattern = re.compile(pattern)
        assert_that(isinstance(pattern, re.Pattern), "Invalid regular expression")
        assert_that(schema is not UNDEFINED, "Invalid rule")

        pattern = re.compile(pattern.pattern, pattern.flags & re.IGNORECASE)

        try:
            rule = cast.schema(self._root, schema)
        except SchemaDefinitionError as err:
            if hasattr(err, "path"):
                raise SchemaDefinitionError(f"{err}({err.path})") from err
            raise

        obj = self.clone()
        obj._inner["patterns"].append(Pattern(pattern, rule))
        return obj

    def schema(self) -> "ObjectSchema":
        """Require the value to be a schema object."""

        def check(schema: AnySchema, value: Any, state: State, options: Dict[str, Any]) -> Any:
            if isinstance(value, AnySchema):
                return value
            return schema.create_error("object.schema", None, state, options)

        return self._test("schema", None, check)

    def with_(self, key: str, peers: Any) -> "ObjectSchema":
        """When ``key`` is present, every peer must be present too."""
        return self._dependency("with", key, peers)

    def without(self, key: str, peers: Any) -> "ObjectSchema":
        """When ``key`` is present, no peer may be present."""
        return self._dependency("without", key, peers)

    def xor(self, *peers: Any) -> "ObjectSchema":
        return self._dependency("xor", None, flatten(peers))

    def or_(self, *peers: Any) -> "ObjectSchema":
        return self._dependency("or", None, flatten(peers))

    def and_(self, *peers: Any) -> "ObjectSchema":
        return self._dependency("and", None, flatten(peers))

    def nand(self, *peers: Any) -> "ObjectSchema":
        return self._dependency("nand", None, flatten(peers))

    def required_keys(self, *children: Any) -> "ObjectSchema":
        return self.apply_function_to_children(flatten(children), "required")

    def optional_keys(self, *children: Any) -> "ObjectSchema":
        return self.apply_function_to_children(flatten(children), "optional")

    def forbidden_keys(self, *children: Any) -> "ObjectSchema":
        return self.apply_function_to_children(flatten(children), "forbidden")

    def rename(
        self,
        from_: Union[str, "re.Pattern[str]"],
        to: str,
        alias: bool = False,
        multiple: bool = False,
        override: bool = False,
        ignore_undefined: bool = False,
    ) -> "ObjectSchema":
        """Move ``from_`` (a key or a pattern over keys) to ``to`` before validation.

        Args:
            alias: Keep the original key as well
            multiple: Allow several renames into the same target
            override: Allow replacing a key that already exists
            ignore_undefined: Skip the rename when the source is missing
        """
        assert_that(isinstance(from_, (str, re.Pattern)), "Rename missing the from argument")
        assert_that(isinstance(to, str), "Rename missing the to argument")
        assert_that(to != from_, "Cannot rename key to same name:", from_)

        for rename in self._inner["renames"]:
            assert_that(rename.from_ != from_, "Cannot rename the same key multiple times")

        obj = self.clone()
        obj._inner["renames"].append(
            Rename(
                from_,
                to,
                {"alias": alias, "multiple": multiple, "override": override, "ignore_undefined": ignore_undefined},
            )
        )
        return obj

    def apply_function_to_children(
        self, children: Any, fn: str, args: tuple = (), root: Optional[str] = None
    ) -> "ObjectSchema":
        children = list(children) if isinstance(children, (list, tuple)) else [children]
        assert_that(children, "expected at least one children")

        grouped = _group_children(children)

        if "" in grouped:
            obj = getattr(self, fn)(*args)
            del grouped[""]
        else:
            obj = self
        obj = obj.clone()

        if obj._inner["children"]:
            prefix = root + "." if root else ""
            updated = list(obj._inner["children"])
            for index, child in enumerate(updated):
                group = grouped.pop(child.key, None)
                if group:
                    updated[index] = child._replace(
                        schema=child.schema.apply_function_to_children(group, fn, args, prefix + str(child.key))
                    )
            obj._inner["children"] = updated

        assert_that(not grouped, "unknown key(s)", ", ".join(grouped))
        return obj

    def _dependency(self, type: str, key: Optional[str], peers: Any) -> "ObjectSchema":
        peers = list(peers) if isinstance(peers, (list, tuple)) else [peers]
        for peer in peers:
            assert_that(isinstance(peer, str), type, "peers must be a string or array of strings")

        obj = self.clone()
        obj._inner["dependencies"].append(Dependency(type, key, peers))
        return obj

    def assert_(self, ref: Any, schema: Any, message: Optional[str] = None) -> "ObjectSchema":
        """Validate a referenced value of the whole object against ``schema``.

        ``ref`` must point below the first level (``"a.b"``) or into the
        context (``"$x"``).
        """
        ref = cast.ref(ref)
        assert_that(
            ref.is_context or ref.depth > 1,
            "Cannot use assertions for root level references - use direct key rules instead",
        )
        message = message or "pass the assertion test"

        try:
            condition = cast.schema(self._root, schema)
        except SchemaDefinitionError as err:
            if hasattr(err, "path"):
                raise SchemaDefinitionError(f"{err}({err.path})") from err
            raise

        key = ref.path[-1]
        path = ".".join(ref.path)

        def check(owner: AnySchema, value: Any, state: State, options: Dict[str, Any]) -> Any:
            result = condition._validate(ref(value, options), None, options, value)
            if not result.errors:
                return value

            local_state = State(key=key, path=list(ref.path), parent=state.parent, reference=state.reference)
            return owner.create_error("object.assert", {"ref": path, "message": message}, local_state, options)

        return self._test("assert", {"schema": condition, "ref": ref}, check)

    def instance_of(self, constructor: type, name: Optional[str] = None) -> "ObjectSchema":
        """Require ``isinstance(value, constructor)``."""
        assert_that(isinstance(constructor, type), "type must be a constructor function")
        type_data = {"name": name or constructor.__name__, "ctor": constructor}

        def check(schema: AnySchema, value: Any, state: State, options: Dict[str, Any]) -> Any:
            if isinstance(value, constructor):
                return value
            return schema.create_error("object.type", {"type": type_data["name"]}, state, options)

        return self._test("type", type_data, check)

    def describe(self, shallow: bool = False) -> Dict[str, Any]:
        description = super().describe()

        for rule in description.get("rules", []):
            arg = rule.get("arg")
            if isinstance(arg, dict) and isinstance(arg.get("schema"), AnySchema) and isinstance(arg.get("ref"), Reference):
                rule["arg"] = {"schema": arg["schema"].describe(), "ref": str(arg["ref"])}

        if self._inner["children"] is not None and not shallow:
            description["children"] = {child.key: child.schema.describe() for child in self._inner["children"]}

        if self._inner["dependencies"]:
            description["dependencies"] = [
                {"type": dependency.type, "key": dependency.key, "peers": list(dependency.peers)}
                for dependency in self._inner["dependencies"]
            ]

        if self._inner["patterns"]:
            description["patterns"] = [
                {"regex": format_pattern(pattern.regex), "rule": pattern.rule.describe()}
                for pattern in self._inner["patterns"]
            ]

        if self._inner["renames"]:
            description["renames"] = [
                {
                    "from": format_pattern(rename.from_) if rename.is_regex else rename.from_,
                    "to": rename.to,
                    "options": dict(rename.options),
                    "is_regex": rename.is_regex,
                }
                for rename in self._inner["renames"]
            ]

        return description


__all__ = ["ObjectSchema", "Child", "Pattern", "Rename", "Dependency"]
