"""Array schema.

Item schemas added with ``items()`` are sorted by presence when they are
added: required ones must each match at least one element, forbidden ones
must match none, and every element must match one of the others.
``ordered()`` schemas are matched positionally before any of that.
"""

import json
from collections.abc import Mapping
from typing import Any, Callable, Dict, List, Optional, Union

from schemakit import cast
from schemakit.reference import Reference, is_ref
from schemakit.schemas.any import AnySchema
from schemakit.types import UNDEFINED, Outcome, Presence, State
from schemakit.utils import (
    SchemaDefinitionError,
    assert_that,
    deep_equal,
    flatten,
    is_array,
    is_nan,
    is_safe_integer,
    reach,
    type_bucket,
)


def _safe_parse(value: str) -> Any:
    try:
        converted = json.loads(value)
    except ValueError:
        return value
    return converted if isinstance(converted, list) else value


def _cast_item(root: Any, config: Any, index: int) -> AnySchema:
    try:
        return cast.schema(root, config)
    except SchemaDefinitionError as err:
        err.path = f"{index}.{err.path}" if hasattr(err, "path") else str(index)
        raise SchemaDefinitionError(f"{err}({err.path})") from err


def _strip_unknown_arrays(options: Dict[str, Any]) -> bool:
    strip_unknown = options.get("strip_unknown")
    if not strip_unknown:
        return False
    if strip_unknown is True:
        return True
    return isinstance(strip_unknown, Mapping) and bool(strip_unknown.get("arrays"))


class ArraySchema(AnySchema):
    """Schema for lists (tuples are accepted and copied into a list).

    Examples:
        >>> from schemakit import array, number
        >>> array().items(number()).validate(["1", 2]).value
        [1, 2]
        >>> array().items(number()).unique().validate([1, 2, 2]).error.details[0].context["dupePos"]
        1
    """

    def __init__(self) -> None:
        super().__init__()
        self._type = "array"
        self._inner["items"] = []
        self._inner["ordereds"] = []
        self._inner["inclusions"] = []
        self._inner["exclusions"] = []
        self._inner["requireds"] = []
        self._flags.sparse = False

    def _base(self, value: Any, state: State, options: Dict[str, Any]) -> Outcome:
        result = value

        if isinstance(value, str) and options.get("convert"):
            result = _safe_parse(value)

        was_array = is_array(result)
        if was_array:
            result = list(result)
        elif options.get("convert") and self._flags.single:
            result = [result]
        else:
            return Outcome(value=result, errors=[self.create_error("array.base", None, state, options)])

        inner = self._inner
        if (
            not inner["inclusions"]
            and not inner["exclusions"]
            and not inner["requireds"]
            and not inner["ordereds"]
            and self._flags.sparse
        ):
            return Outcome(value=result)

        errors = self._check_items(result, was_array, state, options)

        if errors and was_array and options.get("convert") and self._flags.single:
            # A list that fails as a list may still be a single element
            wrapped = [result]
            retry = self._check_items(wrapped, was_array, state, options)
            if not retry:
                return Outcome(value=wrapped)

        return Outcome(value=result, errors=errors)

    def _check_items(
        self, items: List[Any], was_array: bool, state: State, options: Dict[str, Any]
    ) -> Optional[List[Any]]:
        errors: List[Any] = []
        inner = self._inner
        sparse = self._flags.sparse
        abort_early = options.get("abort_early")
        strip_unknown = _strip_unknown_arrays(options)

        requireds: List[AnySchema] = list(inner["requireds"])
        ordereds: List[AnySchema] = list(inner["ordereds"])
        inclusions: List[AnySchema] = inner["inclusions"] + requireds

        i = 0
        while i < len(items):
            item = items[i]
            key = i if was_array else state.key
            path = state.path + [i] if was_array else state.path
            local_state = State(key=key, path=path, parent=state.parent, reference=state.reference)
            error_state = State(key=state.key, path=path)
            errored = False
            is_valid = False

            if not sparse and item is UNDEFINED:
                errors.append(self.create_error("array.sparse", None, error_state, options))
                if abort_early:
                    return errors
                if ordereds:
                    ordereds.pop(0)
                i += 1
                continue

            for exclusion in inner["exclusions"]:
                # Exclusions always run with the default options
                if not exclusion._validate(item, local_state, {}).errors:
                    errors.append(
                        self.create_error(
                            "array.excludes" if was_array else "array.excludesSingle",
                            {"pos": i, "value": item},
                            error_state,
                            options,
                        )
                    )
                    errored = True
                    if abort_early:
                        return errors
                    if ordereds:
                        ordereds.pop(0)
                    break

            if errored:
                i += 1
                continue

            if inner["ordereds"]:
                if ordereds:
                    ordered = ordereds.pop(0)
                    result = ordered._validate(item, local_state, options)
                    if not result.errors:
                        if ordered._flags.strip:
                            del items[i]
                            continue
                        if not sparse and result.value is UNDEFINED:
                            errors.append(self.create_error("array.sparse", None, error_state, options))
                            if abort_early:
                                return errors
                            i += 1
                            continue
                        items[i] = result.value
                    else:
                        errors.append(
                            self.create_error(
                                "array.ordered", {"pos": i, "reason": result.errors, "value": item}, error_state, options
                            )
                        )
                        if abort_early:
                            return errors
                    i += 1
                    continue

                if not inner["items"]:
                    errors.append(
                        self.create_error(
                            "array.orderedLength", {"pos": i, "limit": len(inner["ordereds"])}, error_state, options
                        )
                    )
                    if abort_early:
                        return errors
                    i += 1
                    continue

            required_checks: List[Outcome] = []
            for index, required in enumerate(requireds):
                result = required._validate(item, local_state, options)
                required_checks.append(result)
                if not result.errors:
                    items[i] = result.value
                    is_valid = True
                    del requireds[index]
                    del required_checks[index]

                    if not sparse and result.value is UNDEFINED:
                        errors.append(self.create_error("array.sparse", None, error_state, options))
                        if abort_early:
                            return errors
                    break

            if is_valid:
                i += 1
                continue

            removed = False
            result = None
            for inclusion in inclusions:
                previous = next((n for n, required in enumerate(requireds) if required is inclusion), -1)
                if previous != -1:
                    result = required_checks[previous]
                else:
                    result = inclusion._validate(item, local_state, options)
                    if not result.errors:
                        if inclusion._flags.strip:
                            del items[i]
                            removed = True
                        elif not sparse and result.value is UNDEFINED:
                            errors.append(self.create_error("array.sparse", None, error_state, options))
                            errored = True
                        else:
                            items[i] = result.value
                        is_valid = True
                        break

                if len(inclusions) == 1:
                    if strip_unknown:
                        del items[i]
                        removed = True
                        is_valid = True
                        break

                    errors.append(
                        self.create_error(
                            "array.includesOne" if was_array else "array.includesOneSingle",
                            {"pos": i, "reason": result.errors, "value": item},
                            error_state,
                            options,
                        )
                    )
                    errored = True
                    if abort_early:
                        return errors
                    break

            if removed:
                continue

            if errored:
                i += 1
                continue

            if inner["inclusions"] and not is_valid:
                if strip_unknown:
                    del items[i]
                    continue

                errors.append(
                    self.create_error(
                        "array.includes" if was_array else "array.includesSingle",
                        {"pos": i, "value": item},
                        error_state,
                        options,
                    )
                )
                if abort_early:
                    return errors

            i += 1

        if requireds:
            self._fill_missed_errors(errors, requireds, state, options)

        if ordereds:
            required_ordereds = [ordered for ordered in ordereds if ordered._flags.presence == Presence.REQUIRED]
            if required_ordereds:
                self._fill_missed_errors(errors, required_ordereds, state, options)

        return errors or None

    def _fill_missed_errors(
        self, errors: List[Any], requireds: List[AnySchema], state: State, options: Dict[str, Any]
    ) -> None:
        known_misses = [schema._get_label() for schema in requireds if schema._get_label()]
        unknown_misses = len(requireds) - len(known_misses)
        error_state = State(key=state.key, path=state.path)

        if known_misses and unknown_misses:
            errors.append(
                self.create_error(
                    "array.includesRequiredBoth",
                    {"knownMisses": known_misses, "unknownMisses": unknown_misses},
                    error_state,
                    options,
                )
            )
        elif known_misses:
            errors.append(
                self.create_error("array.includesRequiredKnowns", {"knownMisses": known_misses}, error_state, options)
            )
        else:
            errors.append(
                self.create_error(
                    "array.includesRequiredUnknowns", {"unknownMisses": unknown_misses}, error_state, options
                )
            )

    def items(self, *schemas: Any) -> "ArraySchema":
        """Allowed element schemas; required ones must match, forbidden ones must not."""
        obj = self.clone()

        for index, config in enumerate(flatten(schemas)):
            item = _cast_item(self._root, config, index)
            obj._inner["items"].append(item)

            if item._flags.presence == Presence.REQUIRED:
                obj._inner["requireds"].append(item)
            elif item._flags.presence == Presence.FORBIDDEN:
                obj._inner["exclusions"].append(item.optional())
            else:
                obj._inner["inclusions"].append(item)

        return obj

    def ordered(self, *schemas: Any) -> "ArraySchema":
        """Element schemas matched by position."""
        obj = self.clone()
        for index, config in enumerate(flatten(schemas)):
            obj._inner["ordereds"].append(_cast_item(self._root, config, index))
        return obj

    def _length_rule(
        self, name: str, limit: Union[int, Reference], compare: Callable[[int, int], bool]
    ) -> "ArraySchema":
        is_ref_limit = is_ref(limit)
        assert_that(
            (is_safe_integer(limit) and limit >= 0) or is_ref_limit,
            "limit must be a positive integer or reference",
        )

        def check(schema: AnySchema, value: Any, state: State, options: Dict[str, Any]) -> Any:
            compare_to = limit
            if is_ref_limit:
                compare_to = limit(state.ref_root, options)
                if not (is_safe_integer(compare_to) and compare_to >= 0):
                    return schema.create_error("array.ref", {"ref": limit.key}, state, options)

            if compare(len(value), compare_to):
                return value
            return schema.create_error("array." + name, {"limit": compare_to, "value": value}, state, options)

        return self._test(name, limit, check)

    def min(self, limit: Union[int, Reference]) -> "ArraySchema":
        return self._length_rule("min", limit, lambda length, limit: length >= limit)

    def max(self, limit: Union[int, Reference]) -> "ArraySchema":
        return self._length_rule("max", limit, lambda length, limit: length <= limit)

    def length(self, limit: Union[int, Reference]) -> "ArraySchema":
        return self._length_rule("length", limit, lambda length, limit: length == limit)

    def unique(self, comparator: Union[None, str, Callable[[Any, Any], bool]] = None) -> "ArraySchema":
        """Reject duplicate elements.

        Args:
            comparator: A dotted path compared inside each element, or a
                function ``(a, b) -> bool`` deciding equality. Elements are
                compared by value (deep equality for dicts and lists) by default.
        """
        assert_that(
            comparator is None or callable(comparator) or isinstance(comparator, str),
            "comparator must be a function or a string",
        )

        settings: Dict[str, Any] = {}
        if isinstance(comparator, str):
            settings["path"] = comparator
        elif comparator is not None:
            settings["comparator"] = comparator

        def check(schema: AnySchema, value: Any, state: State, options: Dict[str, Any]) -> Any:
            primitives: Dict[Any, int] = {}
            scanned: Dict[str, List[Any]] = {"object": [], "function": [], "custom": []}
            compare = settings.get("comparator", deep_equal)

            for index, element in enumerate(value):
                item = reach(element, settings["path"]) if "path" in settings else element

                if "comparator" in settings:
                    bucket = "custom"
                else:
                    bucket = type_bucket(item)

                dupe_pos = None
                if bucket in scanned:
                    for seen, position in scanned[bucket]:
                        if compare(seen, item):
                            dupe_pos = position
                            break
                    else:
                        scanned[bucket].append((item, index))
                else:
                    identity = (bucket, "NaN" if is_nan(item) else item)
                    if identity in primitives:
                        dupe_pos = primitives[identity]
                    else:
                        primitives[identity] = index

                if dupe_pos is not None:
                    context = {"pos": index, "value": element, "dupePos": dupe_pos, "dupeValue": value[dupe_pos]}
                    if "path" in settings:
                        context["path"] = settings["path"]
                    local_state = State(
                        key=state.key, path=state.path + [index], parent=state.parent, reference=state.reference
                    )
                    return schema.create_error("array.unique", context, local_state, options)

            return value

        return self._test("unique", settings, check)

    def sparse(self, enabled: Optional[bool] = None) -> "ArraySchema":
        value = True if enabled is None else bool(enabled)
        if self._flags.sparse == value:
            return self

        obj = self.clone()
        obj._flags.sparse = value
        return obj

    def single(self, enabled: Optional[bool] = None) -> "ArraySchema":
        """Wrap a non-list value into a one-element list when converting."""
        value = True if enabled is None else bool(enabled)
        if self._flags.single == value:
            return self

        obj = self.clone()
        obj._flags.single = value
        return obj

    def describe(self) -> Dict[str, Any]:
        description = super().describe()

        if self._inner["ordereds"]:
            description["ordered_items"] = [schema.describe() for schema in self._inner["ordereds"]]

        if self._inner["items"]:
            description["items"] = [schema.describe() for schema in self._inner["items"]]

        return description


__all__ = ["ArraySchema"]
