"""Alternatives: try several schemas in turn, or branch on a condition."""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from schemakit import cast
from schemakit.reference import Reference, is_ref, push
from schemakit.schemas.any import AnySchema, _when_options
from schemakit.types import UNDEFINED, Outcome, State
from schemakit.utils import assert_that, flatten


@dataclass(frozen=True)
class Match:
    """One entry of an alternatives schema.

    A ``try_`` entry only carries ``schema``. A ``when`` entry carries either
    ``ref`` and ``is_`` (resolve the reference and test it) or ``peek`` (test
    the value itself), plus the ``then``/``otherwise`` branches.
    """
    schema: Optional[AnySchema] = None
    ref: Optional[Reference] = None
    peek: Optional[AnySchema] = None
    is_: Optional[AnySchema] = None
    then: Optional[AnySchema] = None
    otherwise: Optional[AnySchema] = None


class AlternativesSchema(AnySchema):
    """Schema matching the first of several candidates.

    Examples:
        >>> from schemakit import alternatives, number, string
        >>> schema = alternatives().try_(number(), string())
        >>> schema.validate("3").value
        3
        >>> schema.validate(True).error.details[0].type
        'number.base'
    """

    def __init__(self) -> None:
        super().__init__()
        self._type = "alternatives"
        self._invalids.remove(None)
        self._inner["matches"] = []

    def _base(self, value: Any, state: State, options: Dict[str, Any]) -> Outcome:
        errors: List[Any] = []
        matches: List[Match] = self._inner["matches"]
        base_type = self._base_type

        for index, item in enumerate(matches):
            if item.schema is None:
                condition = item.peek or item.is_
                source = item.ref(state.ref_root, options) if item.is_ is not None else value
                failed = condition._validate(source, None, options, state.parent).errors

                if failed:
                    if item.otherwise is not None:
                        return item.otherwise._validate(value, state, options)
                elif item.then is not None:
                    return item.then._validate(value, state, options)

                if index == len(matches) - 1 and base_type is not None:
                    return base_type._validate(value, state, options)

                continue

            result = item.schema._validate(value, state, options)
            if not result.errors:
                return result

            errors.extend(result.errors)

        if errors:
            return Outcome(errors=[self.create_error("alternatives.child", {"reason": errors}, state, options)])

        return Outcome(errors=[self.create_error("alternatives.base", None, state, options)])

    def try_(self, *schemas: Any) -> "AlternativesSchema":
        schemas = flatten(schemas)
        assert_that(schemas, "Cannot add other alternatives without at least one schema")

        obj = self.clone()
        for config in schemas:
            candidate = cast.schema(self._root, config)
            if candidate._refs:
                obj._refs = obj._refs + candidate._refs
            obj._inner["matches"].append(Match(schema=candidate))
        return obj

    def when(self, condition: Any, options: Optional[Mapping] = None, **kwargs: Any) -> "AlternativesSchema":
        """Add a conditional branch.

        ``condition`` is a reference (or reference key) resolved and tested
        against ``is``, or a schema tested against the value itself.
        """
        schema_condition = isinstance(condition, AnySchema)
        assert_that(is_ref(condition) or isinstance(condition, str) or schema_condition, "Invalid condition:", condition)
        assert_that(options is not None or kwargs, "Missing options")
        options = _when_options(options, kwargs)

        if schema_condition:
            assert_that("is" not in options, '"is" can not be used with a schema condition')
        else:
            assert_that("is" in options, 'Missing "is" directive')

        then = options.get("then", UNDEFINED)
        otherwise = options.get("otherwise", UNDEFINED)
        assert_that(
            then is not UNDEFINED or otherwise is not UNDEFINED,
            'options must have at least one of "then" or "otherwise"',
        )

        obj = self.clone()

        is_schema = None
        if not schema_condition:
            is_config = options["is"]
            is_schema = cast.schema(self._root, is_config)
            if is_config is None or not (is_ref(is_config) or isinstance(is_config, AnySchema)):
                # Literal conditions never match a missing value
                is_schema = is_schema.required()

        then_schema = cast.schema(self._root, then) if then is not UNDEFINED else None
        otherwise_schema = cast.schema(self._root, otherwise) if otherwise is not UNDEFINED else None

        if obj._base_type is not None:
            then_schema = then_schema and obj._base_type.concat(then_schema)
            otherwise_schema = otherwise_schema and obj._base_type.concat(otherwise_schema)

        item = Match(
            ref=None if schema_condition else cast.ref(condition),
            peek=condition if schema_condition else None,
            is_=is_schema,
            then=then_schema,
            otherwise=otherwise_schema,
        )

        if not schema_condition:
            push(obj._refs, item.ref)
            obj._refs = obj._refs + item.is_._refs

        if item.then is not None:
            obj._refs = obj._refs + item.then._refs

        if item.otherwise is not None:
            obj._refs = obj._refs + item.otherwise._refs

        obj._inner["matches"].append(item)
        return obj

    def describe(self) -> Dict[str, Any]:
        description = super().describe()

        alternatives: List[Any] = []
        for item in self._inner["matches"]:
            if item.schema is not None:
                alternatives.append(item.schema.describe())
                continue

            if item.is_ is not None:
                when: Dict[str, Any] = {"ref": str(item.ref), "is": item.is_.describe()}
            else:
                when = {"peek": item.peek.describe()}

            if item.then is not None:
                when["then"] = item.then.describe()
            if item.otherwise is not None:
                when["otherwise"] = item.otherwise.describe()

            alternatives.append(when)

        description["alternatives"] = alternatives
        return description


__all__ = ["AlternativesSchema", "Match"]
