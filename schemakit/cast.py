"""Conversion of schema-like literals into schema objects.

Builders accept literals wherever a schema is expected (``keys({"a": 1})``,
``valid`` alternatives in ``try_([...])``, ``when`` branches). ``schema()``
turns those literals into the matching schema; ``ref()`` does the same for
reference keys.
"""

import re
from collections.abc import Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

from schemakit.reference import Reference, create, is_ref
from schemakit.utils import assert_that

if TYPE_CHECKING:
    from schemakit.root import Root
    from schemakit.schemas.any import AnySchema


def _resolve_root(root: Optional["Root"]) -> "Root":
    if root is not None:
        return root
    from schemakit.root import default_root

    return default_root()


def schema(root: Optional["Root"], config: Any) -> "AnySchema":
    """Return ``config`` as a schema built by ``root``.

    Examples:
        >>> schema(None, {"a": 1}).schema_type
        'object'
        >>> schema(None, "x").describe()["valids"]
        ['x']
    """
    from schemakit.schemas.any import AnySchema

    if isinstance(config, AnySchema):
        return config

    root = _resolve_root(root)

    if isinstance(config, (list, tuple)):
        return root.alternatives().try_(list(config))
    if isinstance(config, re.Pattern):
        return root.string().regex(config)
    if isinstance(config, datetime):
        return root.date().valid(config)
    if isinstance(config, Mapping):
        return root.object().keys(config)
    if isinstance(config, str):
        return root.string().valid(config)
    if isinstance(config, bool):
        return root.boolean().valid(config)
    if isinstance(config, (int, float)):
        return root.number().valid(config)
    if is_ref(config):
        return root.valid(config)

    assert_that(config is None, "Invalid schema content:", config)
    return root.valid(None)


def ref(id: Any) -> Reference:
    return id if is_ref(id) else create(id)


__all__ = ["schema", "ref"]
