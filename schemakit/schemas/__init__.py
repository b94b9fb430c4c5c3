"""Schema kinds.

Each module holds one schema class built on ``AnySchema``. Schemas are
normally created through a ``Root`` (``schemakit.string()``...), which
attaches the root's extensions and defaults.
"""

from schemakit.schemas.any import AnySchema
from schemakit.schemas.alternatives import AlternativesSchema
from schemakit.schemas.array import ArraySchema
from schemakit.schemas.binary import BinarySchema
from schemakit.schemas.boolean import BooleanSchema
from schemakit.schemas.date import DateSchema
from schemakit.schemas.func import FuncSchema
from schemakit.schemas.lazy import LazySchema
from schemakit.schemas.number import NumberSchema
from schemakit.schemas.object import ObjectSchema
from schemakit.schemas.string import StringSchema

__all__ = [
    "AnySchema",
    "AlternativesSchema",
    "ArraySchema",
    "BinarySchema",
    "BooleanSchema",
    "DateSchema",
    "FuncSchema",
    "LazySchema",
    "NumberSchema",
    "ObjectSchema",
    "StringSchema",
]
