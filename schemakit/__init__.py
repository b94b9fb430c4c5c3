"""schemakit: composable schema validation.

schemakit describes the expected shape of a value with immutable schema
objects and validates values against them:
- Type checks with optional conversion (``"12"`` -> ``12``)
- Allowed/denied values, presence and defaults
- Object keys, patterns, renames and key dependencies
- References to sibling values and to the validation context
- Conditional schemas (``when``) and alternatives
- Structured errors with paths, codes and an annotated rendering
- Extensions adding custom types and rules

Basic usage:
    >>> import schemakit
    >>> schema = schemakit.object({
    ...     "username": schemakit.string().alphanum().min(3).required(),
    ...     "age": schemakit.number().integer().min(0),
    ... })
    >>> result = schemakit.validate({"username": "ada", "age": "36"}, schema)
    >>> result.value
    {'username': 'ada', 'age': 36}
    >>> schemakit.validate({}, schema).error.message
    'child "username" fails because ["username" is required]'
"""

__version__ = "0.1.0"
__author__ = "schemakit Team"

# Version info
VERSION = (0, 1, 0)

# Core exports
from schemakit.errors import ErrorDetail, ValidationError
from schemakit.root import Root, default_root
from schemakit.types import UNDEFINED
from schemakit.utils import SchemaDefinitionError
from schemakit.validation import ValidationResult

_default = default_root()

# Factories
any = _default.any
alternatives = _default.alternatives
alt = _default.alt
array = _default.array
boolean = _default.boolean
bool = _default.bool
binary = _default.binary
date = _default.date
func = _default.func
number = _default.number
object = _default.object
string = _default.string
lazy = _default.lazy
ref = _default.ref
is_ref = _default.is_ref

# Helpers
validate = _default.validate
compile = _default.compile
describe = _default.describe
reach = _default.reach
attempt = _default.attempt
assert_ = _default.assert_
defaults = _default.defaults
extend = _default.extend

# Shortcuts on any()
allow = _default.allow
valid = _default.valid
only = _default.only
equal = _default.equal
invalid = _default.invalid
disallow = _default.disallow
not_ = _default.not_
required = _default.required
exist = _default.exist
optional = _default.optional
forbidden = _default.forbidden
strip = _default.strip
when = _default.when
empty = _default.empty
default = _default.default

# Package metadata
__all__ = [
    "__version__",
    "VERSION",
    "Root",
    "ValidationError",
    "SchemaDefinitionError",
    "ValidationResult",
    "ErrorDetail",
    "UNDEFINED",
    "any",
    "alternatives",
    "alt",
    "array",
    "boolean",
    "bool",
    "binary",
    "date",
    "func",
    "number",
    "object",
    "string",
    "lazy",
    "ref",
    "is_ref",
    "validate",
    "compile",
    "describe",
    "reach",
    "attempt",
    "assert_",
    "defaults",
    "extend",
    "allow",
    "valid",
    "only",
    "equal",
    "invalid",
    "disallow",
    "not_",
    "required",
    "exist",
    "optional",
    "forbidden",
    "strip",
    "when",
    "empty",
    "default",
]
