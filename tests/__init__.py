"""Test suite for schemakit.

This package contains tests for:
- Leaf components (references, value sets, key ordering, options, errors)
- The shared validation walk (presence, allow/deny, defaults, overrides)
- Every schema kind (object, array, alternatives, string, number, date,
  boolean, binary, func, lazy)
- The root factory (compile, attempt, reach, defaults, extensions)
"""
