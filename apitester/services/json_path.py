"""Restricted JSON path compilation on top of jsonpath-ng.

Supported syntax: the ``$`` root marker, dotted field access and a single
array index per field, e.g. ``$.data.items[0].id``. Filters, wildcards,
slices and recursive descent are rejected when the definitions are parsed,
so a malformed path never reaches the network stage.
"""

import re
from functools import lru_cache
from typing import Any

from jsonpath_ng.jsonpath import Child, DatumInContext, Fields, Index, JSONPath, Root

from apitester.errors import ConfigError

SEGMENT_PATTERN = re.compile(r"\.([A-Za-z_][A-Za-z0-9_\-]*)(?:\[(\d+)\])?")


class ArrayIndex(Index):
    """Index that only matches JSON arrays (never dict keys or string characters)."""

    def find(self, datum):
        datum = DatumInContext.wrap(datum)
        if not isinstance(datum.value, list):
            return []
        return super().find(datum)


@lru_cache(maxsize=256)
def compile_path(path: str) -> JSONPath:
    """
    Compile a path expression into a jsonpath-ng expression tree.

    Args:
        path: Path text, e.g. ``$.data.items[0].id``

    Returns:
        Compiled expression supporting ``.find(document)``

    Raises:
        ConfigError: If the path uses unsupported syntax
    """
    text = path.strip()
    if not text.startswith("$"):
        raise ConfigError(path, "path must start with the root marker '$'")

    expr: JSONPath = Root()
    pos = 1
    while pos < len(text):
        match = SEGMENT_PATTERN.match(text, pos)
        if not match:
            raise ConfigError(
                path,
                f"unsupported path syntax at offset {pos}: '{text[pos:]}'",
            )
        field_name, index = match.groups()
        expr = Child(expr, Fields(field_name))
        if index is not None:
            expr = Child(expr, ArrayIndex(int(index)))
        pos = match.end()

    return expr


def find_values(expr: JSONPath, document: Any) -> list[Any]:
    """Return the values of every node ``expr`` resolves to."""
    return [match.value for match in expr.find(document)]
