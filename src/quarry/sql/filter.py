from __future__ import annotations

import re
from itertools import count
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Sequence,
    Union,
)

from quarry.exception import FilterError
from quarry.sql.query import SQLQuery

Where = Mapping[str, Any]
OrderBy = Union[str, Mapping[str, str], Sequence[Mapping[str, str]]]

IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
COMPARISONS = {
    "equals": "=",
    "not": "<>",
    "lt": "<",
    "lte": "<=",
    "gt": ">",
    "gte": ">=",
}
PATTERNS = {
    "contains": "%{}%",
    "starts_with": "{}%",
    "ends_with": "%{}",
}
NEVER = "1 = 0"


def validate_identifier(identifier: str) -> str:
    """Make sure a (possibly dotted) identifier is safe to interpolate

    Args:
        identifier (str): A table or column name

    Raises:
        FilterError: If any part is not a plain identifier

    Returns:
        str: The identifier
    """
    parts = identifier.split(".") if isinstance(identifier, str) else [None]
    if not all(
        isinstance(part, str) and IDENTIFIER.match(part) for part in parts
    ):
        raise FilterError(f"Invalid identifier: {identifier!r}")
    return identifier


class FilterCompiler:
    """Compile a filter mapping into a SQL fragment with `$name`
    placeholders.

    A filter maps column names to values. A value of `None` matches
    `NULL`, a mapping applies operators to the column, and anything else is
    compared for equality. `AND`, `OR` and `NOT` combine nested filters.

    Example:

    ```python
    compiler = FilterCompiler(quote=lambda name: f'"{name}"')
    query = compiler.compile(
        {"status": "open", "OR": [{"score": {"gte": 10}}, {"pinned": True}]}
    )
    # ("status" = $p0 AND ("score" >= $p1 OR "pinned" = $p2))
    ```

    An empty fragment means the filter matches every row.
    """

    def __init__(self, quote: Callable[[str], str], prefix: str = "p"):
        self._quote = quote
        self._prefix = prefix
        self._counter = count()
        self._params: Dict[str, Any] = {}

    @property
    def params(self) -> Dict[str, Any]:
        return self._params

    def bind(self, value: Any) -> str:
        name = f"{self._prefix}{next(self._counter)}"
        self._params[name] = value
        return f"${name}"

    def compile(self, where: Optional[Where]) -> SQLQuery:
        return SQLQuery("where", self._clause(where), self._params)

    def _clause(self, where: Optional[Where]) -> str:
        if where is None:
            return ""
        if not isinstance(where, Mapping):
            raise FilterError(f"Filter must be a mapping, got {where!r}")

        parts: List[str] = []
        for key, value in where.items():
            if key == "AND":
                clause = self._all(self._items(value))
            elif key == "OR":
                clause = self._any(self._items(value))
            elif key == "NOT":
                clause = self._not(self._items(value))
            else:
                clause = self._column(key, value)
            if clause:
                parts.append(clause)
        return self._join(parts, "AND")

    @staticmethod
    def _items(value: Any) -> List[Where]:
        if isinstance(value, Mapping):
            return [value]
        if isinstance(value, (list, tuple)):
            return list(value)
        raise FilterError(
            f"Expected a filter or a list of filters: {value!r}"
        )

    @staticmethod
    def _join(parts: List[str], operator: str) -> str:
        if len(parts) > 1:
            return "(" + f" {operator} ".join(parts) + ")"
        return parts[0] if parts else ""

    def _all(self, items: List[Where]) -> str:
        return self._join(
            [clause for clause in map(self._clause, items) if clause], "AND"
        )

    def _any(self, items: List[Where]) -> str:
        if not items:
            return NEVER
        clauses = [self._clause(item) for item in items]
        if not all(clauses):
            return ""
        return self._join(clauses, "OR")

    def _not(self, items: List[Where]) -> str:
        parts = []
        for item in items:
            clause = self._clause(item)
            parts.append(f"NOT {clause}" if clause else NEVER)
        return self._join(parts, "AND")

    def _column(self, name: str, value: Any) -> str:
        column = self._quote(name)
        if not isinstance(value, Mapping):
            return self._compare(column, "equals", value)
        return self._join(
            [
                clause
                for operator, operand in value.items()
                if (clause := self._compare(column, operator, operand))
            ],
            "AND",
        )

    def _compare(self, column: str, operator: str, operand: Any) -> str:
        if operator == "equals" and operand is None:
            return f"{column} IS NULL"
        if operator == "not" and operand is None:
            return f"{column} IS NOT NULL"
        if operator in COMPARISONS:
            return f"{column} {COMPARISONS[operator]} {self.bind(operand)}"
        if operator in PATTERNS:
            pattern = PATTERNS[operator].format(operand)
            return f"{column} LIKE {self.bind(pattern)}"
        if operator in ("in", "not_in"):
            if isinstance(operand, (str, bytes)) or not isinstance(
                operand, (list, tuple, set, frozenset)
            ):
                raise FilterError(
                    f"{operator} on {column} expects a list of values"
                )
            if not operand:
                return NEVER if operator == "in" else ""
            placeholders = ", ".join(self.bind(item) for item in operand)
            keyword = "IN" if operator == "in" else "NOT IN"
            return f"{column} {keyword} ({placeholders})"
        raise FilterError(f"Unknown filter operator: {operator}")


def compile_order(
    order_by: Optional[OrderBy], quote: Callable[[str], str]
) -> str:
    """Compile an ordering into an `ORDER BY` clause

    Accepts a column name, a mapping of column name to direction, or a
    sequence of such mappings.
    """
    if not order_by:
        return ""
    if isinstance(order_by, str):
        order_by = [{order_by: "asc"}]
    elif isinstance(order_by, Mapping):
        order_by = [order_by]

    terms = []
    for item in order_by:
        for column, direction in item.items():
            direction = str(direction).upper()
            if direction not in ("ASC", "DESC"):
                raise FilterError(f"Invalid sort direction for {column}")
            terms.append(f"{quote(column)} {direction}")
    return " ORDER BY " + ", ".join(terms)
