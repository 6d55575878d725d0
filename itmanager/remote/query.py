"""Composable query builder for the remote database's REST dialect."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal, Self

from itmanager.exceptions import RemoteCallError

if TYPE_CHECKING:
    from itmanager.remote.client import RemoteDatabase

Method = Literal["select", "insert", "update", "delete"]
Cardinality = Literal["many", "single", "maybe_single"]

HTTP_METHODS: dict[str, str] = {
    "select": "GET",
    "insert": "POST",
    "update": "PATCH",
    "delete": "DELETE",
}

_RESERVED = frozenset(',()"\\:')


def encode_value(value: Any) -> str:
    """Render a Python value the way the REST dialect expects it."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _quote(value: Any) -> str:
    text = encode_value(value)
    if any(ch in _RESERVED for ch in text) or text != text.strip():
        escaped = text.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return text


@dataclass(frozen=True, slots=True)
class Filter:
    column: str
    operator: str
    value: Any

    def encode(self) -> str:
        if self.operator == "in":
            return f"in.({','.join(_quote(v) for v in self.value)})"
        return f"{self.operator}.{encode_value(self.value)}"


class QueryBuilder:
    """Accumulates filters and modifiers, then executes against the remote.

    Chained methods mutate and return the builder, so callers can keep adding
    entity-specific filters to a builder handed to them by the tenant facade.
    """

    def __init__(
        self,
        executor: RemoteDatabase,
        table: str,
        method: Method,
        *,
        columns: str | None = None,
        payload: Any = None,
    ) -> None:
        self._executor = executor
        self.table = table
        self.method: Method = method
        self.columns = columns
        self.payload = payload
        self.filters: list[Filter] = []
        self.orders: list[tuple[str, bool]] = []
        self.row_limit: int | None = None
        self.cardinality: Cardinality = "many"
        self._checks: list[Callable[[], None]] = []

    def __repr__(self) -> str:
        return (
            f"QueryBuilder(table={self.table!r}, method={self.method!r}, "
            f"filters={self.filters!r})"
        )

    # -- filters ----------------------------------------------------------

    def _filter(self, column: str, operator: str, value: Any) -> Self:
        self.filters.append(Filter(column, operator, value))
        return self

    def eq(self, column: str, value: Any) -> Self:
        return self._filter(column, "eq", value)

    def neq(self, column: str, value: Any) -> Self:
        return self._filter(column, "neq", value)

    def gt(self, column: str, value: Any) -> Self:
        return self._filter(column, "gt", value)

    def gte(self, column: str, value: Any) -> Self:
        return self._filter(column, "gte", value)

    def lt(self, column: str, value: Any) -> Self:
        return self._filter(column, "lt", value)

    def lte(self, column: str, value: Any) -> Self:
        return self._filter(column, "lte", value)

    def like(self, column: str, pattern: str) -> Self:
        return self._filter(column, "like", pattern)

    def ilike(self, column: str, pattern: str) -> Self:
        return self._filter(column, "ilike", pattern)

    def in_(self, column: str, values: list[Any] | tuple[Any, ...]) -> Self:
        return self._filter(column, "in", tuple(values))

    def is_(self, column: str, value: bool | None) -> Self:
        return self._filter(column, "is", value)

    def has_filter(self, column: str, operator: str = "eq", value: Any = ...) -> bool:
        """Whether a filter on ``column`` (and optionally ``value``) is present."""
        return any(
            f.column == column and f.operator == operator and (value is ... or f.value == value)
            for f in self.filters
        )

    # -- modifiers --------------------------------------------------------

    def select(self, columns: str = "*") -> Self:
        """Choose returned columns; on a mutation, request the written rows back."""
        self.columns = columns
        return self

    def order(self, column: str, *, desc: bool = False) -> Self:
        self.orders.append((column, desc))
        return self

    def limit(self, count: int) -> Self:
        self.row_limit = count
        return self

    def single(self) -> Self:
        self.cardinality = "single"
        return self

    def maybe_single(self) -> Self:
        self.cardinality = "maybe_single"
        return self

    def after_response(self, check: Callable[[], None]) -> Self:
        """Register a check run once the response arrives, before it is returned."""
        self._checks.append(check)
        return self

    # -- wire -------------------------------------------------------------

    @property
    def http_method(self) -> str:
        return HTTP_METHODS[self.method]

    def params(self) -> list[tuple[str, str]]:
        params: list[tuple[str, str]] = []
        if self.columns is not None:
            params.append(("select", self.columns))
        params.extend((f.column, f.encode()) for f in self.filters)
        if self.orders:
            rendered = ",".join(f"{col}.{'desc' if desc else 'asc'}" for col, desc in self.orders)
            params.append(("order", rendered))
        if self.row_limit is not None:
            params.append(("limit", str(self.row_limit)))
        return params

    def headers(self) -> dict[str, str]:
        if self.method == "select":
            return {}
        returning = "representation" if self.columns is not None else "minimal"
        return {"Prefer": f"return={returning}"}

    async def execute(self) -> Any:
        """Send the request and shape the response by cardinality.

        Returns a list of rows, a single row (``single``/``maybe_single``), or
        None for mutations that did not ask for rows back.
        """
        data = await self._executor.send(self)
        for check in self._checks:
            check()
        return self._shape(data)

    def _shape(self, data: Any) -> Any:
        if self.cardinality == "many":
            return data
        rows = data if isinstance(data, list) else ([] if data is None else [data])
        if len(rows) == 1:
            return rows[0]
        if not rows and self.cardinality == "maybe_single":
            return None
        raise RemoteCallError(
            "JSON object requested, multiple (or no) rows returned",
            code="PGRST116",
            details=f"The result contains {len(rows)} rows",
            status_code=406,
        )
