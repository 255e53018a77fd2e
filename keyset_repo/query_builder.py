"""
Immutable SELECT builder.

Each condition is kept as its own Filter numbered from $1; placeholders are
renumbered only when the WHERE clause is assembled, so conditions can be
added in any order.
"""

from dataclasses import dataclass, replace
from typing import Any

from keyset_repo.filters import Filter, shift_placeholders


def _join(filters: tuple[Filter, ...] | list[Filter], separator: str) -> Filter:
    clauses: list[str] = []
    params: list[Any] = []
    for part in filters:
        clauses.append(shift_placeholders(part.clause, len(params)))
        params.extend(part.params)
    return Filter(separator.join(clauses), params)


def _grouped(part: Filter) -> Filter:
    return Filter(f"({part.clause})", list(part.params))


def _comparison(field: str, operator: str, value: Any) -> Filter:
    if value is None and operator in ("=", "!=", "<>"):
        return Filter(f"{field} IS NULL" if operator == "=" else f"{field} IS NOT NULL")
    return Filter.of(f"{field} {operator} $1", value)


def _membership(field: str, values: Any, negate: bool) -> Filter:
    if not isinstance(values, list):
        values = [values]
    placeholders = ", ".join(f"${i + 1}" for i in range(len(values)))
    keyword = "NOT IN" if negate else "IN"
    return Filter(f"{field} {keyword} ({placeholders})", list(values))


def _condition_args(name: str, field: str, args: tuple) -> Filter:
    if len(args) == 1:
        return _comparison(field, "=", args[0])
    if len(args) == 2:
        return _comparison(field, args[0], args[1])
    raise TypeError(f"{name}() expects (field, value) or (field, operator, value)")


@dataclass(frozen=True)
class QueryBuilder:
    """
    Usage:
        builder = QueryBuilder("posts")
        query, params = builder.where("user_id", 7).order_by_desc("id").limit(10).build()

    Column names are not validated here; Repository checks them against the
    entity schema before they reach the builder.
    """

    table_name: str
    columns: tuple[str, ...] = ()
    conditions: tuple[Filter, ...] = ()
    alternatives: tuple[Filter, ...] = ()
    ordering: tuple[str, ...] = ()
    limit_count: int | None = None

    def select(self, *fields: str) -> "QueryBuilder":
        """Columns to select; none means *"""
        return replace(self, columns=fields)

    def where(self, field: str, *args: Any) -> "QueryBuilder":
        """AND a comparison: where(field, value) or where(field, operator, value).

        A None value with = or != becomes IS NULL / IS NOT NULL.
        """
        condition = _condition_args("where", field, args)
        return replace(self, conditions=(*self.conditions, condition))

    def or_where(self, field: str, *args: Any) -> "QueryBuilder":
        """OR a comparison; same call styles as where()"""
        condition = _condition_args("or_where", field, args)
        return replace(self, alternatives=(*self.alternatives, condition))

    def where_in(self, field: str, values: Any | list[Any]) -> "QueryBuilder":
        return replace(
            self, conditions=(*self.conditions, _membership(field, values, negate=False))
        )

    def where_not_in(self, field: str, values: Any | list[Any]) -> "QueryBuilder":
        return replace(
            self, conditions=(*self.conditions, _membership(field, values, negate=True))
        )

    def where_raw(self, where: Filter) -> "QueryBuilder":
        """AND an opaque filter, parenthesized. Empty filters are ignored."""
        if not where:
            return self
        return replace(self, conditions=(*self.conditions, _grouped(where)))

    def order_by(self, field: str) -> "QueryBuilder":
        return replace(self, ordering=(*self.ordering, field))

    def order_by_asc(self, field: str) -> "QueryBuilder":
        return replace(self, ordering=(*self.ordering, f"{field} ASC"))

    def order_by_desc(self, field: str) -> "QueryBuilder":
        return replace(self, ordering=(*self.ordering, f"{field} DESC"))

    def limit(self, count: int) -> "QueryBuilder":
        if count < 0:
            raise ValueError("Limit must be 0 or greater")
        return replace(self, limit_count=count)

    def as_count(self) -> "QueryBuilder":
        """COUNT(*) over the same conditions, without ORDER BY or LIMIT"""
        return replace(self, columns=("COUNT(*)",), ordering=(), limit_count=None)

    def where_clause(self) -> Filter:
        """The WHERE conditions as one Filter, without the WHERE keyword.

        AND conditions are grouped when OR conditions follow them.
        """
        conjunction = _join(self.conditions, " AND ")
        if not self.alternatives:
            return conjunction

        parts = []
        if conjunction:
            parts.append(_grouped(conjunction) if len(self.conditions) > 1 else conjunction)
        alternatives = _join(self.alternatives, " OR ")
        parts.append(_grouped(alternatives) if len(self.alternatives) > 1 else alternatives)
        return _join(parts, " OR ")

    def build(self) -> tuple[str, list[Any]]:
        """SQL text and its positional parameters"""
        select = ", ".join(self.columns) if self.columns else "*"
        sql = [f"SELECT {select} FROM {self.table_name}"]

        where = self.where_clause()
        if where:
            sql.append(f"WHERE {where.clause}")
        if self.ordering:
            sql.append(f"ORDER BY {', '.join(self.ordering)}")
        if self.limit_count is not None:
            sql.append(f"LIMIT {self.limit_count}")

        return " ".join(sql), list(where.params)

    def to_sql(self) -> str:
        return self.build()[0]

    def __str__(self) -> str:
        query, params = self.build()
        return f"Query: {query}\nParams: {params}"
