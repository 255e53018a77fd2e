"""
Opaque filter predicates.

A Filter is a partial SQL clause (what usually follows WHERE) plus its
positional parameters. Placeholders use the asyncpg style and are numbered
from $1 against the filter's own params:

    Filter("user_id = $1 AND title LIKE $2", [7, "%go%"])

Filters are never parsed; combining two of them only shifts the placeholder
numbers of the right-hand side.
"""

import re
from dataclasses import dataclass, field
from typing import Any

_PLACEHOLDER = re.compile(r"\$(\d+)")


def shift_placeholders(clause: str, offset: int) -> str:
    """Renumber every $n placeholder in clause to $(n + offset)."""
    if offset == 0:
        return clause

    def replace_param(match):
        return f"${int(match.group(1)) + offset}"

    return _PLACEHOLDER.sub(replace_param, clause)


@dataclass(frozen=True)
class Filter:
    clause: str = ""
    params: list[Any] = field(default_factory=list)

    @classmethod
    def of(cls, clause: str, *params: Any) -> "Filter":
        return cls(clause, list(params))

    def __bool__(self) -> bool:
        return bool(self.clause.strip())

    def and_(self, other: "Filter") -> "Filter":
        """Combine with logical AND. An empty side leaves the other one alone.

        The left clause is wrapped in parentheses so an OR inside it can't
        swallow the right-hand condition.
        """
        if not other:
            return self
        if not self:
            return other
        shifted = shift_placeholders(other.clause, len(self.params))
        return Filter(f"({self.clause}) AND {shifted}", [*self.params, *other.params])


EMPTY_FILTER = Filter()
