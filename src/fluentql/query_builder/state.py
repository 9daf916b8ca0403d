"""Statement state held by a query builder."""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

WILDCARD = "*"


@dataclass
class WhereClause:
    """One WHERE (or ON) fragment.

    ``connector`` is ignored for the first clause of a list.
    """
    connector: Optional[str]
    expression: str


@dataclass
class UnionBranch:
    sql: str
    params: Dict[str, Any]
    all: bool = False


@dataclass
class StatementState:
    """Clause fragments accumulated by the fluent mutators.

    Fragments are stored pre-rendered. The renderer only concatenates them,
    after the one-time resolution pass has rewritten table and column
    references.
    """
    select: str = WILDCARD
    distinct: bool = False
    distinct_on: List[str] = field(default_factory=list)
    from_: Optional[str] = None
    joins: List[str] = field(default_factory=list)
    where: List[WhereClause] = field(default_factory=list)
    group_by: List[str] = field(default_factory=list)
    having: List[str] = field(default_factory=list)
    order_by: List[str] = field(default_factory=list)
    limit: Optional[int] = None
    offset: Optional[int] = None
    custom: Optional[str] = None
    unions: List[UnionBranch] = field(default_factory=list)

    def copy(self) -> "StatementState":
        return copy.deepcopy(self)

    @property
    def has_select_list(self) -> bool:
        return self.select != WILDCARD

    def add_where(self, expression: str, connector: Optional[str] = "AND") -> None:
        self.where.append(WhereClause(connector if self.where else None, expression))
