"""The public query builder."""

from typing import Any, Callable, Dict, Optional, TypeVar

from fluentql.common.exceptions import invalid_argument_error
from fluentql.query_builder.aggregate import AggregateMixin
from fluentql.query_builder.base import BaseQueryBuilder
from fluentql.query_builder.dml import DmlMixin
from fluentql.query_builder.fetch import FetchMixin

T = TypeVar("T")


class QueryBuilder(FetchMixin, AggregateMixin, DmlMixin, BaseQueryBuilder):
    """Fluent SQL builder bound to one ``SQLEngine``.

    Example:
        >>> qb = engine.query()
        >>> rows = (
        ...     qb.select("u.id", "u.name")
        ...     .from_("users", "u")
        ...     .left_join("posts", "p", "p.user_id", "=", "u.id")
        ...     .where("u.active", 1)
        ...     .order_by("u.name")
        ...     .fetch_all()
        ... )
        >>> qb.count()  # same FROM/WHERE, builder unchanged

    Extensions replace global macros: they are injected at construction
    (here or on the engine) and called through ``apply``:

        >>> def active(builder, flag=1):
        ...     return builder.where("active", flag)
        >>> qb = QueryBuilder(engine, extensions={"active": active})
        >>> qb.from_("users").apply("active").fetch_all()
    """

    def _derive(self) -> "QueryBuilder":
        """Read-only statement variant used by fetch and aggregate helpers."""
        return self.clone()

    # Extensions ------------------------------------------------------------

    @property
    def extensions(self) -> Dict[str, Callable[..., Any]]:
        return dict(self._extensions)

    def has_extension(self, name: str) -> bool:
        return name in self._extensions

    def apply(self, name: str, *args: Any, **kwargs: Any) -> Any:
        """Invoke an injected extension with this builder as first argument.

        Raises:
            FluentQLError: INVALID_ARGUMENT for an unknown extension name
        """
        extension = self._extensions.get(name)
        if extension is None:
            raise invalid_argument_error(
                f"No extension named '{name}' is registered",
                argument="name",
                value=name,
                details={"available": sorted(self._extensions)},
            )
        return extension(self, *args, **kwargs)

    # Transactions ----------------------------------------------------------

    def begin(self) -> "QueryBuilder":
        self.engine.transactions.begin()
        return self

    def commit(self) -> "QueryBuilder":
        self.engine.transactions.commit()
        return self

    def rollback(self) -> "QueryBuilder":
        self.engine.transactions.rollback()
        return self

    def transaction(self, callback: Callable[["QueryBuilder"], T]) -> T:
        """Run ``callback(self)`` in a transaction (a savepoint when nested)."""
        return self.engine.transactions.transaction(callback, self)

    def transaction_with_retry(
        self,
        callback: Callable[["QueryBuilder"], T],
        attempts: Optional[int] = None,
        sleep_ms: Optional[int] = None,
    ) -> T:
        return self.engine.transactions.transaction_with_retry(
            lambda: callback(self), attempts=attempts, sleep_ms=sleep_ms
        )
