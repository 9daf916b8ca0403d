"""Transaction management for fluentql.

One ``TransactionManager`` lives on every ``SQLEngine`` as
``engine.transactions``.
"""

from fluentql.transactions.manager import TransactionManager, TransactionState

__all__ = [
    "TransactionManager",
    "TransactionState",
]
