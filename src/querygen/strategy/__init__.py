"""
Registered dialect strategies.

Importing this package registers the PostgreSQL and SQLite strategies;
`get_strategy(name)` returns a shared instance.
"""
from functools import cache

from querygen.strategy.base import _STRATEGY_REGISTRY
from querygen.strategy.base import ColumnDescription as ColumnDescription
from querygen.strategy.base import DialectStrategy as DialectStrategy
from querygen.strategy.base import register_strategy as register_strategy
from querygen.strategy.postgres import PostgresStrategy as PostgresStrategy
from querygen.strategy.sqlite import SQLiteStrategy as SQLiteStrategy


def get_strategy_class(dialect: str) -> type[DialectStrategy]:
    """Strategy class registered for `dialect`; ValueError when unknown."""
    try:
        return _STRATEGY_REGISTRY[dialect]
    except KeyError:
        raise ValueError(f'Unsupported dialect {dialect!r}, '
                         f'expected one of {get_available_dialects()}') from None


@cache
def get_strategy(dialect: str) -> DialectStrategy:
    return get_strategy_class(dialect)()


def get_available_dialects() -> list[str]:
    return sorted(_STRATEGY_REGISTRY)
