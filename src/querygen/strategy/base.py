"""
Dialect strategies for the schema probe.

Drivers disagree on how much they say about a result set: psycopg reports a
type OID per column, sqlite3 reports nothing but names. A strategy turns one
runnable query into `ColumnDescription`s (name, canonical type tag,
nullability) and knows how to reach its database through SQLAlchemy.

Strategies register themselves by dialect name:

    @register_strategy('postgresql')
    class PostgresStrategy(DialectStrategy):
        required_options = ('hostname', 'username', 'database', 'port')
"""
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from querygen.types import NULL_TYPE

if TYPE_CHECKING:
    from querygen.options import DatabaseOptions

_STRATEGY_REGISTRY: dict[str, type['DialectStrategy']] = {}


def register_strategy(dialect: str):
    """Class decorator adding a strategy to the registry under `dialect`."""
    def decorator(cls: type['DialectStrategy']) -> type['DialectStrategy']:
        cls.dialect = dialect
        _STRATEGY_REGISTRY[dialect] = cls
        return cls
    return decorator


@dataclass(frozen=True)
class ColumnDescription:
    """What the database reports about one result column."""

    name: str
    sql_type: str
    is_nullable: bool = True
    element_type: str = NULL_TYPE


class DialectStrategy(ABC):
    """Probe and connection details of one database dialect.

    Subclasses set `required_options`, the DatabaseOptions fields that must
    be non-empty, and implement `describe` and `connection_url`.
    """

    dialect: str = ''
    required_options: tuple[str, ...] = ()

    @contextmanager
    def executed(self, connection: Any, sql: str):
        """Yield a cursor that has run `sql`; the cursor is always closed."""
        cursor = connection.cursor()
        try:
            cursor.execute(sql)
            yield cursor
        finally:
            cursor.close()

    def wrap_with_limit0(self, sql: str) -> str:
        """Nest `sql` in a query that plans and types it but returns no rows.
        """
        return f'SELECT * FROM (\n{sql}\n) AS probe\nLIMIT 0'

    @abstractmethod
    def describe(self, connection: Any, sql: str) -> list[ColumnDescription]:
        """Describe the result columns of `sql` without fetching rows.

        Args:
            connection: Open DB-API connection
            sql: Runnable query text with every placeholder populated

        Returns
            Column descriptions in result order
        """

    @abstractmethod
    def connection_url(self, options: 'DatabaseOptions') -> sa.URL:
        """SQLAlchemy URL of the probe database."""

    def engine_kwargs(self, options: 'DatabaseOptions') -> dict[str, Any]:
        """Dialect-specific `create_engine` arguments."""
        return {}

    @classmethod
    def validate_options(cls, options: 'DatabaseOptions') -> None:
        """Raise ValueError naming every required option left empty."""
        missing = [name for name in cls.required_options if not getattr(options, name)]
        if missing:
            raise ValueError(f'{cls.dialect} requires {", ".join(missing)}')

    def quote_identifier(self, identifier: str) -> str:
        return '"' + identifier.replace('"', '""') + '"'
