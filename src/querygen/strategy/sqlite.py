"""
SQLite-specific strategy implementation.

The sqlite3 driver leaves `type_code` empty in `cursor.description`, so the
query is instead wrapped in a temporary view and described with
`PRAGMA table_info`. Columns that are plain references keep their declared
type; computed columns may report only an affinity or nothing at all.
"""
import logging
import uuid
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from querygen.strategy.base import ColumnDescription, DialectStrategy
from querygen.strategy.base import register_strategy
from querygen.types import normalize_type_name

if TYPE_CHECKING:
    from querygen.options import DatabaseOptions

logger = logging.getLogger(__name__)


@register_strategy('sqlite')
class SQLiteStrategy(DialectStrategy):
    """SQLite-specific probing.
    """

    required_options = ('database',)

    def connection_url(self, options: 'DatabaseOptions') -> sa.URL:
        return sa.URL.create(drivername='sqlite', database=options.database)

    def describe(self, connection: Any, sql: str) -> list[ColumnDescription]:
        """Describe the query through a temporary view.

        A view definition never runs the query, so no row bound is needed.
        """
        view = self.quote_identifier(f'querygen_probe_{uuid.uuid4().hex}')
        cursor = connection.cursor()
        try:
            cursor.execute(f'CREATE TEMP VIEW {view} AS\n{sql}')
            try:
                cursor.execute(f'PRAGMA table_info({view})')
                rows = cursor.fetchall()
            finally:
                cursor.execute(f'DROP VIEW IF EXISTS temp.{view}')
        finally:
            cursor.close()

        logger.debug(f'table_info: {rows}')
        return [ColumnDescription(name=row[1],
                                  sql_type=normalize_type_name(row[2]),
                                  is_nullable=not row[3])
                for row in rows]
