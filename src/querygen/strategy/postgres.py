"""
PostgreSQL-specific strategy implementation.

psycopg reports the type OID of every result column in `cursor.description`,
so the zero-row probe query is executed directly and the OIDs are translated
into canonical type tags. Array OIDs resolve to `ARRAY` plus the element tag.
PostgreSQL does not report nullability for query results; every column is
treated as nullable.
"""
import logging
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from psycopg.postgres import types as pg_types
from querygen.strategy.base import ColumnDescription, DialectStrategy
from querygen.strategy.base import register_strategy
from querygen.types import ARRAY_TYPE, NULL_TYPE, normalize_type_name

if TYPE_CHECKING:
    from querygen.options import DatabaseOptions

logger = logging.getLogger(__name__)

_oid = lambda x: pg_types.get(x).oid
_aoid = lambda x: pg_types.get(x).array_oid

# OID -> (type tag, element tag)
postgres_type_tags: dict[int, tuple[str, str]] = {}

for v in ['bool', 'int2', 'int4', 'int8', 'float4', 'float8', 'numeric', 'bpchar',
          'varchar', 'text', 'date', 'time', 'timetz', 'timestamp', 'timestamptz',
          'json', 'jsonb']:
    postgres_type_tags[_oid(v)] = (normalize_type_name(v), NULL_TYPE)

for v in ['name', 'uuid']:
    postgres_type_tags[_oid(v)] = ('VARCHAR', NULL_TYPE)

for k, (tag, _) in list(postgres_type_tags.items()):
    postgres_type_tags[_aoid(pg_types.get(k).name)] = (ARRAY_TYPE, tag)


def resolve_type_code(type_code: int) -> tuple[str, str]:
    """Translate a type OID into `(type tag, element tag)`.

    Unknown OIDs keep the PostgreSQL type name so errors stay readable.
    """
    if type_code in postgres_type_tags:
        return postgres_type_tags[type_code]
    info = pg_types.get(type_code)
    if info is None:
        return f'OID {type_code}', NULL_TYPE
    return info.name.upper(), NULL_TYPE


@register_strategy('postgresql')
class PostgresStrategy(DialectStrategy):
    """PostgreSQL-specific probing.
    """

    required_options = ('hostname', 'username', 'database', 'port')

    def connection_url(self, options: 'DatabaseOptions') -> sa.URL:
        query = {}
        if options.timeout:
            query['connect_timeout'] = str(options.timeout)
        if options.appname:
            query['application_name'] = options.appname
        return sa.URL.create(
            drivername='postgresql+psycopg',
            username=options.username,
            password=options.password,
            host=options.hostname,
            port=options.port,
            database=options.database,
            query=query,
        )

    def describe(self, connection: Any, sql: str) -> list[ColumnDescription]:
        """Run the zero-row query and read OIDs from the cursor description.
        """
        with self.executed(connection, self.wrap_with_limit0(sql)) as cursor:
            description = cursor.description or []
            columns = []
            for item in description:
                sql_type, element_type = resolve_type_code(item.type_code)
                nullable = True if item.null_ok is None else bool(item.null_ok)
                columns.append(ColumnDescription(item.name, sql_type, nullable, element_type))
        return columns
