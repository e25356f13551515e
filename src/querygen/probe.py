"""
Schema discovery for query files.

`probe` runs a populated query in a form that returns no rows and turns the
reported result columns into a `Schema`. The connection is scoped to the
call: opened, used once, and closed on every exit path.
"""
import dataclasses
import logging
import time
from collections.abc import Callable
from contextlib import closing
from typing import Any

from querygen.exceptions import SchemaProbeError
from querygen.strategy import DialectStrategy
from querygen.types import Column, Schema

logger = logging.getLogger(__name__)


def wrap_with_limit0(sql: str, strategy: DialectStrategy | None = None) -> str:
    """Bound a query to zero returned rows.
    """
    if strategy is not None:
        return strategy.wrap_with_limit0(sql)
    return f'SELECT * FROM (\n{sql}\n) AS probe\nLIMIT 0'


def probe(connection_factory: Callable[[], Any], populated_sql: str,
          strategy: DialectStrategy, source=None, reserved_words=()) -> Schema:
    """Discover the result columns of a populated query.

    Args:
        connection_factory: Callable returning an open DB-API connection
        populated_sql: Query with every placeholder replaced by a literal
        strategy: Dialect strategy describing the result columns
        source: SQL file the query came from, used in error messages
        reserved_words: Extra column names to escape

    Returns
        Schema with one Column per result column, in result order

    Raises
        SchemaProbeError: connection, execution or metadata failure
        UnsupportedTypeError: a column type has no mapping
    """
    start = time.time()
    try:
        with closing(connection_factory()) as cn:
            descriptions = strategy.describe(cn, populated_sql)
    except Exception as err:
        logger.error(f'Schema probe failed for {source}: {err}')
        raise SchemaProbeError(f'Schema probe failed: {err}', source, err) from err

    columns = []
    seen = set()
    for d in descriptions:
        column = Column.create(d.name, d.sql_type, d.is_nullable, d.element_type,
                               reserved=reserved_words, source=source)
        qname, n = column.qualified_name, 1
        while qname in seen:
            n += 1
            qname = f'{column.qualified_name}_{n}'
        if qname != column.qualified_name:
            logger.warning(f'{source}: duplicate column {d.name!r} renamed to {qname}')
            column = dataclasses.replace(column, qualified_name=qname)
        seen.add(qname)
        columns.append(column)
    schema = Schema(tuple(columns))
    logger.debug(f'Probed {source} in {time.time() - start:.3f}s: '
                 f'{[(c.name, c.sql_type) for c in columns]}')
    return schema
