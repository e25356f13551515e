"""
Type system for generated accessors.

This module provides:
- AccessKind: closed set of value categories a result column can have
- map_type: database type tag -> AccessKind lookup
- reader_for: AccessKind -> ReaderSpec (row reader operation and Python type)
- Column / Schema: result set shape discovered by the schema probe
- qualify_name: turn a column name into a safe Python identifier
"""
import enum
import keyword
import logging
import re
from dataclasses import dataclass

from querygen.exceptions import UnsupportedColumnError, UnsupportedTypeError

logger = logging.getLogger(__name__)

NULL_TYPE = 'NULL'
ARRAY_TYPE = 'ARRAY'


class AccessKind(enum.Enum):
    """Value category of a result column."""

    BOOLEAN = 'Boolean'
    INT = 'Int'
    LONG = 'Long'
    FLOAT = 'Float'
    DOUBLE = 'Double'
    STRING = 'String'
    ARRAY = 'Array'
    MAP = 'Map'

    @property
    def is_scalar(self) -> bool:
        return self not in {AccessKind.ARRAY, AccessKind.MAP}


@dataclass(frozen=True)
class ReaderSpec:
    """How generated code reads one column.

    operation: ResultRow method called with the 1-based column position
    host_type: Python annotation used for the record field
    """
    operation: str
    host_type: str


TYPE_MAPPING: dict[str, AccessKind] = {}

for v in ['BIT', 'BOOLEAN']:
    TYPE_MAPPING[v] = AccessKind.BOOLEAN

for v in ['TINYINT', 'SMALLINT', 'INTEGER']:
    TYPE_MAPPING[v] = AccessKind.INT

TYPE_MAPPING['BIGINT'] = AccessKind.LONG
TYPE_MAPPING['REAL'] = AccessKind.FLOAT

for v in ['FLOAT', 'DOUBLE', 'DECIMAL', 'NUMERIC']:
    TYPE_MAPPING[v] = AccessKind.DOUBLE

for v in ['CHAR', 'VARCHAR', 'LONGVARCHAR', 'NCHAR', 'NVARCHAR', 'LONGNVARCHAR',
          'CLOB', 'NCLOB', 'DATE', 'TIME', 'TIMESTAMP', 'TIME_WITH_TIMEZONE',
          'TIMESTAMP_WITH_TIMEZONE']:
    TYPE_MAPPING[v] = AccessKind.STRING

TYPE_MAPPING[ARRAY_TYPE] = AccessKind.ARRAY

for v in ['MAP', 'JAVA_OBJECT', 'JSON']:
    TYPE_MAPPING[v] = AccessKind.MAP

# Driver spellings -> canonical tags
TYPE_ALIASES: dict[str, str] = {
    'BOOL': 'BOOLEAN',
    'INT': 'INTEGER',
    'INT2': 'SMALLINT',
    'INT4': 'INTEGER',
    'INT8': 'BIGINT',
    'MEDIUMINT': 'INTEGER',
    'FLOAT4': 'REAL',
    'FLOAT8': 'DOUBLE',
    'DOUBLE PRECISION': 'DOUBLE',
    'CHARACTER': 'CHAR',
    'CHARACTER VARYING': 'VARCHAR',
    'VARYING CHARACTER': 'VARCHAR',
    'NATIVE CHARACTER': 'NCHAR',
    'TEXT': 'VARCHAR',
    'STRING': 'VARCHAR',
    'BPCHAR': 'CHAR',
    'DATETIME': 'TIMESTAMP',
    'TIMESTAMPTZ': 'TIMESTAMP_WITH_TIMEZONE',
    'TIMESTAMP WITH TIME ZONE': 'TIMESTAMP_WITH_TIMEZONE',
    'TIMESTAMP WITHOUT TIME ZONE': 'TIMESTAMP',
    'TIMETZ': 'TIME_WITH_TIMEZONE',
    'TIME WITH TIME ZONE': 'TIME_WITH_TIMEZONE',
    'TIME WITHOUT TIME ZONE': 'TIME',
    'JSONB': 'JSON',
    'NUM': 'NUMERIC',
    '': NULL_TYPE,
}

_READERS: dict[AccessKind, ReaderSpec] = {
    AccessKind.BOOLEAN: ReaderSpec('get_boolean', 'bool'),
    AccessKind.INT: ReaderSpec('get_int', 'int'),
    AccessKind.LONG: ReaderSpec('get_long', 'int'),
    AccessKind.FLOAT: ReaderSpec('get_float', 'float'),
    AccessKind.DOUBLE: ReaderSpec('get_double', 'float'),
    AccessKind.STRING: ReaderSpec('get_string', 'str'),
}

PYTHON_RESERVED: frozenset[str] = frozenset(
    keyword.kwlist + getattr(keyword, 'softkwlist', []) + ['type'])

# Members of the generated record class
RECORD_MEMBERS: frozenset[str] = frozenset(['self', 'from_row', 'to_seq'])

_NON_IDENTIFIER = re.compile(r'\W')


def normalize_type_name(type_name: str | None) -> str:
    """Canonicalize a driver type name, e.g. `varchar(20)` -> `VARCHAR`.
    """
    if type_name is None:
        return NULL_TYPE
    base = re.sub(r'\(.*\)', '', type_name).strip().upper()
    base = ' '.join(base.split())
    return TYPE_ALIASES.get(base, base)


def map_type(sql_type: str, column: str | None = None, source=None) -> AccessKind:
    """Look up the access kind of a database type tag.

    Raises UnsupportedTypeError for tags outside the mapping table.
    """
    try:
        return TYPE_MAPPING[sql_type]
    except KeyError:
        raise UnsupportedTypeError(sql_type, column, source) from None


def qualify_name(name: str, reserved=()) -> str:
    """Escape a result column name into a valid Python identifier.

    Reserved words get a trailing underscore (`type` -> `type_`).
    """
    qname = _NON_IDENTIFIER.sub('_', name) or '_'
    if qname[0].isdigit():
        qname = f'_{qname}'
    if qname in PYTHON_RESERVED or qname in RECORD_MEMBERS or qname in reserved:
        qname = f'{qname}_'
    return qname


@dataclass(frozen=True)
class Column:
    """One result column of a probed query."""

    name: str
    qualified_name: str
    access_kind: AccessKind
    sql_type: str
    is_nullable: bool = True
    element_type: str = NULL_TYPE

    @classmethod
    def create(cls, name: str, sql_type: str, is_nullable: bool = True,
               element_type: str = NULL_TYPE, reserved=(), source=None) -> 'Column':
        """Build a column, resolving its access kind and identifier."""
        return cls(
            name=name,
            qualified_name=qualify_name(name, reserved),
            access_kind=map_type(sql_type, name, source),
            sql_type=sql_type,
            is_nullable=is_nullable,
            element_type=element_type if sql_type == ARRAY_TYPE else NULL_TYPE,
        )


@dataclass(frozen=True)
class Schema:
    """Ordered result columns of one query."""

    columns: tuple[Column, ...] = ()

    def __iter__(self):
        return iter(self.columns)

    def __len__(self) -> int:
        return len(self.columns)

    @property
    def names(self) -> list[str]:
        return [c.qualified_name for c in self.columns]


def reader_for(column: Column, source=None) -> ReaderSpec:
    """Return the reader operation and Python type for a column.

    Array columns resolve their element recursively and must hold scalars;
    map columns and arrays with unknown elements are rejected.
    """
    kind = column.access_kind
    if kind is AccessKind.MAP:
        raise UnsupportedColumnError(column.name, f'map type {column.sql_type} is not supported', source)

    if kind is AccessKind.ARRAY:
        if column.element_type == NULL_TYPE:
            raise UnsupportedColumnError(column.name, 'array element type is unknown', source)
        try:
            element = map_type(column.element_type, column.name, source)
        except UnsupportedTypeError as err:
            raise UnsupportedColumnError(
                column.name, f'unsupported array element type {column.element_type}', source) from err
        if not element.is_scalar:
            raise UnsupportedColumnError(
                column.name, f'nested array element type {column.element_type}', source)
        return ReaderSpec('get_array', f'list[{_READERS[element].host_type}]')

    return _READERS[kind]
