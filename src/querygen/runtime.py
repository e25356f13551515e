"""
Runtime support imported by generated accessor modules.

- ResultRow: typed, 1-based readers over one DB-API result row
- SQLResource: stored query text, loaded lazily and rendered by markers
- run_query: execute SQL on an open connection and materialize records
"""
import logging
import pathlib
import sys
import threading
from collections.abc import Callable, Sequence
from typing import Any, TypeVar

from querygen.template import render_segments, split_markers

logger = logging.getLogger(__name__)

T = TypeVar('T')


class ResultRow:
    """Positional readers over one row, indexed from 1. NULL reads as None.
    """

    __slots__ = ('_row',)

    def __init__(self, row: Sequence[Any]) -> None:
        self._row = row

    def _get(self, index: int) -> Any:
        if index < 1:
            raise IndexError(f'Column index starts at 1, got {index}')
        return self._row[index - 1]

    def get_boolean(self, index: int) -> bool | None:
        value = self._get(index)
        return None if value is None else bool(value)

    def get_int(self, index: int) -> int | None:
        value = self._get(index)
        return None if value is None else int(value)

    get_long = get_int

    def get_float(self, index: int) -> float | None:
        value = self._get(index)
        return None if value is None else float(value)

    get_double = get_float

    def get_string(self, index: int) -> str | None:
        value = self._get(index)
        return None if value is None else str(value)

    def get_array(self, index: int) -> list | None:
        value = self._get(index)
        return None if value is None else list(value)


def find_resource(path: str) -> pathlib.Path:
    """Locate a stored query under the `sys.path` roots.

    `path` is relative to the resource root, e.g. `/market/prices.sql`.
    """
    relative = path.lstrip('/')
    for root in sys.path:
        candidate = pathlib.Path(root or '.') / relative
        if candidate.is_file():
            return candidate
    raise FileNotFoundError(f'Resource {path} not found on sys.path')


class SQLResource:
    """Stored query text of one generated accessor.
    """

    def __init__(self, path: str, loader: Callable[[str], pathlib.Path] = find_resource) -> None:
        self.path = path
        self._loader = loader
        self._text = None
        self._segments = None
        self._lock = threading.Lock()

    @property
    def text(self) -> str:
        if self._text is None:
            with self._lock:
                if self._text is None:
                    self._text = self._loader(self.path).read_text(encoding='utf-8')
        return self._text

    @property
    def segments(self) -> list[tuple[str, str | None]]:
        if self._segments is None:
            self._segments = split_markers(self.text)
        return self._segments

    def render(self, values: dict[str, Any]) -> str:
        """Substitute arguments for the `${name}` markers.
        """
        return render_segments(self.segments, values)


def run_query(cn: Any, sql: str, reader: Callable[[ResultRow], T]) -> list[T]:
    """Execute `sql` and read every row through `reader`.

    The cursor is closed on every exit path; the connection stays open.
    """
    logger.debug(f'SQL:\n{sql}')
    cursor = cn.cursor()
    try:
        cursor.execute(sql)
        return [reader(ResultRow(row)) for row in cursor.fetchall()]
    finally:
        cursor.close()
