"""
Option dataclasses for probing and generation.

Both are `libb.ConfigOptions`, so they can be built directly, from a dict,
or from a named section of a config module via `libb.load_options`.
"""
import os
import pathlib
from dataclasses import dataclass, field

from querygen.strategy import get_strategy_class

from libb import ConfigOptions, scriptname

__all__ = [
    'DatabaseOptions',
    'GeneratorConfig',
]


@dataclass
class DatabaseOptions(ConfigOptions):
    """Where the schema probe connects

    - drivername: registered dialect, `postgresql` or `sqlite`
    - database: database name, or the file path for sqlite
    - timeout: connect timeout in seconds, 0 for the driver default
    - appname: reported to the server, defaults to the running script name
    - pool_size: connections kept open between probes, 0 opens one per probe
    """
    drivername: str = 'postgresql'
    hostname: str = None
    port: int = 0
    database: str = None
    username: str = None
    password: str = None
    timeout: int = 0
    appname: str = None
    pool_size: int = 0

    def __post_init__(self):
        strategy_cls = get_strategy_class(self.drivername)
        strategy_cls.validate_options(self)
        if self.pool_size < 0:
            raise ValueError('pool_size cannot be negative')
        self.appname = self.appname or scriptname() or 'querygen'


@dataclass
class GeneratorConfig(ConfigOptions):
    """Directories and execution settings for one generation run

    - sql_dir: root searched recursively for `*.sql` files
    - target_dir: root for generated Python modules
    - resource_target_dir: root for the stored query text
    - workers: worker threads, 0 means one per CPU
    - keep_going: attempt every file and report all failures at the end
    - reserved_words: extra column names escaped like Python keywords
    """
    sql_dir: pathlib.Path = None
    target_dir: pathlib.Path = None
    resource_target_dir: pathlib.Path = None
    workers: int = 0
    keep_going: bool = False
    reserved_words: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        for name in ('sql_dir', 'target_dir', 'resource_target_dir'):
            value = getattr(self, name)
            if not value:
                raise ValueError(f'{name} is required')
            setattr(self, name, pathlib.Path(value))
        if self.workers < 0:
            raise ValueError('workers cannot be negative')
        self.workers = self.workers or os.cpu_count() or 1
        self.reserved_words = tuple(self.reserved_words or ())
