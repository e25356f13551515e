"""
SQLAlchemy engines and DB-API connection factories for the schema probe.

One engine is created per distinct set of options and shared by every
generator worker through a lock-guarded registry. Each probe checks out its
own raw DB-API connection through the callable `connection_factory` returns
and closes it when done; with the default `NullPool` that closes the
underlying connection.
"""
import atexit
import dataclasses
import logging
import threading
from collections.abc import Callable
from typing import Any

import sqlalchemy as sa
from querygen.options import DatabaseOptions
from querygen.strategy import get_strategy
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool, QueuePool

from libb import load_options

logger = logging.getLogger(__name__)

_engines: dict[str, Engine] = {}
_engines_lock = threading.Lock()


def database_options(options: DatabaseOptions | dict[str, Any] | str,
                     config: Any | None = None, **kw: Any) -> DatabaseOptions:
    """Resolve options given as an instance, a dict or a config section name.

    `kw` overrides individual fields, as with `libb.load_options`.
    """
    if isinstance(options, DatabaseOptions):
        return dataclasses.replace(options, **kw) if kw else options
    return load_options(cls=DatabaseOptions)(lambda o, c: o)(options, config, **kw)


def engine_url(options: DatabaseOptions) -> sa.URL:
    return get_strategy(options.drivername).connection_url(options)


def _pool_kwargs(options: DatabaseOptions) -> dict[str, Any]:
    if not options.pool_size:
        return {'poolclass': NullPool}
    return {'poolclass': QueuePool, 'pool_size': options.pool_size, 'pool_pre_ping': True}


def get_engine(options: DatabaseOptions,
               engine_factory: Callable[..., Engine] = sa.create_engine,
               **kwargs: Any) -> Engine:
    """Engine for `options`, created on first use and shared afterwards.

    `kwargs` are passed to `engine_factory` on creation only.
    """
    key = str(options)
    with _engines_lock:
        engine = _engines.get(key)
        if engine is None:
            url = engine_url(options)
            params = _pool_kwargs(options)
            params.update(get_strategy(options.drivername).engine_kwargs(options))
            params.update(kwargs)
            engine = _engines[key] = engine_factory(url, **params)
            logger.debug(f'Created engine for {url.render_as_string(hide_password=True)}')
        return engine


def dispose_engines() -> None:
    """Dispose and forget every registered engine."""
    with _engines_lock:
        for engine in _engines.values():
            engine.dispose()
        _engines.clear()


atexit.register(dispose_engines)


def connection_factory(options: DatabaseOptions | dict[str, Any] | str,
                       config: Any | None = None, **kw: Any) -> Callable[[], Any]:
    """Zero-argument callable opening a DB-API connection.

    Args:
        options: DatabaseOptions, a dict of its fields, or the name of a
            section in `config`
        config: Configuration module or object holding named sections
        **kw: Field overrides

    The connections are SQLAlchemy pool proxies; `close()` returns them to
    the engine.
    """
    return get_engine(database_options(options, config, **kw)).raw_connection


def connect(options: DatabaseOptions | dict[str, Any] | str,
            config: Any | None = None, **kw: Any) -> Any:
    """Open one DB-API connection; the caller closes it."""
    return connection_factory(options, config, **kw)()
