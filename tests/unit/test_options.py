"""Unit tests for option validation and engine setup.
"""
import os
import pathlib
from unittest.mock import MagicMock

import pytest
from querygen.connection import connect, database_options, engine_url, get_engine
from querygen.options import DatabaseOptions, GeneratorConfig
from sqlalchemy.pool import NullPool, QueuePool


class TestDatabaseOptions:

    def test_unsupported_dialect(self):
        with pytest.raises(ValueError, match="Unsupported dialect 'oracle'"):
            DatabaseOptions(drivername='oracle', database='x')

    def test_postgres_requires_host(self):
        with pytest.raises(ValueError, match='postgresql requires hostname'):
            DatabaseOptions(drivername='postgresql', username='u', database='d', port=5432)

    def test_sqlite_requires_database(self):
        with pytest.raises(ValueError, match='sqlite requires database'):
            DatabaseOptions(drivername='sqlite')

    def test_appname_defaults(self):
        options = DatabaseOptions(drivername='sqlite', database='x.db')
        assert options.appname

    def test_postgres_url(self):
        options = DatabaseOptions(drivername='postgresql', hostname='db', username='u',
                                  password='p', database='d', port=5432, timeout=10,
                                  appname='gen')
        url = engine_url(options)
        assert url.drivername == 'postgresql+psycopg'
        assert (url.host, url.port, url.database) == ('db', 5432, 'd')
        assert url.query['connect_timeout'] == '10'
        assert url.query['application_name'] == 'gen'


class TestEngineRegistry:

    def test_engine_reused_with_nullpool(self, tmp_path):
        options = DatabaseOptions(drivername='sqlite', database=str(tmp_path / 'a.db'))
        engine = get_engine(options)
        assert get_engine(options) is engine
        assert isinstance(engine.pool, NullPool)

    def test_engine_factory_kwargs(self, tmp_path):
        options = DatabaseOptions(drivername='sqlite', database=str(tmp_path / 'b.db'))
        factory = MagicMock()
        assert get_engine(options, engine_factory=factory, echo=True) is factory.return_value
        (url,), kwargs = factory.call_args
        assert url.drivername == 'sqlite'
        assert kwargs['echo'] is True
        assert kwargs['poolclass'] is NullPool


class TestGeneratorConfig:

    def test_paths_converted(self):
        config = GeneratorConfig(sql_dir='sql', target_dir='gen', resource_target_dir='res',
                                 reserved_words=['open'])
        assert config.sql_dir == pathlib.Path('sql')
        assert isinstance(config.target_dir, pathlib.Path)
        assert config.reserved_words == ('open',)

    def test_workers_default_to_cpu_count(self):
        config = GeneratorConfig(sql_dir='sql', target_dir='gen', resource_target_dir='gen')
        assert config.workers == (os.cpu_count() or 1)

    @pytest.mark.parametrize('missing', ['sql_dir', 'target_dir', 'resource_target_dir'])
    def test_required_directories(self, missing):
        kwargs = {'sql_dir': 'sql', 'target_dir': 'gen', 'resource_target_dir': 'gen', missing: ''}
        with pytest.raises(ValueError, match=missing):
            GeneratorConfig(**kwargs)

    def test_negative_workers(self):
        with pytest.raises(ValueError, match='workers'):
            GeneratorConfig(sql_dir='sql', target_dir='gen', resource_target_dir='gen', workers=-1)


class TestPooling:

    def test_pool_size(self, tmp_path):
        options = DatabaseOptions(drivername='sqlite', database=str(tmp_path / 'c.db'), pool_size=2)
        assert isinstance(get_engine(options).pool, QueuePool)

    def test_negative_pool_size(self, tmp_path):
        with pytest.raises(ValueError, match='pool_size'):
            DatabaseOptions(drivername='sqlite', database='x.db', pool_size=-1)

    def test_overrides_on_instance(self, tmp_path):
        options = DatabaseOptions(drivername='sqlite', database=str(tmp_path / 'd.db'))
        assert database_options(options) is options
        assert database_options(options, pool_size=3).pool_size == 3


def test_connect_from_dict(sqlite_options):
    cn = connect({'drivername': 'sqlite', 'database': sqlite_options.database})
    try:
        cursor = cn.cursor()
        cursor.execute('select count(*) from prices')
        assert cursor.fetchone()[0] == 3
        cursor.close()
    finally:
        cn.close()
