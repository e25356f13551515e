"""Unit tests for the build orchestrator.

Schema probing is served by a fake PostgreSQL connection whose description
depends on the probed SQL, so whole generation runs need no database.
"""
import os
import time

import pytest
from querygen import generator as generator_module
from querygen.exceptions import GenerationError, ParseError, UnsupportedTypeError
from querygen.generator import BuildIdentity, GenerationUnit, Generator, find_sql_files
from querygen.strategy import PostgresStrategy

PRICES = ("select symbol, open, volume from prices "
          "where TD_RANGE(time, '${start:String}', '${end:String}')")
SYMBOLS = 'select symbol from symbols limit ${n:Int=10}'
BLOBS = 'select payload from blobs'


@pytest.fixture
def describe(pg_column):
    def description(sql):
        if 'payload' in sql:
            return [pg_column('payload', 'bytea')]
        if 'volume' in sql:
            return [pg_column('symbol', 'varchar'), pg_column('open', 'float8'),
                    pg_column('volume', 'int8')]
        return [pg_column('symbol', 'varchar')]
    return description


@pytest.fixture
def make_generator(fake_connection_factory, describe):
    def factory(build_time=0):
        connections = fake_connection_factory(description=describe)
        gen = Generator(connections, PostgresStrategy(), BuildIdentity('test', build_time))
        return gen, connections
    return factory


def snapshot(paths):
    return {p: (p.read_bytes(), p.stat().st_mtime_ns) for p in paths}


class TestFindSqlFiles:

    def test_recursive_and_sorted(self, sql_tree):
        config = sql_tree({'b.sql': SYMBOLS, 'a/x.sql': SYMBOLS, 'a/notes.txt': 'x'})
        (config.sql_dir / 'a' / 'dir.sql').mkdir()
        assert [p.relative_to(config.sql_dir).as_posix() for p in find_sql_files(config.sql_dir)] \
            == ['a/x.sql', 'b.sql']


class TestGenerate:

    def test_outputs(self, sql_tree, make_generator):
        config = sql_tree({'market/prices.sql': PRICES, 'symbols.sql': SYMBOLS})
        gen, _ = make_generator()
        results = gen.generate(config)

        assert results == [
            (config.target_dir / 'market' / 'prices.py', config.resource_target_dir / 'market' / 'prices.sql'),
            (config.target_dir / 'symbols.py', config.resource_target_dir / 'symbols.sql'),
        ]
        assert (config.resource_target_dir / 'symbols.sql').read_text() == 'select symbol from symbols limit ${n}'
        assert 'def sql(n: int = 10) -> str:' in (config.target_dir / 'symbols.py').read_text()

    def test_outputs_stamped_with_source_time(self, sql_tree, make_generator):
        config = sql_tree({'symbols.sql': SYMBOLS})
        gen, _ = make_generator()
        ((target, resource),) = gen.generate(config)
        sql_mtime = (config.sql_dir / 'symbols.sql').stat().st_mtime_ns
        assert target.stat().st_mtime_ns == sql_mtime
        assert resource.stat().st_mtime_ns == sql_mtime

    def test_build_time_newer_than_source(self, sql_tree, make_generator):
        config = sql_tree({'symbols.sql': SYMBOLS})
        build_time = (config.sql_dir / 'symbols.sql').stat().st_mtime_ns + 5_000_000_000
        gen, _ = make_generator(build_time)
        ((target, _),) = gen.generate(config)
        assert target.stat().st_mtime_ns == build_time

    def test_empty_tree(self, sql_tree, make_generator):
        config = sql_tree({})
        config.sql_dir.mkdir()
        gen, connections = make_generator()
        assert gen.generate(config) == []
        assert connections.connections == []


class TestIncremental:

    def test_second_run_writes_nothing(self, sql_tree, make_generator):
        config = sql_tree({'market/prices.sql': PRICES, 'symbols.sql': SYMBOLS})
        gen, connections = make_generator()
        results = gen.generate(config)
        outputs = [p for pair in results for p in pair]
        before = snapshot(outputs)
        probes = len(connections.connections)

        assert gen.generate(config) == results
        assert snapshot(outputs) == before
        assert len(connections.connections) == probes

    def test_touching_source_forces_regeneration(self, sql_tree, make_generator):
        config = sql_tree({'market/prices.sql': PRICES, 'symbols.sql': SYMBOLS})
        gen, connections = make_generator()
        gen.generate(config)
        probes = len(connections.connections)

        sql_file = config.sql_dir / 'symbols.sql'
        later = sql_file.stat().st_mtime_ns + 2_000_000_000
        os.utime(sql_file, ns=(later, later))
        gen.generate(config)

        assert len(connections.connections) == probes + 1
        assert (config.target_dir / 'symbols.py').stat().st_mtime_ns == later

    def test_newer_generator_regenerates(self, sql_tree, make_generator):
        config = sql_tree({'symbols.sql': SYMBOLS})
        gen, _ = make_generator()
        gen.generate(config)

        build_time = time.time_ns() + 10_000_000_000
        newer, connections = make_generator(build_time)
        newer.generate(config)
        assert len(connections.connections) == 1

    def test_missing_output_regenerates(self, sql_tree, make_generator):
        config = sql_tree({'symbols.sql': SYMBOLS})
        gen, connections = make_generator()
        ((target, resource),) = gen.generate(config)
        resource.unlink()
        gen.generate(config)
        assert resource.is_file()
        assert len(connections.connections) == 2

    def test_unit_up_to_date(self, sql_tree):
        config = sql_tree({'symbols.sql': SYMBOLS})
        unit = GenerationUnit.create(config.sql_dir / 'symbols.sql', config, 0)
        assert not unit.is_up_to_date()
        for path in (unit.target_file, unit.resource_file):
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text('')
            os.utime(path, ns=(unit.latest, unit.latest))
        assert unit.is_up_to_date()


class TestFailures:

    def test_unsupported_type_leaves_no_files(self, sql_tree, make_generator):
        config = sql_tree({'blobs.sql': BLOBS})
        gen, _ = make_generator()
        with pytest.raises(UnsupportedTypeError) as exc:
            gen.generate(config)
        assert exc.value.column == 'payload'
        assert exc.value.path == config.sql_dir / 'blobs.sql'
        assert not (config.target_dir / 'blobs.py').exists()
        assert not (config.resource_target_dir / 'blobs.sql').exists()

    def test_fail_fast_raises_original_error(self, sql_tree, make_generator):
        config = sql_tree({'broken.sql': 'select ${oops}', 'symbols.sql': SYMBOLS}, workers=1)
        gen, _ = make_generator()
        with pytest.raises(ParseError) as exc:
            gen.generate(config)
        assert exc.value.path == config.sql_dir / 'broken.sql'

    def test_keep_going_reports_every_failure(self, sql_tree, make_generator):
        config = sql_tree({'blobs.sql': BLOBS, 'broken.sql': 'select ${oops}',
                           'symbols.sql': SYMBOLS}, keep_going=True)
        gen, _ = make_generator()
        with pytest.raises(GenerationError) as exc:
            gen.generate(config)

        failed = [path.name for path, _ in exc.value.failures]
        assert failed == ['blobs.sql', 'broken.sql']
        assert exc.value.results == [(config.target_dir / 'symbols.py',
                                      config.resource_target_dir / 'symbols.sql')]
        assert (config.target_dir / 'symbols.py').is_file()
        assert '2 file(s) failed' in str(exc.value)

    def test_failed_source_write_removes_resource(self, sql_tree, make_generator, monkeypatch):
        config = sql_tree({'symbols.sql': SYMBOLS})
        write_text = generator_module._write_text

        def failing_write(path, text):
            if path.suffix == '.py':
                raise OSError('disk full')
            write_text(path, text)

        monkeypatch.setattr(generator_module, '_write_text', failing_write)
        gen, _ = make_generator()
        with pytest.raises(OSError, match='disk full'):
            gen.generate(config)
        assert not (config.resource_target_dir / 'symbols.sql').exists()


class TestBuildIdentity:

    def test_packaged_metadata(self):
        identity = BuildIdentity.load()
        assert identity.version
        assert identity.build_time > 0
        assert identity.build_time % 1_000_000 == 0

    def test_missing_metadata_zero(self, monkeypatch):
        monkeypatch.setattr(generator_module, 'BUILD_METADATA', 'missing.json')
        assert BuildIdentity.load(missing='zero') == BuildIdentity('unknown', 0)

    def test_missing_metadata_now(self, monkeypatch):
        monkeypatch.setattr(generator_module, 'BUILD_METADATA', 'missing.json')
        before = time.time_ns()
        assert BuildIdentity.load().build_time >= before

    def test_missing_metadata_error(self, monkeypatch):
        monkeypatch.setattr(generator_module, 'BUILD_METADATA', 'missing.json')
        with pytest.raises(FileNotFoundError):
            BuildIdentity.load(missing='error')
