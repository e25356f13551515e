"""Unit tests for the command line entry point.
"""
import logging

import pytest
from querygen import cli


@pytest.fixture
def prices_sql(tmp_path):
    sql_dir = tmp_path / 'sql'
    (sql_dir / 'market').mkdir(parents=True)
    (sql_dir / 'market' / 'prices.sql').write_text(
        "select symbol, open from prices where symbol = '${symbol:String}'", encoding='utf-8')
    return sql_dir


def test_parse_args_defaults():
    args = cli.parse_args(['--sql-dir', 'sql', '--target-dir', 'gen'])
    assert args.drivername == 'postgresql'
    assert args.resource_dir is None
    assert args.workers == 0
    assert not args.keep_going
    assert args.reserved == []


def test_generates_files(prices_sql, sqlite_options, tmp_path, capsys):
    target = tmp_path / 'gen'
    code = cli.main(['--sql-dir', str(prices_sql), '--target-dir', str(target),
                     '--drivername', 'sqlite', '--database', sqlite_options.database,
                     '--workers', '1'])
    assert code == 0
    assert (target / 'market' / 'prices.py').is_file()
    assert (target / 'market' / 'prices.sql').is_file()
    out = capsys.readouterr().out.strip()
    assert out == f"{target / 'market' / 'prices.py'}\t{target / 'market' / 'prices.sql'}"


def test_invalid_options(tmp_path, caplog):
    with caplog.at_level(logging.ERROR):
        code = cli.main(['--sql-dir', str(tmp_path), '--target-dir', str(tmp_path),
                         '--drivername', 'sqlite'])
    assert code == 2
    assert 'Invalid options' in caplog.text


def test_generation_failure(prices_sql, sqlite_options, tmp_path):
    (prices_sql / 'broken.sql').write_text('select ${oops}', encoding='utf-8')
    code = cli.main(['--sql-dir', str(prices_sql), '--target-dir', str(tmp_path / 'gen'),
                     '--drivername', 'sqlite', '--database', sqlite_options.database])
    assert code == 1
