"""
Command line entry point: `querygen` or `python -m querygen`.
"""
import argparse
import logging
import sys

from querygen import generate
from querygen.exceptions import GeneratorError
from querygen.options import DatabaseOptions, GeneratorConfig

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog='querygen',
                                     description='Generate typed Python accessors from SQL files')
    parser.add_argument('--sql-dir', required=True, help='Root searched for *.sql files')
    parser.add_argument('--target-dir', required=True, help='Output root for generated modules')
    parser.add_argument('--resource-dir', help='Output root for stored queries (default: --target-dir)')
    parser.add_argument('--drivername', default='postgresql', help='Database dialect (default: postgresql)')
    parser.add_argument('--database', help='Database name, or file path for sqlite')
    parser.add_argument('--hostname', help='Database host')
    parser.add_argument('--port', type=int, default=0, help='Database port')
    parser.add_argument('--username', help='Database user')
    parser.add_argument('--password', help='Database password')
    parser.add_argument('--timeout', type=int, default=0, help='Connect timeout in seconds')
    parser.add_argument('--workers', type=int, default=0, help='Worker threads (default: one per CPU)')
    parser.add_argument('--keep-going', action='store_true', help='Attempt every file before failing')
    parser.add_argument('--reserved', action='append', default=[], help='Extra column name to escape')
    parser.add_argument('-v', '--verbose', action='count', default=0, help='-v info, -vv debug')
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    level = [logging.WARNING, logging.INFO, logging.DEBUG][min(args.verbose, 2)]
    logging.basicConfig(level=level, format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    try:
        config = GeneratorConfig(
            sql_dir=args.sql_dir,
            target_dir=args.target_dir,
            resource_target_dir=args.resource_dir or args.target_dir,
            workers=args.workers,
            keep_going=args.keep_going,
            reserved_words=tuple(args.reserved),
        )
        options = DatabaseOptions(
            drivername=args.drivername,
            hostname=args.hostname,
            username=args.username,
            password=args.password,
            database=args.database,
            port=args.port,
            timeout=args.timeout,
        )
    except ValueError as err:
        logger.error(f'Invalid options: {err}')
        return 2

    try:
        results = generate(config, options)
    except GeneratorError as err:
        logger.error(str(err))
        return 1

    for source, resource in results:
        print(f'{source}\t{resource}')
    return 0


if __name__ == '__main__':
    sys.exit(main())
