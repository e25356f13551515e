"""
Incremental, parallel generation of query accessors.

For every `*.sql` file under `GeneratorConfig.sql_dir` the generator
1. skips the file when both outputs are at least as new as
   max(file mtime, generator build time)
2. otherwise parses the template, probes the schema and emits the module
3. writes the stored query and the module, then stamps both with that time

Files are processed on a thread pool; results are merged on the calling
thread. The first failure aborts the run unless `keep_going` is set.
"""
import json
import logging
import os
import pathlib
import tempfile
import time
from collections.abc import Callable
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import dataclass
from importlib import resources
from typing import Any

from querygen.emitter import SOURCE_SUFFIX, SQL_SUFFIX, emit
from querygen.exceptions import GenerationError, GeneratorError
from querygen.options import GeneratorConfig
from querygen.probe import probe
from querygen.strategy import DialectStrategy
from querygen.template import parse_template

logger = logging.getLogger(__name__)

BUILD_METADATA = 'build.json'


@dataclass(frozen=True)
class BuildIdentity:
    """Version and build time of the generator itself.

    A newer build time than an existing output forces its regeneration.
    """
    version: str
    build_time: int

    @classmethod
    def load(cls, missing: str = 'now') -> 'BuildIdentity':
        """Read the packaged build metadata.

        When the metadata is absent `missing` decides the build time:
        - 'now': current time, so every file is regenerated on every run
        - 'zero': only SQL file changes trigger regeneration
        - 'error': raise FileNotFoundError
        """
        try:
            with resources.files('querygen').joinpath(BUILD_METADATA).open(encoding='utf-8') as f:
                meta = json.load(f)
            return cls(str(meta['version']), int(meta['build_time']) * 1_000_000)
        except FileNotFoundError:
            if missing == 'error':
                raise
            if missing == 'zero':
                logger.warning(f'{BUILD_METADATA} not found, using build time 0')
                return cls('unknown', 0)
            logger.warning(f'{BUILD_METADATA} not found, using current time; '
                           'all files will be regenerated')
            return cls('unknown', time.time_ns())


@dataclass(frozen=True)
class GenerationUnit:
    """Paths and timestamp for one query file."""

    sql_file: pathlib.Path
    relative_path: pathlib.PurePath
    target_file: pathlib.Path
    resource_file: pathlib.Path
    latest: int

    @classmethod
    def create(cls, sql_file: pathlib.Path, config: GeneratorConfig,
               build_time: int) -> 'GenerationUnit':
        relative = sql_file.relative_to(config.sql_dir)
        return cls(
            sql_file=sql_file,
            relative_path=relative,
            target_file=config.target_dir / relative.with_suffix(SOURCE_SUFFIX),
            resource_file=config.resource_target_dir / relative,
            latest=max(sql_file.stat().st_mtime_ns, build_time),
        )

    def is_up_to_date(self) -> bool:
        """Both outputs exist and are stamped no older than `latest`."""
        try:
            return (self.resource_file.stat().st_mtime_ns >= self.latest
                    and self.target_file.stat().st_mtime_ns >= self.latest)
        except FileNotFoundError:
            return False


def _write_text(path: pathlib.Path, text: str) -> None:
    """Write through a temporary file so readers never see partial output."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f'.{path.name}.', suffix='.tmp')
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write(text)
        os.replace(tmp, path)
    except BaseException:
        pathlib.Path(tmp).unlink(missing_ok=True)
        raise


def find_sql_files(sql_dir: pathlib.Path) -> list[pathlib.Path]:
    """All `*.sql` files below `sql_dir`, sorted."""
    return sorted(p for p in sql_dir.rglob(f'*{SQL_SUFFIX}') if p.is_file())


class Generator:
    """Generates accessor modules for a tree of query files.

    Args:
        connection_factory: Callable returning an open DB-API connection
        strategy: Dialect strategy used by the schema probe
        build_identity: Generator version and build time; defaults to
            `BuildIdentity.load()`, which falls back to the current time
    """

    def __init__(self, connection_factory: Callable[[], Any], strategy: DialectStrategy,
                 build_identity: BuildIdentity | None = None) -> None:
        self.connection_factory = connection_factory
        self.strategy = strategy
        self.build_identity = build_identity or BuildIdentity.load()

    def process(self, unit: GenerationUnit, config: GeneratorConfig) -> bool:
        """Generate the outputs of one file unless they are up to date.

        Returns True when files were written.
        """
        if unit.is_up_to_date():
            logger.info(f'{unit.relative_path} is up-to-date')
            return False

        logger.info(f'Generating {unit.target_file} and {unit.resource_file}')
        sql = unit.sql_file.read_text(encoding='utf-8')
        template = parse_template(sql, unit.sql_file)
        schema = probe(self.connection_factory, template.populated, self.strategy,
                       source=unit.sql_file, reserved_words=config.reserved_words)
        code = emit(unit.sql_file, config.sql_dir, schema, template)

        _write_text(unit.resource_file, code.resource_text)
        try:
            _write_text(unit.target_file, code.source_text)
        except BaseException:
            unit.resource_file.unlink(missing_ok=True)
            raise

        for path in (unit.resource_file, unit.target_file):
            os.utime(path, ns=(unit.latest, unit.latest))
        return True

    def _run(self, sql_file: pathlib.Path, config: GeneratorConfig) -> tuple[pathlib.Path, pathlib.Path]:
        unit = GenerationUnit.create(sql_file, config, self.build_identity.build_time)
        try:
            self.process(unit, config)
        except GeneratorError as err:
            if err.path is None:
                err.path = sql_file
            raise
        return unit.target_file, unit.resource_file

    def generate(self, config: GeneratorConfig) -> list[tuple[pathlib.Path, pathlib.Path]]:
        """Generate every stale accessor under `config.sql_dir`.

        Returns
            (generated module, stored query) pairs for all files, sorted

        Raises
            The first error encountered, unchanged; with `keep_going` a
            GenerationError listing every failure after all files ran
        """
        logger.info(f'Generator {self.build_identity.version} '
                    f'buildTime:{self.build_identity.build_time // 1_000_000}')
        sql_files = find_sql_files(config.sql_dir)
        results, failures = [], []

        with ThreadPoolExecutor(max_workers=config.workers,
                                thread_name_prefix='querygen') as executor:
            futures = {executor.submit(self._run, f, config): f for f in sql_files}
            pending = set(futures)
            while pending:
                done, pending = wait(pending, return_when=FIRST_EXCEPTION)
                for future in done:
                    err = future.exception()
                    if err is None:
                        results.append(future.result())
                        continue
                    if not config.keep_going:
                        for other in pending:
                            other.cancel()
                        logger.error(f'Failed to generate {futures[future]}: {err}')
                        raise err
                    logger.error(f'Failed to generate {futures[future]}: {err}')
                    failures.append((futures[future], err))

        if failures:
            raise GenerationError(sorted(failures, key=lambda x: x[0]), sorted(results))
        return sorted(results)
