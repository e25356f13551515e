"""
Typed Python accessors generated from parameterized SQL files.

Typical use:

    import querygen

    config = querygen.GeneratorConfig(sql_dir='sql', target_dir='gen',
                                      resource_target_dir='gen')
    querygen.generate(config, {'drivername': 'postgresql', ...})

Lower-level pieces can be used on their own:
- parse_template(text) -> SQLTemplate
- probe(connection_factory, sql, strategy) -> Schema
- emit(sql_file, sql_dir, schema, template) -> GeneratedCode
"""
__version__ = '0.1.0'

from typing import Any

from querygen.connection import connect, connection_factory, database_options
from querygen.emitter import GeneratedCode, emit
from querygen.exceptions import ConflictingParamTypeError, GenerationError
from querygen.exceptions import GeneratorError, ParseError, SchemaProbeError
from querygen.exceptions import UnsupportedColumnError, UnsupportedTypeError
from querygen.generator import BuildIdentity, Generator
from querygen.options import DatabaseOptions, GeneratorConfig
from querygen.probe import probe
from querygen.strategy import get_strategy
from querygen.template import SQLTemplate, TemplateParam, parse_template
from querygen.types import AccessKind, Column, Schema

from libb import load_options


def generate(config: GeneratorConfig | dict[str, Any],
             options: DatabaseOptions | dict[str, Any] | str,
             build_identity: BuildIdentity | None = None,
             **kw: Any) -> list[tuple[Any, Any]]:
    """Generate accessors for every query file described by `config`.

    `options` is resolved like `connection_factory` options; `kw` overrides
    its fields.
    """
    if not isinstance(config, GeneratorConfig):
        config = load_options(cls=GeneratorConfig)(lambda o, c: o)(config, None)
    options = database_options(options, **kw)
    generator = Generator(connection_factory(options), get_strategy(options.drivername),
                          build_identity=build_identity)
    return generator.generate(config)


__all__ = [
    'generate',
    'Generator',
    'GeneratorConfig',
    'DatabaseOptions',
    'BuildIdentity',
    'connect',
    'connection_factory',
    'database_options',
    'get_strategy',
    'parse_template',
    'probe',
    'emit',
    'SQLTemplate',
    'TemplateParam',
    'GeneratedCode',
    'AccessKind',
    'Column',
    'Schema',
    'GeneratorError',
    'ParseError',
    'ConflictingParamTypeError',
    'SchemaProbeError',
    'UnsupportedTypeError',
    'UnsupportedColumnError',
    'GenerationError',
]
