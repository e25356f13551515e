"""
Python source generation for probed queries.

`emit` combines a probed `Schema` with its parsed `SQLTemplate` and renders
the accessor module from the `accessor.py.jinja` template. Column readers are
resolved before rendering, so an unsupported column never produces output.
"""
import keyword
import logging
import pathlib
from dataclasses import dataclass

from jinja2 import Environment, PackageLoader, StrictUndefined
from querygen.exceptions import GeneratorError, ParseError
from querygen.template import SQLTemplate
from querygen.types import Schema, reader_for

logger = logging.getLogger(__name__)

SOURCE_SUFFIX = '.py'
SQL_SUFFIX = '.sql'

# Module-level names of a generated accessor
MODULE_NAMES = frozenset(['Any', 'ResultRow', 'SQLResource', 'run_query', 'path', '_resource',
                          'original_sql', 'sql', 'select', 'select_with'])

env = Environment(
    loader=PackageLoader('querygen', 'templates'),
    autoescape=False,
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
    undefined=StrictUndefined,
)


@dataclass(frozen=True)
class GeneratedCode:
    """Output texts for one query file."""

    resource_text: str
    source_text: str


def package_name(relative_path: pathlib.PurePath) -> str:
    """Dotted package for a path relative to the SQL root ('' at top level).
    """
    return '.'.join(relative_path.parent.parts)


def type_name(sql_file: pathlib.PurePath) -> str:
    """Record class name: the file name without its `.sql` suffix."""
    name = sql_file.name
    return name[:-len(SQL_SUFFIX)] if name.endswith(SQL_SUFFIX) else name


def _check_type_name(name: str, source) -> None:
    if not name.isidentifier() or keyword.iskeyword(name) or name in MODULE_NAMES:
        raise GeneratorError(f'{name!r} cannot be used as a generated class name', source)


def _signature(template: SQLTemplate, name: str, source) -> str:
    """Parameter list for the rendering function.

    A parameter without default that follows a defaulted one becomes
    keyword-only, so declaration order is kept and the code still compiles.
    """
    reserved = {'cn', '_resource', 'run_query', name}
    parts = []
    defaulted = keyword_only = False
    for p in template.params:
        if keyword.iskeyword(p.name) or p.name in reserved:
            raise ParseError(f'Parameter name {p.name!r} is reserved in generated code', source)
        if p.quoted_value is not None:
            parts.append(f'{p.name}: {p.function_arg_type} = {p.quoted_value}')
            defaulted = True
            continue
        if defaulted and not keyword_only:
            parts.append('*')
            keyword_only = True
        parts.append(f'{p.name}: {p.function_arg_type}')
    return ', '.join(parts)


def emit(sql_file, sql_dir, schema: Schema, template: SQLTemplate,
         source=None) -> GeneratedCode:
    """Render the accessor module and the stored query text.

    Args:
        sql_file: Path of the query file
        sql_dir: Root the package path is computed from
        schema: Probed result columns
        template: Parsed query file
        source: Name used in error messages, defaults to sql_file

    Raises
        UnsupportedColumnError: a column has no reader operation
        ParseError: a parameter name clashes with generated code
        GeneratorError: the file name is not a usable class name
    """
    source = source or sql_file
    relative = pathlib.PurePath(sql_file).relative_to(sql_dir)
    name = type_name(relative)
    _check_type_name(name, source)

    columns = []
    for c in schema:
        spec = reader_for(c, source)
        annotation = f'{spec.host_type} | None' if c.is_nullable else spec.host_type
        columns.append({'name': c.qualified_name, 'annotation': annotation,
                        'operation': spec.operation})

    names = [c['name'] for c in columns]
    params = _signature(template, name, source)
    values = '{' + ', '.join(f'{p.name!r}: {p.name}' for p in template.params) + '}'
    repr_fields = ', '.join(f'{n}={{self.{n}!r}}' for n in names)

    source_text = env.get_template('accessor.py.jinja').render(
        relative_path=relative.as_posix(),
        resource_path=repr('/' + relative.as_posix()),
        name=name,
        columns=columns,
        slots=repr(tuple(names)),
        fields=', '.join(f'self.{n}' for n in names),
        repr_format=f"f'{name}({repr_fields})'",
        params=params,
        select_params=f', {params}' if params else '',
        values=values,
    )
    logger.debug(f'Generated {name} in package {package_name(relative)!r} '
                 f'with {len(columns)} columns and {len(template.params)} parameters')
    return GeneratedCode(resource_text=template.no_param, source_text=source_text)
