"""
SQL template parsing.

Query files embed typed placeholders:

    select * from prices where time >= '${start:String}' limit ${n:Int=100}

`parse_template` turns the text into a `SQLTemplate` carrying
- populated: placeholders replaced by literals, runnable for schema probing
- no_param: placeholders reduced to `${name}` markers for runtime rendering
- params: the declared parameters in first-occurrence order

Substitution is purely textual; string literals and comments are not special.
A literal `${` is written as `\\${`.
"""
import logging
import math
import re
from dataclasses import dataclass

from querygen.exceptions import ConflictingParamTypeError, ParseError

logger = logging.getLogger(__name__)

OPEN = '${'
ESCAPE = '\\'

_PLACEHOLDER = re.compile(
    r'\$\{\s*(?P<name>[A-Za-z_]\w*)\s*:\s*(?P<type>[A-Za-z_]\w*)\s*'
    r'(?:=\s*(?P<default>[^}]*?)\s*)?\}')
_MARKER = re.compile(r'\$\{(?P<name>[A-Za-z_]\w*)\}')
_TRAILING = re.compile(r'[\s;]+$')


def _int_literal(value: str) -> str:
    return repr(int(value))


def _float_literal(value: str) -> str:
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(value)
    return repr(number)


def _bool_literal(value: str) -> str:
    lowered = value.lower()
    if lowered not in {'true', 'false'}:
        raise ValueError(value)
    return 'True' if lowered == 'true' else 'False'


@dataclass(frozen=True)
class ParamType:
    """Declared placeholder type.

    python_type: annotation of the generated function parameter
    stand_in: literal substituted when probing without a default
    literal: converts a default into Python source, raising ValueError
    """
    name: str
    python_type: str
    stand_in: str
    literal: object


PARAM_TYPES: dict[str, ParamType] = {t.name: t for t in [
    ParamType('String', 'str', '', repr),
    ParamType('SQL', 'str', '', repr),
    ParamType('Int', 'int', '0', _int_literal),
    ParamType('Long', 'int', '0', _int_literal),
    ParamType('Short', 'int', '0', _int_literal),
    ParamType('Byte', 'int', '0', _int_literal),
    ParamType('Float', 'float', '0.0', _float_literal),
    ParamType('Double', 'float', '0.0', _float_literal),
    ParamType('Boolean', 'bool', 'true', _bool_literal),
]}


@dataclass(frozen=True)
class TemplateParam:
    """One declared placeholder."""

    name: str
    declared_type: str
    default_value: str | None = None

    @property
    def function_arg_type(self) -> str:
        return PARAM_TYPES[self.declared_type].python_type

    @property
    def quoted_value(self) -> str | None:
        if self.default_value is None:
            return None
        return PARAM_TYPES[self.declared_type].literal(self.default_value)

    @property
    def stand_in(self) -> str:
        if self.default_value is not None:
            return self.default_value
        return PARAM_TYPES[self.declared_type].stand_in


@dataclass(frozen=True)
class SQLTemplate:
    """Parsed query file."""

    raw_text: str
    populated: str
    no_param: str
    params: tuple[TemplateParam, ...] = ()

    @property
    def param_names(self) -> list[str]:
        return [p.name for p in self.params]

    def render(self, values: dict) -> str:
        """Substitute values for the `${name}` markers of `no_param`.
        """
        return render_segments(split_markers(self.no_param), values)


def _normalize(sql: str) -> str:
    """Trim whitespace and trailing semicolons so the query nests as a sub-query."""
    return _TRAILING.sub('', sql.strip())


def _position(text: str, offset: int) -> tuple[int, int]:
    line = text.count('\n', 0, offset) + 1
    column = offset - (text.rfind('\n', 0, offset) + 1) + 1
    return line, column


def _check_param(match: re.Match, text: str, path) -> TemplateParam:
    name, type_name, default = match.group('name', 'type', 'default')
    if type_name not in PARAM_TYPES:
        line, column = _position(text, match.start())
        raise ParseError(f'Unknown type {type_name!r} for parameter {name!r}, '
                         f'expected one of {", ".join(PARAM_TYPES)}', path, line, column)
    param = TemplateParam(name, type_name, default)
    if default is not None:
        try:
            param.quoted_value
        except ValueError:
            line, column = _position(text, match.start())
            raise ParseError(f'Invalid {type_name} default {default!r} for parameter {name!r}',
                             path, line, column) from None
    return param


def parse_template(raw_text: str, path=None) -> SQLTemplate:
    """Parse placeholders out of a query file.

    Raises ParseError for malformed placeholders, unknown types and bad
    defaults, ConflictingParamTypeError when a name is redeclared differently.
    """
    populated, no_param = [], []
    params: dict[str, TemplateParam] = {}
    pos = 0
    while True:
        start = raw_text.find(OPEN, pos)
        if start < 0:
            populated.append(raw_text[pos:])
            no_param.append(raw_text[pos:])
            break

        if start > 0 and raw_text[start - 1] == ESCAPE:
            populated.append(raw_text[pos:start - 1] + OPEN)
            no_param.append(raw_text[pos:start + len(OPEN)])
            pos = start + len(OPEN)
            continue

        match = _PLACEHOLDER.match(raw_text, start)
        if match is None:
            line, column = _position(raw_text, start)
            snippet = raw_text[start:start + 40].split('\n')[0]
            raise ParseError(f'Malformed placeholder {snippet!r}, expected ${{name:Type}} '
                             'or ${name:Type=default}', path, line, column)

        param = _check_param(match, raw_text, path)
        seen = params.get(param.name)
        if seen is None:
            params[param.name] = seen = param
        elif seen.declared_type != param.declared_type:
            raise ConflictingParamTypeError(param.name, seen.declared_type, param.declared_type, path)
        elif param.default_value is not None and seen.default_value != param.default_value:
            raise ConflictingParamTypeError(param.name, f'{seen.declared_type}={seen.default_value}',
                                            f'{param.declared_type}={param.default_value}', path)

        populated.append(raw_text[pos:start] + seen.stand_in)
        no_param.append(f'{raw_text[pos:start]}${{{param.name}}}')
        pos = match.end()

    template = SQLTemplate(
        raw_text=raw_text,
        populated=_normalize(''.join(populated)),
        no_param=_normalize(''.join(no_param)),
        params=tuple(params.values()),
    )
    logger.debug(f'Parsed template with parameters {template.param_names}')
    return template


def split_markers(no_param: str) -> list[tuple[str, str | None]]:
    """Split marker text into `(literal, name)` segments.

    The last segment has name None. Escaped `\\${` becomes a literal `${`.
    """
    segments = []
    literal = []
    pos = 0
    while True:
        start = no_param.find(OPEN, pos)
        if start < 0:
            literal.append(no_param[pos:])
            break
        if start > 0 and no_param[start - 1] == ESCAPE:
            literal.append(no_param[pos:start - 1] + OPEN)
            pos = start + len(OPEN)
            continue
        match = _MARKER.match(no_param, start)
        if match is None:
            literal.append(no_param[pos:start + len(OPEN)])
            pos = start + len(OPEN)
            continue
        literal.append(no_param[pos:start])
        segments.append((''.join(literal), match.group('name')))
        literal = []
        pos = match.end()
    segments.append((''.join(literal), None))
    return segments


def sql_string(value) -> str:
    """Text form of a rendered argument; booleans use SQL spelling."""
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value)


def render_segments(segments: list[tuple[str, str | None]], values: dict) -> str:
    """Join segments, substituting each marker name from `values`.

    Raises KeyError naming the first marker without a value.
    """
    parts = []
    for literal, name in segments:
        parts.append(literal)
        if name is not None:
            parts.append(sql_string(values[name]))
    return ''.join(parts)
