"""
Generator-specific exception classes.
"""


class GeneratorError(Exception):
    """Base class for all querygen errors.

    `path` names the SQL file being processed when the error was raised.
    """

    def __init__(self, message: str, path=None) -> None:
        super().__init__(message)
        self.message = message
        self.path = path

    def __str__(self) -> str:
        if self.path is not None:
            return f'{self.path}: {self.message}'
        return self.message


class ParseError(GeneratorError):
    """Malformed placeholder, unknown declared type or invalid default literal.
    """

    def __init__(self, message: str, path=None, line: int | None = None,
                 column: int | None = None) -> None:
        if line is not None:
            message = f'{message} (line {line}, column {column})'
        super().__init__(message, path)
        self.line = line
        self.column = column


class ConflictingParamTypeError(ParseError):
    """Parameter redeclared with a different type or default.
    """

    def __init__(self, name: str, first: str, second: str, path=None) -> None:
        super().__init__(f'Parameter {name!r} declared as {first} and {second}', path)
        self.param = name


class SchemaProbeError(GeneratorError):
    """Database rejected the probe query or its metadata could not be read.
    """

    def __init__(self, message: str, path=None, cause: BaseException | None = None) -> None:
        super().__init__(message, path)
        self.cause = cause


class UnsupportedTypeError(GeneratorError):
    """Database type tag has no entry in the type mapping table.
    """

    def __init__(self, sql_type: str, column: str | None = None, path=None) -> None:
        message = f'Unsupported database type {sql_type}'
        if column is not None:
            message = f'{message} for column {column!r}'
        super().__init__(message, path)
        self.sql_type = sql_type
        self.column = column


class UnsupportedColumnError(GeneratorError):
    """Column access kind has no reader operation.
    """

    def __init__(self, column: str, reason: str, path=None) -> None:
        super().__init__(f'Cannot read column {column!r}: {reason}', path)
        self.column = column


class GenerationError(GeneratorError):
    """One or more files failed when running with keep_going.
    """

    def __init__(self, failures: list, results: list | None = None) -> None:
        lines = [f'{len(failures)} file(s) failed:']
        lines.extend(f'  {path}: {err}' for path, err in failures)
        super().__init__('\n'.join(lines))
        self.failures = failures
        self.results = results or []
