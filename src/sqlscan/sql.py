"""
SQL fragment generation for record statements.

Column lists, placeholder sequences and bound values are all produced from the
same ordered field metadata, so they stay index-aligned:

    columns_quoted(False, user, dialect)   -> '"name","email"'
    save_placeholders(False, user, dialect) -> ['$1', '$2']
    save_values(False, user)                -> ['a', 'a@example.com']

Also converts statements between the dialect's placeholder style and a
driver's DB-API paramstyle (`convert_placeholders`).
"""
import logging
import re
from typing import Any

from sqlscan.dialect import FORMAT, NUMBERED, QMARK, Dialect, get_dialect
from sqlscan.exceptions import MappingError, ValidationError
from sqlscan.metadata import columns, field_values, record_info
from sqlscan.types import TypeConverter

__all__ = [
    'quote_identifier',
    'columns_quoted',
    'placeholders',
    'save_placeholders',
    'save_placeholders_string',
    'save_values',
    'build_select_sql',
    'build_insert_sql',
    'build_update_sql',
    'convert_placeholders',
]

logger = logging.getLogger(__name__)


def quote_identifier(identifier: str, dialect: 'str | Dialect' = 'postgresql') -> str:
    """Safely quote a table or column name.

    Embedded quote characters are doubled.
    """
    q = get_dialect(dialect).quote
    return q + identifier.replace(q, q + q) + q


def columns_quoted(include_pk: bool, obj: Any, dialect: 'str | Dialect') -> str:
    """Comma-joined quoted column names for a record.
    """
    return ','.join(quote_identifier(col, dialect) for col in columns(include_pk, obj))


def placeholders(count: int, dialect: 'str | Dialect', start: int = 1) -> list[str]:
    """Return `count` placeholders, numbered from `start` where the dialect numbers them.
    """
    dialect = get_dialect(dialect)
    return [dialect.placeholder_for(i) for i in range(start, start + count)]


def save_placeholders(include_pk: bool, obj: Any, dialect: 'str | Dialect',
                      start: int = 1) -> list[str]:
    """One placeholder per saved field of a record.
    """
    return placeholders(len(record_info(obj).select_fields(include_pk)), dialect, start)


def save_placeholders_string(include_pk: bool, obj: Any, dialect: 'str | Dialect',
                             start: int = 1) -> str:
    """Comma-joined placeholders for a record.
    """
    return ','.join(save_placeholders(include_pk, obj, dialect, start))


def save_values(include_pk: bool, obj: Any) -> list[Any]:
    """Bind values for a record, in the same order as its placeholders.
    """
    return [TypeConverter.convert_value(v) for v in field_values(include_pk, obj)]


def _check_aligned(names: list[str], markers: list[str]) -> None:
    if len(names) != len(markers):
        raise MappingError(
            f'column count {len(names)} does not match placeholder count {len(markers)}')


def build_select_sql(table: str, obj: Any, dialect: 'str | Dialect') -> str:
    """SELECT every mapped column of a record by primary key.

    The primary key placeholder is the only parameter.
    """
    info = record_info(obj)
    if info.pk is None:
        raise MappingError(f'{info.model.__name__} has no primary key field')
    quoted_table = quote_identifier(table, dialect)
    quoted_cols = columns_quoted(True, obj, dialect)
    quoted_pk = quote_identifier(info.pk.column, dialect)
    return f'SELECT {quoted_cols} FROM {quoted_table} WHERE {quoted_pk} = {placeholders(1, dialect)[0]}'


def build_insert_sql(table: str, obj: Any, dialect: 'str | Dialect') -> str:
    """INSERT of every non-key column of a record.

    With a primary key on a RETURNING dialect the generated key is returned.
    """
    dialect = get_dialect(dialect)
    info = record_info(obj)
    names = columns(False, obj)
    markers = save_placeholders(False, obj, dialect)
    _check_aligned(names, markers)

    quoted_table = quote_identifier(table, dialect)
    if names:
        quoted_cols = ','.join(quote_identifier(col, dialect) for col in names)
        sql = f'INSERT INTO {quoted_table} ({quoted_cols}) VALUES ({",".join(markers)})'
    else:
        sql = f'INSERT INTO {quoted_table} {dialect.default_values}'

    if dialect.returning and info.pk is not None:
        sql += f' RETURNING {quote_identifier(info.pk.column, dialect)}'
    return sql


def build_update_sql(table: str, obj: Any, dialect: 'str | Dialect') -> str:
    """UPDATE of every non-key column, selecting the row by primary key.

    The key placeholder is numbered one past the last SET placeholder.
    """
    info = record_info(obj)
    if info.pk is None:
        raise MappingError(f'{info.model.__name__} has no primary key field')
    names = columns(False, obj)
    if not names:
        raise MappingError(f'{info.model.__name__} has no columns to update')
    markers = save_placeholders(False, obj, dialect)
    _check_aligned(names, markers)

    pairs = ','.join(f'{quote_identifier(name, dialect)}={ph}'
                     for name, ph in zip(names, markers))
    quoted_table = quote_identifier(table, dialect)
    quoted_pk = quote_identifier(info.pk.column, dialect)
    pk_marker = placeholders(1, dialect, start=len(markers) + 1)[0]
    return f'UPDATE {quoted_table} SET {pairs} WHERE {quoted_pk}={pk_marker}'


# Placeholder translation - dialect style -> driver paramstyle

_TOKENIZE = re.compile(r"""
    (?P<string>'(?:[^']|'')*'|"(?:[^"]|"")*")
    |(?P<numbered>\$(?P<num>\d+))
    |(?P<escaped>%%)
    |(?P<format>%s)
    |(?P<qmark>\?)
""", re.VERBOSE)

_DRIVER_STYLES = {
    'qmark': QMARK,
    'format': FORMAT,
    'pyformat': FORMAT,
    'numeric': 'numeric',
    'numbered': NUMBERED,
}


def _driver_marker(style: str, index: int) -> str:
    if style == NUMBERED:
        return f'${index}'
    if style == 'numeric':
        return f':{index}'
    if style == FORMAT:
        return '%s'
    return '?'


def convert_placeholders(sql: str, args: tuple | list, source: str,
                         target: str) -> tuple[str, tuple]:
    """Rewrite `sql` from placeholder style `source` to DB-API paramstyle `target`.

    String literals are left alone. Numbered placeholders may appear in any
    order or repeat; the returned args are reordered to match. Percent signs
    are escaped when the target is a format style.

    Returns
        Tuple of (converted_sql, converted_args)
    """
    target = _DRIVER_STYLES.get(target, target)
    args = tuple(args or ())
    if source == target or not sql:
        return sql, args
    if not args and source != FORMAT:
        return sql, args

    escape_percent = target == FORMAT and bool(args)
    out: list[str] = []
    new_args: list[Any] = []
    position = 0
    last = 0

    def text(chunk: str) -> str:
        return chunk.replace('%', '%%') if escape_percent else chunk

    for match in _TOKENIZE.finditer(sql):
        out.append(text(sql[last:match.start()]))
        last = match.end()
        kind = match.lastgroup
        token = match.group()

        if kind == 'string':
            out.append(text(token))
            continue
        if kind == 'escaped':
            out.append(text('%' if source == FORMAT else '%%'))
            continue
        if kind == 'numbered':
            if source != NUMBERED:
                out.append(text(token))
                continue
            index = int(match.group('num'))
            if not 1 <= index <= len(args):
                raise ValidationError(f'placeholder {token} has no matching argument ({len(args)} given)')
            new_args.append(args[index - 1])
        elif kind == source:
            if position >= len(args):
                raise ValidationError(f'more placeholders than arguments ({len(args)} given)')
            new_args.append(args[position])
            position += 1
        else:
            out.append(text(token))
            continue
        out.append(_driver_marker(target, len(new_args)))

    out.append(text(sql[last:]))
    logger.debug(f'Converted placeholders {source} -> {target}')
    return ''.join(out), tuple(new_args)
