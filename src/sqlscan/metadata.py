"""
Field metadata for record types.

Records are dataclasses. Every dataclass field maps to one column, named after
the attribute unless `column(name=...)` says otherwise. At most one field is
the integer primary key.

    @record
    @dataclass
    class User:
        id: int = column(primary_key=True, default=0)
        name: str = ''
        email: str | None = column('email_address', default=None)

Metadata is computed once per type and cached for the life of the process.
"""
import dataclasses
import logging
import sys
import types
import typing
from dataclasses import dataclass
from typing import Any

from sqlscan.cache import METADATA_CACHE, Cache
from sqlscan.exceptions import MappingError

__all__ = [
    'FieldInfo',
    'RecordInfo',
    'column',
    'record',
    'record_info',
    'columns',
    'primary_key',
    'set_primary_key',
    'field_values',
    'require_mutable',
]

logger = logging.getLogger(__name__)

METADATA_KEY = 'sqlscan'


@dataclass(frozen=True, slots=True)
class FieldInfo:
    """Mapping of one dataclass field to a column."""
    name: str
    column: str
    primary_key: bool = False
    pytype: type | None = None
    optional: bool = True


@dataclass(frozen=True, slots=True)
class RecordInfo:
    """Ordered field metadata for a record type."""
    model: type
    fields: tuple[FieldInfo, ...]
    pk: FieldInfo | None = None

    def select_fields(self, include_pk: bool) -> tuple[FieldInfo, ...]:
        """Fields in declaration order, optionally without the primary key.
        """
        if include_pk:
            return self.fields
        return tuple(f for f in self.fields if not f.primary_key)


def column(name: str | None = None, *, primary_key: bool = False,
           persist: bool = True, **kwargs: Any) -> Any:
    """Declare a mapped dataclass field.

    Args:
        name: Column name, defaults to the attribute name
        primary_key: Flag the integer primary key
        persist: False excludes the field from every statement and scan
        **kwargs: Passed through to `dataclasses.field`
    """
    metadata = dict(kwargs.pop('metadata', None) or {})
    metadata[METADATA_KEY] = {'name': name, 'primary_key': primary_key, 'persist': persist}
    return dataclasses.field(metadata=metadata, **kwargs)


def _unwrap_type(hint: Any) -> tuple[type | None, bool]:
    """Split a type hint into (base type, accepts None).

    Unknown or untyped hints map to (None, True) and are passed through as-is.
    """
    if hint is None or hint is Any:
        return None, True
    if hint is type(None):
        return None, True

    origin = typing.get_origin(hint)
    if origin is typing.Union or origin is types.UnionType:
        args = [a for a in typing.get_args(hint) if a is not type(None)]
        optional = len(args) < len(typing.get_args(hint))
        if len(args) == 1:
            base, _ = _unwrap_type(args[0])
            return base, optional
        return None, True
    if origin is typing.Annotated:
        return _unwrap_type(typing.get_args(hint)[0])
    if origin is not None:
        return (origin, False) if isinstance(origin, type) else (None, True)
    if isinstance(hint, type):
        return hint, False
    return None, True


def _resolve_hints(model: type, fields: list[dataclasses.Field]) -> dict[str, Any]:
    """Type hints of the mapped `fields`, evaluating string annotations.

    When the class as a whole does not resolve, each mapped field is tried on
    its own, so an unresolvable annotation on an unmapped attribute is harmless.
    Raises MappingError naming the first mapped field that stays unresolved.
    """
    try:
        return typing.get_type_hints(model, include_extras=True)
    except (NameError, TypeError) as err:
        logger.debug(f'Resolving {model.__name__} type hints per field: {err}')

    module = sys.modules.get(model.__module__)
    globalns = dict(vars(module)) if module is not None else {}
    localns = dict(vars(model))
    hints = {}
    for f in fields:
        hint = f.type
        if isinstance(hint, str):
            try:
                hint = eval(hint, globalns, localns)
            except (NameError, TypeError, AttributeError, SyntaxError) as err:
                raise MappingError(
                    f'{model.__name__}.{f.name}: cannot resolve type {f.type!r}: {err}') from err
        hints[f.name] = hint
    return hints


def _build_record_info(model: type) -> RecordInfo:
    """Inspect a dataclass and build its RecordInfo.
    """
    if not dataclasses.is_dataclass(model):
        raise MappingError(f'{model.__name__} is not a dataclass record')

    mapped = [f for f in dataclasses.fields(model)
              if f.metadata.get(METADATA_KEY, {}).get('persist', True)]
    hints = _resolve_hints(model, mapped)
    infos = []
    pk = None
    for f in mapped:
        options = f.metadata.get(METADATA_KEY, {})
        base, optional = _unwrap_type(hints.get(f.name))
        info = FieldInfo(
            name=f.name,
            column=options.get('name') or f.name,
            primary_key=bool(options.get('primary_key')),
            pytype=base,
            optional=optional,
        )
        if info.primary_key:
            if pk is not None:
                raise MappingError(
                    f'{model.__name__} has more than one primary key: {pk.name}, {info.name}')
            if base not in (int, None):
                raise MappingError(
                    f'{model.__name__}.{info.name}: primary key must be an int, got {base.__name__}')
            pk = info
        infos.append(info)

    if not infos:
        raise MappingError(f'{model.__name__} has no persistable fields')

    seen = set()
    for info in infos:
        if info.column in seen:
            raise MappingError(f'{model.__name__} maps column {info.column} more than once')
        seen.add(info.column)

    return RecordInfo(model=model, fields=tuple(infos), pk=pk)


def _model_of(obj: Any) -> type:
    if isinstance(obj, type):
        return obj
    return type(obj)


def record_info(obj: Any) -> RecordInfo:
    """Return cached field metadata for a record class or instance.

    Raises MappingError if the type is not a usable record.
    """
    model = _model_of(obj)
    return Cache.get_instance().get_or_build(
        METADATA_CACHE, model, lambda: _build_record_info(model))


def record(cls: type) -> type:
    """Class decorator registering a dataclass record eagerly.

    Metadata errors surface at class creation instead of first use.
    """
    record_info(cls)
    return cls


def _require_instance(obj: Any, action: str) -> None:
    if isinstance(obj, type):
        raise MappingError(f'{action} requires a {obj.__name__} instance, not the class')


def require_mutable(obj: Any, action: str) -> None:
    """Raise MappingError when `obj` is a frozen dataclass instance.
    """
    params = getattr(type(obj), '__dataclass_params__', None)
    if params is not None and params.frozen:
        raise MappingError(f'{type(obj).__name__} is frozen; cannot {action}')


def columns(include_pk: bool, obj: Any) -> list[str]:
    """Column names for a record, in field order.
    """
    return [f.column for f in record_info(obj).select_fields(include_pk)]


def primary_key(obj: Any) -> tuple[str | None, int | None]:
    """Return (column, value) of the record's primary key.

    (None, None) when the type has no primary key field. The value is None
    when called with a class.
    """
    info = record_info(obj)
    if info.pk is None:
        return None, None
    if isinstance(obj, type):
        return info.pk.column, None
    return info.pk.column, getattr(obj, info.pk.name)


def set_primary_key(value: int, obj: Any) -> None:
    """Write a primary key value into a record instance.
    """
    _require_instance(obj, 'set_primary_key')
    info = record_info(obj)
    if info.pk is None:
        raise MappingError(f'{type(obj).__name__} has no primary key field')
    try:
        value = int(value)
    except (TypeError, ValueError) as err:
        raise MappingError(f'primary key value {value!r} is not an integer') from err
    try:
        setattr(obj, info.pk.name, value)
    except dataclasses.FrozenInstanceError as err:
        raise MappingError(f'{type(obj).__name__} is frozen; cannot set primary key') from err


def field_values(include_pk: bool, obj: Any) -> list[Any]:
    """Current field values of a record instance, in field order.
    """
    _require_instance(obj, 'field_values')
    return [getattr(obj, f.name) for f in record_info(obj).select_fields(include_pk)]
