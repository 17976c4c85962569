"""
SQL dialect configuration.

A `Dialect` bundles the identifier quote character, the placeholder style and
how generated primary keys are read back after an insert. Dialects are plain
values passed to the fragment builder; a process default can be configured
once at startup for callers that never pass one explicitly.
"""
import logging
import threading
from dataclasses import dataclass, replace

__all__ = [
    'Dialect',
    'NUMBERED',
    'QMARK',
    'FORMAT',
    'PLACEHOLDER_STYLES',
    'register_dialect',
    'get_dialect',
    'get_available_dialects',
    'is_supported_dialect',
    'configure',
    'get_default_dialect',
]

logger = logging.getLogger(__name__)

NUMBERED = 'numbered'
QMARK = 'qmark'
FORMAT = 'format'

PLACEHOLDER_STYLES = (NUMBERED, QMARK, FORMAT)


@dataclass(frozen=True)
class Dialect:
    """Quoting and placeholder conventions for one database family.

    name: dialect identifier, e.g. 'postgresql'
    quote: identifier quote character
    placeholder: one of 'numbered' ($1, $2, ...), 'qmark' (?) or 'format' (%s)
    returning: read generated keys with INSERT ... RETURNING instead of the
        driver's last-insert-id
    default_values: INSERT tail used when a record has no non-key columns
    """
    name: str
    quote: str = '"'
    placeholder: str = QMARK
    returning: bool = False
    default_values: str = 'DEFAULT VALUES'

    def __post_init__(self):
        if self.placeholder not in PLACEHOLDER_STYLES:
            raise ValueError(f'placeholder must be one of: {list(PLACEHOLDER_STYLES)}')
        if len(self.quote) != 1:
            raise ValueError('quote must be a single character')

    def placeholder_for(self, index: int) -> str:
        """Return the marker for the 1-based parameter `index`.
        """
        if self.placeholder == NUMBERED:
            return f'${index}'
        if self.placeholder == FORMAT:
            return '%s'
        return '?'

    def with_overrides(self, **overrides) -> 'Dialect':
        """Copy of this dialect with the non-None overrides applied.
        """
        overrides = {k: v for k, v in overrides.items() if v is not None}
        if not overrides:
            return self
        return replace(self, **overrides)


_DIALECT_REGISTRY: dict[str, Dialect] = {}


def register_dialect(dialect: Dialect) -> Dialect:
    """Register a dialect under its name, replacing any previous entry.
    """
    _DIALECT_REGISTRY[dialect.name] = dialect
    return dialect


register_dialect(Dialect('postgresql', quote='"', placeholder=NUMBERED, returning=True))
register_dialect(Dialect('sqlite', quote='"', placeholder=QMARK))
register_dialect(Dialect('mysql', quote='`', placeholder=QMARK, default_values='() VALUES ()'))


def get_dialect(name: 'str | Dialect') -> Dialect:
    """Look up a registered dialect by name.
    """
    if isinstance(name, Dialect):
        return name
    dialect = _DIALECT_REGISTRY.get(str(name).lower())
    if dialect is None:
        available = list(_DIALECT_REGISTRY.keys())
        raise ValueError(f'Unsupported dialect: {name}. Available: {available}')
    return dialect


def get_available_dialects() -> list[str]:
    """Return list of registered dialect names."""
    return list(_DIALECT_REGISTRY.keys())


def is_supported_dialect(name: str) -> bool:
    """Check if a dialect is registered."""
    return str(name).lower() in _DIALECT_REGISTRY


_default: Dialect | None = None
_default_in_use = False
_default_lock = threading.Lock()


def configure(dialect: 'str | Dialect' = 'postgresql', *, quote: str | None = None,
              placeholder: str | None = None, returning: bool | None = None) -> Dialect:
    """Set the process default dialect.

    Must be called before the default is first read; the default is read-only
    afterwards and reconfiguring raises RuntimeError.
    """
    global _default
    chosen = get_dialect(dialect).with_overrides(
        quote=quote, placeholder=placeholder, returning=returning)
    with _default_lock:
        if _default_in_use:
            raise RuntimeError('Default dialect is already in use and cannot be changed')
        _default = chosen
    logger.debug(f'Configured default dialect {chosen}')
    return chosen


def get_default_dialect() -> Dialect:
    """Return the process default dialect, freezing it.

    Falls back to the registered 'postgresql' dialect when `configure()` was
    never called.
    """
    global _default, _default_in_use
    with _default_lock:
        if _default is None:
            _default = get_dialect('postgresql')
        _default_in_use = True
        return _default


def _reset_default() -> None:
    """Forget the process default. Test helper.
    """
    global _default, _default_in_use
    with _default_lock:
        _default = None
        _default_in_use = False
