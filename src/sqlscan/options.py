import pathlib
import sys
from dataclasses import dataclass

from sqlscan.dialect import Dialect, get_dialect, is_supported_dialect

__all__ = ['DatabaseOptions', 'REQUIRED_OPTIONS']

# drivername -> fields that must be set
REQUIRED_OPTIONS: dict[str, list[str]] = {
    'postgresql': ['hostname', 'username', 'password', 'database', 'port'],
    'sqlite': ['database'],
}


def _scriptname() -> str | None:
    if sys.argv and sys.argv[0]:
        return pathlib.Path(sys.argv[0]).stem
    return None


@dataclass
class DatabaseOptions:
    """Options

    supported driver names: `postgresql`, `sqlite`

    SQL dialect options (default to the driver's registered dialect):
    - dialect: Registered dialect name used to build statements
    - quote: Identifier quote character
    - placeholder: 'numbered', 'qmark' or 'format'
    - returning: Read generated keys with INSERT ... RETURNING
    """
    drivername: str = 'postgresql'
    hostname: str = None
    username: str = None
    password: str = None
    database: str = None
    port: int = 0
    timeout: int = 0
    appname: str = None
    dialect: str = None
    quote: str = None
    placeholder: str = None
    returning: bool = None

    def __post_init__(self):
        if self.drivername not in REQUIRED_OPTIONS:
            raise ValueError(f'drivername must be one of: {list(REQUIRED_OPTIONS)}')
        for field in REQUIRED_OPTIONS[self.drivername]:
            if not getattr(self, field):
                raise ValueError(f'field {field} cannot be None or 0')
        self.dialect = self.dialect or self.drivername
        if not is_supported_dialect(self.dialect):
            raise ValueError(f'Unsupported dialect: {self.dialect}')
        self.appname = self.appname or _scriptname() or 'python_console'
        self.sql_dialect()

    def sql_dialect(self) -> Dialect:
        """The registered dialect with this connection's overrides applied.
        """
        return get_dialect(self.dialect).with_overrides(
            quote=self.quote, placeholder=self.placeholder, returning=self.returning)
