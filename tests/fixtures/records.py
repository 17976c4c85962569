"""
Record types shared by the unit and integration tests.
"""
import datetime
import decimal
import enum
from dataclasses import dataclass, field

from sqlscan import column


class Status(enum.Enum):
    OPEN = 'open'
    CLOSED = 'closed'


@dataclass
class User:
    id: int = column(primary_key=True, default=0)
    name: str = ''
    email: str | None = column('email_address', default=None)


@dataclass
class Note:
    """Record without a primary key."""
    body: str = ''
    author: str | None = None


@dataclass
class Counter:
    """Record whose only column is the primary key."""
    id: int = column(primary_key=True, default=0)


@dataclass
class Event:
    id: int = column(primary_key=True, default=0)
    title: str = ''
    happened_on: datetime.date | None = None
    created_at: datetime.datetime | None = None
    amount: decimal.Decimal | None = None
    active: bool = False
    tags: list | None = None
    status: Status = Status.OPEN
    scratch: str = column(persist=False, default='')


@dataclass(frozen=True)
class FrozenUser:
    id: int = column(primary_key=True, default=0)
    name: str = ''


@dataclass
class Tagged:
    id: int = column(primary_key=True, default=0)
    labels: list = field(default_factory=list)
