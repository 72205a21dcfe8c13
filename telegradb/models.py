"""TelegraDB data models."""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from .exceptions import ValidationError

HOLDER_FIELD = "author_name"
TIMESTAMP_FIELD = "short_name"
LOCK_FIELDS = [TIMESTAMP_FIELD, HOLDER_FIELD]


class LockStatus(str, Enum):
    """Lock status enumeration."""
    FREE = "free"
    HELD = "held"
    STALE = "stale"


@dataclass
class LockConfig:
    """Timing budgets for the account lock, in seconds."""
    request_timeout: float = 2.0
    confirm_delay: float = 2.5
    stale_after: float = 10.0
    acquire_timeout: float = 30.0

    def __post_init__(self):
        for name in ("request_timeout", "confirm_delay", "stale_after", "acquire_timeout"):
            if getattr(self, name) <= 0:
                raise ValidationError(f"{name} must be positive")


def encode_timestamp(seconds: float) -> str:
    """Encode a wall-clock time as hexadecimal milliseconds."""
    return format(int(seconds * 1000), "x")


def decode_timestamp(value: Optional[str]) -> Optional[float]:
    """Decode a hexadecimal millisecond timestamp, or None if unparseable."""
    if not value:
        return None
    try:
        return int(value, 16) / 1000.0
    except ValueError:
        return None


@dataclass
class LockRecord:
    """The two account fields used as the lock."""
    holder: str
    timestamp: Optional[float]

    @classmethod
    def from_fields(cls, fields: Dict[str, str]) -> "LockRecord":
        return cls(
            holder=fields.get(HOLDER_FIELD) or "",
            timestamp=decode_timestamp(fields.get(TIMESTAMP_FIELD)),
        )

    def to_fields(self) -> Dict[str, str]:
        fields = {HOLDER_FIELD: self.holder}
        if self.timestamp is not None:
            fields[TIMESTAMP_FIELD] = encode_timestamp(self.timestamp)
        return fields

    def status(self, now: float, stale_after: float) -> LockStatus:
        """Classify the record as seen at wall-clock time ``now``.

        An unparseable timestamp counts as stale, so a corrupted record
        can never block other requesters forever.
        """
        if not self.holder:
            return LockStatus.FREE
        if self.timestamp is None or now - self.timestamp >= stale_after:
            return LockStatus.STALE
        return LockStatus.HELD


@dataclass
class IndexEntry:
    """One title -> path record in the store index."""
    title: str
    path: str

    def to_dict(self) -> Dict[str, str]:
        return {"title": self.title, "path": self.path}


@dataclass
class Account:
    """Account created by provisioning."""
    access_token: str
    short_name: str
    author_name: str = ""
    auth_url: Optional[str] = None
