"""TelegraDB - encrypted key-value store with a distributed lock on Telegraph."""

from .client import AsyncTelegraphClient
from .crypto import decrypt_content, encrypt_content
from .exceptions import (
    TelegraDBError,
    APIError,
    AuthenticationError,
    NetworkError,
    LockError,
    LockTimeoutError,
    ValidationError,
    DecryptionError,
)
from .lock import AccountLock
from .models import (
    Account,
    IndexEntry,
    LockConfig,
    LockRecord,
    LockStatus,
)
from .remote import RemoteStore
from .store import TelegraDB, bootstrap

__version__ = "1.0.0"
__all__ = [
    "AsyncTelegraphClient",
    "AccountLock",
    "TelegraDB",
    "RemoteStore",
    "bootstrap",
    "encrypt_content",
    "decrypt_content",
    "TelegraDBError",
    "APIError",
    "AuthenticationError",
    "NetworkError",
    "LockError",
    "LockTimeoutError",
    "ValidationError",
    "DecryptionError",
    "Account",
    "IndexEntry",
    "LockConfig",
    "LockRecord",
    "LockStatus",
]
