"""Encrypted key-value store built on remote documents.

Items are addressed by title. The title -> path index lives in memory and is
persisted as one more encrypted document at a fixed path. The store does no
locking of its own: wrap load/mutate/save sequences in :meth:`TelegraDB.with_lock`
or use :meth:`TelegraDB.transaction`.
"""

import json
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, List, Optional, Tuple, TypeVar

from .client import AsyncTelegraphClient
from .crypto import decrypt_content, encrypt_content
from .exceptions import DecryptionError, NetworkError, TelegraDBError
from .lock import AccountLock
from .models import IndexEntry, LockConfig, encode_timestamp
from .remote import RemoteStore

logger = logging.getLogger("telegradb.store")

INDEX_TITLE = "__index__"

T = TypeVar("T")


def _dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


class TelegraDB:
    """Title-addressed encrypted documents on a shared account."""

    def __init__(
        self,
        remote: RemoteStore,
        access_token: str,
        index_path: str,
        lock_config: LockConfig = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the store.

        Args:
            remote: Document and account-field backend
            access_token: Account secret, also the encryption key source
            index_path: Path of the index document
            lock_config: Timing budgets for the account lock
            clock: Wall clock used for lock timestamps
        """
        self.remote = remote
        self.index_path = index_path
        self.lock = AccountLock(remote, lock_config, clock=clock)
        self._access_token = access_token
        self._index: List[IndexEntry] = []

    async def _read(self, path: str) -> Optional[Any]:
        """Fetch, decrypt and deserialize the document at ``path``."""
        wire = await self.remote.read_document(path)
        if wire is None:
            return None
        try:
            return json.loads(decrypt_content(self._access_token, wire))
        except DecryptionError as e:
            logger.warning("Cannot decrypt document %s: %s", path, e)
        except ValueError as e:
            logger.warning("Document %s is not valid JSON: %s", path, e)
        return None

    def _seal(self, value: Any) -> str:
        return encrypt_content(self._access_token, _dumps(value))

    def find_path(self, title: str) -> Optional[str]:
        """Return the path recorded for ``title`` in the in-memory index.

        The first record with that title wins; an empty path counts as absent.
        """
        for entry in self._index:
            if entry.title == title:
                return entry.path or None
        return None

    async def load_index(self) -> bool:
        """Replace the in-memory index with the persisted one.

        Returns:
            True if a valid index was loaded, False if it fell back to empty
        """
        data = await self._read(self.index_path)
        entries = data.get("index") if isinstance(data, dict) else None
        if not isinstance(entries, list):
            logger.warning("Index at %s missing or malformed, starting empty", self.index_path)
            self._index = []
            return False

        self._index = [
            IndexEntry(title=item["title"], path=item["path"])
            for item in entries
            if isinstance(item, dict) and "title" in item and "path" in item
        ]
        logger.debug("Loaded index with %d entries", len(self._index))
        return True

    async def save_index(self) -> Optional[bool]:
        """Persist the in-memory index."""
        payload = {
            "count": len(self._index),
            "index": [entry.to_dict() for entry in self._index],
        }
        return await self.remote.overwrite_document(
            self.index_path, INDEX_TITLE, self._seal(payload)
        )

    async def get_item(self, title: str) -> Optional[Any]:
        """Return the value stored under ``title``, or None."""
        path = self.find_path(title)
        if path is None:
            return None
        return await self._read(path)

    async def create_item(self, title: str, value: Any) -> Optional[str]:
        """Store ``value`` under a new ``title``.

        Only the in-memory index is checked for duplicates and the index is
        not saved; call :meth:`save_index` afterwards.

        Returns:
            ``title`` on success, None if it already exists or creation failed
        """
        if self.find_path(title) is not None:
            logger.debug("Item %r already exists", title)
            return None
        path = await self.remote.create_document(title, self._seal(value))
        if path is None:
            return None
        self._index.append(IndexEntry(title=title, path=path))
        return title

    async def update_item(self, title: str, value: Any) -> Optional[bool]:
        """Overwrite an existing item. Unknown titles are not created."""
        path = self.find_path(title)
        if path is None:
            return None
        return await self.remote.overwrite_document(path, title, self._seal(value))

    def get_item_titles(self) -> List[str]:
        """Titles of the in-memory index, in insertion order."""
        return [entry.title for entry in self._index]

    async def with_lock(self, task: Callable[[], Awaitable[T]]) -> T:
        """Run ``task`` under the account lock."""
        return await self.lock.with_lock(task)

    def locked(self):
        """Async context manager holding the account lock."""
        return self.lock.locked()

    @asynccontextmanager
    async def transaction(self):
        """Lock, reload the index, yield the store, then save the index.

        The index is saved only when the block exits normally; the lock is
        released either way. An index that cannot be loaded aborts the
        transaction, so an empty fallback never overwrites the remote copy.

        Raises:
            TelegraDBError: If the index could not be loaded or saved
        """
        async with self.lock.locked():
            if not await self.load_index():
                raise TelegraDBError(f"Index at {self.index_path} could not be loaded")
            yield self
            if await self.save_index() is None:
                logger.error("Failed to save index at %s", self.index_path)
                raise TelegraDBError(f"Index at {self.index_path} could not be saved")


async def bootstrap(client: AsyncTelegraphClient) -> Tuple[str, str]:
    """Provision a fresh account with an empty, unlocked index.

    Returns:
        ``(access_token, index_path)`` for constructing :class:`TelegraDB`
    """
    account = await client.create_account(encode_timestamp(time.time()), "")
    content = encrypt_content(account.access_token, _dumps({"count": 0, "index": []}))
    index_path = await client.create_document(INDEX_TITLE, content)
    if index_path is None:
        raise NetworkError("Account created but the index document could not be created")
    return account.access_token, index_path
