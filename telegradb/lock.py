"""Mutual exclusion over two mutable account fields.

The remote service has no compare-and-swap, so acquisition is optimistic:
read the lock record, write our claim if nobody live holds it, wait for
racing writers to settle, then re-read and keep the lock only if our claim
survived. A holder that disappears without releasing is overridden once
its timestamp is older than ``stale_after``.

Safety assumes clock skew between clients and request latency both stay
well below ``stale_after``; two requesters whose writes interleave inside
one ``confirm_delay`` can still, rarely, both believe they won.
"""

import asyncio
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Awaitable, Callable, Optional, TypeVar

from .exceptions import LockTimeoutError
from .models import HOLDER_FIELD, LOCK_FIELDS, LockConfig, LockRecord, LockStatus
from .remote import RemoteStore

logger = logging.getLogger("telegradb.lock")

T = TypeVar("T")


class AccountLock:
    """Distributed lock stored in the account's ``author_name``/``short_name``."""

    def __init__(
        self,
        remote: RemoteStore,
        config: LockConfig = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the lock.

        Args:
            remote: Store exposing the account fields
            config: Timing budgets; defaults to :class:`LockConfig`
            clock: Wall clock in seconds since the epoch, shared with other clients
        """
        self.remote = remote
        self.config = config or LockConfig()
        self.clock = clock
        self.requester_id: Optional[str] = None

    async def _bounded(self, coro: Awaitable[T], timeout: float) -> Optional[T]:
        """Await a remote call, abandoning it after ``timeout`` seconds."""
        if timeout <= 0:
            coro.close()
            return None
        try:
            return await asyncio.wait_for(coro, timeout)
        except asyncio.TimeoutError:
            logger.warning("Remote call exceeded %.3fs budget", timeout)
            return None

    async def _read_record(self, timeout: float) -> Optional[LockRecord]:
        """Read the lock fields within ``timeout``, or None on failure."""
        fields = await self._bounded(self.remote.read_fields(LOCK_FIELDS), timeout)
        if fields is None:
            return None
        return LockRecord.from_fields(fields)

    async def acquire(self) -> str:
        """Acquire the lock, polling until it is ours.

        Returns:
            The requester id written into the lock record

        Raises:
            LockTimeoutError: If ``acquire_timeout`` elapses first
        """
        config = self.config
        loop = asyncio.get_running_loop()
        started = loop.time()
        requester = str(uuid.uuid4())
        last_holder = None

        while True:
            elapsed = loop.time() - started
            if elapsed >= config.acquire_timeout:
                logger.error(
                    "Could not acquire lock within %.1fs (last holder: %s)",
                    elapsed, last_holder or "unknown",
                )
                raise LockTimeoutError(
                    "Can't acquire lock", holder=last_holder, elapsed=elapsed
                )

            # Read and claim share one request budget.
            deadline = loop.time() + config.request_timeout
            record = await self._read_record(deadline - loop.time())
            if record is None:
                await asyncio.sleep(config.confirm_delay)
                continue

            status = record.status(self.clock(), config.stale_after)
            if status is LockStatus.HELD and record.holder != requester:
                last_holder = record.holder
                logger.debug("Lock held by %s, waiting", record.holder)
                await asyncio.sleep(config.confirm_delay)
                continue
            if status is LockStatus.STALE and record.holder != requester:
                logger.info("Overriding stale lock held by %s", record.holder)

            claim = LockRecord(holder=requester, timestamp=self.clock())
            written = await self._bounded(
                self.remote.write_fields(claim.to_fields()), deadline - loop.time()
            )
            if written is None:
                await asyncio.sleep(config.confirm_delay)
                continue

            await asyncio.sleep(config.confirm_delay)
            record = await self._read_record(config.request_timeout)
            if record is None or record.holder != requester:
                if record is not None:
                    last_holder = record.holder
                logger.debug("Lost lock race to %s", record.holder if record else "unknown")
                await asyncio.sleep(config.confirm_delay)
                continue

            self.requester_id = requester
            logger.debug("Acquired lock as %s after %.2fs", requester, loop.time() - started)
            return requester

    async def release(self) -> None:
        """Clear the holder field. Failures are logged, not retried."""
        ack = await self.remote.write_fields({HOLDER_FIELD: ""})
        if ack is None:
            logger.warning("Failed to release lock held as %s", self.requester_id)
        else:
            logger.debug("Released lock held as %s", self.requester_id)
        self.requester_id = None

    async def with_lock(self, task: Callable[[], Awaitable[T]]) -> T:
        """Run ``task`` while holding the lock and return its result.

        Release is attempted however the task exits. If acquisition times out
        the task is never called.
        """
        await self.acquire()
        try:
            return await task()
        finally:
            await self.release()

    @asynccontextmanager
    async def locked(self):
        """Async context manager form of :meth:`with_lock`."""
        requester = await self.acquire()
        try:
            yield requester
        finally:
            await self.release()
