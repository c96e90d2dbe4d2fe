"""
TenantLockRegistry -- per-tenant mutual exclusion with bounded wait.

Responsibility:
    Serializes every balance-changing operation of one tenant (posting,
    reversal) while leaving other tenants free to proceed in parallel.

Invariants enforced:
    - At most one posting per tenant is between validation and commit.
    - A caller waits at most ``timeout`` seconds; then it gets
      PostingLockTimeoutError and nothing has been mutated.

Failure modes:
    - PostingLockTimeoutError when the lock is not acquired in time.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager

from ledger_kernel.exceptions import PostingLockTimeoutError
from ledger_kernel.logging_config import get_logger

logger = get_logger("services.locking")


class TenantLockRegistry:
    """
    Lazily created ``threading.Lock`` per tenant id.

    Locks are not re-entrant: a thread holding a tenant's lock must not ask
    for it again.
    """

    def __init__(self, default_timeout: float = 5.0):
        if default_timeout <= 0:
            raise ValueError("default_timeout must be positive")
        self._default_timeout = default_timeout
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def _lock_for(self, tenant_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(tenant_id)
            if lock is None:
                lock = self._locks[tenant_id] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, tenant_id: str, timeout: float | None = None) -> Iterator[None]:
        """
        Hold the tenant's lock for the duration of the block.

        Raises:
            PostingLockTimeoutError: If not acquired within ``timeout`` seconds.
        """
        wait = self._default_timeout if timeout is None else timeout
        lock = self._lock_for(tenant_id)
        start = time.monotonic()
        if not lock.acquire(timeout=wait):
            logger.warning(
                "tenant_lock_timeout",
                extra={"tenant_id": tenant_id, "timeout_seconds": wait},
            )
            raise PostingLockTimeoutError(tenant_id, wait)
        waited_ms = round((time.monotonic() - start) * 1000, 2)
        if waited_ms > 100:
            logger.info("tenant_lock_contended", extra={"tenant_id": tenant_id, "waited_ms": waited_ms})
        try:
            yield
        finally:
            lock.release()

    def is_locked(self, tenant_id: str) -> bool:
        return self._lock_for(tenant_id).locked()
