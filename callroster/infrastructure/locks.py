from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator


class TenantLocks:
    """One re-entrant lock per tenant; tenants never block each other."""

    def __init__(self) -> None:
        self._locks: dict[str, threading.RLock] = {}
        self._guard = threading.Lock()

    def get(self, tenant_id: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(tenant_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[tenant_id] = lock
            return lock

    @contextmanager
    def hold(self, tenant_id: str) -> Iterator[None]:
        with self.get(tenant_id):
            yield
