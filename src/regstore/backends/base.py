"""
Physical backend contract.

A backend maps storage ids to physical locations and moves raw payloads in
and out of them. Locations are always derived from the safe id, never from
the caller's storage id directly.
"""

import hashlib
import hmac
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager

from regstore.core.config import DEFAULT_HMAC_KEY
from regstore.core.exceptions import NotFoundError


def compute_safe_id(storage_id: str, key: str = DEFAULT_HMAC_KEY) -> str:
    """HMAC-SHA256 of a storage id as 64 lowercase hex characters."""
    digest = hmac.new(
        key.encode("utf-8"),
        storage_id.encode("utf-8"),
        hashlib.sha256,
    )
    return digest.hexdigest()


class PhysicalBackend(ABC):
    """
    Base class for physical storage backends.

    Implementations raise NotFoundError when a location holds no record and
    BackendIOError for every other failure. The store lock returned by
    lock() is reentrant within a process.
    """

    storage_extension = ""

    def __init__(self, hmac_key: str = DEFAULT_HMAC_KEY):
        self._hmac_key = hmac_key
        self._thread_lock = threading.RLock()
        self._lock_depth = 0

    def safe_id(self, storage_id: str) -> str:
        """Derive the safe id for a storage id."""
        return compute_safe_id(storage_id, self._hmac_key)

    @abstractmethod
    def location(self, storage_id: str) -> str:
        """Physical location of a storage id's record."""

    @abstractmethod
    def save(self, storage_id: str, payload: bytes) -> None:
        """Write a payload, creating or overwriting the record."""

    @abstractmethod
    def load(self, storage_id: str) -> bytes:
        """Read a record's payload."""

    @abstractmethod
    def delete(self, storage_id: str) -> None:
        """Remove a record."""

    @abstractmethod
    def exists(self, storage_id: str) -> bool:
        """Whether a record is physically present."""

    @abstractmethod
    def safe_ids(self) -> set[str]:
        """Safe ids of every record physically present."""

    def replace(self, storage_id: str, payload: bytes) -> None:
        """
        Swap an existing record's payload for a new one.

        Raises:
            NotFoundError: If there is no record to replace
        """
        if not self.exists(storage_id):
            raise NotFoundError(
                storage_id=storage_id,
                location=self.location(storage_id),
                operation="replace",
            )
        self.save(storage_id, payload)

    @contextmanager
    def lock(self) -> Iterator[None]:
        """Hold the store-wide lock for a multi-step mutation."""
        with self._thread_lock:
            if self._lock_depth == 0:
                self._acquire_store_lock()
            self._lock_depth += 1
            try:
                yield
            finally:
                self._lock_depth -= 1
                if self._lock_depth == 0:
                    self._release_store_lock()

    def _acquire_store_lock(self) -> None:
        """Hook for backends that coordinate across processes."""

    def _release_store_lock(self) -> None:
        """Hook for backends that coordinate across processes."""
