"""
Registered Store - key/value storage that keeps a registry of what it holds.

Every record written through the store gets a registry entry describing it.
The registry is itself persisted as an ordinary record under the reserved
storage id "registry", so create/update/delete special-case that id to stop
the registry from registering itself.
"""

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from regstore.backends.base import PhysicalBackend
from regstore.codec import Codec
from regstore.core.config import RESERVED_REGISTRY_ID, UpdateMode
from regstore.core.exceptions import (
    BackendIOError,
    CodecError,
    ConsistencyError,
    DecodeError,
    NotFoundError,
)
from regstore.registry import Registry, RegistryEntry
from regstore.store.reconcile import ReconciliationReport, scan

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Lookup:
    """Explicit result of looking up a storage id."""

    found: bool
    value: Any = None


class RegisteredStore:
    """
    Registry-backed key/value store.

    Failures never raise out of the public operations: backend and codec
    errors are logged and reported as False. Note that read() also returns
    False when the stored value is the boolean False; use lookup() where
    that distinction matters.
    """

    def __init__(
        self,
        backend: PhysicalBackend,
        codec: Codec | None = None,
        update_mode: UpdateMode = UpdateMode.SWAP,
    ):
        """
        Initialize the store.

        Args:
            backend: Physical storage for record payloads
            codec: Value codec (default: shared record types)
            update_mode: SWAP replaces records in place; DELETE_CREATE keeps
                the two-step delete-then-create behavior
        """
        self._backend = backend
        self._codec = codec if codec is not None else Codec()
        self._update_mode = UpdateMode(update_mode)
        self._registry: Registry | None = None

    @property
    def backend(self) -> PhysicalBackend:
        return self._backend

    @property
    def codec(self) -> Codec:
        return self._codec

    @property
    def update_mode(self) -> UpdateMode:
        return self._update_mode

    @property
    def registry(self) -> Registry:
        """Get or create the in-memory registry."""
        if self._registry is None:
            try:
                with self._backend.lock():
                    if self._registry is None:
                        self._registry = self._load_registry()
            except BackendIOError as e:
                logger.warning(f"Failed to lock store for registry load: {e}")
                return Registry(codec=self._codec)
        return self._registry

    def safe_id(self, storage_id: str) -> str:
        """Safe id the backend derives for a storage id."""
        return self._backend.safe_id(storage_id)

    # Public operations

    def create(self, storage_id: str, value: Any) -> bool:
        """Store a value and register it. Returns True on success."""
        return self._locked(storage_id, self._create, value)

    def read(self, storage_id: str) -> Any:
        """
        Read a stored value.

        Returns False if the record is absent or unreadable, and also when
        the stored value is False itself.
        """
        result = self.lookup(storage_id)
        return result.value if result.found else False

    def lookup(self, storage_id: str) -> Lookup:
        """Read a stored value, reporting explicitly whether it was found."""
        try:
            payload = self._backend.load(storage_id)
        except NotFoundError:
            return Lookup(found=False)
        except BackendIOError as e:
            logger.warning(f"Failed to load '{storage_id}': {e}")
            return Lookup(found=False)

        try:
            return Lookup(found=True, value=self._codec.decode(payload))
        except DecodeError as e:
            logger.warning(f"Failed to decode '{storage_id}': {e}")
            return Lookup(found=False)

    def exists(self, storage_id: str) -> bool:
        """Whether a record is physically present."""
        return self._backend.exists(storage_id)

    def update(self, storage_id: str, value: Any) -> bool:
        """Replace the value of an existing record. Returns True on success."""
        return self._locked(storage_id, self._update, value)

    def delete(self, storage_id: str) -> bool:
        """Delete a record and unregister it. Returns True on success."""
        return self._locked(storage_id, self._delete)

    def get_registry_data(self, storage_id: str, name: str = "*") -> Any:
        """
        Registry data for a storage id, read from the persisted registry.

        Args:
            storage_id: The storage id to describe
            name: A single field to return ("classification", "modified", ...),
                or "*" for the whole entry

        Returns:
            The entry dict, the field's value, or False if there is no entry
            or no such field
        """
        persisted = self.read(RESERVED_REGISTRY_ID)
        if not isinstance(persisted, dict):
            return False
        entry = persisted.get(storage_id)
        if not isinstance(entry, dict):
            return False
        if name == "*":
            return dict(entry)
        key = RegistryEntry.field_alias(name) or name
        if key in entry:
            return entry[key]
        return False

    def get_registry(self) -> dict[str, RegistryEntry]:
        """Copy of the in-memory registry."""
        return self.registry.entries()

    # Original contract names
    getRegistryData = get_registry_data
    getRegistry = get_registry

    def reconcile(self, repair: bool = False) -> ReconciliationReport:
        """
        Compare the registry against the records physically present.

        Args:
            repair: Drop entries whose record no longer exists and persist
                the registry

        Returns:
            Report of dangling entries, unregistered records and stale safe ids

        Raises:
            BackendIOError: If the store lock cannot be taken or the registry
                record cannot be read
        """
        with self._backend.lock():
            self._registry = self._load_registry(strict=True)
            report = scan(self.registry, self._backend, RESERVED_REGISTRY_ID)

            if repair and report.dangling:
                for storage_id in report.dangling:
                    self.registry.remove(storage_id)
                if self._persist_registry():
                    report.repaired = list(report.dangling)
                    logger.info(f"Removed {len(report.repaired)} dangling registry entries")
                else:
                    logger.warning("Failed to persist registry after repair")

        logger.debug(
            f"Reconciled {report.checked} entries: dangling={len(report.dangling)}, "
            f"unregistered={len(report.unregistered)}, mismatched={len(report.mismatched)}"
        )
        return report

    def verify(self) -> bool:
        """
        Check registry consistency.

        Raises:
            ConsistencyError: If registry and records have diverged
        """
        report = self.reconcile()
        if not report.consistent:
            raise ConsistencyError(
                dangling=report.dangling,
                unregistered=report.unregistered,
                mismatched=report.mismatched,
            )
        return True

    # Internals

    def _locked(self, storage_id: str, operation: Callable[..., bool], *args: Any) -> bool:
        """Run a mutation under the store lock; lock or registry load failures report False."""
        try:
            with self._mutation(storage_id):
                return operation(storage_id, *args)
        except BackendIOError as e:
            # Operations handle their own backend errors; only the lock and
            # the registry reload get here
            logger.warning(f"Aborted mutation of '{storage_id}': {e}")
            return False

    @contextmanager
    def _mutation(self, storage_id: str) -> Iterator[None]:
        """Hold the store lock and pick up registry changes from other writers."""
        with self._backend.lock():
            if storage_id != RESERVED_REGISTRY_ID:
                self._registry = self._load_registry(strict=True)
            yield

    def _load_registry(self, strict: bool = False) -> Registry:
        """
        Load the persisted registry, creating an empty one if absent.

        With strict set, a registry record that exists but cannot be read
        raises BackendIOError instead of yielding an empty registry, so a
        mutation never persists a registry built from a failed read.
        """
        try:
            payload = self._backend.load(RESERVED_REGISTRY_ID)
        except NotFoundError:
            logger.debug("No stored registry, creating an empty one")
            self._create(RESERVED_REGISTRY_ID, {})
            return Registry(codec=self._codec)
        except BackendIOError as e:
            if strict:
                raise
            logger.warning(f"Failed to load registry, starting empty: {e}")
            return Registry(codec=self._codec)

        try:
            return Registry.from_mapping(self._codec.decode(payload), codec=self._codec)
        except DecodeError as e:
            logger.error(f"Stored registry is unreadable, starting empty: {e}")
            return Registry(codec=self._codec)

    def _encode(self, storage_id: str, value: Any) -> bytes | None:
        try:
            return self._codec.encode(value)
        except CodecError as e:
            logger.warning(f"Failed to encode value for '{storage_id}': {e}")
            return None

    def _create(self, storage_id: str, value: Any) -> bool:
        payload = self._encode(storage_id, value)
        if payload is None:
            return False

        try:
            self._backend.save(storage_id, payload)
        except BackendIOError as e:
            logger.warning(f"Failed to save '{storage_id}': {e}")
            return False

        # The registry is never registered in itself
        if storage_id == RESERVED_REGISTRY_ID:
            return True
        return self._register(storage_id, payload)

    def _update(self, storage_id: str, value: Any) -> bool:
        if self._update_mode is UpdateMode.DELETE_CREATE:
            # Not atomic: a crash between the two steps loses the record
            if self._delete(storage_id):
                return self._create(storage_id, value)
            return False
        return self._swap(storage_id, value)

    def _swap(self, storage_id: str, value: Any) -> bool:
        payload = self._encode(storage_id, value)
        if payload is None:
            return False

        try:
            self._backend.replace(storage_id, payload)
        except NotFoundError:
            logger.debug(f"Nothing to update for '{storage_id}'")
            return False
        except BackendIOError as e:
            logger.warning(f"Failed to replace '{storage_id}': {e}")
            return False

        if storage_id == RESERVED_REGISTRY_ID:
            return True
        return self._register(storage_id, payload)

    def _delete(self, storage_id: str) -> bool:
        try:
            self._backend.delete(storage_id)
        except NotFoundError:
            logger.debug(f"Nothing to delete for '{storage_id}'")
            return False
        except BackendIOError as e:
            logger.warning(f"Failed to delete '{storage_id}': {e}")
            return False

        if storage_id == RESERVED_REGISTRY_ID:
            return True
        self.registry.remove(storage_id)
        return self._persist_registry()

    def _register(self, storage_id: str, payload: bytes) -> bool:
        try:
            classification = self.registry.classify(payload)
        except DecodeError as e:
            logger.warning(f"Failed to classify '{storage_id}': {e}")
            return False

        entry = self.registry.build_entry(
            storage_id,
            self._backend.safe_id(storage_id),
            classification,
            storage_extension=self._backend.storage_extension,
        )
        self.registry.put(storage_id, entry)
        return self._persist_registry()

    def _persist_registry(self) -> bool:
        """Write the whole in-memory registry under the reserved id."""
        mapping = self.registry.to_mapping()
        if self._update_mode is UpdateMode.DELETE_CREATE:
            persisted = self._update(RESERVED_REGISTRY_ID, mapping)
        elif self._backend.exists(RESERVED_REGISTRY_ID):
            persisted = self._swap(RESERVED_REGISTRY_ID, mapping)
        else:
            persisted = self._create(RESERVED_REGISTRY_ID, mapping)

        if persisted:
            logger.debug(f"Persisted registry with {len(mapping)} entries")
        else:
            logger.warning("Failed to persist registry")
        return persisted
