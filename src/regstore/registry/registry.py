"""
In-memory registry of stored records.

The registry only changes in memory; the registered store is responsible
for persisting it as a whole after every mutation.
"""

from collections.abc import Iterator, Mapping
from typing import Any

from pydantic import ValidationError

from regstore.codec import Codec
from regstore.core.config import RESERVED_REGISTRY_ID
from regstore.core.exceptions import DecodeError
from regstore.registry.models import RegistryEntry


class Registry:
    """Mapping of storage id to registry entry."""

    def __init__(
        self,
        entries: Mapping[str, RegistryEntry] | None = None,
        codec: Codec | None = None,
    ):
        self._entries: dict[str, RegistryEntry] = dict(entries or {})
        self._codec = codec or Codec()

    @classmethod
    def from_mapping(cls, data: Any, codec: Codec | None = None) -> "Registry":
        """
        Build a registry from its persisted form.

        Raises:
            DecodeError: If the data is not a mapping of valid entries
        """
        if not isinstance(data, dict):
            raise DecodeError(
                f"Persisted registry is a {type(data).__name__}, not a mapping",
                kind="registry",
            )
        entries = {}
        for storage_id, raw in data.items():
            try:
                entries[storage_id] = RegistryEntry.model_validate(raw)
            except ValidationError as e:
                raise DecodeError(
                    f"Invalid registry entry for '{storage_id}'",
                    kind="registry",
                    details={"errors": e.error_count()},
                ) from e
        return cls(entries, codec=codec)

    def to_mapping(self) -> dict[str, dict[str, Any]]:
        """Persisted form: storage id -> alias-keyed entry dict."""
        return {storage_id: entry.to_data() for storage_id, entry in self._entries.items()}

    def get(self, storage_id: str) -> RegistryEntry | None:
        """Entry for a storage id, if registered."""
        return self._entries.get(storage_id)

    def put(self, storage_id: str, entry: RegistryEntry) -> None:
        """Register or re-register a storage id."""
        if storage_id == RESERVED_REGISTRY_ID:
            raise ValueError(f"'{RESERVED_REGISTRY_ID}' is reserved and never registered")
        if entry.storage_id != storage_id:
            raise ValueError(
                f"Entry describes '{entry.storage_id}', not '{storage_id}'"
            )
        self._entries[storage_id] = entry

    def remove(self, storage_id: str) -> bool:
        """Unregister a storage id; returns whether it was registered."""
        return self._entries.pop(storage_id, None) is not None

    def classify(self, payload: bytes) -> str:
        """
        Classification of an encoded value.

        Raises:
            DecodeError: If the payload is malformed
        """
        return self._codec.classify(payload)

    def build_entry(
        self,
        storage_id: str,
        safe_id: str,
        classification: str,
        storage_extension: str = ".json",
    ) -> RegistryEntry:
        """Fresh entry stamped with the current time."""
        return RegistryEntry(
            storage_id=storage_id,
            safe_id=safe_id,
            classification=classification,
            storage_directory=RegistryEntry.directory_for(classification),
            storage_extension=storage_extension,
        )

    def storage_ids(self) -> list[str]:
        return list(self._entries)

    def entries(self) -> dict[str, RegistryEntry]:
        """Copy of the current entries."""
        return dict(self._entries)

    def __contains__(self, storage_id: object) -> bool:
        return storage_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))
