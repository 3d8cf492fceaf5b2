"""In-process backend keeping payloads in a dict."""

from regstore.backends.base import PhysicalBackend
from regstore.core.config import DEFAULT_HMAC_KEY
from regstore.core.exceptions import BackendIOError, NotFoundError


class MemoryBackend(PhysicalBackend):
    """Dict-backed backend with the same contract as the file backend."""

    storage_extension = ".json"

    def __init__(self, hmac_key: str = DEFAULT_HMAC_KEY):
        super().__init__(hmac_key=hmac_key)
        self._records: dict[str, bytes] = {}

    def location(self, storage_id: str) -> str:
        return f"memory://{self.safe_id(storage_id)}{self.storage_extension}"

    def save(self, storage_id: str, payload: bytes) -> None:
        if not payload:
            raise BackendIOError(
                "Refusing to write an empty payload",
                storage_id=storage_id,
                location=self.location(storage_id),
                operation="save",
            )
        self._records[self.safe_id(storage_id)] = bytes(payload)

    def load(self, storage_id: str) -> bytes:
        try:
            return self._records[self.safe_id(storage_id)]
        except KeyError:
            raise NotFoundError(
                storage_id=storage_id,
                location=self.location(storage_id),
            ) from None

    def delete(self, storage_id: str) -> None:
        try:
            del self._records[self.safe_id(storage_id)]
        except KeyError:
            raise NotFoundError(
                storage_id=storage_id,
                location=self.location(storage_id),
                operation="delete",
            ) from None

    def exists(self, storage_id: str) -> bool:
        return self.safe_id(storage_id) in self._records

    def safe_ids(self) -> set[str]:
        return set(self._records)
