"""
JSON file backend.

Stores one file per record:
- {root}/{safe_id}.json (record payload)
- {root}/.lock (store-wide lock file)

The root directory is created with restrictive permissions on first write.
"""

import fcntl
import logging
import os
import re
from pathlib import Path
from typing import IO

from regstore.backends.base import PhysicalBackend
from regstore.core.config import DEFAULT_DIR_MODE, DEFAULT_HMAC_KEY
from regstore.core.exceptions import BackendIOError, NotFoundError

logger = logging.getLogger(__name__)

_SAFE_ID_RE = re.compile(r"[0-9a-f]{64}")


class JsonFileBackend(PhysicalBackend):
    """
    File-per-record backend.

    Record writes hold an exclusive flock on the target file so concurrent
    writers to the same record never interleave partial content.
    """

    storage_extension = ".json"
    LOCK_FILE = ".lock"

    def __init__(
        self,
        root: Path,
        hmac_key: str = DEFAULT_HMAC_KEY,
        dir_mode: int = DEFAULT_DIR_MODE,
        fsync: bool = True,
    ):
        """
        Initialize the backend.

        Args:
            root: Directory holding the record files
            hmac_key: Key for deriving safe ids
            dir_mode: Permissions for the root directory if it is created
            fsync: Flush each write to disk before returning
        """
        super().__init__(hmac_key=hmac_key)
        self._root = Path(root)
        self._dir_mode = dir_mode
        self._fsync = fsync
        self._lock_handle: IO[bytes] | None = None

    @property
    def root(self) -> Path:
        """Storage root directory."""
        return self._root

    def path(self, storage_id: str) -> Path:
        """File path for a storage id."""
        return self._root / f"{self.safe_id(storage_id)}{self.storage_extension}"

    def location(self, storage_id: str) -> str:
        return str(self.path(storage_id))

    def _ensure_root(self) -> None:
        """Create the storage root if it does not exist yet."""
        if self._root.is_dir():
            return
        try:
            self._root.mkdir(mode=self._dir_mode, parents=True, exist_ok=True)
            # mkdir honours the umask; set the mode explicitly
            os.chmod(self._root, self._dir_mode)
        except OSError as e:
            raise BackendIOError(
                f"Could not create storage root: {e}",
                location=str(self._root),
                operation="init",
            ) from e
        logger.info(f"Created storage root {self._root} (mode {oct(self._dir_mode)})")

    def save(self, storage_id: str, payload: bytes) -> None:
        """
        Write a record file under an exclusive lock.

        Raises:
            BackendIOError: If the write fails or is incomplete
        """
        path = self.path(storage_id)
        if not payload:
            raise BackendIOError(
                "Refusing to write an empty payload",
                storage_id=storage_id,
                location=str(path),
                operation="save",
            )
        self._ensure_root()

        try:
            fd = os.open(path, os.O_WRONLY | os.O_CREAT, 0o600)
            with os.fdopen(fd, "wb") as f:
                try:
                    fcntl.flock(f.fileno(), fcntl.LOCK_EX)
                except (AttributeError, OSError):
                    # flock unsupported on this filesystem
                    pass

                try:
                    f.truncate(0)
                    written = f.write(payload)
                    f.flush()
                    if self._fsync:
                        os.fsync(f.fileno())
                finally:
                    try:
                        fcntl.flock(f.fileno(), fcntl.LOCK_UN)
                    except (AttributeError, OSError):
                        pass
        except OSError as e:
            raise BackendIOError(
                f"Could not write record: {e}",
                storage_id=storage_id,
                location=str(path),
                operation="save",
            ) from e

        if written != len(payload):
            raise BackendIOError(
                "Short write",
                storage_id=storage_id,
                location=str(path),
                operation="save",
                details={"expected": len(payload), "written": written},
            )

    def replace(self, storage_id: str, payload: bytes) -> None:
        """
        Write the new payload beside the record, then swap it in.

        Raises:
            NotFoundError: If there is no record to replace
            BackendIOError: If the write or swap fails
        """
        path = self.path(storage_id)
        if not path.is_file():
            raise NotFoundError(
                storage_id=storage_id,
                location=str(path),
                operation="replace",
            )
        if not payload:
            raise BackendIOError(
                "Refusing to write an empty payload",
                storage_id=storage_id,
                location=str(path),
                operation="replace",
            )

        temp_path = path.with_name(f"{path.name}.tmp")
        try:
            # A leftover temp file would keep its own mode
            temp_path.unlink(missing_ok=True)
            fd = os.open(temp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "wb") as f:
                f.write(payload)
                f.flush()
                if self._fsync:
                    os.fsync(f.fileno())
            os.replace(temp_path, path)
        except OSError as e:
            temp_path.unlink(missing_ok=True)
            raise BackendIOError(
                f"Could not replace record: {e}",
                storage_id=storage_id,
                location=str(path),
                operation="replace",
            ) from e

    def load(self, storage_id: str) -> bytes:
        """
        Read a record file.

        Raises:
            NotFoundError: If the file does not exist
            BackendIOError: If the file cannot be read
        """
        path = self.path(storage_id)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            raise NotFoundError(storage_id=storage_id, location=str(path)) from None
        except OSError as e:
            raise BackendIOError(
                f"Could not read record: {e}",
                storage_id=storage_id,
                location=str(path),
                operation="load",
            ) from e

    def delete(self, storage_id: str) -> None:
        """
        Remove a record file.

        Raises:
            NotFoundError: If the file does not exist
            BackendIOError: If the file cannot be removed
        """
        path = self.path(storage_id)
        try:
            path.unlink()
        except FileNotFoundError:
            raise NotFoundError(
                storage_id=storage_id,
                location=str(path),
                operation="delete",
            ) from None
        except OSError as e:
            raise BackendIOError(
                f"Could not delete record: {e}",
                storage_id=storage_id,
                location=str(path),
                operation="delete",
            ) from e

    def exists(self, storage_id: str) -> bool:
        return self.path(storage_id).is_file()

    def safe_ids(self) -> set[str]:
        if not self._root.is_dir():
            return set()
        found = set()
        for item in self._root.glob(f"*{self.storage_extension}"):
            if item.is_file() and _SAFE_ID_RE.fullmatch(item.stem):
                found.add(item.stem)
        return found

    def _acquire_store_lock(self) -> None:
        self._ensure_root()
        lock_path = self._root / self.LOCK_FILE
        try:
            handle = open(lock_path, "ab")
        except OSError as e:
            raise BackendIOError(
                f"Could not open lock file: {e}",
                location=str(lock_path),
                operation="lock",
            ) from e
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
        except (AttributeError, OSError):
            # flock unsupported on this filesystem
            pass
        self._lock_handle = handle

    def _release_store_lock(self) -> None:
        handle, self._lock_handle = self._lock_handle, None
        if handle is None:
            return
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
        except (AttributeError, OSError):
            pass
        finally:
            handle.close()
