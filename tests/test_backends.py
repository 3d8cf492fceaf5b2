"""Tests for physical backends."""

import hashlib
import hmac
import os
from pathlib import Path

import pytest

from regstore.backends import JsonFileBackend, MemoryBackend, PhysicalBackend, compute_safe_id
from regstore.core.config import DEFAULT_HMAC_KEY
from regstore.core.exceptions import BackendIOError, NotFoundError


class TestSafeId:
    """Tests for safe id derivation."""

    def test_is_hmac_sha256(self) -> None:
        """Safe ids are hex HMAC-SHA256 digests under the configured key."""
        expected = hmac.new(
            DEFAULT_HMAC_KEY.encode(), b"user:42", hashlib.sha256
        ).hexdigest()
        assert compute_safe_id("user:42") == expected

    def test_deterministic(self) -> None:
        """Same storage id, same safe id."""
        assert compute_safe_id("a/b/../c") == compute_safe_id("a/b/../c")

    def test_fixed_length_hex(self) -> None:
        """Safe ids are 64 lowercase hex characters whatever the input."""
        for storage_id in ("", "x", "../../etc/passwd", "ü" * 500):
            safe = compute_safe_id(storage_id)
            assert len(safe) == 64
            assert all(c in "0123456789abcdef" for c in safe)

    def test_distinct_ids_distinct_safe_ids(self) -> None:
        """Different storage ids map to different safe ids."""
        ids = [f"item:{i}" for i in range(500)]
        assert len({compute_safe_id(i) for i in ids}) == len(ids)

    def test_key_changes_safe_id(self) -> None:
        """The key is part of the derivation."""
        assert compute_safe_id("x", "key-one") != compute_safe_id("x", "key-two")

    def test_backend_uses_its_key(self) -> None:
        """Backends derive safe ids with the key they were given."""
        backend = MemoryBackend(hmac_key="custom")
        assert backend.safe_id("x") == compute_safe_id("x", "custom")


class TestBackendContract:
    """Contract shared by every backend."""

    def test_save_and_load(self, backend: PhysicalBackend) -> None:
        """Saved payloads load back unchanged."""
        backend.save("doc", b"payload")
        assert backend.load("doc") == b"payload"
        assert backend.exists("doc")

    def test_overwrite_with_shorter_payload(self, backend: PhysicalBackend) -> None:
        """Saving again fully replaces the previous payload."""
        backend.save("doc", b"a much longer payload")
        backend.save("doc", b"short")
        assert backend.load("doc") == b"short"

    def test_empty_payload_rejected(self, backend: PhysicalBackend) -> None:
        """Zero-byte writes are failures."""
        with pytest.raises(BackendIOError):
            backend.save("doc", b"")
        assert not backend.exists("doc")

    def test_load_missing(self, backend: PhysicalBackend) -> None:
        """Loading an absent record raises NotFoundError."""
        with pytest.raises(NotFoundError):
            backend.load("missing")

    def test_delete(self, backend: PhysicalBackend) -> None:
        """Deleted records are gone."""
        backend.save("doc", b"payload")
        backend.delete("doc")

        assert not backend.exists("doc")
        with pytest.raises(NotFoundError):
            backend.load("doc")

    def test_delete_missing(self, backend: PhysicalBackend) -> None:
        """Deleting an absent record raises NotFoundError."""
        with pytest.raises(NotFoundError) as exc_info:
            backend.delete("missing")
        assert exc_info.value.operation == "delete"

    def test_not_found_is_backend_error(self) -> None:
        """NotFoundError is a BackendIOError subclass."""
        assert issubclass(NotFoundError, BackendIOError)

    def test_replace(self, backend: PhysicalBackend) -> None:
        """Replace swaps the payload of an existing record."""
        backend.save("doc", b"old")
        backend.replace("doc", b"new")
        assert backend.load("doc") == b"new"

    def test_replace_missing(self, backend: PhysicalBackend) -> None:
        """Replace does not create records."""
        with pytest.raises(NotFoundError):
            backend.replace("missing", b"new")
        assert not backend.exists("missing")

    def test_safe_ids(self, backend: PhysicalBackend) -> None:
        """safe_ids lists the records present."""
        backend.save("one", b"1")
        backend.save("two", b"2")
        backend.delete("one")
        assert backend.safe_ids() == {backend.safe_id("two")}

    def test_lock_is_reentrant(self, backend: PhysicalBackend) -> None:
        """Nested lock() calls in one process do not deadlock."""
        with backend.lock():
            with backend.lock():
                backend.save("doc", b"payload")
        assert backend.load("doc") == b"payload"

    def test_location_uses_safe_id(self, backend: PhysicalBackend) -> None:
        """Locations never contain the raw storage id."""
        location = backend.location("../escape")
        assert backend.safe_id("../escape") in location
        assert "escape" not in location


class TestJsonFileBackend:
    """Tests specific to JsonFileBackend."""

    def test_root_created_lazily(self, store_root: Path) -> None:
        """The storage root appears on first write, with restrictive mode."""
        backend = JsonFileBackend(store_root, fsync=False)
        assert not store_root.exists()

        backend.save("doc", b"payload")

        assert store_root.is_dir()
        assert store_root.stat().st_mode & 0o777 == 0o700

    def test_record_modes_private(self, store_root: Path) -> None:
        """Saved and replaced records stay owner-only whatever the umask."""
        backend = JsonFileBackend(store_root, fsync=False)
        previous = os.umask(0o022)
        try:
            backend.save("doc", b"one")
            backend.replace("doc", b"two")
            backend.save("other", b"one")
        finally:
            os.umask(previous)

        assert backend.load("doc") == b"two"
        assert backend.path("doc").stat().st_mode & 0o777 == 0o600
        assert backend.path("other").stat().st_mode & 0o777 == 0o600

    def test_replace_ignores_leftover_temp_mode(self, store_root: Path) -> None:
        """A stale temp file from an earlier crash does not leak its mode."""
        backend = JsonFileBackend(store_root, fsync=False)
        backend.save("doc", b"one")
        leftover = backend.path("doc").with_name(backend.path("doc").name + ".tmp")
        leftover.write_bytes(b"stale")
        leftover.chmod(0o644)

        backend.replace("doc", b"two")

        assert not leftover.exists()
        assert backend.path("doc").stat().st_mode & 0o777 == 0o600

    def test_custom_dir_mode(self, store_root: Path) -> None:
        """The root directory mode is configurable."""
        backend = JsonFileBackend(store_root, dir_mode=0o750, fsync=False)
        backend.save("doc", b"payload")
        assert store_root.stat().st_mode & 0o777 == 0o750

    def test_file_layout(self, store_root: Path) -> None:
        """Each record is <root>/<safe_id>.json."""
        backend = JsonFileBackend(store_root, fsync=False)
        backend.save("user:42", b"payload")

        expected = store_root / f"{compute_safe_id('user:42')}.json"
        assert backend.path("user:42") == expected
        assert expected.read_bytes() == b"payload"

    def test_replace_leaves_no_temp_file(self, store_root: Path) -> None:
        """The swap removes its temporary file."""
        backend = JsonFileBackend(store_root, fsync=False)
        backend.save("doc", b"old")
        backend.replace("doc", b"new")

        assert [p.name for p in store_root.iterdir() if p.name.endswith(".tmp")] == []

    def test_safe_ids_ignore_other_files(self, store_root: Path) -> None:
        """Lock files and foreign files are not records."""
        backend = JsonFileBackend(store_root, fsync=False)
        backend.save("doc", b"payload")
        with backend.lock():
            pass
        (store_root / "notes.json").write_text("{}")
        (store_root / "readme.txt").write_text("hi")

        assert (store_root / JsonFileBackend.LOCK_FILE).exists()
        assert backend.safe_ids() == {backend.safe_id("doc")}

    def test_safe_ids_without_root(self, store_root: Path) -> None:
        """A root that was never created holds no records."""
        assert JsonFileBackend(store_root).safe_ids() == set()

    def test_unusable_root(self, temp_dir: Path) -> None:
        """Failure to create the root is a BackendIOError."""
        blocker = temp_dir / "blocker"
        blocker.write_text("not a directory")
        backend = JsonFileBackend(blocker / "store", fsync=False)

        with pytest.raises(BackendIOError) as exc_info:
            backend.save("doc", b"payload")
        assert exc_info.value.operation == "init"

    def test_load_directory_is_io_error(self, store_root: Path) -> None:
        """Unreadable locations are errors, not absences."""
        backend = JsonFileBackend(store_root, fsync=False)
        backend.path("doc").parent.mkdir(parents=True)
        backend.path("doc").mkdir()

        with pytest.raises(BackendIOError) as exc_info:
            backend.load("doc")
        assert not isinstance(exc_info.value, NotFoundError)
