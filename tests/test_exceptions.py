"""Tests for the exception hierarchy."""

from regstore.core.exceptions import (
    BackendIOError,
    CodecError,
    ConsistencyError,
    DecodeError,
    EncodeError,
    NotFoundError,
    RegStoreError,
    format_exception,
)


class TestExceptionHierarchy:
    """Tests for exception classes."""

    def test_all_derive_from_base(self) -> None:
        """Every regstore exception is a RegStoreError."""
        for exc_type in (BackendIOError, NotFoundError, CodecError, DecodeError, EncodeError, ConsistencyError):
            assert issubclass(exc_type, RegStoreError)

    def test_details_in_str(self) -> None:
        """Structured details are appended to the message."""
        error = BackendIOError("write failed", storage_id="doc", operation="save")
        assert str(error) == "write failed (storage_id=doc, operation=save)"

    def test_to_dict(self) -> None:
        """Exceptions serialize with their type name."""
        data = NotFoundError(storage_id="doc").to_dict()
        assert data["error_type"] == "NotFoundError"
        assert data["details"] == {"storage_id": "doc", "operation": "load"}

    def test_consistency_error_lists(self) -> None:
        """ConsistencyError carries the findings."""
        error = ConsistencyError(dangling=["a"])
        assert error.dangling == ["a"]
        assert error.unregistered == []
        assert "dangling" in error.details

    def test_format_exception(self) -> None:
        """Foreign exceptions are prefixed with their type."""
        assert format_exception(ValueError("bad")) == "ValueError: bad"
        assert format_exception(DecodeError("corrupt", kind="map")) == "corrupt (kind=map)"
