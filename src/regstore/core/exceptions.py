"""
regstore Exception Hierarchy.

Defines the exceptions raised by the codec, the physical backends and the
registry. The registered store converts all of them into ``False`` results
at its public boundary; they only surface directly to code that talks to
the lower layers.
"""

from typing import Any


class RegStoreError(Exception):
    """
    Base exception for all regstore errors.

    Lower layers raise these; RegisteredStore catches them at its public
    operations, logs them and answers False instead.
    """

    def __init__(self, message: str, *, details: dict[str, Any] | None = None):
        """
        Initialize a RegStoreError.

        Args:
            message: Human-readable error message
            details: Optional structured data for debugging
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation with details."""
        base = self.message
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{base} ({details_str})"
        return base

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class BackendIOError(RegStoreError):
    """
    Errors in physical backend operations.

    Raised when a save, load or delete against the physical backend fails:
    - Disk full or short writes
    - Permission problems
    - Storage root could not be created
    """

    def __init__(
        self,
        message: str,
        *,
        storage_id: str | None = None,
        location: str | None = None,
        operation: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize a BackendIOError.

        Args:
            message: Human-readable error message
            storage_id: Logical id the operation targeted
            location: Physical location derived from the storage id
            operation: Backend operation being performed
            details: Optional structured data for debugging
        """
        details = details or {}
        if storage_id:
            details["storage_id"] = storage_id
        if location:
            details["location"] = location
        if operation:
            details["operation"] = operation

        super().__init__(message, details=details)
        self.storage_id = storage_id
        self.location = location
        self.operation = operation


class NotFoundError(BackendIOError):
    """Raised when no record exists at the location for a storage id."""

    def __init__(
        self,
        message: str = "Record not found",
        *,
        storage_id: str | None = None,
        location: str | None = None,
        operation: str = "load",
    ):
        super().__init__(
            message,
            storage_id=storage_id,
            location=location,
            operation=operation,
        )


class CodecError(RegStoreError):
    """
    Errors converting values to and from stored payloads.

    Raised when:
    - A value of an unsupported kind is encoded
    - Stored bytes are corrupt or truncated
    - A payload was written by an unknown format version
    - A record's schema is not registered with the codec
    """

    def __init__(
        self,
        message: str,
        *,
        kind: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if kind:
            details["kind"] = kind
        super().__init__(message, details=details)
        self.kind = kind


class EncodeError(CodecError):
    """Raised when a value cannot be represented by the codec."""


class DecodeError(CodecError):
    """Raised when stored bytes cannot be reconstituted into a value."""


class ConsistencyError(RegStoreError):
    """Raised when the registry and the physical records have diverged."""

    def __init__(
        self,
        message: str = "Registry is inconsistent with stored records",
        *,
        dangling: list[str] | None = None,
        unregistered: list[str] | None = None,
        mismatched: list[str] | None = None,
    ):
        details: dict[str, Any] = {}
        if dangling:
            details["dangling"] = dangling
        if unregistered:
            details["unregistered"] = unregistered
        if mismatched:
            details["mismatched"] = mismatched
        super().__init__(message, details=details)
        self.dangling = dangling or []
        self.unregistered = unregistered or []
        self.mismatched = mismatched or []


class ConfigurationError(RegStoreError):
    """
    Errors in configuration loading or validation.

    Raised when:
    - Environment variables hold invalid values
    - Settings combinations are not supported
    """

    def __init__(
        self,
        message: str,
        *,
        env_var: str | None = None,
        config_key: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize a ConfigurationError.

        Args:
            message: Human-readable error message
            env_var: Environment variable name if applicable
            config_key: Configuration key if applicable
            details: Optional structured data for debugging
        """
        details = details or {}
        if env_var:
            details["env_var"] = env_var
        if config_key:
            details["config_key"] = config_key

        super().__init__(message, details=details)
        self.env_var = env_var
        self.config_key = config_key


def format_exception(error: Exception) -> str:
    """
    Format an exception for user-friendly display.

    Args:
        error: The exception to format

    Returns:
        Formatted error message string
    """
    if isinstance(error, RegStoreError):
        return str(error)
    return f"{error.__class__.__name__}: {error}"
