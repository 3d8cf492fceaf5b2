"""
regstore Core Module.

Provides the exception hierarchy and configuration shared by all layers.
"""

__all__ = [
    # Configuration
    "StoreSettings",
    "UpdateMode",
    "DEFAULT_HMAC_KEY",
    "RESERVED_REGISTRY_ID",
    # Exceptions
    "RegStoreError",
    "BackendIOError",
    "NotFoundError",
    "CodecError",
    "EncodeError",
    "DecodeError",
    "ConsistencyError",
    "ConfigurationError",
]

from regstore.core.config import (
    DEFAULT_HMAC_KEY,
    RESERVED_REGISTRY_ID,
    StoreSettings,
    UpdateMode,
)
from regstore.core.exceptions import (
    BackendIOError,
    CodecError,
    ConfigurationError,
    ConsistencyError,
    DecodeError,
    EncodeError,
    NotFoundError,
    RegStoreError,
)
