"""
Store configuration.

Settings are plain pydantic models. ``StoreSettings.from_env()`` reads the
REGSTORE_* environment variables; explicit keyword arguments win over the
environment.
"""

import os
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

from regstore.core.exceptions import ConfigurationError

# Key used by the original deployments; keeping it preserves their physical layout.
DEFAULT_HMAC_KEY = "sdfghu7654esdfghbvcdsw3456yhgbnju765432345rtfg"
DEFAULT_DIR_MODE = 0o700
RESERVED_REGISTRY_ID = "registry"


def default_root() -> Path:
    """Storage root resolved relative to the installed package."""
    return Path(__file__).resolve().parent.parent / ".regstore"


class UpdateMode(str, Enum):
    """How update() replaces an existing record."""

    SWAP = "swap"
    DELETE_CREATE = "delete-create"


class StoreSettings(BaseModel):
    """
    Configuration for a registered store.

    Environment variables:
    - REGSTORE_ROOT: Storage root directory
    - REGSTORE_HMAC_KEY: Key for deriving safe ids
    - REGSTORE_UPDATE_MODE: swap|delete-create
    - REGSTORE_DIR_MODE: Octal permissions for the storage root (e.g. 700)
    - REGSTORE_FSYNC: Flush record writes to disk (true|false)
    """

    root: Path = Field(default_factory=default_root)
    hmac_key: str = DEFAULT_HMAC_KEY
    update_mode: UpdateMode = UpdateMode.SWAP
    dir_mode: int = DEFAULT_DIR_MODE
    fsync: bool = True

    @field_validator("hmac_key")
    @classmethod
    def _key_not_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("hmac_key must not be empty")
        return value

    @field_validator("dir_mode")
    @classmethod
    def _mode_in_range(cls, value: int) -> int:
        if not 0 <= value <= 0o777:
            raise ValueError(f"dir_mode out of range: {oct(value)}")
        return value

    @classmethod
    def from_env(cls, **overrides: Any) -> "StoreSettings":
        """
        Load settings from the environment.

        Raises:
            ConfigurationError: If an environment variable holds an invalid value
        """
        values: dict[str, Any] = {}

        root = os.getenv("REGSTORE_ROOT")
        if root:
            values["root"] = Path(root).expanduser()

        key = os.getenv("REGSTORE_HMAC_KEY")
        if key:
            values["hmac_key"] = key

        mode = os.getenv("REGSTORE_UPDATE_MODE")
        if mode:
            try:
                values["update_mode"] = UpdateMode(mode.lower())
            except ValueError:
                raise ConfigurationError(
                    f"Unknown update mode '{mode}'",
                    env_var="REGSTORE_UPDATE_MODE",
                    details={"allowed": [m.value for m in UpdateMode]},
                ) from None

        dir_mode = os.getenv("REGSTORE_DIR_MODE")
        if dir_mode:
            try:
                values["dir_mode"] = int(dir_mode, 8)
            except ValueError:
                raise ConfigurationError(
                    f"Directory mode '{dir_mode}' is not an octal number",
                    env_var="REGSTORE_DIR_MODE",
                ) from None

        fsync = os.getenv("REGSTORE_FSYNC")
        if fsync:
            values["fsync"] = fsync.lower() in ("1", "true", "yes", "on")

        values.update({k: v for k, v in overrides.items() if v is not None})

        try:
            return cls(**values)
        except ValueError as e:
            raise ConfigurationError(f"Invalid store settings: {e}") from e
