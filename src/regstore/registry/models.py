"""
Registry data models.

Entries are persisted with camelCase field names so stored registries stay
readable by other implementations of the same layout.
"""

import time
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class RegistryEntry(BaseModel):
    """Metadata describing one stored record."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    storage_id: str = Field(alias="storageId")
    safe_id: str = Field(alias="safeId")
    classification: str
    storage_directory: str = Field(alias="storageDirectory")
    storage_extension: str = Field(default=".json", alias="storageExtension")
    modified: int = Field(default_factory=lambda: int(time.time()))

    @classmethod
    def field_alias(cls, name: str) -> str | None:
        """
        Resolve a field name (stored or attribute form) to its stored name.

        Returns None for names that are not entry fields.
        """
        for attr, info in cls.model_fields.items():
            alias = info.alias or attr
            if name in (attr, alias):
                return alias
        return None

    def to_data(self) -> dict[str, Any]:
        """Plain dict form written into the persisted registry."""
        return self.model_dump(by_alias=True)

    @staticmethod
    def directory_for(classification: str) -> str:
        """Placement hint derived from a classification."""
        return classification.replace("\\", "/").replace(".", "/")
