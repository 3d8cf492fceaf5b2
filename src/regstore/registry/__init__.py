"""
regstore Registry Module.

Tracks metadata for every stored record.
"""

__all__ = [
    "Registry",
    "RegistryEntry",
]

from regstore.registry.models import RegistryEntry
from regstore.registry.registry import Registry
