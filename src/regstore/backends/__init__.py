"""
regstore Backends Module.

Physical storage for record payloads.
"""

__all__ = [
    "PhysicalBackend",
    "JsonFileBackend",
    "MemoryBackend",
    "compute_safe_id",
]

from regstore.backends.base import PhysicalBackend, compute_safe_id
from regstore.backends.filesystem import JsonFileBackend
from regstore.backends.memory import MemoryBackend
