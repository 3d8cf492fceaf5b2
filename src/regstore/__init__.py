"""
regstore - Self-describing key/value storage.

Stores arbitrary values under caller-chosen ids and keeps a persisted
registry describing every stored record.
"""

__version__ = "0.1.0"

__all__ = [
    "RegisteredStore",
    "StoreSettings",
    "open_store",
]

from regstore.core.config import StoreSettings
from regstore.store import RegisteredStore, open_store
