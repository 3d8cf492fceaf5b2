"""
regstore Store Module.

The registered store facade and its factory.
"""

__all__ = [
    "Lookup",
    "ReconciliationReport",
    "RegisteredStore",
    "create_backend",
    "open_store",
]

from regstore.store.factory import create_backend, open_store
from regstore.store.reconcile import ReconciliationReport
from regstore.store.registered import Lookup, RegisteredStore
