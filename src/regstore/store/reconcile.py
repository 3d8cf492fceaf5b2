"""
Registry reconciliation.

Compares registry entries with the records a backend physically holds.
Divergence happens when a process dies in the middle of a multi-step
mutation, or when several writers share a root without the store lock.
"""

from dataclasses import dataclass, field
from typing import Any

from regstore.backends.base import PhysicalBackend
from regstore.registry import Registry


@dataclass
class ReconciliationReport:
    """Result of a reconciliation scan."""

    checked: int = 0
    dangling: list[str] = field(default_factory=list)  # storage ids without a record
    unregistered: list[str] = field(default_factory=list)  # safe ids without an entry
    mismatched: list[str] = field(default_factory=list)  # entries with a stale safe id
    repaired: list[str] = field(default_factory=list)

    @property
    def consistent(self) -> bool:
        """True when nothing is left to report after any repair."""
        remaining = set(self.dangling) - set(self.repaired)
        return not remaining and not self.unregistered and not self.mismatched

    def to_dict(self) -> dict[str, Any]:
        return {
            "checked": self.checked,
            "consistent": self.consistent,
            "dangling": self.dangling,
            "unregistered": self.unregistered,
            "mismatched": self.mismatched,
            "repaired": self.repaired,
        }


def scan(registry: Registry, backend: PhysicalBackend, reserved_id: str) -> ReconciliationReport:
    """Build a report without changing anything."""
    report = ReconciliationReport(checked=len(registry))
    expected: set[str] = {backend.safe_id(reserved_id)}

    for storage_id in registry:
        entry = registry.get(storage_id)
        safe_id = backend.safe_id(storage_id)
        expected.add(safe_id)
        if not backend.exists(storage_id):
            report.dangling.append(storage_id)
        if entry is not None and entry.safe_id != safe_id:
            report.mismatched.append(storage_id)

    report.unregistered = sorted(backend.safe_ids() - expected)
    return report
