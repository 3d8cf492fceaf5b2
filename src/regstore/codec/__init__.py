"""
regstore Codec Module.

Turns values into self-describing payloads and back.
"""

__all__ = [
    "Codec",
    "RecordTypeRegistry",
    "ValueKind",
    "default_record_types",
    "schema_name",
]

from regstore.codec.codec import (
    Codec,
    RecordTypeRegistry,
    ValueKind,
    default_record_types,
    schema_name,
)
