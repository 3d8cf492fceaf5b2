"""
Value codec.

Converts values into the opaque payloads written by the physical backends.
Every value is lowered into a tagged tree (each node names its kind), the
tree is serialized as JSON, base64-encoded and finally stored as a quoted
JSON string. Because the tag travels with the payload, a payload can be
classified without the caller saying what it holds.
"""

import base64
import binascii
import json
import threading
from enum import Enum
from typing import Any

from pydantic import BaseModel

from regstore.core.exceptions import DecodeError, EncodeError

FORMAT_VERSION = 1


class ValueKind(Enum):
    """Kinds of values the codec can store."""

    NULL = "null"
    BOOLEAN = "boolean"
    INTEGER = "integer"
    DOUBLE = "double"
    STRING = "string"
    BYTES = "bytes"
    ARRAY = "array"
    TUPLE = "tuple"
    MAP = "map"
    RECORD = "record"

    @property
    def tag(self) -> str:
        """Classification tag recorded in registry entries."""
        if self is ValueKind.NULL:
            return "NULL"
        return self.value


def schema_name(model_type: type[BaseModel]) -> str:
    """Qualified name identifying a record schema."""
    return f"{model_type.__module__}.{model_type.__qualname__}"


class RecordTypeRegistry:
    """
    Known record schemas, keyed by qualified class name.

    Decoding only rebuilds records whose schema is registered here; stored
    data never causes an import by name.
    """

    def __init__(self) -> None:
        self._types: dict[str, type[BaseModel]] = {}
        self._lock = threading.Lock()

    def register(self, model_type: type[BaseModel]) -> str:
        """Register a model class and return its schema name."""
        if not (isinstance(model_type, type) and issubclass(model_type, BaseModel)):
            raise TypeError(f"{model_type!r} is not a pydantic model class")
        name = schema_name(model_type)
        with self._lock:
            self._types[name] = model_type
        return name

    def resolve(self, name: str) -> type[BaseModel] | None:
        """Look up a registered model class."""
        with self._lock:
            return self._types.get(name)

    def names(self) -> list[str]:
        """All registered schema names."""
        with self._lock:
            return sorted(self._types)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._types


default_record_types = RecordTypeRegistry()


class Codec:
    """
    Encodes values to bytes and back.

    Supported values: None, bool, int, float, str, bytes, list, tuple,
    dict (with encodable hashable keys) and pydantic models. Containers may
    nest freely.
    """

    def __init__(self, record_types: RecordTypeRegistry | None = None):
        self._record_types = record_types if record_types is not None else default_record_types

    @property
    def record_types(self) -> RecordTypeRegistry:
        """Schemas this codec can rebuild."""
        return self._record_types

    def register_record_type(self, model_type: type[BaseModel]) -> str:
        """Make a model class decodable; returns its schema name."""
        return self._record_types.register(model_type)

    # Encoding

    def encode(self, value: Any) -> bytes:
        """
        Encode a value into a storable payload.

        Raises:
            EncodeError: If the value (or something nested in it) is not supported
        """
        try:
            envelope = {"format": FORMAT_VERSION, "root": self._lower(value)}
            serialized = json.dumps(envelope, separators=(",", ":"))
        except EncodeError:
            raise
        except RecursionError:
            raise EncodeError("Value is nested too deeply or refers to itself") from None
        except (TypeError, ValueError) as e:
            raise EncodeError(f"Value could not be serialized: {e}") from e
        transport = base64.b64encode(serialized.encode("utf-8")).decode("ascii")
        return json.dumps(transport).encode("utf-8")

    def _lower(self, value: Any) -> dict[str, Any]:
        """Turn a value into a tagged node."""
        # bool before int: bool is an int subclass
        if value is None:
            return {"k": ValueKind.NULL.value}
        if isinstance(value, bool):
            return {"k": ValueKind.BOOLEAN.value, "v": value}
        if isinstance(value, int):
            return {"k": ValueKind.INTEGER.value, "v": int(value)}
        if isinstance(value, float):
            return {"k": ValueKind.DOUBLE.value, "v": float(value)}
        if isinstance(value, str):
            return {"k": ValueKind.STRING.value, "v": str(value)}
        if isinstance(value, (bytes, bytearray)):
            return {
                "k": ValueKind.BYTES.value,
                "v": base64.b64encode(bytes(value)).decode("ascii"),
            }
        if isinstance(value, BaseModel):
            name = self._record_types.register(type(value))
            return {
                "k": ValueKind.RECORD.value,
                "s": name,
                "v": value.model_dump(mode="json"),
            }
        if isinstance(value, list):
            return {"k": ValueKind.ARRAY.value, "v": [self._lower(item) for item in value]}
        if isinstance(value, tuple):
            return {"k": ValueKind.TUPLE.value, "v": [self._lower(item) for item in value]}
        if isinstance(value, dict):
            return {
                "k": ValueKind.MAP.value,
                "v": [[self._lower(k), self._lower(v)] for k, v in value.items()],
            }
        raise EncodeError(
            f"Unsupported value type '{type(value).__name__}'",
            kind=type(value).__name__,
        )

    # Decoding

    def decode(self, payload: bytes) -> Any:
        """
        Decode a payload produced by encode().

        Raises:
            DecodeError: If the payload is malformed or cannot be rebuilt
        """
        root = self._open(payload)
        try:
            return self._raise(root)
        except DecodeError:
            raise
        except RecursionError:
            raise DecodeError("Value tree is nested too deeply") from None
        except (KeyError, TypeError, ValueError, binascii.Error) as e:
            raise DecodeError(f"Malformed value tree: {e}") from e

    def classify(self, payload: bytes) -> str:
        """
        Return the classification tag of an encoded value.

        Records classify as their schema name; everything else as the
        kind's tag (e.g. "integer", "string", "array", "boolean").

        Raises:
            DecodeError: If the payload is malformed
        """
        root = self._open(payload)
        kind = self._kind_of(root)
        if kind is ValueKind.RECORD:
            name = root.get("s")
            if not isinstance(name, str) or not name:
                raise DecodeError("Record node has no schema name", kind=kind.value)
            return name
        return kind.tag

    def _open(self, payload: bytes) -> dict[str, Any]:
        """Unwrap the transport layers and return the root node."""
        try:
            transport = json.loads(payload)
            if not isinstance(transport, str):
                raise DecodeError("Payload is not a quoted transport string")
            serialized = base64.b64decode(transport.encode("ascii"), validate=True)
            envelope = json.loads(serialized.decode("utf-8"))
        except DecodeError:
            raise
        except RecursionError:
            raise DecodeError("Payload is nested too deeply") from None
        except (ValueError, TypeError, binascii.Error) as e:
            # JSONDecodeError and UnicodeDecodeError are ValueErrors
            raise DecodeError(f"Payload could not be unwrapped: {e}") from e

        if not isinstance(envelope, dict) or "root" not in envelope:
            raise DecodeError("Payload has no value tree")
        version = envelope.get("format")
        if version != FORMAT_VERSION:
            raise DecodeError(
                f"Unsupported payload format version: {version!r}",
                details={"expected": FORMAT_VERSION},
            )
        root = envelope["root"]
        if not isinstance(root, dict):
            raise DecodeError("Value tree root is not a node")
        return root

    @staticmethod
    def _kind_of(node: Any) -> ValueKind:
        if not isinstance(node, dict):
            raise DecodeError("Value node is not an object")
        try:
            return ValueKind(node.get("k"))
        except ValueError:
            raise DecodeError(f"Unknown value kind {node.get('k')!r}") from None

    def _raise(self, node: dict[str, Any]) -> Any:
        """Turn a tagged node back into a value."""
        kind = self._kind_of(node)
        match kind:
            case ValueKind.NULL:
                return None
            case ValueKind.BOOLEAN:
                return self._expect(node["v"], bool, kind)
            case ValueKind.INTEGER:
                return self._expect(node["v"], int, kind)
            case ValueKind.DOUBLE:
                return float(self._expect(node["v"], (int, float), kind))
            case ValueKind.STRING:
                return self._expect(node["v"], str, kind)
            case ValueKind.BYTES:
                return base64.b64decode(self._expect(node["v"], str, kind), validate=True)
            case ValueKind.ARRAY:
                return [self._raise(item) for item in self._expect(node["v"], list, kind)]
            case ValueKind.TUPLE:
                return tuple(self._raise(item) for item in self._expect(node["v"], list, kind))
            case ValueKind.MAP:
                return {
                    self._raise(k): self._raise(v)
                    for k, v in self._expect(node["v"], list, kind)
                }
            case ValueKind.RECORD:
                name = node.get("s")
                model_type = self._record_types.resolve(name) if isinstance(name, str) else None
                if model_type is None:
                    raise DecodeError(
                        f"Record schema '{name}' is not registered",
                        kind=kind.value,
                        details={"known": self._record_types.names()},
                    )
                return model_type.model_validate(node["v"])

    @staticmethod
    def _expect(value: Any, expected: type | tuple[type, ...], kind: ValueKind) -> Any:
        # bool is an int subclass; integer and double nodes must not accept it
        if isinstance(value, bool) and kind is not ValueKind.BOOLEAN:
            raise DecodeError(f"Boolean found in {kind.value} node", kind=kind.value)
        if not isinstance(value, expected):
            raise DecodeError(
                f"Expected {kind.value} payload, got {type(value).__name__}",
                kind=kind.value,
            )
        return value
