"""Core data models for backup discovery and conversion.

This module defines:
- `BackupManifest`: parsed backup descriptor (collection + shard metadata files).
- `FieldType` / `FieldValue`: closed tagged variant for stored field values.
- `DocumentRecord`: one stored document as produced by a document source.
- `ResolvedShardIndex`: a readable shard directory plus its provenance.
- `InferredSchema`: advisory field -> type map built from a sampled prefix.
- `RunResult`: summary of one pipeline invocation.

Design notes
------------
- Binary values are rendered as base64 text in JSON output.
- Non-finite floats have no JSON representation and are written as null.
- Nested values (lists, objects) are tagged String but written as JSON
  arrays and objects, not as text.
- Schema widening is one-directional: a conflicting observation turns a
  field into String and it never narrows back.
"""

from __future__ import annotations

import base64
import enum
import json
import math
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator, Mapping, Union

_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1

DOC_ID_FIELD = "_docId"


# === Manifest ===


@dataclass(frozen=True, slots=True)
class BackupManifest:
    """Parsed backup descriptor. Shard files are ordered by their manifest key."""

    collection: str | None
    collection_alias: str | None
    config_name: str | None
    backup_name: str | None
    index_version: str | None
    index_file_count: int = 0
    index_size_mb: float = 0.0
    start_time: datetime | None = None
    end_time: datetime | None = None
    shard_metadata_files: tuple[str, ...] = ()

    @property
    def shard_count(self) -> int:
        return len(self.shard_metadata_files)


# === Field values ===


class FieldType(str, enum.Enum):
    """Type tag of a stored field value."""

    STRING = "String"
    INTEGER = "Integer"
    LONG = "Long"
    FLOAT = "Float"
    DOUBLE = "Double"
    BINARY = "Binary"
    BOOLEAN = "Boolean"


# list and dict are nested values (tagged String) kept in their JSON shape
Scalar = Union[str, int, float, bytes, bool, list, dict]


@dataclass(frozen=True, slots=True)
class FieldValue:
    """A stored field value tagged with the type reported by its source."""

    kind: FieldType
    value: Scalar

    @classmethod
    def of(cls, value: Any) -> FieldValue:
        """Classify a native Python value."""
        if isinstance(value, bool):
            return cls(FieldType.BOOLEAN, value)
        if isinstance(value, int):
            if _INT32_MIN <= value <= _INT32_MAX:
                return cls(FieldType.INTEGER, value)
            return cls(FieldType.LONG, value)
        if isinstance(value, float):
            return cls(FieldType.DOUBLE, value)
        if isinstance(value, (bytes, bytearray, memoryview)):
            return cls(FieldType.BINARY, bytes(value))
        if isinstance(value, (list, dict)):
            return cls(FieldType.STRING, value)
        return cls(FieldType.STRING, str(value))

    def to_json(self) -> Any:
        """Return the JSON-compatible rendition of this value."""
        if self.kind is FieldType.BINARY:
            return base64.b64encode(bytes(self.value)).decode("ascii")  # type: ignore[arg-type]
        if self.kind in (FieldType.FLOAT, FieldType.DOUBLE):
            v = float(self.value)
            return v if math.isfinite(v) else None
        return self.value


# === Documents ===


@dataclass(slots=True)
class DocumentRecord:
    """One stored document: ordered fields plus the source's positional id."""

    doc_id: int
    fields: dict[str, FieldValue] = field(default_factory=dict)

    def add_field(self, name: str, value: FieldValue | Any) -> None:
        self.fields[name] = value if isinstance(value, FieldValue) else FieldValue.of(value)

    def __iter__(self) -> Iterator[tuple[str, FieldValue]]:
        return iter(self.fields.items())

    def to_json_line(self, *, doc_id: int | None = None) -> str:
        """Serialize native fields plus `_docId` as a compact JSON line."""
        payload: dict[str, Any] = {name: fv.to_json() for name, fv in self.fields.items()}
        payload[DOC_ID_FIELD] = self.doc_id if doc_id is None else doc_id
        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False) + "\n"


# === Shard resolution ===


class Provenance(str, enum.Enum):
    """How a shard directory was obtained."""

    DIRECT = "direct"
    RESTORED = "restored"
    FALLBACK = "fallback"


@dataclass(frozen=True, slots=True)
class ResolvedShardIndex:
    path: Path
    provenance: Provenance

    @property
    def is_temporary(self) -> bool:
        """Restored directories are created by the locator and owned by the caller."""
        return self.provenance is Provenance.RESTORED


# === Schema ===


@dataclass(slots=True)
class InferredSchema:
    """Advisory field -> type map. Never enforced at write time."""

    field_types: dict[str, FieldType] = field(default_factory=dict)

    def observe(self, name: str, kind: FieldType) -> None:
        """Record one sighting; conflicting sightings widen to String."""
        existing = self.field_types.get(name)
        if existing is None:
            self.field_types[name] = kind
        elif existing is not kind:
            self.field_types[name] = FieldType.STRING

    def field_type(self, name: str) -> FieldType | None:
        return self.field_types.get(name)

    @property
    def field_names(self) -> set[str]:
        return set(self.field_types)

    @property
    def field_count(self) -> int:
        return len(self.field_types)

    def as_dict(self) -> Mapping[str, str]:
        return {name: kind.value for name, kind in sorted(self.field_types.items())}

    def __repr__(self) -> str:
        return f"InferredSchema(field_count={self.field_count}, fields={sorted(self.field_types)})"


# === Run summary ===


@dataclass(kw_only=True)
class RunResult:
    """Outcome of one conversion run."""

    processed: int
    total: int
    elapsed_s: float
    output: str
    uploaded: bool = False

    @property
    def docs_per_second(self) -> float:
        return self.processed / self.elapsed_s if self.elapsed_s > 0 else 0.0


@dataclass(kw_only=True)
class ConversionRun:
    """Everything one invocation resolved and produced."""

    manifest: BackupManifest | None
    shards: list[ResolvedShardIndex]
    schema: InferredSchema | None
    result: RunResult
