from __future__ import annotations

from .core.config import ConversionConfig
from .core.errors import (
    BlobStoreError,
    ConversionError,
    HardwickeError,
    ManifestError,
    RestoreError,
)
from .core.models import (
    BackupManifest,
    DocumentRecord,
    FieldType,
    FieldValue,
    InferredSchema,
    Provenance,
    ResolvedShardIndex,
)
from .orchestration.orchestrator import convert

__version__ = "0.1.0"

__all__ = [
    "convert",
    "ConversionConfig",
    "BackupManifest",
    "DocumentRecord",
    "FieldType",
    "FieldValue",
    "InferredSchema",
    "Provenance",
    "ResolvedShardIndex",
    "HardwickeError",
    "ManifestError",
    "RestoreError",
    "ConversionError",
    "BlobStoreError",
]
