"""Core data models, interfaces, configuration and the conversion use case.

This package provides:
- Data models (BackupManifest, DocumentRecord, FieldValue, InferredSchema, ...)
- Collaborator interfaces (IDocumentSource, IOutputSink, IBlobStore)
- Configuration (ConversionConfig) and the error hierarchy
- Schema inference (SchemaInferer)
"""

from hardwicke.core.config import ConversionConfig
from hardwicke.core.models import (
    BackupManifest,
    ConversionRun,
    DocumentRecord,
    FieldType,
    FieldValue,
    InferredSchema,
    Provenance,
    ResolvedShardIndex,
    RunResult,
)
from hardwicke.core.schema import SchemaInferer

__all__ = [
    "ConversionConfig",
    "BackupManifest",
    "ConversionRun",
    "DocumentRecord",
    "FieldType",
    "FieldValue",
    "InferredSchema",
    "Provenance",
    "ResolvedShardIndex",
    "RunResult",
    "SchemaInferer",
]
