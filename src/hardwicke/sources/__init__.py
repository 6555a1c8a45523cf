"""Document sources over resolved shard directories."""

from hardwicke.sources.parquet import ParquetDocumentSource, ParquetSourceFactory
from hardwicke.sources.union import UnionDocumentSource

__all__ = [
    "ParquetDocumentSource",
    "ParquetSourceFactory",
    "UnionDocumentSource",
]
