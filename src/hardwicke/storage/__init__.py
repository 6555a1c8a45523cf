"""Storage components: manifest parsing, shard resolution, JSONL output, GCS.

This package provides:
- BackupCatalog: backup.properties parser
- ShardLocator: direct / restored / fallback shard resolution
- JsonlSink: newline-delimited JSON writer (optionally gzip)
- GcsBlobStore: Google Cloud Storage download/upload
"""

from hardwicke.storage.blobs import GcsBlobStore, parse_blob_uri
from hardwicke.storage.jsonl import JsonlSink
from hardwicke.storage.manifest import BackupCatalog
from hardwicke.storage.shards import ShardLocator, is_valid_index_dir

__all__ = [
    "BackupCatalog",
    "GcsBlobStore",
    "JsonlSink",
    "ShardLocator",
    "is_valid_index_dir",
    "parse_blob_uri",
]
