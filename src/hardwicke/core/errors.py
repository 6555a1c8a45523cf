"""Exception hierarchy for backup conversion.

Per-shard problems (`RestoreError`) are caught at the shard-resolution
boundary and skipped; everything else propagates to the caller.
"""

from __future__ import annotations

from pathlib import Path


class HardwickeError(Exception):
    """Base class for all project errors."""


# ---------------------------------------------------------------------------
# Manifest
# ---------------------------------------------------------------------------


class ManifestError(HardwickeError):
    """The backup manifest could not be turned into a BackupManifest."""


class ManifestUnreadableError(ManifestError):
    def __init__(self, path: Path | str, reason: str | None = None) -> None:
        self.path = Path(path)
        msg = f"Cannot read backup manifest: {self.path}"
        super().__init__(f"{msg} ({reason})" if reason else msg)


class InvalidManifestFieldError(ManifestError):
    def __init__(self, key: str, value: str) -> None:
        self.key = key
        self.value = value
        super().__init__(f"Invalid value for manifest field '{key}': {value!r}")


# ---------------------------------------------------------------------------
# Restore
# ---------------------------------------------------------------------------


class RestoreError(HardwickeError):
    """A shard could not be rebuilt from its content-addressed files."""


class EmptyMappingError(RestoreError):
    def __init__(self, metadata_path: Path) -> None:
        self.metadata_path = metadata_path
        super().__init__(f"No file mappings found in metadata: {metadata_path}")


class InvalidRestoreError(RestoreError):
    def __init__(self, directory: Path) -> None:
        self.directory = directory
        super().__init__(f"Restored index is not valid: {directory}")


# ---------------------------------------------------------------------------
# Conversion
# ---------------------------------------------------------------------------


class ConversionError(HardwickeError):
    """Source/sink I/O failure, invalid configuration or nothing to convert."""


# ---------------------------------------------------------------------------
# Blob store
# ---------------------------------------------------------------------------


class BlobStoreError(HardwickeError):
    """Remote object store failure."""


class InvalidBlobURIError(BlobStoreError):
    def __init__(self, uri: str) -> None:
        self.uri = uri
        super().__init__(f"Invalid GCS path (expected gs://bucket/object): {uri!r}")


class BlobNotFoundError(BlobStoreError):
    def __init__(self, uri: str) -> None:
        self.uri = uri
        super().__init__(f"Object not found: {uri}")
