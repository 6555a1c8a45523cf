from __future__ import annotations

from pathlib import Path
from typing import List, Protocol, Sequence, runtime_checkable

from hardwicke.core.models import DocumentRecord


# ---------------------------------------------------------------------------
# IDocumentSource
# ---------------------------------------------------------------------------

@runtime_checkable
class IDocumentSource(Protocol):
    """
    Position-addressable, batch-readable collection of stored documents.

    Domain expectations:
    - Documents are returned in a stable source order.
    - `read_batch(n)` returns fewer than `n` records if and only if the
      source has reached end-of-stream. The conversion loop relies on this.
    - The binary index format behind it is an infrastructure concern.
    """

    def total_count(self) -> int:
        """Return the number of live documents in the source."""
        ...

    def read_batch(self, max_size: int) -> List[DocumentRecord]:
        """
        Return up to `max_size` documents, continuing from the last call.

        Implementations:
        - ParquetDocumentSource (columnar shard directories)
        - UnionDocumentSource (several shards presented as one)
        - In-memory sources for testing
        """
        ...

    def close(self) -> None:
        ...


# ---------------------------------------------------------------------------
# IDocumentSourceFactory
# ---------------------------------------------------------------------------

@runtime_checkable
class IDocumentSourceFactory(Protocol):
    """Opens document sources over one or several resolved shard directories."""

    def initialize(self, path: Path) -> IDocumentSource:
        ...

    def initialize_multi_shard(self, paths: Sequence[Path]) -> IDocumentSource:
        ...


# ---------------------------------------------------------------------------
# IOutputSink
# ---------------------------------------------------------------------------

@runtime_checkable
class IOutputSink(Protocol):
    """
    Newline-delimited JSON destination.

    `path` is the local file being written: the target itself for local
    output, a temporary file when the destination is remote.
    """

    @property
    def path(self) -> Path:
        ...

    def write_batch(self, records: Sequence[DocumentRecord], first_ordinal: int) -> int:
        """Write one line per record and flush. Returns the number written."""
        ...

    def close(self) -> None:
        ...


# ---------------------------------------------------------------------------
# IBlobStore
# ---------------------------------------------------------------------------

@runtime_checkable
class IBlobStore(Protocol):
    """
    Remote object store addressed by `scheme://bucket/object` URIs.

    Implementations:
    - GcsBlobStore (google-cloud-storage)
    - In-memory or local-directory stores for testing
    """

    def download(self, uri: str) -> Path:
        """Stage the object locally, unpacking archives. Returns the local path."""
        ...

    def upload(self, local_path: Path, uri: str) -> None:
        ...

    def delete(self, local_path: Path) -> None:
        """Remove a local file or directory tree."""
        ...
