import json
from pathlib import Path
from typing import Any, Callable

import pyarrow as pa
import pyarrow.parquet as pq
import pytest

from hardwicke.core.errors import BlobStoreError
from hardwicke.core.models import DocumentRecord
from hardwicke.storage.blobs import delete_local_path


class FakeSource:
    """In-memory document source honoring the short-batch-at-end contract."""

    def __init__(self, records: list[DocumentRecord], *, fail_on_call: int | None = None) -> None:
        self.records = records
        self.position = 0
        self.calls: list[int] = []  # lengths returned per read_batch call
        self.closed = False
        self.fail_on_call = fail_on_call

    def total_count(self) -> int:
        return len(self.records)

    def read_batch(self, max_size: int) -> list[DocumentRecord]:
        if self.fail_on_call is not None and len(self.calls) + 1 == self.fail_on_call:
            raise OSError("disk read error")
        batch = self.records[self.position : self.position + max_size]
        self.position += len(batch)
        self.calls.append(len(batch))
        return batch

    def close(self) -> None:
        self.closed = True


class FakeBlobStore:
    def __init__(self, *, fail_upload: bool = False, downloads: dict[str, Path] | None = None) -> None:
        self.fail_upload = fail_upload
        self.downloads = downloads or {}
        self.uploads: list[tuple[str, bytes]] = []
        self.deleted: list[Path] = []

    def download(self, uri: str) -> Path:
        return self.downloads[uri]

    def upload(self, local_path: Path, uri: str) -> None:
        if self.fail_upload:
            raise BlobStoreError(f"upload to {uri} failed")
        self.uploads.append((uri, local_path.read_bytes()))

    def delete(self, local_path: Path) -> None:
        self.deleted.append(local_path)
        delete_local_path(local_path)


def make_records(n: int, **extra: Any) -> list[DocumentRecord]:
    out = []
    for i in range(n):
        rec = DocumentRecord(i)
        rec.add_field("id", f"doc-{i}")
        rec.add_field("count", i)
        for k, v in extra.items():
            rec.add_field(k, v)
        out.append(rec)
    return out


def write_index(directory: Path, table: pa.Table | None = None, *, sentinel: str = "segments_1") -> Path:
    """Create a valid-looking shard directory with an optional parquet payload."""
    directory.mkdir(parents=True, exist_ok=True)
    (directory / sentinel).write_bytes(b"")
    if table is not None:
        pq.write_table(table, directory / "_0.parquet")
    return directory


def write_json(path: Path, payload: Any) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload))
    return path


def write_manifest(root: Path, shard_files: dict[str, str], **props: str) -> Path:
    lines = ["#Backup properties file", "collection=docs", "indexVersion=9.10.0"]
    lines += [f"{k}={v}" for k, v in props.items()]
    lines += [f"{k}={v}" for k, v in shard_files.items()]
    path = root / "backup.properties"
    root.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines) + "\n")
    return path


@pytest.fixture
def fake_source() -> Callable[..., FakeSource]:
    def _make(n: int, **kwargs: Any) -> FakeSource:
        return FakeSource(make_records(n), **kwargs)

    return _make


@pytest.fixture
def fake_blob_store() -> FakeBlobStore:
    return FakeBlobStore()


@pytest.fixture
def two_shard_backup(tmp_path: Path) -> Path:
    """Backup with two directly resolvable shards, one document each."""
    root = tmp_path / "backup"
    schema = pa.schema([("id", pa.string()), ("count", pa.int32())])
    write_index(root / "shard1_data", pa.table({"id": ["a"], "count": [1]}, schema=schema))
    write_index(root / "shard2_data", pa.table({"id": ["b"], "count": [2]}, schema=schema))
    write_json(root / "md_shard1.json", {"indexDir": "shard1_data"})
    write_json(root / "md_shard2.json", {"indexDir": "shard2_data"})
    write_manifest(root, {"shard1.md": "md_shard1.json", "shard2.md": "md_shard2.json"})
    return root
