"""Columnar reference document source backed by pyarrow.

A shard directory's ``*.parquet`` files, sorted by name, are read as one
ordered stream of records. Type tags come from the Arrow schema; null
values are left out of the record. List, struct and map columns are tagged
String and keep their JSON shape. A directory without any ``*.parquet``
file is an error, not an empty source.
"""

from __future__ import annotations

import itertools
import json
import logging
from collections.abc import Iterator, Sequence
from pathlib import Path
from typing import Any

import pyarrow as pa
import pyarrow.parquet as pq

from hardwicke.core.errors import ConversionError
from hardwicke.core.models import DocumentRecord, FieldType, FieldValue
from hardwicke.sources.union import UnionDocumentSource

logger = logging.getLogger(__name__)

READ_CHUNK_ROWS = 4_096


def arrow_field_type(dtype: pa.DataType) -> FieldType:
    """Map an Arrow data type onto the stored-field type vocabulary."""
    if pa.types.is_boolean(dtype):
        return FieldType.BOOLEAN
    if (
        pa.types.is_int8(dtype)
        or pa.types.is_int16(dtype)
        or pa.types.is_int32(dtype)
        or pa.types.is_uint8(dtype)
        or pa.types.is_uint16(dtype)
    ):
        return FieldType.INTEGER
    if pa.types.is_int64(dtype) or pa.types.is_uint32(dtype) or pa.types.is_uint64(dtype):
        return FieldType.LONG
    if pa.types.is_float16(dtype) or pa.types.is_float32(dtype):
        return FieldType.FLOAT
    if pa.types.is_float64(dtype):
        return FieldType.DOUBLE
    if pa.types.is_binary(dtype) or pa.types.is_large_binary(dtype) or pa.types.is_fixed_size_binary(dtype):
        return FieldType.BINARY
    return FieldType.STRING


def _coerce(kind: FieldType, value: Any, nested: bool = False) -> Any:
    if nested:
        # lists, structs and maps stay JSON-native; leaves without a JSON form become text
        return json.loads(json.dumps(value, default=str))
    if kind is FieldType.STRING and not isinstance(value, str):
        return str(value)
    if kind is FieldType.FLOAT:
        return float(value)
    return value


class ParquetDocumentSource:
    """Sequential reader over the parquet files of one shard directory."""

    def __init__(self, directory: Path, *, chunk_rows: int = READ_CHUNK_ROWS) -> None:
        self.directory = Path(directory)
        self.chunk_rows = chunk_rows
        self._files: list[pq.ParquetFile] = []
        self._rows: Iterator[DocumentRecord] | None = None
        self._total = 0
        self._closed = False
        self._open()

    def _open(self) -> None:
        if not self.directory.is_dir():
            raise ConversionError(f"Index directory does not exist: {self.directory}")
        logger.info("Opening shard index at: %s", self.directory)
        try:
            for path in sorted(self.directory.glob("*.parquet")):
                self._files.append(pq.ParquetFile(path))
        except (OSError, pa.ArrowException) as exc:
            self.close()
            raise ConversionError(f"Cannot open index at {self.directory}: {exc}") from exc
        if not self._files:
            raise ConversionError(f"No readable data files (*.parquet) in index directory: {self.directory}")
        self._total = sum(f.metadata.num_rows for f in self._files)
        self._rows = self._iter_records()
        logger.info("Index opened successfully. Total documents: %d", self._total)

    def _iter_records(self) -> Iterator[DocumentRecord]:
        doc_id = 0
        for pf in self._files:
            schema = pf.schema_arrow
            kinds = {f.name: arrow_field_type(f.type) for f in schema}
            nested = {f.name for f in schema if pa.types.is_nested(f.type)}
            for batch in pf.iter_batches(batch_size=self.chunk_rows):
                for row in batch.to_pylist():
                    record = DocumentRecord(doc_id)
                    for name, value in row.items():
                        if value is None:
                            continue
                        kind = kinds[name]
                        record.fields[name] = FieldValue(kind, _coerce(kind, value, name in nested))
                    yield record
                    doc_id += 1

    def total_count(self) -> int:
        return self._total

    def read_batch(self, max_size: int) -> list[DocumentRecord]:
        if self._closed or self._rows is None:
            raise ConversionError(f"Document source is closed: {self.directory}")
        try:
            return list(itertools.islice(self._rows, max_size))
        except (OSError, pa.ArrowException) as exc:
            raise ConversionError(f"Failed reading documents from {self.directory}: {exc}") from exc

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._rows = None
        for pf in self._files:
            pf.close()
        self._files = []
        logger.info("Index reader closed: %s", self.directory)


class ParquetSourceFactory:
    """Opens ParquetDocumentSource instances (single shard or union)."""

    def __init__(self, *, chunk_rows: int = READ_CHUNK_ROWS) -> None:
        self.chunk_rows = chunk_rows

    def initialize(self, path: Path) -> ParquetDocumentSource:
        return ParquetDocumentSource(path, chunk_rows=self.chunk_rows)

    def initialize_multi_shard(self, paths: Sequence[Path]) -> UnionDocumentSource:
        logger.info("Opening %d shard indexes", len(paths))
        sources: list[ParquetDocumentSource] = []
        try:
            for path in paths:
                sources.append(self.initialize(path))
        except ConversionError:
            for source in sources:
                source.close()
            raise
        return UnionDocumentSource(sources)
