"""Newline-delimited JSON output sink (optionally gzip-compressed end-to-end)."""

from __future__ import annotations

import gzip
import io
import logging
import os
import tempfile
from collections.abc import Sequence
from pathlib import Path
from typing import TextIO

from hardwicke.core.models import DocumentRecord

logger = logging.getLogger(__name__)

TEMP_PREFIX = "hardwicke_"


class JsonlSink:
    """Writes one JSON line per document, flushing after every batch.

    Use `JsonlSink.open(...)`: with a `target` the file is written in place
    (parent directories are created); without one a temporary file is
    created for later upload.
    """

    def __init__(self, path: Path, stream: TextIO, *, compressed: bool, temporary: bool) -> None:
        self._path = path
        self._stream: TextIO | None = stream
        self.compressed = compressed
        self.temporary = temporary
        self.documents_written = 0

    @classmethod
    def open(cls, target: Path | None, compress: bool = False) -> JsonlSink:
        suffix = ".jsonl.gz" if compress else ".jsonl"
        temporary = target is None
        if target is None:
            fd, name = tempfile.mkstemp(prefix=TEMP_PREFIX, suffix=suffix)
            os.close(fd)
            path = Path(name)
        else:
            path = Path(target)
            path.parent.mkdir(parents=True, exist_ok=True)

        logger.info("Initializing JSONL writer with output path: %s (compressed: %s)", path, compress)
        if compress:
            raw = gzip.open(path, "wb")
            stream: TextIO = io.TextIOWrapper(raw, encoding="utf-8", newline="\n")
        else:
            stream = path.open("w", encoding="utf-8", newline="\n")
        return cls(path, stream, compressed=compress, temporary=temporary)

    @property
    def path(self) -> Path:
        return self._path

    def write_batch(self, records: Sequence[DocumentRecord], first_ordinal: int) -> int:
        if self._stream is None:
            raise ValueError(f"JSONL writer is closed: {self._path}")
        logger.debug("Writing batch of %d documents", len(records))
        for offset, record in enumerate(records):
            self._stream.write(record.to_json_line(doc_id=first_ordinal + offset))
        self._stream.flush()
        self.documents_written += len(records)
        return len(records)

    def close(self) -> None:
        if self._stream is None:
            return
        stream, self._stream = self._stream, None
        stream.close()
        logger.info(
            "JSONL writer closed. Wrote %d documents (compressed: %s)",
            self.documents_written,
            self.compressed,
        )
