"""Batched read -> write conversion loop.

`ConversionPipeline.run(...)` depends only on interfaces (IDocumentSource,
IOutputSink, IBlobStore) and the progress monitor. It does not discover
shards or download anything; see `hardwicke.orchestration.orchestrator`
for the end-to-end wiring.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from hardwicke.core.errors import ConversionError
from hardwicke.core.interfaces import IBlobStore, IDocumentSource, IOutputSink
from hardwicke.core.models import RunResult
from hardwicke.orchestration.progress import ProgressMonitor

logger = logging.getLogger(__name__)

SinkOpener = Callable[[Path | None, bool], IOutputSink]


# ---------------------------------------------------------------------------
# Output target
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OutputTarget:
    """Where converted lines end up: a local path or a remote URI."""

    local_path: Path | None = None
    remote_uri: str | None = None
    compress: bool = False

    def __post_init__(self) -> None:
        if (self.local_path is None) == (self.remote_uri is None):
            raise ConversionError("Exactly one of local_path or remote_uri must be set")

    @property
    def is_remote(self) -> bool:
        return self.remote_uri is not None

    def describe(self) -> str:
        return self.remote_uri if self.remote_uri is not None else str(self.local_path)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class ConversionPipeline:
    """Stream every document of a source into newline-delimited JSON.

    Termination: the loop stops at the first batch shorter than requested
    (including an empty one). Sources must only return a short batch at
    end-of-stream.

    Failure: the error is reported to the monitor and re-raised as
    ConversionError. Partial output stays on disk and is never uploaded.
    The monitor is stopped on every exit path.
    """

    def __init__(
        self,
        *,
        open_sink: SinkOpener,
        blob_store: IBlobStore | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.open_sink = open_sink
        self.blob_store = blob_store
        self._clock = clock

    def run(
        self,
        source: IDocumentSource,
        target: OutputTarget,
        batch_size: int,
        monitor: ProgressMonitor,
    ) -> RunResult:
        if batch_size <= 0:
            raise ConversionError(f"batch_size must be > 0, got {batch_size}")
        if target.is_remote and self.blob_store is None:
            raise ConversionError("A blob store is required for remote output")

        monitor.start()
        started = self._clock()
        sink: IOutputSink | None = None
        try:
            total = source.total_count()
            logger.info("Total documents to process: %d", total)
            monitor.set_total(total)

            sink = self.open_sink(None if target.is_remote else target.local_path, target.compress)
            processed = self._copy_batches(source, sink, batch_size, monitor)

            sink.close()
            source.close()

            uploaded = False
            if target.is_remote:
                assert self.blob_store is not None
                assert target.remote_uri is not None
                logger.info("Uploading JSONL file to %s", target.remote_uri)
                self.blob_store.upload(sink.path, target.remote_uri)
                logger.info("Cleaning up temporary JSONL file")
                self.blob_store.delete(sink.path)
                uploaded = True
            else:
                logger.info("JSONL file created at: %s", sink.path)

            monitor.complete()
            elapsed = self._clock() - started
            result = RunResult(
                processed=processed,
                total=total,
                elapsed_s=elapsed,
                output=target.describe(),
                uploaded=uploaded,
            )
            logger.info(
                "Conversion completed successfully. Processed %d documents (%.2f docs/sec)",
                processed,
                result.docs_per_second,
            )
            return result
        except Exception as exc:
            monitor.error(f"Conversion failed: {exc}")
            self._release(sink, source)
            if isinstance(exc, ConversionError):
                raise
            raise ConversionError(f"Conversion failed: {exc}") from exc
        finally:
            monitor.stop()

    @staticmethod
    def _copy_batches(
        source: IDocumentSource,
        sink: IOutputSink,
        batch_size: int,
        monitor: ProgressMonitor,
    ) -> int:
        processed = 0
        while True:
            batch = source.read_batch(batch_size)
            if batch:
                sink.write_batch(batch, processed)
                processed += len(batch)
                monitor.update(processed)
            if len(batch) < batch_size:
                return processed

    @staticmethod
    def _release(sink: IOutputSink | None, source: IDocumentSource) -> None:
        """Close handles after a failure; the original error is what propagates."""
        for name, resource in (("sink", sink), ("source", source)):
            if resource is None:
                continue
            try:
                resource.close()
            except Exception:
                logger.warning("Failed to close %s after error", name, exc_info=True)
