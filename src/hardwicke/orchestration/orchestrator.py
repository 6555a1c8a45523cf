"""End-to-end conversion: source staging -> shards -> schema -> pipeline.

This module wires concrete implementations (GcsBlobStore, BackupCatalog,
ShardLocator, ParquetSourceFactory, JsonlSink) around the pure
`ConversionPipeline` use case.

Temporary resources and their cleanup order:
- the temporary output file (remote output) is uploaded and deleted by the
  pipeline itself;
- restored shard directories and the downloaded source are removed only
  afterwards, so a late deletion failure never discards an uploaded result.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from pathlib import Path

from hardwicke.core.config import ConversionConfig
from hardwicke.core.errors import ConversionError
from hardwicke.core.interfaces import IBlobStore, IDocumentSource, IDocumentSourceFactory
from hardwicke.core.models import BackupManifest, ConversionRun, InferredSchema, ResolvedShardIndex
from hardwicke.core.schema import SchemaInferer
from hardwicke.core.use_cases.convert import ConversionPipeline, OutputTarget
from hardwicke.orchestration.progress import ProgressMonitor
from hardwicke.sources.parquet import ParquetSourceFactory
from hardwicke.storage.blobs import GcsBlobStore, delete_local_path
from hardwicke.storage.jsonl import JsonlSink
from hardwicke.storage.manifest import BackupCatalog
from hardwicke.storage.shards import ShardLocator

logger = logging.getLogger(__name__)

MANIFEST_SEARCH_DEPTH = 2


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def find_manifest(root: Path, name: str) -> Path | None:
    """`root/name`, else the first match within two directory levels (sorted)."""
    candidate = root / name
    if candidate.is_file():
        return candidate
    frontier = [root]
    for _ in range(MANIFEST_SEARCH_DEPTH):
        children: list[Path] = []
        for directory in frontier:
            try:
                children.extend(sorted(p for p in directory.iterdir() if p.is_dir()))
            except OSError:
                continue
        for child in children:
            candidate = child / name
            if candidate.is_file():
                return candidate
        frontier = children
    return None


def locate_shards(
    root: Path,
    *,
    manifest_name: str,
    catalog: BackupCatalog,
    locator: ShardLocator,
) -> tuple[BackupManifest | None, list[ResolvedShardIndex]]:
    """Resolve readable shard directories under `root`.

    With a manifest the three-tier shard resolution is used. Without one,
    `root` (or the first index directory below it) is the index itself.
    """
    if not root.is_dir():
        raise ConversionError(f"Source directory does not exist: {root}")

    manifest_path = find_manifest(root, manifest_name)
    if manifest_path is None:
        logger.info("No %s found under %s; treating it as a single index", manifest_name, root)
        found = locator.fallback_scan(root)
        shards = [found] if found is not None else []
        manifest = None
    else:
        manifest = catalog.parse(manifest_path)
        backup_root = manifest_path.parent
        if not locator.validate_structure(backup_root, manifest):
            raise ConversionError(f"Invalid backup structure: {backup_root}")
        shards = locator.resolve(backup_root, manifest)

    if not shards:
        raise ConversionError(f"No resolvable shard indexes found under {root}")
    return manifest, shards


def open_source(factory: IDocumentSourceFactory, shards: list[ResolvedShardIndex]) -> IDocumentSource:
    if len(shards) == 1:
        return factory.initialize(shards[0].path)
    return factory.initialize_multi_shard([s.path for s in shards])


def release_inputs(paths: Iterable[Path], *, delete: Callable[[Path], None] = delete_local_path) -> None:
    """Remove temporary inputs. Failures are logged, not raised."""
    for path in paths:
        try:
            delete(path)
        except OSError:
            logger.warning("Failed to delete temporary input %s", path, exc_info=True)


def infer_schema(factory: IDocumentSourceFactory, shards: list[ResolvedShardIndex]) -> InferredSchema:
    """Sample a dedicated source so the conversion source starts at document 0."""
    source = open_source(factory, shards)
    try:
        schema = SchemaInferer().infer(source)
    finally:
        source.close()
    for name, kind in schema.as_dict().items():
        logger.debug("Inferred field %s: %s", name, kind)
    return schema


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def convert(
    config: ConversionConfig,
    *,
    blob_store: IBlobStore | None = None,
    source_factory: IDocumentSourceFactory | None = None,
    monitor: ProgressMonitor | None = None,
    catalog: BackupCatalog | None = None,
    locator: ShardLocator | None = None,
) -> ConversionRun:
    """Convert a (local or remote) backup into newline-delimited JSON."""
    config.validate()
    if blob_store is None and (config.remote_source or config.remote_output):
        blob_store = GcsBlobStore(config.credentials_path)
    source_factory = source_factory or ParquetSourceFactory()
    monitor = monitor or ProgressMonitor(config.report_interval)
    catalog = catalog or BackupCatalog()
    locator = locator or ShardLocator()

    logger.info(
        "Starting conversion from %s to %s",
        config.gcs_source or config.source,
        config.gcs_output or config.output,
    )

    downloaded: Path | None = None
    restored: list[Path] = []
    try:
        if config.remote_source:
            assert blob_store is not None and config.gcs_source is not None
            logger.info("Downloading backup from %s", config.gcs_source)
            root = blob_store.download(config.gcs_source)
            downloaded = root
        else:
            assert config.source is not None
            root = Path(config.source)

        manifest, shards = locate_shards(
            root,
            manifest_name=config.manifest_name,
            catalog=catalog,
            locator=locator,
        )
        restored = [s.path for s in shards if s.is_temporary]

        schema = infer_schema(source_factory, shards) if config.infer_schema else None
        if schema is not None:
            logger.info("Schema inference completed. Found %d fields", schema.field_count)

        source = open_source(source_factory, shards)
        target = OutputTarget(
            local_path=Path(config.output) if config.output is not None else None,
            remote_uri=config.gcs_output,
            compress=config.compress,
        )
        pipeline = ConversionPipeline(open_sink=JsonlSink.open, blob_store=blob_store)
        result = pipeline.run(source, target, config.batch_size, monitor)
        return ConversionRun(manifest=manifest, shards=shards, schema=schema, result=result)
    finally:
        release_inputs(restored)
        if downloaded is not None:
            assert blob_store is not None
            release_inputs([downloaded], delete=blob_store.delete)
