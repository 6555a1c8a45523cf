"""Shard discovery and restoration for backup directories.

A backup lists one metadata document per shard. Each shard is resolved by an
ordered chain of attempts, first success wins:

1) direct   - the metadata names an index directory inside the backup.
2) restored - the metadata maps content ids to original file names; the
              files under ``<backup>/index/<id>`` are copied into a fresh
              temporary directory with their original names.
3) fallback - only when no shard resolved at all: the first directory within
              depth 3 of the backup root that passes the validity probe.

Failures of a single shard are logged and skipped so that the remaining
shards can still be converted.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any

from hardwicke.core.errors import EmptyMappingError, InvalidRestoreError, RestoreError
from hardwicke.core.models import BackupManifest, Provenance, ResolvedShardIndex

logger = logging.getLogger(__name__)

SENTINEL_NAMES: tuple[str, ...] = ("segments_1", "segments.gen")
SENTINEL_PREFIX = "segments_"
BLOB_DIR_NAME = "index"
FALLBACK_MAX_DEPTH = 3
RESTORE_DIR_PREFIX = "restored-index-"


# ---------- validity probe ----------


def is_valid_index_dir(path: Path) -> bool:
    """Cheap existence check: does `path` look like a readable index directory?"""
    try:
        if not path.is_dir():
            return False
        if any((path / name).exists() for name in SENTINEL_NAMES):
            return True
        with os.scandir(path) as it:
            return any(entry.name.startswith(SENTINEL_PREFIX) for entry in it)
    except OSError:
        return False


# ---------- metadata helpers ----------


def load_shard_metadata(metadata_path: Path) -> dict[str, Any]:
    """Load a shard metadata document; it must be a JSON object."""
    with metadata_path.open("r", encoding="utf-8") as f:
        doc = json.load(f)
    if not isinstance(doc, dict):
        raise ValueError(f"Shard metadata is not a JSON object: {metadata_path}")
    return doc


def extract_index_dir_name(metadata: dict[str, Any]) -> str | None:
    """Directory reference with priority indexDir -> data -> basename(path)."""
    for key in ("indexDir", "data"):
        value = metadata.get(key)
        if isinstance(value, str) and value:
            return value
    full_path = metadata.get("path")
    if isinstance(full_path, str) and full_path:
        name = Path(full_path.rstrip("/\\")).name
        return name or None
    return None


def parse_file_mapping(metadata: dict[str, Any]) -> dict[str, str]:
    """Content id -> original file name. Entries without `fileName` are ignored."""
    mapping: dict[str, str] = {}
    for content_id, info in metadata.items():
        if isinstance(info, dict):
            file_name = info.get("fileName")
            if isinstance(file_name, str) and file_name:
                mapping[content_id] = file_name
    logger.info("Parsed %d file mappings from metadata", len(mapping))
    return mapping


# ---------- locator ----------


Probe = Callable[[Path], bool]


class ShardLocator:
    """Resolve a manifest's shards into readable index directories.

    Restored directories are temporary and owned by the caller; see
    `ResolvedShardIndex.is_temporary`.
    """

    def __init__(self, *, probe: Probe = is_valid_index_dir, temp_root: Path | None = None) -> None:
        self.probe = probe
        self.temp_root = temp_root

    def resolve(self, manifest_root: Path, manifest: BackupManifest) -> list[ResolvedShardIndex]:
        logger.info("Searching for shard indexes in backup directory: %s", manifest_root)
        resolved: list[ResolvedShardIndex] = []

        for shard_file in manifest.shard_metadata_files:
            metadata_path = manifest_root / shard_file
            if not metadata_path.is_file():
                logger.warning("Shard metadata file not found: %s", metadata_path)
                continue

            found = self._resolve_one(manifest_root, metadata_path)
            if found is None:
                logger.warning("Could not resolve shard index for %s; skipping", shard_file)
                continue
            logger.info("Resolved shard %s -> %s (%s)", shard_file, found.path, found.provenance.value)
            resolved.append(found)

        if not resolved:
            logger.warning("No shard index directories resolved from metadata")
            fallback = self.fallback_scan(manifest_root)
            if fallback is not None:
                logger.info("Using fallback index path: %s", fallback.path)
                resolved.append(fallback)

        return resolved

    def _resolve_one(self, manifest_root: Path, metadata_path: Path) -> ResolvedShardIndex | None:
        direct = self.direct_attempt(manifest_root, metadata_path)
        if direct is not None:
            return direct

        logger.info("Attempting to restore index from content-addressed files for: %s", metadata_path.name)
        try:
            return self.restore_attempt(manifest_root, metadata_path)
        except (RestoreError, OSError, ValueError) as exc:
            logger.warning("Failed to restore index from backup for %s: %s", metadata_path.name, exc)
            return None

    # ---------- tier 1 ----------

    def direct_attempt(self, manifest_root: Path, metadata_path: Path) -> ResolvedShardIndex | None:
        """Return the directory named by the metadata if it exists and passes the probe."""
        try:
            metadata = load_shard_metadata(metadata_path)
        except (OSError, ValueError) as exc:
            logger.warning("Failed to parse shard metadata file %s: %s", metadata_path, exc)
            return None

        name = extract_index_dir_name(metadata)
        if name is None:
            return None
        index_path = manifest_root / name
        if index_path.exists() and self.probe(index_path):
            return ResolvedShardIndex(index_path, Provenance.DIRECT)
        return None

    # ---------- tier 2 ----------

    def restore_attempt(self, manifest_root: Path, metadata_path: Path) -> ResolvedShardIndex:
        """Rebuild a shard directory from `<root>/index/<content id>` blobs.

        Missing blobs are skipped; the result only has to pass the probe.
        The temporary directory is removed again if the result is invalid.
        """
        logger.info("Restoring index from backup using metadata: %s", metadata_path.name)
        mapping = parse_file_mapping(load_shard_metadata(metadata_path))
        if not mapping:
            raise EmptyMappingError(metadata_path)

        temp_dir = Path(tempfile.mkdtemp(prefix=RESTORE_DIR_PREFIX, dir=self.temp_root))
        logger.info("Created temporary index directory: %s", temp_dir)

        blob_dir = manifest_root / BLOB_DIR_NAME
        copied = 0
        try:
            for content_id, original_name in mapping.items():
                source = blob_dir / content_id
                # Original names are plain file names; never write outside temp_dir.
                target = temp_dir / Path(original_name).name
                if not source.is_file():
                    logger.warning("Source file not found: %s", source)
                    continue
                shutil.copyfile(source, target)
                copied += 1
                logger.debug("Restored file: %s -> %s", content_id, original_name)

            if not self.probe(temp_dir):
                raise InvalidRestoreError(temp_dir)
        except Exception:
            shutil.rmtree(temp_dir, ignore_errors=True)
            raise

        logger.info("Restored %d/%d files to %s", copied, len(mapping), temp_dir)
        return ResolvedShardIndex(temp_dir, Provenance.RESTORED)

    # ---------- tier 3 ----------

    def fallback_scan(self, manifest_root: Path) -> ResolvedShardIndex | None:
        """First probe-passing directory within depth 3 (pre-order, sorted names)."""
        found = self._walk(manifest_root, 0)
        return ResolvedShardIndex(found, Provenance.FALLBACK) if found is not None else None

    def _walk(self, directory: Path, depth: int) -> Path | None:
        if self.probe(directory):
            return directory
        if depth >= FALLBACK_MAX_DEPTH:
            return None
        try:
            children = sorted(p for p in directory.iterdir() if p.is_dir())
        except OSError:
            return None
        for child in children:
            found = self._walk(child, depth + 1)
            if found is not None:
                return found
        return None

    # ---------- validation ----------

    def validate_structure(self, manifest_root: Path, manifest: BackupManifest) -> bool:
        """Only a missing root fails; missing shard metadata files are warnings."""
        logger.info("Validating backup structure for collection: %s", manifest.collection)
        if not manifest_root.is_dir():
            logger.error("Backup directory does not exist: %s", manifest_root)
            return False

        missing = [f for f in manifest.shard_metadata_files if not (manifest_root / f).exists()]
        for shard_file in missing:
            logger.warning("Missing shard metadata file: %s", shard_file)
        if missing:
            logger.warning("Some shard metadata files are missing, but continuing with available shards")
        return True
