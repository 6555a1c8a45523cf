"""Backup manifest (``backup.properties``) parsing.

The manifest is a flat ``key=value`` text file written by the backup tool.
Lines starting with ``#`` or ``!`` are comments. Timestamps are stored with
escaped colons (``2025-08-24T00\\:08\\:16.343706101Z``).
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from pathlib import Path

from hardwicke.core.errors import InvalidManifestFieldError, ManifestUnreadableError
from hardwicke.core.models import BackupManifest

logger = logging.getLogger(__name__)

_SHARD_KEY = re.compile(r"^shard\d+\.md$")
# Backups record nanoseconds; fromisoformat wants exactly six digits on 3.10.
_FRACTION = re.compile(r"(?<=:\d{2})\.(\d+)")


def _six_digit_fraction(match: re.Match[str]) -> str:
    return "." + match.group(1)[:6].ljust(6, "0")


def parse_timestamp(raw: str | None) -> datetime | None:
    """Parse an escaped ISO-8601 timestamp. Returns None when absent or invalid."""
    if not raw:
        return None
    text = raw.replace("\\:", ":").strip()
    text = _FRACTION.sub(_six_digit_fraction, text)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        logger.warning("Failed to parse timestamp: %s", raw)
        return None


def read_properties(path: Path) -> dict[str, str]:
    """Read flat key=value lines, skipping blanks and comments."""
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ManifestUnreadableError(path, str(exc)) from exc

    props: dict[str, str] = {}
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped[0] in "#!":
            continue
        key, sep, value = stripped.partition("=")
        if not sep:
            continue
        props[key.strip()] = value.strip()
    return props


class BackupCatalog:
    """Turns a backup manifest file into an immutable BackupManifest."""

    def parse(self, path: Path | str) -> BackupManifest:
        path = Path(path)
        logger.info("Parsing backup properties file: %s", path)
        props = read_properties(path)

        manifest = BackupManifest(
            collection=props.get("collection"),
            collection_alias=props.get("collectionAlias"),
            config_name=props.get("collection.configName"),
            backup_name=props.get("backupName"),
            index_version=props.get("indexVersion"),
            index_file_count=self._int_field(props, "indexFileCount", 0),
            index_size_mb=self._float_field(props, "indexSizeMB", 0.0),
            start_time=parse_timestamp(props.get("startTime")),
            end_time=parse_timestamp(props.get("endTime")),
            shard_metadata_files=self.shard_metadata_files(props),
        )
        logger.info(
            "Parsed backup metadata: collection=%s, shards=%d, indexSize=%sMB",
            manifest.collection,
            manifest.shard_count,
            manifest.index_size_mb,
        )
        return manifest

    @staticmethod
    def shard_metadata_files(props: dict[str, str]) -> tuple[str, ...]:
        """Values of every `shard<N>.md` key, ordered by the key string (shard10 < shard2)."""
        keys = sorted(k for k in props if _SHARD_KEY.match(k))
        return tuple(props[k] for k in keys if props[k])

    @staticmethod
    def _int_field(props: dict[str, str], key: str, default: int) -> int:
        raw = props.get(key)
        if raw is None or raw == "":
            return default
        try:
            return int(raw)
        except ValueError as exc:
            raise InvalidManifestFieldError(key, raw) from exc

    @staticmethod
    def _float_field(props: dict[str, str], key: str, default: float) -> float:
        raw = props.get(key)
        if raw is None or raw == "":
            return default
        try:
            return float(raw)
        except ValueError as exc:
            raise InvalidManifestFieldError(key, raw) from exc
