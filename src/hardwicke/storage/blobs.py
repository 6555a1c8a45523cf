"""Google Cloud Storage blob store for backup downloads and output uploads."""

from __future__ import annotations

import logging
import shutil
import tempfile
import zipfile
from dataclasses import dataclass
from pathlib import Path

from google.api_core import exceptions as gcs_exceptions
from google.cloud import storage

from hardwicke.core.errors import BlobNotFoundError, BlobStoreError, InvalidBlobURIError

logger = logging.getLogger(__name__)

GCS_SCHEME = "gs://"
JSONL_CONTENT_TYPE = "application/x-jsonlines"
DEFAULT_CONTENT_TYPE = "application/octet-stream"
DOWNLOAD_DIR_PREFIX = "hardwicke_source_"


@dataclass(frozen=True)
class BlobURI:
    bucket: str
    name: str

    def __str__(self) -> str:
        return f"{GCS_SCHEME}{self.bucket}/{self.name}"


def parse_blob_uri(uri: str) -> BlobURI:
    """Split ``gs://bucket/object`` into its parts. Anything else is rejected."""
    if not isinstance(uri, str) or not uri.startswith(GCS_SCHEME):
        raise InvalidBlobURIError(uri)
    bucket, sep, name = uri[len(GCS_SCHEME):].partition("/")
    if not bucket or not sep or not name:
        raise InvalidBlobURIError(uri)
    return BlobURI(bucket=bucket, name=name)


def content_type_for(path: Path) -> str:
    name = path.name
    if name.endswith(".jsonl") or name.endswith(".jsonl.gz"):
        return JSONL_CONTENT_TYPE
    return DEFAULT_CONTENT_TYPE


def delete_local_path(path: Path) -> None:
    """Remove a file or a directory tree. Missing paths are ignored."""
    logger.info("Deleting local file/directory: %s", path)
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink(missing_ok=True)


def extract_zip(archive: Path, destination: Path) -> Path:
    """Extract `archive` into `destination`, refusing entries that escape it."""
    logger.info("Extracting ZIP file %s to %s", archive, destination)
    destination.mkdir(parents=True, exist_ok=True)
    root = destination.resolve()
    with zipfile.ZipFile(archive) as zf:
        for member in zf.namelist():
            target = (destination / member).resolve()
            if target != root and root not in target.parents:
                raise ValueError(f"Archive entry escapes extraction directory: {member}")
        zf.extractall(destination)
    logger.info("ZIP extraction completed")
    return destination


class GcsBlobStore:
    """Download/upload objects addressed by ``gs://bucket/object`` URIs."""

    def __init__(self, credentials_path: str | None = None, *, client: storage.Client | None = None) -> None:
        if client is not None:
            self._client = client
        elif credentials_path:
            logger.info("Initializing GCS client with credentials from: %s", credentials_path)
            self._client = storage.Client.from_service_account_json(credentials_path)
        else:
            logger.info("Initializing GCS client with default credentials")
            self._client = storage.Client()
        # returned local path -> staging directory that owns it
        self._staged: dict[Path, Path] = {}

    def download(self, uri: str) -> Path:
        """Stage an object in a fresh temp dir. ``.zip`` objects are extracted."""
        target = parse_blob_uri(uri)
        logger.info("Downloading from GCS: bucket=%s, object=%s", target.bucket, target.name)

        try:
            blob = self._client.bucket(target.bucket).get_blob(target.name)
        except gcs_exceptions.GoogleAPIError as exc:
            raise BlobStoreError(f"Failed to look up {uri}: {exc}") from exc
        if blob is None:
            raise BlobNotFoundError(uri)

        temp_dir = Path(tempfile.mkdtemp(prefix=DOWNLOAD_DIR_PREFIX))
        try:
            local = temp_dir / Path(target.name).name
            blob.download_to_filename(str(local))
            logger.info("Downloaded %s bytes to %s", blob.size, local)

            if target.name.endswith(".zip"):
                extracted = extract_zip(local, temp_dir / "extracted")
                local.unlink()
                self._staged[extracted] = temp_dir
                return extracted
            self._staged[local] = temp_dir
            return local
        except (gcs_exceptions.GoogleAPIError, zipfile.BadZipFile, ValueError, OSError) as exc:
            shutil.rmtree(temp_dir, ignore_errors=True)
            raise BlobStoreError(f"Failed to download {uri}: {exc}") from exc
        except Exception:
            shutil.rmtree(temp_dir, ignore_errors=True)
            raise

    def upload(self, local_path: Path, uri: str) -> None:
        target = parse_blob_uri(uri)
        content_type = content_type_for(local_path)
        logger.info("Uploading %s to bucket=%s, object=%s", local_path, target.bucket, target.name)
        blob = self._client.bucket(target.bucket).blob(target.name)
        try:
            blob.upload_from_filename(str(local_path), content_type=content_type)
        except (gcs_exceptions.GoogleAPIError, OSError) as exc:
            raise BlobStoreError(f"Failed to upload {local_path} to {uri}: {exc}") from exc
        logger.info("Successfully uploaded %d bytes", local_path.stat().st_size)

    def delete(self, local_path: Path) -> None:
        """Remove a local path; a downloaded path takes its staging directory with it."""
        delete_local_path(self._staged.pop(local_path, local_path))
