from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from hardwicke.core.errors import ConversionError

DEFAULT_MANIFEST_NAME = "backup.properties"


@dataclass(frozen=True)
class ConversionConfig:
    """Configuration for one conversion run (CLI or library use)."""

    source: Path | None = None
    gcs_source: str | None = None
    output: Path | None = None
    gcs_output: str | None = None
    batch_size: int = 1_000
    report_interval: float = 10.0
    compress: bool = False
    credentials_path: str | None = None
    infer_schema: bool = True
    manifest_name: str = DEFAULT_MANIFEST_NAME

    @property
    def remote_source(self) -> bool:
        return self.gcs_source is not None

    @property
    def remote_output(self) -> bool:
        return self.gcs_output is not None

    def validate(self) -> None:
        """Raise ConversionError unless the configuration is runnable."""
        if (self.source is None) == (self.gcs_source is None):
            raise ConversionError("Must specify exactly one of --source or --gcs-source")
        if (self.output is None) == (self.gcs_output is None):
            raise ConversionError("Must specify exactly one of --output or --gcs-output")
        if self.batch_size <= 0:
            raise ConversionError(f"batch_size must be > 0, got {self.batch_size}")
        if self.report_interval <= 0:
            raise ConversionError(f"report_interval must be > 0, got {self.report_interval}")
