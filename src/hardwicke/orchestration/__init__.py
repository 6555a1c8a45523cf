"""Orchestration for end-to-end conversion runs.

This package provides:
- convert: stage the source, resolve shards, infer schema, run the pipeline
- ProgressMonitor: background throughput/ETA reporter
"""

from hardwicke.orchestration.orchestrator import convert, locate_shards
from hardwicke.orchestration.progress import ProgressMonitor, ProgressSnapshot

__all__ = [
    "convert",
    "locate_shards",
    "ProgressMonitor",
    "ProgressSnapshot",
]
