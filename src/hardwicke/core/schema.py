"""Field schema inference over a deterministic sample prefix."""

from __future__ import annotations

import logging

from hardwicke.core.interfaces import IDocumentSource
from hardwicke.core.models import InferredSchema

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_SIZE = 1_000


class SchemaInferer:
    """Infer field -> type tags from the first documents of a source.

    The sample is the leading ``min(sample_size, total)`` documents in source
    order. Reading consumes the source, so callers pass a dedicated source and
    open a fresh one for conversion. Fields that only appear after the sample
    are absent from the schema; the schema is advisory.
    """

    def __init__(self, sample_size: int = DEFAULT_SAMPLE_SIZE, read_size: int = 256) -> None:
        if sample_size < 0:
            raise ValueError("sample_size must be >= 0")
        self.sample_size = sample_size
        self.read_size = max(1, read_size)

    def infer(self, source: IDocumentSource) -> InferredSchema:
        schema = InferredSchema()
        target = min(self.sample_size, source.total_count())
        logger.info("Sampling %d documents for schema inference", target)

        seen = 0
        while seen < target:
            want = min(self.read_size, target - seen)
            batch = source.read_batch(want)
            for record in batch:
                for name, value in record:
                    schema.observe(name, value.kind)
            seen += len(batch)
            if len(batch) < want:
                break

        logger.info("Schema inference found %d unique fields", schema.field_count)
        return schema
