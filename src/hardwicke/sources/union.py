from __future__ import annotations

import logging
from collections.abc import Sequence

from hardwicke.core.interfaces import IDocumentSource
from hardwicke.core.models import DocumentRecord

logger = logging.getLogger(__name__)


class UnionDocumentSource:
    """Several shard sources presented as one, consumed in the given order.

    Records are renumbered with a dense 0-based ordinal across the union;
    it is not a globally unique cross-shard identifier.
    """

    def __init__(self, sources: Sequence[IDocumentSource]) -> None:
        self.sources = list(sources)
        self._current = 0
        self._next_ordinal = 0
        self._total = sum(s.total_count() for s in self.sources)
        logger.info("Multi-shard index opened. Shards: %d, total documents: %d", len(self.sources), self._total)

    def total_count(self) -> int:
        return self._total

    def read_batch(self, max_size: int) -> list[DocumentRecord]:
        batch: list[DocumentRecord] = []
        while len(batch) < max_size and self._current < len(self.sources):
            want = max_size - len(batch)
            part = self.sources[self._current].read_batch(want)
            for record in part:
                record.doc_id = self._next_ordinal
                self._next_ordinal += 1
            batch.extend(part)
            # A short batch means this shard is exhausted.
            if len(part) < want:
                self._current += 1
        return batch

    def close(self) -> None:
        errors: list[Exception] = []
        for source in self.sources:
            try:
                source.close()
            except Exception as exc:
                errors.append(exc)
        logger.info("Multi-shard index readers closed")
        if errors:
            raise errors[0]
