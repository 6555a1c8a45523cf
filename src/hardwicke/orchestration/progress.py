"""Background progress reporting for long conversions.

One daemon thread wakes every `interval_s` seconds and logs throughput and
ETA. The only state shared with the conversion loop is the processed
counter, which the loop overwrites after every batch (a single attribute
store) and the reporter reads; a stale read is acceptable for display.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_STOP_GRACE_S = 5.0


@dataclass(frozen=True, slots=True)
class ProgressSnapshot:
    processed: int
    total: int
    elapsed_s: float
    rate: float  # docs/sec over the whole run
    percent: float | None = None
    eta_s: float | None = None


class ProgressMonitor:
    """Periodic throughput/ETA reporter driven by a shared processed counter."""

    def __init__(
        self,
        interval_s: float = 10.0,
        *,
        stop_grace_s: float = DEFAULT_STOP_GRACE_S,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be > 0")
        self.interval_s = interval_s
        self.stop_grace_s = stop_grace_s
        self._clock = clock

        self._processed = 0
        self._total = 0
        self._start_time: float | None = None
        self._last_report_time: float | None = None
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self.error_message: str | None = None

    # ---------- shared counter ----------

    @property
    def processed(self) -> int:
        return self._processed

    @property
    def total(self) -> int:
        return self._total

    def set_total(self, total: int) -> None:
        self._total = max(0, int(total))
        logger.info("Total documents set to: %d", self._total)

    def update(self, processed: int) -> None:
        self._processed = processed

    # ---------- lifecycle ----------

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            raise RuntimeError("ProgressMonitor already started")
        now = self._clock()
        self._start_time = now
        self._last_report_time = now
        self._processed = 0
        self.error_message = None
        self._stop_event = threading.Event()
        self._thread = threading.Thread(target=self._run, name="progress-reporter", daemon=True)
        self._thread.start()
        logger.info("Progress reporting started with interval %.1f seconds", self.interval_s)

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval_s):
            self.tick()

    def complete(self) -> None:
        """Final synchronous report, then stop and log aggregate throughput."""
        self.tick()
        self.stop()
        snap = self.snapshot()
        logger.info(
            "Processing completed successfully. Processed %d documents in %.1f seconds. Average rate: %.2f docs/sec",
            snap.processed,
            snap.elapsed_s,
            snap.rate,
        )

    def error(self, message: str) -> None:
        self.error_message = message
        logger.error("Processing failed: %s", message)
        self.stop()

    def stop(self) -> None:
        """Idempotent. Waits up to `stop_grace_s` for an in-flight tick to finish."""
        self._stop_event.set()
        thread, self._thread = self._thread, None
        if thread is None or thread is threading.current_thread():
            return
        thread.join(self.stop_grace_s)
        if thread.is_alive():
            # Daemon thread: it cannot outlive the process.
            logger.warning("Progress reporter did not stop within %.1fs; abandoning it", self.stop_grace_s)

    # ---------- reporting ----------

    def snapshot(self) -> ProgressSnapshot:
        now = self._clock()
        start = self._start_time if self._start_time is not None else now
        elapsed = max(0.0, now - start)
        processed = self._processed
        total = self._total
        rate = processed / elapsed if elapsed > 0 else 0.0

        if total > 0:
            remaining = max(0, total - processed)
            return ProgressSnapshot(
                processed=processed,
                total=total,
                elapsed_s=elapsed,
                rate=rate,
                percent=processed / total * 100,
                eta_s=remaining / rate if rate > 0 else 0.0,
            )
        return ProgressSnapshot(processed=processed, total=total, elapsed_s=elapsed, rate=rate)

    def tick(self) -> ProgressSnapshot:
        snap = self.snapshot()
        if snap.percent is not None:
            logger.info(
                "Progress: %d/%d documents (%.1f%%) - Rate: %.1f docs/sec - Elapsed: %.0fs - ETA: %.0fs",
                snap.processed,
                snap.total,
                snap.percent,
                snap.rate,
                snap.elapsed_s,
                snap.eta_s,
            )
        else:
            logger.info(
                "Progress: %d documents processed - Rate: %.1f docs/sec - Elapsed: %.0fs",
                snap.processed,
                snap.rate,
                snap.elapsed_s,
            )
        self._last_report_time = self._clock()
        return snap
