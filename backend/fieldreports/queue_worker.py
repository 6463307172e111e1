"""Queue coordinator: claims pending report jobs and runs them to completion."""
import logging
import threading
import time
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from typing import Optional, Dict, Any, Callable, List, Set

from .models import QueueStatus

logger = logging.getLogger(__name__)


@dataclass
class BatchSummary:
    """Outcome counts of one batch run."""
    processed: int = 0
    errors: int = 0
    skipped: int = 0

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


class ReportQueueCoordinator:
    """
    Processes the report queue in batches.

    Each item is claimed with a conditional update before any work starts, so
    the scheduled batch and a manually triggered batch can overlap safely:
    an item lost to another claimant is skipped, never processed twice.
    """

    def __init__(
        self,
        store,
        assembler,
        compositor,
        delivery,
        batch_size: int = 10,
        throttle_seconds: float = 1.0,
        stale_claim_minutes: int = 30,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.store = store
        self.assembler = assembler
        self.compositor = compositor
        self.delivery = delivery
        self.batch_size = batch_size
        self.throttle_seconds = throttle_seconds
        self.stale_claim_minutes = stale_claim_minutes
        self.sleep = sleep

        self._lock = threading.Lock()
        self._last_batch: Optional[BatchSummary] = None
        self._last_batch_at: Optional[datetime] = None
        # Items being attempted now; the timer and a manual run can overlap
        self._in_flight: Set[int] = set()

    @property
    def in_flight_item_ids(self) -> List[int]:
        with self._lock:
            return sorted(self._in_flight)

    def process_pending_batch(self) -> BatchSummary:
        """Claim and attempt up to ``batch_size`` pending items, in priority order."""
        summary = BatchSummary()
        items = self.store.fetch_pending(limit=self.batch_size)

        if not items:
            logger.debug("No pending report jobs")
            self._record_batch(summary)
            return summary

        logger.info(f"Processing batch of {len(items)} pending report jobs")
        attempted = 0

        for item in items:
            try:
                if not self.store.claim(item.id):
                    logger.info(f"Queue item {item.id} already claimed elsewhere, skipping")
                    summary.skipped += 1
                    continue

                if attempted and self.throttle_seconds:
                    self.sleep(self.throttle_seconds)
                attempted += 1

                if self.attempt_item(item):
                    summary.processed += 1
                else:
                    summary.errors += 1
            except Exception as e:
                logger.error(f"Unexpected error handling queue item {item.id}: {e}")
                summary.errors += 1

        self._record_batch(summary)
        logger.info(
            f"Batch complete: {summary.processed} processed, "
            f"{summary.errors} errors, {summary.skipped} skipped"
        )
        return summary

    def attempt_item(self, item) -> bool:
        """
        Run one claimed item through assemble, compose and deliver.

        Returns True when the report was sent. Any failure is written back
        to the row as a failed attempt.
        """
        with self._lock:
            self._in_flight.add(item.id)
        logger.info(f"Processing queue item {item.id} (field {item.field_id}, {item.trigger_type})")

        try:
            context = self.assembler.assemble(item)
            report = self.compositor.compose(context)
            self.delivery.deliver(report)
        except Exception as e:
            status = self.store.mark_retry_or_error(item.id, str(e))
            if status == QueueStatus.ERROR:
                logger.error(f"Queue item {item.id} failed permanently: {e}")
            else:
                logger.warning(f"Queue item {item.id} failed, will retry: {e}")
            return False
        finally:
            with self._lock:
                self._in_flight.discard(item.id)

        if not self.store.mark_completed(item.id):
            logger.warning(f"Queue item {item.id} was no longer processing when completed")
        logger.info(f"Completed queue item {item.id}")
        return True

    def release_stale_claims(self) -> int:
        """Fail items stuck in processing longer than the stale-claim window."""
        return self.store.release_stale_claims(timedelta(minutes=self.stale_claim_minutes))

    def get_status(self) -> Dict[str, Any]:
        counts = self.store.count_by_status()
        with self._lock:
            last_batch = self._last_batch.as_dict() if self._last_batch else None
            last_batch_at = self._last_batch_at
            in_flight = sorted(self._in_flight)

        return {
            "counts": counts,
            "pending": counts.get(QueueStatus.PENDING.value, 0),
            "total": sum(counts.values()),
            "in_flight_item_ids": in_flight,
            "last_batch": last_batch,
            "last_batch_at": last_batch_at,
        }

    def _record_batch(self, summary: BatchSummary):
        with self._lock:
            self._last_batch = summary
            self._last_batch_at = datetime.utcnow()
