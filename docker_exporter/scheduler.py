"""
Periodic collection scheduling.

Runs the collector on a fixed interval (and once at startup) and publishes
each successful result to the snapshot cache. At most one cycle runs at a
time; a tick that fires while a cycle is still running is skipped.
"""
import logging
import time
from datetime import datetime, timezone
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from docker_exporter.cache import SnapshotCache
from docker_exporter.collector import ContainerMetricsCollector
from docker_exporter.errors import EnumerationError
from docker_exporter.models import Snapshot

logger = logging.getLogger(__name__)

COLLECTION_JOB_ID = 'container_metrics_collection'


class CollectionScheduler:
    """Drives collection cycles and owns the Idle/Collecting state."""

    def __init__(
        self,
        collector: ContainerMetricsCollector,
        cache: SnapshotCache,
        interval_seconds: float = 15.0
    ):
        self.collector = collector
        self.cache = cache
        self.interval_seconds = interval_seconds

        self._in_progress = False
        self._scheduler: Optional[AsyncIOScheduler] = None

        self.cycles_completed = 0
        self.cycles_failed = 0
        self.cycles_skipped = 0
        self.last_duration: Optional[float] = None

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    async def run_cycle(self) -> bool:
        """
        Run one collection cycle unless one is already running.

        Returns:
            True if a new snapshot was published
        """
        if self._in_progress:
            self.cycles_skipped += 1
            logger.warning("Previous collection cycle still running, skipping this tick")
            return False

        self._in_progress = True
        try:
            result = await self.collector.run()
        except EnumerationError as e:
            self.cycles_failed += 1
            logger.error(f"Collection cycle failed, keeping previous snapshot: {e}")
            return False
        except Exception as e:
            self.cycles_failed += 1
            logger.error(f"Unexpected error in collection cycle: {e}", exc_info=True)
            return False
        finally:
            self._in_progress = False

        self.last_duration = result.duration_seconds

        # Keep timestamps non-decreasing even if the wall clock steps back
        completed_at = time.time()
        previous = self.cache.read()
        if previous is not None:
            completed_at = max(completed_at, previous.completed_at)

        published = self.cache.publish(Snapshot(document=result.document, completed_at=completed_at))
        if published:
            self.cycles_completed += 1
            logger.debug(f"Published snapshot completed at {completed_at:.3f}")
        return published

    def start(self):
        """
        Start periodic collection on the running event loop.

        The first cycle is scheduled immediately.
        """
        if self.running:
            return

        logger.info(f"Starting collection every {self.interval_seconds:g} seconds")
        self._scheduler = AsyncIOScheduler(timezone=timezone.utc)
        self._scheduler.add_job(
            self.run_cycle,
            trigger=IntervalTrigger(seconds=self.interval_seconds, timezone=timezone.utc),
            id=COLLECTION_JOB_ID,
            name='Collect container metrics',
            next_run_time=datetime.now(timezone.utc),
            max_instances=1,
            coalesce=True,
            misfire_grace_time=None,
        )
        self._scheduler.start()

    def shutdown(self):
        """Stop periodic collection. A cycle already running is left to finish."""
        if self._scheduler is None:
            return
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Collection scheduler stopped")
