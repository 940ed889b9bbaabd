"""
Container metrics collection cycle.

One call to ContainerMetricsCollector.run() enumerates the running containers,
fetches stats for all of them concurrently and renders the successful ones
into an exposition document.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol

from docker_exporter.errors import StatFetchError
from docker_exporter.formatter import render_document
from docker_exporter.models import (
    CollectionOutcome,
    CollectionResult,
    ContainerIdentity,
    MetricRecord,
)

logger = logging.getLogger(__name__)

DEFAULT_SLOW_FETCH_THRESHOLD = 2.0


class RuntimeClient(Protocol):
    """What the collector needs from a container runtime."""

    async def list_active_containers(self) -> List[Mapping[str, Any]]:
        ...

    async def get_stats(
        self,
        container_id: str,
        on_start: Optional[Callable[[], None]] = None
    ) -> Dict[str, Any]:
        ...


class ContainerMetricsCollector:
    """Runs collection cycles against a container runtime."""

    def __init__(
        self,
        runtime: RuntimeClient,
        slow_fetch_threshold: float = DEFAULT_SLOW_FETCH_THRESHOLD
    ):
        """
        Args:
            runtime: Container runtime client
            slow_fetch_threshold: Seconds after which an outstanding stats
                fetch is reported as slow
        """
        self.runtime = runtime
        self.slow_fetch_threshold = slow_fetch_threshold

    async def run(self) -> CollectionResult:
        """
        Run one collection cycle.

        Returns:
            CollectionResult with the rendered document, the cycle duration
            and one outcome per enumerated container

        Raises:
            EnumerationError: If the running containers cannot be listed
        """
        start_time = time.perf_counter()

        containers = await self.runtime.list_active_containers()
        identities = [ContainerIdentity.from_summary(summary) for summary in containers]
        logger.debug(f"Collecting metrics for {len(identities)} containers")

        results = await asyncio.gather(
            *(self._fetch(identity) for identity in identities),
            return_exceptions=True
        )

        outcomes = []
        for identity, result in zip(identities, results):
            if isinstance(result, BaseException):
                if isinstance(result, StatFetchError):
                    reason = result.reason
                else:
                    reason = str(result) or type(result).__name__
                logger.error(f"Failed to fetch stats for container {identity.name}: {reason}")
                outcomes.append(CollectionOutcome(identity=identity, error=reason))
                continue

            try:
                record = MetricRecord.from_stats(result)
            except (TypeError, ValueError, OverflowError) as e:
                logger.error(f"Unusable stats for container {identity.name}: {e}")
                outcomes.append(CollectionOutcome(identity=identity, error=str(e)))
                continue
            outcomes.append(CollectionOutcome(identity=identity, record=record))

        document = render_document(
            (outcome.identity, outcome.record) for outcome in outcomes if outcome.succeeded
        )
        duration = time.perf_counter() - start_time

        result = CollectionResult(
            document=document,
            duration_seconds=duration,
            outcomes=tuple(outcomes)
        )
        logger.info(
            f"Scraped {result.containers_scraped}/{len(identities)} containers "
            f"in {duration:.2f}s"
        )
        return result

    async def _fetch(self, identity: ContainerIdentity) -> Dict[str, Any]:
        """Fetch stats for one container, warning while it is outstanding too long."""
        watch = _SlowFetchWatch(asyncio.get_running_loop(), self.slow_fetch_threshold, identity)
        try:
            return await self.runtime.get_stats(identity.id, on_start=watch.started)
        finally:
            watch.finish()


class _SlowFetchWatch:
    """
    Slow-fetch timer for one stats call.

    The clock starts when the call begins on a worker thread, so time spent
    waiting for a free worker does not count. Each fetch logs at most one
    warning: either while still pending, or on completion.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, threshold: float, identity: ContainerIdentity):
        self.loop = loop
        self.threshold = threshold
        self.identity = identity
        self.started_at: Optional[float] = None
        self.warned = False
        self.done = False
        self._timer: Optional[asyncio.TimerHandle] = None

    def started(self):
        # Called from the worker thread
        self.loop.call_soon_threadsafe(self._arm)

    def _arm(self):
        if self.done:
            return
        self.started_at = self.loop.time()
        self._timer = self.loop.call_later(self.threshold, self._warn_pending)

    def _warn_pending(self):
        self.warned = True
        logger.warning(
            f"Stats fetch for container {self.identity.name} still pending after "
            f"{self.threshold * 1000:.0f} ms"
        )

    def finish(self):
        self.done = True
        if self._timer is not None:
            self._timer.cancel()
        if self.started_at is None or self.warned:
            return
        elapsed = self.loop.time() - self.started_at
        if elapsed > self.threshold:
            logger.warning(
                f"Stats fetch for container {self.identity.name} took {elapsed * 1000:.0f} ms"
            )
