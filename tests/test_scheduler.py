"""
Tests for the snapshot cache and the collection scheduler
"""
import asyncio
import logging
from unittest.mock import AsyncMock, patch

import pytest

from docker_exporter.cache import SnapshotCache
from docker_exporter.collector import ContainerMetricsCollector
from docker_exporter.models import CollectionResult, Snapshot
from docker_exporter.scheduler import COLLECTION_JOB_ID, CollectionScheduler


class TestSnapshotCache:
    """Test SnapshotCache"""

    def test_empty_cache(self):
        cache = SnapshotCache()

        assert cache.read() is None
        assert cache.is_ready is False

    def test_publish_replaces_snapshot(self):
        cache = SnapshotCache()
        first = Snapshot(document='a\n', completed_at=100.0)
        second = Snapshot(document='b\n', completed_at=101.0)

        assert cache.publish(first) is True
        assert cache.publish(second) is True

        assert cache.read() is second
        assert cache.is_ready is True

    def test_publish_equal_timestamp_allowed(self):
        cache = SnapshotCache()
        cache.publish(Snapshot(document='a\n', completed_at=100.0))

        assert cache.publish(Snapshot(document='b\n', completed_at=100.0)) is True
        assert cache.read().document == 'b\n'

    def test_older_snapshot_rejected(self):
        cache = SnapshotCache()
        newer = Snapshot(document='new\n', completed_at=200.0)
        cache.publish(newer)

        assert cache.publish(Snapshot(document='old\n', completed_at=150.0)) is False
        assert cache.read() is newer


@pytest.fixture
def cache():
    return SnapshotCache()


@pytest.fixture
def scheduler(fake_runtime, cache):
    collector = ContainerMetricsCollector(fake_runtime)
    return CollectionScheduler(collector, cache, interval_seconds=15.0)


class TestRunCycle:
    """Test CollectionScheduler.run_cycle()"""

    @pytest.mark.asyncio
    async def test_successful_cycle_publishes(self, scheduler, cache):
        published = await scheduler.run_cycle()

        assert published is True
        snapshot = cache.read()
        assert snapshot is not None
        assert 'container_id="abc123"' in snapshot.document
        assert scheduler.cycles_completed == 1
        assert scheduler.last_duration is not None
        assert scheduler.in_progress is False

    @pytest.mark.asyncio
    async def test_partial_failure_still_publishes(self, scheduler, cache, fake_runtime):
        fake_runtime.fail_stats('ghi789')

        assert await scheduler.run_cycle() is True

        document = cache.read().document
        assert document.count('docker_container_pids{') == 2
        assert 'ghi789' not in document

    @pytest.mark.asyncio
    async def test_enumeration_failure_keeps_previous_snapshot(self, scheduler, cache, fake_runtime, caplog):
        await scheduler.run_cycle()
        before = cache.read()

        fake_runtime.fail_enumeration()
        with caplog.at_level(logging.ERROR):
            published = await scheduler.run_cycle()

        assert published is False
        assert cache.read() is before
        assert scheduler.cycles_failed == 1
        assert scheduler.in_progress is False
        assert 'keeping previous snapshot' in caplog.text

    @pytest.mark.asyncio
    async def test_enumeration_failure_before_first_success(self, scheduler, cache, fake_runtime):
        fake_runtime.fail_enumeration()

        assert await scheduler.run_cycle() is False
        assert cache.read() is None

    @pytest.mark.asyncio
    async def test_unexpected_error_is_contained(self, cache, caplog):
        collector = AsyncMock()
        collector.run.side_effect = RuntimeError('boom')
        scheduler = CollectionScheduler(collector, cache)

        with caplog.at_level(logging.ERROR):
            assert await scheduler.run_cycle() is False

        assert cache.read() is None
        assert scheduler.in_progress is False
        assert 'boom' in caplog.text

    @pytest.mark.asyncio
    async def test_overlapping_trigger_is_skipped(self, scheduler, fake_runtime):
        gate = fake_runtime.block_stats('abc123')

        first = asyncio.create_task(scheduler.run_cycle())
        for _ in range(10):
            await asyncio.sleep(0)
        assert scheduler.in_progress is True

        second = await scheduler.run_cycle()

        assert second is False
        assert scheduler.cycles_skipped == 1
        assert fake_runtime.list_calls == 1

        gate.set()
        assert await first is True
        assert scheduler.in_progress is False
        assert fake_runtime.list_calls == 1

    @pytest.mark.asyncio
    async def test_concurrent_triggers_run_one_cycle(self, cache):
        calls = 0
        release = asyncio.Event()

        async def slow_run():
            nonlocal calls
            calls += 1
            await release.wait()
            return CollectionResult(document='# doc\n', duration_seconds=0.0)

        collector = AsyncMock()
        collector.run.side_effect = slow_run
        scheduler = CollectionScheduler(collector, cache)

        tasks = [asyncio.create_task(scheduler.run_cycle()) for _ in range(5)]
        for _ in range(10):
            await asyncio.sleep(0)
        release.set()
        results = await asyncio.gather(*tasks)

        assert calls == 1
        assert results.count(True) == 1
        assert scheduler.cycles_skipped == 4

    @pytest.mark.asyncio
    async def test_timestamps_non_decreasing(self, scheduler, cache):
        stamps = []
        for _ in range(3):
            await scheduler.run_cycle()
            stamps.append(cache.read().completed_at)

        assert stamps == sorted(stamps)

    @pytest.mark.asyncio
    async def test_clock_step_back_does_not_move_timestamp_backwards(self, scheduler, cache):
        with patch('docker_exporter.scheduler.time.time', return_value=1000.0):
            await scheduler.run_cycle()
        with patch('docker_exporter.scheduler.time.time', return_value=900.0):
            assert await scheduler.run_cycle() is True

        assert cache.read().completed_at == 1000.0


async def wait_for_snapshot(cache, attempts=100):
    for _ in range(attempts):
        if cache.is_ready:
            return True
        await asyncio.sleep(0.01)
    return False


class TestPeriodicScheduling:
    """Test start/shutdown of the periodic job"""

    @pytest.mark.asyncio
    async def test_start_runs_first_cycle_immediately(self, scheduler, cache):
        scheduler.start()
        try:
            assert await wait_for_snapshot(cache)
        finally:
            scheduler.shutdown()

        assert scheduler.running is False

    @pytest.mark.asyncio
    async def test_job_configuration(self, scheduler, cache):
        scheduler.start()
        try:
            await wait_for_snapshot(cache)
            job = scheduler._scheduler.get_job(COLLECTION_JOB_ID)
            assert job is not None
            assert job.max_instances == 1
            assert job.coalesce is True
            assert job.trigger.interval.total_seconds() == 15.0
        finally:
            scheduler.shutdown()

    @pytest.mark.asyncio
    async def test_start_twice_is_noop(self, scheduler, cache):
        scheduler.start()
        try:
            await wait_for_snapshot(cache)
            inner = scheduler._scheduler
            scheduler.start()
            assert scheduler._scheduler is inner
        finally:
            scheduler.shutdown()

    def test_shutdown_without_start(self, scheduler):
        scheduler.shutdown()

        assert scheduler.running is False
