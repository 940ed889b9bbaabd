"""
Pytest configuration and shared fixtures
"""
import asyncio
import copy

import pytest

from docker_exporter.errors import EnumerationError, StatFetchError


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "slow: mark test as slow running"
    )


SAMPLE_STATS = {
    'cpu_stats': {
        'cpu_usage': {'total_usage': 2_500_000_000},
        'system_cpu_usage': 100_000_000_000,
        'online_cpus': 2,
    },
    'memory_stats': {
        'usage': 52_428_800,
        'limit': 2_147_483_648,
        'stats': {'cache': 1024},
    },
    'networks': {
        'eth0': {'rx_bytes': 1000, 'tx_bytes': 500, 'rx_packets': 10},
        'eth1': {'rx_bytes': 24, 'tx_bytes': 12},
    },
    'blkio_stats': {
        'io_service_bytes_recursive': [
            {'major': 8, 'minor': 0, 'op': 'Read', 'value': 4096},
            {'major': 8, 'minor': 0, 'op': 'Write', 'value': 8192},
            {'major': 8, 'minor': 0, 'op': 'Sync', 'value': 12288},
            {'major': 8, 'minor': 0, 'op': 'Total', 'value': 12288},
        ]
    },
    'pids_stats': {'current': 7},
}


def container_summary(container_id, name=None, image='nginx:latest'):
    """Container list entry as returned by the Docker API."""
    return {
        'Id': container_id,
        'Names': [f'/{name}'] if name else [],
        'Image': image,
        'State': 'running',
    }


class FakeRuntime:
    """In-memory stand-in for DockerRuntimeClient."""

    def __init__(self, containers=None, stats=None):
        self.containers = list(containers or [])
        self.stats = dict(stats or {})
        self.stat_errors = {}
        self.gates = {}
        self.list_error = None
        self.list_calls = 0
        self.stats_calls = []
        self.closed = False

    async def list_active_containers(self):
        self.list_calls += 1
        if self.list_error is not None:
            raise self.list_error
        return copy.deepcopy(self.containers)

    async def get_stats(self, container_id, on_start=None):
        self.stats_calls.append(container_id)
        if on_start is not None:
            on_start()
        gate = self.gates.get(container_id)
        if gate is not None:
            await gate.wait()
        if container_id in self.stat_errors:
            raise self.stat_errors[container_id]
        return copy.deepcopy(self.stats.get(container_id, {}))

    def close(self):
        self.closed = True

    def fail_enumeration(self, message='Cannot connect to the Docker daemon'):
        self.list_error = EnumerationError(message)

    def fail_stats(self, container_id, reason='container not found'):
        self.stat_errors[container_id] = StatFetchError(container_id, reason)

    def block_stats(self, container_id):
        gate = asyncio.Event()
        self.gates[container_id] = gate
        return gate


@pytest.fixture
def sample_stats():
    """Raw stats payload for a busy container"""
    return copy.deepcopy(SAMPLE_STATS)


@pytest.fixture
def fake_runtime():
    """Runtime with three running containers, all with stats"""
    return FakeRuntime(
        containers=[
            container_summary('abc123', 'web', 'nginx:latest'),
            container_summary('def456', 'db', 'postgres:16'),
            container_summary('ghi789', 'cache', 'redis:7'),
        ],
        stats={
            'abc123': copy.deepcopy(SAMPLE_STATS),
            'def456': copy.deepcopy(SAMPLE_STATS),
            'ghi789': copy.deepcopy(SAMPLE_STATS),
        },
    )


@pytest.fixture
def make_runtime():
    """Factory for FakeRuntime instances"""
    return FakeRuntime


@pytest.fixture
def make_summary():
    """Factory for container list entries"""
    return container_summary
