"""
Docker API Client for collecting container statistics.

This module wraps the Docker SDK's low-level API client. The SDK is blocking,
so every call runs on the client's own worker pool and is exposed as a
coroutine; this lets one collection cycle fetch stats for all containers in
parallel. The worker pool and the HTTP connection pool to the daemon have the
same size, so a worker never waits for a connection.
"""

import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional

import docker
from docker.errors import DockerException, NotFound
from requests.exceptions import RequestException

from docker_exporter.errors import EnumerationError, StatFetchError

logger = logging.getLogger(__name__)

DEFAULT_MAX_POOL_SIZE = 32


class DockerRuntimeClient:
    """Lists running containers and fetches one-shot stats from the Docker daemon."""

    def __init__(self, base_url: str, max_pool_size: int = DEFAULT_MAX_POOL_SIZE):
        """
        Initialize the runtime client.

        The connection is opened lazily on first use, so an unreachable daemon
        shows up as a failed collection cycle instead of a failed startup.

        Args:
            base_url: Docker daemon URL (unix socket, named pipe or tcp)
            max_pool_size: Number of concurrent calls to the daemon, used for
                both the worker threads and the connection pool
        """
        self.base_url = base_url
        self.max_pool_size = max_pool_size
        self._client: Optional[docker.DockerClient] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._lock = threading.Lock()

    def _get_client(self) -> docker.DockerClient:
        with self._lock:
            if self._client is None:
                logger.info(f"Connecting to Docker via {self.base_url}")
                self._client = docker.DockerClient(
                    base_url=self.base_url,
                    max_pool_size=self.max_pool_size
                )
            return self._client

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.max_pool_size,
                    thread_name_prefix='docker-stats'
                )
            return self._executor

    async def _run(self, func: Callable, *args) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._get_executor(), func, *args)

    async def list_active_containers(self) -> List[Dict[str, Any]]:
        """
        List running containers.

        Returns:
            Container summaries with at least ``Id``, ``Names`` and ``Image``

        Raises:
            EnumerationError: If the daemon cannot be reached or rejects the call
        """
        try:
            containers = await self._run(self._list_containers)
        except (DockerException, RequestException) as e:
            raise EnumerationError(f"Failed to list containers: {e}") from e

        logger.debug(f"Found {len(containers)} running containers")
        return containers

    def _list_containers(self) -> List[Dict[str, Any]]:
        # all=False: running containers only
        return self._get_client().api.containers(all=False)

    async def get_stats(
        self,
        container_id: str,
        on_start: Optional[Callable[[], None]] = None
    ) -> Dict[str, Any]:
        """
        Get a single stats snapshot for a container.

        Args:
            container_id: Container ID
            on_start: Called from the worker thread right before the daemon
                call, i.e. after any wait for a free worker

        Returns:
            Raw stats payload as returned by the Docker API

        Raises:
            StatFetchError: If the container vanished or the call failed
        """
        try:
            return await self._run(self._fetch_stats, container_id, on_start)
        except NotFound as e:
            raise StatFetchError(container_id, 'container not found', e) from e
        except (DockerException, RequestException) as e:
            raise StatFetchError(container_id, str(e), e) from e

    def _fetch_stats(self, container_id: str, on_start: Optional[Callable[[], None]]) -> Dict[str, Any]:
        if on_start is not None:
            on_start()
        # stream=False returns a single snapshot
        return self._get_client().api.stats(container_id, stream=False)

    def close(self):
        """Close the Docker client connection and stop the worker threads."""
        with self._lock:
            client, self._client = self._client, None
            executor, self._executor = self._executor, None

        if executor is not None:
            executor.shutdown(wait=False)
        if client is None:
            return
        try:
            client.close()
            logger.info("Docker client connection closed")
        except (DockerException, RequestException, OSError) as e:
            logger.error(f"Error closing Docker client: {e}")
