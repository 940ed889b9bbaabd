"""
Main Docker Stats Exporter application.

Wires the Docker client, collector, scheduler and HTTP server together and
runs them on a single event loop.
"""

import logging
import sys

import uvicorn
from dotenv import load_dotenv

from docker_exporter import __version__
from docker_exporter.api import create_app
from docker_exporter.cache import SnapshotCache
from docker_exporter.collector import ContainerMetricsCollector
from docker_exporter.config import ExporterConfig
from docker_exporter.docker_client import DockerRuntimeClient
from docker_exporter.errors import ConfigError
from docker_exporter.scheduler import CollectionScheduler

logger = logging.getLogger(__name__)


def configure_logging(level: str = 'INFO'):
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )


def build_app(config: ExporterConfig):
    """
    Assemble the exporter components for the given configuration.

    Returns:
        FastAPI app whose lifespan starts and stops collection
    """
    runtime = DockerRuntimeClient(config.docker_url, max_pool_size=config.docker_max_pool_size)
    collector = ContainerMetricsCollector(
        runtime,
        slow_fetch_threshold=config.slow_fetch_threshold_seconds
    )
    cache = SnapshotCache()
    scheduler = CollectionScheduler(
        collector,
        cache,
        interval_seconds=config.scrape_interval_seconds
    )
    return create_app(cache, scheduler=scheduler, runtime=runtime)


def main():
    """Main entry point."""
    load_dotenv()

    try:
        config = ExporterConfig.from_env()
    except ConfigError as e:
        configure_logging()
        logger.error(str(e))
        sys.exit(1)

    configure_logging(config.log_level)

    logger.info(f"Docker Stats Exporter v{__version__}")
    logger.info(
        f"Configuration: interval={config.scrape_interval_ms}ms, port={config.port}, "
        f"docker={config.docker_url}"
    )

    app = build_app(config)

    logger.info(f"Docker stats exporter listening on http://{config.host}:{config.port}/metrics")
    try:
        uvicorn.run(app, host=config.host, port=config.port, log_level=config.log_level.lower())
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, shutting down...")


if __name__ == '__main__':
    main()
