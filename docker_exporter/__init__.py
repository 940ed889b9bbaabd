"""
Docker Stats Exporter for Prometheus

Polls the Docker daemon for per-container resource usage on a fixed interval
and serves the latest completed collection as a Prometheus text document.
"""

__version__ = "1.0.0"
