"""
Prometheus text exposition rendering for container metrics.
"""
import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple, Union

from docker_exporter.models import ContainerIdentity, MetricRecord

CONTENT_TYPE = 'text/plain; version=0.0.4; charset=utf-8'


@dataclass(frozen=True)
class MetricDefinition:
    name: str
    help: str
    type: str
    field: str


# Order here is the order of the preamble and of each container's lines
METRICS: Tuple[MetricDefinition, ...] = (
    MetricDefinition(
        'docker_container_cpu_usage_seconds_total',
        'Total CPU time consumed by the container in seconds.',
        'counter',
        'cpu_seconds',
    ),
    MetricDefinition(
        'docker_container_memory_usage_bytes',
        'Current memory usage of the container in bytes.',
        'gauge',
        'mem_usage_bytes',
    ),
    MetricDefinition(
        'docker_container_memory_limit_bytes',
        'Memory limit of the container in bytes.',
        'gauge',
        'mem_limit_bytes',
    ),
    MetricDefinition(
        'docker_container_network_receive_bytes_total',
        'Total bytes received by the container.',
        'counter',
        'rx_bytes_total',
    ),
    MetricDefinition(
        'docker_container_network_transmit_bytes_total',
        'Total bytes transmitted by the container.',
        'counter',
        'tx_bytes_total',
    ),
    MetricDefinition(
        'docker_container_block_read_bytes_total',
        'Total block IO read bytes by the container.',
        'counter',
        'blk_read_bytes_total',
    ),
    MetricDefinition(
        'docker_container_block_write_bytes_total',
        'Total block IO written bytes by the container.',
        'counter',
        'blk_write_bytes_total',
    ),
    MetricDefinition(
        'docker_container_pids',
        'Number of PIDs inside the container.',
        'gauge',
        'pids',
    ),
)


def escape_label_value(value) -> str:
    """Escape backslash, double quote and newline in a label value."""
    return (
        str(value)
        .replace('\\', '\\\\')
        .replace('"', '\\"')
        .replace('\n', '\\n')
    )


def format_value(value: Union[int, float]) -> str:
    """Render a sample value: floats in shortest decimal form, ints as-is."""
    if isinstance(value, float):
        if math.isnan(value):
            return 'NaN'
        if math.isinf(value):
            return '+Inf' if value > 0 else '-Inf'
        return repr(value)
    return str(int(value))


def format_metric(name: str, labels: Dict[str, str], value: Union[int, float]) -> str:
    """
    Format a single sample line.

    Args:
        name: Metric name
        labels: Ordered label set, may be empty
        value: Sample value

    Returns:
        One line in exposition format, including the trailing newline
    """
    labels_str = ''
    if labels:
        labels_str = '{' + ','.join(
            f'{key}="{escape_label_value(val)}"' for key, val in labels.items()
        ) + '}'
    return f'{name}{labels_str} {format_value(value)}\n'


def render_preamble() -> str:
    """HELP and TYPE lines for every metric, in fixed order."""
    lines = []
    for metric in METRICS:
        lines.append(f'# HELP {metric.name} {metric.help}\n')
        lines.append(f'# TYPE {metric.name} {metric.type}\n')
    return ''.join(lines)


def render_document(entries: Iterable[Tuple[ContainerIdentity, MetricRecord]]) -> str:
    """
    Render the exposition document for a set of containers.

    Args:
        entries: (identity, record) pairs in the order they should appear

    Returns:
        The full document text
    """
    parts: List[str] = [render_preamble()]
    for identity, record in entries:
        labels = identity.labels()
        for metric in METRICS:
            parts.append(format_metric(metric.name, labels, getattr(record, metric.field)))
    return ''.join(parts)
