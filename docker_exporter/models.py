"""
Data models for container metrics collection.

Raw Docker API payloads are only read here; everything downstream works with
the frozen records built from them.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple


def _number(value: Any) -> float:
    """Return value if it is a real number, else 0."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return value


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


@dataclass(frozen=True)
class ContainerIdentity:
    """Labels identifying a container in the exposition document"""

    id: str
    name: str
    image: str

    @classmethod
    def from_summary(cls, summary: Mapping[str, Any]) -> 'ContainerIdentity':
        """
        Build an identity from a container list entry.

        Args:
            summary: Entry returned by the Docker list endpoint
                (``Id``, ``Names``, ``Image``)

        Returns:
            ContainerIdentity with the leading '/' removed from the name
        """
        container_id = str(summary.get('Id') or '')
        names = summary.get('Names') or []

        # A reported name is kept even if stripping leaves it empty
        name = container_id
        if names and names[0]:
            name = str(names[0])
            if name.startswith('/'):
                name = name[1:]

        return cls(
            id=container_id,
            name=name,
            image=str(summary.get('Image') or ''),
        )

    def labels(self) -> Dict[str, str]:
        """Label set attached to every metric line of this container."""
        return {
            'container_id': self.id,
            'container_name': self.name,
            'image': self.image,
        }


@dataclass(frozen=True)
class MetricRecord:
    """Values derived from one stats snapshot of a container"""

    cpu_seconds: float = 0.0
    mem_usage_bytes: int = 0
    mem_limit_bytes: int = 0
    rx_bytes_total: int = 0
    tx_bytes_total: int = 0
    blk_read_bytes_total: int = 0
    blk_write_bytes_total: int = 0
    pids: int = 0

    @classmethod
    def from_stats(cls, stats: Optional[Mapping[str, Any]]) -> 'MetricRecord':
        """
        Derive a record from the raw Docker stats payload.

        Missing or malformed fields count as zero.

        Args:
            stats: Parsed JSON from the container stats endpoint

        Returns:
            MetricRecord
        """
        stats = _mapping(stats)

        cpu_usage = _mapping(_mapping(stats.get('cpu_stats')).get('cpu_usage'))
        cpu_seconds = _number(cpu_usage.get('total_usage')) / 1e9

        memory_stats = _mapping(stats.get('memory_stats'))

        rx_bytes, tx_bytes = _sum_network(stats.get('networks'))
        read_bytes, write_bytes = _sum_blkio(
            _mapping(stats.get('blkio_stats')).get('io_service_bytes_recursive')
        )

        return cls(
            cpu_seconds=float(cpu_seconds),
            mem_usage_bytes=int(_number(memory_stats.get('usage'))),
            mem_limit_bytes=int(_number(memory_stats.get('limit'))),
            rx_bytes_total=int(rx_bytes),
            tx_bytes_total=int(tx_bytes),
            blk_read_bytes_total=int(read_bytes),
            blk_write_bytes_total=int(write_bytes),
            pids=int(_number(_mapping(stats.get('pids_stats')).get('current'))),
        )


def _sum_network(networks: Any) -> Tuple[float, float]:
    """Sum rx/tx bytes across all interfaces."""
    total_rx_bytes = 0
    total_tx_bytes = 0
    for net_stats in _mapping(networks).values():
        net_stats = _mapping(net_stats)
        total_rx_bytes += _number(net_stats.get('rx_bytes'))
        total_tx_bytes += _number(net_stats.get('tx_bytes'))
    return total_rx_bytes, total_tx_bytes


def _sum_blkio(entries: Any) -> Tuple[float, float]:
    """Sum read/write bytes from io_service_bytes_recursive."""
    total_read_bytes = 0
    total_write_bytes = 0
    if not isinstance(entries, list):
        return total_read_bytes, total_write_bytes

    for entry in entries:
        entry = _mapping(entry)
        op = entry.get('op')
        if not op or not isinstance(op, str):
            continue

        op = op.lower()
        if op == 'read':
            total_read_bytes += _number(entry.get('value'))
        elif op == 'write':
            total_write_bytes += _number(entry.get('value'))
    return total_read_bytes, total_write_bytes


@dataclass(frozen=True)
class CollectionOutcome:
    """Result of fetching stats for one container"""

    identity: ContainerIdentity
    record: Optional[MetricRecord] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.record is not None


@dataclass(frozen=True)
class CollectionResult:
    """Output of one collection cycle"""

    document: str
    duration_seconds: float
    outcomes: Tuple[CollectionOutcome, ...] = ()

    @property
    def containers_scraped(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.succeeded)

    @property
    def failed_containers(self) -> List[ContainerIdentity]:
        return [outcome.identity for outcome in self.outcomes if not outcome.succeeded]


@dataclass(frozen=True)
class Snapshot:
    """A completed exposition document and when it was completed"""

    document: str
    completed_at: float
