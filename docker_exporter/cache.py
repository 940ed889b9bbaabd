"""
Holder for the most recently completed exposition document.
"""
import logging
from typing import Optional

from docker_exporter.models import Snapshot

logger = logging.getLogger(__name__)


class SnapshotCache:
    """
    Latest Snapshot, replaced wholesale on each successful cycle.

    Snapshots are immutable and publication is a single reference swap, so a
    reader always gets a matching document and timestamp.
    """

    def __init__(self):
        self._snapshot: Optional[Snapshot] = None

    def read(self) -> Optional[Snapshot]:
        """Return the current Snapshot, or None if nothing was published yet."""
        return self._snapshot

    @property
    def is_ready(self) -> bool:
        return self._snapshot is not None

    def publish(self, snapshot: Snapshot) -> bool:
        """
        Replace the cached Snapshot.

        Args:
            snapshot: Newly completed snapshot

        Returns:
            True if published, False if it is older than the cached one
        """
        current = self._snapshot
        if current is not None and snapshot.completed_at < current.completed_at:
            logger.warning(
                f"Discarding snapshot completed at {snapshot.completed_at:.3f}, "
                f"older than cached {current.completed_at:.3f}"
            )
            return False

        self._snapshot = snapshot
        return True
