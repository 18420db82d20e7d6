"""
In-memory database snapshots and the store that owns the active one
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

import geoip2.database
import maxminddb

from ..errors import SnapshotError, SnapshotUnavailable
from .prometheus_metrics import prometheus_metrics

logger = logging.getLogger("geolite.snapshot")


@dataclass(frozen=True)
class Snapshot:
    """A fully parsed, queryable database plus its provenance. Never mutated."""

    reader: geoip2.database.Reader = field(repr=False, compare=False)
    source: str
    database_type: str
    build_epoch: int
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def describe(self) -> dict:
        return {
            "database_type": self.database_type,
            "build_epoch": self.build_epoch,
            "built_at": datetime.fromtimestamp(self.build_epoch, timezone.utc).isoformat(),
            "loaded_at": self.created_at.isoformat(),
            "source": self.source,
        }


def load_snapshot(path: str, expected_type: str = "City") -> Snapshot:
    """Parse a database file into a snapshot.

    The reader is opened in memory mode, so the snapshot keeps its own copy
    of the bytes and the file on disk may be replaced afterwards.
    """
    try:
        reader = geoip2.database.Reader(path, mode=maxminddb.MODE_MEMORY)
        metadata = reader.metadata()
    except (maxminddb.InvalidDatabaseError, OSError, ValueError, TypeError) as e:
        raise SnapshotError(f"cannot parse database {path}: {e}") from e

    if expected_type and expected_type not in metadata.database_type:
        raise SnapshotError(
            f"database {path} has type {metadata.database_type!r}, expected {expected_type!r}"
        )

    return Snapshot(
        reader=reader,
        source=path,
        database_type=metadata.database_type,
        build_epoch=metadata.build_epoch,
    )


class SnapshotStore:
    """Holds the active snapshot.

    Readers take a reference with current() and keep using it for the whole
    lookup; swap() only replaces the reference, so a superseded snapshot is
    reclaimed once its last reader drops it.
    """

    def __init__(self, snapshot: Optional[Snapshot] = None):
        self._lock = threading.Lock()
        self._snapshot = snapshot

    def has_snapshot(self) -> bool:
        return self._snapshot is not None

    def current(self) -> Snapshot:
        # Reading a single attribute is atomic; no lock on the read path
        snapshot = self._snapshot
        if snapshot is None:
            raise SnapshotUnavailable("no database snapshot installed")
        return snapshot

    def swap(self, new_snapshot: Snapshot) -> Optional[Snapshot]:
        """Install new_snapshot, returning the one it replaced"""
        if new_snapshot is None:
            raise ValueError("cannot install an empty snapshot")
        with self._lock:
            previous, self._snapshot = self._snapshot, new_snapshot

        prometheus_metrics.set_snapshot(new_snapshot.build_epoch, new_snapshot.created_at.timestamp())
        logger.info("Database snapshot installed", extra={
            "component": "snapshot",
            "database_type": new_snapshot.database_type,
            "build_epoch": new_snapshot.build_epoch,
            "source": new_snapshot.source,
            "replaced": previous is not None,
        })
        return previous
