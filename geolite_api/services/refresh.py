"""
Refresh pipeline: fetch -> stage -> validate -> persist -> swap
"""

import logging
import os
import shutil
import tempfile
import threading
import time
from contextlib import suppress
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from ..errors import FetchError, SnapshotError, StagingError, StartupError
from .distributor import DistributorClient
from .prometheus_metrics import prometheus_metrics
from .snapshot import Snapshot, SnapshotStore, load_snapshot
from .staging import ArchiveStager

logger = logging.getLogger("geolite.refresh")

STAGING_PREFIX = "geolite-refresh-"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RefreshStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FETCH_FAILED = "fetch_failed"
    STAGING_FAILED = "staging_failed"
    VALIDATION_FAILED = "validation_failed"
    ALREADY_RUNNING = "already_running"


@dataclass(frozen=True)
class RefreshOutcome:
    status: RefreshStatus
    started_at: datetime
    finished_at: datetime
    snapshot_created_at: Optional[datetime] = None
    detail: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status is RefreshStatus.SUCCEEDED

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "snapshot_created_at": self.snapshot_created_at.isoformat() if self.snapshot_created_at else None,
            "detail": self.detail,
        }


class RefreshCoordinator:
    """Runs at most one refresh at a time and never leaves the store without a snapshot.

    A refresh requested while another is in flight is rejected with
    ALREADY_RUNNING rather than queued.
    """

    def __init__(
        self,
        store: SnapshotStore,
        distributor: DistributorClient,
        stager: ArchiveStager,
        db_path: str,
        expected_type: str = "City",
        staging_root: Optional[str] = None,
        initial_attempts: int = 3,
        initial_retry_sec: float = 5.0,
        shutdown_event: Optional[threading.Event] = None,
        loader: Callable[[str, str], Snapshot] = load_snapshot,
    ):
        self.store = store
        self.distributor = distributor
        self.stager = stager
        self.db_path = db_path
        self.expected_type = expected_type
        self.staging_root = staging_root
        self.initial_attempts = initial_attempts
        self.initial_retry_sec = initial_retry_sec
        self.loader = loader
        self.last_outcome: Optional[RefreshOutcome] = None
        self._shutdown = shutdown_event or threading.Event()
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until no refresh is in flight. Returns False on timeout."""
        acquired = self._lock.acquire(timeout=-1 if timeout is None else timeout)
        if acquired:
            self._lock.release()
        return acquired

    def refresh_now(self) -> RefreshOutcome:
        started_at = _utcnow()
        if not self._lock.acquire(blocking=False):
            logger.warning("Database refresh rejected: another refresh is in progress",
                           extra={"component": "refresh"})
            return RefreshOutcome(
                status=RefreshStatus.ALREADY_RUNNING,
                started_at=started_at,
                finished_at=_utcnow(),
                detail="a refresh is already in progress",
            )

        t0 = time.monotonic()
        try:
            logger.info("Updating GeoLite2 database...", extra={"component": "refresh"})
            outcome = self._run_pipeline(started_at)
            self.last_outcome = outcome
        finally:
            self._lock.release()

        prometheus_metrics.record_refresh(outcome.status.value, time.monotonic() - t0)
        if outcome.succeeded:
            logger.info("Database update successful", extra={
                "component": "refresh",
                "snapshot_created_at": outcome.snapshot_created_at.isoformat(),
            })
        else:
            logger.error(f"Database update failed: {outcome.detail}", extra={
                "component": "refresh",
                "outcome": outcome.status.value,
            })
        return outcome

    def _finish(self, status: RefreshStatus, started_at: datetime, detail: Optional[str] = None,
                snapshot: Optional[Snapshot] = None) -> RefreshOutcome:
        return RefreshOutcome(
            status=status,
            started_at=started_at,
            finished_at=_utcnow(),
            snapshot_created_at=snapshot.created_at if snapshot else None,
            detail=detail,
        )

    def _run_pipeline(self, started_at: datetime) -> RefreshOutcome:
        try:
            data = self.distributor.fetch()
        except FetchError as e:
            return self._finish(RefreshStatus.FETCH_FAILED, started_at, str(e))

        try:
            staging_dir = tempfile.mkdtemp(prefix=STAGING_PREFIX, dir=self.staging_root)
        except OSError as e:
            return self._finish(RefreshStatus.STAGING_FAILED, started_at, f"cannot create staging directory: {e}")

        try:
            try:
                staged_path = self.stager.stage(data, staging_dir)
            except StagingError as e:
                return self._finish(RefreshStatus.STAGING_FAILED, started_at, str(e))

            try:
                candidate = self.loader(staged_path, self.expected_type)
            except SnapshotError as e:
                return self._finish(RefreshStatus.VALIDATION_FAILED, started_at, str(e))

            try:
                self._persist(staged_path)
            except OSError as e:
                return self._finish(RefreshStatus.STAGING_FAILED, started_at, f"cannot install database file: {e}")

            self.store.swap(candidate)
            return self._finish(RefreshStatus.SUCCEEDED, started_at, snapshot=candidate)
        finally:
            shutil.rmtree(staging_dir, ignore_errors=True)
            if os.path.exists(staging_dir):
                logger.error(f"Staging directory could not be removed: {staging_dir}",
                             extra={"component": "refresh"})

    def _persist(self, staged_path: str) -> None:
        """Atomically replace the on-disk database with a validated file"""
        target = os.path.abspath(self.db_path)
        os.makedirs(os.path.dirname(target), exist_ok=True)
        tmp_path = target + ".tmp"
        try:
            shutil.copyfile(staged_path, tmp_path)
            os.replace(tmp_path, target)
        except OSError:
            with suppress(OSError):
                os.remove(tmp_path)
            raise

    def ensure_initial_snapshot(self) -> Snapshot:
        """Install a snapshot before serving starts; raises StartupError if none can be had"""
        if os.path.exists(self.db_path):
            try:
                snapshot = self.loader(self.db_path, self.expected_type)
            except SnapshotError as e:
                logger.error(f"On-disk database is unusable, downloading a fresh copy: {e}",
                             extra={"component": "refresh"})
            else:
                self.store.swap(snapshot)
                return snapshot
        else:
            logger.info(f"No database at {self.db_path}, downloading initial database...",
                        extra={"component": "refresh"})

        for attempt in range(1, self.initial_attempts + 1):
            outcome = self.refresh_now()
            if outcome.succeeded:
                return self.store.current()
            logger.warning(f"Initial database download attempt {attempt}/{self.initial_attempts} failed",
                           extra={"component": "refresh", "outcome": outcome.status.value})
            if attempt < self.initial_attempts and self._shutdown.wait(self.initial_retry_sec):
                break

        raise StartupError("could not obtain an initial GeoIP database")

    def status(self) -> dict:
        return {
            "refresh_running": self.is_running,
            "last_refresh": self.last_outcome.to_dict() if self.last_outcome else None,
        }
