"""
Wiring of the lookup service components for one process
"""

from dataclasses import dataclass
from typing import Optional

from .config import Settings
from .lifecycle import ShutdownCoordinator
from .services.distributor import DistributorClient
from .services.lookup import LookupService
from .services.refresh import RefreshCoordinator
from .services.scheduler import RefreshScheduler
from .services.snapshot import SnapshotStore
from .services.staging import ArchiveStager


@dataclass
class GeoRuntime:
    settings: Settings
    store: SnapshotStore
    lifecycle: ShutdownCoordinator
    refresher: RefreshCoordinator
    scheduler: RefreshScheduler
    lookup: LookupService

    @classmethod
    def from_settings(cls, settings: Settings, distributor: Optional[DistributorClient] = None,
                      store: Optional[SnapshotStore] = None, **refresher_kwargs) -> "GeoRuntime":
        store = store or SnapshotStore()
        lifecycle = ShutdownCoordinator(timeout=settings.shutdown_timeout_sec)
        distributor = distributor or DistributorClient(
            url=settings.resolved_download_url,
            account_id=settings.account_id,
            license_key=settings.license_key,
            timeout=settings.fetch_timeout_sec,
        )
        refresher = RefreshCoordinator(
            store=store,
            distributor=distributor,
            stager=ArchiveStager(filename=f"{settings.edition_id}.mmdb"),
            db_path=settings.db_path,
            expected_type=settings.expected_type,
            staging_root=settings.staging_dir,
            initial_attempts=settings.initial_refresh_attempts,
            initial_retry_sec=settings.initial_refresh_retry_sec,
            shutdown_event=lifecycle.shutdown_requested,
            **refresher_kwargs,
        )
        scheduler = RefreshScheduler(
            refresher,
            lifecycle.shutdown_requested,
            day_of_week=settings.refresh_day_of_week,
            hour=settings.refresh_hour,
            minute=settings.refresh_minute,
            enabled=settings.refresh_enabled,
        )
        # Scheduler first: once it is down no new refresh can start
        lifecycle.add_unit("scheduler", scheduler.stop)
        lifecycle.add_unit("refresh", refresher.wait_idle)
        return cls(
            settings=settings,
            store=store,
            lifecycle=lifecycle,
            refresher=refresher,
            scheduler=scheduler,
            lookup=LookupService(store),
        )

    def bootstrap(self):
        """Block until a snapshot is installed; raises StartupError"""
        self.refresher.ensure_initial_snapshot()

    def start(self):
        self.scheduler.start()
        self.lifecycle.mark_running()

    def stop(self) -> bool:
        return self.lifecycle.complete()
