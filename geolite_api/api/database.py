"""
Database refresh trigger and snapshot status
"""

import logging
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..errors import SnapshotUnavailable
from ..runtime import GeoRuntime
from ..services.refresh import RefreshStatus
from .deps import get_runtime

logger = logging.getLogger("geolite.http")

router = APIRouter(tags=["database"])


@router.post("/database")
def trigger_refresh(runtime: GeoRuntime = Depends(get_runtime)):
    """Run a database refresh now and report its outcome"""
    if not runtime.settings.manual_refresh_enabled:
        return JSONResponse({"success": False, "message": "not found"}, status_code=404)

    logger.info("Manual database update requested")
    outcome = runtime.refresher.refresh_now()

    if outcome.succeeded:
        return {"success": True, "message": "Update initiated"}
    if outcome.status is RefreshStatus.ALREADY_RUNNING:
        return JSONResponse({"success": False, "message": "Update already in progress"}, status_code=409)
    return JSONResponse({"success": False, "message": "Update failed"}, status_code=500)


@router.get("/database")
def database_status(runtime: GeoRuntime = Depends(get_runtime)):
    """Describe the active snapshot and the refresh schedule"""
    try:
        snapshot = runtime.store.current().describe()
    except SnapshotUnavailable:
        snapshot = None

    next_run = runtime.scheduler.next_run_time()
    return {
        "success": True,
        "snapshot": snapshot,
        **runtime.refresher.status(),
        "next_refresh": next_run.isoformat() if next_run else None,
    }
