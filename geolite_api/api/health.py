"""
Health check endpoint - reports the process lifecycle state
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..lifecycle import LifecycleState
from ..runtime import GeoRuntime
from .deps import get_runtime

router = APIRouter()


@router.get("/healthz", include_in_schema=False)
def healthz(runtime: GeoRuntime = Depends(get_runtime)):
    state = runtime.lifecycle.state
    ok = state is LifecycleState.RUNNING and runtime.store.has_snapshot()
    return JSONResponse(
        {"status": "ok" if ok else "unavailable", "state": state.value},
        status_code=200 if ok else 503,
    )
