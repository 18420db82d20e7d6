"""
Public lookup endpoints
"""

import logging
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, PlainTextResponse

from ..errors import InvalidAddress, SnapshotUnavailable
from ..runtime import GeoRuntime
from ..schemas.geo import GeoRecord, ErrorResponse
from ..services.lookup import LookupStatus
from .deps import get_runtime

logger = logging.getLogger("geolite.http")

router = APIRouter(tags=["lookup"])

ROOT_TEXT = "GeoIP 🍡"


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"success": False, "message": message}, status_code=status_code)


@router.get("/", response_class=PlainTextResponse, include_in_schema=False)
def root():
    return ROOT_TEXT


@router.get(
    "/{address}",
    response_model=GeoRecord,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def lookup_address(address: str, runtime: GeoRuntime = Depends(get_runtime)):
    """Resolve an IPv4 or IPv6 address to its geo record"""
    try:
        result = runtime.lookup.resolve(address)
    except InvalidAddress:
        return _error(400, "Invalid IP address")
    except SnapshotUnavailable:
        logger.error("Lookup attempted without an installed database")
        return _error(500, "IP lookup failed")

    if result.status is LookupStatus.FOUND:
        return result.record
    if result.status is LookupStatus.NOT_FOUND:
        return _error(404, "not found")
    return _error(500, "IP lookup failed")
