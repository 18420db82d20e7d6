from fastapi import Request

from ..runtime import GeoRuntime


def get_runtime(request: Request) -> GeoRuntime:
    return request.app.state.runtime
