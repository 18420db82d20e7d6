import time
import uuid
import random
import logging
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .lifecycle import ShutdownCoordinator
from .logging_config import trace_id_var
from .services.prometheus_metrics import prometheus_metrics

logger = logging.getLogger("geolite.http")

# Paths that answer even while the service is not accepting lookups
UNGATED_PATHS = ("/healthz", "/metrics/prometheus")


class TracingMiddleware(BaseHTTPMiddleware):
    """Request tracing and structured access logging"""

    def __init__(self, app: ASGIApp, sample_rate: float = 1.0, exclude_paths=UNGATED_PATHS):
        super().__init__(app)
        self.sample_rate = sample_rate
        self.exclude_paths = set(exclude_paths)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Generate or reuse trace ID
        trace_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        token = trace_id_var.set(trace_id)
        client_ip = request.client.host if request.client else "unknown"
        start_time = time.time()

        try:
            response = await call_next(request)
            latency_ms = round((time.time() - start_time) * 1000, 2)
            self._log_request(request.method, request.url.path, response.status_code, latency_ms, client_ip)
            prometheus_metrics.increment_requests(response.status_code)
            response.headers["X-Request-ID"] = trace_id
            return response
        except Exception as e:
            latency_ms = round((time.time() - start_time) * 1000, 2)
            logger.error(f"Request failed: {e}", extra={
                "method": request.method,
                "path": request.url.path,
                "status": 500,
                "latency_ms": latency_ms,
                "client_ip": client_ip,
            })
            prometheus_metrics.increment_requests(500)
            raise
        finally:
            trace_id_var.reset(token)

    def _log_request(self, method: str, path: str, status: int, latency_ms: float, client_ip: str):
        if path in self.exclude_paths:
            return

        fields = {
            "method": method,
            "path": path,
            "status": status,
            "latency_ms": latency_ms,
            "client_ip": client_ip,
        }

        # Always log errors
        if status >= 400:
            logger.log(logging.ERROR if status >= 500 else logging.WARNING, "HTTP Request", extra=fields)
            return

        if random.random() > self.sample_rate:
            return
        logger.info("HTTP Request", extra=fields)


class ShutdownGateMiddleware(BaseHTTPMiddleware):
    """Rejects new requests unless the lifecycle is RUNNING"""

    def __init__(self, app: ASGIApp, lifecycle: ShutdownCoordinator):
        super().__init__(app)
        self.lifecycle = lifecycle

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not self.lifecycle.accepting_requests and request.url.path not in UNGATED_PATHS:
            return JSONResponse(
                {"success": False, "message": "Service unavailable"},
                status_code=503,
                headers={"Connection": "close"},
            )
        return await call_next(request)
