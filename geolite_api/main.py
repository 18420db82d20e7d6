import logging
import signal
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from starlette.concurrency import run_in_threadpool

from .api.database import router as database_router
from .api.health import router as health_router
from .api.lookup import router as lookup_router
from .api.prometheus import router as prometheus_router
from .config import API_VERSION, Settings
from .errors import ConfigError, StartupError
from .lifecycle import ShutdownCoordinator
from .logging_config import setup_logging
from .middleware import ShutdownGateMiddleware, TracingMiddleware
from .runtime import GeoRuntime

logger = logging.getLogger("geolite.api")

EXIT_OK = 0
EXIT_STARTUP_FAILED = 1
EXIT_CONFIG_ERROR = 2


def create_app(runtime: GeoRuntime) -> FastAPI:
    """Build the FastAPI application around an already bootstrapped runtime"""

    @asynccontextmanager
    async def lifespan(application: FastAPI):
        # Startup
        runtime.start()
        logger.info("GeoLite API ready", extra={
            "component": "api",
            "snapshot": runtime.store.current().describe(),
        })
        try:
            yield
        finally:
            # The serving loop has drained; wait for the scheduler and any refresh off the event loop
            await run_in_threadpool(runtime.stop)

    app = FastAPI(title="GeoLite IP Lookup API", version=API_VERSION, lifespan=lifespan)
    app.state.runtime = runtime

    # Last added runs first: trace every request, then gate on lifecycle
    app.add_middleware(ShutdownGateMiddleware, lifecycle=runtime.lifecycle)
    app.add_middleware(TracingMiddleware)

    # Fixed paths before the catch-all /{address}
    app.include_router(health_router)
    app.include_router(prometheus_router)
    app.include_router(database_router)
    app.include_router(lookup_router)
    return app


class GeoServer(uvicorn.Server):
    """uvicorn server that flags the lifecycle as soon as a termination signal arrives"""

    def __init__(self, config: uvicorn.Config, lifecycle: ShutdownCoordinator):
        super().__init__(config)
        self.lifecycle = lifecycle

    def handle_exit(self, sig: int, frame) -> None:
        try:
            reason = f"{signal.Signals(sig).name} received"
        except ValueError:
            reason = f"signal {sig} received"
        self.lifecycle.begin_shutdown(reason)
        super().handle_exit(sig, frame)


def serve(runtime: GeoRuntime) -> int:
    settings = runtime.settings
    app = create_app(runtime)
    config = uvicorn.Config(
        app,
        host=settings.host,
        port=settings.port,
        log_config=None,
        access_log=False,
    )
    server = GeoServer(config, runtime.lifecycle)
    logger.info(f"Server running on {settings.host}:{settings.port}")
    server.run()
    if not server.started:
        return EXIT_STARTUP_FAILED
    return EXIT_OK


def install_signal_handlers(lifecycle: ShutdownCoordinator) -> None:
    """Route SIGINT/SIGTERM to the lifecycle outside of uvicorn's own handling.

    Covers the startup download, and signals uvicorn re-raises after it has
    restored these handlers.
    """
    def _handler(sig, frame):
        lifecycle.begin_shutdown(f"{signal.Signals(sig).name} received")

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)


def main() -> int:
    try:
        settings = Settings.from_env()
    except ConfigError as e:
        setup_logging()
        logger.error(f"Invalid configuration: {e}")
        return EXIT_CONFIG_ERROR

    setup_logging(settings.log_level, settings.log_format)
    logger.info("GeoLite API starting up", extra={"component": "api", "version": API_VERSION})
    if not settings.has_credentials:
        logger.warning("ACCOUNT_ID / LICENSE_KEY not set; database downloads will fail")

    runtime = GeoRuntime.from_settings(settings)
    install_signal_handlers(runtime.lifecycle)
    try:
        runtime.bootstrap()
    except StartupError as e:
        if runtime.lifecycle.shutdown_requested.is_set():
            logger.info("Shutdown requested during initial database download; not serving")
            runtime.stop()
            return EXIT_OK
        logger.error(f"Startup failed: {e}")
        return EXIT_STARTUP_FAILED

    if runtime.lifecycle.shutdown_requested.is_set():
        logger.info("Shutdown requested during startup; not serving")
        runtime.stop()
        return EXIT_OK

    return serve(runtime)


if __name__ == "__main__":
    raise SystemExit(main())
