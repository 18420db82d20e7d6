"""
Process lifecycle: STARTING -> RUNNING -> SHUTTING_DOWN -> STOPPED
"""

import logging
import threading
import time
from enum import Enum
from typing import Callable, List, Optional, Tuple

logger = logging.getLogger("geolite.lifecycle")


class LifecycleState(str, Enum):
    STARTING = "starting"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


# A unit's stop callable receives the remaining timeout and returns True once it has terminated
StopCallable = Callable[[Optional[float]], bool]


class ShutdownCoordinator:
    """Owns the shutdown signal shared by the serving loop and the refresh scheduler"""

    def __init__(self, timeout: Optional[float] = 120.0):
        self.timeout = timeout
        self.shutdown_requested = threading.Event()
        self._state = LifecycleState.STARTING
        self._lock = threading.Lock()
        self._units: List[Tuple[str, StopCallable]] = []

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def accepting_requests(self) -> bool:
        return self._state is LifecycleState.RUNNING

    def add_unit(self, name: str, stop: StopCallable):
        """Register a unit of work that must confirm termination before STOPPED"""
        self._units.append((name, stop))

    def mark_running(self):
        with self._lock:
            if self._state is not LifecycleState.STARTING:
                return
            self._state = LifecycleState.RUNNING
        logger.info("Service running", extra={"component": "lifecycle"})

    def begin_shutdown(self, reason: str = "requested") -> bool:
        """Enter SHUTTING_DOWN. Returns False if shutdown had already begun."""
        with self._lock:
            if self._state in (LifecycleState.SHUTTING_DOWN, LifecycleState.STOPPED):
                return False
            self._state = LifecycleState.SHUTTING_DOWN
            self.shutdown_requested.set()
        logger.info(f"Initiating graceful shutdown ({reason})...", extra={"component": "lifecycle"})
        return True

    def complete(self) -> bool:
        """Wait for every registered unit to stop, then enter STOPPED.

        Called once the serving loop has drained. Returns True if all units
        confirmed termination within the timeout.
        """
        self.begin_shutdown("serving loop stopped")
        deadline = None if self.timeout is None else time.monotonic() + self.timeout
        clean = True
        for name, stop in self._units:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            try:
                confirmed = stop(remaining)
            except Exception:
                logger.exception(f"Error while stopping {name}", extra={"component": "lifecycle"})
                confirmed = False
            if not confirmed:
                logger.warning(f"{name} did not confirm termination", extra={"component": "lifecycle"})
                clean = False

        with self._lock:
            self._state = LifecycleState.STOPPED
        logger.info("Shutdown complete", extra={"component": "lifecycle", "clean": clean})
        return clean
