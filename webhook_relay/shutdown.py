"""One-shot shutdown coordination between request handlers and the supervisor."""

import logging
import threading
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class ShutdownState(str, Enum):
    """Lifecycle of the HTTP listener."""

    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"


class ShutdownCoordinator:
    """Carries a single shutdown reason from any thread to the supervisor.

    The first :meth:`trigger` wins; later triggers are logged and ignored, so
    a second push or a signal arriving during the drain cannot block.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._reason: Optional[str] = None
        self._state = ShutdownState.RUNNING

    @property
    def state(self) -> ShutdownState:
        with self._lock:
            return self._state

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    @property
    def stop_event(self) -> threading.Event:
        """Event set once shutdown is triggered; retry loops wait on it."""
        return self._stop_event

    def is_triggered(self) -> bool:
        return self._stop_event.is_set()

    def trigger(self, reason: str) -> bool:
        """Request shutdown.

        Args:
            reason: Human-readable reason, reported by the supervisor.

        Returns:
            True if this call initiated shutdown, False if it was already
            under way.
        """
        with self._lock:
            if self._state is not ShutdownState.RUNNING:
                logger.info(f"Shutdown already {self._state.value}; ignoring '{reason}'")
                return False
            self._reason = reason
            self._state = ShutdownState.DRAINING
            self._stop_event.set()

        logger.info(f"Shutdown requested: {reason}")
        return True

    def wait(self, timeout: Optional[float] = None) -> Optional[str]:
        """Block until shutdown is triggered.

        Returns:
            The shutdown reason, or None if ``timeout`` elapsed first.
        """
        if not self._stop_event.wait(timeout):
            return None
        return self._reason

    def mark_stopped(self) -> None:
        """Record that the listener has finished draining."""
        with self._lock:
            self._state = ShutdownState.STOPPED
