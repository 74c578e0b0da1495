import logging
import threading
import time
from typing import Callable, List, Optional


class LivenessMonitor:
    """Periodic probe that evicts connections which stopped answering.

    Each sweep closes connections that did not confirm the previous probe
    and probes the rest. Closing goes through the socket server so the
    registry's normal close handler runs.
    """

    def __init__(
        self,
        registry,
        probe: Callable[[str], None],
        close: Callable[[str], None],
        interval: float = 30.0,
        spawn: Optional[Callable] = None,
        sleep: Optional[Callable[[float], None]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.registry = registry
        self.probe = probe
        self.close = close
        self.interval = interval
        self._spawn = spawn
        self._sleep = sleep or time.sleep
        self._started = False
        self._start_lock = threading.Lock()
        self.logger = logger or logging.getLogger(__name__)

    def sweep(self) -> List[str]:
        evicted = []

        def _check(conn):
            if not conn.alive:
                evicted.append(conn.id)
                self.logger.info(f"[liveness-evict] conn={conn.id} user={conn.user_id}")
                self.close(conn.id)
                return
            conn.alive = False
            self.probe(conn.id)

        self.registry.for_each_live_connection(_check)
        return evicted

    def start(self) -> bool:
        """Start the sweep loop once. No-op without a spawner."""
        if self._spawn is None:
            return False
        with self._start_lock:
            if self._started:
                return False
            self._started = True
        self._spawn(self._run)
        return True

    def _run(self) -> None:
        while True:
            self._sleep(self.interval)
            try:
                self.sweep()
            except Exception:
                self.logger.exception('[liveness-error] sweep failed')
