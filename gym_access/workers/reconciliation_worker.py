# =======================================================================================
# gym_access/workers/reconciliation_worker.py - Background Sweep Worker
# =======================================================================================
import logging
import threading
from typing import Optional

from ..config import config
from ..models.schemas import ReconciliationResult
from ..services.reconciliation import ReconciliationService
from ..utils.exceptions import GymAccessError

logger = logging.getLogger(__name__)


class ReconciliationWorker:
    """Runs the membership sweep on a fixed interval in a background thread."""

    def __init__(
        self,
        service: Optional[ReconciliationService] = None,
        interval_seconds: Optional[float] = None,
    ):
        self.service = service or ReconciliationService()
        self.interval_seconds = interval_seconds if interval_seconds is not None else config.SWEEP_INTERVAL_SECONDS
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.ticks = 0
        self.failures = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # ------------------------------------------------------------------
    # Start / Stop
    # ------------------------------------------------------------------
    def start(self):
        """Start the sweep loop in a background thread."""
        if self.running:
            logger.warning("Reconciliation worker is already running")
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop, name="reconciliation-worker", daemon=True
        )
        self._thread.start()
        logger.info("Reconciliation worker started (every %ss)", self.interval_seconds)

    def stop(self, timeout: Optional[float] = 10.0):
        """Stop issuing ticks and wait for an in-flight sweep to finish."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning("Reconciliation worker did not stop within %ss", timeout)
            else:
                logger.info("Reconciliation worker stopped")
        self._thread = None

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------
    def _run_loop(self):
        while not self._stop_event.is_set():
            self.run_now()
            self._stop_event.wait(self.interval_seconds)

    def run_now(self) -> Optional[ReconciliationResult]:
        """One tick. A failed pass is logged and retried on the next tick."""
        self.ticks += 1
        try:
            return self.service.run_once()
        except GymAccessError as e:
            self.failures += 1
            logger.error("Reconciliation tick failed: %s; retrying in %ss", e, self.interval_seconds)
        except Exception:
            self.failures += 1
            logger.exception("Unexpected error in reconciliation tick")
        return None


# ----------------------------------------------------------------------
# Global instance + entrypoint
# ----------------------------------------------------------------------
reconciliation_worker: Optional[ReconciliationWorker] = None


def start_reconciliation_worker(service: Optional[ReconciliationService] = None) -> ReconciliationWorker:
    """Called from FastAPI startup."""
    global reconciliation_worker
    if reconciliation_worker is None:
        reconciliation_worker = ReconciliationWorker(service)
    reconciliation_worker.start()
    return reconciliation_worker


def stop_reconciliation_worker():
    """Called from FastAPI shutdown."""
    global reconciliation_worker
    if reconciliation_worker is not None:
        reconciliation_worker.stop()
        reconciliation_worker = None
