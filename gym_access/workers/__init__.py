# =======================================================================================
# gym_access/workers/__init__.py - Workers Package
# =======================================================================================
from .reconciliation_worker import (
    ReconciliationWorker,
    start_reconciliation_worker,
    stop_reconciliation_worker,
)

__all__ = ["ReconciliationWorker", "start_reconciliation_worker", "stop_reconciliation_worker"]
