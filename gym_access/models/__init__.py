# =======================================================================================
# gym_access/models/__init__.py - Models Package
# =======================================================================================
from .schemas import *
from .enums import *

__all__ = [
    "ScanRequest", "ManualAdmissionRequest", "AdmissionResult", "ReconciliationResult",
    "CheckpointInfo", "EntryLogItem", "EntryLogQuery", "EntryLogPage", "EntryStats",
    "PurgeRequest", "PurgeResponse", "MessageResponse", "HealthResponse",
    "MembershipStatus", "AdmissionOutcome", "EntryLogStatus", "CheckpointStatus",
    "LIVE_STATUSES", "MEMBERSHIP_SWEEP", "OrderDirection", "EntryOrderField",
]
