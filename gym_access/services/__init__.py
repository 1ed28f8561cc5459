# =======================================================================================
# gym_access/services/__init__.py - Services Package
# =======================================================================================
from .lifecycle import LifecyclePolicy
from .membership_store import MembershipStore, MemberRecord, MembershipRecord
from .audit_ledger import AuditLedger
from .admission import AdmissionService
from .reconciliation import ReconciliationService

__all__ = [
    "LifecyclePolicy", "MembershipStore", "MemberRecord", "MembershipRecord",
    "AuditLedger", "AdmissionService", "ReconciliationService",
]
