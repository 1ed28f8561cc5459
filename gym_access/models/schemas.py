# =======================================================================================
# gym_access/models/schemas.py - Pydantic Models
# =======================================================================================
from datetime import date, datetime
from typing import Optional, List
from pydantic import BaseModel, Field
from .enums import AdmissionOutcome, CheckpointStatus, EntryOrderField, OrderDirection

# ========== Admission ==========
class ScanRequest(BaseModel):
    """Card scan request model."""
    card_id: str = Field(..., max_length=256, description="Card identifier as scanned")

class ManualAdmissionRequest(BaseModel):
    """Unverified single-person admission."""
    name_or_card_id: str = Field(..., max_length=256, description="Visitor name or card identifier")

class AdmissionResult(BaseModel):
    """Outcome of one admission attempt."""
    outcome: AdmissionOutcome
    message: str
    member_name: Optional[str] = None
    card_id: Optional[str] = None
    membership_type_name: Optional[str] = None
    membership_end_date: Optional[date] = None
    remaining_visits: Optional[int] = None

    @property
    def allowed(self) -> bool:
        return self.outcome in (AdmissionOutcome.ALLOWED, AdmissionOutcome.ALLOWED_SINGLE)

# ========== Reconciliation ==========
class ReconciliationResult(BaseModel):
    pending_to_active: int = 0
    pending_to_inactive: int = 0
    pending_to_expired: int = 0
    active_to_expired: int = 0
    skipped: bool = False

    @property
    def total_changes(self) -> int:
        return (
            self.pending_to_active + self.pending_to_inactive
            + self.pending_to_expired + self.active_to_expired
        )

class CheckpointInfo(BaseModel):
    """Last recorded run of a scheduled check."""
    check_type: str
    last_run_at: datetime
    last_run_date: date
    status: CheckpointStatus
    pending_to_active: int = 0
    pending_to_inactive: int = 0
    pending_to_expired: int = 0
    active_to_expired: int = 0
    error_message: Optional[str] = None

# ========== Entry logs ==========
class EntryLogItem(BaseModel):
    id: int
    member_id: Optional[int] = None
    membership_id: Optional[int] = None
    member_name: Optional[str] = None
    membership_type_name: Optional[str] = None
    visits_left: Optional[int] = None
    card_id: Optional[str] = None
    entry_time: datetime
    entry_date: date
    status: str
    notes: Optional[str] = None

class EntryLogQuery(BaseModel):
    date_from: Optional[date] = Field(None, description="Inclusive local date")
    date_to: Optional[date] = Field(None, description="Inclusive local date")
    statuses: Optional[List[str]] = Field(None, description="Entry log status codes")
    search: Optional[str] = Field(None, description="Matches member name or card id")
    page: int = 1
    per_page: int = 50
    order_by: EntryOrderField = "entry_time"
    order_direction: OrderDirection = "desc"

class EntryLogPage(BaseModel):
    data: List[EntryLogItem]
    total: int
    page: int
    per_page: int
    total_pages: int

class EntryStats(BaseModel):
    total_entries: int
    allowed_entries: int
    denied_entries: int
    unique_members: int
    unique_days: int
    success_rate: float

class PurgeRequest(BaseModel):
    older_than_days: int = Field(..., description="0 purges everything")

class PurgeResponse(BaseModel):
    deleted: int

# ========== Administrative ==========
class MessageResponse(BaseModel):
    success: bool
    message: str

# ========== Health ==========
class HealthResponse(BaseModel):
    status: str                 # "ok" | "error"
    dataAvailable: bool
    message: Optional[str] = None
    lastSweep: Optional[CheckpointInfo] = None
