# =======================================================================================
# gym_access/models/enums.py - Enums and Constants
# =======================================================================================
from enum import Enum
from typing import Literal

# Type aliases for better type hints
OrderDirection = Literal["asc", "desc"]
EntryOrderField = Literal["entry_time", "member_name", "status", "card_id"]

class MembershipStatus(str, Enum):
    """Closed set of membership states."""
    PENDING = "pending"
    ACTIVE = "active"
    INACTIVE = "inactive"
    EXPIRED = "expired"
    SUSPENDED = "suspended"

# Statuses that count as a live claim on a member's calendar.
LIVE_STATUSES = (MembershipStatus.ACTIVE, MembershipStatus.PENDING, MembershipStatus.SUSPENDED)

class AdmissionOutcome(str, Enum):
    """Result tag returned to the caller of a scan."""
    ALLOWED = "allowed"
    ALLOWED_SINGLE = "allowed_single"
    MEMBER_NOT_FOUND = "member_not_found"
    NO_MEMBERSHIP = "no_membership"
    MEMBERSHIP_EXPIRED = "membership_expired"
    NO_VISITS_LEFT = "no_visits_left"
    NOT_ACTIVE_YET = "not_active_yet"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"
    AFTER_HOURS = "after_hours"
    ALREADY_CHECKED_IN = "already_checked_in"
    INVALID_INPUT = "invalid_input"
    INTERNAL_ERROR = "internal_error"

class EntryLogStatus(str, Enum):
    """Status codes persisted in entry_logs.status."""
    ALLOWED = "allowed"
    ALLOWED_SINGLE = "allowed_single"
    DENIED_MEMBER_NOT_FOUND = "denied_member_not_found"
    DENIED_NO_MEMBERSHIP = "denied_no_membership"
    DENIED_MEMBERSHIP_EXPIRED = "denied_membership_expired"
    DENIED_NO_VISITS_LEFT = "denied_no_visits_left"
    DENIED_NOT_ACTIVE_YET = "denied_membership_not_active_yet"
    DENIED_INACTIVE = "denied_membership_inactive"
    DENIED_SUSPENDED = "denied_membership_suspended"
    DENIED_INVALID_STATUS = "denied_membership_invalid_status"
    DENIED_AFTER_HOURS = "denied_after_hours"
    DENIED_ALREADY_CHECKED_IN = "denied_already_checked_in"
    ERROR = "error"

class CheckpointStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    NO_CHANGES = "no_changes"

MEMBERSHIP_SWEEP = "membership_status"
