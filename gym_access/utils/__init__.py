# =======================================================================================
# gym_access/utils/__init__.py - Utils Package
# =======================================================================================
from .exceptions import *
from .validators import *
from .clock import Clock, system_clock, resolve_timezone, as_date, to_db_timestamp

__all__ = [
    "GymAccessError", "InvalidCredentialError", "NotFoundError", "OverlappingMembershipError",
    "InvalidMembershipStatusError", "ConfigurationError", "DataAccessError",
    "LedgerValidationError", "CredentialValidator", "Clock", "system_clock",
    "resolve_timezone", "as_date", "to_db_timestamp",
]
