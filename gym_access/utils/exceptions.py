# =======================================================================================
# gym_access/utils/exceptions.py - Custom Exceptions
# =======================================================================================
class GymAccessError(Exception):
    """Base exception for the gym access system."""
    pass

class InvalidCredentialError(GymAccessError):
    """Raised when a scanned credential is empty or malformed."""
    pass

class NotFoundError(GymAccessError):
    """Raised when a referenced row does not exist."""
    pass

class OverlappingMembershipError(GymAccessError):
    """Raised when a member already holds a live membership for the requested dates."""
    pass

class InvalidMembershipStatusError(GymAccessError):
    """Raised when a stored status is outside the known set."""

    def __init__(self, raw_status):
        super().__init__(f"Unknown membership status: {raw_status!r}")
        self.raw_status = raw_status

class ConfigurationError(GymAccessError):
    """Raised when configuration (e.g. the facility time zone) is unusable."""
    pass

class DataAccessError(GymAccessError):
    """Raised when the store fails. Carries no driver detail in its message."""
    pass

class LedgerValidationError(GymAccessError):
    """Raised when an entry log query or purge request is out of bounds."""
    pass
