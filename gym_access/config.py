# =======================================================================================
# gym_access/config.py - Configuration Management
# =======================================================================================
import os
from typing import Optional
from dotenv import load_dotenv

load_dotenv()

def _env_int(name: str, default: Optional[int] = None) -> Optional[int]:
    """Helper to parse integer environment variables."""
    v = os.getenv(name)
    return int(v) if v and v.strip().lstrip("-").isdigit() else default

def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")

class Config:
    # Database
    DB_URL: str = os.getenv("DB_URL", "sqlite:///./gym_access.sqlite")
    DB_POOL_SIZE: int = _env_int("DB_POOL_SIZE", 10)
    DB_MAX_OVERFLOW: int = _env_int("DB_MAX_OVERFLOW", 20)
    DB_BUSY_TIMEOUT_MS: int = _env_int("DB_BUSY_TIMEOUT_MS", 5000)

    # API Settings
    API_DEBUG: bool = _env_bool("API_DEBUG")
    API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
    API_PORT: int = _env_int("API_PORT", 8000)
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # Facility
    FACILITY_TIMEZONE: str = os.getenv("FACILITY_TIMEZONE", "Europe/Belgrade")

    # Reconciliation sweep
    SWEEP_ENABLED: bool = _env_bool("SWEEP_ENABLED", "true")
    SWEEP_INTERVAL_SECONDS: int = _env_int("SWEEP_INTERVAL_SECONDS", 300)

    # Credential format
    CARD_ID_MAX_LENGTH: int = _env_int("CARD_ID_MAX_LENGTH", 64)
    CARD_ID_PATTERN: str = os.getenv("CARD_ID_PATTERN", r"^[A-Za-z0-9:_\-]+$")

    # Entry log retention
    ENTRY_LOG_MAX_PURGE_DAYS: int = _env_int("ENTRY_LOG_MAX_PURGE_DAYS", 3650)

config = Config()
