# =======================================================================================
# gym_access/api/dependencies.py - FastAPI Dependencies
# =======================================================================================
import logging
from datetime import date

from fastapi import Depends, HTTPException, Request
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from ..database import DatabaseManager
from ..services.admission import AdmissionService
from ..services.audit_ledger import AuditLedger
from ..services.membership_store import MembershipStore
from ..services.reconciliation import ReconciliationService
from ..utils.clock import Clock, resolve_timezone
from ..utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def get_db(request: Request) -> DatabaseManager:
    return request.app.state.db


def get_clock(request: Request) -> Clock:
    return request.app.state.clock


def get_admission_service(request: Request) -> AdmissionService:
    return request.app.state.admission_service


def get_reconciliation_service(request: Request) -> ReconciliationService:
    return request.app.state.reconciliation_service


def get_ledger(request: Request) -> AuditLedger:
    return request.app.state.ledger


def get_store(request: Request) -> MembershipStore:
    return request.app.state.store


def get_db_connection(db: DatabaseManager = Depends(get_db)) -> Connection:
    """Dependency to get a write transaction."""
    try:
        with db.get_connection() as conn:
            yield conn
    except SQLAlchemyError:
        logger.exception("Database error in request")
        raise HTTPException(status_code=500, detail="Database error")


def get_read_connection(db: DatabaseManager = Depends(get_db)) -> Connection:
    """Dependency to get a read-only transaction."""
    try:
        with db.get_read_connection() as conn:
            yield conn
    except SQLAlchemyError:
        logger.exception("Database error in request")
        raise HTTPException(status_code=500, detail="Database error")


def get_local_today(request: Request, clock: Clock = Depends(get_clock)) -> date:
    """Today's date in the facility time zone."""
    try:
        return clock.local_today(resolve_timezone(request.app.state.timezone_name))
    except ConfigurationError:
        logger.error("Facility time zone %r is invalid", request.app.state.timezone_name)
        raise HTTPException(status_code=500, detail="Facility configuration error")
