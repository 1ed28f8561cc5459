# =======================================================================================
# gym_access/main.py - FastAPI Application Entry Point
# =======================================================================================
import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from .config import config
from .database import DatabaseManager, db_manager
from .api.routes.scan import router as scan_router
from .api.routes.entries import router as entries_router
from .api.routes.reconciliation import router as reconciliation_router
from .api.routes.memberships import router as memberships_router
from .models.schemas import HealthResponse
from .services.admission import AdmissionService
from .services.audit_ledger import AuditLedger
from .services.membership_store import MembershipStore
from .services.reconciliation import ReconciliationService
from .utils.clock import Clock, system_clock
from .workers.reconciliation_worker import start_reconciliation_worker, stop_reconciliation_worker

logger = logging.getLogger(__name__)


def configure_logging(level: Optional[str] = None):
    logging.basicConfig(
        level=level or config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app(
    db: Optional[DatabaseManager] = None,
    clock: Optional[Clock] = None,
    timezone_name: Optional[str] = None,
    start_worker: Optional[bool] = None,
) -> FastAPI:
    configure_logging()

    db = db or db_manager
    clock = clock or system_clock
    timezone_name = timezone_name or config.FACILITY_TIMEZONE
    start_worker = config.SWEEP_ENABLED if start_worker is None else start_worker

    app = FastAPI(
        title="Gym Access API",
        version="1.0.0",
        description="Membership admission and lifecycle engine",
        debug=config.API_DEBUG,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    store = MembershipStore(row_locks=db.supports_row_locks)
    ledger = AuditLedger()
    app.state.db = db
    app.state.clock = clock
    app.state.timezone_name = timezone_name
    app.state.store = store
    app.state.ledger = ledger
    app.state.admission_service = AdmissionService(
        db=db, store=store, ledger=ledger, clock=clock, timezone_name=timezone_name
    )
    app.state.reconciliation_service = ReconciliationService(
        db=db, store=store, clock=clock, timezone_name=timezone_name
    )

    # Routers
    app.include_router(scan_router, prefix="/api", tags=["scan"])
    app.include_router(entries_router, prefix="/api", tags=["entries"])
    app.include_router(reconciliation_router, prefix="/api", tags=["reconciliation"])
    app.include_router(memberships_router, prefix="/api", tags=["memberships"])

    @app.get("/api/health", response_model=HealthResponse, tags=["health"])
    def api_health():
        try:
            db.fetch_one("SELECT 1")
            last_sweep = app.state.reconciliation_service.last_checkpoint()
            return HealthResponse(status="ok", dataAvailable=True, message=None, lastSweep=last_sweep)
        except SQLAlchemyError:
            logger.exception("Health check failed")
            return HealthResponse(status="error", dataAvailable=False, message="Database unavailable")

    @app.on_event("startup")
    def startup_event():
        db.create_schema()
        if start_worker:
            start_reconciliation_worker(app.state.reconciliation_service)
        logger.info("Gym Access API started")

    @app.on_event("shutdown")
    def shutdown_event():
        if start_worker:
            stop_reconciliation_worker()
        logger.info("Gym Access API stopped")

    return app


def run():
    """Console entrypoint."""
    import uvicorn

    uvicorn.run("gym_access.main:app", host=config.API_HOST, port=config.API_PORT)


app = create_app()
