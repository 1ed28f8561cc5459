# =======================================================================================
# gym_access/api/routes/reconciliation.py - Sweep Endpoints
# =======================================================================================
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from ...models.schemas import CheckpointInfo, ReconciliationResult
from ...services.reconciliation import ReconciliationService
from ...utils.exceptions import ConfigurationError, DataAccessError
from ..dependencies import get_reconciliation_service

router = APIRouter()


@router.post("/reconciliation/run", response_model=ReconciliationResult)
def run_reconciliation(
    force: bool = False,
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    """Run the membership sweep now."""
    try:
        return service.run_once(force=force)
    except DataAccessError:
        raise HTTPException(status_code=500, detail="Membership sweep failed")
    except ConfigurationError:
        raise HTTPException(status_code=500, detail="Facility configuration error")


@router.get("/reconciliation/status", response_model=Optional[CheckpointInfo])
def reconciliation_status(
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    return service.last_checkpoint()
