# =======================================================================================
# gym_access/api/routes/scan.py - Scan Endpoints
# =======================================================================================
from fastapi import APIRouter, Depends, HTTPException

from ...models.enums import AdmissionOutcome
from ...models.schemas import AdmissionResult, ManualAdmissionRequest, ScanRequest
from ...services.admission import AdmissionService
from ...utils.exceptions import ConfigurationError
from ..dependencies import get_admission_service

router = APIRouter()


def _respond(result: AdmissionResult) -> AdmissionResult:
    """Denials are normal responses; only bad input and infrastructure failures are errors."""
    if result.outcome == AdmissionOutcome.INVALID_INPUT:
        raise HTTPException(status_code=400, detail=result.message)
    if result.outcome == AdmissionOutcome.INTERNAL_ERROR:
        raise HTTPException(status_code=500, detail=result.message)
    return result


@router.post("/scan", response_model=AdmissionResult)
def handle_scan(
    request: ScanRequest, service: AdmissionService = Depends(get_admission_service)
):
    """Process a card scan."""
    try:
        return _respond(service.process_scan(request.card_id))
    except ConfigurationError:
        raise HTTPException(status_code=500, detail="Facility configuration error")


@router.post("/scan/manual", response_model=AdmissionResult)
def handle_manual_admission(
    request: ManualAdmissionRequest, service: AdmissionService = Depends(get_admission_service)
):
    """Let one unverified visitor in; recorded as allowed_single."""
    try:
        return _respond(service.process_manual_admission(request.name_or_card_id))
    except ConfigurationError:
        raise HTTPException(status_code=500, detail="Facility configuration error")
