# =======================================================================================
# gym_access/api/routes/memberships.py - Administrative Membership Endpoints
# =======================================================================================
from datetime import date

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.engine import Connection

from ...models.schemas import MessageResponse
from ...services.membership_store import MembershipStore
from ...utils.clock import Clock
from ...utils.exceptions import NotFoundError
from ..dependencies import get_clock, get_db_connection, get_local_today, get_store

router = APIRouter()


@router.delete("/membership-types/{type_id}", response_model=MessageResponse)
def delete_membership_type(
    type_id: int,
    conn: Connection = Depends(get_db_connection),
    store: MembershipStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
):
    """Soft delete; memberships of this type become inactive."""
    try:
        affected = store.soft_delete_membership_type(conn, type_id, clock.now())
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return MessageResponse(
        success=True, message=f"Membership type deleted; {affected} memberships set inactive"
    )


@router.post("/memberships/{membership_id}/suspend", response_model=MessageResponse)
def suspend_membership(
    membership_id: int,
    conn: Connection = Depends(get_db_connection),
    store: MembershipStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
    today: date = Depends(get_local_today),
):
    try:
        status = store.set_membership_suspended(conn, membership_id, True, clock.now(), today)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return MessageResponse(success=True, message=f"Membership is now {status.value}")


@router.post("/memberships/{membership_id}/resume", response_model=MessageResponse)
def resume_membership(
    membership_id: int,
    conn: Connection = Depends(get_db_connection),
    store: MembershipStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
    today: date = Depends(get_local_today),
):
    """Lift a suspension; the status is re-derived from the membership's dates and visits."""
    try:
        status = store.set_membership_suspended(conn, membership_id, False, clock.now(), today)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return MessageResponse(success=True, message=f"Membership is now {status.value}")
