# =======================================================================================
# gym_access/api/routes/entries.py - Entry Log Endpoints
# =======================================================================================
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.engine import Connection

from ...models.schemas import (
    EntryLogItem,
    EntryLogPage,
    EntryLogQuery,
    EntryStats,
    PurgeRequest,
    PurgeResponse,
)
from ...services.audit_ledger import AuditLedger
from ...utils.exceptions import LedgerValidationError
from ..dependencies import get_db_connection, get_ledger, get_local_today, get_read_connection

router = APIRouter()


@router.post("/entries/search", response_model=EntryLogPage)
def search_entries(
    query: EntryLogQuery,
    conn: Connection = Depends(get_read_connection),
    ledger: AuditLedger = Depends(get_ledger),
):
    return ledger.search(conn, query)


@router.get("/entries/recent", response_model=List[EntryLogItem])
def recent_entries(
    limit: Optional[int] = Query(None, description="1-500, default 100"),
    conn: Connection = Depends(get_read_connection),
    ledger: AuditLedger = Depends(get_ledger),
):
    return ledger.recent(conn, limit)


@router.get("/entries/stats", response_model=EntryStats)
def entry_stats(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    conn: Connection = Depends(get_read_connection),
    ledger: AuditLedger = Depends(get_ledger),
):
    return ledger.stats(conn, date_from, date_to)


@router.get("/members/{member_id}/entries", response_model=List[EntryLogItem])
def member_entries(
    member_id: int,
    limit: Optional[int] = Query(None, description="1-200, default 50"),
    conn: Connection = Depends(get_read_connection),
    ledger: AuditLedger = Depends(get_ledger),
):
    return ledger.member_history(conn, member_id, limit)


@router.post("/entries/purge", response_model=PurgeResponse)
def purge_entries(
    request: PurgeRequest,
    conn: Connection = Depends(get_db_connection),
    ledger: AuditLedger = Depends(get_ledger),
    today: date = Depends(get_local_today),
):
    """Administrative retention purge."""
    try:
        return PurgeResponse(deleted=ledger.purge_older_than(conn, request.older_than_days, today))
    except LedgerValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
