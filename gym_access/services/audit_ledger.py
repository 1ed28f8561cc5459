# =======================================================================================
# gym_access/services/audit_ledger.py - Entry Log Writes and Queries
# =======================================================================================
import math
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import bindparam, text
from sqlalchemy.engine import Connection

from ..config import config
from ..models.enums import EntryLogStatus
from ..models.schemas import EntryLogItem, EntryLogPage, EntryLogQuery, EntryStats
from ..utils.clock import to_db_timestamp
from ..utils.exceptions import LedgerValidationError

ENTRY_SELECT = """
    SELECT
        el.id,
        el.member_id,
        el.membership_id,
        CASE
            WHEN m.id IS NOT NULL THEN (m.first_name || ' ' || m.last_name)
            ELSE NULL
        END AS member_name,
        mt.name AS membership_type_name,
        ms.remaining_visits AS visits_left,
        el.card_id,
        el.entry_time,
        el.entry_date,
        el.status,
        el.notes
    FROM entry_logs el
    LEFT JOIN members m ON el.member_id = m.id
    LEFT JOIN memberships ms ON el.membership_id = ms.id
    LEFT JOIN membership_types mt ON ms.membership_type_id = mt.id
"""

ORDER_FIELDS = {
    "entry_time": "el.entry_time",
    "member_name": "(m.first_name || ' ' || m.last_name)",
    "status": "el.status",
    "card_id": "el.card_id",
}


def _clamp(value: Optional[int], default: int, low: int, high: int) -> int:
    if value is None:
        return default
    return max(low, min(high, value))


class AuditLedger:
    """Append-only record of admission attempts plus its read side."""

    # ---------- write path ----------

    def record_entry(
        self,
        conn: Connection,
        member_id: Optional[int],
        membership_id: Optional[int],
        card_id: Optional[str],
        status: EntryLogStatus,
        notes: str,
        now: datetime,
        local_date: date,
    ) -> int:
        result = conn.execute(
            text("""
                INSERT INTO entry_logs (member_id, membership_id, card_id, entry_time, entry_date, status, notes)
                VALUES (:member_id, :membership_id, :card_id, :entry_time, :entry_date, :status, :notes)
            """),
            {
                "member_id": member_id,
                "membership_id": membership_id,
                "card_id": card_id,
                "entry_time": to_db_timestamp(now),
                "entry_date": local_date.isoformat(),
                "status": status.value,
                "notes": notes,
            },
        )
        return result.lastrowid

    def has_allowed_entry_on(self, conn: Connection, member_id: int, local_date: date) -> bool:
        count = conn.execute(
            text("""
                SELECT COUNT(*) FROM entry_logs
                WHERE member_id = :member_id AND entry_date = :entry_date AND status = :allowed
            """),
            {
                "member_id": member_id,
                "entry_date": local_date.isoformat(),
                "allowed": EntryLogStatus.ALLOWED.value,
            },
        ).scalar()
        return bool(count)

    # ---------- read path ----------

    def _build_where(self, query: EntryLogQuery) -> Tuple[str, Dict[str, Any], bool]:
        conditions: List[str] = []
        params: Dict[str, Any] = {}
        expanding = False

        search = (query.search or "").strip().lower()
        if search:
            conditions.append(
                "(LOWER(m.first_name || ' ' || m.last_name) LIKE :pattern"
                " OR LOWER(COALESCE(el.card_id, '')) LIKE :pattern)"
            )
            params["pattern"] = f"%{search}%"

        statuses = [s.strip() for s in (query.statuses or []) if s and s.strip()]
        if statuses:
            conditions.append("el.status IN :statuses")
            params["statuses"] = statuses
            expanding = True

        if query.date_from:
            conditions.append("el.entry_date >= :date_from")
            params["date_from"] = query.date_from.isoformat()

        if query.date_to:
            conditions.append("el.entry_date <= :date_to")
            params["date_to"] = query.date_to.isoformat()

        where_clause = " AND ".join(conditions) if conditions else "1=1"
        return where_clause, params, expanding

    @staticmethod
    def _statement(sql: str, expanding: bool):
        stmt = text(sql)
        if expanding:
            stmt = stmt.bindparams(bindparam("statuses", expanding=True))
        return stmt

    def search(self, conn: Connection, query: EntryLogQuery) -> EntryLogPage:
        """Paginated, filtered, ordered entry log listing."""
        page = max(1, query.page or 1)
        per_page = _clamp(query.per_page, 50, 1, 100)
        offset = (page - 1) * per_page

        where_clause, params, expanding = self._build_where(query)

        total = conn.execute(
            self._statement(
                f"""
                SELECT COUNT(*)
                FROM entry_logs el
                LEFT JOIN members m ON el.member_id = m.id
                WHERE {where_clause}
                """,
                expanding,
            ),
            params,
        ).scalar() or 0

        order_field = ORDER_FIELDS.get(query.order_by, "el.entry_time")
        direction = "ASC" if (query.order_direction or "").lower() == "asc" else "DESC"

        rows = conn.execute(
            self._statement(
                f"""
                {ENTRY_SELECT}
                WHERE {where_clause}
                ORDER BY {order_field} {direction}, el.id {direction}
                LIMIT :limit OFFSET :offset
                """,
                expanding,
            ),
            {**params, "limit": per_page, "offset": offset},
        ).mappings().all()

        return EntryLogPage(
            data=[EntryLogItem(**r) for r in rows],
            total=total,
            page=page,
            per_page=per_page,
            total_pages=math.ceil(total / per_page) if total else 0,
        )

    def recent(self, conn: Connection, limit: Optional[int] = None) -> List[EntryLogItem]:
        limit = _clamp(limit, 100, 1, 500)
        rows = conn.execute(
            text(f"{ENTRY_SELECT} ORDER BY el.entry_time DESC, el.id DESC LIMIT :limit"),
            {"limit": limit},
        ).mappings().all()
        return [EntryLogItem(**r) for r in rows]

    def member_history(
        self, conn: Connection, member_id: int, limit: Optional[int] = None
    ) -> List[EntryLogItem]:
        limit = _clamp(limit, 50, 1, 200)
        rows = conn.execute(
            text(f"""
                {ENTRY_SELECT}
                WHERE el.member_id = :member_id
                ORDER BY el.entry_time DESC, el.id DESC
                LIMIT :limit
            """),
            {"member_id": member_id, "limit": limit},
        ).mappings().all()
        return [EntryLogItem(**r) for r in rows]

    def stats(
        self, conn: Connection, date_from: Optional[date] = None, date_to: Optional[date] = None
    ) -> EntryStats:
        conditions = ["1=1"]
        params: Dict[str, Any] = {"allowed": EntryLogStatus.ALLOWED.value}
        if date_from:
            conditions.append("entry_date >= :date_from")
            params["date_from"] = date_from.isoformat()
        if date_to:
            conditions.append("entry_date <= :date_to")
            params["date_to"] = date_to.isoformat()

        row = conn.execute(
            text(f"""
                SELECT
                    COUNT(*) AS total_entries,
                    SUM(CASE WHEN status = :allowed THEN 1 ELSE 0 END) AS allowed_entries,
                    SUM(CASE WHEN status LIKE 'denied%' THEN 1 ELSE 0 END) AS denied_entries,
                    COUNT(DISTINCT member_id) AS unique_members,
                    COUNT(DISTINCT entry_date) AS unique_days
                FROM entry_logs
                WHERE {" AND ".join(conditions)}
            """),
            params,
        ).mappings().first()

        total = int(row["total_entries"] or 0)
        allowed = int(row["allowed_entries"] or 0)
        return EntryStats(
            total_entries=total,
            allowed_entries=allowed,
            denied_entries=int(row["denied_entries"] or 0),
            unique_members=int(row["unique_members"] or 0),
            unique_days=int(row["unique_days"] or 0),
            success_rate=(allowed / total * 100.0) if total else 0.0,
        )

    # ---------- retention ----------

    def purge_older_than(self, conn: Connection, days: int, today: date) -> int:
        """
        Delete entries older than `days` local days. 0 deletes everything.
        Bounded by ENTRY_LOG_MAX_PURGE_DAYS.
        """
        if days is None or days < 0:
            raise LedgerValidationError("older_than_days must be zero or positive.")
        if days > config.ENTRY_LOG_MAX_PURGE_DAYS:
            raise LedgerValidationError(
                f"older_than_days cannot exceed {config.ENTRY_LOG_MAX_PURGE_DAYS}."
            )

        if days == 0:
            result = conn.execute(text("DELETE FROM entry_logs"))
        else:
            cutoff = today - timedelta(days=days)
            result = conn.execute(
                text("DELETE FROM entry_logs WHERE entry_date < :cutoff"),
                {"cutoff": cutoff.isoformat()},
            )
        return result.rowcount
