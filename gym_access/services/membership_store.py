# =======================================================================================
# gym_access/services/membership_store.py - Members, Memberships and Checkpoints
# =======================================================================================
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.engine import Connection

from ..models.enums import LIVE_STATUSES, CheckpointStatus, MembershipStatus
from ..models.schemas import CheckpointInfo
from ..utils.clock import as_date, to_db_timestamp
from ..utils.exceptions import (
    InvalidMembershipStatusError,
    NotFoundError,
    OverlappingMembershipError,
)
from .lifecycle import LifecyclePolicy

logger = logging.getLogger(__name__)


@dataclass
class MemberRecord:
    id: int
    card_id: Optional[str]
    short_card_id: Optional[str]
    first_name: str
    last_name: str

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass
class MembershipRecord:
    id: int
    member_id: int
    membership_type_id: int
    membership_type_name: Optional[str]
    enter_by: Optional[int]
    start_date: Optional[date]
    end_date: Optional[date]
    remaining_visits: Optional[int]
    status: MembershipStatus
    purchase_date: Optional[str]


def parse_status(raw: Any) -> MembershipStatus:
    """Map a stored status onto the enum; anything else is rejected."""
    try:
        return MembershipStatus(str(raw).strip().lower())
    except ValueError:
        raise InvalidMembershipStatusError(raw)


class MembershipStore:
    """
    Persistence for members, memberships and sweep checkpoints.
    Every method runs on a caller-supplied connection so that the caller
    owns the transaction boundary.
    """

    def __init__(self, row_locks: bool = False):
        # FOR UPDATE is only needed when the store is not single-writer.
        self._lock_clause = " FOR UPDATE" if row_locks else ""

    # ---------- members ----------

    def find_member_by_card(self, conn: Connection, card_id: str) -> Optional[MemberRecord]:
        """Resolve a full or short card id among non-deleted members."""
        row = conn.execute(
            text("""
                SELECT id, card_id, short_card_id, first_name, last_name
                FROM members
                WHERE (card_id = :card OR short_card_id = :card) AND is_deleted = 0
                ORDER BY CASE WHEN card_id = :card THEN 0 ELSE 1 END, id
                LIMIT 1
            """),
            {"card": card_id},
        ).mappings().first()
        return MemberRecord(**row) if row else None

    def create_member(
        self,
        conn: Connection,
        card_id: Optional[str],
        first_name: str,
        last_name: str,
        now: datetime,
        short_card_id: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        date_of_birth: Optional[date] = None,
    ) -> int:
        ts = to_db_timestamp(now)
        result = conn.execute(
            text("""
                INSERT INTO members (card_id, short_card_id, first_name, last_name, email, phone,
                                     date_of_birth, created_at, updated_at, is_deleted)
                VALUES (:card, :short, :first, :last, :email, :phone, :dob, :ts, :ts, 0)
            """),
            {
                "card": card_id, "short": short_card_id, "first": first_name,
                "last": last_name, "email": email, "phone": phone,
                "dob": date_of_birth.isoformat() if date_of_birth else None, "ts": ts,
            },
        )
        return result.lastrowid

    def soft_delete_member(self, conn: Connection, member_id: int, now: datetime) -> None:
        result = conn.execute(
            text("UPDATE members SET is_deleted = 1, updated_at = :ts WHERE id = :id AND is_deleted = 0"),
            {"ts": to_db_timestamp(now), "id": member_id},
        )
        if result.rowcount == 0:
            raise NotFoundError(f"Member with id {member_id} not found.")

    # ---------- membership types ----------

    def create_membership_type(
        self,
        conn: Connection,
        name: str,
        now: datetime,
        duration_days: Optional[int] = None,
        visit_limit: Optional[int] = None,
        enter_by: Optional[int] = None,
        price: float = 0.0,
        description: Optional[str] = None,
    ) -> int:
        ts = to_db_timestamp(now)
        result = conn.execute(
            text("""
                INSERT INTO membership_types (name, duration_days, visit_limit, enter_by, price,
                                              description, created_at, updated_at, is_deleted)
                VALUES (:name, :days, :visits, :enter_by, :price, :description, :ts, :ts, 0)
            """),
            {
                "name": name, "days": duration_days, "visits": visit_limit,
                "enter_by": enter_by, "price": price, "description": description, "ts": ts,
            },
        )
        return result.lastrowid

    def soft_delete_membership_type(self, conn: Connection, type_id: int, now: datetime) -> int:
        """
        Rename and flag the type, then force every membership that still
        references it to inactive. Returns the number of memberships touched.
        """
        current = conn.execute(
            text("SELECT name FROM membership_types WHERE id = :id AND is_deleted = 0"),
            {"id": type_id},
        ).mappings().first()
        if not current:
            raise NotFoundError(f"Membership type with id {type_id} not found.")

        ts = to_db_timestamp(now)
        deleted_name = f"{current['name']}_deleted_{int(now.timestamp())}"
        conn.execute(
            text("""
                UPDATE membership_types
                SET name = :name, is_deleted = 1, updated_at = :ts
                WHERE id = :id
            """),
            {"name": deleted_name, "ts": ts, "id": type_id},
        )
        result = conn.execute(
            text("""
                UPDATE memberships
                SET status = :inactive, updated_at = :ts
                WHERE membership_type_id = :id AND is_deleted = 0
            """),
            {"inactive": MembershipStatus.INACTIVE.value, "ts": ts, "id": type_id},
        )
        logger.info("Membership type %s deleted; %s memberships set inactive", type_id, result.rowcount)
        return result.rowcount

    # ---------- memberships ----------

    def _membership_from_row(self, row) -> MembershipRecord:
        return MembershipRecord(
            id=row["id"],
            member_id=row["member_id"],
            membership_type_id=row["membership_type_id"],
            membership_type_name=row["membership_type_name"],
            enter_by=row["enter_by"],
            start_date=as_date(row["start_date"]),
            end_date=as_date(row["end_date"]),
            remaining_visits=row["remaining_visits"],
            status=parse_status(row["status"]),
            purchase_date=row["purchase_date"],
        )

    def list_member_memberships(self, conn: Connection, member_id: int) -> List[MembershipRecord]:
        """All non-deleted memberships of a member, joined with their type."""
        rows = conn.execute(
            text(f"""
                SELECT ms.id, ms.member_id, ms.membership_type_id,
                       mt.name AS membership_type_name, mt.enter_by AS enter_by,
                       ms.start_date, ms.end_date, ms.remaining_visits,
                       ms.status, ms.purchase_date
                FROM memberships ms
                LEFT JOIN membership_types mt ON ms.membership_type_id = mt.id
                WHERE ms.member_id = :member_id AND ms.is_deleted = 0
                ORDER BY ms.id{self._lock_clause}
            """),
            {"member_id": member_id},
        ).mappings().all()
        return [self._membership_from_row(r) for r in rows]

    def get_membership(self, conn: Connection, membership_id: int) -> MembershipRecord:
        row = conn.execute(
            text(f"""
                SELECT ms.id, ms.member_id, ms.membership_type_id,
                       mt.name AS membership_type_name, mt.enter_by AS enter_by,
                       ms.start_date, ms.end_date, ms.remaining_visits,
                       ms.status, ms.purchase_date
                FROM memberships ms
                LEFT JOIN membership_types mt ON ms.membership_type_id = mt.id
                WHERE ms.id = :id AND ms.is_deleted = 0{self._lock_clause}
            """),
            {"id": membership_id},
        ).mappings().first()
        if not row:
            raise NotFoundError(f"Membership with id {membership_id} not found.")
        return self._membership_from_row(row)

    def create_membership(
        self,
        conn: Connection,
        member_id: int,
        membership_type_id: int,
        start_date: date,
        end_date: Optional[date],
        remaining_visits: Optional[int],
        now: datetime,
        today: date,
        suspended: bool = False,
    ) -> int:
        """Insert a membership, refusing overlaps with the member's live memberships."""
        overlapping = conn.execute(
            text("""
                SELECT COUNT(*) FROM memberships
                WHERE member_id = :member_id AND is_deleted = 0
                  AND status IN (:s1, :s2, :s3)
                  AND (end_date IS NULL OR end_date >= :start)
                  AND (:end IS NULL OR start_date <= :end)
            """),
            {
                "member_id": member_id,
                "s1": LIVE_STATUSES[0].value, "s2": LIVE_STATUSES[1].value, "s3": LIVE_STATUSES[2].value,
                "start": start_date.isoformat(),
                "end": end_date.isoformat() if end_date else None,
            },
        ).scalar()
        if overlapping:
            logger.warning("Member %s already has an overlapping membership", member_id)
            raise OverlappingMembershipError(
                f"Member with id {member_id} already has an overlapping membership."
            )

        status = LifecyclePolicy.initial_status(
            start_date, end_date, remaining_visits, today, suspended=suspended
        )
        ts = to_db_timestamp(now)
        result = conn.execute(
            text("""
                INSERT INTO memberships (member_id, membership_type_id, start_date, end_date,
                                         remaining_visits, status, purchase_date,
                                         created_at, updated_at, is_deleted)
                VALUES (:member_id, :type_id, :start, :end, :visits, :status, :ts, :ts, :ts, 0)
            """),
            {
                "member_id": member_id, "type_id": membership_type_id,
                "start": start_date.isoformat(),
                "end": end_date.isoformat() if end_date else None,
                "visits": remaining_visits, "status": status.value, "ts": ts,
            },
        )
        return result.lastrowid

    def update_membership_status(
        self, conn: Connection, membership_id: int, status: MembershipStatus, now: datetime
    ) -> None:
        conn.execute(
            text("UPDATE memberships SET status = :status, updated_at = :ts WHERE id = :id"),
            {"status": status.value, "ts": to_db_timestamp(now), "id": membership_id},
        )

    def record_visit(
        self,
        conn: Connection,
        membership_id: int,
        remaining_visits: Optional[int],
        status: MembershipStatus,
        now: datetime,
    ) -> None:
        """Persist the post-admission visit count and status in one statement."""
        conn.execute(
            text("""
                UPDATE memberships
                SET remaining_visits = :visits, status = :status, updated_at = :ts
                WHERE id = :id
            """),
            {
                "visits": remaining_visits, "status": status.value,
                "ts": to_db_timestamp(now), "id": membership_id,
            },
        )

    def set_membership_suspended(
        self, conn: Connection, membership_id: int, suspended: bool, now: datetime, today: date
    ) -> MembershipStatus:
        """
        Administrative suspend/resume. Resuming re-derives the status as if
        the membership had been pending, then runs the lifecycle rules.
        """
        membership = self.get_membership(conn, membership_id)
        if suspended:
            new_status = MembershipStatus.SUSPENDED
        elif membership.status != MembershipStatus.SUSPENDED:
            return membership.status
        else:
            new_status = LifecyclePolicy.evaluate_status(
                MembershipStatus.PENDING,
                membership.start_date,
                membership.end_date,
                membership.remaining_visits,
                today,
            )
        self.update_membership_status(conn, membership_id, new_status, now)
        return new_status

    def soft_delete_membership(self, conn: Connection, membership_id: int, now: datetime) -> None:
        result = conn.execute(
            text("UPDATE memberships SET is_deleted = 1, updated_at = :ts WHERE id = :id AND is_deleted = 0"),
            {"ts": to_db_timestamp(now), "id": membership_id},
        )
        if result.rowcount == 0:
            raise NotFoundError(f"Membership with id {membership_id} not found.")

    # ---------- bulk sweep updates ----------

    def sweep_pending_to_active(self, conn: Connection, today: date, now: datetime) -> int:
        """Rows that are already past their end date are expired by the next update."""
        result = conn.execute(
            text("""
                UPDATE memberships
                SET status = :active, updated_at = :ts
                WHERE status = :pending AND is_deleted = 0
                  AND start_date <= :today
                  AND end_date IS NOT NULL
            """),
            {
                "active": MembershipStatus.ACTIVE.value, "pending": MembershipStatus.PENDING.value,
                "today": today.isoformat(), "ts": to_db_timestamp(now),
            },
        )
        return result.rowcount

    def sweep_pending_to_inactive(self, conn: Connection, today: date, now: datetime) -> int:
        """Open-ended visit packs are not auto-activated."""
        result = conn.execute(
            text("""
                UPDATE memberships
                SET status = :inactive, updated_at = :ts
                WHERE status = :pending AND is_deleted = 0
                  AND start_date <= :today
                  AND end_date IS NULL
                  AND remaining_visits IS NOT NULL AND remaining_visits > 0
            """),
            {
                "inactive": MembershipStatus.INACTIVE.value, "pending": MembershipStatus.PENDING.value,
                "today": today.isoformat(), "ts": to_db_timestamp(now),
            },
        )
        return result.rowcount

    def sweep_pending_to_expired(self, conn: Connection, today: date, now: datetime) -> int:
        """Pending rows that can never become usable: visits spent, no bounds, or already ended."""
        result = conn.execute(
            text("""
                UPDATE memberships
                SET status = :expired, updated_at = :ts
                WHERE status = :pending AND is_deleted = 0
                  AND ((remaining_visits IS NOT NULL AND remaining_visits <= 0)
                       OR (end_date IS NULL AND remaining_visits IS NULL)
                       OR (end_date IS NOT NULL AND end_date < :today))
            """),
            {
                "expired": MembershipStatus.EXPIRED.value, "pending": MembershipStatus.PENDING.value,
                "today": today.isoformat(), "ts": to_db_timestamp(now),
            },
        )
        return result.rowcount

    def sweep_active_to_expired(self, conn: Connection, today: date, now: datetime) -> int:
        result = conn.execute(
            text("""
                UPDATE memberships
                SET status = :expired, updated_at = :ts
                WHERE status = :active AND is_deleted = 0
                  AND ((end_date IS NOT NULL AND end_date < :today)
                       OR (remaining_visits IS NOT NULL AND remaining_visits <= 0)
                       OR (end_date IS NULL AND remaining_visits IS NULL))
            """),
            {
                "expired": MembershipStatus.EXPIRED.value, "active": MembershipStatus.ACTIVE.value,
                "today": today.isoformat(), "ts": to_db_timestamp(now),
            },
        )
        return result.rowcount

    # ---------- checkpoints ----------

    def get_checkpoint(self, conn: Connection, check_type: str) -> Optional[CheckpointInfo]:
        row = conn.execute(
            text("""
                SELECT check_type, last_run_at, last_run_date, status, pending_to_active,
                       pending_to_inactive, pending_to_expired, active_to_expired, error_message
                FROM reconciliation_checkpoints
                WHERE check_type = :check_type
            """),
            {"check_type": check_type},
        ).mappings().first()
        return CheckpointInfo(**row) if row else None

    def save_checkpoint(
        self,
        conn: Connection,
        check_type: str,
        now: datetime,
        run_date: date,
        status: CheckpointStatus,
        counts: Optional[Dict[str, int]] = None,
        error_message: Optional[str] = None,
    ) -> CheckpointInfo:
        counts = counts or {}
        params = {
            "check_type": check_type,
            "last_run_at": to_db_timestamp(now),
            "last_run_date": run_date.isoformat(),
            "status": status.value,
            "pending_to_active": counts.get("pending_to_active", 0),
            "pending_to_inactive": counts.get("pending_to_inactive", 0),
            "pending_to_expired": counts.get("pending_to_expired", 0),
            "active_to_expired": counts.get("active_to_expired", 0),
            "error_message": error_message,
        }
        updated = conn.execute(
            text("""
                UPDATE reconciliation_checkpoints
                SET last_run_at = :last_run_at, last_run_date = :last_run_date, status = :status,
                    pending_to_active = :pending_to_active,
                    pending_to_inactive = :pending_to_inactive,
                    pending_to_expired = :pending_to_expired,
                    active_to_expired = :active_to_expired,
                    error_message = :error_message
                WHERE check_type = :check_type
            """),
            params,
        )
        if updated.rowcount == 0:
            conn.execute(
                text("""
                    INSERT INTO reconciliation_checkpoints
                        (check_type, last_run_at, last_run_date, status, pending_to_active,
                         pending_to_inactive, pending_to_expired, active_to_expired, error_message)
                    VALUES (:check_type, :last_run_at, :last_run_date, :status, :pending_to_active,
                            :pending_to_inactive, :pending_to_expired, :active_to_expired,
                            :error_message)
                """),
                params,
            )
        return CheckpointInfo(
            check_type=check_type,
            last_run_at=now,
            last_run_date=run_date,
            status=status,
            pending_to_active=params["pending_to_active"],
            pending_to_inactive=params["pending_to_inactive"],
            pending_to_expired=params["pending_to_expired"],
            active_to_expired=params["active_to_expired"],
            error_message=error_message,
        )
