# =======================================================================================
# gym_access/services/admission.py - Admission Pipeline
# =======================================================================================
import logging
import sys
from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional, Tuple

from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from ..config import config
from ..database import DatabaseManager, db_manager
from ..models.enums import AdmissionOutcome, EntryLogStatus, MembershipStatus
from ..models.schemas import AdmissionResult
from ..utils.clock import Clock, resolve_timezone, system_clock
from ..utils.exceptions import InvalidCredentialError, InvalidMembershipStatusError
from ..utils.validators import CredentialValidator
from .audit_ledger import AuditLedger
from .lifecycle import LifecyclePolicy
from .membership_store import MemberRecord, MembershipRecord, MembershipStore

logger = logging.getLogger(__name__)

# Audit code written for each denial outcome.
DENIAL_LOG_STATUS = {
    AdmissionOutcome.MEMBER_NOT_FOUND: EntryLogStatus.DENIED_MEMBER_NOT_FOUND,
    AdmissionOutcome.NO_MEMBERSHIP: EntryLogStatus.DENIED_NO_MEMBERSHIP,
    AdmissionOutcome.MEMBERSHIP_EXPIRED: EntryLogStatus.DENIED_MEMBERSHIP_EXPIRED,
    AdmissionOutcome.NO_VISITS_LEFT: EntryLogStatus.DENIED_NO_VISITS_LEFT,
    AdmissionOutcome.NOT_ACTIVE_YET: EntryLogStatus.DENIED_NOT_ACTIVE_YET,
    AdmissionOutcome.INACTIVE: EntryLogStatus.DENIED_INACTIVE,
    AdmissionOutcome.SUSPENDED: EntryLogStatus.DENIED_SUSPENDED,
    AdmissionOutcome.AFTER_HOURS: EntryLogStatus.DENIED_AFTER_HOURS,
    AdmissionOutcome.ALREADY_CHECKED_IN: EntryLogStatus.DENIED_ALREADY_CHECKED_IN,
}

INTERNAL_ERROR_MESSAGE = "Internal error while processing the scan."


@dataclass
class ScanContext:
    """The instant a scan is evaluated at, fixed once per scan."""
    now: datetime
    local_now: datetime
    today: date
    card_id: str


def _relevance_key(candidate: Tuple[MembershipRecord, MembershipStatus]):
    """active first (latest start), then pending (soonest start), then latest start."""
    membership, status = candidate
    start = membership.start_date.toordinal() if membership.start_date else 0
    if status == MembershipStatus.ACTIVE:
        return (0, -start, -membership.id)
    if status == MembershipStatus.PENDING:
        return (1, start if membership.start_date else sys.maxsize, membership.id)
    return (2, -start, -membership.id)


class AdmissionService:
    """Turns one scanned credential into an admit/deny decision plus one audit record."""

    def __init__(
        self,
        db: Optional[DatabaseManager] = None,
        store: Optional[MembershipStore] = None,
        ledger: Optional[AuditLedger] = None,
        clock: Optional[Clock] = None,
        timezone_name: Optional[str] = None,
        validator: Optional[CredentialValidator] = None,
    ):
        self.db = db or db_manager
        self.store = store or MembershipStore(row_locks=self.db.supports_row_locks)
        self.ledger = ledger or AuditLedger()
        self.clock = clock or system_clock
        self.timezone_name = timezone_name or config.FACILITY_TIMEZONE
        self.validator = validator or CredentialValidator()
        self.policy = LifecyclePolicy()

    def _context(self, card_id: str) -> ScanContext:
        tz = resolve_timezone(self.timezone_name)
        now = self.clock.now()
        local_now = now.astimezone(tz)
        return ScanContext(now=now, local_now=local_now, today=local_now.date(), card_id=card_id)

    # ------------------------------------------------------------------
    # Public entrypoints
    # ------------------------------------------------------------------
    def process_scan(self, credential: Optional[str]) -> AdmissionResult:
        """
        Process a scan through the complete pipeline inside one write transaction.
        Denials are results, not errors. A store failure rolls everything back
        and comes out as INTERNAL_ERROR.
        """
        try:
            card_id = self.validator.normalize_card_id(credential)
        except InvalidCredentialError as e:
            return AdmissionResult(outcome=AdmissionOutcome.INVALID_INPUT, message=str(e))

        ctx = self._context(card_id)
        logger.info("Processing scan for card_id: %s", card_id)

        try:
            with self.db.get_connection() as conn:
                result = self._evaluate_scan(conn, ctx)
        except SQLAlchemyError:
            logger.exception("Scan for card_id %s failed; transaction rolled back", card_id)
            self._record_internal_error(ctx)
            return AdmissionResult(
                outcome=AdmissionOutcome.INTERNAL_ERROR,
                message=INTERNAL_ERROR_MESSAGE,
                card_id=card_id,
            )

        logger.info("Scan for card_id %s -> %s", card_id, result.outcome.value)
        return result

    def process_manual_admission(self, name_or_credential: Optional[str]) -> AdmissionResult:
        """
        Unverified single-person entry. Writes an allowed_single audit record
        and never reads or touches memberships.
        """
        try:
            value = self.validator.normalize_free_text(name_or_credential)
        except InvalidCredentialError as e:
            return AdmissionResult(outcome=AdmissionOutcome.INVALID_INPUT, message=str(e))

        ctx = self._context(value)
        try:
            with self.db.get_connection() as conn:
                member = self.store.find_member_by_card(conn, value)
                member_name = member.full_name if member else value
                self.ledger.record_entry(
                    conn,
                    member.id if member else None,
                    None,
                    value,
                    EntryLogStatus.ALLOWED_SINGLE,
                    "Single entry (unverified).",
                    ctx.now,
                    ctx.today,
                )
        except SQLAlchemyError:
            logger.exception("Manual admission for %r failed; transaction rolled back", value)
            self._record_internal_error(ctx)
            return AdmissionResult(
                outcome=AdmissionOutcome.INTERNAL_ERROR, message=INTERNAL_ERROR_MESSAGE
            )

        logger.info("Manual single entry recorded for %r", value)
        return AdmissionResult(
            outcome=AdmissionOutcome.ALLOWED_SINGLE,
            message="Single entry allowed.",
            member_name=member_name,
            card_id=value,
        )

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------
    def _evaluate_scan(self, conn: Connection, ctx: ScanContext) -> AdmissionResult:
        member = self.store.find_member_by_card(conn, ctx.card_id)
        if not member:
            return self._deny(
                conn, ctx, AdmissionOutcome.MEMBER_NOT_FOUND, "Member not found for this card ID."
            )

        try:
            memberships = self.store.list_member_memberships(conn, member.id)
        except InvalidMembershipStatusError as e:
            logger.warning("Member %s has a membership with %s", member.id, e)
            return self._deny(
                conn, ctx, AdmissionOutcome.NO_MEMBERSHIP,
                f"Membership is currently {e.raw_status!r}.",
                member=member,
                log_status=EntryLogStatus.DENIED_INVALID_STATUS,
            )

        selected = self._select_membership(memberships, ctx.today)
        if selected is None:
            return self._deny(
                conn, ctx, AdmissionOutcome.NO_MEMBERSHIP,
                "No membership found for this member.",
                member=member,
            )
        membership, status = selected

        if membership.start_date is None:
            return self._deny(
                conn, ctx, AdmissionOutcome.NO_MEMBERSHIP,
                "Membership information is incomplete.",
                member=member, membership=membership,
            )

        if status != membership.status:
            logger.info(
                "Membership %s status %s -> %s", membership.id, membership.status.value, status.value
            )
            self.store.update_membership_status(conn, membership.id, status, ctx.now)
            membership.status = status

        if status == MembershipStatus.EXPIRED:
            if self.policy.expired_by_visits(membership.remaining_visits):
                return self._deny(
                    conn, ctx, AdmissionOutcome.NO_VISITS_LEFT,
                    "Membership has no visits remaining.",
                    member=member, membership=membership,
                )
            ended = membership.end_date.isoformat() if membership.end_date else "unknown date"
            return self._deny(
                conn, ctx, AdmissionOutcome.MEMBERSHIP_EXPIRED,
                f"Membership expired on {ended}.",
                member=member, membership=membership,
            )
        if status == MembershipStatus.PENDING:
            return self._deny(
                conn, ctx, AdmissionOutcome.NOT_ACTIVE_YET,
                f"Membership not active yet. Starts on {membership.start_date.isoformat()}.",
                member=member, membership=membership,
            )
        if status == MembershipStatus.INACTIVE:
            return self._deny(
                conn, ctx, AdmissionOutcome.INACTIVE, "Membership is inactive.",
                member=member, membership=membership,
            )
        if status == MembershipStatus.SUSPENDED:
            return self._deny(
                conn, ctx, AdmissionOutcome.SUSPENDED, "Membership is currently suspended.",
                member=member, membership=membership,
            )
        if status != MembershipStatus.ACTIVE:
            return self._deny(
                conn, ctx, AdmissionOutcome.NO_MEMBERSHIP,
                f"Membership is currently {status.value}.",
                member=member, membership=membership,
                log_status=EntryLogStatus.DENIED_INVALID_STATUS,
            )

        if self.policy.after_hours(membership.enter_by, ctx.local_now.hour):
            return self._deny(
                conn, ctx, AdmissionOutcome.AFTER_HOURS,
                f"Entry not allowed after {membership.enter_by}:00.",
                member=member, membership=membership,
            )

        if self.ledger.has_allowed_entry_on(conn, member.id, ctx.today):
            return self._deny(
                conn, ctx, AdmissionOutcome.ALREADY_CHECKED_IN,
                "Member has already checked in today.",
                member=member, membership=membership,
            )

        if membership.remaining_visits is not None:
            new_visits = membership.remaining_visits - 1
            new_status = MembershipStatus.EXPIRED if new_visits <= 0 else MembershipStatus.ACTIVE
            self.store.record_visit(conn, membership.id, new_visits, new_status, ctx.now)
            membership.remaining_visits = new_visits
            membership.status = new_status
            logger.info("Membership %s visits now %s (%s)", membership.id, new_visits, new_status.value)

        self.ledger.record_entry(
            conn, member.id, membership.id, ctx.card_id,
            EntryLogStatus.ALLOWED, "Entry granted.", ctx.now, ctx.today,
        )
        return self._result(
            AdmissionOutcome.ALLOWED, "Entry allowed.", ctx, member, membership
        )

    def _select_membership(
        self, memberships: List[MembershipRecord], today: date
    ) -> Optional[Tuple[MembershipRecord, MembershipStatus]]:
        """Pick the membership that governs admission, ranked on its corrected status."""
        if not memberships:
            return None
        candidates = [
            (
                m,
                self.policy.evaluate_status(
                    m.status, m.start_date, m.end_date, m.remaining_visits, today
                ),
            )
            for m in memberships
        ]
        return min(candidates, key=_relevance_key)

    # ------------------------------------------------------------------
    # Denial + audit helpers
    # ------------------------------------------------------------------
    def _deny(
        self,
        conn: Connection,
        ctx: ScanContext,
        outcome: AdmissionOutcome,
        message: str,
        member: Optional[MemberRecord] = None,
        membership: Optional[MembershipRecord] = None,
        log_status: Optional[EntryLogStatus] = None,
    ) -> AdmissionResult:
        """Write the denial to the ledger and build the caller's result."""
        self.ledger.record_entry(
            conn,
            member.id if member else None,
            membership.id if membership else None,
            ctx.card_id,
            log_status or DENIAL_LOG_STATUS[outcome],
            message,
            ctx.now,
            ctx.today,
        )
        return self._result(outcome, message, ctx, member, membership)

    @staticmethod
    def _result(
        outcome: AdmissionOutcome,
        message: str,
        ctx: ScanContext,
        member: Optional[MemberRecord],
        membership: Optional[MembershipRecord],
    ) -> AdmissionResult:
        return AdmissionResult(
            outcome=outcome,
            message=message,
            member_name=member.full_name if member else None,
            card_id=ctx.card_id,
            membership_type_name=membership.membership_type_name if membership else None,
            membership_end_date=membership.end_date if membership else None,
            remaining_visits=membership.remaining_visits if membership else None,
        )

    def _record_internal_error(self, ctx: ScanContext) -> None:
        """Best-effort error entry in a fresh transaction; its own failure is only logged."""
        try:
            with self.db.get_connection() as conn:
                self.ledger.record_entry(
                    conn, None, None, ctx.card_id, EntryLogStatus.ERROR,
                    INTERNAL_ERROR_MESSAGE, ctx.now, ctx.today,
                )
        except SQLAlchemyError:
            logger.exception("Could not record error entry for card_id %s", ctx.card_id)
