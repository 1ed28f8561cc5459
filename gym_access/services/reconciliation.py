# =======================================================================================
# gym_access/services/reconciliation.py - Membership Status Sweep
# =======================================================================================
import logging
from datetime import date
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from ..config import config
from ..database import DatabaseManager, db_manager
from ..models.enums import MEMBERSHIP_SWEEP, CheckpointStatus
from ..models.schemas import CheckpointInfo, ReconciliationResult
from ..utils.clock import Clock, resolve_timezone, system_clock
from ..utils.exceptions import ConfigurationError, DataAccessError
from .membership_store import MembershipStore

logger = logging.getLogger(__name__)


class ReconciliationService:
    """
    Advances memberships whose stored status is stale for today's local date.

    The persisted checkpoint is the source of truth for "already ran today";
    `_last_success_date` only saves a read and is refreshed from the
    checkpoint whenever it does not say "today".
    """

    def __init__(
        self,
        db: Optional[DatabaseManager] = None,
        store: Optional[MembershipStore] = None,
        clock: Optional[Clock] = None,
        timezone_name: Optional[str] = None,
        check_type: str = MEMBERSHIP_SWEEP,
    ):
        self.db = db or db_manager
        self.store = store or MembershipStore(row_locks=self.db.supports_row_locks)
        self.clock = clock or system_clock
        self.timezone_name = timezone_name or config.FACILITY_TIMEZONE
        self.check_type = check_type
        self._last_success_date: Optional[date] = None

    def _already_ran(self, conn, today: date) -> bool:
        if self._last_success_date == today:
            return True
        checkpoint = self.store.get_checkpoint(conn, self.check_type)
        if checkpoint and checkpoint.status != CheckpointStatus.FAILURE:
            self._last_success_date = checkpoint.last_run_date
        return self._last_success_date == today

    def run_once(self, force: bool = False) -> ReconciliationResult:
        """
        One sweep in one transaction. Skips (recording no_changes) when a
        sweep already completed on today's local date, unless forced.
        Failures, including an unusable facility time zone, record a failure
        checkpoint. Store failures raise DataAccessError.
        """
        now = self.clock.now()
        try:
            tz = resolve_timezone(self.timezone_name)
        except ConfigurationError as e:
            logger.error("Membership sweep cannot run: %s", e)
            self._last_success_date = None
            self._record_failure(now, now.date(), e)
            raise
        today = now.astimezone(tz).date()

        try:
            with self.db.get_connection() as conn:
                if not force and self._already_ran(conn, today):
                    self.store.save_checkpoint(
                        conn, self.check_type, now, today, CheckpointStatus.NO_CHANGES
                    )
                    logger.debug("Membership sweep already ran on %s; skipping", today)
                    return ReconciliationResult(skipped=True)

                result = ReconciliationResult(
                    pending_to_active=self.store.sweep_pending_to_active(conn, today, now),
                    pending_to_inactive=self.store.sweep_pending_to_inactive(conn, today, now),
                    pending_to_expired=self.store.sweep_pending_to_expired(conn, today, now),
                    active_to_expired=self.store.sweep_active_to_expired(conn, today, now),
                )
                status = CheckpointStatus.SUCCESS if result.total_changes else CheckpointStatus.NO_CHANGES
                self.store.save_checkpoint(
                    conn,
                    self.check_type,
                    now,
                    today,
                    status,
                    counts=result.model_dump(exclude={"skipped"}),
                )
        except SQLAlchemyError as e:
            logger.exception("Membership sweep failed")
            self._last_success_date = None
            self._record_failure(now, today, e)
            raise DataAccessError("Membership sweep failed") from e

        self._last_success_date = today
        logger.info(
            "Membership sweep on %s: %s pending->active, %s pending->inactive, "
            "%s pending->expired, %s active->expired",
            today, result.pending_to_active, result.pending_to_inactive,
            result.pending_to_expired, result.active_to_expired,
        )
        return result

    def _record_failure(self, now, today: date, error: Exception) -> None:
        try:
            with self.db.get_connection() as conn:
                self.store.save_checkpoint(
                    conn,
                    self.check_type,
                    now,
                    today,
                    CheckpointStatus.FAILURE,
                    error_message=type(error).__name__,
                )
        except SQLAlchemyError:
            logger.exception("Could not record sweep failure checkpoint")

    def last_checkpoint(self) -> Optional[CheckpointInfo]:
        with self.db.get_read_connection() as conn:
            return self.store.get_checkpoint(conn, self.check_type)
