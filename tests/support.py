"""Shared fixtures for the gym_access tests."""

from __future__ import annotations

import tempfile
import unittest
from datetime import date, datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy import text

from gym_access.database import DatabaseManager
from gym_access.services.audit_ledger import AuditLedger
from gym_access.services.membership_store import MembershipStore
from gym_access.utils.clock import Clock, to_db_timestamp

FACILITY_TZ = "Europe/Belgrade"


class FixedClock(Clock):
    """Clock pinned to one instant; tests move it explicitly."""

    def __init__(self, instant: datetime) -> None:
        self.instant = instant

    def now(self) -> datetime:
        return self.instant.astimezone(timezone.utc)

    def set_local(self, year, month, day, hour=10, minute=0) -> None:
        self.instant = datetime(year, month, day, hour, minute, tzinfo=ZoneInfo(FACILITY_TZ))

    def advance(self, **kwargs) -> None:
        self.instant = self.instant + timedelta(**kwargs)


class DatabaseTestCase(unittest.TestCase):
    """Fresh SQLite file per test, clock pinned to 2024-05-15 10:00 facility time."""

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.db = DatabaseManager(f"sqlite:///{self._tmp.name}/gym_access_test.sqlite")
        self.db.create_schema()
        self.clock = FixedClock(datetime(2024, 5, 15, 10, 0, tzinfo=ZoneInfo(FACILITY_TZ)))
        self.store = MembershipStore()
        self.ledger = AuditLedger()

    def tearDown(self) -> None:
        self.db.dispose()
        self._tmp.cleanup()

    @property
    def today(self) -> date:
        return self.clock.local_today(ZoneInfo(FACILITY_TZ))

    def days(self, offset: int) -> date:
        return self.today + timedelta(days=offset)

    # ---------- seeding ----------

    def add_member(
        self,
        card_id: str = "CARD-1",
        first_name: str = "Ana",
        last_name: str = "Petrovic",
        short_card_id: Optional[str] = None,
    ) -> int:
        with self.db.get_connection() as conn:
            return self.store.create_member(
                conn, card_id, first_name, last_name, self.clock.now(), short_card_id=short_card_id
            )

    def add_type(self, name: str = "Monthly", enter_by: Optional[int] = None) -> int:
        with self.db.get_connection() as conn:
            return self.store.create_membership_type(
                conn, name, self.clock.now(), duration_days=30, visit_limit=12, enter_by=enter_by
            )

    def add_membership(
        self,
        member_id: int,
        type_id: int,
        status: str,
        start: Optional[date],
        end: Optional[date] = None,
        visits: Optional[int] = None,
    ) -> int:
        """Insert a row verbatim, stale statuses included."""
        ts = to_db_timestamp(self.clock.now())
        with self.db.get_connection() as conn:
            result = conn.execute(
                text("""
                    INSERT INTO memberships (member_id, membership_type_id, start_date, end_date,
                                             remaining_visits, status, purchase_date,
                                             created_at, updated_at, is_deleted)
                    VALUES (:member_id, :type_id, :start, :end, :visits, :status, :ts, :ts, :ts, 0)
                """),
                {
                    "member_id": member_id,
                    "type_id": type_id,
                    "start": start.isoformat() if start else None,
                    "end": end.isoformat() if end else None,
                    "visits": visits,
                    "status": status,
                    "ts": ts,
                },
            )
            return result.lastrowid

    # ---------- inspection ----------

    def membership_row(self, membership_id: int):
        with self.db.get_read_connection() as conn:
            return conn.execute(
                text("SELECT status, remaining_visits FROM memberships WHERE id = :id"),
                {"id": membership_id},
            ).mappings().first()

    def entry_statuses(self) -> list[str]:
        with self.db.get_read_connection() as conn:
            return list(
                conn.execute(text("SELECT status FROM entry_logs ORDER BY id")).scalars().all()
            )
