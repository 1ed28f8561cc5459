"""Tests for entry log queries and retention."""

from __future__ import annotations

import unittest
from datetime import timedelta

from gym_access.models.enums import EntryLogStatus
from gym_access.models.schemas import EntryLogQuery
from gym_access.utils.exceptions import LedgerValidationError

from tests.support import DatabaseTestCase


class AuditLedgerTests(DatabaseTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.ana = self.add_member("CARD-1", "Ana", "Petrovic")
        self.marko = self.add_member("CARD-2", "Marko", "Jovanovic")
        type_id = self.add_type("Monthly")
        self.membership = self.add_membership(self.ana, type_id, "active", self.days(-5), self.days(20), 7)

    def record(self, member_id, card_id, status, days_ago=0, membership_id=None) -> int:
        now = self.clock.now() - timedelta(days=days_ago)
        with self.db.get_connection() as conn:
            return self.ledger.record_entry(
                conn, member_id, membership_id, card_id, status, "note", now, self.days(-days_ago)
            )

    def search(self, **kwargs):
        with self.db.get_read_connection() as conn:
            return self.ledger.search(conn, EntryLogQuery(**kwargs))

    def seed(self) -> None:
        self.record(self.ana, "CARD-1", EntryLogStatus.ALLOWED, days_ago=2, membership_id=self.membership)
        self.record(self.marko, "CARD-2", EntryLogStatus.DENIED_NO_MEMBERSHIP, days_ago=1)
        self.record(None, "GHOST", EntryLogStatus.DENIED_MEMBER_NOT_FOUND, days_ago=1)
        self.record(self.ana, "CARD-1", EntryLogStatus.ALLOWED, membership_id=self.membership)
        self.record(self.ana, "CARD-1", EntryLogStatus.DENIED_ALREADY_CHECKED_IN, membership_id=self.membership)

    # ---------- search ----------

    def test_search_defaults_to_newest_first(self) -> None:
        self.seed()
        page = self.search()

        self.assertEqual(page.total, 5)
        self.assertEqual((page.page, page.per_page, page.total_pages), (1, 50, 1))
        self.assertEqual(page.data[0].status, "denied_already_checked_in")
        self.assertEqual(page.data[-1].entry_date, self.days(-2))

    def test_search_joins_member_and_membership(self) -> None:
        self.seed()
        item = self.search(statuses=["allowed"], order_direction="asc").data[0]
        self.assertEqual(item.member_name, "Ana Petrovic")
        self.assertEqual(item.membership_type_name, "Monthly")
        self.assertEqual(item.visits_left, 7)

        ghost = self.search(search="ghost").data[0]
        self.assertIsNone(ghost.member_name)
        self.assertIsNone(ghost.membership_type_name)

    def test_search_filters(self) -> None:
        self.seed()
        self.assertEqual(self.search(statuses=["allowed"]).total, 2)
        self.assertEqual(
            self.search(statuses=["denied_no_membership", "denied_member_not_found"]).total, 2
        )
        self.assertEqual(self.search(search="marko").total, 1)
        self.assertEqual(self.search(search="card-1").total, 3)
        self.assertEqual(self.search(date_from=self.days(-1)).total, 4)
        self.assertEqual(self.search(date_from=self.days(-1), date_to=self.days(-1)).total, 2)
        self.assertEqual(self.search(search="nobody").total, 0)

    def test_search_pagination_and_order(self) -> None:
        self.seed()
        first = self.search(per_page=2, page=1, order_by="card_id", order_direction="asc")
        third = self.search(per_page=2, page=3, order_by="card_id", order_direction="asc")

        self.assertEqual(first.total_pages, 3)
        self.assertEqual([i.card_id for i in first.data], ["CARD-1", "CARD-1"])
        self.assertEqual([i.card_id for i in third.data], ["GHOST"])

    def test_per_page_is_clamped(self) -> None:
        self.seed()
        self.assertEqual(self.search(per_page=1000).per_page, 100)
        self.assertEqual(self.search(per_page=0).per_page, 1)

    # ---------- other reads ----------

    def test_recent_and_member_history(self) -> None:
        self.seed()
        with self.db.get_read_connection() as conn:
            recent = self.ledger.recent(conn, limit=2)
            history = self.ledger.member_history(conn, self.ana)
            capped = self.ledger.member_history(conn, self.ana, limit=1)

        self.assertEqual(len(recent), 2)
        self.assertEqual(len(history), 3)
        self.assertTrue(all(item.member_id == self.ana for item in history))
        self.assertEqual(len(capped), 1)

    def test_stats(self) -> None:
        self.seed()
        with self.db.get_read_connection() as conn:
            stats = self.ledger.stats(conn)
            today_only = self.ledger.stats(conn, date_from=self.today, date_to=self.today)

        self.assertEqual(stats.total_entries, 5)
        self.assertEqual(stats.allowed_entries, 2)
        self.assertEqual(stats.denied_entries, 3)
        self.assertEqual(stats.unique_members, 2)
        self.assertEqual(stats.unique_days, 3)
        self.assertAlmostEqual(stats.success_rate, 40.0)
        self.assertEqual(today_only.total_entries, 2)

    def test_has_allowed_entry_ignores_denials_and_single_entries(self) -> None:
        self.record(self.ana, "CARD-1", EntryLogStatus.DENIED_AFTER_HOURS)
        self.record(self.ana, "Ana Petrovic", EntryLogStatus.ALLOWED_SINGLE)
        with self.db.get_read_connection() as conn:
            self.assertFalse(self.ledger.has_allowed_entry_on(conn, self.ana, self.today))

        self.record(self.ana, "CARD-1", EntryLogStatus.ALLOWED)
        with self.db.get_read_connection() as conn:
            self.assertTrue(self.ledger.has_allowed_entry_on(conn, self.ana, self.today))
            self.assertFalse(self.ledger.has_allowed_entry_on(conn, self.ana, self.days(1)))

    # ---------- retention ----------

    def test_purge_rejects_out_of_range_values(self) -> None:
        with self.db.get_connection() as conn:
            with self.assertRaises(LedgerValidationError):
                self.ledger.purge_older_than(conn, -1, self.today)
            with self.assertRaises(LedgerValidationError):
                self.ledger.purge_older_than(conn, 100000, self.today)

    def test_purge_by_age(self) -> None:
        self.record(self.ana, "CARD-1", EntryLogStatus.ALLOWED, days_ago=45)
        self.record(self.ana, "CARD-1", EntryLogStatus.ALLOWED, days_ago=30)
        self.record(self.ana, "CARD-1", EntryLogStatus.ALLOWED, days_ago=3)

        with self.db.get_connection() as conn:
            deleted = self.ledger.purge_older_than(conn, 30, self.today)

        self.assertEqual(deleted, 1)
        self.assertEqual(self.search().total, 2)

    def test_purge_zero_deletes_everything(self) -> None:
        self.seed()
        with self.db.get_connection() as conn:
            deleted = self.ledger.purge_older_than(conn, 0, self.today)
        self.assertEqual(deleted, 5)
        self.assertEqual(self.entry_statuses(), [])


if __name__ == "__main__":
    unittest.main()
