"""Tests for membership persistence rules."""

from __future__ import annotations

import unittest
from datetime import date

from sqlalchemy import text

from gym_access.models.enums import MembershipStatus
from gym_access.utils.exceptions import (
    InvalidMembershipStatusError,
    NotFoundError,
    OverlappingMembershipError,
)

from tests.support import DatabaseTestCase


class MembershipStoreTests(DatabaseTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.member_id = self.add_member()
        self.type_id = self.add_type()

    def create(self, start, end, visits=10, suspended=False) -> int:
        with self.db.get_connection() as conn:
            return self.store.create_membership(
                conn, self.member_id, self.type_id, start, end, visits,
                self.clock.now(), self.today, suspended=suspended,
            )

    def test_create_member_stores_contact_details(self) -> None:
        with self.db.get_connection() as conn:
            member_id = self.store.create_member(
                conn, "CARD-9", "Jelena", "Markovic", self.clock.now(),
                email="jelena@example.com", phone="+381601234567", date_of_birth=date(1990, 4, 2),
            )
        with self.db.get_read_connection() as conn:
            row = conn.execute(
                text("SELECT email, phone, date_of_birth FROM members WHERE id = :id"), {"id": member_id}
            ).mappings().first()
        self.assertEqual(
            dict(row),
            {"email": "jelena@example.com", "phone": "+381601234567", "date_of_birth": "1990-04-02"},
        )

    def test_create_derives_initial_status(self) -> None:
        current = self.create(self.today, self.days(29))
        renewal = self.create(self.days(30), self.days(59))
        self.assertEqual(self.membership_row(current)["status"], "active")
        self.assertEqual(self.membership_row(renewal)["status"], "pending")

    def test_overlapping_live_membership_is_refused(self) -> None:
        self.create(self.today, self.days(29))
        with self.assertRaises(OverlappingMembershipError):
            self.create(self.days(10), self.days(40))

    def test_expired_history_does_not_block(self) -> None:
        self.add_membership(self.member_id, self.type_id, "expired", self.days(-10), self.days(20), 0)
        membership_id = self.create(self.today, self.days(29))
        self.assertEqual(self.membership_row(membership_id)["status"], "active")

    def test_unknown_status_is_rejected_on_read(self) -> None:
        self.add_membership(self.member_id, self.type_id, "Frozen", self.today, self.days(29), 10)
        with self.db.get_read_connection() as conn:
            with self.assertRaises(InvalidMembershipStatusError) as caught:
                self.store.list_member_memberships(conn, self.member_id)
        self.assertEqual(caught.exception.raw_status, "Frozen")

    def test_status_case_is_normalized(self) -> None:
        self.add_membership(self.member_id, self.type_id, " ACTIVE ", self.today, self.days(29), 10)
        with self.db.get_read_connection() as conn:
            memberships = self.store.list_member_memberships(conn, self.member_id)
        self.assertEqual(memberships[0].status, MembershipStatus.ACTIVE)
        self.assertEqual(memberships[0].membership_type_name, "Monthly")

    def test_delete_type_renames_and_cascades(self) -> None:
        membership_id = self.create(self.today, self.days(29))
        with self.db.get_connection() as conn:
            affected = self.store.soft_delete_membership_type(conn, self.type_id, self.clock.now())
        self.assertEqual(affected, 1)
        self.assertEqual(self.membership_row(membership_id)["status"], "inactive")

        # The name is free again.
        self.add_type("Monthly")
        with self.db.get_connection() as conn:
            with self.assertRaises(NotFoundError):
                self.store.soft_delete_membership_type(conn, self.type_id, self.clock.now())

    def test_resume_rederives_status(self) -> None:
        started = self.create(self.days(-3), self.days(27))
        upcoming = self.add_membership(self.member_id, self.type_id, "suspended", self.days(40), self.days(70), 10)
        lapsed = self.add_membership(self.member_id, self.type_id, "suspended", self.days(-60), self.days(-30), 10)

        with self.db.get_connection() as conn:
            now, today = self.clock.now(), self.today
            self.assertEqual(
                self.store.set_membership_suspended(conn, started, True, now, today), MembershipStatus.SUSPENDED
            )
            self.assertEqual(
                self.store.set_membership_suspended(conn, started, False, now, today), MembershipStatus.ACTIVE
            )
            self.assertEqual(
                self.store.set_membership_suspended(conn, upcoming, False, now, today), MembershipStatus.PENDING
            )
            self.assertEqual(
                self.store.set_membership_suspended(conn, lapsed, False, now, today), MembershipStatus.EXPIRED
            )

    def test_soft_deleted_membership_is_hidden(self) -> None:
        membership_id = self.create(self.today, self.days(29))
        with self.db.get_connection() as conn:
            self.store.soft_delete_membership(conn, membership_id, self.clock.now())
            self.assertEqual(self.store.list_member_memberships(conn, self.member_id), [])
            with self.assertRaises(NotFoundError):
                self.store.get_membership(conn, membership_id)


if __name__ == "__main__":
    unittest.main()
