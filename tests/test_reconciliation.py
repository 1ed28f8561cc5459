"""Tests for the daily membership sweep."""

from __future__ import annotations

import unittest
from unittest import mock

from sqlalchemy.exc import OperationalError

from gym_access.models.enums import CheckpointStatus
from gym_access.services.reconciliation import ReconciliationService
from gym_access.utils.exceptions import ConfigurationError, DataAccessError
from gym_access.workers.reconciliation_worker import ReconciliationWorker

from tests.support import FACILITY_TZ, DatabaseTestCase


class ReconciliationServiceTests(DatabaseTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.service = self._service()
        self.member_id = self.add_member()
        self.type_id = self.add_type()

    def _service(self) -> ReconciliationService:
        return ReconciliationService(
            db=self.db, store=self.store, clock=self.clock, timezone_name=FACILITY_TZ
        )

    def test_sweep_advances_stale_statuses(self) -> None:
        starting = self.add_membership(self.member_id, self.type_id, "pending", self.today, self.days(30), 10)
        future = self.add_membership(self.member_id, self.type_id, "pending", self.days(31), self.days(61), 10)
        lapsed = self.add_membership(self.member_id, self.type_id, "active", self.days(-40), self.days(-1), 4)
        held = self.add_membership(self.member_id, self.type_id, "suspended", self.days(-40), self.days(-1), 4)

        result = self.service.run_once()

        self.assertFalse(result.skipped)
        self.assertEqual(
            (result.pending_to_active, result.pending_to_inactive, result.active_to_expired), (1, 0, 1)
        )
        self.assertEqual(self.membership_row(starting)["status"], "active")
        self.assertEqual(self.membership_row(future)["status"], "pending")
        self.assertEqual(self.membership_row(lapsed)["status"], "expired")
        self.assertEqual(self.membership_row(held)["status"], "suspended")

        checkpoint = self.service.last_checkpoint()
        self.assertEqual(checkpoint.status, CheckpointStatus.SUCCESS)
        self.assertEqual(checkpoint.last_run_date, self.today)
        self.assertEqual(checkpoint.pending_to_active, 1)
        self.assertEqual(checkpoint.active_to_expired, 1)

    def test_exhausted_visits_are_expired(self) -> None:
        spent = self.add_membership(self.member_id, self.type_id, "active", self.days(-5), self.days(20), 0)
        result = self.service.run_once()
        self.assertEqual(result.active_to_expired, 1)
        self.assertEqual(self.membership_row(spent)["status"], "expired")

    def test_open_ended_visit_pack_goes_inactive(self) -> None:
        pack = self.add_membership(self.member_id, self.type_id, "pending", self.days(-2), None, 8)
        result = self.service.run_once()
        self.assertEqual(result.pending_to_inactive, 1)
        self.assertEqual(result.pending_to_active, 0)
        self.assertEqual(self.membership_row(pack)["status"], "inactive")

    def test_unusable_pending_rows_are_expired(self) -> None:
        spent_pack = self.add_membership(self.member_id, self.type_id, "pending", self.days(-2), None, 0)
        unbounded = self.add_membership(self.member_id, self.type_id, "pending", self.days(5), None, None)
        ended = self.add_membership(self.member_id, self.type_id, "pending", None, self.days(-1), 10)
        upcoming = self.add_membership(self.member_id, self.type_id, "pending", self.days(5), None, 8)

        result = self.service.run_once()

        self.assertEqual(result.pending_to_expired, 3)
        self.assertEqual((result.pending_to_active, result.pending_to_inactive), (0, 0))
        for membership_id in (spent_pack, unbounded, ended):
            self.assertEqual(self.membership_row(membership_id)["status"], "expired")
        self.assertEqual(self.membership_row(upcoming)["status"], "pending")
        self.assertEqual(self.service.last_checkpoint().pending_to_expired, 3)

    def test_active_without_any_bound_is_expired(self) -> None:
        unbounded = self.add_membership(self.member_id, self.type_id, "active", self.days(-5), None, None)
        result = self.service.run_once()
        self.assertEqual(result.active_to_expired, 1)
        self.assertEqual(self.membership_row(unbounded)["status"], "expired")

    def test_nothing_to_do_records_no_changes(self) -> None:
        self.add_membership(self.member_id, self.type_id, "active", self.days(-5), self.days(20), 10)
        result = self.service.run_once()
        self.assertEqual(result.total_changes, 0)
        self.assertEqual(self.service.last_checkpoint().status, CheckpointStatus.NO_CHANGES)

    def test_second_run_same_day_is_skipped(self) -> None:
        self.service.run_once()
        late = self.add_membership(self.member_id, self.type_id, "active", self.days(-40), self.days(-1), 4)

        self.clock.advance(hours=2)
        result = self.service.run_once()

        self.assertTrue(result.skipped)
        self.assertEqual(result.total_changes, 0)
        self.assertEqual(self.membership_row(late)["status"], "active")
        self.assertEqual(self.service.last_checkpoint().status, CheckpointStatus.NO_CHANGES)

    def test_skip_survives_a_new_service_instance(self) -> None:
        self.service.run_once()
        result = self._service().run_once()
        self.assertTrue(result.skipped)

    def test_force_runs_again(self) -> None:
        self.service.run_once()
        late = self.add_membership(self.member_id, self.type_id, "active", self.days(-40), self.days(-1), 4)

        result = self.service.run_once(force=True)

        self.assertFalse(result.skipped)
        self.assertEqual(result.active_to_expired, 1)
        self.assertEqual(self.membership_row(late)["status"], "expired")

    def test_next_local_day_runs_again(self) -> None:
        self.service.run_once()
        renewal = self.add_membership(self.member_id, self.type_id, "pending", self.days(1), self.days(31), 10)

        self.clock.advance(days=1)
        result = self.service.run_once()

        self.assertFalse(result.skipped)
        self.assertEqual(result.pending_to_active, 1)
        self.assertEqual(self.membership_row(renewal)["status"], "active")

    def test_failure_rolls_back_and_is_recorded(self) -> None:
        starting = self.add_membership(self.member_id, self.type_id, "pending", self.today, self.days(30), 10)
        boom = OperationalError("UPDATE memberships", {}, Exception("database is locked"))

        with mock.patch.object(self.store, "sweep_active_to_expired", side_effect=boom):
            with self.assertRaises(DataAccessError):
                self.service.run_once()

        self.assertEqual(self.membership_row(starting)["status"], "pending")
        checkpoint = self.service.last_checkpoint()
        self.assertEqual(checkpoint.status, CheckpointStatus.FAILURE)
        self.assertEqual(checkpoint.error_message, "OperationalError")

        result = self.service.run_once()
        self.assertFalse(result.skipped)
        self.assertEqual(result.pending_to_active, 1)
        self.assertEqual(self.service.last_checkpoint().status, CheckpointStatus.SUCCESS)

    def test_invalid_timezone_is_a_configuration_error(self) -> None:
        service = ReconciliationService(db=self.db, store=self.store, clock=self.clock, timezone_name="Nowhere/Atlantis")
        with self.assertRaises(ConfigurationError):
            service.run_once()

    def test_invalid_timezone_records_failure_checkpoint(self) -> None:
        self.service.run_once()
        self.assertEqual(self.service.last_checkpoint().status, CheckpointStatus.NO_CHANGES)

        broken = ReconciliationService(
            db=self.db, store=self.store, clock=self.clock, timezone_name="Nowhere/Atlantis"
        )
        worker = ReconciliationWorker(broken, interval_seconds=60)

        self.assertIsNone(worker.run_now())
        self.assertEqual(worker.failures, 1)

        checkpoint = self.service.last_checkpoint()
        self.assertEqual(checkpoint.status, CheckpointStatus.FAILURE)
        self.assertEqual(checkpoint.error_message, "ConfigurationError")
        self.assertEqual(checkpoint.last_run_date, self.clock.now().date())

        # A failure checkpoint never suppresses the next good run.
        result = self._service().run_once()
        self.assertFalse(result.skipped)


if __name__ == "__main__":
    unittest.main()
