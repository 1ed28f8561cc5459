# =======================================================================================
# gym_access/services/lifecycle.py - Membership Lifecycle Policy
# =======================================================================================
from datetime import date
from typing import Optional

from ..models.enums import MembershipStatus


class LifecyclePolicy:
    """
    Computes the status a membership should have on a given local date.
    No I/O; every method is a pure function of its arguments.
    """

    @staticmethod
    def evaluate_status(
        current_status: MembershipStatus,
        start_date: Optional[date],
        end_date: Optional[date],
        remaining_visits: Optional[int],
        today: date,
    ) -> MembershipStatus:
        """
        Rules, first match wins:
        - suspended stays suspended (only an administrator lifts it)
        - visits tracked and <= 0 -> expired
        - end date before today -> expired
        - neither end date nor visit count -> expired
        - pending whose start date has arrived -> active if it has an end
          date, otherwise inactive
        - anything else keeps its status
        """
        if current_status == MembershipStatus.SUSPENDED:
            return current_status

        if remaining_visits is not None and remaining_visits <= 0:
            return MembershipStatus.EXPIRED

        if end_date is not None and end_date < today:
            return MembershipStatus.EXPIRED

        if end_date is None and remaining_visits is None:
            return MembershipStatus.EXPIRED

        if (
            current_status == MembershipStatus.PENDING
            and start_date is not None
            and start_date <= today
        ):
            return MembershipStatus.ACTIVE if end_date is not None else MembershipStatus.INACTIVE

        return current_status

    @staticmethod
    def expired_by_visits(remaining_visits: Optional[int]) -> bool:
        """True when visit exhaustion (not the calendar) ended the membership."""
        return remaining_visits is not None and remaining_visits <= 0

    @classmethod
    def initial_status(
        cls,
        start_date: date,
        end_date: Optional[date],
        remaining_visits: Optional[int],
        today: date,
        suspended: bool = False,
    ) -> MembershipStatus:
        """Status for a freshly created membership."""
        if suspended:
            return MembershipStatus.SUSPENDED
        return cls.evaluate_status(
            MembershipStatus.PENDING, start_date, end_date, remaining_visits, today
        )

    @staticmethod
    def after_hours(enter_by: Optional[int], local_hour: int) -> bool:
        """Entry is refused from the enter-by hour onwards."""
        return enter_by is not None and local_hour >= enter_by
