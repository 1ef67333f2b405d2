import logging
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional, Sequence, Set, Tuple

from app.schemas.optimization import OptimizedScheduleGroup
from app.schemas.schedule import ExistingSchedule
from app.services.scheduling import SchedulingControls, is_date_available_for_scheduling

logger = logging.getLogger(__name__)

MAX_SHIFT_DAYS = 366


def _utc_date(value: datetime) -> date:
    if value.tzinfo is None:
        return value.date()
    return value.astimezone(timezone.utc).date()


def _restamp(value: datetime, day: date) -> datetime:
    """Same time of day, new calendar day."""
    return value.replace(year=day.year, month=day.month, day=day.day)


class ConflictResolver:
    """Moves proposed day groups off dates that already hold committed schedules."""

    def __init__(self, max_shift_days: int = MAX_SHIFT_DAYS):
        self.max_shift_days = max_shift_days

    def resolve(
        self,
        groups: Sequence[OptimizedScheduleGroup],
        existing: Sequence[ExistingSchedule],
        controls: SchedulingControls
    ) -> Tuple[List[OptimizedScheduleGroup], int]:
        """
        Args:
            groups: Proposed groups, routed
            existing: Committed schedules overlapping the run
            controls: Date controls candidate dates must satisfy

        Returns:
            (groups in input order, number of groups moved)
        """
        conflict_dates: Set[date] = {_utc_date(entry.start_date_time) for entry in existing}
        resolved = list(groups)
        conflicts_resolved = 0

        for index, group in enumerate(resolved):
            current = _utc_date(group.date)
            if current not in conflict_dates:
                continue

            used = {
                _utc_date(other.date)
                for position, other in enumerate(resolved)
                if position != index and other.cluster_id == group.cluster_id
            }
            target = self._find_date(current, conflict_dates, used, controls)
            if target is None:
                logger.warning(
                    "Could not move %s group off conflicting date %s; keeping it",
                    group.cluster_name, current.isoformat()
                )
                continue

            resolved[index] = self._move(group, target)
            conflicts_resolved += 1
            logger.info(
                "Moved %s group from %s to %s to avoid existing schedules",
                group.cluster_name, current.isoformat(), target.isoformat()
            )

        return resolved, conflicts_resolved

    def _find_date(
        self,
        current: date,
        conflict_dates: Set[date],
        used: Set[date],
        controls: SchedulingControls
    ) -> Optional[date]:
        for offset in range(1, self.max_shift_days + 1):
            candidate = current + timedelta(days=offset)
            if candidate in conflict_dates or candidate in used:
                continue
            if is_date_available_for_scheduling(candidate, controls):
                return candidate
        return None

    @staticmethod
    def _move(group: OptimizedScheduleGroup, target: date) -> OptimizedScheduleGroup:
        shift = target - _utc_date(group.date)
        jobs = [
            job.model_copy(update={'scheduled_time': _restamp(job.scheduled_time, target)})
            for job in group.jobs
        ]
        return group.model_copy(update={
            'date': group.date + shift,
            'jobs': jobs,
            'estimated_start_time': group.estimated_start_time + shift,
            'estimated_end_time': group.estimated_end_time + shift,
        })
