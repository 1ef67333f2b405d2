"""
Hybrid historical/efficiency scheduling: assigns clustered jobs to dates.

Date search is split into two bounded functions so each terminates on its
own: a forward search in whole weeks and a backward fallback from the end
of the scheduling range.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from app.schemas.cluster import LocationCluster
from app.schemas.job import JobOptimizationData
from app.schemas.optimization import DateRange, OptimizedJob
from app.schemas.pattern import HistoricalSchedulePattern
from app.schemas.preferences import SchedulingPreferences
from app.services.clustering import UNASSIGNED_CLUSTER_NAME
from app.services.pattern_analyzer import (
    DEFAULT_PREFERRED_HOUR, MAX_DURATION_MINUTES, MIN_DURATION_MINUTES, generate_job_identifier
)

logger = logging.getLogger(__name__)

MAX_FORWARD_WEEKS = 52
BACKWARD_LOOKBACK_DAYS = 30
NO_PATTERN_CONFIDENCE = 0.5
WORKING_WEEKDAYS = (1, 2, 3, 4, 5)


@dataclass(frozen=True)
class SchedulingControls:
    """Admin date controls: inclusive range plus exclusions."""
    start: date
    end: date
    excluded_days: FrozenSet[int] = frozenset()  # ISO weekdays
    excluded_dates: FrozenSet[date] = frozenset()
    allow_weekends: bool = False

    @classmethod
    def from_preferences(cls, preferences: SchedulingPreferences, date_range: DateRange) -> "SchedulingControls":
        """The admin-configured range wins over the run's range when set."""
        return cls(
            start=preferences.start_date or date_range.start.date(),
            end=preferences.end_date or date_range.end.date(),
            excluded_days=frozenset(preferences.excluded_days),
            excluded_dates=frozenset(preferences.excluded_dates),
            allow_weekends=preferences.allow_weekends,
        )


def is_date_available_for_scheduling(day: date, controls: SchedulingControls) -> bool:
    if day < controls.start or day > controls.end:
        return False
    if day.isoweekday() in controls.excluded_days:
        return False
    if day in controls.excluded_dates:
        return False
    if not controls.allow_weekends and day.isoweekday() >= 6:
        return False
    return True


def first_weekday_on_or_after(start: date, iso_weekday: int) -> date:
    return start + timedelta(days=(iso_weekday - start.isoweekday()) % 7)


def next_available_forward(
    target: date,
    controls: SchedulingControls,
    taken: Iterable[date] = (),
    max_attempts: int = MAX_FORWARD_WEEKS
) -> Optional[date]:
    """First available date at target + k weeks, k < max_attempts, within range."""
    taken = set(taken)
    for attempt in range(max_attempts):
        candidate = target + timedelta(weeks=attempt)
        if candidate > controls.end:
            return None
        if candidate not in taken and is_date_available_for_scheduling(candidate, controls):
            return candidate
    return None


def next_available_backward_fallback(
    iso_weekday: int,
    controls: SchedulingControls,
    taken: Iterable[date] = (),
    lookback_days: int = BACKWARD_LOOKBACK_DAYS
) -> Optional[date]:
    """Latest available date on the given weekday within lookback_days of the range end."""
    taken = set(taken)
    for offset in range(lookback_days):
        candidate = controls.end - timedelta(days=offset)
        if candidate < controls.start:
            return None
        if candidate.isoweekday() != iso_weekday or candidate in taken:
            continue
        if is_date_available_for_scheduling(candidate, controls):
            return candidate
    return None


def resolve_batch_date(
    iso_weekday: int,
    week_offset: int,
    controls: SchedulingControls,
    taken: Iterable[date] = ()
) -> Optional[date]:
    taken = set(taken)
    target = first_weekday_on_or_after(controls.start, iso_weekday) + timedelta(weeks=week_offset)
    found = next_available_forward(target, controls, taken)
    if found is None:
        found = next_available_backward_fallback(iso_weekday, controls, taken)
    return found


def scheduled_time_for(day: date, hour: int) -> datetime:
    return datetime.combine(day, time(hour, 0, 0), tzinfo=timezone.utc)


@dataclass
class DayBatch:
    """One cluster's jobs for one calendar day, before routing."""
    cluster_id: str
    cluster_name: str
    day: date
    jobs: List[OptimizedJob] = field(default_factory=list)


def _expected_duration(job: JobOptimizationData, pattern: Optional[HistoricalSchedulePattern]) -> int:
    # Historical average only when history actually recorded usable durations
    if pattern and any(
        MIN_DURATION_MINUTES <= occurrence.actual_duration <= MAX_DURATION_MINUTES
        for occurrence in pattern.historical_data
    ):
        return pattern.average_duration
    return job.estimated_duration


class HybridScheduler:
    """Groups each cluster's jobs by preferred weekday and places capacity-sized batches on dates."""

    def __init__(self, preferences: SchedulingPreferences, controls: SchedulingControls):
        self.preferences = preferences
        self.controls = controls

    def schedule(
        self,
        clustered_jobs: Dict[str, List[JobOptimizationData]],
        clusters: Dict[str, LocationCluster],
        patterns: Dict[str, HistoricalSchedulePattern]
    ) -> Tuple[List[DayBatch], List[JobOptimizationData]]:
        """
        Args:
            clustered_jobs: Jobs by cluster id, as produced by cluster_jobs
            clusters: Loaded clusters by id
            patterns: Historical patterns by job identifier

        Returns:
            (day batches in cluster then date order, jobs that found no date)
        """
        batches: List[DayBatch] = []
        unscheduled: List[JobOptimizationData] = []

        for cluster_id, jobs in clustered_jobs.items():
            cluster = clusters.get(cluster_id)
            cluster_name = cluster.cluster_name if cluster else UNASSIGNED_CLUSTER_NAME
            capacity = cluster.constraints.max_jobs_per_day if cluster else self.preferences.max_jobs_per_day

            cluster_batches, dropped = self._schedule_cluster(
                cluster_id, cluster_name, capacity, jobs, patterns
            )
            batches.extend(sorted(cluster_batches, key=lambda batch: batch.day))
            unscheduled.extend(dropped)

        logger.info(
            "Hybrid scheduling produced %d day batches, %d jobs unscheduled",
            len(batches), len(unscheduled)
        )
        return batches, unscheduled

    def _schedule_cluster(
        self,
        cluster_id: str,
        cluster_name: str,
        capacity: int,
        jobs: List[JobOptimizationData],
        patterns: Dict[str, HistoricalSchedulePattern]
    ) -> Tuple[List[DayBatch], List[JobOptimizationData]]:
        candidates = []
        for job in jobs:
            pattern = patterns.get(generate_job_identifier(job.job_title, job.location))
            confidence = pattern.confidence if pattern else NO_PATTERN_CONFIDENCE
            candidates.append((job, pattern, confidence))
        candidates.sort(key=lambda item: (-item[2], item[0].date_due))

        weekday_buckets: Dict[int, List[Tuple[JobOptimizationData, Optional[HistoricalSchedulePattern], float]]] = {}
        round_robin = 0
        for job, pattern, confidence in candidates:
            if pattern:
                weekday = pattern.preferred_day_of_week
            else:
                weekday = WORKING_WEEKDAYS[round_robin % len(WORKING_WEEKDAYS)]
                round_robin += 1
            weekday_buckets.setdefault(weekday, []).append((job, pattern, confidence))

        taken: Set[date] = set()
        batches: List[DayBatch] = []
        dropped: List[JobOptimizationData] = []

        for weekday in sorted(weekday_buckets):
            bucket = weekday_buckets[weekday]
            for week_offset, start in enumerate(range(0, len(bucket), capacity)):
                chunk = bucket[start:start + capacity]
                day = resolve_batch_date(weekday, week_offset, self.controls, taken)
                if day is None:
                    logger.warning(
                        "No available date for %d %s jobs on weekday %d (week +%d); leaving unscheduled",
                        len(chunk), cluster_name, weekday, week_offset
                    )
                    dropped.extend(job for job, _, _ in chunk)
                    continue

                taken.add(day)
                batch = DayBatch(cluster_id=cluster_id, cluster_name=cluster_name, day=day)
                for job, pattern, confidence in chunk:
                    hour = pattern.preferred_hour if pattern else DEFAULT_PREFERRED_HOUR
                    batch.jobs.append(OptimizedJob(
                        job_id=job.job_id,
                        original_job=job,
                        scheduled_time=scheduled_time_for(day, hour),
                        estimated_duration=_expected_duration(job, pattern),
                        confidence=confidence,
                        historical_pattern=pattern,
                    ))
                batches.append(batch)

        return batches, dropped
