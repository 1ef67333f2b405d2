import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from app.schemas.job import JobOptimizationData
from app.schemas.pattern import HistoricalOccurrence, HistoricalSchedulePattern
from app.schemas.preferences import SchedulingPreferences
from app.schemas.schedule import ExistingSchedule
from app.services.geo import normalize_address
from app.services.interfaces import ExistingScheduleSource, HistoricalPatternStore

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 5
DEFAULT_PREFERRED_HOUR = 9
DEFAULT_PREFERRED_DAY = 1
DEFAULT_AVERAGE_DURATION = 180
MIN_DURATION_MINUTES = 60
MAX_DURATION_MINUTES = 480


def generate_job_identifier(job_title: str, location: str) -> str:
    """Stable identity for a recurring job: normalized title and address."""
    normalized_title = " ".join((job_title or "").lower().split())
    return f"{normalized_title}|{normalize_address(location)}"


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _modal_value(values: List[int]) -> Tuple[Optional[int], float]:
    """
    Most common value and the share of values agreeing with it.

    Ties go to the value seen first; callers pass most recent first.
    """
    if not values:
        return None, 0.0
    if len(values) == 1:
        return values[0], 1.0
    value, count = Counter(values).most_common(1)[0]
    return value, count / len(values)


def analyze_occurrences(
    job_identifier: str,
    schedules: Sequence[ExistingSchedule],
    work_day_start_hour: int,
    work_day_end_hour: int,
    now: Optional[datetime] = None
) -> HistoricalSchedulePattern:
    """
    Derive preferred hour, weekday and duration from historical entries.

    Args:
        job_identifier: Identity the pattern is stored under
        schedules: Historical entries, most recent first (at most 5 are kept)
        work_day_start_hour: First business hour, inclusive
        work_day_end_hour: Last business hour, inclusive

    Returns:
        The derived pattern. Confidences are always within [0, 1].
    """
    recent = list(schedules)[:HISTORY_LIMIT]
    starts = [_as_utc(schedule.start_date_time) for schedule in recent]

    business_hours = [
        start.hour for start in starts
        if work_day_start_hour <= start.hour <= work_day_end_hour
    ]
    preferred_hour, hour_confidence = _modal_value(business_hours)

    preferred_day, day_confidence = _modal_value([start.isoweekday() for start in starts])

    durations = [
        schedule.hours * 60 for schedule in recent
        if schedule.hours is not None
        and MIN_DURATION_MINUTES <= schedule.hours * 60 <= MAX_DURATION_MINUTES
    ]
    average_duration = round(sum(durations) / len(durations)) if durations else DEFAULT_AVERAGE_DURATION

    historical_data = [
        HistoricalOccurrence(
            schedule_id=schedule.id,
            start_date_time=start,
            actual_duration=round(schedule.hours * 60) if schedule.hours else 0,
            assigned_technicians=schedule.assigned_technicians,
            completion_notes=schedule.technician_notes,
        )
        for schedule, start in zip(recent, starts)
    ]

    return HistoricalSchedulePattern(
        job_identifier=job_identifier,
        preferred_hour=DEFAULT_PREFERRED_HOUR if preferred_hour is None else preferred_hour,
        hour_confidence=hour_confidence,
        preferred_day_of_week=DEFAULT_PREFERRED_DAY if preferred_day is None else preferred_day,
        day_confidence=day_confidence,
        average_duration=average_duration,
        historical_data=historical_data,
        total_occurrences=len(recent),
        last_analyzed=now or datetime.now(timezone.utc),
    )


class PatternAnalyzer:
    """Looks up or derives one historical pattern per distinct job identity."""

    def __init__(
        self,
        pattern_store: HistoricalPatternStore,
        schedule_source: ExistingScheduleSource,
        history_limit: int = HISTORY_LIMIT
    ):
        self.pattern_store = pattern_store
        self.schedule_source = schedule_source
        self.history_limit = history_limit

    async def analyze(
        self,
        jobs: Sequence[JobOptimizationData],
        preferences: SchedulingPreferences
    ) -> Dict[str, HistoricalSchedulePattern]:
        """
        Patterns keyed by job identifier.

        Identities without any history have no entry. Newly derived patterns
        are written to the store for later runs.
        """
        patterns: Dict[str, HistoricalSchedulePattern] = {}
        seen = set()

        for job in jobs:
            identifier = generate_job_identifier(job.job_title, job.location)
            if identifier in seen:
                continue
            seen.add(identifier)

            pattern = await self._find_cached(identifier)
            if pattern is None:
                pattern = await self._derive(identifier, job, preferences)
            if pattern is not None:
                patterns[identifier] = pattern

        logger.info("Resolved %d historical patterns for %d job identities", len(patterns), len(seen))
        return patterns

    async def _find_cached(self, identifier: str) -> Optional[HistoricalSchedulePattern]:
        try:
            return await self.pattern_store.find(identifier)
        except Exception as e:
            logger.warning("Pattern lookup failed for %s: %s", identifier, str(e))
            return None

    async def _derive(
        self,
        identifier: str,
        job: JobOptimizationData,
        preferences: SchedulingPreferences
    ) -> Optional[HistoricalSchedulePattern]:
        try:
            history = await self.schedule_source.get_history(
                job.job_title, job.location, limit=self.history_limit
            )
        except Exception as e:
            logger.warning("History lookup failed for %s: %s", identifier, str(e))
            return None

        if not history:
            return None

        pattern = analyze_occurrences(
            identifier,
            history,
            preferences.work_day_start_hour,
            preferences.work_day_end_hour,
        )
        try:
            pattern = await self.pattern_store.save(pattern)
        except Exception as e:
            logger.warning("Could not persist pattern %s: %s", identifier, str(e))
        return pattern
