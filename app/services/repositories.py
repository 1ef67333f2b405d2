"""
SQLAlchemy-backed implementations of the engine's collaborator protocols.

Sessions are synchronous, so every call runs in FastAPI's threadpool with its
own session. Datetimes are stored naive in UTC and returned timezone-aware.
"""
import logging
from datetime import date, datetime, timezone
from typing import Callable, List, Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from app import crud
from app.core.config import settings
from app.db.session import SessionLocal
from app.models.cluster import LocationCluster as LocationClusterModel
from app.models.distance_matrix import OptimizationDistanceMatrix
from app.models.job import JobDue
from app.models.pattern import HistoricalSchedulePattern as PatternModel
from app.models.preferences import SchedulingPreferences as PreferencesModel
from app.models.schedule import Schedule
from app.schemas.cluster import ClusterConstraints, Coordinates, LocationCluster
from app.schemas.job import (
    JobConstraints, JobOptimizationData, calculate_priority, estimate_duration_from_price
)
from app.schemas.optimization import DateRange, DistanceMatrix
from app.schemas.pattern import HistoricalSchedulePattern
from app.schemas.preferences import SchedulingPreferences
from app.schemas.schedule import ExistingSchedule
from app.services.clustering import DEFAULT_CLUSTERS
from app.services.geo import normalize_address

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]


def to_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def job_to_optimization_data(db_job: JobDue, buffer_after: int = 30) -> JobOptimizationData:
    date_due = to_utc(db_job.date_due)
    price = float(db_job.price) if db_job.price is not None else None
    return JobOptimizationData(
        job_id=str(db_job.id),
        invoice_id=db_job.invoice_id,
        job_title=db_job.job_title,
        location=db_job.location,
        normalized_location=normalize_address(db_job.location),
        client_name=db_job.client_name or "Unknown Client",
        date_due=date_due,
        estimated_duration=estimate_duration_from_price(price),
        priority=calculate_priority(date_due),
        constraints=JobConstraints.for_day(date_due, buffer_after=buffer_after),
    )


def schedule_to_existing(db_schedule: Schedule) -> ExistingSchedule:
    return ExistingSchedule(
        id=str(db_schedule.id),
        job_title=db_schedule.job_title or "",
        location=db_schedule.location,
        start_date_time=to_utc(db_schedule.start_date_time),
        hours=db_schedule.hours,
        assigned_technicians=db_schedule.assigned_technicians or [],
        confirmed=bool(db_schedule.confirmed),
        technician_notes=db_schedule.technician_notes or "",
    )


def cluster_to_schema(db_cluster: LocationClusterModel) -> LocationCluster:
    return LocationCluster(
        id=str(db_cluster.id),
        cluster_name=db_cluster.cluster_name,
        center_coordinates=Coordinates(lat=db_cluster.center_lat, lng=db_cluster.center_lng),
        radius=db_cluster.radius,
        constraints=ClusterConstraints(
            max_jobs_per_day=db_cluster.max_jobs_per_day,
            buffer_time_minutes=db_cluster.buffer_time_minutes,
            preferred_days=db_cluster.preferred_days or [],
            special_requirements=db_cluster.special_requirements,
        ),
        is_active=db_cluster.is_active,
        created_at=to_utc(db_cluster.created_at),
        updated_at=to_utc(db_cluster.updated_at),
    )


def pattern_to_schema(db_pattern: PatternModel) -> HistoricalSchedulePattern:
    return HistoricalSchedulePattern(
        job_identifier=db_pattern.job_identifier,
        preferred_hour=db_pattern.preferred_hour,
        hour_confidence=db_pattern.hour_confidence,
        preferred_day_of_week=db_pattern.preferred_day_of_week,
        day_confidence=db_pattern.day_confidence,
        average_duration=db_pattern.average_duration,
        historical_data=db_pattern.historical_data or [],
        total_occurrences=db_pattern.total_occurrences,
        last_analyzed=to_utc(db_pattern.last_analyzed),
    )


def matrix_to_schema(db_matrix: OptimizationDistanceMatrix) -> DistanceMatrix:
    return DistanceMatrix(
        run_id=db_matrix.run_id,
        location_hash=db_matrix.location_hash,
        locations=db_matrix.locations,
        coordinates=[Coordinates(lat=lat, lng=lng) for lat, lng in db_matrix.coordinates],
        durations=db_matrix.durations,
        distances=db_matrix.distances,
        date_range_start=to_utc(db_matrix.date_range_start),
        date_range_end=to_utc(db_matrix.date_range_end),
        calculated_at=to_utc(db_matrix.calculated_at),
    )


def preferences_to_schema(db_preferences: PreferencesModel) -> SchedulingPreferences:
    return SchedulingPreferences(
        max_jobs_per_day=db_preferences.max_jobs_per_day,
        work_day_start=db_preferences.work_day_start,
        work_day_end=db_preferences.work_day_end,
        default_buffer_minutes=db_preferences.default_buffer_minutes,
        starting_point_address=db_preferences.starting_point_address,
        excluded_days=db_preferences.excluded_days or [],
        excluded_dates=[date.fromisoformat(value) for value in db_preferences.excluded_dates or []],
        allow_weekends=db_preferences.allow_weekends,
        start_date=db_preferences.start_date,
        end_date=db_preferences.end_date,
    )


class _SqlRepository:
    def __init__(self, session_factory: SessionFactory = SessionLocal):
        self.session_factory = session_factory

    async def _run(self, func, *args, **kwargs):
        def work():
            db = self.session_factory()
            try:
                return func(db, *args, **kwargs)
            finally:
                db.close()
        return await run_in_threadpool(work)


class SqlJobSource(_SqlRepository):
    def __init__(self, session_factory: SessionFactory = SessionLocal, buffer_after: int = None):
        super().__init__(session_factory)
        self.buffer_after = settings.DEFAULT_BUFFER_MINUTES if buffer_after is None else buffer_after

    async def fetch_unscheduled_jobs(self, date_range: DateRange) -> List[JobOptimizationData]:
        def query(db: Session) -> List[JobOptimizationData]:
            rows = crud.job.get_multi_unscheduled(db, due_before=to_naive_utc(date_range.end))
            return [job_to_optimization_data(row, self.buffer_after) for row in rows]
        return await self._run(query)


class SqlPreferenceSource(_SqlRepository):
    """Stored default preferences, created from settings on first read when seed_defaults is set."""

    def __init__(self, session_factory: SessionFactory = SessionLocal, seed_defaults: bool = True):
        super().__init__(session_factory)
        self.seed_defaults = seed_defaults

    async def get_preferences(self) -> Optional[SchedulingPreferences]:
        def query(db: Session) -> Optional[SchedulingPreferences]:
            db_obj = crud.preferences.get_default(db)
            if db_obj is None and self.seed_defaults:
                logger.info("No scheduling preferences stored, creating defaults")
                db_obj = crud.preferences.upsert_default(db, obj_in=self._columns(SchedulingPreferences()))
            return preferences_to_schema(db_obj) if db_obj is not None else None
        return await self._run(query)

    async def save(self, preferences: SchedulingPreferences) -> SchedulingPreferences:
        def query(db: Session) -> SchedulingPreferences:
            db_obj = crud.preferences.upsert_default(db, obj_in=self._columns(preferences))
            return preferences_to_schema(db_obj)
        return await self._run(query)

    @staticmethod
    def _columns(preferences: SchedulingPreferences) -> dict:
        data = preferences.model_dump()
        data["excluded_dates"] = [value.isoformat() for value in preferences.excluded_dates]
        return data


class SqlClusterSource(_SqlRepository):
    async def get_clusters(self) -> List[LocationCluster]:
        def query(db: Session) -> List[LocationCluster]:
            if crud.cluster.count(db) == 0:
                logger.info("Seeding %d default location clusters", len(DEFAULT_CLUSTERS))
                crud.cluster.seed(db, definitions=DEFAULT_CLUSTERS)
            return [cluster_to_schema(row) for row in crud.cluster.get_multi_active(db)]
        return await self._run(query)


class SqlScheduleSource(_SqlRepository):
    async def get_schedules(self, date_range: DateRange) -> List[ExistingSchedule]:
        def query(db: Session) -> List[ExistingSchedule]:
            rows = crud.schedule.get_in_range(
                db, start=to_naive_utc(date_range.start), end=to_naive_utc(date_range.end)
            )
            return [schedule_to_existing(row) for row in rows]
        return await self._run(query)

    async def get_history(self, job_title: str, location: str, limit: int = 5) -> List[ExistingSchedule]:
        def query(db: Session) -> List[ExistingSchedule]:
            rows = crud.schedule.get_recent_matching(db, job_title=job_title, location=location, limit=limit)
            return [schedule_to_existing(row) for row in rows]
        return await self._run(query)


class SqlPatternStore(_SqlRepository):
    async def find(self, identifier: str) -> Optional[HistoricalSchedulePattern]:
        def query(db: Session) -> Optional[HistoricalSchedulePattern]:
            db_obj = crud.pattern.get_by_identifier(db, job_identifier=identifier)
            return pattern_to_schema(db_obj) if db_obj is not None else None
        return await self._run(query)

    async def save(self, pattern: HistoricalSchedulePattern) -> HistoricalSchedulePattern:
        def query(db: Session) -> HistoricalSchedulePattern:
            data = pattern.model_dump()
            data["historical_data"] = [
                occurrence.model_dump(mode="json") for occurrence in pattern.historical_data
            ]
            data["last_analyzed"] = to_naive_utc(pattern.last_analyzed)
            return pattern_to_schema(crud.pattern.upsert(db, obj_in=data))
        return await self._run(query)

    async def delete(self, identifier: str) -> bool:
        return await self._run(
            lambda db: crud.pattern.remove_by_identifier(db, job_identifier=identifier)
        )


class SqlDistanceMatrixStore(_SqlRepository):
    async def find_by_run_id(self, run_id: str) -> Optional[DistanceMatrix]:
        def query(db: Session) -> Optional[DistanceMatrix]:
            db_obj = crud.distance_matrix.get_by_run_id(db, run_id=run_id)
            return matrix_to_schema(db_obj) if db_obj is not None else None
        return await self._run(query)

    async def find_by_location_hash(self, location_hash: str) -> Optional[DistanceMatrix]:
        def query(db: Session) -> Optional[DistanceMatrix]:
            db_obj = crud.distance_matrix.get_latest_by_location_hash(db, location_hash=location_hash)
            return matrix_to_schema(db_obj) if db_obj is not None else None
        return await self._run(query)

    async def save(self, matrix: DistanceMatrix) -> DistanceMatrix:
        def query(db: Session) -> DistanceMatrix:
            data = {
                "run_id": matrix.run_id,
                "location_hash": matrix.location_hash,
                "locations": matrix.locations,
                "coordinates": [[point.lat, point.lng] for point in matrix.coordinates],
                "durations": matrix.durations,
                "distances": matrix.distances,
                "date_range_start": to_naive_utc(matrix.date_range_start),
                "date_range_end": to_naive_utc(matrix.date_range_end),
                "calculated_at": to_naive_utc(matrix.calculated_at) or datetime.utcnow(),
            }
            return matrix_to_schema(crud.distance_matrix.upsert(db, obj_in=data))
        return await self._run(query)
