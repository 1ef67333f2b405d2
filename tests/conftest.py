from datetime import date, datetime, timezone
from typing import Dict, List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.base import Base
from app.schemas.cluster import ClusterConstraints, Coordinates, LocationCluster
from app.schemas.job import JobConstraints, JobOptimizationData
from app.schemas.optimization import DateRange, DistanceMatrix, OptimizedJob
from app.schemas.pattern import HistoricalSchedulePattern
from app.schemas.preferences import SchedulingPreferences
from app.schemas.schedule import ExistingSchedule
from app.services.clustering import DEFAULT_CLUSTERS
from app.services.geo import DriveTimeResult, MatrixResult, RoutingError
from app.services.pattern_analyzer import generate_job_identifier

# Monday 2 November 2026 to Monday 30 November 2026
TEST_RANGE_START = date(2026, 11, 2)
TEST_RANGE_END = date(2026, 11, 30)
TEST_DEPOT = "11020 Williams Rd Richmond, BC V7A 1X8"
TEST_COORDINATES = {
    TEST_DEPOT: Coordinates(lat=49.1400, lng=-123.1000),
    "100 Main Street, Vancouver, BC": Coordinates(lat=49.2800, lng=-123.1000),
    "200 Granville Street, Vancouver, BC": Coordinates(lat=49.2700, lng=-123.1300),
    "300 Cambie Street, Vancouver, BC": Coordinates(lat=49.2600, lng=-123.1150),
    "400 Kingsway, Burnaby, BC": Coordinates(lat=49.2300, lng=-123.0000),
    "500 King George Blvd, Surrey, BC": Coordinates(lat=49.1900, lng=-122.8500),
}


def make_job(
    job_id: str,
    location: str,
    job_title: str = None,
    date_due: datetime = None,
    estimated_duration: int = 150
) -> JobOptimizationData:
    date_due = date_due or datetime(2026, 11, 5, 12, 0, tzinfo=timezone.utc)
    return JobOptimizationData(
        job_id=job_id,
        invoice_id=f"INV-{job_id}",
        job_title=job_title or f"Hood cleaning {job_id}",
        location=location,
        client_name="Test Client",
        date_due=date_due,
        estimated_duration=estimated_duration,
        priority=5,
        constraints=JobConstraints.for_day(date_due),
    )


def make_pattern(
    job: JobOptimizationData,
    preferred_day_of_week: int = 2,
    preferred_hour: int = 9,
    hour_confidence: float = 1.0,
    day_confidence: float = 1.0
) -> HistoricalSchedulePattern:
    return HistoricalSchedulePattern(
        job_identifier=generate_job_identifier(job.job_title, job.location),
        preferred_hour=preferred_hour,
        hour_confidence=hour_confidence,
        preferred_day_of_week=preferred_day_of_week,
        day_confidence=day_confidence,
        average_duration=180,
        historical_data=[],
        total_occurrences=3,
        last_analyzed=datetime(2026, 10, 1, tzinfo=timezone.utc),
    )


def make_optimized_job(
    job: JobOptimizationData,
    scheduled_time: datetime,
    pattern: Optional[HistoricalSchedulePattern] = None
) -> OptimizedJob:
    return OptimizedJob(
        job_id=job.job_id,
        original_job=job,
        scheduled_time=scheduled_time,
        estimated_duration=job.estimated_duration,
        confidence=pattern.confidence if pattern else 0.5,
        historical_pattern=pattern,
    )


def make_clusters(**capacity_overrides: int) -> List[LocationCluster]:
    """The default regions with ids "1".."8"; keyword arguments override capacity by cluster name."""
    clusters = []
    for index, definition in enumerate(DEFAULT_CLUSTERS, start=1):
        constraints = dict(definition["constraints"])
        name = definition["cluster_name"]
        if name in capacity_overrides:
            constraints["max_jobs_per_day"] = capacity_overrides[name]
        clusters.append(LocationCluster(
            id=str(index),
            cluster_name=name,
            center_coordinates=Coordinates(**definition["center_coordinates"]),
            radius=definition["radius"],
            constraints=ClusterConstraints(**constraints),
        ))
    return clusters


class FakeGeoProvider:
    """Deterministic provider: 100 minutes per degree of lat/lng separation."""

    def __init__(self, coordinates: Dict[str, Coordinates] = None, fail_routing: bool = False):
        self.coordinates = dict(TEST_COORDINATES if coordinates is None else coordinates)
        self.fail_routing = fail_routing
        self.geocode_calls: List[str] = []
        self.distance_calls = 0
        self.matrix_calls = 0

    @staticmethod
    def minutes_between(origin: Coordinates, destination: Coordinates) -> float:
        return round((abs(origin.lat - destination.lat) + abs(origin.lng - destination.lng)) * 100, 2)

    async def geocode(self, address: str) -> Optional[Coordinates]:
        self.geocode_calls.append(address)
        return self.coordinates.get(address)

    async def distance(self, origin: Coordinates, destination: Coordinates) -> DriveTimeResult:
        self.distance_calls += 1
        if self.fail_routing:
            return DriveTimeResult.failure(RoutingError("routing unavailable"))
        return DriveTimeResult.success(self.minutes_between(origin, destination), 1.0)

    async def matrix(self, coordinates: List[Coordinates]) -> Optional[MatrixResult]:
        self.matrix_calls += 1
        if self.fail_routing:
            return None
        durations = [[self.minutes_between(a, b) for b in coordinates] for a in coordinates]
        distances = [[value / 2 for value in row] for row in durations]
        return MatrixResult(durations=durations, distances=distances)


class InMemoryJobSource:
    def __init__(self, jobs: List[JobOptimizationData]):
        self.jobs = list(jobs)

    async def fetch_unscheduled_jobs(self, date_range: DateRange) -> List[JobOptimizationData]:
        return list(self.jobs)


class InMemoryPreferenceSource:
    def __init__(self, preferences: Optional[SchedulingPreferences]):
        self.preferences = preferences

    async def get_preferences(self) -> Optional[SchedulingPreferences]:
        return self.preferences


class InMemoryClusterSource:
    def __init__(self, clusters: List[LocationCluster]):
        self.clusters = list(clusters)

    async def get_clusters(self) -> List[LocationCluster]:
        return list(self.clusters)


class InMemoryScheduleSource:
    def __init__(self, schedules: List[ExistingSchedule] = None, history: List[ExistingSchedule] = None):
        self.schedules = list(schedules or [])
        self.history = list(history or [])
        self.history_calls = 0

    async def get_schedules(self, date_range: DateRange) -> List[ExistingSchedule]:
        return [
            schedule for schedule in self.schedules
            if date_range.start <= schedule.start_date_time <= date_range.end
        ]

    async def get_history(self, job_title: str, location: str, limit: int = 5) -> List[ExistingSchedule]:
        self.history_calls += 1
        matches = [
            entry for entry in self.history
            if entry.job_title == job_title or location.lower() in entry.location.lower()
        ]
        matches.sort(key=lambda entry: entry.start_date_time, reverse=True)
        return matches[:limit]


class InMemoryPatternStore:
    def __init__(self, patterns: List[HistoricalSchedulePattern] = None):
        self.patterns = {pattern.job_identifier: pattern for pattern in patterns or []}
        self.saved: List[HistoricalSchedulePattern] = []

    async def find(self, identifier: str) -> Optional[HistoricalSchedulePattern]:
        return self.patterns.get(identifier)

    async def save(self, pattern: HistoricalSchedulePattern) -> HistoricalSchedulePattern:
        self.patterns[pattern.job_identifier] = pattern
        self.saved.append(pattern)
        return pattern

    async def delete(self, identifier: str) -> bool:
        return self.patterns.pop(identifier, None) is not None


class InMemoryMatrixStore:
    def __init__(self, matrices: List[DistanceMatrix] = None):
        self.matrices = {matrix.run_id: matrix for matrix in matrices or []}

    async def find_by_run_id(self, run_id: str) -> Optional[DistanceMatrix]:
        return self.matrices.get(run_id)

    async def find_by_location_hash(self, location_hash: str) -> Optional[DistanceMatrix]:
        for matrix in reversed(list(self.matrices.values())):
            if matrix.location_hash == location_hash:
                return matrix
        return None

    async def save(self, matrix: DistanceMatrix) -> DistanceMatrix:
        self.matrices[matrix.run_id] = matrix
        return matrix


@pytest.fixture
def test_range() -> DateRange:
    return DateRange.from_dates(TEST_RANGE_START, TEST_RANGE_END)


@pytest.fixture
def preferences() -> SchedulingPreferences:
    return SchedulingPreferences(starting_point_address=TEST_DEPOT)


@pytest.fixture
def geo_provider() -> FakeGeoProvider:
    return FakeGeoProvider()


@pytest.fixture
def session_factory():
    """Sessions on a private in-memory SQLite database with every table created."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
