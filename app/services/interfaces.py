"""
Collaborator interfaces consumed by the scheduling optimization engine.

The engine never talks to a database or an HTTP API directly; it receives
implementations of these protocols. SQL-backed versions live in
app.services.repositories, the OpenRouteService provider in
app.services.clients.openroute.
"""
from typing import List, Optional, Protocol

from app.schemas.cluster import Coordinates, LocationCluster
from app.schemas.job import JobOptimizationData
from app.schemas.optimization import DateRange, DistanceMatrix
from app.schemas.pattern import HistoricalSchedulePattern
from app.schemas.preferences import SchedulingPreferences
from app.schemas.schedule import ExistingSchedule
from app.services.geo import DriveTimeResult, MatrixResult


class JobSource(Protocol):
    async def fetch_unscheduled_jobs(self, date_range: DateRange) -> List[JobOptimizationData]:
        ...


class PreferenceSource(Protocol):
    async def get_preferences(self) -> Optional[SchedulingPreferences]:
        ...


class ClusterSource(Protocol):
    async def get_clusters(self) -> List[LocationCluster]:
        """Active clusters; seeds the default regional set when none exist."""
        ...


class ExistingScheduleSource(Protocol):
    async def get_schedules(self, date_range: DateRange) -> List[ExistingSchedule]:
        ...

    async def get_history(self, job_title: str, location: str, limit: int = 5) -> List[ExistingSchedule]:
        """Most recent entries first, matched by title or fuzzy location."""
        ...


class HistoricalPatternStore(Protocol):
    async def find(self, identifier: str) -> Optional[HistoricalSchedulePattern]:
        ...

    async def save(self, pattern: HistoricalSchedulePattern) -> HistoricalSchedulePattern:
        """Upsert by job identifier."""
        ...

    async def delete(self, identifier: str) -> bool:
        ...


class GeoProvider(Protocol):
    async def geocode(self, address: str) -> Optional[Coordinates]:
        ...

    async def distance(self, origin: Coordinates, destination: Coordinates) -> DriveTimeResult:
        ...

    async def matrix(self, coordinates: List[Coordinates]) -> Optional[MatrixResult]:
        ...


class DistanceMatrixStore(Protocol):
    async def find_by_run_id(self, run_id: str) -> Optional[DistanceMatrix]:
        ...

    async def find_by_location_hash(self, location_hash: str) -> Optional[DistanceMatrix]:
        ...

    async def save(self, matrix: DistanceMatrix) -> DistanceMatrix:
        """Upsert by run id."""
        ...
