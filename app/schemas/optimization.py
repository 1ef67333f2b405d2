from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field, model_validator

from app.schemas.cluster import Coordinates
from app.schemas.job import JobOptimizationData
from app.schemas.pattern import HistoricalSchedulePattern


class SchedulingStrategy(str, Enum):
    """Supported scheduling strategies."""
    HYBRID_HISTORICAL_EFFICIENCY = "hybrid_historical_efficiency"


class DateRange(BaseModel):
    """Inclusive range of calendar days."""
    start: datetime
    end: datetime

    @model_validator(mode='after')
    def validate_dates(self) -> 'DateRange':
        if self.end < self.start:
            raise ValueError('End date must be after start date')
        return self

    @classmethod
    def from_dates(cls, start: date, end: date) -> 'DateRange':
        return cls(
            start=datetime(start.year, start.month, start.day, tzinfo=timezone.utc),
            end=datetime(end.year, end.month, end.day, 23, 59, 59, tzinfo=timezone.utc),
        )

    @classmethod
    def next_days(cls, days: int, today: Optional[date] = None) -> 'DateRange':
        today = today or datetime.now(timezone.utc).date()
        return cls.from_dates(today, today + timedelta(days=days))


class DistanceMatrix(BaseModel):
    """Optimization-wide travel matrix. Durations in minutes, distances in km."""
    run_id: str
    location_hash: str
    locations: List[str]
    coordinates: List[Coordinates]
    durations: List[List[float]]
    distances: List[List[float]]
    date_range_start: Optional[datetime] = None
    date_range_end: Optional[datetime] = None
    calculated_at: Optional[datetime] = None

    def index_of(self, location: str) -> Optional[int]:
        try:
            return self.locations.index(location)
        except ValueError:
            return None

    def covers(self, locations: List[str]) -> bool:
        known = set(self.locations)
        return all(location in known for location in locations)


class OptimizedJob(BaseModel):
    """A job with its assigned time and position on the day's route."""
    job_id: str
    original_job: JobOptimizationData
    scheduled_time: datetime
    estimated_duration: int = Field(..., description="Minutes")
    drive_time_to_previous: int = 0  # minutes
    drive_time_to_next: int = 0  # minutes
    order_in_route: int = 1
    confidence: float = Field(0.5, ge=0, le=1)
    historical_pattern: Optional[HistoricalSchedulePattern] = None

    @property
    def hour_confidence(self) -> float:
        return self.historical_pattern.hour_confidence if self.historical_pattern else 0.0


class OptimizedScheduleGroup(BaseModel):
    """One cluster on one calendar day."""
    cluster_id: str
    cluster_name: str
    date: datetime
    jobs: List[OptimizedJob]
    total_drive_time: int = 0  # minutes
    total_work_time: int = 0  # minutes
    estimated_start_time: datetime
    estimated_end_time: datetime
    assigned_technicians: List[str] = Field(default_factory=list)
    route_optimized: bool = False


class OptimizationMetrics(BaseModel):
    total_drive_time: int = 0  # minutes
    average_jobs_per_day: float = 0.0
    utilization_rate: float = 0.0
    conflicts_resolved: int = 0


class OptimizationResult(BaseModel):
    """Result of an optimization run."""
    run_id: str
    strategy: SchedulingStrategy
    total_jobs: int
    scheduled_groups: List[OptimizedScheduleGroup] = Field(default_factory=list)
    unscheduled_jobs: List[JobOptimizationData] = Field(default_factory=list)
    metrics: OptimizationMetrics = Field(default_factory=OptimizationMetrics)
    generated_at: datetime


class OptimizationRunRequest(BaseModel):
    """Request body for an optimization run."""
    strategy: SchedulingStrategy = SchedulingStrategy.HYBRID_HISTORICAL_EFFICIENCY
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @model_validator(mode='after')
    def validate_range(self) -> 'OptimizationRunRequest':
        if (self.start_date is None) != (self.end_date is None):
            raise ValueError('start_date and end_date must be provided together')
        if self.start_date and self.end_date < self.start_date:
            raise ValueError('End date must be after start date')
        return self

    def date_range(self) -> Optional[DateRange]:
        if self.start_date is None:
            return None
        return DateRange.from_dates(self.start_date, self.end_date)
