import math
from pydantic import BaseModel, Field
from datetime import datetime, time, timezone
from typing import Optional, List


def estimate_duration_from_price(price: Optional[float]) -> int:
    """Map an invoice total to an expected on-site duration in minutes."""
    if price is None or price < 600:
        return 150
    if price < 900:
        return 180
    return 240


def calculate_priority(date_due: datetime, now: Optional[datetime] = None) -> int:
    """Priority on a 1-10 scale, higher the closer (or more overdue) the due date."""
    now = now or datetime.now(timezone.utc)
    days_until_due = math.ceil((date_due - now).total_seconds() / 86400)
    return max(1, min(10, 10 - days_until_due))


class JobConstraints(BaseModel):
    earliest_start: datetime
    latest_start: datetime
    buffer_after: int = Field(30, ge=0, description="Buffer after the job in minutes")
    required_technicians: List[str] = Field(default_factory=list)

    @classmethod
    def for_day(cls, day: datetime, buffer_after: int = 30) -> "JobConstraints":
        """Default window: start between 08:00 and 15:00 on the given day."""
        tz = day.tzinfo or timezone.utc
        return cls(
            earliest_start=datetime.combine(day.date(), time(8, 0), tzinfo=tz),
            latest_start=datetime.combine(day.date(), time(15, 0), tzinfo=tz),
            buffer_after=buffer_after,
        )


class JobOptimizationData(BaseModel):
    """A job waiting to be placed on the calendar. Read-only input to a run."""
    job_id: str
    invoice_id: str
    job_title: str
    location: str
    normalized_location: Optional[str] = None
    client_name: str = "Unknown Client"
    date_due: datetime
    estimated_duration: int = Field(150, gt=0, description="Expected duration in minutes")
    priority: int = Field(5, ge=1, le=10)
    constraints: JobConstraints

    class Config:
        frozen = True


class JobCreate(BaseModel):
    invoice_id: str
    job_title: str
    location: str
    date_due: datetime
    client_name: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)


class Job(JobCreate):
    id: int
    is_scheduled: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
