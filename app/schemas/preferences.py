from datetime import date
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator

from app.core.config import settings


class SchedulingPreferences(BaseModel):
    """Global scheduling preferences and admin date controls."""
    max_jobs_per_day: int = Field(settings.DEFAULT_MAX_JOBS_PER_DAY, ge=1)
    work_day_start: str = Field(settings.DEFAULT_WORK_DAY_START, pattern=r"^\d{2}:\d{2}$")
    work_day_end: str = Field(settings.DEFAULT_WORK_DAY_END, pattern=r"^\d{2}:\d{2}$")
    default_buffer_minutes: int = Field(settings.DEFAULT_BUFFER_MINUTES, ge=0)
    starting_point_address: str = settings.DEFAULT_STARTING_POINT_ADDRESS
    excluded_days: List[int] = Field(default_factory=list, description="ISO weekdays (1=Monday, 7=Sunday)")
    excluded_dates: List[date] = Field(default_factory=list)
    allow_weekends: bool = False
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @field_validator('excluded_days')
    def validate_excluded_days(cls, v):
        if not all(1 <= day <= 7 for day in v):
            raise ValueError('Excluded days must be between 1 (Monday) and 7 (Sunday)')
        return sorted(set(v))

    @model_validator(mode='after')
    def validate_range(self) -> 'SchedulingPreferences':
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError('end_date must not be before start_date')
        return self

    @property
    def work_day_start_hour(self) -> int:
        return int(self.work_day_start.split(":")[0])

    @property
    def work_day_end_hour(self) -> int:
        return int(self.work_day_end.split(":")[0])

    class Config:
        from_attributes = True
