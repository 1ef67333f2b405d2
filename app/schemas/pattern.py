from datetime import datetime
from typing import List
from pydantic import BaseModel, Field


class HistoricalOccurrence(BaseModel):
    schedule_id: str
    start_date_time: datetime
    actual_duration: int = Field(..., description="Scheduled duration in minutes")
    assigned_technicians: List[str] = Field(default_factory=list)
    completion_notes: str = ""


class HistoricalSchedulePattern(BaseModel):
    """Preferred hour/day and duration learned for one job identity."""
    job_identifier: str
    preferred_hour: int = Field(9, ge=0, le=23)
    hour_confidence: float = Field(0.0, ge=0, le=1)
    preferred_day_of_week: int = Field(1, ge=1, le=7, description="ISO weekday, Sunday = 7")
    day_confidence: float = Field(0.0, ge=0, le=1)
    average_duration: int = Field(180, gt=0, description="Minutes")
    historical_data: List[HistoricalOccurrence] = Field(default_factory=list, max_length=5)
    total_occurrences: int = 0
    last_analyzed: datetime

    @property
    def confidence(self) -> float:
        return (self.hour_confidence + self.day_confidence) / 2

    class Config:
        from_attributes = True
