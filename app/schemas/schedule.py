from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field


class ExistingSchedule(BaseModel):
    """An already-committed calendar entry."""
    id: str
    job_title: str = ""
    location: str
    start_date_time: datetime
    hours: Optional[float] = None
    assigned_technicians: List[str] = Field(default_factory=list)
    confirmed: bool = False
    technician_notes: str = ""
