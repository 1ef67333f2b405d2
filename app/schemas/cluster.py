from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field


class Coordinates(BaseModel):
    """Geographic point in decimal degrees."""
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)

    def to_tuple(self):
        return (self.lat, self.lng)


class ClusterConstraints(BaseModel):
    max_jobs_per_day: int = Field(4, ge=1)
    buffer_time_minutes: int = Field(15, ge=0)
    preferred_days: List[str] = Field(default_factory=list)
    special_requirements: Optional[str] = None


class LocationCluster(BaseModel):
    """A named geographic bucket sharing a daily capacity."""
    id: str
    cluster_name: str
    center_coordinates: Coordinates
    radius: float = Field(..., gt=0, description="Radius in km")
    constraints: ClusterConstraints = Field(default_factory=ClusterConstraints)
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
