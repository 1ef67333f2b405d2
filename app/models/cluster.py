from sqlalchemy import Column, String, DateTime, Integer, Boolean, Float, JSON
from app.db.base_class import Base
from datetime import datetime

class LocationCluster(Base):
    __tablename__ = "location_clusters"

    id = Column(Integer, primary_key=True, index=True)
    cluster_name = Column(String, nullable=False, unique=True)
    center_lat = Column(Float, nullable=False)
    center_lng = Column(Float, nullable=False)
    radius = Column(Float, nullable=False)  # in km

    # Constraints
    max_jobs_per_day = Column(Integer, nullable=False, default=4)
    buffer_time_minutes = Column(Integer, nullable=False, default=15)
    preferred_days = Column(JSON, nullable=False, default=list)
    special_requirements = Column(String, nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<LocationCluster {self.cluster_name}>"
