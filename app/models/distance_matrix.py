from sqlalchemy import Column, String, DateTime, Integer, JSON
from app.db.base_class import Base
from datetime import datetime

class OptimizationDistanceMatrix(Base):
    """Location x location travel matrix, addressed by run id and by location set."""
    __tablename__ = "optimization_distance_matrices"

    id = Column(Integer, primary_key=True, index=True)
    run_id = Column(String, nullable=False, unique=True, index=True)
    location_hash = Column(String, nullable=False, index=True)

    locations = Column(JSON, nullable=False)
    coordinates = Column(JSON, nullable=False)  # [[lat, lng], ...]
    durations = Column(JSON, nullable=False)  # minutes
    distances = Column(JSON, nullable=False)  # km

    date_range_start = Column(DateTime, nullable=True)
    date_range_end = Column(DateTime, nullable=True)
    calculated_at = Column(DateTime, default=datetime.utcnow)
