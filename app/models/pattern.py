from sqlalchemy import Column, String, DateTime, Integer, Float, JSON
from app.db.base_class import Base
from datetime import datetime

class HistoricalSchedulePattern(Base):
    """Cached scheduling preference for one job identity. Never expires on its own."""
    __tablename__ = "historical_schedule_patterns"

    id = Column(Integer, primary_key=True, index=True)
    job_identifier = Column(String, nullable=False, unique=True, index=True)

    preferred_hour = Column(Integer, nullable=False)
    hour_confidence = Column(Float, nullable=False)
    preferred_day_of_week = Column(Integer, nullable=False)  # ISO weekday, Sunday = 7
    day_confidence = Column(Float, nullable=False)
    average_duration = Column(Integer, nullable=False)  # in minutes

    # Up to 5 most recent occurrences
    historical_data = Column(JSON, nullable=False, default=list)
    total_occurrences = Column(Integer, nullable=False, default=0)
    last_analyzed = Column(DateTime, default=datetime.utcnow)
