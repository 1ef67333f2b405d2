from sqlalchemy import Column, String, DateTime, Date, Integer, Boolean, JSON
from app.db.base_class import Base
from datetime import datetime

class SchedulingPreferences(Base):
    __tablename__ = "scheduling_preferences"

    id = Column(Integer, primary_key=True, index=True)
    is_default = Column(Boolean, nullable=False, default=True)

    # Global settings
    max_jobs_per_day = Column(Integer, nullable=False, default=4)
    work_day_start = Column(String, nullable=False, default="08:00")
    work_day_end = Column(String, nullable=False, default="17:00")
    default_buffer_minutes = Column(Integer, nullable=False, default=30)
    starting_point_address = Column(String, nullable=False)

    # Admin scheduling controls
    excluded_days = Column(JSON, nullable=False, default=list)  # ISO weekdays
    excluded_dates = Column(JSON, nullable=False, default=list)  # ISO date strings
    allow_weekends = Column(Boolean, nullable=False, default=False)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
