from sqlalchemy import Column, String, DateTime, Integer, Boolean, Float, JSON
from app.db.base_class import Base
from datetime import datetime

class Schedule(Base):
    """A committed calendar entry. Also the source of historical patterns."""
    __tablename__ = "schedules"

    id = Column(Integer, primary_key=True, index=True)
    invoice_ref = Column(String, nullable=True)
    job_title = Column(String, nullable=False, default="")
    location = Column(String, nullable=False, index=True)
    start_date_time = Column(DateTime, nullable=False, index=True)
    hours = Column(Float, nullable=True)
    assigned_technicians = Column(JSON, nullable=False, default=list)
    confirmed = Column(Boolean, nullable=False, default=False)
    technician_notes = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<Schedule {self.job_title} {self.start_date_time:%Y-%m-%d %H:%M}>"
