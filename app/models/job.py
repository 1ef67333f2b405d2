from sqlalchemy import Column, String, DateTime, Integer, Boolean, DECIMAL
from app.db.base_class import Base
from datetime import datetime

class JobDue(Base):
    """A recurring service job that is due and waiting to be scheduled."""
    __tablename__ = "jobs_due"

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Job Details
    invoice_id = Column(String, nullable=False, index=True)
    job_title = Column(String, nullable=False)
    location = Column(String, nullable=False)
    date_due = Column(DateTime, nullable=False, index=True)

    # Client Information
    client_name = Column(String, nullable=True)

    # Invoice total, used to estimate the on-site duration
    price = Column(DECIMAL(10, 2), nullable=True)

    is_scheduled = Column(Boolean, nullable=False, default=False, index=True)

    def __repr__(self):
        return f"<JobDue {self.job_title} @ {self.location}>"
