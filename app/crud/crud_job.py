from datetime import datetime
from typing import List
from sqlalchemy.orm import Session

from app.crud.base import CRUDBase
from app.models.job import JobDue
from app.schemas.job import JobCreate


class CRUDJob(CRUDBase[JobDue, JobCreate, JobCreate]):
    def get_multi_unscheduled(
        self, db: Session, *, due_before: datetime, limit: int = 1000
    ) -> List[JobDue]:
        """Unscheduled jobs due on or before due_before, overdue ones included."""
        return (
            db.query(self.model)
            .filter(JobDue.is_scheduled.is_(False), JobDue.date_due <= due_before)
            .order_by(JobDue.date_due)
            .limit(limit)
            .all()
        )

# Create a singleton instance
job = CRUDJob(JobDue)
