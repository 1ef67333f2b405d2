from datetime import datetime
from typing import List
from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.crud.base import CRUDBase
from app.models.schedule import Schedule
from app.schemas.schedule import ExistingSchedule


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so the value matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class CRUDSchedule(CRUDBase[Schedule, ExistingSchedule, ExistingSchedule]):
    def get_in_range(
        self, db: Session, *, start: datetime, end: datetime
    ) -> List[Schedule]:
        return (
            db.query(self.model)
            .filter(Schedule.start_date_time >= start, Schedule.start_date_time <= end)
            .order_by(Schedule.start_date_time)
            .all()
        )

    def get_recent_matching(
        self, db: Session, *, job_title: str, location: str, limit: int = 5
    ) -> List[Schedule]:
        """Most recent entries with the same title or a location containing the given one."""
        return (
            db.query(self.model)
            .filter(or_(Schedule.job_title == job_title, Schedule.location.ilike(f"%{escape_like(location)}%", escape="\\")))
            .order_by(Schedule.start_date_time.desc())
            .limit(limit)
            .all()
        )

schedule = CRUDSchedule(Schedule)
