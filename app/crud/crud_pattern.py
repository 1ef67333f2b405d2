from typing import Any, Dict, Optional
from sqlalchemy.orm import Session

from app.crud.base import CRUDBase
from app.models.pattern import HistoricalSchedulePattern
from app.schemas.pattern import HistoricalSchedulePattern as PatternSchema


class CRUDPattern(CRUDBase[HistoricalSchedulePattern, PatternSchema, PatternSchema]):
    def get_by_identifier(self, db: Session, *, job_identifier: str) -> Optional[HistoricalSchedulePattern]:
        return db.query(self.model).filter(
            HistoricalSchedulePattern.job_identifier == job_identifier
        ).first()

    def upsert(self, db: Session, *, obj_in: Dict[str, Any]) -> HistoricalSchedulePattern:
        db_obj = self.get_by_identifier(db, job_identifier=obj_in["job_identifier"])
        if db_obj is None:
            return self.create(db, obj_in=obj_in)
        return self.update(db, db_obj=db_obj, obj_in=obj_in)

    def remove_by_identifier(self, db: Session, *, job_identifier: str) -> bool:
        db_obj = self.get_by_identifier(db, job_identifier=job_identifier)
        if db_obj is None:
            return False
        db.delete(db_obj)
        db.commit()
        return True

pattern = CRUDPattern(HistoricalSchedulePattern)
