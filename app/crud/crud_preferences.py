from typing import Any, Dict, Optional
from sqlalchemy.orm import Session

from app.crud.base import CRUDBase
from app.models.preferences import SchedulingPreferences
from app.schemas.preferences import SchedulingPreferences as PreferencesSchema


class CRUDPreferences(CRUDBase[SchedulingPreferences, PreferencesSchema, PreferencesSchema]):
    def get_default(self, db: Session) -> Optional[SchedulingPreferences]:
        return db.query(self.model).filter(SchedulingPreferences.is_default.is_(True)).first()

    def upsert_default(self, db: Session, *, obj_in: Dict[str, Any]) -> SchedulingPreferences:
        db_obj = self.get_default(db)
        if db_obj is None:
            return self.create(db, obj_in={**obj_in, "is_default": True})
        return self.update(db, db_obj=db_obj, obj_in=obj_in)

preferences = CRUDPreferences(SchedulingPreferences)
