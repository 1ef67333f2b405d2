from typing import Any, Dict, Optional
from sqlalchemy.orm import Session

from app.crud.base import CRUDBase
from app.models.distance_matrix import OptimizationDistanceMatrix
from app.schemas.optimization import DistanceMatrix


class CRUDDistanceMatrix(CRUDBase[OptimizationDistanceMatrix, DistanceMatrix, DistanceMatrix]):
    def get_by_run_id(self, db: Session, *, run_id: str) -> Optional[OptimizationDistanceMatrix]:
        return db.query(self.model).filter(OptimizationDistanceMatrix.run_id == run_id).first()

    def get_latest_by_location_hash(
        self, db: Session, *, location_hash: str
    ) -> Optional[OptimizationDistanceMatrix]:
        return (
            db.query(self.model)
            .filter(OptimizationDistanceMatrix.location_hash == location_hash)
            .order_by(OptimizationDistanceMatrix.calculated_at.desc())
            .first()
        )

    def upsert(self, db: Session, *, obj_in: Dict[str, Any]) -> OptimizationDistanceMatrix:
        db_obj = self.get_by_run_id(db, run_id=obj_in["run_id"])
        if db_obj is None:
            return self.create(db, obj_in=obj_in)
        return self.update(db, db_obj=db_obj, obj_in=obj_in)

distance_matrix = CRUDDistanceMatrix(OptimizationDistanceMatrix)
