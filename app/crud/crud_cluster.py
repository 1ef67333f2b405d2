from typing import Any, Dict, List, Sequence
from sqlalchemy.orm import Session

from app.crud.base import CRUDBase
from app.models.cluster import LocationCluster
from app.schemas.cluster import LocationCluster as LocationClusterSchema


class CRUDCluster(CRUDBase[LocationCluster, LocationClusterSchema, LocationClusterSchema]):
    def get_multi_active(self, db: Session) -> List[LocationCluster]:
        return (
            db.query(self.model)
            .filter(LocationCluster.is_active.is_(True))
            .order_by(LocationCluster.id)
            .all()
        )

    def count(self, db: Session) -> int:
        return db.query(self.model).count()

    def seed(self, db: Session, *, definitions: Sequence[Dict[str, Any]]) -> List[LocationCluster]:
        """Insert cluster definitions shaped like the API schema (nested coordinates and constraints)."""
        created = []
        for definition in definitions:
            constraints = definition.get("constraints", {})
            db_obj = LocationCluster(
                cluster_name=definition["cluster_name"],
                center_lat=definition["center_coordinates"]["lat"],
                center_lng=definition["center_coordinates"]["lng"],
                radius=definition["radius"],
                max_jobs_per_day=constraints.get("max_jobs_per_day", 4),
                buffer_time_minutes=constraints.get("buffer_time_minutes", 15),
                preferred_days=constraints.get("preferred_days", []),
                special_requirements=constraints.get("special_requirements"),
                is_active=definition.get("is_active", True),
            )
            db.add(db_obj)
            created.append(db_obj)
        db.commit()
        for db_obj in created:
            db.refresh(db_obj)
        return created

cluster = CRUDCluster(LocationCluster)
