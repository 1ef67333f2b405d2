from sqlalchemy.orm import Session
from app import crud
from app.models.job import JobDue
from app.schemas.job import JobCreate
from app.services.repositories import to_naive_utc

def create_job(db: Session, job: JobCreate) -> JobDue:
    job_data = job.model_dump()  # Use model_dump() instead of dict()
    job_data["date_due"] = to_naive_utc(job.date_due)
    job_data["is_scheduled"] = False
    return crud.job.create(db, obj_in=job_data)

def delete_job(db: Session, job_id: int) -> bool:
    return crud.job.remove(db, id=job_id) is not None
