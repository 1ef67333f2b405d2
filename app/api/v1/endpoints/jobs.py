from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from app.api import deps
from app.schemas.job import JobCreate, Job
from app.services import job_service

router = APIRouter(prefix="/jobs", tags=["jobs"])

@router.post("", response_model=Job, status_code=status.HTTP_201_CREATED)
def create_job(job: JobCreate, db: Session = Depends(deps.get_db)):
    """
    Add a due job to the scheduling backlog.
    """
    return job_service.create_job(db=db, job=job)

@router.delete("/{job_id}")
def delete_job(job_id: int, db: Session = Depends(deps.get_db)):
    if not job_service.delete_job(db=db, job_id=job_id):
        raise HTTPException(status_code=404, detail="Job not found")
    return {"message": "Job deleted successfully"}
