from fastapi import APIRouter, Depends, HTTPException, status
from typing import List, Optional
from pydantic import BaseModel
import logging

from app.api import deps
from app.schemas.cluster import LocationCluster
from app.schemas.optimization import OptimizationResult, OptimizationRunRequest
from app.schemas.pattern import HistoricalSchedulePattern
from app.schemas.preferences import SchedulingPreferences
from app.services.optimization_engine import OptimizationInitializationError, SchedulingOptimizationEngine
from app.services.repositories import SqlClusterSource, SqlPatternStore, SqlPreferenceSource

# Error responses
class ErrorResponse(BaseModel):
    detail: str

router = APIRouter(prefix="/optimization", tags=["optimization"])
logger = logging.getLogger(__name__)

@router.post(
    "/run",
    response_model=OptimizationResult,
    status_code=status.HTTP_200_OK,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
    },
)
async def run_optimization(
    request: Optional[OptimizationRunRequest] = None,
    engine: SchedulingOptimizationEngine = Depends(deps.get_engine),
):
    """
    Propose a schedule for the unscheduled job backlog.

    Jobs are grouped by region, placed on dates from their historical
    patterns and sequenced per day. Nothing is written to the calendar.
    """
    request = request or OptimizationRunRequest()
    try:
        logger.info("Starting schedule optimization with strategy %s", request.strategy.value)
        return await engine.optimize(request.strategy, request.date_range())
    except OptimizationInitializationError as e:
        logger.error("Optimization could not start: %s", str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Optimization could not start: {str(e)}"
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error("Unexpected error in schedule optimization: %s", str(e), exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"An unexpected error occurred during schedule optimization: {str(e)}"
        )

@router.get("/clusters", response_model=List[LocationCluster])
async def read_clusters(
    cluster_source: SqlClusterSource = Depends(deps.get_cluster_source),
):
    """
    Active location clusters, seeding the default regions on first use.
    """
    return await cluster_source.get_clusters()

@router.get("/preferences", response_model=SchedulingPreferences)
async def read_preferences(
    preference_source: SqlPreferenceSource = Depends(deps.get_preference_source),
):
    preferences = await preference_source.get_preferences()
    if preferences is None:
        raise HTTPException(status_code=404, detail="Scheduling preferences not found")
    return preferences

@router.put("/preferences", response_model=SchedulingPreferences)
async def update_preferences(
    preferences_in: SchedulingPreferences,
    preference_source: SqlPreferenceSource = Depends(deps.get_preference_source),
):
    """
    Replace the scheduling preferences and admin date controls.
    """
    return await preference_source.save(preferences_in)

@router.get("/patterns/{identifier:path}", response_model=HistoricalSchedulePattern)
async def read_pattern(
    identifier: str,
    pattern_store: SqlPatternStore = Depends(deps.get_pattern_store),
):
    pattern = await pattern_store.find(identifier)
    if pattern is None:
        raise HTTPException(status_code=404, detail="Pattern not found")
    return pattern

@router.delete("/patterns/{identifier:path}")
async def delete_pattern(
    identifier: str,
    pattern_store: SqlPatternStore = Depends(deps.get_pattern_store),
):
    """
    Invalidate a cached pattern; the next run derives it again from history.
    """
    if not await pattern_store.delete(identifier):
        raise HTTPException(status_code=404, detail="Pattern not found")
    return {"message": "Pattern deleted successfully"}
