from .job import Job, JobCreate, JobConstraints, JobOptimizationData
from .cluster import Coordinates, ClusterConstraints, LocationCluster
from .pattern import HistoricalOccurrence, HistoricalSchedulePattern
from .schedule import ExistingSchedule
from .preferences import SchedulingPreferences
from .optimization import (
    SchedulingStrategy, DateRange, DistanceMatrix, OptimizedJob, OptimizedScheduleGroup,
    OptimizationMetrics, OptimizationResult, OptimizationRunRequest
)

__all__ = [
    'Job', 'JobCreate', 'JobConstraints', 'JobOptimizationData',
    'Coordinates', 'ClusterConstraints', 'LocationCluster',
    'HistoricalOccurrence', 'HistoricalSchedulePattern',
    'ExistingSchedule', 'SchedulingPreferences',
    'SchedulingStrategy', 'DateRange', 'DistanceMatrix', 'OptimizedJob', 'OptimizedScheduleGroup',
    'OptimizationMetrics', 'OptimizationResult', 'OptimizationRunRequest',
]
