from typing import Sequence

from app.schemas.optimization import OptimizationMetrics, OptimizedScheduleGroup


def calculate_metrics(
    groups: Sequence[OptimizedScheduleGroup],
    total_jobs: int,
    conflicts_resolved: int = 0
) -> OptimizationMetrics:
    """Summary figures for a run. Rates are 0 when there is nothing to divide by."""
    scheduled = sum(len(group.jobs) for group in groups)
    return OptimizationMetrics(
        total_drive_time=sum(group.total_drive_time for group in groups),
        average_jobs_per_day=scheduled / len(groups) if groups else 0.0,
        utilization_rate=scheduled / total_jobs if total_jobs else 0.0,
        conflicts_resolved=conflicts_resolved,
    )
