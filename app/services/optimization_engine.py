"""
Scheduling optimization engine.

Ties the pipeline together: clustering, historical pattern analysis, hybrid
date assignment, per-day routing, conflict resolution and metrics. All I/O
goes through the collaborator protocols in app.services.interfaces.
"""
import logging
import uuid
from datetime import datetime, time, timedelta, timezone
from typing import List, Optional, Union

from app.core.config import settings
from app.schemas.cluster import LocationCluster
from app.schemas.optimization import (
    DateRange, DistanceMatrix, OptimizationResult, OptimizedScheduleGroup, SchedulingStrategy
)
from app.schemas.preferences import SchedulingPreferences
from app.schemas.schedule import ExistingSchedule
from app.services.clustering import cluster_jobs
from app.services.conflict_resolver import ConflictResolver
from app.services.distance_matrix import DistanceMatrixCache
from app.services.interfaces import (
    ClusterSource, DistanceMatrixStore, ExistingScheduleSource, GeoProvider,
    HistoricalPatternStore, JobSource, PreferenceSource
)
from app.services.metrics import calculate_metrics
from app.services.pattern_analyzer import PatternAnalyzer
from app.services.route_optimizer import RouteOptimizer
from app.services.scheduling import DayBatch, HybridScheduler, SchedulingControls

logger = logging.getLogger(__name__)


class OptimizationInitializationError(Exception):
    """Raised when the engine cannot load the configuration a run depends on"""
    pass


class SchedulingOptimizationEngine:
    """Produces a proposed schedule for the unscheduled job backlog."""

    def __init__(
        self,
        job_source: JobSource,
        preference_source: PreferenceSource,
        cluster_source: ClusterSource,
        schedule_source: ExistingScheduleSource,
        pattern_store: HistoricalPatternStore,
        matrix_store: DistanceMatrixStore,
        geo_provider: GeoProvider
    ):
        self.job_source = job_source
        self.preference_source = preference_source
        self.cluster_source = cluster_source
        self.schedule_source = schedule_source
        self.pattern_store = pattern_store
        self.matrix_store = matrix_store
        self.geo = geo_provider

        self.preferences: Optional[SchedulingPreferences] = None
        self.clusters: List[LocationCluster] = []
        self.existing_schedules: List[ExistingSchedule] = []
        self.date_range: Optional[DateRange] = None
        self.controls: Optional[SchedulingControls] = None

    def resolve_date_range(self, date_range: Optional[DateRange] = None) -> DateRange:
        """Explicit range, else the admin-configured range, else the next DEFAULT_OPTIMIZATION_DAYS days."""
        if date_range is not None:
            return date_range
        if self.preferences and self.preferences.start_date and self.preferences.end_date:
            return DateRange.from_dates(self.preferences.start_date, self.preferences.end_date)
        return DateRange.next_days(settings.DEFAULT_OPTIMIZATION_DAYS)

    async def initialize(self, date_range: Optional[DateRange] = None) -> None:
        """
        Load preferences, clusters and the existing schedule.

        Raises:
            OptimizationInitializationError: If preferences or clusters are unavailable
        """
        try:
            preferences = await self.preference_source.get_preferences()
        except Exception as e:
            logger.error("Failed to load scheduling preferences: %s", str(e))
            raise OptimizationInitializationError(f"Failed to load scheduling preferences: {str(e)}") from e
        if preferences is None:
            raise OptimizationInitializationError("No scheduling preferences configured")
        self.preferences = preferences

        try:
            clusters = await self.cluster_source.get_clusters()
        except Exception as e:
            logger.error("Failed to load location clusters: %s", str(e))
            raise OptimizationInitializationError(f"Failed to load location clusters: {str(e)}") from e
        if not clusters:
            raise OptimizationInitializationError("No location clusters available")
        self.clusters = [cluster for cluster in clusters if cluster.is_active]

        self.date_range = self.resolve_date_range(date_range)
        self.controls = SchedulingControls.from_preferences(self.preferences, self.date_range)

        try:
            self.existing_schedules = await self.schedule_source.get_schedules(
                DateRange.from_dates(self.controls.start, self.controls.end)
            )
        except Exception as e:
            logger.warning("Could not load existing schedules, conflicts will not be checked: %s", str(e))
            self.existing_schedules = []

        logger.info(
            "Optimization engine initialized: %d clusters, %d existing schedules, range %s to %s",
            len(self.clusters), len(self.existing_schedules),
            self.controls.start.isoformat(), self.controls.end.isoformat()
        )

    async def optimize(
        self,
        strategy: Union[SchedulingStrategy, str] = SchedulingStrategy.HYBRID_HISTORICAL_EFFICIENCY,
        date_range: Optional[DateRange] = None
    ) -> OptimizationResult:
        """
        Run one optimization.

        Args:
            strategy: Scheduling strategy
            date_range: Range to schedule within; see resolve_date_range

        Returns:
            OptimizationResult with scheduled groups, unscheduled jobs and metrics

        Raises:
            ValueError: If the strategy is not supported
            OptimizationInitializationError: If initialization fails
        """
        strategy = SchedulingStrategy(strategy)
        if strategy != SchedulingStrategy.HYBRID_HISTORICAL_EFFICIENCY:
            raise ValueError(f"Unsupported scheduling strategy: {strategy}")

        await self.initialize(date_range)
        run_id = str(uuid.uuid4())

        try:
            jobs = await self.job_source.fetch_unscheduled_jobs(self.date_range)
        except Exception as e:
            logger.error("Failed to load unscheduled jobs: %s", str(e))
            raise OptimizationInitializationError(f"Failed to load unscheduled jobs: {str(e)}") from e

        logger.info("Starting optimization run %s for %d jobs", run_id, len(jobs))

        matrix = await DistanceMatrixCache(self.geo, self.matrix_store).calculate_optimization_distance_matrix(
            run_id, jobs, self.date_range
        )

        clustered = cluster_jobs(jobs, self.clusters)
        patterns = await PatternAnalyzer(self.pattern_store, self.schedule_source).analyze(jobs, self.preferences)

        clusters_by_id = {cluster.id: cluster for cluster in self.clusters}
        batches, unscheduled = HybridScheduler(self.preferences, self.controls).schedule(
            clustered, clusters_by_id, patterns
        )

        groups = await self._route_batches(batches, matrix)
        groups, conflicts_resolved = ConflictResolver().resolve(groups, self.existing_schedules, self.controls)
        metrics = calculate_metrics(groups, len(jobs), conflicts_resolved)

        logger.info(
            "Optimization run %s finished: %d groups, %d unscheduled, %d conflicts resolved",
            run_id, len(groups), len(unscheduled), conflicts_resolved
        )
        return OptimizationResult(
            run_id=run_id,
            strategy=strategy,
            total_jobs=len(jobs),
            scheduled_groups=groups,
            unscheduled_jobs=unscheduled,
            metrics=metrics,
            generated_at=datetime.now(timezone.utc),
        )

    async def _route_batches(
        self,
        batches: List[DayBatch],
        matrix: Optional[DistanceMatrix]
    ) -> List[OptimizedScheduleGroup]:
        optimizer = RouteOptimizer(self.geo, matrix, self.preferences.starting_point_address)
        groups: List[OptimizedScheduleGroup] = []

        for batch in batches:
            plan = await optimizer.optimize_route(batch.jobs)
            total_work_time = sum(job.estimated_duration for job in plan.jobs)
            start = min(job.scheduled_time for job in plan.jobs)
            groups.append(OptimizedScheduleGroup(
                cluster_id=batch.cluster_id,
                cluster_name=batch.cluster_name,
                date=datetime.combine(batch.day, time(0, 0), tzinfo=timezone.utc),
                jobs=plan.jobs,
                total_drive_time=plan.total_drive_time,
                total_work_time=total_work_time,
                estimated_start_time=start,
                estimated_end_time=start + timedelta(minutes=total_work_time + plan.total_drive_time),
                route_optimized=plan.route_optimized,
            ))

        if optimizer.fallback_count:
            logger.warning("Estimated %d drive times without routing data", optimizer.fallback_count)
        return groups
