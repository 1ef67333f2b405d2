import pytest
from collections import Counter
from datetime import date, datetime, timedelta, timezone
from unittest.mock import AsyncMock

from app.schemas.optimization import DateRange, SchedulingStrategy
from app.schemas.preferences import SchedulingPreferences
from app.schemas.schedule import ExistingSchedule
from app.services.clustering import UNASSIGNED_CLUSTER_ID
from app.services.optimization_engine import (
    OptimizationInitializationError, SchedulingOptimizationEngine
)
from conftest import (
    FakeGeoProvider, InMemoryClusterSource, InMemoryJobSource, InMemoryMatrixStore,
    InMemoryPatternStore, InMemoryPreferenceSource, InMemoryScheduleSource,
    TEST_DEPOT, make_clusters, make_job, make_pattern
)

# Test data
MAIN = "100 Main Street, Vancouver, BC"
GRANVILLE = "200 Granville Street, Vancouver, BC"
CAMBIE = "300 Cambie Street, Vancouver, BC"
BURNABY = "400 Kingsway, Burnaby, BC"
KELOWNA = "77 Lakeshore Rd, Kelowna, BC"


def make_engine(
    jobs,
    preferences,
    patterns=None,
    clusters=None,
    schedules=None,
    history=None,
    geo_provider=None
):
    return SchedulingOptimizationEngine(
        job_source=InMemoryJobSource(jobs),
        preference_source=InMemoryPreferenceSource(preferences),
        cluster_source=InMemoryClusterSource(make_clusters() if clusters is None else clusters),
        schedule_source=InMemoryScheduleSource(schedules, history),
        pattern_store=InMemoryPatternStore(patterns),
        matrix_store=InMemoryMatrixStore(),
        geo_provider=geo_provider or FakeGeoProvider(),
    )

# Fixtures
@pytest.fixture
def vancouver_jobs():
    return [make_job("a", MAIN), make_job("b", GRANVILLE), make_job("c", CAMBIE)]

@pytest.fixture
def tuesday_patterns(vancouver_jobs):
    return [make_pattern(job) for job in vancouver_jobs]

def scheduled_ids(result):
    return [job.job_id for group in result.scheduled_groups for job in group.jobs]

# Tests
@pytest.mark.asyncio
async def test_capacity_splits_preferred_weekday_across_weeks(
    vancouver_jobs, tuesday_patterns, preferences, test_range
):
    engine = make_engine(
        vancouver_jobs, preferences, tuesday_patterns,
        clusters=make_clusters(**{"Vancouver Core": 2}),
    )

    result = await engine.optimize(SchedulingStrategy.HYBRID_HISTORICAL_EFFICIENCY, test_range)

    groups = result.scheduled_groups
    assert [group.date.date() for group in groups] == [date(2026, 11, 3), date(2026, 11, 10)]
    assert [len(group.jobs) for group in groups] == [2, 1]
    assert all(group.cluster_name == "Vancouver Core" for group in groups)
    assert {job.scheduled_time for job in groups[0].jobs} == {
        datetime(2026, 11, 3, 9, 0, tzinfo=timezone.utc)
    }
    assert result.unscheduled_jobs == []
    assert result.total_jobs == 3
    assert result.metrics.utilization_rate == 1.0
    assert result.metrics.average_jobs_per_day == 1.5

@pytest.mark.asyncio
async def test_every_job_appears_once(preferences, test_range):
    jobs = [
        make_job("a", MAIN), make_job("b", GRANVILLE), make_job("c", CAMBIE),
        make_job("d", BURNABY), make_job("e", KELOWNA),
    ]
    engine = make_engine(jobs, preferences, clusters=make_clusters(**{"Vancouver Core": 1}))

    result = await engine.optimize(date_range=test_range)

    placed = scheduled_ids(result) + [job.job_id for job in result.unscheduled_jobs]
    assert Counter(placed) == Counter(job.job_id for job in jobs)

@pytest.mark.asyncio
async def test_groups_are_complete_routes(vancouver_jobs, tuesday_patterns, preferences, test_range):
    engine = make_engine(vancouver_jobs, preferences, tuesday_patterns)

    result = await engine.optimize(date_range=test_range)

    for group in result.scheduled_groups:
        orders = sorted(job.order_in_route for job in group.jobs)
        assert orders == list(range(1, len(group.jobs) + 1))
        assert group.total_work_time == sum(job.estimated_duration for job in group.jobs)
        assert group.estimated_start_time == min(job.scheduled_time for job in group.jobs)
        assert group.estimated_end_time == group.estimated_start_time + timedelta(
            minutes=group.total_work_time + group.total_drive_time
        )
        route = sorted(group.jobs, key=lambda job: job.order_in_route)
        assert group.total_drive_time == (
            sum(job.drive_time_to_previous for job in route) + route[-1].drive_time_to_next
        )
    assert result.metrics.total_drive_time == sum(
        group.total_drive_time for group in result.scheduled_groups
    )

@pytest.mark.asyncio
async def test_unmatched_location_goes_to_unassigned_group(preferences, test_range):
    engine = make_engine([make_job("k", KELOWNA)], preferences)

    result = await engine.optimize(date_range=test_range)

    assert len(result.scheduled_groups) == 1
    group = result.scheduled_groups[0]
    assert group.cluster_id == UNASSIGNED_CLUSTER_ID
    assert group.cluster_name == "Unassigned"
    job = group.jobs[0]
    assert job.scheduled_time == datetime(2026, 11, 2, 9, 0, tzinfo=timezone.utc)
    assert job.confidence == 0.5
    assert job.historical_pattern is None

@pytest.mark.asyncio
async def test_conflicting_group_is_moved(vancouver_jobs, tuesday_patterns, preferences, test_range):
    existing = ExistingSchedule(
        id="s1",
        job_title="Committed job",
        location=BURNABY,
        start_date_time=datetime(2026, 11, 3, 10, 0, tzinfo=timezone.utc),
    )
    engine = make_engine(vancouver_jobs, preferences, tuesday_patterns, schedules=[existing])

    result = await engine.optimize(date_range=test_range)

    assert result.metrics.conflicts_resolved == 1
    group = result.scheduled_groups[0]
    assert group.date.date() == date(2026, 11, 4)
    assert all(job.scheduled_time.date() == date(2026, 11, 4) for job in group.jobs)
    assert all(job.scheduled_time.hour == 9 for job in group.jobs)

@pytest.mark.asyncio
async def test_excluded_dates_are_skipped(vancouver_jobs, tuesday_patterns, test_range):
    preferences = SchedulingPreferences(
        starting_point_address=TEST_DEPOT,
        excluded_dates=[date(2026, 11, 3)],
    )
    engine = make_engine(vancouver_jobs, preferences, tuesday_patterns)

    result = await engine.optimize(date_range=test_range)

    assert [group.date.date() for group in result.scheduled_groups] == [date(2026, 11, 10)]

@pytest.mark.asyncio
async def test_jobs_without_a_date_are_unscheduled(vancouver_jobs, tuesday_patterns, preferences):
    engine = make_engine(
        vancouver_jobs, preferences, tuesday_patterns,
        clusters=make_clusters(**{"Vancouver Core": 2}),
    )
    one_week = DateRange.from_dates(date(2026, 11, 2), date(2026, 11, 6))

    result = await engine.optimize(date_range=one_week)

    assert len(scheduled_ids(result)) == 2
    assert [job.job_id for job in result.unscheduled_jobs] == ["c"]
    assert result.metrics.utilization_rate == pytest.approx(2 / 3)

@pytest.mark.asyncio
async def test_pattern_derived_from_history_is_used_and_stored(preferences, test_range):
    job = make_job("h", MAIN, job_title="Kitchen exhaust")
    history = [
        ExistingSchedule(
            id=f"s{week}",
            job_title="Kitchen exhaust",
            location=MAIN,
            start_date_time=datetime(2026, 10, 29, 8, 0, tzinfo=timezone.utc) - timedelta(weeks=week),
            hours=2.0,
        )
        for week in range(3)
    ]
    patterns = InMemoryPatternStore()
    engine = SchedulingOptimizationEngine(
        job_source=InMemoryJobSource([job]),
        preference_source=InMemoryPreferenceSource(preferences),
        cluster_source=InMemoryClusterSource(make_clusters()),
        schedule_source=InMemoryScheduleSource(history=history),
        pattern_store=patterns,
        matrix_store=InMemoryMatrixStore(),
        geo_provider=FakeGeoProvider(),
    )

    result = await engine.optimize(date_range=test_range)

    scheduled = result.scheduled_groups[0].jobs[0]
    assert scheduled.scheduled_time == datetime(2026, 11, 5, 8, 0, tzinfo=timezone.utc)
    assert scheduled.estimated_duration == 120
    assert scheduled.confidence == 1.0
    assert len(patterns.saved) == 1
    assert patterns.saved[0].preferred_day_of_week == 4

@pytest.mark.asyncio
async def test_empty_backlog(preferences, test_range):
    engine = make_engine([], preferences)

    result = await engine.optimize(date_range=test_range)

    assert result.scheduled_groups == []
    assert result.total_jobs == 0
    assert result.metrics.utilization_rate == 0.0

@pytest.mark.asyncio
async def test_routing_outage_still_produces_schedule(vancouver_jobs, tuesday_patterns, preferences, test_range):
    engine = make_engine(
        vancouver_jobs, preferences, tuesday_patterns,
        geo_provider=FakeGeoProvider(fail_routing=True),
    )

    result = await engine.optimize(date_range=test_range)

    assert len(scheduled_ids(result)) == 3
    assert result.scheduled_groups[0].total_drive_time > 0

class RaisingMatrixProvider(FakeGeoProvider):
    async def matrix(self, coordinates):
        raise RuntimeError("matrix endpoint down")

@pytest.mark.asyncio
async def test_matrix_exception_does_not_abort_run(vancouver_jobs, tuesday_patterns, preferences, test_range):
    engine = make_engine(
        vancouver_jobs, preferences, tuesday_patterns,
        geo_provider=RaisingMatrixProvider(),
    )

    result = await engine.optimize(date_range=test_range)

    assert len(scheduled_ids(result)) == 3
    assert result.scheduled_groups[0].total_drive_time > 0

@pytest.mark.asyncio
async def test_unsupported_strategy(preferences, test_range):
    engine = make_engine([], preferences)

    with pytest.raises(ValueError):
        await engine.optimize("fastest_route", test_range)

@pytest.mark.asyncio
async def test_missing_preferences_fail_initialization(test_range):
    engine = make_engine([], None)

    with pytest.raises(OptimizationInitializationError, match="preferences"):
        await engine.optimize(date_range=test_range)

@pytest.mark.asyncio
async def test_missing_clusters_fail_initialization(preferences, test_range):
    engine = make_engine([], preferences, clusters=[])

    with pytest.raises(OptimizationInitializationError, match="clusters"):
        await engine.optimize(date_range=test_range)

@pytest.mark.asyncio
async def test_job_source_failure_fails_initialization(preferences, test_range):
    engine = make_engine([], preferences)
    engine.job_source = AsyncMock()
    engine.job_source.fetch_unscheduled_jobs.side_effect = Exception("DB Error")

    with pytest.raises(OptimizationInitializationError, match="DB Error"):
        await engine.optimize(date_range=test_range)

@pytest.mark.asyncio
async def test_schedule_source_failure_skips_conflicts(vancouver_jobs, tuesday_patterns, preferences, test_range):
    engine = make_engine(vancouver_jobs, preferences, tuesday_patterns)
    engine.schedule_source = AsyncMock()
    engine.schedule_source.get_schedules.side_effect = Exception("DB Error")

    result = await engine.optimize(date_range=test_range)

    assert engine.existing_schedules == []
    assert len(scheduled_ids(result)) == 3

@pytest.mark.asyncio
async def test_admin_range_used_when_no_range_given():
    preferences = SchedulingPreferences(
        starting_point_address=TEST_DEPOT,
        start_date=date(2026, 11, 2),
        end_date=date(2026, 11, 30),
    )
    engine = make_engine([], preferences)

    await engine.initialize()

    assert engine.date_range.start == datetime(2026, 11, 2, tzinfo=timezone.utc)
    assert engine.controls.end == date(2026, 11, 30)

@pytest.mark.asyncio
async def test_inactive_clusters_are_ignored(preferences, test_range):
    clusters = make_clusters()
    clusters[0] = clusters[0].model_copy(update={"is_active": False})
    engine = make_engine([make_job("a", MAIN)], preferences, clusters=clusters)

    result = await engine.optimize(date_range=test_range)

    assert all(group.cluster_name != "Vancouver Core" for group in result.scheduled_groups)
    assert result.scheduled_groups[0].cluster_id == UNASSIGNED_CLUSTER_ID

# Run tests
if __name__ == "__main__":
    pytest.main(["-v", "tests/test_optimization_engine.py"])
