"""create_scheduling_tables

Revision ID: 3f2a9c71d0b4
Revises:
Create Date: 2026-10-18 09:12:40.118342

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3f2a9c71d0b4'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'jobs_due',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.Column('invoice_id', sa.String(), nullable=False),
        sa.Column('job_title', sa.String(), nullable=False),
        sa.Column('location', sa.String(), nullable=False),
        sa.Column('date_due', sa.DateTime(), nullable=False),
        sa.Column('client_name', sa.String(), nullable=True),
        sa.Column('price', sa.DECIMAL(10, 2), nullable=True),
        sa.Column('is_scheduled', sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_jobs_due_id'), 'jobs_due', ['id'], unique=False)
    op.create_index(op.f('ix_jobs_due_invoice_id'), 'jobs_due', ['invoice_id'], unique=False)
    op.create_index(op.f('ix_jobs_due_date_due'), 'jobs_due', ['date_due'], unique=False)
    op.create_index(op.f('ix_jobs_due_is_scheduled'), 'jobs_due', ['is_scheduled'], unique=False)

    op.create_table(
        'schedules',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_ref', sa.String(), nullable=True),
        sa.Column('job_title', sa.String(), nullable=False),
        sa.Column('location', sa.String(), nullable=False),
        sa.Column('start_date_time', sa.DateTime(), nullable=False),
        sa.Column('hours', sa.Float(), nullable=True),
        sa.Column('assigned_technicians', sa.JSON(), nullable=False),
        sa.Column('confirmed', sa.Boolean(), nullable=False),
        sa.Column('technician_notes', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_schedules_id'), 'schedules', ['id'], unique=False)
    op.create_index(op.f('ix_schedules_location'), 'schedules', ['location'], unique=False)
    op.create_index(op.f('ix_schedules_start_date_time'), 'schedules', ['start_date_time'], unique=False)

    op.create_table(
        'location_clusters',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('cluster_name', sa.String(), nullable=False),
        sa.Column('center_lat', sa.Float(), nullable=False),
        sa.Column('center_lng', sa.Float(), nullable=False),
        sa.Column('radius', sa.Float(), nullable=False),
        sa.Column('max_jobs_per_day', sa.Integer(), nullable=False),
        sa.Column('buffer_time_minutes', sa.Integer(), nullable=False),
        sa.Column('preferred_days', sa.JSON(), nullable=False),
        sa.Column('special_requirements', sa.String(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('cluster_name'),
    )
    op.create_index(op.f('ix_location_clusters_id'), 'location_clusters', ['id'], unique=False)

    op.create_table(
        'historical_schedule_patterns',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('job_identifier', sa.String(), nullable=False),
        sa.Column('preferred_hour', sa.Integer(), nullable=False),
        sa.Column('hour_confidence', sa.Float(), nullable=False),
        sa.Column('preferred_day_of_week', sa.Integer(), nullable=False),
        sa.Column('day_confidence', sa.Float(), nullable=False),
        sa.Column('average_duration', sa.Integer(), nullable=False),
        sa.Column('historical_data', sa.JSON(), nullable=False),
        sa.Column('total_occurrences', sa.Integer(), nullable=False),
        sa.Column('last_analyzed', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_historical_schedule_patterns_id'), 'historical_schedule_patterns', ['id'], unique=False)
    op.create_index(
        op.f('ix_historical_schedule_patterns_job_identifier'),
        'historical_schedule_patterns', ['job_identifier'], unique=True
    )

    op.create_table(
        'optimization_distance_matrices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('run_id', sa.String(), nullable=False),
        sa.Column('location_hash', sa.String(), nullable=False),
        sa.Column('locations', sa.JSON(), nullable=False),
        sa.Column('coordinates', sa.JSON(), nullable=False),
        sa.Column('durations', sa.JSON(), nullable=False),
        sa.Column('distances', sa.JSON(), nullable=False),
        sa.Column('date_range_start', sa.DateTime(), nullable=True),
        sa.Column('date_range_end', sa.DateTime(), nullable=True),
        sa.Column('calculated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_optimization_distance_matrices_id'), 'optimization_distance_matrices', ['id'], unique=False)
    op.create_index(
        op.f('ix_optimization_distance_matrices_run_id'),
        'optimization_distance_matrices', ['run_id'], unique=True
    )
    op.create_index(
        op.f('ix_optimization_distance_matrices_location_hash'),
        'optimization_distance_matrices', ['location_hash'], unique=False
    )

    op.create_table(
        'scheduling_preferences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('is_default', sa.Boolean(), nullable=False),
        sa.Column('max_jobs_per_day', sa.Integer(), nullable=False),
        sa.Column('work_day_start', sa.String(), nullable=False),
        sa.Column('work_day_end', sa.String(), nullable=False),
        sa.Column('default_buffer_minutes', sa.Integer(), nullable=False),
        sa.Column('starting_point_address', sa.String(), nullable=False),
        sa.Column('excluded_days', sa.JSON(), nullable=False),
        sa.Column('excluded_dates', sa.JSON(), nullable=False),
        sa.Column('allow_weekends', sa.Boolean(), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_scheduling_preferences_id'), 'scheduling_preferences', ['id'], unique=False)


def downgrade() -> None:
    for table in [
        'scheduling_preferences',
        'optimization_distance_matrices',
        'historical_schedule_patterns',
        'location_clusters',
        'schedules',
        'jobs_due',
    ]:
        op.drop_table(table)
