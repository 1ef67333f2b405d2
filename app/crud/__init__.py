from .base import CRUDBase
from .crud_job import job
from .crud_schedule import schedule
from .crud_cluster import cluster
from .crud_pattern import pattern
from .crud_distance_matrix import distance_matrix
from .crud_preferences import preferences

__all__ = [
    'CRUDBase',
    'job',
    'schedule',
    'cluster',
    'pattern',
    'distance_matrix',
    'preferences',
]
