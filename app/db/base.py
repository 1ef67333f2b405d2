# Import all the models, so that Base has them before being
# imported by Alembic or used by create_all
from app.db.base_class import Base  # noqa
from app.models.job import JobDue  # noqa
from app.models.schedule import Schedule  # noqa
from app.models.cluster import LocationCluster  # noqa
from app.models.pattern import HistoricalSchedulePattern  # noqa
from app.models.distance_matrix import OptimizationDistanceMatrix  # noqa
from app.models.preferences import SchedulingPreferences  # noqa
