import asyncio
import hashlib
import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from app.schemas.cluster import Coordinates
from app.schemas.job import JobOptimizationData
from app.schemas.optimization import DateRange, DistanceMatrix
from app.services.interfaces import DistanceMatrixStore, GeoProvider

logger = logging.getLogger(__name__)


def unique_sorted_locations(jobs: Sequence[JobOptimizationData]) -> List[str]:
    return sorted({job.location for job in jobs if job.location})


def location_set_hash(locations: Sequence[str]) -> str:
    """Content address of a location set; order and duplicates do not matter."""
    joined = "\n".join(sorted(set(locations)))
    return hashlib.sha256(joined.encode("utf-8")).hexdigest()


class DistanceMatrixCache:
    """
    Builds the optimization-wide travel matrix, reusing any stored matrix
    computed for exactly the same set of locations.
    """

    def __init__(self, geo_provider: GeoProvider, store: DistanceMatrixStore):
        self.geo = geo_provider
        self.store = store

    async def calculate_optimization_distance_matrix(
        self,
        run_id: str,
        jobs: Sequence[JobOptimizationData],
        date_range: DateRange
    ) -> Optional[DistanceMatrix]:
        """
        Args:
            run_id: Optimization run the matrix is stored under
            jobs: Jobs whose locations make up the matrix
            date_range: Range of the run, stored for reference

        Returns:
            The matrix, or None when fewer than two locations could be priced
        """
        locations = unique_sorted_locations(jobs)
        if len(locations) < 2:
            return None
        location_hash = location_set_hash(locations)

        existing = await self._find(self.store.find_by_run_id, run_id)
        if existing is not None:
            return existing

        cached = await self._find(self.store.find_by_location_hash, location_hash)
        if cached is not None:
            logger.info("Reusing distance matrix from run %s for run %s", cached.run_id, run_id)
            reused = cached.model_copy(update={
                "run_id": run_id,
                "date_range_start": date_range.start,
                "date_range_end": date_range.end,
                "calculated_at": datetime.now(timezone.utc),
            })
            return await self._save(reused)

        return await self._compute(run_id, location_hash, locations, date_range)

    async def _compute(
        self,
        run_id: str,
        location_hash: str,
        locations: List[str],
        date_range: DateRange
    ) -> Optional[DistanceMatrix]:
        logger.info("Geocoding %d locations for distance matrix", len(locations))
        results = await asyncio.gather(
            *(self.geo.geocode(location) for location in locations),
            return_exceptions=True
        )

        resolved_locations: List[str] = []
        coordinates: List[Coordinates] = []
        for location, result in zip(locations, results):
            if isinstance(result, Exception):
                logger.warning("Geocoding raised for %s: %s", location, str(result))
                continue
            if result is None:
                logger.warning("Could not geocode %s; excluded from matrix", location)
                continue
            resolved_locations.append(location)
            coordinates.append(result)

        if len(coordinates) < 2:
            logger.warning("Not enough geocoded locations (%d) to build a matrix", len(coordinates))
            return None

        try:
            matrix = await self.geo.matrix(coordinates)
        except Exception as e:
            logger.warning("Distance matrix request raised for run %s: %s", run_id, str(e))
            return None
        if matrix is None:
            logger.warning("Distance matrix calculation failed for run %s", run_id)
            return None

        result = DistanceMatrix(
            run_id=run_id,
            location_hash=location_hash,
            locations=resolved_locations,
            coordinates=coordinates,
            durations=matrix.durations,
            distances=matrix.distances,
            date_range_start=date_range.start,
            date_range_end=date_range.end,
            calculated_at=datetime.now(timezone.utc),
        )
        # A partial matrix must not be found by the hash of the full location set
        if len(resolved_locations) < len(locations):
            logger.info(
                "Not storing partial matrix for run %s (%d of %d locations)",
                run_id, len(resolved_locations), len(locations)
            )
            return result
        return await self._save(result)

    async def _find(self, finder, key: str) -> Optional[DistanceMatrix]:
        try:
            return await finder(key)
        except Exception as e:
            logger.warning("Distance matrix lookup failed for %s: %s", key, str(e))
            return None

    async def _save(self, matrix: DistanceMatrix) -> DistanceMatrix:
        try:
            return await self.store.save(matrix)
        except Exception as e:
            logger.warning("Could not persist distance matrix for run %s: %s", matrix.run_id, str(e))
            return matrix
