import logging
from dataclasses import dataclass
from typing import List, Dict, Optional

from app.core.config import settings
from app.schemas.cluster import Coordinates
from app.schemas.optimization import DistanceMatrix, OptimizedJob
from app.services.geo import estimate_drive_time, resolve_drive_time
from app.services.interfaces import GeoProvider

logger = logging.getLogger(__name__)


@dataclass
class RoutePlan:
    """A sequenced day route. All times in whole minutes."""
    jobs: List[OptimizedJob]
    total_drive_time: int
    route_optimized: bool
    fallback_legs: int = 0


class RouteOptimizer:
    """Sequences a day's jobs with a nearest-neighbor heuristic from a fixed depot.

    Coordinates and duration sub-matrices are cached on the instance, so one
    optimizer should serve one optimization run.
    """
    def __init__(
        self,
        geo_provider: GeoProvider,
        optimization_matrix: Optional[DistanceMatrix] = None,
        depot_address: str = None
    ):
        """
        Initialize the route optimizer.

        Args:
            geo_provider: Geocoding and routing provider
            optimization_matrix: Run-wide matrix to slice from, if one was built
            depot_address: Start and end point of every route
        """
        self.geo = geo_provider
        self.optimization_matrix = optimization_matrix
        self.depot_address = depot_address or settings.DEFAULT_STARTING_POINT_ADDRESS
        self.logger = logging.getLogger(__name__)

        # Per-run caches
        self._coordinate_cache: Dict[str, Optional[Coordinates]] = {}
        self._matrix_cache: Dict[str, List[List[float]]] = {}
        self._cache_hits = 0
        self._cache_misses = 0
        self._depot: Optional[Coordinates] = None
        self._depot_resolved = False
        self.fallback_count = 0

    @property
    def cache_stats(self) -> Dict[str, int]:
        return {
            'hits': self._cache_hits,
            'misses': self._cache_misses,
            'size': len(self._matrix_cache),
            'fallbacks': self.fallback_count,
        }

    def _get_cache_key(self, locations: List[str]) -> str:
        """Generate a cache key for a duration sub-matrix"""
        return '|'.join(locations)

    async def get_depot(self) -> Optional[Coordinates]:
        """Geocode the depot once per optimizer."""
        if not self._depot_resolved:
            self._depot = await self.resolve_coordinates(self.depot_address)
            self._depot_resolved = True
            if self._depot is None:
                self.logger.warning("Could not geocode depot %s; depot legs will be estimated", self.depot_address)
        return self._depot

    async def resolve_coordinates(self, location: str) -> Optional[Coordinates]:
        """
        Coordinates for a location: memory cache, then the optimization
        matrix, then an individual geocode.
        """
        if location in self._coordinate_cache:
            return self._coordinate_cache[location]

        coordinates = None
        if self.optimization_matrix is not None:
            index = self.optimization_matrix.index_of(location)
            if index is not None:
                coordinates = self.optimization_matrix.coordinates[index]

        if coordinates is None:
            try:
                coordinates = await self.geo.geocode(location)
            except Exception as e:
                self.logger.warning("Geocoding raised for %s: %s", location, str(e))
                coordinates = None

        self._coordinate_cache[location] = coordinates
        return coordinates

    async def _leg(
        self,
        origin: str,
        origin_coords: Optional[Coordinates],
        destination: str,
        destination_coords: Optional[Coordinates]
    ) -> int:
        """Drive time for one leg, falling back to the textual estimate."""
        result = None
        if origin_coords is not None and destination_coords is not None:
            try:
                result = await self.geo.distance(origin_coords, destination_coords)
            except Exception as e:
                self.logger.warning("Routing provider raised for %s -> %s: %s", origin, destination, str(e))
                result = None
        minutes, used_fallback = resolve_drive_time(result, origin, destination)
        if used_fallback:
            self.fallback_count += 1
        return minutes

    async def _get_duration_matrix(
        self,
        locations: List[str],
        coordinates: List[Optional[Coordinates]]
    ) -> List[List[float]]:
        """
        Duration matrix (minutes) for distinct locations.

        Sliced from the optimization matrix when it covers every location,
        otherwise requested for just these locations, otherwise estimated.
        """
        matrix = self.optimization_matrix
        if matrix is not None and matrix.covers(locations):
            self._cache_hits += 1
            indices = [matrix.index_of(location) for location in locations]
            return [[matrix.durations[i][j] for j in indices] for i in indices]

        cache_key = self._get_cache_key(locations)
        if cache_key in self._matrix_cache:
            self._cache_hits += 1
            self.logger.debug("Cache hit for key: %s", cache_key)
            return self._matrix_cache[cache_key]

        self._cache_misses += 1
        durations = None
        if all(point is not None for point in coordinates):
            try:
                result = await self.geo.matrix(coordinates)
            except Exception as e:
                self.logger.warning("Matrix request raised: %s", str(e))
                result = None
            if result is not None:
                durations = result.durations

        if durations is None:
            self.fallback_count += 1
            self.logger.warning("Estimating drive times for %d locations without routing data", len(locations))
            durations = [
                [0 if i == j else estimate_drive_time(origin, destination)
                 for j, destination in enumerate(locations)]
                for i, origin in enumerate(locations)
            ]

        self._matrix_cache[cache_key] = durations
        return durations

    @staticmethod
    def nearest_neighbor_order(
        jobs: List[OptimizedJob],
        durations: List[List[float]],
        location_index: List[int]
    ) -> List[int]:
        """
        Visit order as indices into jobs.

        Starts at the job with the highest hour confidence (earliest
        scheduled time, then list order, on ties) and repeatedly moves to
        the closest unvisited job, ties going to list order.
        """
        if not jobs:
            return []

        seed = max(
            range(len(jobs)),
            key=lambda i: (jobs[i].hour_confidence, -jobs[i].scheduled_time.timestamp(), -i)
        )
        order = [seed]
        unvisited = [i for i in range(len(jobs)) if i != seed]
        current = seed

        while unvisited:
            nearest = min(
                unvisited,
                key=lambda i: (durations[location_index[current]][location_index[i]], i)
            )
            order.append(nearest)
            unvisited.remove(nearest)
            current = nearest

        return order

    async def optimize_route(self, jobs: List[OptimizedJob]) -> RoutePlan:
        """
        Order a day's jobs and price every leg, depot legs included.

        Args:
            jobs: The day's jobs, times already assigned

        Returns:
            RoutePlan whose total equals the sum of drive_time_to_previous
            plus the final return leg
        """
        if not jobs:
            return RoutePlan(jobs=[], total_drive_time=0, route_optimized=False)

        fallbacks_before = self.fallback_count
        depot = await self.get_depot()

        if len(jobs) == 1:
            job = jobs[0]
            location = job.original_job.location
            coords = await self.resolve_coordinates(location)
            outbound = await self._leg(self.depot_address, depot, location, coords)
            inbound = await self._leg(location, coords, self.depot_address, depot)
            routed = job.model_copy(update={
                'drive_time_to_previous': outbound,
                'drive_time_to_next': inbound,
                'order_in_route': 1,
            })
            return RoutePlan(
                jobs=[routed],
                total_drive_time=outbound + inbound,
                route_optimized=False,
                fallback_legs=self.fallback_count - fallbacks_before,
            )

        locations: List[str] = []
        location_index: List[int] = []
        for job in jobs:
            location = job.original_job.location
            if location not in locations:
                locations.append(location)
            location_index.append(locations.index(location))

        coordinates = [await self.resolve_coordinates(location) for location in locations]
        durations = await self._get_duration_matrix(locations, coordinates)
        order = self.nearest_neighbor_order(jobs, durations, location_index)

        first, last = order[0], order[-1]
        outbound = await self._leg(
            self.depot_address, depot, locations[location_index[first]], coordinates[location_index[first]]
        )
        inbound = await self._leg(
            locations[location_index[last]], coordinates[location_index[last]], self.depot_address, depot
        )

        legs_in: List[int] = [outbound]
        for previous, current in zip(order, order[1:]):
            legs_in.append(int(round(durations[location_index[previous]][location_index[current]])))
        legs_out = legs_in[1:] + [inbound]

        routed = [
            jobs[index].model_copy(update={
                'drive_time_to_previous': legs_in[position],
                'drive_time_to_next': legs_out[position],
                'order_in_route': position + 1,
            })
            for position, index in enumerate(order)
        ]
        total_drive_time = sum(legs_in) + inbound

        self.logger.debug(
            "Routed %d jobs: %d minutes driving (cache %s)",
            len(routed), total_drive_time, self.cache_stats
        )
        return RoutePlan(
            jobs=routed,
            total_drive_time=total_drive_time,
            route_optimized=True,
            fallback_legs=self.fallback_count - fallbacks_before,
        )
