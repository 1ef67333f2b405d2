"""
Geographic helpers shared by the optimizer: address normalization, the
routing result type, and the deterministic drive-time fallback.
"""
import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from app.services.clustering import match_cluster_name

logger = logging.getLogger(__name__)

# Fallback estimates in minutes
SAME_ADDRESS_MINUTES = 5
SAME_CLUSTER_MINUTES = 20
CROSS_CLUSTER_MINUTES = 45
UNKNOWN_DISTANCE_MINUTES = 30

_STREET_ABBREVIATIONS = {
    "street": "st",
    "avenue": "ave",
    "road": "rd",
    "drive": "dr",
    "boulevard": "blvd",
}
_STREET_SUFFIX_RE = re.compile(r"\b(street|avenue|road|drive|boulevard)\b")


def normalize_address(address: str) -> str:
    """Lowercase, collapse whitespace and abbreviate common street suffixes."""
    normalized = (address or "").strip().lower()
    normalized = _STREET_SUFFIX_RE.sub(lambda m: _STREET_ABBREVIATIONS[m.group(1)], normalized)
    return re.sub(r"\s+", " ", normalized).strip()


class RoutingError(Exception):
    """Raised or carried when the routing provider cannot price a leg"""
    pass


@dataclass(frozen=True)
class DriveTimeResult:
    """Either a priced leg or the routing error that prevented it."""
    duration: Optional[float] = None  # minutes
    distance: Optional[float] = None  # km
    error: Optional[RoutingError] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.duration is not None

    @classmethod
    def success(cls, duration: float, distance: float = 0.0) -> "DriveTimeResult":
        return cls(duration=duration, distance=distance)

    @classmethod
    def failure(cls, error: RoutingError) -> "DriveTimeResult":
        return cls(error=error)


@dataclass(frozen=True)
class MatrixResult:
    durations: List[List[float]]  # minutes
    distances: List[List[float]]  # km


def estimate_drive_time(origin: str, destination: str) -> int:
    """
    Textual drive-time estimate used when coordinates or routing are unavailable.

    Deterministic and total: same address, same cluster, different known
    clusters, or unknown.
    """
    if normalize_address(origin) == normalize_address(destination):
        return SAME_ADDRESS_MINUTES

    origin_cluster = match_cluster_name(origin)
    destination_cluster = match_cluster_name(destination)
    if origin_cluster and origin_cluster == destination_cluster:
        return SAME_CLUSTER_MINUTES
    if origin_cluster and destination_cluster:
        return CROSS_CLUSTER_MINUTES
    return UNKNOWN_DISTANCE_MINUTES


def resolve_drive_time(
    result: Optional[DriveTimeResult],
    origin: str,
    destination: str
) -> Tuple[int, bool]:
    """
    Apply the fallback policy to a routing result.

    Returns:
        (minutes, used_fallback)
    """
    if result is not None and result.ok:
        return int(round(result.duration)), False

    if result is not None and result.error is not None:
        logger.warning("Routing failed for %s -> %s: %s; using estimate", origin, destination, result.error)
    return estimate_drive_time(origin, destination), True
