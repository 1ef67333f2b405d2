"""
Keyword-based geographic clustering of jobs.

A job belongs to the first rule, in table order, whose aliases appear in its
location text and whose exclusions do not. This is first match, not best
match: an address naming two regions lands in whichever rule comes first.
"""
import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from app.schemas.job import JobOptimizationData
from app.schemas.cluster import LocationCluster

logger = logging.getLogger(__name__)

UNASSIGNED_CLUSTER_ID = "unassigned"
UNASSIGNED_CLUSTER_NAME = "Unassigned"


@dataclass(frozen=True)
class ClusterRule:
    cluster_name: str
    keywords: Tuple[str, ...]
    excludes: Tuple[str, ...] = ()

    def matches(self, location: str) -> bool:
        text = (location or "").lower()
        if any(excluded in text for excluded in self.excludes):
            return False
        return any(keyword in text for keyword in self.keywords)


# Checked top to bottom; the first matching rule wins.
CLUSTER_RULES: Tuple[ClusterRule, ...] = (
    ClusterRule("Bowen Island", ("bowen island", "bowen")),
    ClusterRule("North Vancouver", ("north vancouver", "north van", "west vancouver", "west van", "deep cove", "lonsdale")),
    ClusterRule("Whistler Area", ("whistler", "squamish", "pemberton")),
    ClusterRule("Richmond", ("richmond",)),
    ClusterRule("Burnaby/New Westminster", ("burnaby", "new westminster", "new west", "coquitlam", "port moody")),
    ClusterRule("Surrey/Langley", ("surrey", "langley", "white rock", "delta", "cloverdale")),
    ClusterRule("Fraser Valley", ("abbotsford", "chilliwack", "mission", "maple ridge", "pitt meadows")),
    ClusterRule(
        "Vancouver Core",
        ("vancouver",),
        excludes=("north vancouver", "west vancouver", "north van", "west van"),
    ),
)

# Seed data for an empty cluster table
DEFAULT_CLUSTERS = [
    {
        "cluster_name": "Vancouver Core",
        "center_coordinates": {"lat": 49.2827, "lng": -123.1207},
        "radius": 15,
        "constraints": {
            "max_jobs_per_day": 4,
            "buffer_time_minutes": 15,
            "preferred_days": ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"],
            "special_requirements": "Urban area - parking restrictions",
        },
    },
    {
        "cluster_name": "North Vancouver",
        "center_coordinates": {"lat": 49.3200, "lng": -123.0724},
        "radius": 12,
        "constraints": {
            "max_jobs_per_day": 4,
            "buffer_time_minutes": 20,
            "preferred_days": ["Monday", "Wednesday", "Friday"],
            "special_requirements": "Bridge traffic - avoid rush hour",
        },
    },
    {
        "cluster_name": "Burnaby/New Westminster",
        "center_coordinates": {"lat": 49.2488, "lng": -122.9805},
        "radius": 12,
        "constraints": {
            "max_jobs_per_day": 4,
            "buffer_time_minutes": 15,
            "preferred_days": ["Tuesday", "Thursday"],
        },
    },
    {
        "cluster_name": "Richmond",
        "center_coordinates": {"lat": 49.1666, "lng": -123.1336},
        "radius": 12,
        "constraints": {
            "max_jobs_per_day": 4,
            "buffer_time_minutes": 15,
            "preferred_days": ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"],
            "special_requirements": "Close to depot",
        },
    },
    {
        "cluster_name": "Surrey/Langley",
        "center_coordinates": {"lat": 49.1913, "lng": -122.849},
        "radius": 20,
        "constraints": {
            "max_jobs_per_day": 3,
            "buffer_time_minutes": 20,
            "preferred_days": ["Wednesday", "Thursday", "Friday"],
            "special_requirements": "Suburban area",
        },
    },
    {
        "cluster_name": "Fraser Valley",
        "center_coordinates": {"lat": 49.0504, "lng": -122.3045},
        "radius": 40,
        "constraints": {
            "max_jobs_per_day": 3,
            "buffer_time_minutes": 30,
            "preferred_days": ["Thursday", "Friday"],
            "special_requirements": "Long drive - bundle trips",
        },
    },
    {
        "cluster_name": "Whistler Area",
        "center_coordinates": {"lat": 50.1163, "lng": -122.9574},
        "radius": 25,
        "constraints": {
            "max_jobs_per_day": 2,
            "buffer_time_minutes": 60,
            "preferred_days": ["Monday", "Tuesday"],
            "special_requirements": "2+ hour drive - bundle trips",
        },
    },
    {
        "cluster_name": "Bowen Island",
        "center_coordinates": {"lat": 49.3847, "lng": -123.3360},
        "radius": 8,
        "constraints": {
            "max_jobs_per_day": 2,
            "buffer_time_minutes": 45,
            "preferred_days": ["Wednesday"],
            "special_requirements": "Ferry required",
        },
    },
]


def match_cluster_name(location: str, rules: Sequence[ClusterRule] = CLUSTER_RULES) -> Optional[str]:
    """Name of the first rule matching the location, or None."""
    for rule in rules:
        if rule.matches(location):
            return rule.cluster_name
    return None


def rules_for_clusters(
    clusters: Sequence[LocationCluster],
    rules: Sequence[ClusterRule] = CLUSTER_RULES
) -> List[ClusterRule]:
    """
    Rules applicable to the loaded clusters, in priority order.

    Table rules whose cluster is not loaded are dropped. Loaded clusters
    without a table rule match on their own name, after the table.
    """
    loaded = {cluster.cluster_name.lower() for cluster in clusters}
    applicable = [rule for rule in rules if rule.cluster_name.lower() in loaded]
    known = {rule.cluster_name.lower() for rule in applicable}
    for cluster in clusters:
        if cluster.cluster_name.lower() not in known:
            applicable.append(ClusterRule(cluster.cluster_name, (cluster.cluster_name.lower(),)))
    return applicable


def cluster_jobs(
    jobs: Sequence[JobOptimizationData],
    clusters: Sequence[LocationCluster],
    rules: Sequence[ClusterRule] = CLUSTER_RULES
) -> Dict[str, List[JobOptimizationData]]:
    """
    Partition jobs by cluster id.

    Keys follow rule priority order with "unassigned" last; only non-empty
    buckets are present. Jobs keep their input order within a bucket.
    """
    by_name = {cluster.cluster_name.lower(): cluster for cluster in clusters}
    applicable = rules_for_clusters(clusters, rules)

    buckets: Dict[str, List[JobOptimizationData]] = OrderedDict(
        (by_name[rule.cluster_name.lower()].id, []) for rule in applicable
    )
    buckets[UNASSIGNED_CLUSTER_ID] = []

    for job in jobs:
        name = match_cluster_name(job.location, applicable)
        if name is None:
            buckets[UNASSIGNED_CLUSTER_ID].append(job)
        else:
            buckets[by_name[name.lower()].id].append(job)

    result = OrderedDict((cluster_id, members) for cluster_id, members in buckets.items() if members)
    logger.info(
        "Clustered %d jobs into %d buckets (%d unassigned)",
        len(jobs), len(result), len(buckets[UNASSIGNED_CLUSTER_ID])
    )
    return result
