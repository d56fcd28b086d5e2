"""
Flow Recommender
Greedy one-hop search for a neighbouring zone with materially higher demand pressure.
Default adjacency is the four axis-aligned neighbours; pass EIGHT_NEIGHBORS
(or any offset list) for a wider search.
"""

from dataclasses import dataclass, asdict
from typing import Dict, Optional, Sequence, Tuple

from citybrain.store import FleetSnapshot
from .grid import FOUR_NEIGHBORS
from .zones import ZoneMetrics, ZoneMetricsCalculator


@dataclass(frozen=True)
class RecommendedZone:
    lat: float
    lng: float
    zone_id: str


@dataclass(frozen=True)
class FlowRecommendation:
    recommended_zone: Optional[RecommendedZone]
    reason: str
    expected_improvement: float

    def to_dict(self) -> Dict:
        return asdict(self)


HIGHER_DEMAND_NEARBY = "Higher demand detected nearby"
CURRENT_ZONE_OPTIMAL = "Current zone is optimal"


class FlowRecommender:
    def __init__(self, zones: ZoneMetricsCalculator,
                 offsets: Sequence[Tuple[int, int]] = FOUR_NEIGHBORS):
        self.zones = zones
        self.policy = zones.policy
        self.offsets = tuple(offsets)

    def neighborhood(self, lat: float, lng: float,
                     snapshot: FleetSnapshot) -> Dict[Tuple[float, float], ZoneMetrics]:
        """Metrics for each neighbour point, keyed by the point, in offset order."""
        arena = {}
        for dlat, dlng in self.offsets:
            point = self.zones.grid.offset_point(lat, lng, dlat, dlng)
            arena[point] = self.zones.metrics(point[0], point[1], snapshot)
        return arena

    def recommend(self, lat: float, lng: float,
                  snapshot: Optional[FleetSnapshot] = None) -> FlowRecommendation:
        if snapshot is None:
            snapshot = self.zones.store.snapshot()

        current = self.zones.metrics(lat, lng, snapshot)

        best_point = None
        best_zone = None
        best_imbalance = current.imbalance_score

        for point, metrics in self.neighborhood(lat, lng, snapshot).items():
            if metrics.imbalance_score > best_imbalance + self.policy.flow_margin:
                best_imbalance = metrics.imbalance_score
                best_point = point
                best_zone = metrics

        if best_point is not None:
            return FlowRecommendation(
                recommended_zone=RecommendedZone(best_point[0], best_point[1], best_zone.zone_id),
                reason=HIGHER_DEMAND_NEARBY,
                expected_improvement=(best_imbalance - current.imbalance_score) * 100,
            )

        return FlowRecommendation(
            recommended_zone=None,
            reason=CURRENT_ZONE_OPTIMAL,
            expected_improvement=0,
        )
