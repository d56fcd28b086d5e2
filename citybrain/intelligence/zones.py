"""
Zone Metrics Calculator
Supply/demand levels, imbalance and guarantee terms for the zone around a point.
Metrics are recomputed from the current fleet snapshot on every call and
never stored.
"""

from dataclasses import dataclass, asdict
from typing import Dict, List, Optional, Tuple

from citybrain.config import DispatchPolicy
from citybrain.models import Ride
from citybrain.store import FleetSnapshot, FleetStore, RideSample, DriverPosition
from .grid import ZoneGrid, approx_distance_km


@dataclass(frozen=True)
class ZoneMetrics:
    zone_id: str
    center_lat: float
    center_lng: float
    driver_count: int
    ride_count: int
    supply_level: float
    demand_level: float
    imbalance_score: float
    avg_wait_minutes: float
    avg_alignment_score: float
    guarantee_threshold_minutes: int
    premium_multiplier: float

    def to_dict(self) -> Dict:
        return asdict(self)


def guarantee_terms(imbalance_score: float, policy: Optional[DispatchPolicy] = None) -> Tuple[int, float]:
    policy = policy or DispatchPolicy()

    for tier in policy.guarantee_tiers:
        if imbalance_score > tier.min_imbalance:
            return tier.threshold_minutes, tier.premium_multiplier

    if imbalance_score < policy.oversupply_imbalance:
        return policy.oversupply_threshold_minutes, policy.oversupply_multiplier

    return policy.default_threshold_minutes, policy.default_multiplier


def average_wait_minutes(rides: List[RideSample], default: float) -> float:
    completed = [r for r in rides if r.status == Ride.STATUS_COMPLETED]
    if not completed:
        return default
    return sum(r.wait_minutes() for r in completed) / len(completed)


class ZoneMetricsCalculator:
    def __init__(self, store: FleetStore, grid: Optional[ZoneGrid] = None):
        self.store = store
        self.policy = store.policy
        self.grid = grid or ZoneGrid(self.policy.cell_size_deg)

    def _within_radius(self, lat: float, lng: float, other_lat: float, other_lng: float) -> bool:
        distance = approx_distance_km(lat, lng, other_lat, other_lng, self.policy.km_per_degree)
        return distance < self.policy.zone_radius_km

    def drivers_near(self, lat: float, lng: float, snapshot: FleetSnapshot) -> List[DriverPosition]:
        return [d for d in snapshot.online_drivers if self._within_radius(lat, lng, d.lat, d.lng)]

    def rides_near(self, lat: float, lng: float, snapshot: FleetSnapshot) -> List[RideSample]:
        return [r for r in snapshot.recent_rides
                if self._within_radius(lat, lng, r.pickup_lat, r.pickup_lng)]

    def metrics(self, lat: float, lng: float, snapshot: Optional[FleetSnapshot] = None) -> ZoneMetrics:
        if snapshot is None:
            snapshot = self.store.snapshot()

        cell = self.grid.cell(lat, lng)

        zone_drivers = self.drivers_near(lat, lng, snapshot)
        zone_rides = self.rides_near(lat, lng, snapshot)

        supply_level = min(1.0, len(zone_drivers) / self.policy.supply_capacity)
        demand_level = min(1.0, len(zone_rides) / self.policy.demand_capacity)
        imbalance_score = demand_level - supply_level

        threshold, multiplier = guarantee_terms(imbalance_score, self.policy)

        return ZoneMetrics(
            zone_id=cell.zone_id,
            center_lat=cell.center_lat,
            center_lng=cell.center_lng,
            driver_count=len(zone_drivers),
            ride_count=len(zone_rides),
            supply_level=supply_level,
            demand_level=demand_level,
            imbalance_score=imbalance_score,
            avg_wait_minutes=average_wait_minutes(zone_rides, self.policy.default_wait_minutes),
            avg_alignment_score=self.policy.avg_alignment_score,
            guarantee_threshold_minutes=threshold,
            premium_multiplier=multiplier,
        )
