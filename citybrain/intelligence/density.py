"""
City Density Classifier
Buckets fleet-wide supply and request volume into a density tier
"""

from dataclasses import dataclass, asdict
from typing import Dict, Optional

from citybrain.config import DispatchPolicy
from citybrain.store import FleetSnapshot, FleetStore


LOW_DENSITY = 'low_density'
DEFAULT_DENSITY = 'default'
HIGH_DENSITY = 'high_density'

DENSITY_TIERS = (LOW_DENSITY, DEFAULT_DENSITY, HIGH_DENSITY)


@dataclass(frozen=True)
class CityDensitySnapshot:
    tier: str
    active_driver_count: int
    recent_ride_count: int
    hourly_request_rate: int

    def to_dict(self) -> Dict:
        return asdict(self)


def density_tier(active_drivers: int, hourly_requests: int,
                 policy: Optional[DispatchPolicy] = None) -> str:
    policy = policy or DispatchPolicy()

    if active_drivers < policy.low_density_max_drivers or hourly_requests < policy.low_density_max_hourly:
        return LOW_DENSITY
    if active_drivers > policy.high_density_min_drivers or hourly_requests > policy.high_density_min_hourly:
        return HIGH_DENSITY
    return DEFAULT_DENSITY


class CityDensityClassifier:
    def __init__(self, store: FleetStore):
        self.store = store
        self.policy = store.policy

    def classify(self, snapshot: Optional[FleetSnapshot] = None) -> CityDensitySnapshot:
        if snapshot is not None:
            drivers = snapshot.active_driver_count
            day_rides = snapshot.rides_last_day
            hourly = snapshot.hourly_request_count
        else:
            now = self.store.clock()
            drivers = self.store.count_online_drivers()
            day_rides = self.store.count_rides_since(self.store.day_window_start(now))
            hourly = self.store.count_rides_since(self.store.recent_window_start(now))

        return CityDensitySnapshot(
            tier=density_tier(drivers, hourly, self.policy),
            active_driver_count=drivers,
            recent_ride_count=day_rides,
            hourly_request_rate=hourly,
        )
