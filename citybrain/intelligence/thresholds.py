"""
Adaptive Threshold Engine
Alignment cutoffs for instant, soft-commitment and compensated matches.
Values are advisory and not clamped.
"""

from dataclasses import dataclass, asdict
from typing import Dict, Optional

from citybrain.config import DispatchPolicy
from citybrain.store import FleetSnapshot
from .density import CityDensityClassifier
from .zones import ZoneMetricsCalculator


@dataclass(frozen=True)
class AlignmentThresholds:
    instant: float
    soft_commitment: float
    compensation_trigger: float

    def to_dict(self) -> Dict:
        return asdict(self)


def base_thresholds(tier: str, policy: Optional[DispatchPolicy] = None) -> AlignmentThresholds:
    policy = policy or DispatchPolicy()
    base = dict(policy.threshold_bases).get(tier)
    if base is None:
        raise ValueError(f"Unknown density tier: {tier!r}")
    return AlignmentThresholds(base.instant, base.soft_commitment, base.compensation_trigger)


class AdaptiveThresholdEngine:
    def __init__(self, density: CityDensityClassifier, zones: ZoneMetricsCalculator):
        self.density = density
        self.zones = zones
        self.policy = zones.policy

    def thresholds(self, lat: float, lng: float,
                   snapshot: Optional[FleetSnapshot] = None) -> AlignmentThresholds:
        if snapshot is None:
            snapshot = self.zones.store.snapshot()

        city = self.density.classify(snapshot)
        zone = self.zones.metrics(lat, lng, snapshot)

        base = base_thresholds(city.tier, self.policy)
        if zone.imbalance_score > self.policy.pressure_imbalance:
            # compensation_trigger does not follow zone pressure
            return AlignmentThresholds(
                instant=base.instant - self.policy.pressure_relief,
                soft_commitment=base.soft_commitment - self.policy.pressure_relief,
                compensation_trigger=base.compensation_trigger,
            )
        return base
