"""
Dispatch Economics Engine
Wires the scoring components around one fleet store.
Each call reads a fresh snapshot; no state is kept between calls.
"""

from typing import Optional, Sequence, Tuple

from citybrain.store import FleetStore
from .density import CityDensityClassifier, CityDensitySnapshot
from .flow import FlowRecommender, FlowRecommendation
from .grid import FOUR_NEIGHBORS, ZoneGrid
from .guarantee import GuaranteeTrigger, GuaranteeDecision
from .thresholds import AdaptiveThresholdEngine, AlignmentThresholds
from .zones import ZoneMetricsCalculator, ZoneMetrics


class DispatchEngine:
    def __init__(self, store: FleetStore, flow_offsets: Sequence[Tuple[int, int]] = FOUR_NEIGHBORS):
        self.store = store
        self.grid = ZoneGrid(store.policy.cell_size_deg)
        self.zones = ZoneMetricsCalculator(store, self.grid)
        self.density = CityDensityClassifier(store)
        self.thresholds = AdaptiveThresholdEngine(self.density, self.zones)
        self.guarantee = GuaranteeTrigger(self.zones)
        self.flow = FlowRecommender(self.zones, flow_offsets)

    def zone_id(self, lat: float, lng: float) -> str:
        return self.grid.zone_id(lat, lng)

    def zone_center(self, zone_id: str) -> Tuple[float, float]:
        return self.grid.zone_center(zone_id)

    def zone_metrics(self, lat: float, lng: float) -> ZoneMetrics:
        return self.zones.metrics(lat, lng)

    def city_density(self) -> CityDensitySnapshot:
        return self.density.classify()

    def adaptive_thresholds(self, lat: float, lng: float) -> AlignmentThresholds:
        return self.thresholds.thresholds(lat, lng)

    def evaluate_guarantee(self, driver_id: str, wait_minutes: float) -> GuaranteeDecision:
        return self.guarantee.evaluate(driver_id, wait_minutes)

    def flow_recommendation(self, lat: float, lng: float) -> FlowRecommendation:
        return self.flow.recommend(lat, lng)

    def driver_flow_recommendation(self, driver_id: str) -> Optional[FlowRecommendation]:
        """None when the driver is unknown. A driver at (0, 0) has no usable location."""
        snapshot = self.store.snapshot(driver_ids=[driver_id])
        driver = snapshot.driver(driver_id)
        if driver is None:
            return None
        if not driver.has_location:
            return FlowRecommendation(recommended_zone=None, reason="Location not available",
                                      expected_improvement=0)
        return self.flow.recommend(driver.lat, driver.lng, snapshot)
