from .grid import ZoneGrid, zone_id, zone_center, approx_distance_km, FOUR_NEIGHBORS, EIGHT_NEIGHBORS
from .density import CityDensityClassifier, CityDensitySnapshot, density_tier
from .zones import ZoneMetricsCalculator, ZoneMetrics, guarantee_terms
from .thresholds import AdaptiveThresholdEngine, AlignmentThresholds, base_thresholds
from .guarantee import GuaranteeTrigger, GuaranteeDecision
from .flow import FlowRecommender, FlowRecommendation, RecommendedZone
from .engine import DispatchEngine

__all__ = [
    "ZoneGrid", "zone_id", "zone_center", "approx_distance_km", "FOUR_NEIGHBORS", "EIGHT_NEIGHBORS",
    "CityDensityClassifier", "CityDensitySnapshot", "density_tier",
    "ZoneMetricsCalculator", "ZoneMetrics", "guarantee_terms",
    "AdaptiveThresholdEngine", "AlignmentThresholds", "base_thresholds",
    "GuaranteeTrigger", "GuaranteeDecision",
    "FlowRecommender", "FlowRecommendation", "RecommendedZone",
    "DispatchEngine",
]
