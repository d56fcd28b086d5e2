"""
Guarantee Trigger
Decides whether a waiting driver has earned the zone's minimum-earnings payout
"""

from dataclasses import dataclass, asdict
from typing import Dict, Optional

from citybrain.store import FleetSnapshot
from .zones import ZoneMetricsCalculator


@dataclass(frozen=True)
class GuaranteeDecision:
    trigger: bool
    amount: float
    reason: str
    zone_id: Optional[str] = None
    threshold_minutes: Optional[int] = None

    def to_dict(self) -> Dict:
        return asdict(self)


DRIVER_NOT_FOUND = "Driver not found"
THRESHOLD_NOT_REACHED = "Threshold not reached"


def format_minutes(minutes: float) -> str:
    if float(minutes).is_integer():
        return str(int(minutes))
    return str(minutes)


class GuaranteeTrigger:
    def __init__(self, zones: ZoneMetricsCalculator):
        self.zones = zones
        self.policy = zones.policy

    def evaluate(self, driver_id: str, wait_minutes: float,
                 snapshot: Optional[FleetSnapshot] = None) -> GuaranteeDecision:
        if snapshot is None:
            snapshot = self.zones.store.snapshot(driver_ids=[driver_id])

        driver = snapshot.driver(driver_id)
        if driver is None:
            return GuaranteeDecision(trigger=False, amount=0, reason=DRIVER_NOT_FOUND)

        zone = self.zones.metrics(driver.lat, driver.lng, snapshot)
        threshold = zone.guarantee_threshold_minutes

        if wait_minutes >= threshold:
            amount = round(self.policy.base_guarantee_amount * zone.premium_multiplier, 2)
            return GuaranteeDecision(
                trigger=True,
                amount=amount,
                reason=f"No aligned ride in {format_minutes(wait_minutes)} minutes (threshold: {threshold})",
                zone_id=zone.zone_id,
                threshold_minutes=threshold,
            )

        return GuaranteeDecision(
            trigger=False,
            amount=0,
            reason=THRESHOLD_NOT_REACHED,
            zone_id=zone.zone_id,
            threshold_minutes=threshold,
        )
