"""
Fleet Read Store
Reads the platform's driver directory and ride table into immutable
point-in-time snapshots. Every decision made for one request is computed
from a single snapshot so driver position and zone metrics never disagree.
"""

from datetime import datetime, timedelta
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, select

from citybrain.config import DispatchPolicy
from citybrain.models import Driver, Ride, utcnow


@dataclass(frozen=True)
class DriverPosition:
    driver_id: str
    lat: float
    lng: float
    is_online: bool = True

    @property
    def has_location(self) -> bool:
        return not (self.lat == 0 and self.lng == 0)


@dataclass(frozen=True)
class RideSample:
    ride_id: str
    pickup_lat: float
    pickup_lng: float
    status: str
    created_at: datetime
    accepted_at: Optional[datetime] = None

    def wait_minutes(self) -> float:
        accepted = self.accepted_at or self.created_at
        return (accepted - self.created_at).total_seconds() / 60


@dataclass(frozen=True)
class FleetSnapshot:
    taken_at: datetime
    online_drivers: Tuple[DriverPosition, ...] = ()
    recent_rides: Tuple[RideSample, ...] = ()
    rides_last_day: int = 0
    tracked_drivers: Dict[str, DriverPosition] = field(default_factory=dict)

    @property
    def active_driver_count(self) -> int:
        return len(self.online_drivers)

    @property
    def hourly_request_count(self) -> int:
        return len(self.recent_rides)

    def driver(self, driver_id: str) -> Optional[DriverPosition]:
        return self.tracked_drivers.get(driver_id)


def _to_position(driver: Driver) -> DriverPosition:
    lat, lng = driver.position()
    return DriverPosition(driver.id, float(lat), float(lng), bool(driver.is_online))


def _to_sample(ride: Ride) -> RideSample:
    return RideSample(
        ride_id=ride.id,
        pickup_lat=float(ride.pickup_lat or 0.0),
        pickup_lng=float(ride.pickup_lng or 0.0),
        status=ride.status,
        created_at=ride.created_at,
        accepted_at=ride.accepted_at,
    )


class FleetStore:
    def __init__(self, db_session, policy: Optional[DispatchPolicy] = None,
                 clock: Callable[[], datetime] = utcnow):
        self.db = db_session
        self.policy = policy or DispatchPolicy()
        self.clock = clock

    def online_drivers(self) -> List[DriverPosition]:
        rows = self.db.execute(select(Driver).where(Driver.is_online.is_(True))).scalars().all()
        return [_to_position(d) for d in rows]

    def find_driver(self, driver_id: str) -> Optional[DriverPosition]:
        driver = self.db.get(Driver, driver_id)
        return _to_position(driver) if driver else None

    def rides_since(self, since: datetime) -> List[RideSample]:
        rows = self.db.execute(select(Ride).where(Ride.created_at >= since)).scalars().all()
        return [_to_sample(r) for r in rows]

    def count_online_drivers(self) -> int:
        return self.db.execute(
            select(func.count()).select_from(Driver).where(Driver.is_online.is_(True))
        ).scalar_one()

    def count_rides_since(self, since: datetime) -> int:
        return self.db.execute(
            select(func.count()).select_from(Ride).where(Ride.created_at >= since)
        ).scalar_one()

    def recent_window_start(self, now: Optional[datetime] = None) -> datetime:
        now = now or self.clock()
        return now - timedelta(minutes=self.policy.recent_window_minutes)

    def day_window_start(self, now: Optional[datetime] = None) -> datetime:
        now = now or self.clock()
        return now - timedelta(hours=self.policy.day_window_hours)

    def snapshot(self, driver_ids: Iterable[str] = ()) -> FleetSnapshot:
        now = self.clock()
        wanted = set(driver_ids)

        online = self.online_drivers()
        recent = self.rides_since(self.recent_window_start(now))
        day_count = self.count_rides_since(self.day_window_start(now))

        tracked = {d.driver_id: d for d in online if d.driver_id in wanted}
        for driver_id in wanted:
            if driver_id not in tracked:
                position = self.find_driver(driver_id)
                if position:
                    tracked[driver_id] = position

        return FleetSnapshot(
            taken_at=now,
            online_drivers=tuple(online),
            recent_rides=tuple(recent),
            rides_last_day=day_count,
            tracked_drivers=tracked,
        )
