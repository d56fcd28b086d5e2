"""
Ride Event Log
Append-only record of every ride lifecycle transition and annotation.
Current and historical ride state is derived by folding events in insertion
order; rows are never updated or deleted.
"""

import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from citybrain.models import RideEvent, utcnow, to_naive_utc


logger = logging.getLogger(__name__)


class RideEventType(Enum):
    REQUESTED = "requested"
    MATCHED = "matched"
    ACCEPTED = "accepted"
    DRIVER_ARRIVING = "driver_arriving"
    DRIVER_ARRIVED = "driver_arrived"
    STARTED = "started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED_RIDER = "cancelled_rider"
    CANCELLED_DRIVER = "cancelled_driver"
    CANCELLED_SYSTEM = "cancelled_system"
    REMATCH_INITIATED = "rematch_initiated"
    REMATCH_COMPLETED = "rematch_completed"
    FARE_UPDATED = "fare_updated"
    ROUTE_DEVIATED = "route_deviated"
    ETA_UPDATED = "eta_updated"
    PAYMENT_INITIATED = "payment_initiated"
    PAYMENT_COMPLETED = "payment_completed"
    PAYMENT_FAILED = "payment_failed"
    DISPUTE_OPENED = "dispute_opened"
    DISPUTE_RESOLVED = "dispute_resolved"
    TIP_ADDED = "tip_added"
    RATING_SUBMITTED = "rating_submitted"
    BLOCKCHAIN_RECORDED = "blockchain_recorded"


class ActorRole(Enum):
    RIDER = "rider"
    DRIVER = "driver"
    SYSTEM = "system"
    ADMIN = "admin"


INITIAL_STATE = RideEventType.REQUESTED

TERMINAL_STATES = frozenset({
    RideEventType.COMPLETED,
    RideEventType.CANCELLED_RIDER,
    RideEventType.CANCELLED_DRIVER,
    RideEventType.CANCELLED_SYSTEM,
})

LIFECYCLE = (
    RideEventType.REQUESTED,
    RideEventType.MATCHED,
    RideEventType.ACCEPTED,
    RideEventType.DRIVER_ARRIVING,
    RideEventType.DRIVER_ARRIVED,
    RideEventType.STARTED,
    RideEventType.IN_PROGRESS,
    RideEventType.COMPLETED,
)

TRANSITIONAL_EVENTS = frozenset(LIFECYCLE) | TERMINAL_STATES | {
    RideEventType.REMATCH_INITIATED,
    RideEventType.REMATCH_COMPLETED,
}

ANNOTATION_EVENTS = frozenset(RideEventType) - TRANSITIONAL_EVENTS


def parse_event_type(value) -> RideEventType:
    if isinstance(value, RideEventType):
        return value
    return RideEventType(value)


def parse_actor_role(value) -> Optional[ActorRole]:
    if value is None or isinstance(value, ActorRole):
        return value
    return ActorRole(value)


def next_state(current: Optional[RideEventType], event_type: RideEventType) -> Optional[RideEventType]:
    """State after applying one event. Terminal states absorb every later event."""
    if current in TERMINAL_STATES:
        return current
    if event_type in ANNOTATION_EVENTS:
        return current
    if event_type is RideEventType.REMATCH_COMPLETED:
        return RideEventType.MATCHED
    return event_type


def can_transition(current: Optional[RideEventType], event_type) -> bool:
    event_type = parse_event_type(event_type)
    if event_type in ANNOTATION_EVENTS:
        return True
    return current not in TERMINAL_STATES


@dataclass
class RideState:
    ride_id: str
    state: Optional[RideEventType] = None
    event_count: int = 0
    annotations: Dict[str, int] = field(default_factory=dict)
    ignored_events: List[str] = field(default_factory=list)
    last_event_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def to_dict(self) -> Dict:
        return {
            'ride_id': self.ride_id,
            'state': self.state.value if self.state else None,
            'is_terminal': self.is_terminal,
            'event_count': self.event_count,
            'annotations': dict(self.annotations),
            'ignored_events': list(self.ignored_events),
            'last_event_at': self.last_event_at.isoformat() if self.last_event_at else None,
        }


def fold_ride_state(ride_id: str, events: Iterable[RideEvent]) -> RideState:
    state = RideState(ride_id=ride_id)

    for event in events:
        event_type = parse_event_type(event.event_type)
        state.event_count += 1
        state.last_event_at = event.created_at

        if event_type in ANNOTATION_EVENTS:
            state.annotations[event_type.value] = state.annotations.get(event_type.value, 0) + 1
            continue

        if state.is_terminal:
            state.ignored_events.append(event.id)
            continue

        state.state = next_state(state.state, event_type)

    return state


@dataclass(frozen=True)
class RecordResult:
    """Outcome of an append. event_id is set only when the row was written."""
    attempted_id: str
    event_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.event_id is not None and self.error is None

    def to_dict(self) -> Dict:
        return {
            'ok': self.ok,
            'event_id': self.event_id,
            'attempted_id': self.attempted_id,
            'error': self.error,
        }


def _encode(data: Optional[Dict]) -> Optional[str]:
    return json.dumps(data) if data is not None else None


class RideEventLog:
    RECENT_LIMIT = 50

    def __init__(self, db_session, clock: Callable[[], datetime] = utcnow,
                 id_factory: Callable[[], str] = lambda: str(uuid.uuid4())):
        self.db = db_session
        self.clock = clock
        self.id_factory = id_factory

    def record(self, ride_id: str, event_type, actor_id: Optional[str] = None,
               actor_role=None, payload: Optional[Dict] = None,
               previous_state: Optional[str] = None, new_state: Optional[str] = None,
               correlation_id: Optional[str] = None,
               metadata: Optional[Dict] = None) -> RecordResult:
        event_type = parse_event_type(event_type)
        actor_role = parse_actor_role(actor_role)

        event_id = self.id_factory()

        try:
            event = RideEvent(
                id=event_id,
                ride_id=ride_id,
                event_type=event_type.value,
                actor_id=actor_id or None,
                actor_role=actor_role.value if actor_role else None,
                payload=_encode(payload),
                previous_state=previous_state or None,
                new_state=new_state or None,
                correlation_id=correlation_id or None,
                event_metadata=_encode(metadata),
                created_at=self.clock(),
            )
            self.db.add(event)
            self.db.commit()
        except (SQLAlchemyError, TypeError, ValueError) as e:
            self.db.rollback()
            logger.error("Failed to record ride event [%s] for ride %s: %s",
                         event_type.value, ride_id, e)
            return RecordResult(attempted_id=event_id, error=str(e))

        return RecordResult(attempted_id=event_id, event_id=event_id)

    def _ordered(self, stmt):
        return self.db.execute(stmt.order_by(RideEvent.created_at, RideEvent.seq)).scalars().all()

    def history(self, ride_id: str) -> List[RideEvent]:
        return self._ordered(select(RideEvent).where(RideEvent.ride_id == ride_id))

    def by_type(self, ride_id: str, event_type) -> List[RideEvent]:
        event_type = parse_event_type(event_type)
        return self._ordered(
            select(RideEvent).where(
                RideEvent.ride_id == ride_id,
                RideEvent.event_type == event_type.value,
            )
        )

    def state_at(self, ride_id: str, timestamp: datetime) -> Optional[RideEvent]:
        stmt = (
            select(RideEvent)
            .where(RideEvent.ride_id == ride_id, RideEvent.created_at <= to_naive_utc(timestamp))
            .order_by(RideEvent.created_at.desc(), RideEvent.seq.desc())
            .limit(1)
        )
        return self.db.execute(stmt).scalars().first()

    def by_correlation(self, correlation_id: str) -> List[RideEvent]:
        return self._ordered(select(RideEvent).where(RideEvent.correlation_id == correlation_id))

    def recent(self, limit: int = RECENT_LIMIT) -> List[RideEvent]:
        stmt = (
            select(RideEvent)
            .order_by(RideEvent.created_at.desc(), RideEvent.seq.desc())
            .limit(limit)
        )
        return self.db.execute(stmt).scalars().all()

    def current_state(self, ride_id: str) -> RideState:
        return fold_ride_state(ride_id, self.history(ride_id))
