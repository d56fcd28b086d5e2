import logging
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from citybrain.events import (RideEventLog, RideEventType, TERMINAL_STATES, can_transition,
                              fold_ride_state)
from citybrain.models import utcnow


class SteppingClock:
    def __init__(self, start):
        self.now = start

    def __call__(self):
        current = self.now
        self.now = self.now + timedelta(minutes=1)
        return current


START = datetime(2026, 3, 1, 8, 0, 0)


@pytest.fixture
def log(session):
    return RideEventLog(session, clock=SteppingClock(START))


def _types(events):
    return [e.event_type for e in events]


def test_state_at_now_returns_latest_event(session):
    log = RideEventLog(session)
    log.record("r1", "requested")
    accepted = log.record("r1", "accepted", previous_state="requested", new_state="accepted")

    event = log.state_at("r1", utcnow())

    assert accepted.ok
    assert event.id == accepted.event_id
    assert event.event_type == "accepted"
    assert event.previous_state == "requested"


def test_record_returns_written_id(log):
    result = log.record("r1", RideEventType.REQUESTED, actor_id="u1", actor_role="rider",
                        payload={"pickup": "Dubai Mall"}, metadata={"app": "ios"})

    assert result.ok
    assert result.event_id == result.attempted_id
    [event] = log.history("r1")
    assert event.to_dict()["payload"] == {"pickup": "Dubai Mall"}
    assert event.to_dict()["metadata"] == {"app": "ios"}
    assert event.actor_role == "rider"


def test_empty_payload_is_kept(log):
    log.record("r1", "requested", payload={}, metadata={})

    [event] = log.history("r1")

    assert event.to_dict()["payload"] == {}
    assert event.to_dict()["metadata"] == {}


def test_history_is_insertion_ordered(log):
    for event_type in ("requested", "matched", "eta_updated", "accepted", "completed"):
        log.record("r1", event_type)
    log.record("r2", "requested")

    history = log.history("r1")

    assert _types(history) == ["requested", "matched", "eta_updated", "accepted", "completed"]
    assert [e.created_at for e in history] == sorted(e.created_at for e in history)


def test_events_with_identical_timestamps_keep_insertion_order(session):
    log = RideEventLog(session, clock=lambda: START)
    for event_type in ("requested", "matched", "accepted"):
        log.record("r1", event_type)

    assert _types(log.history("r1")) == ["requested", "matched", "accepted"]
    assert log.state_at("r1", START).event_type == "accepted"


def test_by_type(log):
    log.record("r1", "requested")
    log.record("r1", "eta_updated", payload={"eta": 7})
    log.record("r1", "matched")
    log.record("r1", "eta_updated", payload={"eta": 4})

    etas = log.by_type("r1", RideEventType.ETA_UPDATED)

    assert [e.to_dict()["payload"]["eta"] for e in etas] == [7, 4]


def test_state_at_point_in_time(log):
    log.record("r1", "requested")    # 08:00
    log.record("r1", "matched")      # 08:01
    log.record("r1", "accepted")     # 08:02

    assert log.state_at("r1", START - timedelta(seconds=1)) is None
    assert log.state_at("r1", START).event_type == "requested"
    assert log.state_at("r1", START + timedelta(seconds=90)).event_type == "matched"
    assert log.state_at("r1", START + timedelta(hours=1)).event_type == "accepted"


def test_state_at_accepts_aware_timestamps(log):
    log.record("r1", "requested")

    aware = START.replace(tzinfo=timezone.utc) + timedelta(seconds=1)
    assert log.state_at("r1", aware).event_type == "requested"


def test_correlation_spans_rides(log):
    log.record("r1", "rematch_initiated", correlation_id="rm-1")
    log.record("r2", "requested")
    log.record("r2", "matched", correlation_id="rm-1")
    log.record("r1", "rematch_completed", correlation_id="rm-1")

    events = log.by_correlation("rm-1")

    assert [(e.ride_id, e.event_type) for e in events] == [
        ("r1", "rematch_initiated"), ("r2", "matched"), ("r1", "rematch_completed"),
    ]


def test_recent_is_newest_first(log):
    for i in range(5):
        log.record(f"r{i}", "requested")

    recent = log.recent(3)

    assert [e.ride_id for e in recent] == ["r4", "r3", "r2"]


def test_unknown_event_type_rejected_before_write(log):
    with pytest.raises(ValueError):
        log.record("r1", "teleported")
    with pytest.raises(ValueError):
        log.record("r1", "requested", actor_role="passenger")
    assert log.history("r1") == []


class FailingSession:
    def __init__(self):
        self.rolled_back = False

    def add(self, obj):
        pass

    def commit(self):
        raise OperationalError("INSERT INTO ride_event_log", {}, Exception("disk I/O error"))

    def rollback(self):
        self.rolled_back = True


def test_write_failure_is_reported_not_raised(caplog):
    session = FailingSession()
    log = RideEventLog(session, id_factory=lambda: "evt-1")

    with caplog.at_level(logging.ERROR, logger="citybrain.events"):
        result = log.record("r1", "completed")

    assert not result.ok
    assert result.event_id is None
    assert result.attempted_id == "evt-1"
    assert "disk I/O error" in result.error
    assert session.rolled_back
    assert "Failed to record ride event [completed] for ride r1" in caplog.text


def test_current_state_folds_lifecycle(log):
    for event_type in ("requested", "matched", "accepted", "driver_arriving", "driver_arrived",
                       "started", "in_progress", "fare_updated", "completed", "tip_added",
                       "rating_submitted"):
        log.record("r1", event_type)

    state = log.current_state("r1")

    assert state.state is RideEventType.COMPLETED
    assert state.is_terminal
    assert state.event_count == 11
    assert state.annotations == {"fare_updated": 1, "tip_added": 1, "rating_submitted": 1}


def test_terminal_state_is_never_left(log):
    log.record("r1", "requested")
    log.record("r1", "cancelled_rider")
    late = log.record("r1", "matched")
    log.record("r1", "rematch_completed")

    state = log.current_state("r1")

    assert state.state is RideEventType.CANCELLED_RIDER
    assert late.event_id in state.ignored_events
    assert len(state.ignored_events) == 2


def test_rematch_loops_back_to_matched(log):
    for event_type in ("requested", "matched", "rematch_initiated"):
        log.record("r1", event_type)
    assert log.current_state("r1").state is RideEventType.REMATCH_INITIATED

    log.record("r1", "rematch_completed")
    assert log.current_state("r1").state is RideEventType.MATCHED


def test_empty_history_has_no_state(log):
    state = log.current_state("missing")

    assert state.state is None
    assert state.event_count == 0
    assert fold_ride_state("missing", []).to_dict()["state"] is None


@pytest.mark.parametrize("terminal", sorted(TERMINAL_STATES, key=lambda t: t.value))
def test_can_transition_from_terminal(terminal):
    assert not can_transition(terminal, "matched")
    assert not can_transition(terminal, "cancelled_system")
    assert can_transition(terminal, "rating_submitted")


def test_can_transition_from_active_states():
    assert can_transition(None, "requested")
    assert can_transition(RideEventType.MATCHED, RideEventType.CANCELLED_DRIVER)
    assert can_transition(RideEventType.IN_PROGRESS, "completed")
