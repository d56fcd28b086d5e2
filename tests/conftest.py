import itertools
from datetime import timedelta

import pytest

from citybrain.config import Settings
from citybrain.main import create_app
from citybrain.models import db, Driver, Ride, utcnow
from citybrain.store import FleetStore


@pytest.fixture
def app():
    settings = Settings(
        database_url="sqlite:///:memory:",
        secret_key="test-secret",
        log_level="WARNING",
        engine_options={},
    )
    app = create_app(settings)
    app.config["TESTING"] = True

    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def session(app):
    return db.session


@pytest.fixture
def store(session):
    return FleetStore(session)


class Fleet:
    """Seeds the driver directory and ride table."""

    def __init__(self, session):
        self.session = session
        self._ids = itertools.count(1)

    def add_drivers(self, count, lat, lng, online=True):
        ids = []
        for _ in range(count):
            driver_id = f"driver-{next(self._ids)}"
            self.session.add(Driver(id=driver_id, status='approved', is_online=online,
                                    current_lat=lat, current_lng=lng))
            ids.append(driver_id)
        self.session.commit()
        return ids

    def add_rides(self, count, lat, lng, minutes_ago=5, status='pending', wait_minutes=None):
        created = utcnow() - timedelta(minutes=minutes_ago)
        accepted = created + timedelta(minutes=wait_minutes) if wait_minutes is not None else None
        for _ in range(count):
            self.session.add(Ride(id=f"ride-{next(self._ids)}", pickup_lat=lat, pickup_lng=lng,
                                  status=status, created_at=created, accepted_at=accepted))
        self.session.commit()


@pytest.fixture
def fleet(session):
    return Fleet(session)
