from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.orm import DeclarativeBase
from datetime import datetime, timezone
import json


class Base(DeclarativeBase):
    pass


db = SQLAlchemy(model_class=Base)


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class Driver(db.Model):
    """Driver directory row; written by the platform, read here."""
    __tablename__ = 'drivers'

    id = db.Column(db.String(36), primary_key=True)
    status = db.Column(db.String(20), default='pending', nullable=False)
    is_online = db.Column(db.Boolean, default=False, index=True)
    current_lat = db.Column(db.Float, nullable=True)
    current_lng = db.Column(db.Float, nullable=True)
    last_online_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow)

    def position(self):
        return (self.current_lat or 0.0, self.current_lng or 0.0)

    def __repr__(self):
        return f'<Driver {self.id}>'


class Ride(db.Model):
    """Ride request row; written by the platform, read here."""
    __tablename__ = 'rides'

    STATUS_PENDING = 'pending'
    STATUS_COMPLETED = 'completed'

    id = db.Column(db.String(36), primary_key=True)
    driver_id = db.Column(db.String(36), db.ForeignKey('drivers.id'), nullable=True)
    pickup_lat = db.Column(db.Float, nullable=False)
    pickup_lng = db.Column(db.Float, nullable=False)
    status = db.Column(db.String(20), default=STATUS_PENDING, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)
    accepted_at = db.Column(db.DateTime, nullable=True)

    def __repr__(self):
        return f'<Ride {self.id} {self.status}>'


class RideEvent(db.Model):
    """Append-only ride lifecycle record. Rows are never updated or deleted."""
    __tablename__ = 'ride_event_log'

    seq = db.Column(db.Integer, primary_key=True, autoincrement=True)
    id = db.Column(db.String(36), unique=True, nullable=False)
    ride_id = db.Column(db.String(36), nullable=False, index=True)
    event_type = db.Column(db.String(32), nullable=False)
    actor_id = db.Column(db.String(36), nullable=True)
    actor_role = db.Column(db.String(10), nullable=True)
    payload = db.Column(db.Text, nullable=True)
    previous_state = db.Column(db.String(32), nullable=True)
    new_state = db.Column(db.String(32), nullable=True)
    correlation_id = db.Column(db.String(64), nullable=True, index=True)
    event_metadata = db.Column('metadata', db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'ride_id': self.ride_id,
            'event_type': self.event_type,
            'actor_id': self.actor_id,
            'actor_role': self.actor_role,
            'payload': json.loads(self.payload) if self.payload else None,
            'previous_state': self.previous_state,
            'new_state': self.new_state,
            'correlation_id': self.correlation_id,
            'metadata': json.loads(self.event_metadata) if self.event_metadata else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<RideEvent {self.ride_id} {self.event_type}>'
