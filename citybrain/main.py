import logging

from flask import Flask, Blueprint, current_app, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from citybrain.config import Settings
from citybrain.errors import AppError, NotFoundError, StoreUnavailableError, ValidationError
from citybrain.events import RideEventLog
from citybrain.forms import (EventTypeFilterForm, GuaranteeForm, LocationForm, RecentEventsForm,
                             RideEventForm, StateAtForm)
from citybrain.intelligence import DispatchEngine
from citybrain.models import db
from citybrain.store import FleetStore


logger = logging.getLogger(__name__)

api = Blueprint('api', __name__, url_prefix='/api')


def configure_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(settings: Settings = None) -> Flask:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    app = Flask(__name__)
    app.secret_key = settings.secret_key
    app.config["SQLALCHEMY_DATABASE_URI"] = settings.database_url
    app.config["SQLALCHEMY_ENGINE_OPTIONS"] = dict(settings.engine_options)
    app.config["WTF_CSRF_ENABLED"] = False
    app.config["DISPATCH_POLICY"] = settings.policy

    db.init_app(app)
    app.register_blueprint(api)

    with app.app_context():
        db.create_all()

    logger.info("Database configured: %s", 'production' if 'postgresql' in settings.database_url else 'development')
    return app


def get_engine() -> DispatchEngine:
    store = FleetStore(db.session, policy=current_app.config["DISPATCH_POLICY"])
    return DispatchEngine(store)


def get_event_log() -> RideEventLog:
    return RideEventLog(db.session)


def _validated(form):
    if not form.validate():
        raise ValidationError("Invalid request parameters", details=form.errors)
    return form


def _location():
    form = _validated(LocationForm(formdata=request.args))
    return form.lat.data, form.lng.data


def _json_object(body, key):
    value = body.get(key)
    if value is not None and not isinstance(value, dict):
        raise ValidationError(f"{key} must be a JSON object", details={key: ['Must be an object.']})
    return value


@api.errorhandler(AppError)
def handle_app_error(error):
    return jsonify(error.to_dict()), error.status_code


@api.errorhandler(SQLAlchemyError)
def handle_store_error(error):
    db.session.rollback()
    logger.exception("Store failure while handling %s", request.path)
    return jsonify(message=str(error)), 500


@api.route('/zones/id')
def zone_id():
    lat, lng = _location()
    engine = get_engine()
    zone = engine.zone_id(lat, lng)
    center_lat, center_lng = engine.zone_center(zone)
    return jsonify(zone_id=zone, center={'lat': center_lat, 'lng': center_lng})


@api.route('/intent/zone-metrics')
def zone_metrics():
    lat, lng = _location()
    return jsonify(get_engine().zone_metrics(lat, lng).to_dict())


@api.route('/intent/city-density')
def city_density():
    return jsonify(get_engine().city_density().to_dict())


@api.route('/intent/thresholds')
def adaptive_thresholds():
    lat, lng = _location()
    return jsonify(get_engine().adaptive_thresholds(lat, lng).to_dict())


@api.route('/intent/flow-recommendation')
def flow_recommendation():
    lat, lng = _location()
    return jsonify(get_engine().flow_recommendation(lat, lng).to_dict())


@api.route('/drivers/<driver_id>/flow-recommendation')
def driver_flow_recommendation(driver_id):
    recommendation = get_engine().driver_flow_recommendation(driver_id)
    if recommendation is None:
        raise NotFoundError("Driver", driver_id)
    return jsonify(recommendation.to_dict())


@api.route('/drivers/<driver_id>/guarantee', methods=['POST'])
def evaluate_guarantee(driver_id):
    form = _validated(GuaranteeForm())
    decision = get_engine().evaluate_guarantee(driver_id, form.wait_minutes.data)
    return jsonify(decision.to_dict())


@api.route('/rides/<ride_id>/events', methods=['POST'])
def record_ride_event(ride_id):
    form = _validated(RideEventForm())
    body = request.get_json(silent=True) or {}

    result = get_event_log().record(
        ride_id=ride_id,
        event_type=form.event_type.data,
        actor_id=form.actor_id.data,
        actor_role=form.actor_role.data or None,
        payload=_json_object(body, 'payload'),
        previous_state=form.previous_state.data,
        new_state=form.new_state.data,
        correlation_id=form.correlation_id.data,
        metadata=_json_object(body, 'metadata'),
    )

    if not result.ok:
        raise StoreUnavailableError("Ride event was not recorded",
                                    details={'attempted_id': result.attempted_id, 'reason': result.error})
    return jsonify(event_id=result.event_id), 201


@api.route('/rides/<ride_id>/events')
def ride_event_history(ride_id):
    form = _validated(EventTypeFilterForm(formdata=request.args))
    log = get_event_log()
    if form.event_type.data:
        events = log.by_type(ride_id, form.event_type.data)
    else:
        events = log.history(ride_id)
    return jsonify(ride_id=ride_id, events=[e.to_dict() for e in events])


@api.route('/rides/<ride_id>/state-at')
def ride_state_at(ride_id):
    form = _validated(StateAtForm(formdata=request.args))
    event = get_event_log().state_at(ride_id, form.parsed_timestamp())
    return jsonify(ride_id=ride_id, event=event.to_dict() if event else None)


@api.route('/rides/<ride_id>/state')
def ride_state(ride_id):
    return jsonify(get_event_log().current_state(ride_id).to_dict())


@api.route('/events/correlation/<correlation_id>')
def events_by_correlation(correlation_id):
    events = get_event_log().by_correlation(correlation_id)
    return jsonify(correlation_id=correlation_id, events=[e.to_dict() for e in events])


@api.route('/events/recent')
def recent_events():
    form = _validated(RecentEventsForm(formdata=request.args))
    limit = form.limit.data if form.limit.data is not None else RideEventLog.RECENT_LIMIT
    events = get_event_log().recent(limit)
    return jsonify(events=[e.to_dict() for e in events])


if __name__ == '__main__':
    create_app().run(host='0.0.0.0', port=5000)
