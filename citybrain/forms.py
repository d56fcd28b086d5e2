import math
from datetime import datetime

from flask_wtf import FlaskForm
from wtforms import StringField, FloatField, IntegerField, SelectField
from wtforms.validators import AnyOf, Length, NumberRange, Optional, StopValidation, ValidationError

from citybrain.events import ActorRole, RideEventType


def required_value(form, field):
    # InputRequired treats a JSON 0 as missing
    if not field.raw_data or field.raw_data[0] is None or field.raw_data[0] == '':
        raise StopValidation('This field is required.')


def string_value(form, field):
    if field.data is not None and not isinstance(field.data, str):
        raise StopValidation('Must be a string.')


def finite(form, field):
    if field.data is not None and not math.isfinite(field.data):
        raise ValidationError('Must be a finite number.')


def parse_timestamp(value: str) -> datetime:
    if value.endswith('Z'):
        value = value[:-1] + '+00:00'
    return datetime.fromisoformat(value)


class ApiForm(FlaskForm):
    class Meta:
        csrf = False


class LocationForm(ApiForm):
    lat = FloatField('Latitude', validators=[required_value, finite])
    lng = FloatField('Longitude', validators=[required_value, finite])


class GuaranteeForm(ApiForm):
    wait_minutes = FloatField('Wait Minutes', validators=[required_value, finite, NumberRange(min=0)])


class RideEventForm(ApiForm):
    event_type = SelectField('Event Type', choices=[(t.value, t.value) for t in RideEventType],
                             validators=[required_value])
    actor_id = StringField('Actor', validators=[Optional(), string_value, Length(max=36)])
    actor_role = StringField('Actor Role', validators=[Optional(), string_value, AnyOf([r.value for r in ActorRole])])
    previous_state = StringField('Previous State', validators=[Optional(), string_value, Length(max=32)])
    new_state = StringField('New State', validators=[Optional(), string_value, Length(max=32)])
    correlation_id = StringField('Correlation', validators=[Optional(), string_value, Length(max=64)])


class EventTypeFilterForm(ApiForm):
    event_type = StringField('Event Type', validators=[Optional(), AnyOf([t.value for t in RideEventType])])


class StateAtForm(ApiForm):
    timestamp = StringField('Timestamp', validators=[required_value])

    def validate_timestamp(self, field):
        try:
            parse_timestamp(field.data)
        except (TypeError, ValueError):
            raise ValidationError('Must be an ISO 8601 timestamp.')

    def parsed_timestamp(self) -> datetime:
        return parse_timestamp(self.timestamp.data)


class RecentEventsForm(ApiForm):
    limit = IntegerField('Limit', default=50, validators=[Optional(), NumberRange(min=1, max=500)])
