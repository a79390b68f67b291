"""Forms for the race calendar blueprint."""

from flask_wtf import FlaskForm  # type: ignore
from wtforms import DateTimeField, IntegerField, SelectField, StringField
from wtforms.validators import DataRequired, Length, Optional, Regexp

from .models import RaceStatus

ISO_DATETIME_FORMATS = [
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M%z",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
]


class RaceForm(FlaskForm):
    """Form for adding a race to the calendar."""

    raceSlug = StringField(
        "Race slug",
        validators=[
            DataRequired(),
            Length(max=100),
            Regexp(r"^[a-z0-9][a-z0-9_-]*$", message="Use lowercase slug characters."),
        ],
    )
    raceName = StringField("Race name", validators=[DataRequired(), Length(max=200)])
    raceId = StringField("Race ID", validators=[Optional(), Length(max=120)])
    raceDate = DateTimeField(
        "Race date", format=ISO_DATETIME_FORMATS, validators=[DataRequired()]
    )
    pickDeadline = DateTimeField(
        "Pick deadline", format=ISO_DATETIME_FORMATS, validators=[Optional()]
    )
    order = IntegerField("Order", validators=[Optional()])


class RaceStatusForm(FlaskForm):
    """Form for an admin race status change."""

    status = SelectField(
        "Status",
        choices=[(s.value, s.value.title()) for s in RaceStatus],
        validators=[DataRequired()],
    )
