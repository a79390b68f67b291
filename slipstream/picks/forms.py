"""Forms for the picks blueprint."""

from flask_wtf import FlaskForm  # type: ignore
from wtforms import StringField
from wtforms.validators import DataRequired, Length, Optional


class PickForm(FlaskForm):
    """Form for submitting a rider for a race."""

    raceSlug = StringField("Race", validators=[DataRequired(), Length(max=100)])
    riderId = StringField("Rider", validators=[DataRequired(), Length(max=200)])
    riderName = StringField("Rider name", validators=[Optional(), Length(max=200)])


class ClearPickForm(FlaskForm):
    """Form for clearing a pending pick."""

    raceSlug = StringField("Race", validators=[DataRequired(), Length(max=100)])
