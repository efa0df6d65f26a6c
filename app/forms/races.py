from wtforms import FloatField, StringField
from wtforms.validators import AnyOf, DataRequired, Length

from app.forms.base import (
    APIForm,
    ISODateTimeField,
    JSONBooleanField,
    JSONIntegerField,
    NullableNumberRange,
    Present,
    strip_text,
)
from app.models.race import RaceStatus


class RaceUpdateForm(APIForm):
    """Every race field, all optional; only keys sent by the client are applied"""

    name = StringField("Name", filters=[strip_text], validators=[Length(max=100)])
    official_name = StringField(
        "Official Name", filters=[strip_text], validators=[Length(max=150)]
    )
    circuit = StringField("Circuit", filters=[strip_text], validators=[Length(max=100)])
    country = StringField("Country", filters=[strip_text], validators=[Length(max=60)])
    city = StringField("City", filters=[strip_text], validators=[Length(max=60)])
    flag_url = StringField("Flag URL", filters=[strip_text], validators=[Length(max=500)])
    circuit_image_url = StringField(
        "Circuit Image URL", filters=[strip_text], validators=[Length(max=500)]
    )

    round = JSONIntegerField("Round", validators=[NullableNumberRange(min=1, max=30)])
    season = JSONIntegerField("Season", validators=[NullableNumberRange(min=1950, max=2100)])

    race_date = ISODateTimeField("Race Date")
    qualifying_date = ISODateTimeField("Qualifying Date")
    sprint_date = ISODateTimeField("Sprint Date")
    fp1_date = ISODateTimeField("FP1 Date")
    fp2_date = ISODateTimeField("FP2 Date")
    fp3_date = ISODateTimeField("FP3 Date")
    prediction_deadline = ISODateTimeField("Prediction Deadline")

    laps = JSONIntegerField("Laps", validators=[NullableNumberRange(min=1, max=200)])
    circuit_length = FloatField(
        "Circuit Length (km)", validators=[NullableNumberRange(min=0.5, max=20)]
    )
    timezone = StringField("Timezone", filters=[strip_text], validators=[Length(max=50)])
    is_sprint = JSONBooleanField("Sprint Weekend")


class RaceForm(RaceUpdateForm):
    name = StringField(
        "Name", filters=[strip_text], validators=[DataRequired(), Length(max=100)]
    )
    circuit = StringField(
        "Circuit", filters=[strip_text], validators=[DataRequired(), Length(max=100)]
    )
    country = StringField(
        "Country", filters=[strip_text], validators=[DataRequired(), Length(max=60)]
    )
    round = JSONIntegerField(
        "Round", validators=[Present(), NullableNumberRange(min=1, max=30)]
    )
    race_date = ISODateTimeField("Race Date", validators=[Present()])


class RaceStatusForm(APIForm):
    status = StringField(
        "Status",
        filters=[strip_text],
        validators=[
            DataRequired(),
            AnyOf(
                RaceStatus.ALL,
                message=f"Status must be one of: {', '.join(RaceStatus.ALL)}",
            ),
        ],
    )
