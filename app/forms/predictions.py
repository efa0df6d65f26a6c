from app.forms.base import (
    APIForm,
    JSONBooleanField,
    JSONIntegerField,
    NullableNumberRange,
)


class PredictionForm(APIForm):
    """Envelope of a prediction; the ranked items are validated by the service"""

    league_id = JSONIntegerField("League", validators=[NullableNumberRange(min=1)])
    draft = JSONBooleanField("Save as draft", default=False)

    @property
    def items(self):
        return self.payload.get("items")
