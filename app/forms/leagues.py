from wtforms import StringField, TextAreaField
from wtforms.validators import AnyOf, DataRequired, Length

from app.forms.base import (
    APIForm,
    JSONBooleanField,
    JSONIntegerField,
    NullableNumberRange,
    strip_text,
)
from app.models.league_member import MemberRole


class LeagueForm(APIForm):
    name = StringField(
        "League Name",
        filters=[strip_text],
        validators=[
            DataRequired(),
            Length(
                min=3,
                max=100,
                message="League name must be between 3 and 100 characters",
            ),
        ],
    )
    description = TextAreaField(
        "Description",
        filters=[strip_text],
        validators=[
            Length(max=500, message="Description cannot exceed 500 characters")
        ],
    )
    is_public = JSONBooleanField("Public league", default=True)
    max_members = JSONIntegerField(
        "Maximum Members",
        validators=[
            NullableNumberRange(
                min=2, max=1000, message="Maximum members must be between 2 and 1000"
            )
        ],
    )
    season = JSONIntegerField("Season", validators=[NullableNumberRange(min=1950, max=2100)])
    image_url = StringField("Image URL", filters=[strip_text], validators=[Length(max=500)])


class LeagueUpdateForm(LeagueForm):
    name = StringField(
        "League Name",
        filters=[strip_text],
        validators=[Length(max=100, message="League name cannot exceed 100 characters")],
    )


class JoinLeagueForm(APIForm):
    invite_code = StringField(
        "Invite Code",
        filters=[strip_text, lambda code: code.upper() if code else code],
        validators=[
            DataRequired(),
            Length(min=8, max=8, message="Invite code must be 8 characters"),
        ],
    )


class MemberRoleForm(APIForm):
    role = StringField(
        "Role",
        filters=[strip_text],
        validators=[
            DataRequired(),
            AnyOf(
                MemberRole.ALL,
                message=f"Role must be one of: {', '.join(MemberRole.ALL)}",
            ),
        ],
    )
