from wtforms import PasswordField, StringField
from wtforms.validators import (
    DataRequired,
    Email,
    Length,
    Regexp,
    ValidationError,
)

from app.forms.base import APIForm, as_text, strip_text
from app.models.user import User


class LoginForm(APIForm):
    # Username or e-mail
    username = StringField(
        "Username",
        filters=[strip_text],
        validators=[DataRequired(), Length(min=3, max=120)],
    )
    password = PasswordField(
        "Password", filters=[as_text], validators=[DataRequired()]
    )


class RegistrationForm(APIForm):
    username = StringField(
        "Username",
        filters=[strip_text],
        validators=[
            DataRequired(),
            Length(
                min=3, max=80, message="Username must be between 3 and 80 characters"
            ),
            Regexp(
                r"^[a-zA-Z0-9_.-]+$",
                message="Username can only contain letters, numbers, dots, underscores, and hyphens",
            ),
        ],
    )
    email = StringField(
        "Email", filters=[strip_text], validators=[DataRequired(), Email()]
    )
    display_name = StringField(
        "Display Name",
        filters=[strip_text],
        validators=[
            Length(max=100),
            Regexp(
                r"^[\w .-]*$",
                message="Display name contains invalid characters",
            ),
        ],
    )
    password = PasswordField(
        "Password",
        filters=[as_text],
        validators=[
            DataRequired(),
            Length(min=8, message="Password must be at least 8 characters long"),
            Regexp(
                r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d).*$",
                message="Password must contain at least one uppercase letter, one lowercase letter, and one number",
            ),
        ],
    )

    def validate_username(self, username):
        user = User.query.filter_by(username=username.data).first()
        if user:
            raise ValidationError(
                "Username already exists. Please choose a different username."
            )

    def validate_email(self, email):
        user = User.query.filter_by(email=email.data.lower()).first()
        if user:
            raise ValidationError(
                "Email already registered. Please use a different email."
            )
