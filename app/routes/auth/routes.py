import logging

from flask import g, jsonify, request
from flask_login import current_user, login_required
from sqlalchemy import func

from app import db, limiter, login_manager
from app.forms.auth import LoginForm, RegistrationForm
from app.models import User
from app.routes.auth import bp
from app.utils.responses import success_response

logger = logging.getLogger(__name__)


def _unauthorized(message):
    return (
        jsonify(
            {"success": False, "error": {"kind": "unauthorized", "message": message}}
        ),
        401,
    )


@login_manager.request_loader
def load_user_from_request(req):
    """Authenticate API calls with an ``Authorization: Bearer <token>`` header"""
    header = req.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None

    user = User.verify_auth_token(token.strip())
    if user is not None:
        g.auth_user_id = user.id
    return user


@login_manager.unauthorized_handler
def unauthorized():
    return _unauthorized("Authentication required")


def _token_payload(user):
    return {
        "token": user.generate_auth_token(),
        "token_type": "Bearer",
        "user": user.to_dict(include_email=True),
    }


@bp.route("/register", methods=["POST"])
@limiter.limit("5 per hour")
def register():
    form = RegistrationForm.from_json().validate_or_raise()

    # Form validators already checked for duplicates
    user = User(
        username=form.username.data,
        email=form.email.data.lower(),
    )
    user.set_display_name(form.display_name.data)
    user.set_password(form.password.data)

    db.session.add(user)
    db.session.commit()

    logger.info(f"New user registered: {user.username} (id {user.id})")
    return success_response(_token_payload(user), 201)


@bp.route("/login", methods=["POST"])
@limiter.limit("10 per minute")
def login():
    form = LoginForm.from_json().validate_or_raise()

    identifier = form.username.data
    user = User.query.filter(
        (User.username == identifier) | (func.lower(User.email) == identifier.lower())
    ).first()

    if user is None or not user.check_password(form.password.data):
        logger.warning(
            f"Failed login for '{identifier}' from {request.remote_addr}"
        )
        return _unauthorized("Invalid username or password")

    if not user.is_active:
        return _unauthorized("Your account has been deactivated")

    user.update_last_login()
    logger.info(f"User {user.username} logged in")
    return success_response(_token_payload(user))


@bp.route("/me")
@login_required
def me():
    return success_response(current_user.to_dict(include_email=True))
