from flask import Blueprint

bp = Blueprint("races", __name__)

from app.routes.races import routes  # noqa: E402, F401
