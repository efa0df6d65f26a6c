from flask import Blueprint

bp = Blueprint("leagues", __name__)

from app.routes.leagues import routes  # noqa: E402, F401
