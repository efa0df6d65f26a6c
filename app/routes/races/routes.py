import logging

from flask import request
from flask_login import current_user, login_required

from app.forms.races import RaceForm, RaceStatusForm, RaceUpdateForm
from app.routes.races import bp
from app.services.race_service import race_service
from app.utils.errors import PermissionDenied, ValidationError
from app.utils.responses import optional_user_id, success_response
from app.utils.timezone_utils import get_utc_time

logger = logging.getLogger(__name__)


def _require_site_admin():
    if not current_user.is_admin:
        logger.warning(f"User {current_user.id} attempted a race admin action")
        raise PermissionDenied("Admin access required")


def _paging(default_limit):
    limit = request.args.get("limit", default_limit, type=int)
    offset = request.args.get("offset", 0, type=int)
    return max(min(limit, 100), 1), max(offset, 0)


@bp.route("/next")
def next_race():
    # data is null once the calendar is exhausted
    return success_response(race_service.get_next_race(optional_user_id()))


@bp.route("/upcoming")
def upcoming_races():
    limit, _ = _paging(5)
    return success_response(race_service.get_upcoming_races(limit, optional_user_id()))


@bp.route("/past")
def past_races():
    limit, offset = _paging(10)
    season = request.args.get("season", type=int)
    return success_response(race_service.get_past_races(limit, offset, season))


@bp.route("/season/<int:season>/stats")
def season_stats(season):
    return success_response(race_service.get_season_stats(season))


@bp.route("/season/<int:season>/calendar")
def season_calendar(season):
    return success_response(race_service.get_season_calendar(season))


@bp.route("")
def list_races():
    season = request.args.get("season", get_utc_time().year, type=int)
    status = request.args.get("status") or None
    return success_response(
        race_service.get_races_by_season(season, status, optional_user_id())
    )


@bp.route("/<int:race_id>")
def race_detail(race_id):
    return success_response(race_service.get_race_by_id(race_id, optional_user_id()))


@bp.route("/<int:race_id>/results")
def race_results(race_id):
    return success_response(race_service.get_race_with_results(race_id))


@bp.route("/<int:race_id>/can-predict")
def can_predict(race_id):
    return success_response(race_service.can_predict(race_id))


# Admin


@bp.route("", methods=["POST"])
@login_required
def create_race():
    _require_site_admin()
    form = RaceForm.from_json().validate_or_raise()
    race = race_service.create_race(form.provided_data())
    return success_response(race, 201)


@bp.route("/<int:race_id>", methods=["PUT"])
@login_required
def update_race(race_id):
    _require_site_admin()
    form = RaceUpdateForm.from_json().validate_or_raise()
    return success_response(race_service.update_race(race_id, form.provided_data()))


@bp.route("/<int:race_id>/status", methods=["PATCH"])
@login_required
def update_race_status(race_id):
    _require_site_admin()
    form = RaceStatusForm.from_json().validate_or_raise()
    return success_response(race_service.update_race_status(race_id, form.status.data))


@bp.route("/<int:race_id>/results", methods=["POST"])
@login_required
def save_results(race_id):
    _require_site_admin()
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict) or "results" not in payload:
        raise ValidationError("results is required")

    race = race_service.save_race_results(race_id, payload["results"])
    logger.info(f"Admin {current_user.id} saved results for race {race_id}")
    return success_response(race)
