from flask import request
from flask_login import current_user, login_required

from app.forms.leagues import (
    JoinLeagueForm,
    LeagueForm,
    LeagueUpdateForm,
    MemberRoleForm,
)
from app.routes.leagues import bp
from app.services.league_service import league_service
from app.utils.responses import optional_user_id, success_response


@bp.route("/search")
def search_leagues():
    limit = max(min(request.args.get("limit", 20, type=int), 100), 1)
    offset = max(request.args.get("offset", 0, type=int), 0)
    return success_response(
        league_service.search_public_leagues(
            search=request.args.get("q") or request.args.get("search"),
            season=request.args.get("season", type=int),
            limit=limit,
            offset=offset,
        )
    )


@bp.route("/user")
@login_required
def user_leagues():
    season = request.args.get("season", type=int)
    return success_response(league_service.get_user_leagues(current_user.id, season=season))


@bp.route("/join", methods=["POST"])
@login_required
def join_by_code():
    form = JoinLeagueForm.from_json().validate_or_raise()
    return success_response(
        league_service.join_league_by_code(current_user.id, form.invite_code.data), 201
    )


@bp.route("/slug/<slug>")
def league_by_slug(slug):
    return success_response(league_service.get_league_by_slug(slug, optional_user_id()))


@bp.route("", methods=["POST"])
@login_required
def create_league():
    form = LeagueForm.from_json().validate_or_raise()
    return success_response(
        league_service.create_league(form.provided_data(), current_user.id), 201
    )


@bp.route("/<int:league_id>")
def league_detail(league_id):
    return success_response(league_service.get_league_by_id(league_id, optional_user_id()))


@bp.route("/<int:league_id>", methods=["PUT"])
@login_required
def update_league(league_id):
    form = LeagueUpdateForm.from_json().validate_or_raise()
    return success_response(
        league_service.update_league(league_id, form.provided_data(), current_user.id)
    )


@bp.route("/<int:league_id>", methods=["DELETE"])
@login_required
def delete_league(league_id):
    return success_response(league_service.delete_league(league_id, current_user.id))


@bp.route("/<int:league_id>/join", methods=["POST"])
@login_required
def join_public(league_id):
    return success_response(
        league_service.join_public_league(current_user.id, league_id), 201
    )


@bp.route("/<int:league_id>/leave", methods=["POST"])
@login_required
def leave(league_id):
    return success_response(league_service.leave_league(current_user.id, league_id))


@bp.route("/<int:league_id>/ranking")
def ranking(league_id):
    limit = request.args.get("limit", type=int)
    offset = max(request.args.get("offset", 0, type=int), 0)
    return success_response(
        league_service.get_league_ranking(
            league_id, limit=limit if limit and limit > 0 else None, offset=offset
        )
    )


@bp.route("/<int:league_id>/stats")
def stats(league_id):
    return success_response(league_service.get_league_stats(league_id))


@bp.route("/<int:league_id>/regenerate-code", methods=["POST"])
@login_required
def regenerate_code(league_id):
    return success_response(
        league_service.regenerate_invite_code(league_id, current_user.id)
    )


@bp.route("/<int:league_id>/members/<int:user_id>/role", methods=["PUT"])
@login_required
def change_role(league_id, user_id):
    form = MemberRoleForm.from_json().validate_or_raise()
    return success_response(
        league_service.change_member_role(
            league_id, user_id, form.role.data, current_user.id
        )
    )


@bp.route("/<int:league_id>/members/<int:user_id>/ban", methods=["POST"])
@login_required
def ban(league_id, user_id):
    return success_response(league_service.ban_member(league_id, user_id, current_user.id))
