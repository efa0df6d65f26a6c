from flask import current_app, request
from flask_login import current_user, login_required

from app.routes.dashboard import bp
from app.services.dashboard_service import dashboard_service
from app.utils.responses import success_response


@bp.route("")
@login_required
def dashboard():
    return success_response(dashboard_service.get_full_dashboard(current_user.id))


@bp.route("/stats")
@login_required
def stats():
    return success_response(dashboard_service.get_user_stats(current_user.id))


@bp.route("/predictions")
@login_required
def recent_predictions():
    default = current_app.config.get("RECENT_PREDICTIONS_LIMIT", 5)
    limit = max(min(request.args.get("limit", default, type=int), 50), 1)
    return success_response(
        dashboard_service.get_recent_predictions(current_user.id, limit)
    )


@bp.route("/pilot-stats")
@login_required
def pilot_stats():
    return success_response(dashboard_service.get_pilot_stats(current_user.id))
