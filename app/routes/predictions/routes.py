from flask import request
from flask_login import current_user, login_required

from app import get_real_ip
from app.forms.predictions import PredictionForm
from app.routes.predictions import bp
from app.services.prediction_service import prediction_service
from app.utils.responses import success_response


@bp.route("/races/<int:race_id>", methods=["POST"])
@login_required
def submit(race_id):
    form = PredictionForm.from_json().validate_or_raise()
    prediction = prediction_service.submit_prediction(
        current_user.id,
        race_id,
        form.items,
        league_id=form.league_id.data,
        ip_address=get_real_ip(),
        draft=form.draft.data,
    )
    return success_response(prediction, 201)


@bp.route("/races/<int:race_id>/me")
@login_required
def my_prediction(race_id):
    league_id = request.args.get("league_id", type=int)
    return success_response(
        prediction_service.get_user_prediction_for_race(
            current_user.id, race_id, league_id
        )
    )


@bp.route("/<int:prediction_id>")
@login_required
def prediction_detail(prediction_id):
    return success_response(
        prediction_service.get_prediction(prediction_id, current_user.id)
    )


@bp.route("/<int:prediction_id>/cancel", methods=["POST"])
@login_required
def cancel(prediction_id):
    return success_response(
        prediction_service.cancel_prediction(prediction_id, current_user.id)
    )


@bp.route("/races/<int:race_id>/leagues/<int:league_id>")
@login_required
def league_predictions(race_id, league_id):
    return success_response(
        prediction_service.list_race_predictions(race_id, league_id, current_user.id)
    )
