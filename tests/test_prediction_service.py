import pytest
from sqlalchemy.exc import IntegrityError

from app import db
from app.models import Prediction, PredictionStatus, RaceStatus, UserStats
from app.services.dashboard_service import dashboard_service
from app.services.prediction_service import prediction_service
from app.services.race_service import race_service
from app.utils.errors import InvalidState, NotFound, PermissionDenied, ValidationError


def _items(*pilot_ids):
    return [
        {"pilot_id": pilot_id, "position": position}
        for position, pilot_id in enumerate(pilot_ids, start=1)
    ]


def test_submit_and_resubmit_replaces_items(ctx, make, pilots):
    user_id = make.user()
    race_id = make.race()

    first = prediction_service.submit_prediction(
        user_id, race_id, _items(pilots[0], pilots[1]), ip_address="10.0.0.1"
    )
    second = prediction_service.submit_prediction(
        user_id, race_id, _items(pilots[2], pilots[3], pilots[4])
    )

    assert second["id"] == first["id"]
    assert second["submission_count"] == 2
    assert second["total_positions"] == 3
    assert [item["pilot"]["id"] for item in second["items"]] == pilots[2:5]


@pytest.mark.parametrize(
    "items",
    [
        [],
        [{"pilot_id": 1, "position": 0}],
        [{"pilot_id": 1, "position": 23}],
        [{"pilot_id": 1, "position": 1}, {"pilot_id": 2, "position": 1}],
        [{"pilot_id": 1, "position": 1}, {"pilot_id": 1, "position": 2}],
        [{"pilot_id": 9999, "position": 1}],
        [{"pilot_id": True, "position": 1}],
        ["VER"],
    ],
)
def test_invalid_items_are_rejected(ctx, make, pilots, items):
    with pytest.raises(ValidationError):
        prediction_service.submit_prediction(make.user(), make.race(), items)


def test_closed_race_rejects_predictions(ctx, make, pilots):
    user_id = make.user()
    past_deadline = make.race(days_ahead=-1)
    qualifying = make.race(status=RaceStatus.QUALIFYING)

    with pytest.raises(InvalidState) as excinfo:
        prediction_service.submit_prediction(user_id, past_deadline, _items(pilots[0]))
    assert excinfo.value.details == {"reason": "deadline_passed"}

    with pytest.raises(InvalidState):
        prediction_service.submit_prediction(user_id, qualifying, _items(pilots[0]))

    with pytest.raises(NotFound):
        prediction_service.submit_prediction(user_id, 404, _items(pilots[0]))


def test_league_prediction_requires_membership(ctx, make, pilots):
    owner = make.user("owner")
    outsider = make.user("outsider")
    league_id = make.league(owner)
    race_id = make.race()

    with pytest.raises(PermissionDenied):
        prediction_service.submit_prediction(
            outsider, race_id, _items(pilots[0]), league_id=league_id
        )

    personal = prediction_service.submit_prediction(owner, race_id, _items(pilots[0]))
    league = prediction_service.submit_prediction(
        owner, race_id, _items(pilots[1]), league_id=league_id
    )
    assert personal["id"] != league["id"]
    assert league["league_id"] == league_id


def test_cancel_then_resubmit(ctx, make, pilots):
    user_id = make.user()
    race_id = make.race()
    prediction = prediction_service.submit_prediction(user_id, race_id, _items(pilots[0]))

    cancelled = prediction_service.cancel_prediction(prediction["id"], user_id)
    assert cancelled["status"] == PredictionStatus.CANCELLED
    assert prediction_service.get_user_prediction_for_race(user_id, race_id) is None

    again = prediction_service.submit_prediction(user_id, race_id, _items(pilots[1]))
    assert again["id"] == prediction["id"]
    assert again["status"] == PredictionStatus.SUBMITTED


def test_drafts_are_editable_and_not_scored(ctx, make, pilots):
    user_id = make.user()
    race_id = make.race()
    draft = prediction_service.submit_prediction(
        user_id, race_id, _items(pilots[0]), draft=True
    )
    assert draft["status"] == PredictionStatus.DRAFT
    assert draft["can_edit"]

    race_service.save_race_results(race_id, _items(pilots[0]))

    stored = prediction_service.get_prediction(draft["id"], user_id)
    assert stored["status"] == PredictionStatus.DRAFT
    assert stored["points_earned"] == 0


def test_only_owner_can_read_or_cancel(ctx, make, pilots):
    owner = make.user("owner")
    other = make.user("other")
    prediction = prediction_service.submit_prediction(owner, make.race(), _items(pilots[0]))

    with pytest.raises(PermissionDenied):
        prediction_service.get_prediction(prediction["id"], other)
    with pytest.raises(PermissionDenied):
        prediction_service.cancel_prediction(prediction["id"], other)


def test_scored_prediction_cannot_be_cancelled(ctx, make, pilots):
    user_id = make.user()
    race_id = make.race()
    prediction = prediction_service.submit_prediction(user_id, race_id, _items(pilots[0]))
    race_service.save_race_results(race_id, _items(pilots[0]))

    with pytest.raises(InvalidState):
        prediction_service.cancel_prediction(prediction["id"], user_id)


def test_league_predictions_hidden_until_race_closes(ctx, make, pilots):
    owner = make.user("owner")
    guest = make.user("guest")
    league_id = make.league(owner)
    make.join(league_id, guest)
    race_id = make.race()

    prediction_service.submit_prediction(
        owner, race_id, _items(pilots[0], pilots[1]), league_id=league_id
    )
    prediction_service.submit_prediction(
        guest, race_id, _items(pilots[1], pilots[0]), league_id=league_id
    )

    with pytest.raises(InvalidState):
        prediction_service.list_race_predictions(race_id, league_id, guest)

    race_service.save_race_results(race_id, _items(pilots[0], pilots[1]))
    listing = prediction_service.list_race_predictions(race_id, league_id, guest)

    assert [p["user"]["id"] for p in listing["predictions"]] == [owner, guest]
    assert listing["predictions"][0]["is_perfect"]

    with pytest.raises(PermissionDenied):
        prediction_service.list_race_predictions(race_id, league_id, make.user("outsider"))


def test_submitting_marks_cached_stats_stale(ctx, make, pilots):
    user_id = make.user()
    dashboard_service.get_user_stats(user_id)
    assert UserStats.query.filter_by(user_id=user_id).one().last_calculated_at is not None

    prediction_service.submit_prediction(user_id, make.race(), _items(pilots[0]))

    assert UserStats.query.filter_by(user_id=user_id).one().last_calculated_at is None


def test_database_allows_one_personal_prediction_per_race(ctx, make):
    user_id = make.user()
    race_id = make.race()
    league_id = make.league(user_id)

    db.session.add_all(
        [
            Prediction(user_id=user_id, race_id=race_id),
            Prediction(user_id=user_id, race_id=race_id, league_id=league_id),
        ]
    )
    db.session.commit()

    db.session.add(Prediction(user_id=user_id, race_id=race_id))
    with pytest.raises(IntegrityError):
        db.session.commit()
    db.session.rollback()
