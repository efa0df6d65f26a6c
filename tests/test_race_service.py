from datetime import timedelta

import pytest

from app import db
from app.models import (
    Prediction,
    PredictionItem,
    PredictionStatus,
    Race,
    RaceResult,
    RaceStatus,
)
from app.services.prediction_service import prediction_service
from app.services.race_service import race_service
from app.utils.errors import Conflict, InvalidState, NotFound, ValidationError
from app.utils.timezone_utils import ensure_utc, get_utc_time


def _results(pilot_ids):
    return [
        {"pilot_id": pilot_id, "position": position}
        for position, pilot_id in enumerate(pilot_ids, start=1)
    ]


def test_full_lifecycle_locks_submitted_predictions(ctx, make, pilots):
    user_id = make.user()
    race_id = make.race()
    prediction_service.submit_prediction(
        user_id, race_id, [{"pilot_id": pilots[0], "position": 1}]
    )

    race_service.update_race_status(race_id, RaceStatus.QUALIFYING)
    race_service.update_race_status(race_id, RaceStatus.IN_PROGRESS)
    race = race_service.update_race_status(race_id, RaceStatus.COMPLETED)

    assert race["status"] == RaceStatus.COMPLETED
    prediction = Prediction.query.filter_by(race_id=race_id).one()
    assert prediction.status == PredictionStatus.LOCKED

    with pytest.raises(InvalidState):
        prediction_service.submit_prediction(
            user_id, race_id, [{"pilot_id": pilots[1], "position": 1}]
        )


def test_completed_race_cannot_go_back(ctx, make):
    race_id = make.race(status=RaceStatus.IN_PROGRESS)
    race_service.update_race_status(race_id, RaceStatus.COMPLETED)

    with pytest.raises(InvalidState):
        race_service.update_race_status(race_id, RaceStatus.IN_PROGRESS)


def test_unknown_status_is_a_validation_error(ctx, make):
    race_id = make.race()

    with pytest.raises(ValidationError):
        race_service.update_race_status(race_id, "finished")


def test_cancelled_race_can_be_rescheduled(ctx, make):
    race_id = make.race()
    race_service.update_race_status(race_id, RaceStatus.CANCELLED)

    assert race_service.update_race_status(race_id, RaceStatus.SCHEDULED)["status"] == (
        RaceStatus.SCHEDULED
    )


def test_duplicate_positions_keep_previous_results(ctx, make, pilots):
    race_id = make.race()
    race_service.save_race_results(race_id, _results(pilots[:3]))

    bad_batch = [
        {"pilot_id": pilots[0], "position": 1},
        {"pilot_id": pilots[1], "position": 1},
    ]
    with pytest.raises(ValidationError):
        race_service.save_race_results(race_id, bad_batch)

    stored = RaceResult.query.filter_by(race_id=race_id).order_by(RaceResult.position).all()
    assert [(r.pilot_id, r.position) for r in stored] == [
        (pilots[0], 1),
        (pilots[1], 2),
        (pilots[2], 3),
    ]


def test_duplicate_pilots_and_unknown_pilots_are_rejected(ctx, make, pilots):
    race_id = make.race()

    with pytest.raises(ValidationError):
        race_service.save_race_results(
            race_id,
            [
                {"pilot_id": pilots[0], "position": 1},
                {"pilot_id": pilots[0], "position": 2},
            ],
        )
    with pytest.raises(ValidationError):
        race_service.save_race_results(race_id, [{"pilot_id": 9999, "position": 1}])

    assert not race_service.has_results(race_id)
    assert db.session.get(Race, race_id).status == RaceStatus.SCHEDULED


def test_saving_results_completes_and_scores(ctx, make, pilots):
    user_id = make.user()
    race_id = make.race()
    prediction_service.submit_prediction(
        user_id,
        race_id,
        [
            {"pilot_id": pilots[0], "position": 1},
            {"pilot_id": pilots[1], "position": 2},
            {"pilot_id": pilots[2], "position": 3},
        ],
    )

    race = race_service.save_race_results(
        race_id, _results([pilots[0], pilots[2], pilots[1]])
    )

    assert race["status"] == RaceStatus.COMPLETED
    assert race["has_results"]
    assert [r["position"] for r in race["results"]] == [1, 2, 3]

    prediction = Prediction.query.filter_by(race_id=race_id).one()
    assert prediction.status == PredictionStatus.SCORED
    assert prediction.points_earned == 20
    assert prediction.near_misses == 2


def test_unclassified_pilots_score_nothing(ctx, make, pilots):
    user_id = make.user()
    race_id = make.race()
    prediction_service.submit_prediction(user_id, race_id, _results(pilots[:3]))

    results = _results(pilots[:3])
    results[2]["status"] = "dnf"
    race_service.save_race_results(race_id, results)

    dnf_item = PredictionItem.query.filter_by(pilot_id=pilots[2]).one()
    assert dnf_item.scoring_reason == "not_classified"
    assert dnf_item.points_awarded == 0
    assert not dnf_item.is_correct

    prediction = Prediction.query.filter_by(race_id=race_id).one()
    assert prediction.correct_positions == 2
    assert prediction.bonus_points == 0
    assert prediction.points_earned == 20


def test_replacing_results_rescores(ctx, make, pilots):
    user_id = make.user()
    race_id = make.race()
    prediction_service.submit_prediction(
        user_id, race_id, [{"pilot_id": pilots[0], "position": 1}]
    )

    race_service.save_race_results(race_id, _results([pilots[1], pilots[0]]))
    assert Prediction.query.filter_by(race_id=race_id).one().points_earned == 5

    race_service.save_race_results(race_id, _results([pilots[0], pilots[1]]))
    assert RaceResult.query.filter_by(race_id=race_id).count() == 2
    assert Prediction.query.filter_by(race_id=race_id).one().points_earned == 10 + 25


def test_deadline_falls_back_to_qualifying_then_race(ctx, make):
    race_id = make.race(days_ahead=3)
    race = db.session.get(Race, race_id)
    assert race.effective_deadline == ensure_utc(race.race_date)

    race.qualifying_date = get_utc_time() - timedelta(hours=1)
    db.session.commit()

    check = race_service.can_predict(race_id)
    assert not check["can_predict"]
    assert check["reason"] == "deadline_passed"


def test_can_predict_reasons(ctx, make):
    open_id = make.race()
    qualifying_id = make.race(status=RaceStatus.QUALIFYING)

    assert race_service.can_predict(open_id)["can_predict"]
    assert race_service.can_predict(qualifying_id)["reason"] == "race_not_scheduled"
    assert race_service.can_predict(12345)["reason"] == "race_not_found"


def test_create_race_defaults_season_and_rejects_duplicate_round(ctx):
    data = {
        "name": "Monaco Grand Prix",
        "circuit": "Circuit de Monaco",
        "country": "Monaco",
        "round": 8,
        "race_date": "2027-05-30T13:00:00Z",
    }
    race = race_service.create_race(data)

    assert race["season"] == 2027
    assert race["status"] == RaceStatus.SCHEDULED
    with pytest.raises(Conflict):
        race_service.create_race(dict(data, name="Another"))


def test_create_race_requires_fields(ctx):
    with pytest.raises(ValidationError) as excinfo:
        race_service.create_race({"name": "No date", "circuit": "X", "country": "Y"})

    assert set(excinfo.value.details) == {"round", "race_date"}


def test_completed_race_only_accepts_cosmetic_updates(ctx, make):
    race_id = make.race(status=RaceStatus.COMPLETED)

    updated = race_service.update_race(race_id, {"official_name": "Formula 1 GP"})
    assert updated["official_name"] == "Formula 1 GP"

    with pytest.raises(InvalidState):
        race_service.update_race(race_id, {"laps": 50})


def test_season_views(ctx, make):
    make.race(season=2030)
    make.race(season=2030, status=RaceStatus.COMPLETED)

    stats = race_service.get_season_stats(2030)
    assert stats["total_races"] == 2
    assert stats["completed_races"] == 1
    assert stats["progress_percentage"] == 50

    calendar = race_service.get_season_calendar(2030)
    assert sum(len(month["races"]) for month in calendar) == 2

    with pytest.raises(ValidationError):
        race_service.get_races_by_season(2030, status="bogus")


def test_missing_race(ctx):
    with pytest.raises(NotFound):
        race_service.get_race_by_id(404)
