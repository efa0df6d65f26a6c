"""
Submitting, editing and cancelling race predictions
"""

import logging

from flask import current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload, selectinload

from app import db
from app.models import (
    League,
    LeagueMember,
    MemberStatus,
    Pilot,
    Prediction,
    PredictionItem,
    PredictionStatus,
    Race,
    RaceStatus,
)
from app.utils.cache_utils import invalidate_season_cache
from app.utils.errors import (
    Conflict,
    InvalidState,
    NotFound,
    PermissionDenied,
    ValidationError,
)
from app.utils.timezone_utils import get_utc_time

logger = logging.getLogger(__name__)

VISIBLE_STATUSES = (
    PredictionStatus.SUBMITTED,
    PredictionStatus.LOCKED,
    PredictionStatus.SCORED,
)


class PredictionService:
    """A user's predicted finishing order for a race"""

    def _get_race(self, race_id):
        race = db.session.get(Race, race_id)
        if race is None:
            raise NotFound("Race not found")
        return race

    def _require_membership(self, league_id, user_id):
        league = db.session.get(League, league_id)
        if league is None or league.is_deleted:
            raise NotFound("League not found")
        membership = LeagueMember.query.filter_by(
            league_id=league_id, user_id=user_id, status=MemberStatus.ACTIVE
        ).first()
        if membership is None:
            raise PermissionDenied("You are not a member of this league")
        return membership

    def _validate_items(self, items):
        """Return [(pilot_id, position)] or raise ValidationError"""
        if not items or not isinstance(items, list):
            raise ValidationError("A prediction needs at least one position")

        max_position = current_app.config.get("MAX_PREDICTION_POSITIONS", 22)
        pairs = []
        for index, entry in enumerate(items):
            if not isinstance(entry, dict):
                raise ValidationError(f"Item #{index + 1} must be an object")
            pilot_id = entry.get("pilot_id")
            position = entry.get("position")
            if isinstance(pilot_id, bool) or not isinstance(pilot_id, int):
                raise ValidationError(f"Item #{index + 1} has an invalid pilot_id")
            if (
                isinstance(position, bool)
                or not isinstance(position, int)
                or not 1 <= position <= max_position
            ):
                raise ValidationError(
                    f"Item #{index + 1} position must be between 1 and {max_position}"
                )
            pairs.append((pilot_id, position))

        positions = [position for _, position in pairs]
        if len(positions) != len(set(positions)):
            raise ValidationError("Each position can only be predicted once")

        pilot_ids = [pilot_id for pilot_id, _ in pairs]
        if len(pilot_ids) != len(set(pilot_ids)):
            raise ValidationError("Each pilot can only be picked once")

        found = Pilot.query.filter(
            Pilot.id.in_(pilot_ids), Pilot.is_active.is_(True)
        ).count()
        if found != len(pilot_ids):
            raise ValidationError("Some pilots do not exist")

        return pairs

    def _find(self, user_id, race_id, league_id):
        return Prediction.query.filter_by(
            user_id=user_id, race_id=race_id, league_id=league_id
        ).first()

    def submit_prediction(
        self, user_id, race_id, items, league_id=None, ip_address=None, draft=False
    ):
        """
        Create or replace the user's prediction for a race.

        The race must still accept predictions. A league prediction requires
        an active membership. Re-submitting replaces every item of the
        existing prediction as long as it has not been locked or scored.
        """
        from app.services.scoring_service import scoring_service

        race = self._get_race(race_id)
        if not race.can_accept_predictions():
            reason = (
                "deadline_passed"
                if race.status == RaceStatus.SCHEDULED
                else "race_not_scheduled"
            )
            raise InvalidState(
                "Predictions are closed for this race", details={"reason": reason}
            )

        if league_id is not None:
            self._require_membership(league_id, user_id).touch()

        pairs = self._validate_items(items)
        now = get_utc_time()
        status = PredictionStatus.DRAFT if draft else PredictionStatus.SUBMITTED

        prediction = self._find(user_id, race.id, league_id)
        if prediction is not None:
            if not (
                prediction.can_edit or prediction.status == PredictionStatus.CANCELLED
            ):
                raise InvalidState("This prediction can no longer be changed")
            prediction.items = []
            db.session.flush()
            prediction.submission_count = (prediction.submission_count or 0) + 1
            prediction.last_modified_at = now
            if prediction.status == PredictionStatus.CANCELLED:
                prediction.submitted_at = now
            created = False
        else:
            prediction = Prediction(
                user_id=user_id,
                race_id=race.id,
                league_id=league_id,
                submitted_at=now,
                last_modified_at=now,
                submission_count=1,
            )
            db.session.add(prediction)
            created = True

        prediction.status = status
        prediction.ip_address = ip_address
        prediction.total_positions = len(pairs)
        prediction.items = [
            PredictionItem(pilot_id=pilot_id, position=position)
            for pilot_id, position in pairs
        ]

        try:
            db.session.flush()
            scoring_service.mark_stats_stale([user_id])
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise Conflict("A prediction for this race already exists")

        invalidate_season_cache(race.season)
        logger.info(
            f"User {user_id} {'created' if created else 'updated'} {status} prediction "
            f"{prediction.id} for race {race.id}"
            + (f" in league {league_id}" if league_id else "")
        )
        return prediction.to_dict()

    def get_prediction(self, prediction_id, user_id):
        prediction = db.session.get(Prediction, prediction_id)
        if prediction is None:
            raise NotFound("Prediction not found")
        if prediction.user_id != user_id:
            raise PermissionDenied("You can only view your own predictions")

        data = prediction.to_dict()
        data["race"] = prediction.race.to_summary_dict()
        return data

    def get_user_prediction_for_race(self, user_id, race_id, league_id=None):
        self._get_race(race_id)
        prediction = self._find(user_id, race_id, league_id)
        if prediction is None or prediction.status == PredictionStatus.CANCELLED:
            return None
        return prediction.to_dict()

    def cancel_prediction(self, prediction_id, user_id):
        from app.services.scoring_service import scoring_service

        prediction = db.session.get(Prediction, prediction_id)
        if prediction is None:
            raise NotFound("Prediction not found")
        if prediction.user_id != user_id:
            raise PermissionDenied("You can only cancel your own predictions")
        if not prediction.can_edit:
            raise InvalidState(f"A {prediction.status} prediction cannot be cancelled")
        if not prediction.race.can_accept_predictions():
            raise InvalidState("Predictions are closed for this race")

        prediction.status = PredictionStatus.CANCELLED
        prediction.last_modified_at = get_utc_time()
        scoring_service.mark_stats_stale([user_id])
        db.session.commit()

        logger.info(f"User {user_id} cancelled prediction {prediction.id}")
        return prediction.to_dict(include_items=False)

    def list_race_predictions(self, race_id, league_id, user_id):
        """League members' predictions for a race, once the race is closed"""
        race = self._get_race(race_id)
        self._require_membership(league_id, user_id)

        if race.can_accept_predictions():
            raise InvalidState("Predictions are hidden until the deadline passes")

        predictions = (
            Prediction.query.options(
                joinedload(Prediction.user), selectinload(Prediction.items)
            )
            .filter(
                Prediction.race_id == race.id,
                Prediction.league_id == league_id,
                Prediction.status.in_(VISIBLE_STATUSES),
            )
            .order_by(Prediction.points_earned.desc(), Prediction.submitted_at.asc())
            .all()
        )

        listing = []
        for prediction in predictions:
            data = prediction.to_dict()
            data["user"] = prediction.user.to_dict() if prediction.user else None
            listing.append(data)

        return {
            "race": race.to_summary_dict(),
            "league_id": league_id,
            "predictions": listing,
        }


# Global service instance
prediction_service = PredictionService()
