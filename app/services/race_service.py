"""
Race lifecycle and official results

Handles the race calendar, status transitions, prediction deadlines and
recording official results. Saving results re-scores the race in the same
transaction through the ScoringService.
"""

import logging

from flask import current_app
from sqlalchemy.exc import IntegrityError

from app import db
from app.models import (
    FINISH_STATUSES,
    Pilot,
    Prediction,
    PredictionStatus,
    Race,
    RaceResult,
    RaceStatus,
)
from app.utils.cache_utils import cached_season_query, invalidate_season_cache
from app.utils.errors import Conflict, InvalidState, NotFound, ValidationError
from app.utils.timezone_utils import get_utc_time, isoformat, month_key, parse_datetime

logger = logging.getLogger(__name__)

REQUIRED_RACE_FIELDS = ("name", "circuit", "country", "round", "race_date")

DATE_FIELDS = (
    "race_date",
    "qualifying_date",
    "sprint_date",
    "fp1_date",
    "fp2_date",
    "fp3_date",
    "prediction_deadline",
)

UPDATABLE_FIELDS = (
    "name",
    "official_name",
    "circuit",
    "country",
    "city",
    "flag_url",
    "circuit_image_url",
    "round",
    "season",
    "laps",
    "circuit_length",
    "timezone",
    "is_sprint",
) + DATE_FIELDS

# The only fields that may still change once a race is completed
COMPLETED_EDITABLE_FIELDS = ("official_name", "circuit_image_url", "flag_url")

ACTIVE_PREDICTION_STATUSES = (
    PredictionStatus.SUBMITTED,
    PredictionStatus.LOCKED,
    PredictionStatus.SCORED,
)


class RaceService:
    """Race calendar, lifecycle and results"""

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def get_race_or_404(self, race_id):
        race = db.session.get(Race, race_id)
        if race is None:
            raise NotFound("Race not found")
        return race

    def _user_predictions(self, user_id, race_ids):
        """Map race_id -> the user's prediction, preferring the personal one"""
        if not user_id or not race_ids:
            return {}

        predictions = Prediction.query.filter(
            Prediction.user_id == user_id,
            Prediction.race_id.in_(race_ids),
            Prediction.status.in_(ACTIVE_PREDICTION_STATUSES),
        ).all()

        by_race = {}
        for prediction in predictions:
            current = by_race.get(prediction.race_id)
            if current is None or (
                prediction.league_id is None and current.league_id is not None
            ):
                by_race[prediction.race_id] = prediction
        return by_race

    def _with_prediction_info(self, race, prediction, now):
        return {
            "can_predict": race.can_accept_predictions(now),
            "deadline": isoformat(race.effective_deadline),
            "has_prediction": prediction is not None,
            "prediction_id": prediction.id if prediction else None,
        }

    @staticmethod
    def _clean_text(value):
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    def _coerce_fields(self, data, fields):
        """Trim strings and parse date fields present in ``data``"""
        values = {}
        for field in fields:
            if field not in data:
                continue
            value = data[field]
            if field in DATE_FIELDS:
                try:
                    value = parse_datetime(value)
                except (TypeError, ValueError):
                    raise ValidationError(
                        f"Invalid date for {field}", details={field: ["Invalid date"]}
                    )
            else:
                value = self._clean_text(value)
            values[field] = value
        return values

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_next_race(self, user_id=None):
        """Earliest race that has not started, with the caller's prediction state"""
        now = get_utc_time()
        race = Race.get_next_race(now)
        if race is None:
            return None

        prediction = self._user_predictions(user_id, [race.id]).get(race.id)
        remaining = race.time_to_deadline(now)

        return race.to_dict(
            **self._with_prediction_info(race, prediction, now),
            time_to_deadline={
                "hours": remaining["hours"],
                "minutes": remaining["minutes"],
                "is_past_deadline": remaining["is_past_deadline"],
            },
        )

    def get_race_by_id(self, race_id, user_id=None):
        race = self.get_race_or_404(race_id)
        prediction = self._user_predictions(user_id, [race.id]).get(race.id)
        return race.to_dict(
            **self._with_prediction_info(race, prediction, get_utc_time())
        )

    def get_race_with_results(self, race_id):
        race = self.get_race_or_404(race_id)
        results = self.get_race_results(race_id)
        return race.to_dict(results=results, has_results=bool(results))

    def get_races_by_season(self, season, status=None, user_id=None):
        """All races of a season ordered by round"""
        if status is not None and status not in RaceStatus.ALL:
            raise ValidationError(f"Invalid status: {status}")

        query = Race.query.filter_by(season=season)
        if status:
            query = query.filter_by(status=status)
        races = query.order_by(Race.round.asc()).all()

        now = get_utc_time()
        predictions = self._user_predictions(user_id, [race.id for race in races])

        calendar = []
        for race in races:
            prediction = predictions.get(race.id)
            data = race.to_summary_dict()
            data["can_predict"] = race.can_accept_predictions(now)
            data["has_prediction"] = prediction is not None
            data["prediction"] = (
                {
                    "id": prediction.id,
                    "status": prediction.status,
                    "points_earned": prediction.points_earned or 0,
                }
                if prediction
                else None
            )
            calendar.append(data)
        return calendar

    def get_past_races(self, limit=10, offset=0, season=None):
        """Completed races newest first, paginated"""
        query = Race.query.filter_by(status=RaceStatus.COMPLETED)
        if season:
            query = query.filter_by(season=season)

        total = query.count()
        races = (
            query.order_by(Race.race_date.desc()).offset(offset).limit(limit).all()
        )

        return {
            "races": [race.to_summary_dict() for race in races],
            "pagination": {
                "total": total,
                "limit": limit,
                "offset": offset,
                "has_more": offset + limit < total,
            },
        }

    def get_upcoming_races(self, limit=5, user_id=None):
        now = get_utc_time()
        races = (
            Race.query.filter(
                Race.race_date > now, Race.status.in_(RaceStatus.UPCOMING)
            )
            .order_by(Race.race_date.asc())
            .limit(limit)
            .all()
        )

        predictions = self._user_predictions(user_id, [race.id for race in races])
        upcoming = []
        for race in races:
            data = race.to_summary_dict()
            data.update(self._with_prediction_info(race, predictions.get(race.id), now))
            upcoming.append(data)
        return upcoming

    def can_predict(self, race_id):
        """Explain whether predictions are currently accepted for a race"""
        race = db.session.get(Race, race_id)
        if race is None:
            return {
                "can_predict": False,
                "reason": "race_not_found",
                "message": "Race not found",
            }

        if race.status != RaceStatus.SCHEDULED:
            return {
                "can_predict": False,
                "reason": "race_not_scheduled",
                "message": f"Race is {race.status}",
                "status": race.status,
            }

        remaining = race.time_to_deadline()
        if remaining["is_past_deadline"]:
            return {
                "can_predict": False,
                "reason": "deadline_passed",
                "message": "The prediction deadline has passed",
                "deadline": isoformat(race.effective_deadline),
            }

        return {
            "can_predict": True,
            "reason": "ok",
            "message": "Predictions are open",
            "deadline": isoformat(race.effective_deadline),
            "time_remaining": {
                "hours": remaining["hours"],
                "minutes": remaining["minutes"],
                "total_minutes": remaining["total_minutes"],
            },
        }

    def has_results(self, race_id):
        return RaceResult.query.filter_by(race_id=race_id).count() > 0

    # ------------------------------------------------------------------
    # Admin: race management
    # ------------------------------------------------------------------

    def create_race(self, data):
        """Create a race in the scheduled state"""
        missing = [
            field
            for field in REQUIRED_RACE_FIELDS
            if data.get(field) is None or data.get(field) == ""
        ]
        if missing:
            raise ValidationError(
                f"Missing required fields: {', '.join(missing)}",
                details={field: ["This field is required."] for field in missing},
            )

        values = self._coerce_fields(data, UPDATABLE_FIELDS)
        season = values.get("season") or values["race_date"].year
        values["season"] = season
        values["is_sprint"] = bool(values.get("is_sprint"))

        if Race.query.filter_by(season=season, round=values["round"]).first():
            raise Conflict(
                f"Round {values['round']} of season {season} already exists"
            )

        race = Race(status=RaceStatus.SCHEDULED, **values)
        db.session.add(race)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise Conflict(
                f"Round {values['round']} of season {season} already exists"
            )

        invalidate_season_cache(season)
        logger.info(f"Created race {race.id}: {race.name} ({season} R{race.round})")
        return race.to_dict()

    def update_race(self, race_id, data):
        race = self.get_race_or_404(race_id)

        if race.is_completed:
            blocked = sorted(set(data) - set(COMPLETED_EDITABLE_FIELDS))
            if blocked:
                raise InvalidState(
                    "A completed race can only change its official name and images",
                    details={"fields": blocked},
                )

        values = self._coerce_fields(data, UPDATABLE_FIELDS)
        if "race_date" in values and values["race_date"] is None:
            raise ValidationError("race_date cannot be empty")
        for field in ("name", "circuit", "country", "round", "season", "is_sprint"):
            if field in values and values[field] is None:
                raise ValidationError(f"{field} cannot be empty")

        old_season = race.season
        season = values.get("season", race.season)
        round_number = values.get("round", race.round)
        if (season, round_number) != (race.season, race.round):
            clash = Race.query.filter(
                Race.season == season, Race.round == round_number, Race.id != race.id
            ).first()
            if clash:
                raise Conflict(f"Round {round_number} of season {season} already exists")

        for field, value in values.items():
            setattr(race, field, value)

        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise Conflict(f"Round {round_number} of season {season} already exists")

        invalidate_season_cache(old_season)
        if race.season != old_season:
            invalidate_season_cache(race.season)
        logger.info(f"Updated race {race.id}: {', '.join(sorted(values))}")
        return race.to_dict()

    def update_race_status(self, race_id, new_status):
        """Move a race through its lifecycle"""
        if new_status not in RaceStatus.ALL:
            raise ValidationError(
                f"Invalid status. Must be one of: {', '.join(RaceStatus.ALL)}"
            )

        race = self.get_race_or_404(race_id)

        if not race.can_transition_to(new_status):
            raise InvalidState(f'Cannot change status from "{race.status}" to "{new_status}"')

        previous = race.status
        race.status = new_status
        locked = 0
        if new_status == RaceStatus.COMPLETED:
            locked = self._lock_predictions(race.id)

        db.session.commit()

        invalidate_season_cache(race.season)
        logger.info(
            f"Race {race.id} status {previous} -> {new_status}"
            + (f" ({locked} predictions locked)" if locked else "")
        )
        return race.to_dict()

    def _lock_predictions(self, race_id):
        return Prediction.query.filter_by(
            race_id=race_id, status=PredictionStatus.SUBMITTED
        ).update({"status": PredictionStatus.LOCKED})

    # ------------------------------------------------------------------
    # Admin: results
    # ------------------------------------------------------------------

    def _validate_results(self, results):
        """Normalize a result batch, raising ValidationError on the first problem"""
        if not results or not isinstance(results, list):
            raise ValidationError("At least one result is required")

        max_position = current_app.config.get("MAX_PREDICTION_POSITIONS", 22)
        rows = []
        for index, entry in enumerate(results):
            if not isinstance(entry, dict):
                raise ValidationError(f"Result #{index + 1} must be an object")

            pilot_id = entry.get("pilot_id")
            position = entry.get("position")
            if not _is_int(pilot_id):
                raise ValidationError(f"Result #{index + 1} has an invalid pilot_id")
            if not _is_int(position) or not 1 <= position <= max_position:
                raise ValidationError(
                    f"Result #{index + 1} position must be between 1 and {max_position}"
                )

            status = entry.get("status") or "finished"
            if status not in FINISH_STATUSES:
                raise ValidationError(
                    f"Result #{index + 1} status must be one of: {', '.join(FINISH_STATUSES)}"
                )

            points = entry.get("points") or 0
            if isinstance(points, bool) or not isinstance(points, (int, float)):
                raise ValidationError(f"Result #{index + 1} has invalid points")

            rows.append(
                {
                    "pilot_id": pilot_id,
                    "position": position,
                    "points": float(points),
                    "status": status,
                    "time_or_gap": self._clean_text(entry.get("time_or_gap")),
                    "fastest_lap": bool(entry.get("fastest_lap")),
                }
            )

        positions = [row["position"] for row in rows]
        if len(positions) != len(set(positions)):
            raise ValidationError("Positions must be unique")

        pilot_ids = [row["pilot_id"] for row in rows]
        if len(pilot_ids) != len(set(pilot_ids)):
            raise ValidationError("Pilots must be unique")

        found = Pilot.query.filter(Pilot.id.in_(pilot_ids)).count()
        if found != len(pilot_ids):
            raise ValidationError("Some pilots do not exist")

        return rows

    def save_race_results(self, race_id, results, policy=None):
        """
        Replace the official results of a race and re-score it.

        Everything happens in one transaction: the previous results are
        deleted, the new batch inserted, the race forced to completed (locking
        submitted predictions) and every prediction re-scored. Any failure
        leaves the race exactly as it was.
        """
        from app.services.scoring_service import scoring_service

        race = self.get_race_or_404(race_id)
        rows = self._validate_results(results)

        try:
            RaceResult.query.filter_by(race_id=race.id).delete()
            db.session.add_all(RaceResult(race_id=race.id, **row) for row in rows)

            if race.status != RaceStatus.COMPLETED:
                logger.info(f"Race {race.id} forced from {race.status} to completed")
                race.status = RaceStatus.COMPLETED
            self._lock_predictions(race.id)
            db.session.flush()

            summary = scoring_service.score_race(race.id, policy=policy, commit=False)
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise Conflict("Result batch conflicts with existing data")
        except Exception:
            db.session.rollback()
            raise

        invalidate_season_cache(race.season)
        logger.info(
            f"Saved {len(rows)} results for race {race.id}; "
            f"scored {summary['predictions_scored']} predictions"
        )
        return self.get_race_with_results(race.id)

    def get_race_results(self, race_id):
        results = (
            RaceResult.query.filter_by(race_id=race_id)
            .order_by(RaceResult.position.asc())
            .all()
        )
        return [result.to_dict() for result in results]

    # ------------------------------------------------------------------
    # Season views
    # ------------------------------------------------------------------

    @cached_season_query("season_stats_{season}")
    def get_season_stats(self, season):
        races = Race.query.filter_by(season=season).all()

        total_races = len(races)
        completed = sum(1 for race in races if race.status == RaceStatus.COMPLETED)
        upcoming = sum(1 for race in races if race.status == RaceStatus.SCHEDULED)
        cancelled = sum(1 for race in races if race.status == RaceStatus.CANCELLED)

        race_ids = [race.id for race in races]
        total_predictions = (
            Prediction.query.filter(Prediction.race_id.in_(race_ids)).count()
            if race_ids
            else 0
        )

        return {
            "season": season,
            "total_races": total_races,
            "completed_races": completed,
            "upcoming_races": upcoming,
            "cancelled_races": cancelled,
            "progress_percentage": (
                round(completed / total_races * 100) if total_races else 0
            ),
            "total_predictions": total_predictions,
            "avg_predictions_per_race": (
                round(total_predictions / completed) if completed else 0
            ),
        }

    @cached_season_query("season_calendar_{season}")
    def get_season_calendar(self, season):
        """Races of a season grouped by month in the application timezone"""
        calendar = {}
        for race in Race.get_by_season(season):
            key, label = month_key(race.race_date)
            month = calendar.setdefault(key, {"month_key": key, "month": label, "races": []})
            month["races"].append(race.to_summary_dict())
        return list(calendar.values())


def _is_int(value):
    return isinstance(value, int) and not isinstance(value, bool)


# Global service instance
race_service = RaceService()
