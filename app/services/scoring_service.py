"""
Applies official race results to predictions and league standings
"""

import logging

from app import db
from app.models import (
    LeagueMember,
    Prediction,
    PredictionStatus,
    Race,
    RaceResult,
    UserStats,
)
from app.utils.errors import InvalidState, NotFound
from app.utils.scoring import (
    ScoringPolicy,
    calculate_prediction_score,
    calculate_streaks,
)
from app.utils.timezone_utils import get_utc_time

logger = logging.getLogger(__name__)


class ScoringService:
    """Scores races and keeps league member aggregates in sync"""

    def __init__(self, policy=None):
        # None means read the point values from app config on every call
        self.policy = policy

    def _resolve_policy(self, policy):
        return policy or self.policy or ScoringPolicy.from_config()

    def score_race(self, race_id, policy=None, commit=True):
        """
        Re-score every prediction of a race against its stored results.

        Predictions in submitted, locked or scored state are recomputed and
        marked scored. League members with a prediction for the race get their
        aggregates rebuilt from all of their scored predictions in that league,
        and the affected users' cached stats are marked stale.

        Args:
            race_id: Race whose results changed
            policy: Optional ScoringPolicy overriding the configured one
            commit: Commit the session when done (callers running inside a
                larger transaction pass False)

        Returns:
            dict summary with counts of scored predictions and touched leagues
        """
        race = db.session.get(Race, race_id)
        if race is None:
            raise NotFound("Race not found")

        results = RaceResult.query.filter_by(race_id=race.id).all()
        if not results:
            raise InvalidState("Race has no results to score")

        policy = self._resolve_policy(policy)
        # DNF, DSQ and DNS pilots score as if absent from the results
        actual = {
            result.pilot_id: result.position
            for result in results
            if result.is_classified
        }
        now = get_utc_time()

        predictions = Prediction.query.filter(
            Prediction.race_id == race.id,
            Prediction.status.in_(PredictionStatus.SCORABLE),
        ).all()

        league_users = set()
        user_ids = set()
        for prediction in predictions:
            self._apply_score(prediction, actual, policy, now)
            user_ids.add(prediction.user_id)
            if prediction.league_id is not None:
                league_users.add((prediction.league_id, prediction.user_id))

        db.session.flush()

        for league_id, user_id in league_users:
            member = LeagueMember.query.filter_by(
                league_id=league_id, user_id=user_id
            ).first()
            if member is not None:
                self.recalculate_member(member)

        self.mark_stats_stale(user_ids)

        if commit:
            db.session.commit()

        leagues = {league_id for league_id, _ in league_users}
        logger.info(
            f"Scored race {race.id} ({race.name}): {len(predictions)} predictions, "
            f"{len(leagues)} leagues updated"
        )
        return {
            "race_id": race.id,
            "predictions_scored": len(predictions),
            "leagues_updated": len(leagues),
            "users_affected": len(user_ids),
        }

    def _apply_score(self, prediction, actual, policy, now):
        score = calculate_prediction_score(
            [(item.pilot_id, item.position) for item in prediction.items],
            actual,
            policy,
        )

        for item in prediction.items:
            outcome = score.items[item.pilot_id]
            item.actual_position = outcome.actual_position
            item.is_correct = outcome.is_correct
            item.position_diff = outcome.position_diff
            item.points_awarded = outcome.points_awarded
            item.scoring_reason = outcome.scoring_reason

        prediction.points_earned = score.points_earned
        prediction.correct_positions = score.correct_positions
        prediction.total_positions = score.total_positions
        prediction.near_misses = score.near_misses
        prediction.bonus_points = score.bonus_points
        prediction.status = PredictionStatus.SCORED
        prediction.scored_at = now

    def recalculate_member(self, member):
        """Rebuild a member's totals from their scored predictions in the league"""
        scored = (
            Prediction.query.join(Race, Prediction.race_id == Race.id)
            .filter(
                Prediction.user_id == member.user_id,
                Prediction.league_id == member.league_id,
                Prediction.status == PredictionStatus.SCORED,
            )
            .order_by(Race.race_date.desc())
            .all()
        )

        member.total_points = sum(p.points_earned or 0 for p in scored)
        member.predictions_count = len(scored)
        member.correct_positions = sum(p.correct_positions or 0 for p in scored)
        member.current_streak, member.best_streak = calculate_streaks(
            [p.points_earned for p in scored]
        )
        return member

    def recalculate_league(self, league_id, commit=True):
        """Rebuild aggregates for every member of a league"""
        members = LeagueMember.query.filter_by(league_id=league_id).all()
        for member in members:
            self.recalculate_member(member)
        if commit:
            db.session.commit()
        return len(members)

    def mark_stats_stale(self, user_ids):
        if not user_ids:
            return
        UserStats.query.filter(UserStats.user_id.in_(user_ids)).update(
            {"last_calculated_at": None}
        )


# Global service instance
scoring_service = ScoringService()
