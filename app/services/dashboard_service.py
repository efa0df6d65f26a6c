"""
Read-side aggregation for a user's home dashboard
"""

import logging

from flask import current_app
from sqlalchemy import case, func

from app import db
from app.models import (
    Pilot,
    Prediction,
    PredictionItem,
    PredictionStatus,
    Race,
    RaceStatus,
    UserStats,
)
from app.utils.scoring import calculate_streaks
from app.utils.timezone_utils import get_utc_time, isoformat

logger = logging.getLogger(__name__)

COUNTED_STATUSES = (
    PredictionStatus.SUBMITTED,
    PredictionStatus.LOCKED,
    PredictionStatus.SCORED,
)


class DashboardService:
    """Everything the dashboard shows for one user"""

    def get_full_dashboard(self, user_id):
        from app.services.league_service import league_service

        return {
            "leagues": league_service.get_user_leagues(user_id),
            "stats": self.get_user_stats(user_id),
            "next_race": self.get_next_race(user_id),
            "recent_predictions": self.get_recent_predictions(
                user_id, current_app.config.get("RECENT_PREDICTIONS_LIMIT", 5)
            ),
            "pilot_stats": self.get_pilot_stats(user_id),
        }

    def get_user_stats(self, user_id):
        """Cached stats, recomputed when missing or older than the staleness window"""
        stats = UserStats.query.filter_by(user_id=user_id).first()
        max_age = current_app.config.get("STATS_STALENESS_MINUTES", 60)

        if stats is None or stats.needs_recalculation(max_age):
            stats = self.calculate_and_save_user_stats(user_id)

        return stats.to_dict()

    def _scored_predictions(self, user_id):
        """Scored predictions newest race first"""
        return (
            Prediction.query.join(Race, Prediction.race_id == Race.id)
            .filter(
                Prediction.user_id == user_id,
                Prediction.status == PredictionStatus.SCORED,
            )
            .order_by(Race.race_date.desc(), Prediction.id.desc())
            .all()
        )

    def calculate_and_save_user_stats(self, user_id):
        scored = self._scored_predictions(user_id)
        total_predictions = Prediction.query.filter(
            Prediction.user_id == user_id, Prediction.status.in_(COUNTED_STATUSES)
        ).count()

        scored_count = len(scored)
        total_points = sum(p.points_earned or 0 for p in scored)
        total_correct = sum(p.correct_positions or 0 for p in scored)
        current_streak, best_streak = self.calculate_streaks(scored)

        most_picked = self._most_picked(user_id)
        best_performing = self._best_performing(user_id)

        stats = UserStats.query.filter_by(user_id=user_id).first()
        if stats is None:
            stats = UserStats(user_id=user_id)
            db.session.add(stats)

        stats.total_points = total_points
        stats.total_predictions = total_predictions
        stats.scored_predictions = scored_count
        stats.current_streak = current_streak
        stats.best_streak = best_streak
        stats.perfect_predictions = sum(1 for p in scored if p.is_perfect)
        stats.total_correct_positions = total_correct
        stats.average_points_per_race = (
            round(total_points / scored_count, 2) if scored_count else 0.0
        )
        stats.average_correct_positions = (
            round(total_correct / scored_count, 2) if scored_count else 0.0
        )
        stats.most_picked_pilot_id = most_picked[0].id if most_picked else None
        stats.most_picked_pilot_count = most_picked[1] if most_picked else 0
        stats.best_performing_pilot_id = (
            best_performing[0].id if best_performing else None
        )
        stats.best_performing_pilot_success_rate = (
            best_performing[1] if best_performing else 0.0
        )
        stats.last_calculated_at = get_utc_time()

        db.session.commit()
        logger.debug(f"Recalculated stats for user {user_id}")
        return stats

    def calculate_streaks(self, predictions):
        """
        Current and best streak of point-scoring predictions.

        Args:
            predictions: Predictions ordered newest first

        Returns:
            (current_streak, best_streak)
        """
        return calculate_streaks([p.points_earned for p in predictions])

    def get_next_race(self, user_id):
        """Next scheduled race and whether the user already predicted it"""
        now = get_utc_time()
        race = (
            Race.query.filter(
                Race.race_date > now, Race.status == RaceStatus.SCHEDULED
            )
            .order_by(Race.race_date.asc())
            .first()
        )
        if race is None:
            return None

        has_prediction = (
            Prediction.query.filter(
                Prediction.user_id == user_id,
                Prediction.race_id == race.id,
                Prediction.status.in_(COUNTED_STATUSES),
            ).first()
            is not None
        )

        return {
            "id": race.id,
            "name": race.name,
            "circuit": race.circuit,
            "country": race.country,
            "date": isoformat(race.race_date),
            "deadline": isoformat(race.effective_deadline),
            "flag_url": race.flag_url,
            "can_predict": race.can_accept_predictions(now),
            "has_prediction": has_prediction,
        }

    def get_recent_predictions(self, user_id, limit=5):
        predictions = (
            Prediction.query.join(Race, Prediction.race_id == Race.id)
            .filter(
                Prediction.user_id == user_id,
                Prediction.status == PredictionStatus.SCORED,
            )
            .order_by(Prediction.submitted_at.desc(), Prediction.id.desc())
            .limit(limit)
            .all()
        )

        return [
            {
                "id": p.id,
                "race_id": p.race_id,
                "race_name": p.race.name,
                "race_date": isoformat(p.race.race_date),
                "league_id": p.league_id,
                "points_earned": p.points_earned or 0,
                "correct_positions": p.correct_positions or 0,
                "total_positions": p.total_positions or 0,
                "is_perfect": p.is_perfect,
            }
            for p in predictions
        ]

    def _most_picked(self, user_id):
        row = (
            db.session.query(
                PredictionItem.pilot_id, func.count(PredictionItem.id).label("picks")
            )
            .join(Prediction, PredictionItem.prediction_id == Prediction.id)
            .filter(
                Prediction.user_id == user_id,
                Prediction.status.in_(COUNTED_STATUSES),
            )
            .group_by(PredictionItem.pilot_id)
            .order_by(func.count(PredictionItem.id).desc(), PredictionItem.pilot_id)
            .first()
        )
        if row is None:
            return None
        return db.session.get(Pilot, row.pilot_id), row.picks

    def _best_performing(self, user_id):
        min_picks = current_app.config.get("BEST_PILOT_MIN_PICKS", 3)
        rows = (
            db.session.query(
                PredictionItem.pilot_id,
                func.count(PredictionItem.id).label("picks"),
                func.sum(case((PredictionItem.is_correct.is_(True), 1), else_=0)).label(
                    "correct"
                ),
            )
            .join(Prediction, PredictionItem.prediction_id == Prediction.id)
            .filter(
                Prediction.user_id == user_id,
                Prediction.status == PredictionStatus.SCORED,
            )
            .group_by(PredictionItem.pilot_id)
            .having(func.count(PredictionItem.id) >= min_picks)
            .all()
        )
        if not rows:
            return None

        best = max(
            rows,
            key=lambda r: ((r.correct or 0) / r.picks, r.picks, -r.pilot_id),
        )
        success_rate = round((best.correct or 0) / best.picks * 100, 1)
        return db.session.get(Pilot, best.pilot_id), success_rate, best.picks

    def get_most_picked_pilot(self, user_id):
        result = self._most_picked(user_id)
        if result is None:
            return None
        pilot, picks = result
        return dict(pilot.to_dict(), count=picks)

    def get_best_performing_pilot(self, user_id):
        """Pilot with the highest exact-hit rate among those picked often enough"""
        result = self._best_performing(user_id)
        if result is None:
            return None
        pilot, success_rate, picks = result
        return dict(pilot.to_dict(), success_rate=success_rate, total_picks=picks)

    def get_pilot_stats(self, user_id):
        return {
            "most_picked": self.get_most_picked_pilot(user_id),
            "best_performing": self.get_best_performing_pilot(user_id),
        }


# Global service instance
dashboard_service = DashboardService()
