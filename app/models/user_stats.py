from datetime import timedelta

from app import db
from app.utils.timezone_utils import ensure_utc, get_utc_time, isoformat


class UserStats(db.Model):
    """Cached per-user aggregate shown on the dashboard"""

    __tablename__ = "user_stats"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    total_points = db.Column(db.Integer, default=0)
    total_predictions = db.Column(db.Integer, default=0)
    scored_predictions = db.Column(db.Integer, default=0)
    current_streak = db.Column(db.Integer, default=0)
    best_streak = db.Column(db.Integer, default=0)
    perfect_predictions = db.Column(db.Integer, default=0)
    total_correct_positions = db.Column(db.Integer, default=0)
    average_points_per_race = db.Column(db.Float, default=0.0)
    average_correct_positions = db.Column(db.Float, default=0.0)

    most_picked_pilot_id = db.Column(db.Integer, db.ForeignKey("pilots.id"))
    most_picked_pilot_count = db.Column(db.Integer, default=0)
    best_performing_pilot_id = db.Column(db.Integer, db.ForeignKey("pilots.id"))
    best_performing_pilot_success_rate = db.Column(db.Float, default=0.0)

    # None means stale: recompute on next read
    last_calculated_at = db.Column(db.DateTime(timezone=True))

    most_picked_pilot = db.relationship("Pilot", foreign_keys=[most_picked_pilot_id])
    best_performing_pilot = db.relationship(
        "Pilot", foreign_keys=[best_performing_pilot_id]
    )

    def __repr__(self):
        return f"<UserStats user_id={self.user_id} points={self.total_points}>"

    def needs_recalculation(self, max_age_minutes=60, now=None):
        if self.last_calculated_at is None:
            return True
        now = now or get_utc_time()
        age = now - ensure_utc(self.last_calculated_at)
        return age > timedelta(minutes=max_age_minutes)

    def to_dict(self):
        return {
            "total_points": self.total_points or 0,
            "total_predictions": self.total_predictions or 0,
            "scored_predictions": self.scored_predictions or 0,
            "current_streak": self.current_streak or 0,
            "best_streak": self.best_streak or 0,
            "perfect_predictions": self.perfect_predictions or 0,
            "total_correct_positions": self.total_correct_positions or 0,
            "average_points_per_race": self.average_points_per_race or 0.0,
            "average_correct_positions": self.average_correct_positions or 0.0,
            "most_picked_pilot": (
                self.most_picked_pilot.to_dict() if self.most_picked_pilot else None
            ),
            "most_picked_pilot_count": self.most_picked_pilot_count or 0,
            "best_performing_pilot": (
                self.best_performing_pilot.to_dict()
                if self.best_performing_pilot
                else None
            ),
            "best_performing_pilot_success_rate": (
                self.best_performing_pilot_success_rate or 0.0
            ),
            "last_calculated_at": isoformat(self.last_calculated_at),
        }
