from datetime import datetime, timezone

from app import db
from app.utils.timezone_utils import isoformat


class PredictionStatus:
    DRAFT = "draft"
    SUBMITTED = "submitted"
    LOCKED = "locked"
    SCORED = "scored"
    CANCELLED = "cancelled"

    EDITABLE = (DRAFT, SUBMITTED)
    SCORABLE = (SUBMITTED, LOCKED, SCORED)


class Prediction(db.Model):
    __tablename__ = "predictions"

    id = db.Column(db.Integer, primary_key=True)

    # Prediction identification
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    race_id = db.Column(
        db.Integer, db.ForeignKey("races.id", ondelete="CASCADE"), nullable=False
    )
    league_id = db.Column(
        db.Integer, db.ForeignKey("leagues.id", ondelete="CASCADE"), nullable=True
    )  # Nullable for personal predictions

    status = db.Column(
        db.String(20), nullable=False, default=PredictionStatus.SUBMITTED
    )

    # Results (calculated after the race is scored)
    points_earned = db.Column(db.Integer, default=0)
    correct_positions = db.Column(db.Integer, default=0)
    total_positions = db.Column(db.Integer, default=0)
    near_misses = db.Column(db.Integer, default=0)
    bonus_points = db.Column(db.Integer, default=0)

    # Timestamps
    submitted_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    last_modified_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    scored_at = db.Column(db.DateTime(timezone=True))

    # Audit
    submission_count = db.Column(db.Integer, default=1)
    ip_address = db.Column(db.String(45))

    # Relationships
    items = db.relationship(
        "PredictionItem",
        backref="prediction",
        lazy="select",
        order_by="PredictionItem.position",
        cascade="all, delete-orphan",
    )
    league = db.relationship("League", foreign_keys=[league_id])

    __table_args__ = (
        db.UniqueConstraint(
            "user_id", "race_id", "league_id", name="unique_user_race_league"
        ),
        # NULL league_ids never collide in the constraint above
        db.Index(
            "uq_personal_prediction",
            "user_id",
            "race_id",
            unique=True,
            sqlite_where=db.text("league_id IS NULL"),
            postgresql_where=db.text("league_id IS NULL"),
        ),
        db.Index("idx_predictions_user", "user_id"),
        db.Index("idx_predictions_race", "race_id"),
        db.Index("idx_predictions_league", "league_id"),
        db.Index("idx_predictions_status", "status"),
    )

    def __repr__(self):
        return f"<Prediction user_id={self.user_id} race_id={self.race_id} league_id={self.league_id}>"

    @property
    def can_edit(self):
        return self.status in PredictionStatus.EDITABLE

    @property
    def is_perfect(self):
        return bool(self.total_positions) and (
            self.correct_positions == self.total_positions
        )

    @property
    def accuracy(self):
        """Share of correctly placed positions, as a percentage"""
        if not self.total_positions:
            return 0.0
        return round(self.correct_positions / self.total_positions * 100, 1)

    def to_summary_dict(self):
        return {
            "id": self.id,
            "race_id": self.race_id,
            "league_id": self.league_id,
            "status": self.status,
            "points_earned": self.points_earned or 0,
            "correct_positions": self.correct_positions or 0,
            "total_positions": self.total_positions or 0,
            "submitted_at": isoformat(self.submitted_at),
        }

    def to_dict(self, include_items=True):
        """Convert prediction to dictionary for API responses"""
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "race_id": self.race_id,
            "league_id": self.league_id,
            "status": self.status,
            "points_earned": self.points_earned or 0,
            "correct_positions": self.correct_positions or 0,
            "total_positions": self.total_positions or 0,
            "near_misses": self.near_misses or 0,
            "bonus_points": self.bonus_points or 0,
            "accuracy": self.accuracy,
            "is_perfect": self.is_perfect,
            "can_edit": self.can_edit,
            "submitted_at": isoformat(self.submitted_at),
            "last_modified_at": isoformat(self.last_modified_at),
            "scored_at": isoformat(self.scored_at),
            "submission_count": self.submission_count or 0,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data
