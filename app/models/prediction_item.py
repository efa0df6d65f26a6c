from app import db


class ScoringReason:
    EXACT = "exact"
    NEAR_MISS = "near_miss"
    IN_RESULTS = "in_results"
    NOT_CLASSIFIED = "not_classified"


class PredictionItem(db.Model):
    __tablename__ = "prediction_items"

    id = db.Column(db.Integer, primary_key=True)
    prediction_id = db.Column(
        db.Integer,
        db.ForeignKey("predictions.id", ondelete="CASCADE"),
        nullable=False,
    )
    pilot_id = db.Column(db.Integer, db.ForeignKey("pilots.id"), nullable=False)
    position = db.Column(db.Integer, nullable=False)

    # Filled in when the race is scored
    actual_position = db.Column(db.Integer)
    is_correct = db.Column(db.Boolean)
    position_diff = db.Column(db.Integer)  # actual - predicted
    points_awarded = db.Column(db.Integer, default=0)
    scoring_reason = db.Column(db.String(20))

    pilot = db.relationship("Pilot")

    __table_args__ = (
        db.UniqueConstraint(
            "prediction_id", "position", name="unique_prediction_position"
        ),
        db.UniqueConstraint("prediction_id", "pilot_id", name="unique_prediction_pilot"),
        db.Index("idx_prediction_items_pilot", "pilot_id"),
    )

    def __repr__(self):
        return f"<PredictionItem P{self.position} pilot_id={self.pilot_id}>"

    @property
    def is_near_miss(self):
        if self.actual_position is None or self.is_correct:
            return False
        return abs(self.position - self.actual_position) == 1

    def to_dict(self):
        return {
            "position": self.position,
            "pilot": self.pilot.to_dict() if self.pilot else None,
            "actual_position": self.actual_position,
            "is_correct": self.is_correct,
            "is_near_miss": self.is_near_miss,
            "position_diff": self.position_diff,
            "points_awarded": self.points_awarded or 0,
            "scoring_reason": self.scoring_reason,
        }
