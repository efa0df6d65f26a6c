from datetime import datetime, timezone

from app import db

CLASSIFIED_STATUS = "finished"
FINISH_STATUSES = (CLASSIFIED_STATUS, "dnf", "dsq", "dns")


class RaceResult(db.Model):
    __tablename__ = "race_results"

    id = db.Column(db.Integer, primary_key=True)
    race_id = db.Column(
        db.Integer, db.ForeignKey("races.id", ondelete="CASCADE"), nullable=False
    )
    pilot_id = db.Column(db.Integer, db.ForeignKey("pilots.id"), nullable=False)

    position = db.Column(db.Integer, nullable=False)
    points = db.Column(db.Float, default=0.0)  # Official championship points
    status = db.Column(db.String(10), nullable=False, default="finished")
    time_or_gap = db.Column(db.String(50))  # e.g. "1:31:44.742", "+5.123s", "1 lap"
    fastest_lap = db.Column(db.Boolean, default=False)

    created_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    pilot = db.relationship("Pilot")

    __table_args__ = (
        db.UniqueConstraint("race_id", "pilot_id", name="unique_race_pilot"),
        db.UniqueConstraint("race_id", "position", name="unique_race_position"),
        db.Index("idx_race_results_race", "race_id"),
    )

    def __repr__(self):
        return f"<RaceResult race_id={self.race_id} P{self.position} pilot_id={self.pilot_id}>"

    @property
    def is_classified(self):
        return self.status == CLASSIFIED_STATUS

    def to_dict(self):
        """Convert result to dictionary for API responses"""
        return {
            "position": self.position,
            "pilot": self.pilot.to_dict() if self.pilot else None,
            "points": self.points,
            "status": self.status,
            "time_or_gap": self.time_or_gap,
            "fastest_lap": bool(self.fastest_lap),
        }
