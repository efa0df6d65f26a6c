from datetime import datetime, timezone

from app import db


class Pilot(db.Model):
    __tablename__ = "pilots"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, unique=True)
    acronym = db.Column(db.String(3), nullable=False, index=True)
    number = db.Column(db.String(3), nullable=False)
    team = db.Column(db.String(60), nullable=False)
    is_active = db.Column(db.Boolean, default=True)

    created_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    def __repr__(self):
        return f"<Pilot {self.acronym}>"

    @staticmethod
    def get_all_active():
        """Get all active pilots ordered by team then name"""
        return (
            Pilot.query.filter_by(is_active=True)
            .order_by(Pilot.team, Pilot.name)
            .all()
        )

    def to_dict(self):
        """Convert pilot to dictionary for API responses"""
        return {
            "id": self.id,
            "name": self.name,
            "acronym": self.acronym,
            "number": self.number,
            "team": self.team,
        }
