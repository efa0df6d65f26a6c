from datetime import datetime, timezone

from app import db
from app.utils.timezone_utils import ensure_utc, get_utc_time, isoformat


class RaceStatus:
    SCHEDULED = "scheduled"
    QUALIFYING = "qualifying"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    POSTPONED = "postponed"

    ALL = (SCHEDULED, QUALIFYING, IN_PROGRESS, COMPLETED, CANCELLED, POSTPONED)

    # Completed is terminal; cancelled/postponed races can only be rescheduled
    TRANSITIONS = {
        SCHEDULED: (QUALIFYING, CANCELLED, POSTPONED),
        QUALIFYING: (IN_PROGRESS, CANCELLED, POSTPONED),
        IN_PROGRESS: (COMPLETED, CANCELLED),
        COMPLETED: (),
        CANCELLED: (SCHEDULED,),
        POSTPONED: (SCHEDULED,),
    }

    UPCOMING = (SCHEDULED, QUALIFYING)


class Race(db.Model):
    __tablename__ = "races"

    id = db.Column(db.Integer, primary_key=True)

    # Basic information
    name = db.Column(db.String(100), nullable=False)
    official_name = db.Column(db.String(150))
    circuit = db.Column(db.String(100), nullable=False)
    country = db.Column(db.String(60), nullable=False)
    city = db.Column(db.String(60))
    flag_url = db.Column(db.String(500))
    circuit_image_url = db.Column(db.String(500))

    # Calendar
    round = db.Column(db.Integer, nullable=False)
    season = db.Column(
        db.Integer, nullable=False, default=lambda: datetime.now(timezone.utc).year
    )

    # Session times (UTC)
    race_date = db.Column(db.DateTime(timezone=True), nullable=False)
    qualifying_date = db.Column(db.DateTime(timezone=True))
    sprint_date = db.Column(db.DateTime(timezone=True))
    fp1_date = db.Column(db.DateTime(timezone=True))
    fp2_date = db.Column(db.DateTime(timezone=True))
    fp3_date = db.Column(db.DateTime(timezone=True))

    # Falls back to qualifying_date, then race_date
    prediction_deadline = db.Column(db.DateTime(timezone=True))

    status = db.Column(db.String(20), nullable=False, default=RaceStatus.SCHEDULED)

    # Additional information
    laps = db.Column(db.Integer)
    circuit_length = db.Column(db.Float)  # km
    timezone = db.Column(db.String(50))  # Local timezone of the circuit
    is_sprint = db.Column(db.Boolean, default=False)

    created_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    results = db.relationship(
        "RaceResult",
        backref="race",
        lazy="dynamic",
        cascade="all, delete-orphan",
    )
    predictions = db.relationship(
        "Prediction", backref="race", lazy="dynamic", cascade="all, delete-orphan"
    )

    __table_args__ = (
        db.UniqueConstraint("season", "round", name="unique_season_round"),
        db.Index("idx_races_date", "race_date"),
        db.Index("idx_races_status", "status"),
        db.Index("idx_races_season_status", "season", "status"),
    )

    def __repr__(self):
        return f"<Race {self.season} R{self.round} {self.name}>"

    @property
    def effective_deadline(self):
        """Prediction cutoff: explicit deadline, else qualifying, else race start"""
        return ensure_utc(
            self.prediction_deadline or self.qualifying_date or self.race_date
        )

    def can_accept_predictions(self, now=None):
        """Check if predictions may be submitted right now"""
        if self.status != RaceStatus.SCHEDULED:
            return False
        now = now or get_utc_time()
        return now < self.effective_deadline

    def can_transition_to(self, new_status):
        """Check the status transition table"""
        return new_status in RaceStatus.TRANSITIONS.get(self.status, ())

    @property
    def is_completed(self):
        return self.status == RaceStatus.COMPLETED

    def time_to_deadline(self, now=None):
        """Hours/minutes remaining until the effective deadline"""
        now = now or get_utc_time()
        remaining = (self.effective_deadline - now).total_seconds()
        clamped = max(0, int(remaining))
        return {
            "hours": clamped // 3600,
            "minutes": (clamped % 3600) // 60,
            "total_minutes": clamped // 60,
            "is_past_deadline": remaining <= 0,
        }

    @staticmethod
    def get_next_race(now=None):
        """Get the next race that has not started yet"""
        now = now or get_utc_time()
        return (
            Race.query.filter(
                Race.race_date > now, Race.status.in_(RaceStatus.UPCOMING)
            )
            .order_by(Race.race_date.asc())
            .first()
        )

    @staticmethod
    def get_by_season(season):
        """Get all races of a season ordered by round"""
        return Race.query.filter_by(season=season).order_by(Race.round.asc()).all()

    def to_summary_dict(self):
        """Compact representation for listings"""
        return {
            "id": self.id,
            "name": self.name,
            "circuit": self.circuit,
            "country": self.country,
            "flag_url": self.flag_url,
            "round": self.round,
            "season": self.season,
            "race_date": isoformat(self.race_date),
            "status": self.status,
            "is_sprint": bool(self.is_sprint),
        }

    def to_dict(self, **extras):
        """Convert race to dictionary for API responses"""
        data = {
            "id": self.id,
            "name": self.name,
            "official_name": self.official_name,
            "circuit": self.circuit,
            "country": self.country,
            "city": self.city,
            "flag_url": self.flag_url,
            "circuit_image_url": self.circuit_image_url,
            "round": self.round,
            "season": self.season,
            "race_date": isoformat(self.race_date),
            "qualifying_date": isoformat(self.qualifying_date),
            "sprint_date": isoformat(self.sprint_date),
            "fp1_date": isoformat(self.fp1_date),
            "fp2_date": isoformat(self.fp2_date),
            "fp3_date": isoformat(self.fp3_date),
            "prediction_deadline": isoformat(self.prediction_deadline),
            "status": self.status,
            "laps": self.laps,
            "circuit_length": self.circuit_length,
            "timezone": self.timezone,
            "is_sprint": bool(self.is_sprint),
        }
        data.update(extras)
        return data
