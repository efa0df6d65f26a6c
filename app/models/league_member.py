from datetime import datetime, timezone

from app import db
from app.utils.timezone_utils import isoformat


class MemberRole:
    ADMIN = "admin"
    MODERATOR = "moderator"
    MEMBER = "member"

    ALL = (ADMIN, MODERATOR, MEMBER)


class MemberStatus:
    ACTIVE = "active"
    INACTIVE = "inactive"
    BANNED = "banned"


class LeagueMember(db.Model):
    __tablename__ = "league_members"

    id = db.Column(db.Integer, primary_key=True)
    league_id = db.Column(
        db.Integer, db.ForeignKey("leagues.id", ondelete="CASCADE"), nullable=False
    )
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    # Membership status and role
    role = db.Column(db.String(20), nullable=False, default=MemberRole.MEMBER)
    status = db.Column(db.String(20), nullable=False, default=MemberStatus.ACTIVE)

    # Aggregates, recomputed whenever one of the league's races is scored
    total_points = db.Column(db.Integer, default=0)
    predictions_count = db.Column(db.Integer, default=0)
    correct_positions = db.Column(db.Integer, default=0)
    current_streak = db.Column(db.Integer, default=0)
    best_streak = db.Column(db.Integer, default=0)

    # Timestamps
    joined_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    last_active_at = db.Column(db.DateTime(timezone=True))

    __table_args__ = (
        db.UniqueConstraint("league_id", "user_id", name="unique_league_user"),
        db.Index("idx_league_members_active", "league_id", "status"),
        db.Index("idx_league_members_ranking", "league_id", "total_points"),
        db.Index("idx_user_league_memberships", "user_id", "status"),
    )

    def __repr__(self):
        return f"<LeagueMember user_id={self.user_id} league_id={self.league_id}>"

    @property
    def is_active(self):
        return self.status == MemberStatus.ACTIVE

    @property
    def is_admin(self):
        return self.is_active and self.role == MemberRole.ADMIN

    @property
    def can_moderate(self):
        return self.is_active and self.role in (MemberRole.ADMIN, MemberRole.MODERATOR)

    def deactivate(self):
        """Deactivate membership"""
        self.status = MemberStatus.INACTIVE

    def reactivate(self):
        """Reactivate membership"""
        self.status = MemberStatus.ACTIVE
        self.role = MemberRole.MEMBER
        self.joined_at = datetime.now(timezone.utc)

    def ban(self):
        self.status = MemberStatus.BANNED

    def touch(self):
        self.last_active_at = datetime.now(timezone.utc)

    def to_dict(self, rank=None):
        """Convert membership to dictionary for API responses"""
        data = {
            "user_id": self.user_id,
            "league_id": self.league_id,
            "username": self.user.username if self.user else None,
            "display_name": self.user.full_name if self.user else None,
            "avatar_url": self.user.avatar_url if self.user else None,
            "role": self.role,
            "status": self.status,
            "total_points": self.total_points or 0,
            "predictions_count": self.predictions_count or 0,
            "correct_positions": self.correct_positions or 0,
            "current_streak": self.current_streak or 0,
            "best_streak": self.best_streak or 0,
            "joined_at": isoformat(self.joined_at),
        }
        if rank is not None:
            data["rank"] = rank
        return data
