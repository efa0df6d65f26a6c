from datetime import datetime, timezone

from app import db
from app.utils.timezone_utils import isoformat


class LeagueStatus:
    ACTIVE = "active"
    ARCHIVED = "archived"
    DELETED = "deleted"


class League(db.Model):
    __tablename__ = "leagues"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    slug = db.Column(db.String(120), unique=True, nullable=False, index=True)
    description = db.Column(db.Text)
    image_url = db.Column(db.String(500))

    # League settings
    is_public = db.Column(db.Boolean, default=False)
    invite_code = db.Column(db.String(8), unique=True, index=True)  # Private only
    max_members = db.Column(db.Integer)  # None means unlimited
    season = db.Column(
        db.Integer, nullable=False, default=lambda: datetime.now(timezone.utc).year
    )
    status = db.Column(db.String(20), nullable=False, default=LeagueStatus.ACTIVE)

    # Creator and timestamps
    creator_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
    deleted_at = db.Column(db.DateTime(timezone=True))  # Soft delete

    # Relationships
    members = db.relationship(
        "LeagueMember", backref="league", lazy="dynamic", cascade="all, delete-orphan"
    )

    __table_args__ = (
        db.Index("idx_league_creator", "creator_id"),
        db.Index("idx_league_public", "is_public", "status"),
        db.Index("idx_league_season", "season"),
    )

    def __repr__(self):
        return f"<League {self.name}>"

    @property
    def is_deleted(self):
        return self.deleted_at is not None or self.status == LeagueStatus.DELETED

    def soft_delete(self):
        self.status = LeagueStatus.DELETED
        self.deleted_at = datetime.now(timezone.utc)

    def get_member_count(self):
        """Get count of active members"""
        from .league_member import MemberStatus

        return self.members.filter_by(status=MemberStatus.ACTIVE).count()

    def is_full(self, member_count=None):
        """Check if league has reached its member cap"""
        if not self.max_members:
            return False
        if member_count is None:
            member_count = self.get_member_count()
        return member_count >= self.max_members

    def get_membership(self, user_id):
        """Get the membership row for a user regardless of status"""
        return self.members.filter_by(user_id=user_id).first()

    def to_dict(self, include_invite_code=False, **extras):
        """Convert league to dictionary for API responses"""
        data = {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "image_url": self.image_url,
            "is_public": bool(self.is_public),
            "max_members": self.max_members,
            "season": self.season,
            "status": self.status,
            "creator_id": self.creator_id,
            "created_at": isoformat(self.created_at),
        }
        if include_invite_code:
            data["invite_code"] = self.invite_code
        data.update(extras)
        return data
