from datetime import datetime, timezone

from flask import current_app
from flask_login import UserMixin
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from werkzeug.security import check_password_hash, generate_password_hash

from app import db

AUTH_TOKEN_SALT = "auth-token"


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)

    # Profile information
    display_name = db.Column(db.String(100))
    avatar_url = db.Column(db.String(500))

    # Account status
    is_active = db.Column(db.Boolean, default=True)
    is_admin = db.Column(db.Boolean, default=False)  # Site-wide admin privileges

    # Timestamps
    created_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
    last_login = db.Column(db.DateTime(timezone=True))

    # Relationships
    predictions = db.relationship(
        "Prediction", backref="user", lazy="dynamic", cascade="all, delete-orphan"
    )
    league_memberships = db.relationship(
        "LeagueMember", backref="user", lazy="dynamic", cascade="all, delete-orphan"
    )
    created_leagues = db.relationship("League", backref="creator", lazy="dynamic")
    stats = db.relationship(
        "UserStats", backref="user", uselist=False, cascade="all, delete-orphan"
    )

    __table_args__ = (
        db.Index("idx_user_created_at", "created_at"),
        db.Index("idx_user_active_status", "is_active"),
    )

    def __repr__(self):
        return f"<User {self.username}>"

    def set_password(self, password):
        """Set password hash"""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Check password against hash"""
        return check_password_hash(self.password_hash, password)

    def set_display_name(self, display_name):
        """Set display name with sanitization"""
        import html

        if display_name:
            self.display_name = html.escape(display_name.strip())
        else:
            self.display_name = display_name

    @property
    def full_name(self):
        """Return display name or username"""
        return self.display_name or self.username

    @staticmethod
    def _token_serializer():
        return URLSafeTimedSerializer(
            current_app.config["SECRET_KEY"], salt=AUTH_TOKEN_SALT
        )

    def generate_auth_token(self):
        """Issue a signed bearer token for this user"""
        return self._token_serializer().dumps({"uid": self.id})

    @staticmethod
    def verify_auth_token(token):
        """Return the active user a bearer token was issued for, or None"""
        max_age = current_app.config.get("AUTH_TOKEN_MAX_AGE")
        try:
            payload = User._token_serializer().loads(token, max_age=max_age)
        except (SignatureExpired, BadSignature):
            return None

        user = db.session.get(User, payload.get("uid"))
        if user is None or not user.is_active:
            return None
        return user

    def update_last_login(self):
        """Update last login timestamp"""
        self.last_login = datetime.now(timezone.utc)
        db.session.commit()

    def to_dict(self, include_email=False):
        """Convert user to dictionary for API responses"""
        data = {
            "id": self.id,
            "username": self.username,
            "display_name": self.full_name,
            "avatar_url": self.avatar_url,
            "is_admin": bool(self.is_admin),
        }
        if include_email:
            data["email"] = self.email
        return data
