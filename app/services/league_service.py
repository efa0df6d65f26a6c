"""
League management: creation, membership, roles and standings
"""

import logging

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload

from app import db
from app.models import League, LeagueMember, LeagueStatus, MemberRole, MemberStatus
from app.utils.errors import (
    Conflict,
    InvalidState,
    NotFound,
    PermissionDenied,
    ValidationError,
)
from app.utils.scoring import rank_members, rank_of
from app.utils.slugs import generate_invite_code, generate_unique_slug
from app.utils.timezone_utils import get_utc_time, isoformat

logger = logging.getLogger(__name__)

NAME_MIN_LENGTH = 3
NAME_MAX_LENGTH = 100


class LeagueService:
    """Leagues, memberships and rankings"""

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_league(self, league_id):
        """Fetch a league that has not been deleted"""
        league = db.session.get(League, league_id)
        if league is None or league.is_deleted:
            raise NotFound("League not found")
        return league

    def _active_members(self, league_id):
        return (
            LeagueMember.query.options(joinedload(LeagueMember.user))
            .filter_by(league_id=league_id, status=MemberStatus.ACTIVE)
            .all()
        )

    def _active_membership(self, league_id, user_id):
        return LeagueMember.query.filter_by(
            league_id=league_id, user_id=user_id, status=MemberStatus.ACTIVE
        ).first()

    def _require_admin(self, league_id, user_id, message="Only league admins can do this"):
        membership = self._active_membership(league_id, user_id)
        if membership is None or membership.role != MemberRole.ADMIN:
            raise PermissionDenied(message)
        return membership

    def _admin_count(self, league_id):
        return LeagueMember.query.filter_by(
            league_id=league_id, role=MemberRole.ADMIN, status=MemberStatus.ACTIVE
        ).count()

    def _unique_invite_code(self):
        while True:
            code = generate_invite_code()
            if not League.query.filter_by(invite_code=code).first():
                return code

    @staticmethod
    def _slug_taken(slug):
        # Soft-deleted leagues keep their slug reserved
        return League.query.filter_by(slug=slug).first() is not None

    @staticmethod
    def _clean_name(name):
        name = (name or "").strip()
        if len(name) < NAME_MIN_LENGTH:
            raise ValidationError(
                f"League name must be at least {NAME_MIN_LENGTH} characters",
                details={"name": ["Too short"]},
            )
        if len(name) > NAME_MAX_LENGTH:
            raise ValidationError(
                f"League name must be at most {NAME_MAX_LENGTH} characters",
                details={"name": ["Too long"]},
            )
        return name

    @staticmethod
    def _clean_max_members(value):
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, int) or value < 2:
            raise ValidationError("max_members must be at least 2")
        return value

    def _league_view(self, league, user_id=None):
        members = self._active_members(league.id)
        membership = next((m for m in members if m.user_id == user_id), None)
        role = membership.role if membership else None

        return league.to_dict(
            include_invite_code=role == MemberRole.ADMIN,
            creator={
                "id": league.creator.id,
                "username": league.creator.username,
            }
            if league.creator
            else None,
            member_count=len(members),
            is_full=league.is_full(len(members)),
            is_member=membership is not None,
            is_admin=role == MemberRole.ADMIN,
            is_moderator=role == MemberRole.MODERATOR,
            user_role=role,
            user_rank=rank_of(members, user_id) if membership else None,
            user_points=(membership.total_points or 0) if membership else 0,
        )

    # ------------------------------------------------------------------
    # League CRUD
    # ------------------------------------------------------------------

    def create_league(self, data, creator_id):
        """Create a league and make its creator the first admin"""
        name = self._clean_name(data.get("name"))
        is_public = data.get("is_public")
        is_public = True if is_public is None else bool(is_public)
        max_members = self._clean_max_members(data.get("max_members"))

        league = League(
            name=name,
            slug=generate_unique_slug(name, self._slug_taken),
            description=(data.get("description") or "").strip() or None,
            image_url=data.get("image_url") or None,
            is_public=is_public,
            invite_code=None if is_public else self._unique_invite_code(),
            max_members=max_members,
            season=data.get("season") or get_utc_time().year,
            status=LeagueStatus.ACTIVE,
            creator_id=creator_id,
        )

        try:
            db.session.add(league)
            db.session.flush()
            db.session.add(
                LeagueMember(
                    league_id=league.id,
                    user_id=creator_id,
                    role=MemberRole.ADMIN,
                    status=MemberStatus.ACTIVE,
                    joined_at=get_utc_time(),
                )
            )
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise Conflict("A league with this name already exists, try again")

        logger.info(f"User {creator_id} created league {league.id} ({league.slug})")
        return league.to_dict(
            include_invite_code=True,
            member_count=1,
            is_admin=True,
            user_role=MemberRole.ADMIN,
            user_rank=1,
            user_points=0,
        )

    def get_league_by_id(self, league_id, user_id=None):
        return self._league_view(self._get_league(league_id), user_id)

    def get_league_by_slug(self, slug, user_id=None):
        league = League.query.filter_by(slug=slug, status=LeagueStatus.ACTIVE).first()
        if league is None or league.is_deleted:
            raise NotFound("League not found")
        return self._league_view(league, user_id)

    def update_league(self, league_id, data, user_id):
        """Update league settings (admins only)"""
        league = self._get_league(league_id)
        self._require_admin(league_id, user_id, "You cannot edit this league")

        if "name" in data:
            league.name = self._clean_name(data["name"])
        if "description" in data:
            league.description = (data["description"] or "").strip() or None
        if "image_url" in data:
            league.image_url = data["image_url"] or None
        if "max_members" in data:
            max_members = self._clean_max_members(data["max_members"])
            if max_members is not None and max_members < league.get_member_count():
                raise ValidationError("max_members is below the current member count")
            league.max_members = max_members
        if "is_public" in data and data["is_public"] is not None:
            league.is_public = bool(data["is_public"])
            if league.is_public:
                league.invite_code = None
            elif not league.invite_code:
                league.invite_code = self._unique_invite_code()

        db.session.commit()
        logger.info(f"League {league.id} updated by user {user_id}")
        return self._league_view(league, user_id)

    def regenerate_invite_code(self, league_id, user_id):
        league = self._get_league(league_id)
        self._require_admin(league_id, user_id, "You cannot manage this league")
        if league.is_public:
            raise InvalidState("Public leagues do not use invite codes")

        league.invite_code = self._unique_invite_code()
        db.session.commit()
        logger.info(f"League {league.id} invite code regenerated by user {user_id}")
        return {"league_id": league.id, "invite_code": league.invite_code}

    def delete_league(self, league_id, user_id):
        """Soft delete a league (admins only)"""
        league = self._get_league(league_id)
        self._require_admin(league_id, user_id, "You cannot delete this league")
        league.soft_delete()
        league.invite_code = None
        db.session.commit()
        logger.info(f"League {league.id} deleted by user {user_id}")
        return {"league_id": league.id, "status": league.status}

    # ------------------------------------------------------------------
    # Memberships
    # ------------------------------------------------------------------

    def get_user_leagues(self, user_id, status=MemberStatus.ACTIVE, season=None):
        """Leagues the user belongs to, with their rank in each"""
        query = (
            LeagueMember.query.join(League, LeagueMember.league_id == League.id)
            .options(joinedload(LeagueMember.league))
            .filter(
                LeagueMember.user_id == user_id,
                LeagueMember.status == status,
                League.status == LeagueStatus.ACTIVE,
                League.deleted_at.is_(None),
            )
        )
        if season:
            query = query.filter(League.season == season)

        leagues = []
        for membership in query.order_by(League.name.asc()).all():
            league = membership.league
            members = self._active_members(league.id)
            leagues.append(
                {
                    "id": league.id,
                    "name": league.name,
                    "slug": league.slug,
                    "description": league.description,
                    "image_url": league.image_url,
                    "season": league.season,
                    "is_public": bool(league.is_public),
                    "member_count": len(members),
                    "user_rank": rank_of(members, user_id),
                    "user_points": membership.total_points or 0,
                    "is_admin": membership.role == MemberRole.ADMIN,
                    "is_moderator": membership.role == MemberRole.MODERATOR,
                    "role": membership.role,
                    "joined_at": isoformat(membership.joined_at),
                }
            )
        return leagues

    def _join(self, league, user_id):
        """Shared membership rules for both ways of joining"""
        from app.services.scoring_service import scoring_service

        existing = league.get_membership(user_id)
        if existing is not None:
            if existing.status == MemberStatus.ACTIVE:
                raise Conflict("You are already a member of this league")
            if existing.status == MemberStatus.BANNED:
                raise PermissionDenied("You have been banned from this league")

        if league.is_full():
            raise InvalidState("This league has reached its member limit")

        if existing is not None:
            existing.reactivate()
            scoring_service.recalculate_member(existing)
            membership = existing
            message = "You have rejoined the league"
        else:
            membership = LeagueMember(
                league_id=league.id,
                user_id=user_id,
                role=MemberRole.MEMBER,
                status=MemberStatus.ACTIVE,
                joined_at=get_utc_time(),
            )
            db.session.add(membership)
            message = "You have joined the league"

        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise Conflict("You are already a member of this league")

        logger.info(f"User {user_id} joined league {league.id}")
        return {
            "league_id": league.id,
            "league_name": league.name,
            "league_slug": league.slug,
            "role": membership.role,
            "message": message,
        }

    def join_league_by_code(self, user_id, invite_code):
        code = (invite_code or "").strip().upper()
        if not code:
            raise ValidationError("Invite code is required")

        league = League.query.filter_by(
            invite_code=code, status=LeagueStatus.ACTIVE
        ).first()
        if league is None or league.is_deleted:
            raise NotFound("Invalid invite code or league not found")

        return self._join(league, user_id)

    def join_public_league(self, user_id, league_id):
        league = self._get_league(league_id)
        if league.status != LeagueStatus.ACTIVE:
            raise NotFound("League not found")
        if not league.is_public:
            raise PermissionDenied("This league is private, an invite code is required")

        return self._join(league, user_id)

    def leave_league(self, user_id, league_id):
        self._get_league(league_id)
        membership = self._active_membership(league_id, user_id)
        if membership is None:
            raise NotFound("You are not a member of this league")

        if membership.role == MemberRole.ADMIN and self._admin_count(league_id) <= 1:
            raise InvalidState(
                "You are the only admin of this league, promote another admin first"
            )

        membership.deactivate()
        db.session.commit()
        logger.info(f"User {user_id} left league {league_id}")
        return {"league_id": league_id, "message": "You have left the league"}

    def change_member_role(self, league_id, target_user_id, role, requester_id):
        self._get_league(league_id)
        self._require_admin(league_id, requester_id, "You cannot change member roles")

        if target_user_id == requester_id:
            raise InvalidState("You cannot change your own role")
        if role not in MemberRole.ALL:
            raise ValidationError(
                f"Invalid role. Must be one of: {', '.join(MemberRole.ALL)}"
            )

        target = self._active_membership(league_id, target_user_id)
        if target is None:
            raise NotFound("User is not a member of this league")

        target.role = role
        db.session.commit()
        logger.info(
            f"User {requester_id} set role of user {target_user_id} in league {league_id} to {role}"
        )
        return {"user_id": target_user_id, "role": role, "message": f"Role changed to {role}"}

    def ban_member(self, league_id, target_user_id, requester_id):
        self._get_league(league_id)
        requester = self._active_membership(league_id, requester_id)
        if requester is None or not requester.can_moderate:
            raise PermissionDenied("You cannot ban members of this league")

        if target_user_id == requester_id:
            raise InvalidState("You cannot ban yourself")

        target = self._active_membership(league_id, target_user_id)
        if target is None:
            raise NotFound("User is not a member of this league")

        if target.role == MemberRole.ADMIN:
            raise PermissionDenied("League admins cannot be banned")

        target.ban()
        db.session.commit()
        logger.info(f"User {requester_id} banned user {target_user_id} from league {league_id}")
        return {"user_id": target_user_id, "message": "User banned from the league"}

    # ------------------------------------------------------------------
    # Ranking and statistics
    # ------------------------------------------------------------------

    def get_league_ranking(self, league_id, limit=None, offset=0):
        """Standings of active members: points desc, then earliest joiner"""
        league = self._get_league(league_id)
        if league.status != LeagueStatus.ACTIVE:
            raise NotFound("League not found")

        ranked = rank_members(self._active_members(league.id))
        total = len(ranked)
        offset = max(offset or 0, 0)
        page = ranked[offset : offset + limit] if limit else ranked[offset:]

        return {
            "league_id": league.id,
            "league_name": league.name,
            "total_members": total,
            "ranking": [member.to_dict(rank=rank) for rank, member in page],
            "pagination": {
                "total": total,
                "limit": limit or total,
                "offset": offset,
                "has_more": bool(limit) and offset + limit < total,
            },
        }

    def get_league_stats(self, league_id):
        league = self._get_league(league_id)
        ranked = rank_members(self._active_members(league.id))
        members = [member for _, member in ranked]

        total_points = sum(m.total_points or 0 for m in members)
        top = members[0] if members else None

        return {
            "league_id": league.id,
            "league_name": league.name,
            "season": league.season,
            "member_count": len(members),
            "total_points": total_points,
            "total_predictions": sum(m.predictions_count or 0 for m in members),
            "total_correct_positions": sum(m.correct_positions or 0 for m in members),
            "avg_points_per_member": (
                round(total_points / len(members)) if members else 0
            ),
            "best_streak": max((m.best_streak or 0 for m in members), default=0),
            "top_performer": (
                {
                    "rank": 1,
                    "user_id": top.user_id,
                    "username": top.user.username if top.user else None,
                    "points": top.total_points or 0,
                }
                if top
                else None
            ),
        }

    def search_public_leagues(self, search=None, season=None, limit=20, offset=0):
        member_count = (
            db.session.query(func.count(LeagueMember.id))
            .filter(
                LeagueMember.league_id == League.id,
                LeagueMember.status == MemberStatus.ACTIVE,
            )
            .correlate(League)
            .scalar_subquery()
        )

        query = League.query.filter(
            League.is_public.is_(True),
            League.status == LeagueStatus.ACTIVE,
            League.deleted_at.is_(None),
        )
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(
                or_(League.name.ilike(pattern), League.description.ilike(pattern))
            )
        if season:
            query = query.filter(League.season == season)

        total = query.count()
        rows = (
            query.add_columns(member_count.label("member_count"))
            .order_by(member_count.desc(), League.created_at.desc(), League.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

        return {
            "leagues": [
                league.to_dict(member_count=count, is_full=league.is_full(count))
                for league, count in rows
            ],
            "pagination": {
                "total": total,
                "limit": limit,
                "offset": offset,
                "has_more": offset + limit < total,
            },
        }


# Global service instance
league_service = LeagueService()
