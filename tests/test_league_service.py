import pytest

from app import db
from app.models import LeagueMember, MemberRole, MemberStatus
from app.services.league_service import league_service
from app.services.prediction_service import prediction_service
from app.services.race_service import race_service
from app.utils.errors import (
    Conflict,
    InvalidState,
    NotFound,
    PermissionDenied,
    ValidationError,
)


def test_create_league_makes_creator_admin(ctx, make):
    owner = make.user("owner")

    league = league_service.create_league({"name": "Tifosi Club"}, owner)

    assert league["slug"] == "tifosi-club"
    assert league["is_public"] is True
    assert league["user_role"] == MemberRole.ADMIN
    assert league["member_count"] == 1
    member = LeagueMember.query.filter_by(league_id=league["id"], user_id=owner).one()
    assert member.role == MemberRole.ADMIN


def test_slugs_are_unique_and_private_leagues_get_codes(ctx, make):
    owner = make.user("owner")

    first = league_service.create_league({"name": "Grid Walk"}, owner)
    second = league_service.create_league(
        {"name": "Grid  Walk!", "is_public": False}, owner
    )

    assert first["slug"] == "grid-walk"
    assert second["slug"] == "grid-walk-1"
    assert first.get("invite_code") is None
    assert len(second["invite_code"]) == 8


def test_short_name_is_rejected(ctx, make):
    with pytest.raises(ValidationError):
        league_service.create_league({"name": "F1"}, make.user())


def test_join_by_code_and_reject_duplicates(ctx, make):
    owner = make.user("owner")
    guest = make.user("guest")
    league = league_service.create_league({"name": "Private Box", "is_public": False}, owner)

    joined = league_service.join_league_by_code(guest, league["invite_code"].lower())
    assert joined["league_id"] == league["id"]
    assert joined["role"] == MemberRole.MEMBER

    with pytest.raises(Conflict):
        league_service.join_league_by_code(guest, league["invite_code"])
    with pytest.raises(NotFound):
        league_service.join_league_by_code(guest, "ZZZZZZZZ")


def test_private_league_cannot_be_joined_without_code(ctx, make):
    owner = make.user("owner")
    league = league_service.create_league({"name": "Secret Garage", "is_public": False}, owner)

    with pytest.raises(PermissionDenied):
        league_service.join_public_league(make.user("guest"), league["id"])


def test_full_league_rejects_new_members(ctx, make):
    owner = make.user("owner")
    league_id = make.league(owner, max_members=2)
    make.join(league_id, make.user("second"))

    with pytest.raises(InvalidState):
        league_service.join_public_league(make.user("third"), league_id)


def test_rejoin_reactivates_the_same_membership(ctx, make):
    owner = make.user("owner")
    guest = make.user("guest")
    league_id = make.league(owner)
    make.join(league_id, guest)
    original = LeagueMember.query.filter_by(league_id=league_id, user_id=guest).one()
    original_id = original.id

    league_service.leave_league(guest, league_id)
    assert db.session.get(LeagueMember, original_id).status == MemberStatus.INACTIVE

    result = league_service.join_public_league(guest, league_id)

    assert result["message"] == "You have rejoined the league"
    rows = LeagueMember.query.filter_by(league_id=league_id, user_id=guest).all()
    assert [row.id for row in rows] == [original_id]
    assert rows[0].status == MemberStatus.ACTIVE


def test_sole_admin_must_promote_before_leaving(ctx, make):
    owner = make.user("owner")
    guest = make.user("guest")
    league_id = make.league(owner)
    make.join(league_id, guest)

    with pytest.raises(InvalidState):
        league_service.leave_league(owner, league_id)

    league_service.change_member_role(league_id, guest, MemberRole.ADMIN, owner)
    league_service.leave_league(owner, league_id)

    ranking = league_service.get_league_ranking(league_id)
    assert [m["user_id"] for m in ranking["ranking"]] == [guest]


def test_role_changes_are_admin_only(ctx, make):
    owner = make.user("owner")
    guest = make.user("guest")
    league_id = make.league(owner)
    make.join(league_id, guest)

    with pytest.raises(PermissionDenied):
        league_service.change_member_role(league_id, owner, MemberRole.MEMBER, guest)
    with pytest.raises(InvalidState):
        league_service.change_member_role(league_id, owner, MemberRole.MEMBER, owner)
    with pytest.raises(ValidationError):
        league_service.change_member_role(league_id, guest, "owner", owner)


def test_banned_member_cannot_rejoin(ctx, make):
    owner = make.user("owner")
    guest = make.user("guest")
    league_id = make.league(owner)
    make.join(league_id, guest)

    league_service.ban_member(league_id, guest, owner)

    with pytest.raises(PermissionDenied):
        league_service.join_public_league(guest, league_id)


def test_switching_visibility_manages_invite_code(ctx, make):
    owner = make.user("owner")
    league_id = make.league(owner)

    private = league_service.update_league(league_id, {"is_public": False}, owner)
    assert len(private["invite_code"]) == 8

    regenerated = league_service.regenerate_invite_code(league_id, owner)
    assert regenerated["invite_code"] != private["invite_code"]

    public = league_service.update_league(league_id, {"is_public": True}, owner)
    assert public.get("invite_code") is None
    with pytest.raises(InvalidState):
        league_service.regenerate_invite_code(league_id, owner)


def test_deleted_league_disappears(ctx, make):
    owner = make.user("owner")
    league_id = make.league(owner)

    league_service.delete_league(league_id, owner)

    with pytest.raises(NotFound):
        league_service.get_league_by_id(league_id)
    assert league_service.get_user_leagues(owner) == []
    assert league_service.search_public_leagues()["leagues"] == []


def test_ranking_follows_scored_predictions(ctx, make, pilots):
    owner = make.user("owner")
    guest = make.user("guest")
    late = make.user("late")
    league_id = make.league(owner)
    make.join(league_id, guest)
    make.join(league_id, late)
    race_id = make.race()

    prediction_service.submit_prediction(
        guest, race_id, [{"pilot_id": pilots[0], "position": 1}], league_id=league_id
    )
    prediction_service.submit_prediction(
        owner, race_id, [{"pilot_id": pilots[0], "position": 2}], league_id=league_id
    )
    race_service.save_race_results(
        race_id,
        [
            {"pilot_id": pilots[0], "position": 1},
            {"pilot_id": pilots[1], "position": 2},
        ],
    )

    ranking = league_service.get_league_ranking(league_id)["ranking"]
    assert [(m["rank"], m["user_id"]) for m in ranking] == [
        (1, guest),
        (2, owner),
        (3, late),
    ]
    assert ranking[0]["total_points"] == 35
    assert ranking[1]["total_points"] == 5

    page = league_service.get_league_ranking(league_id, limit=1, offset=1)
    assert [m["rank"] for m in page["ranking"]] == [2]
    assert page["pagination"]["has_more"] is True

    stats = league_service.get_league_stats(league_id)
    assert stats["top_performer"]["user_id"] == guest
    assert stats["total_points"] == 40

    view = league_service.get_league_by_id(league_id, owner)
    assert view["user_rank"] == 2
    assert view["user_points"] == 5


def test_ban_rules_for_moderators_and_admins(ctx, make):
    owner = make.user("owner")
    co_admin = make.user("co_admin")
    moderator = make.user("moderator")
    member = make.user("member")
    league_id = make.league(owner)
    for user_id in (co_admin, moderator, member):
        make.join(league_id, user_id)
    league_service.change_member_role(league_id, co_admin, MemberRole.ADMIN, owner)
    league_service.change_member_role(league_id, moderator, MemberRole.MODERATOR, owner)

    with pytest.raises(PermissionDenied):
        league_service.ban_member(league_id, owner, moderator)
    with pytest.raises(PermissionDenied):
        league_service.ban_member(league_id, co_admin, owner)
    with pytest.raises(InvalidState):
        league_service.ban_member(league_id, moderator, moderator)
    with pytest.raises(NotFound):
        league_service.ban_member(league_id, moderator, make.user("outsider"))

    result = league_service.ban_member(league_id, member, moderator)

    assert result["user_id"] == member
    banned = LeagueMember.query.filter_by(league_id=league_id, user_id=member).one()
    assert banned.status == MemberStatus.BANNED
    admins = LeagueMember.query.filter_by(
        league_id=league_id, role=MemberRole.ADMIN, status=MemberStatus.ACTIVE
    ).count()
    assert admins == 2


def test_plain_member_cannot_ban(ctx, make):
    owner = make.user("owner")
    guest = make.user("guest")
    other = make.user("other")
    league_id = make.league(owner)
    make.join(league_id, guest)
    make.join(league_id, other)

    with pytest.raises(PermissionDenied):
        league_service.ban_member(league_id, other, guest)


def test_admin_can_demote_another_admin(ctx, make):
    owner = make.user("owner")
    guest = make.user("guest")
    league_id = make.league(owner)
    make.join(league_id, guest)
    league_service.change_member_role(league_id, guest, MemberRole.ADMIN, owner)

    result = league_service.change_member_role(league_id, owner, MemberRole.MEMBER, guest)

    assert result["role"] == MemberRole.MEMBER
    with pytest.raises(PermissionDenied):
        league_service.change_member_role(league_id, guest, MemberRole.MEMBER, owner)
