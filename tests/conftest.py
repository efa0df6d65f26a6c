from contextlib import nullcontext
from datetime import timedelta

import pytest
from flask import has_app_context

from app import create_app, db
from app.models import Pilot, Race, RaceStatus, User
from app.seeds.pilots import seed_pilots
from app.services.league_service import league_service
from app.utils.timezone_utils import get_utc_time

PASSWORD = "Password123"


class Factory:
    """Creates rows and returns their ids so they are usable across app contexts"""

    def __init__(self, app):
        self.app = app
        self._races = 0

    def _context(self):
        if has_app_context():
            return nullcontext()
        return self.app.app_context()

    def user(self, username="alice", is_admin=False, password=PASSWORD):
        with self._context():
            user = User(
                username=username,
                email=f"{username}@example.com",
                is_admin=is_admin,
            )
            user.set_password(password)
            db.session.add(user)
            db.session.commit()
            return user.id

    def headers(self, user_id):
        with self._context():
            token = db.session.get(User, user_id).generate_auth_token()
        return {"Authorization": f"Bearer {token}"}

    def pilots(self, count=6):
        with self._context():
            seed_pilots()
            pilots = Pilot.query.order_by(Pilot.id.asc()).limit(count).all()
            return [pilot.id for pilot in pilots]

    def race(self, days_ahead=7, status=RaceStatus.SCHEDULED, season=2026, **fields):
        self._races += 1
        with self._context():
            race = Race(
                name=fields.pop("name", f"Grand Prix {self._races}"),
                circuit=fields.pop("circuit", f"Circuit {self._races}"),
                country=fields.pop("country", "Spain"),
                round=fields.pop("round", self._races),
                season=season,
                race_date=get_utc_time() + timedelta(days=days_ahead),
                status=status,
                **fields,
            )
            db.session.add(race)
            db.session.commit()
            return race.id

    def league(self, creator_id, name="Paddock Club", is_public=True, **data):
        with self._context():
            league = league_service.create_league(
                dict(data, name=name, is_public=is_public), creator_id
            )
            return league["id"]

    def join(self, league_id, user_id):
        with self._context():
            return league_service.join_public_league(user_id, league_id)


@pytest.fixture
def app():
    app = create_app("testing")
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    """Application context for service level tests"""
    with app.app_context():
        yield app
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make(app):
    return Factory(app)


@pytest.fixture
def pilots(make):
    return make.pilots()
