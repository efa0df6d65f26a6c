#!/usr/bin/env python3
"""
F1 Predictions Management CLI

This script provides command-line management functionality for the F1 Predictions application.
"""

import logging

import click
from flask.cli import with_appcontext
from sqlalchemy.exc import SQLAlchemyError

from app import create_app, db
from app.models import League, Pilot, Prediction, Race, RaceStatus, User
from app.seeds.pilots import seed_pilots
from app.services.dashboard_service import dashboard_service
from app.services.race_service import race_service
from app.services.scoring_service import scoring_service
from app.utils.cache_utils import get_cache_stats
from app.utils.errors import ServiceError
from app.utils.timezone_utils import convert_to_app_timezone, get_utc_time

app = create_app()


@click.group()
def cli():
    """F1 Predictions Management CLI"""
    pass


# Database Commands
@cli.group()
def db_cmd():
    """Database commands"""
    pass


@db_cmd.command("init")
@with_appcontext
def init_db():
    """Initialize database tables"""
    try:
        db.create_all()
        click.echo("✅ Database tables created successfully!")
    except SQLAlchemyError as e:
        click.echo(f"❌ Error initializing database: {str(e)}")
        logging.error(f"Database initialization failed: {e}")


@db_cmd.command()
@with_appcontext
def reset():
    """⚠️  DANGER: Drop and recreate all tables"""
    if not click.confirm("This will DELETE ALL DATA. Are you sure?"):
        click.echo("Cancelled.")
        return

    try:
        db.drop_all()
        db.create_all()
        click.echo("✅ Database reset successfully!")
    except SQLAlchemyError as e:
        click.echo(f"❌ Error resetting database: {str(e)}")
        logging.error(f"Database reset failed: {e}")


# Seed Commands
@cli.group()
def seed():
    """Seed reference data"""
    pass


@seed.command()
@with_appcontext
def pilots():
    """Insert the current driver line-up"""
    try:
        created, existing = seed_pilots()
        click.echo(f"✅ Pilots seed: {created} created, {existing} already present")
    except SQLAlchemyError as e:
        db.session.rollback()
        click.echo(f"❌ Database error seeding pilots: {str(e)}")
        logging.error(f"Pilot seed failed - SQL error: {e}")


# User Commands
@cli.group()
def user():
    """User management commands"""
    pass


@user.command()
@click.argument("username")
@click.argument("email")
@click.argument("password")
@click.option("--display-name", help="Display name")
@with_appcontext
def create_admin(username, email, password, display_name=None):
    """Create an admin user"""
    existing = User.query.filter(
        (User.username == username) | (User.email == email.lower())
    ).first()

    if existing:
        click.echo(
            f"❌ User with username '{username}' or email '{email}' already exists!"
        )
        return

    user = User(
        username=username,
        email=email.lower(),
        is_active=True,
        is_admin=True,
    )
    user.set_display_name(display_name)
    user.set_password(password)

    try:
        db.session.add(user)
        db.session.commit()
        click.echo(f"✅ Created admin user '{username}' ({email})")
    except SQLAlchemyError as e:
        db.session.rollback()
        click.echo(f"❌ Error creating user: {str(e)}")
        logging.error(f"Admin creation failed - SQL error: {e}")


# Race Commands
@cli.group()
def race():
    """Race management commands"""
    pass


@race.command("list")
@click.option("--season", type=int, help="Season year (default: current year)")
@with_appcontext
def list_races(season):
    """List the races of a season"""
    season = season or get_utc_time().year
    races = Race.get_by_season(season)

    if not races:
        click.echo(f"No races found for {season}.")
        return

    click.echo(f"Races {season}:")
    for r in races:
        local_date = convert_to_app_timezone(r.race_date)
        click.echo(
            f"  [{r.id}] R{r.round:02d} {r.name} - {local_date:%Y-%m-%d %H:%M} ({r.status})"
        )


@race.command("status")
@click.argument("race_id", type=int)
@click.argument("new_status", type=click.Choice(RaceStatus.ALL))
@with_appcontext
def set_status(race_id, new_status):
    """Move a race to a new status"""
    try:
        result = race_service.update_race_status(race_id, new_status)
        click.echo(f"✅ {result['name']} is now {result['status']}")
    except ServiceError as e:
        click.echo(f"❌ {e.message}")


@race.command()
@click.argument("race_id", type=int)
@with_appcontext
def rescore(race_id):
    """Recompute the scores of every prediction for a completed race"""
    try:
        summary = scoring_service.score_race(race_id)
    except ServiceError as e:
        click.echo(f"❌ {e.message}")
        return

    click.echo(
        f"✅ Scored {summary['predictions_scored']} predictions, "
        f"{summary['leagues_updated']} leagues updated"
    )


# Stats Commands
@cli.group()
def stats():
    """Statistics commands"""
    pass


@stats.command()
@with_appcontext
def recalc():
    """Rebuild league aggregates and user dashboard stats"""
    leagues = League.query.filter(League.deleted_at.is_(None)).all()
    for league in leagues:
        scoring_service.recalculate_league(league.id)
    click.echo(f"🏆 Recalculated {len(leagues)} leagues")

    users = User.query.filter_by(is_active=True).all()
    for u in users:
        dashboard_service.calculate_and_save_user_stats(u.id)
    click.echo(f"👥 Recalculated stats for {len(users)} users")


# Info Commands
@cli.command()
@with_appcontext
def status():
    """Show application status"""
    click.echo("🏁 F1 Predictions Application Status")
    click.echo("=" * 40)

    try:
        db.session.execute(db.text("SELECT 1"))
        click.echo("✅ Database: Connected")
    except SQLAlchemyError as e:
        click.echo(f"❌ Database: Error - {str(e)}")
        return

    cache_stats = get_cache_stats()
    click.echo(f"🗄️  Cache: {cache_stats['type']} (timeout {cache_stats['timeout']}s)")

    next_race = Race.get_next_race()
    if next_race:
        click.echo(
            f"✅ Next Race: {next_race.name} (R{next_race.round}, {next_race.season})"
        )
    else:
        click.echo("⚠️  Next Race: None scheduled")

    user_count = User.query.filter_by(is_active=True).count()
    click.echo(f"👥 Active Users: {user_count}")

    league_count = League.query.filter(League.deleted_at.is_(None)).count()
    click.echo(f"🏆 Active Leagues: {league_count}")

    click.echo(f"🏎️  Pilots: {Pilot.query.filter_by(is_active=True).count()}")
    click.echo(f"📝 Predictions: {Prediction.query.count()}")


if __name__ == "__main__":
    with app.app_context():
        cli()
