import os
from datetime import date, time

import pytest

os.environ['DATABASE_URL'] = 'sqlite:///:memory:'
os.environ['ADMIN_API_TOKEN'] = 'test-admin-token'

from app import app  # noqa: E402
from models import db, Team, Player, Match, MODE_CLASSIC, STAGE_LEAGUE  # noqa: E402

ADMIN_TOKEN = 'test-admin-token'

# 2026-01-01 falls on a Thursday, the default match day
THURSDAY = date(2026, 1, 1)


@pytest.fixture
def flask_app():
    """Create test application with in-memory SQLite database"""
    app.config['TESTING'] = True
    app.config['ADMIN_API_TOKEN'] = ADMIN_TOKEN
    app.config['LEAGUE_MIN_ROSTER_SIZE'] = 7
    app.config['LEAGUE_MATCH_WEEKDAY'] = 3
    app.config['LEAGUE_ROUND_INTERVAL_DAYS'] = 7
    app.config['DEFAULT_MATCH_INTERVAL_MINUTES'] = 60
    app.config['MAX_MATCHES_PER_DAY'] = 10

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(flask_app):
    """Test client"""
    return flask_app.test_client()


@pytest.fixture
def admin_headers():
    return {'X-Admin-Token': ADMIN_TOKEN}


@pytest.fixture
def make_team(flask_app):
    """Factory creating a committed team with ``players`` active players; returns its team_id"""

    def _make(name, players=7, is_active=True):
        team = Team(team_id=Team.next_team_id(), name=name, is_active=is_active)
        db.session.add(team)
        for number in range(1, players + 1):
            db.session.add(
                Player(name=f'{name} Player {number}', shirt_number=number, team_id=team.team_id)
            )
        db.session.commit()
        return team.team_id

    return _make


@pytest.fixture
def teams(make_team):
    """Four teams with full rosters"""
    return [make_team(f'Club {letter}') for letter in 'ABCD']


@pytest.fixture
def ten_teams(make_team):
    """Ten teams with full rosters, enough for a mini-league"""
    return [make_team(f'Mini {number:02d}') for number in range(1, 11)]


@pytest.fixture
def make_match(flask_app):
    """Factory creating a scheduled match between two teams; returns its id"""

    def _make(home, away, mode=MODE_CLASSIC, stage=STAGE_LEAGUE, round_number=1,
              match_date=THURSDAY, kickoff=time(16, 0), is_test=False):
        match = Match(
            home_team_id=home,
            away_team_id=away,
            date=match_date,
            time=kickoff,
            round_number=round_number,
            tournament_mode=mode,
            stage=stage,
            is_test=is_test,
        )
        db.session.add(match)
        db.session.commit()
        return match.id

    return _make


@pytest.fixture
def match(teams, make_match):
    """A scheduled CLASSIC match: Club A (home) v Club B (away)"""
    return make_match(teams[0], teams[1])
