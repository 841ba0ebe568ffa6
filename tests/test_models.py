"""Model tests: identifiers, validation, constraints and helpers."""

from datetime import date, time

import pytest
from sqlalchemy.exc import IntegrityError

from conftest import THURSDAY
from models import (
    db,
    Team,
    Player,
    Match,
    MatchResult,
    Standing,
    Notification,
    LeagueValidationError,
    MODE_CLASSIC,
    parse_date,
    parse_time,
    parse_int,
    parse_flag,
)


class TestTeamModel:

    def test_next_team_id_starts_at_one(self, flask_app):
        assert Team.next_team_id() == 'TM0001'

    def test_next_team_id_follows_last(self, flask_app, teams):
        assert Team.next_team_id() == 'TM0005'

    def test_blank_name_rejected(self, flask_app):
        with pytest.raises(LeagueValidationError):
            Team(team_id='TM0001', name='   ')

    def test_roster_counts_active_players_only(self, flask_app, make_team):
        team_id = make_team('Roster Club', players=8)
        team = Team.query.filter_by(team_id=team_id).one()
        team.players[0].is_active = False
        db.session.commit()

        assert team.roster_size == 7
        assert team.to_dict()['rosterSize'] == 7

    def test_notify_creates_notification(self, flask_app, teams):
        team = Team.query.filter_by(team_id=teams[0]).one()
        note = team.notify('Pitch changed', category='warning', commit=True)

        stored = Notification.query.filter_by(team_id=teams[0]).one()
        assert stored.id == note.id
        assert stored.category == 'warning'
        assert stored.is_read is False

    def test_get_matches_excludes_archived(self, flask_app, teams, make_match):
        kept = make_match(teams[0], teams[1])
        archived = make_match(teams[1], teams[0])
        db.session.get(Match, archived).season_id = 99
        db.session.commit()

        team = Team.query.filter_by(team_id=teams[0]).one()
        assert [m.id for m in team.get_matches()] == [kept]
        assert len(team.get_matches(include_archived=True)) == 2


class TestMatchModel:

    def test_team_cannot_play_itself(self, flask_app, teams):
        with pytest.raises(LeagueValidationError):
            Match(home_team_id=teams[0], away_team_id=teams[0], date=THURSDAY, time=time(16, 0), round_number=1)

    def test_defaults_and_dict(self, flask_app, teams, match):
        stored = db.session.get(Match, match)
        data = stored.to_dict()

        assert stored.status == 'scheduled'
        assert stored.is_final is False
        assert data['date'] == '2026-01-01'
        assert data['time'] == '16:00'
        assert data['homeTeamName'] == 'Club A'
        assert data['result'] is None
        assert stored.versus_display == 'Club A vs Club B'

    def test_one_result_per_match(self, flask_app, match):
        db.session.add(MatchResult(match_id=match, home_score=1, away_score=0))
        db.session.commit()
        db.session.add(MatchResult(match_id=match, home_score=2, away_score=0))
        with pytest.raises(IntegrityError):
            db.session.commit()
        db.session.rollback()


class TestStandingModel:

    def test_get_or_create_starts_at_zero(self, flask_app, teams):
        row = Standing.get_or_create(teams[0], MODE_CLASSIC, False)
        assert (row.played, row.points, row.shootout_wins) == (0, 0, 0)
        db.session.commit()
        assert Standing.get_or_create(teams[0], MODE_CLASSIC, False).id == row.id

    def test_one_row_per_team_mode_and_scope(self, flask_app, teams):
        db.session.add(Standing(team_id=teams[0], tournament_mode=MODE_CLASSIC, is_test=False))
        db.session.add(Standing(team_id=teams[0], tournament_mode=MODE_CLASSIC, is_test=True))
        db.session.commit()

        db.session.add(Standing(team_id=teams[0], tournament_mode=MODE_CLASSIC, is_test=False))
        with pytest.raises(IntegrityError):
            db.session.commit()
        db.session.rollback()


class TestParsers:

    def test_parse_date(self):
        assert parse_date('2026-03-05') == date(2026, 3, 5)
        with pytest.raises(LeagueValidationError, match='startDate'):
            parse_date('05-03-2026', 'startDate')
        with pytest.raises(LeagueValidationError):
            parse_date(None)

    def test_parse_time(self):
        assert parse_time('07:45') == time(7, 45)
        with pytest.raises(LeagueValidationError):
            parse_time('25:00')

    def test_parse_int(self):
        assert parse_int('12', 'n') == 12
        assert parse_int(None, 'n', default=3) == 3
        with pytest.raises(LeagueValidationError):
            parse_int(True, 'n')

    @pytest.mark.parametrize('value, expected', [
        ('true', True), ('1', True), ('Yes', True), ('false', False), ('', False), (None, False), (True, True),
    ])
    def test_parse_flag(self, value, expected):
        assert parse_flag(value) is expected


class TestPlayerModel:

    def test_player_dict(self, flask_app, teams):
        player = Player.query.filter_by(team_id=teams[0], shirt_number=1).one()
        assert player.to_dict()['name'] == 'Club A Player 1'
        assert player.to_dict()['teamId'] == teams[0]
