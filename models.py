from datetime import datetime, date, time
import os

import pytz
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import or_
from sqlalchemy.orm import validates

db = SQLAlchemy()

LEAGUE_TZ = pytz.timezone(os.environ.get('LEAGUE_TIMEZONE', 'Africa/Cairo'))

MODE_CLASSIC = 'CLASSIC'
MODE_MINI_LEAGUE = 'MINI_LEAGUE'
TOURNAMENT_MODES = (MODE_CLASSIC, MODE_MINI_LEAGUE)

STATUS_SCHEDULED = 'scheduled'
STATUS_IN_PROGRESS = 'in_progress'
STATUS_COMPLETED = 'completed'
MATCH_STATUSES = (STATUS_SCHEDULED, STATUS_IN_PROGRESS, STATUS_COMPLETED)

STAGE_LEAGUE = 'league'
STAGE_QUALIFICATION = 'qualification'
STAGE_GRAND_FINAL = 'grand_final'
STAGE_SMALL_FINAL = 'small_final'
FINAL_STAGES = (STAGE_GRAND_FINAL, STAGE_SMALL_FINAL)

CARD_TYPES = ('yellow', 'red')


def current_time():
    return datetime.now(LEAGUE_TZ)


class LeagueValidationError(ValueError):
    """Input that can never succeed as submitted (reported as HTTP 400)."""

    status_code = 400


class RecordNotFound(LookupError):
    status_code = 404


class RecordConflict(RuntimeError):
    """Request clashes with the current state of the league (HTTP 409)."""

    status_code = 409


class Team(db.Model):
    __tablename__ = 'team'

    id = db.Column(db.Integer, primary_key=True)
    team_id = db.Column(db.String(20), unique=True, nullable=False)
    name = db.Column(db.String(100), unique=True, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=current_time)

    players = db.relationship('Player', backref='team', lazy=True, cascade='all, delete-orphan')
    notifications = db.relationship(
        'Notification', backref='team', lazy=True, cascade='all, delete-orphan'
    )

    def __repr__(self):  # pragma: no cover - debug helper
        return f"<Team {self.team_id} {self.name}>"

    @validates('name')
    def validate_name(self, key, value):
        return parse_text(value, 'Team name', required=True)

    @classmethod
    def next_team_id(cls) -> str:
        """Generate next available team identifier in TM0001 format."""
        last_team = cls.query.order_by(cls.id.desc()).first()
        if last_team and last_team.team_id and last_team.team_id.startswith('TM'):
            try:
                next_num = int(last_team.team_id[2:]) + 1
            except ValueError:
                next_num = cls.query.count() + 1
        else:
            next_num = 1
        return f"TM{next_num:04d}"

    @property
    def active_players(self):
        return [p for p in self.players if p.is_active]

    @property
    def roster_size(self) -> int:
        return len(self.active_players)

    def deactivate(self):
        self.is_active = False

    def notify(
        self,
        message: str,
        category: str = 'info',
        kind: str = 'general',
        context_type: str = None,
        context_ref: str = None,
        commit: bool = False,
    ):
        """Create an in-app notification entry for the team."""
        note = Notification(
            team_id=self.team_id,
            message=message,
            category=category,
            kind=kind,
            context_type=context_type,
            context_ref=context_ref,
        )
        db.session.add(note)
        if commit:
            db.session.commit()
        return note

    def get_matches(self, include_archived=False):
        query = Match.query.filter(
            or_(Match.home_team_id == self.team_id, Match.away_team_id == self.team_id)
        )
        if not include_archived:
            query = query.filter(Match.season_id.is_(None))
        return query.order_by(Match.date, Match.time).all()

    def to_dict(self, include_players=False) -> dict:
        payload = {
            'teamId': self.team_id,
            'name': self.name,
            'isActive': self.is_active,
            'rosterSize': self.roster_size,
        }
        if include_players:
            payload['players'] = [p.to_dict() for p in self.active_players]
        return payload


class Player(db.Model):
    __tablename__ = 'player'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    position = db.Column(db.String(30))
    shirt_number = db.Column(db.Integer)
    team_id = db.Column(db.String(20), db.ForeignKey('team.team_id'), nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=current_time)

    @validates('name')
    def validate_name(self, key, value):
        return parse_text(value, 'Player name', required=True)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'position': self.position,
            'shirtNumber': self.shirt_number,
            'teamId': self.team_id,
        }


class SeasonArchive(db.Model):
    """A closed season; its matches stay in the database, stamped with its id."""

    __tablename__ = 'season_archive'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    archived_at = db.Column(db.DateTime, default=current_time)
    summary = db.Column(db.JSON, default=dict)

    matches = db.relationship('Match', backref='season', lazy=True)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'archivedAt': self.archived_at.isoformat() if self.archived_at else None,
            'summary': self.summary or {},
        }


class Match(db.Model):
    __tablename__ = 'match'

    id = db.Column(db.Integer, primary_key=True)
    home_team_id = db.Column(db.String(20), db.ForeignKey('team.team_id'), nullable=False)
    away_team_id = db.Column(db.String(20), db.ForeignKey('team.team_id'), nullable=False)
    date = db.Column(db.Date, nullable=False)
    time = db.Column(db.Time, nullable=False)
    venue = db.Column(db.String(100))
    round_number = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(20), default=STATUS_SCHEDULED, nullable=False)
    tournament_mode = db.Column(db.String(20), default=MODE_CLASSIC, nullable=False)
    stage = db.Column(db.String(20), default=STAGE_LEAGUE, nullable=False)
    is_test = db.Column(db.Boolean, default=False, nullable=False)
    season_id = db.Column(db.Integer, db.ForeignKey('season_archive.id'))
    created_at = db.Column(db.DateTime, default=current_time)
    updated_at = db.Column(db.DateTime, default=current_time, onupdate=current_time)

    home_team = db.relationship('Team', foreign_keys=[home_team_id])
    away_team = db.relationship('Team', foreign_keys=[away_team_id])
    result = db.relationship(
        'MatchResult', back_populates='match', uselist=False, cascade='all, delete-orphan'
    )

    def __repr__(self):  # pragma: no cover - debug helper
        return f"<Match {self.id} {self.home_team_id} v {self.away_team_id} {self.status}>"

    @validates('away_team_id')
    def validate_away_team(self, key, value):
        if value and value == self.home_team_id:
            raise LeagueValidationError('A team cannot play against itself')
        return value

    @property
    def is_final(self) -> bool:
        return self.stage in FINAL_STAGES

    @property
    def is_archived(self) -> bool:
        return self.season_id is not None

    @property
    def kickoff(self) -> datetime:
        return datetime.combine(self.date, self.time)

    @property
    def versus_display(self):
        home = self.home_team.name if self.home_team else self.home_team_id
        away = self.away_team.name if self.away_team else self.away_team_id
        return f"{home} vs {away}"

    def involves(self, team_id) -> bool:
        return team_id in (self.home_team_id, self.away_team_id)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'homeTeamId': self.home_team_id,
            'awayTeamId': self.away_team_id,
            'homeTeamName': self.home_team.name if self.home_team else None,
            'awayTeamName': self.away_team.name if self.away_team else None,
            'date': self.date.isoformat(),
            'time': self.time.strftime('%H:%M'),
            'venue': self.venue,
            'round': self.round_number,
            'status': self.status,
            'tournamentMode': self.tournament_mode,
            'stage': self.stage,
            'isFinal': self.is_final,
            'isTest': self.is_test,
            'seasonId': self.season_id,
            'result': self.result.to_dict() if self.result else None,
        }


class MatchResult(db.Model):
    """Final score of a match. One row per match, enforced by the schema."""

    __tablename__ = 'match_result'

    id = db.Column(db.Integer, primary_key=True)
    match_id = db.Column(db.Integer, db.ForeignKey('match.id'), nullable=False, unique=True)
    home_score = db.Column(db.Integer, nullable=False)
    away_score = db.Column(db.Integer, nullable=False)
    home_penalties = db.Column(db.Integer)
    away_penalties = db.Column(db.Integer)
    home_scorers = db.Column(db.JSON, default=list)
    away_scorers = db.Column(db.JSON, default=list)
    home_cards = db.Column(db.JSON, default=list)
    away_cards = db.Column(db.JSON, default=list)
    created_at = db.Column(db.DateTime, default=current_time)
    updated_at = db.Column(db.DateTime, default=current_time, onupdate=current_time)

    match = db.relationship('Match', back_populates='result')

    @property
    def has_shootout(self) -> bool:
        return self.home_penalties is not None and self.away_penalties is not None

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'matchId': self.match_id,
            'homeScore': self.home_score,
            'awayScore': self.away_score,
            'homePenalties': self.home_penalties,
            'awayPenalties': self.away_penalties,
            'homeScorers': self.home_scorers or [],
            'awayScorers': self.away_scorers or [],
            'homeCards': self.home_cards or [],
            'awayCards': self.away_cards or [],
        }


class Standing(db.Model):
    """Aggregated record of one team within a tournament mode.

    Rows are a projection of the match results and may be dropped and rebuilt
    at any time.
    """

    __tablename__ = 'standing'

    id = db.Column(db.Integer, primary_key=True)
    team_id = db.Column(db.String(20), db.ForeignKey('team.team_id'), nullable=False)
    tournament_mode = db.Column(db.String(20), nullable=False)
    is_test = db.Column(db.Boolean, default=False, nullable=False)
    played = db.Column(db.Integer, default=0, nullable=False)
    won = db.Column(db.Integer, default=0, nullable=False)
    drawn = db.Column(db.Integer, default=0, nullable=False)
    lost = db.Column(db.Integer, default=0, nullable=False)
    goals_for = db.Column(db.Integer, default=0, nullable=False)
    goals_against = db.Column(db.Integer, default=0, nullable=False)
    points = db.Column(db.Integer, default=0, nullable=False)
    shootout_wins = db.Column(db.Integer, default=0, nullable=False)
    shootout_losses = db.Column(db.Integer, default=0, nullable=False)
    updated_at = db.Column(db.DateTime, default=current_time, onupdate=current_time)

    __table_args__ = (
        db.UniqueConstraint('team_id', 'tournament_mode', 'is_test', name='unique_team_standing'),
    )

    team = db.relationship('Team')

    @property
    def goal_difference(self) -> int:
        return self.goals_for - self.goals_against

    @classmethod
    def get_or_create(cls, team_id: str, tournament_mode: str, is_test: bool) -> 'Standing':
        row = cls.query.filter_by(
            team_id=team_id, tournament_mode=tournament_mode, is_test=is_test
        ).first()
        if row is None:
            row = cls(
                team_id=team_id,
                tournament_mode=tournament_mode,
                is_test=is_test,
                played=0,
                won=0,
                drawn=0,
                lost=0,
                goals_for=0,
                goals_against=0,
                points=0,
                shootout_wins=0,
                shootout_losses=0,
            )
            db.session.add(row)
        return row

    def to_dict(self) -> dict:
        return {
            'teamId': self.team_id,
            'teamName': self.team.name if self.team else None,
            'tournamentMode': self.tournament_mode,
            'isTest': self.is_test,
            'played': self.played,
            'won': self.won,
            'drawn': self.drawn,
            'lost': self.lost,
            'goalsFor': self.goals_for,
            'goalsAgainst': self.goals_against,
            'goalDifference': self.goal_difference,
            'points': self.points,
            'shootoutWins': self.shootout_wins,
            'shootoutLosses': self.shootout_losses,
        }


class Notification(db.Model):
    """In-app notifications surfaced to a team."""

    __tablename__ = 'notification'

    id = db.Column(db.Integer, primary_key=True)
    team_id = db.Column(db.String(20), db.ForeignKey('team.team_id'), nullable=False)
    message = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(40), default='info')
    kind = db.Column(db.String(40), default='general')
    context_type = db.Column(db.String(40))  # e.g. match, season
    context_ref = db.Column(db.String(40))
    is_read = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=current_time)

    def __repr__(self):  # pragma: no cover - debug helper
        return f"<Notification {self.id} team={self.team_id} read={self.is_read}>"

    @classmethod
    def for_team(cls, team_id: str, unread_only: bool = False):
        query = cls.query.filter_by(team_id=team_id)
        if unread_only:
            query = query.filter_by(is_read=False)
        return query.order_by(cls.created_at.desc(), cls.id.desc())

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'teamId': self.team_id,
            'message': self.message,
            'category': self.category,
            'kind': self.kind,
            'contextType': self.context_type,
            'contextRef': self.context_ref,
            'isRead': self.is_read,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }


def parse_date(value, field='date') -> date:
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value).strip(), '%Y-%m-%d').date()
    except (TypeError, ValueError):
        raise LeagueValidationError(f'{field} must use the format YYYY-MM-DD')


def parse_time(value, field='time') -> time:
    if isinstance(value, time):
        return value
    try:
        return datetime.strptime(str(value).strip(), '%H:%M').time()
    except (TypeError, ValueError):
        raise LeagueValidationError(f'{field} must use the format HH:MM')


def parse_int(value, field, default=None) -> int:
    if value is None or value == '':
        return default
    if isinstance(value, bool):
        raise LeagueValidationError(f'{field} must be a whole number')
    try:
        return int(str(value).strip())
    except ValueError:
        raise LeagueValidationError(f'{field} must be a whole number')


def parse_flag(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {'1', 'true', 'yes', 'on'}
    return bool(value)


def parse_text(value, field, required=False):
    """Stripped text value, or None when an optional value is absent or blank."""
    if value is None:
        value = ''
    if not isinstance(value, str):
        raise LeagueValidationError(f'{field} must be text')
    value = value.strip()
    if not value and required:
        raise LeagueValidationError(f'{field} is required')
    return value or None
