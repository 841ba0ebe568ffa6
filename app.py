from dotenv import load_dotenv

# .env must be loaded before models reads LEAGUE_TIMEZONE
load_dotenv()

from datetime import date
import logging
import os

from flask import Flask, jsonify
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from models import (
    db,
    Team,
    Match,
    SeasonArchive,
    LeagueValidationError,
    RecordNotFound,
    RecordConflict,
    STATUS_SCHEDULED,
    STATUS_IN_PROGRESS,
    STATUS_COMPLETED,
    current_time,
)
from blueprints import admin_bp, public_bp, team_bp

app = Flask(__name__)

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

logging.basicConfig(
    level=os.environ.get('LOG_LEVEL', 'INFO').upper(),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)
app.logger.setLevel(os.environ.get('LOG_LEVEL', 'INFO').upper())


def _int_setting(name, default):
    raw = os.environ.get(name)
    return int(raw) if raw not in (None, '') else default


def _weekday_setting(raw):
    """Weekday number fixtures must start on (Monday=0); 'any' disables the check."""
    if raw is None or raw.strip() == '':
        return 3
    if raw.strip().lower() == 'any':
        return None
    return int(raw) % 7


# Configuration
app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'leaguedesk')
app.config['ADMIN_API_TOKEN'] = os.environ.get('ADMIN_API_TOKEN')
app.config['LEAGUE_TIMEZONE'] = os.environ.get('LEAGUE_TIMEZONE', 'Africa/Cairo')
app.config['LEAGUE_MIN_ROSTER_SIZE'] = _int_setting('LEAGUE_MIN_ROSTER_SIZE', 7)
app.config['LEAGUE_ROUND_INTERVAL_DAYS'] = _int_setting('LEAGUE_ROUND_INTERVAL_DAYS', 7)
app.config['LEAGUE_MATCH_WEEKDAY'] = _weekday_setting(os.environ.get('LEAGUE_MATCH_WEEKDAY'))
app.config['DEFAULT_MATCH_INTERVAL_MINUTES'] = _int_setting('DEFAULT_MATCH_INTERVAL_MINUTES', 60)
app.config['MAX_MATCHES_PER_DAY'] = _int_setting('MAX_MATCHES_PER_DAY', 10)
app.config['JSON_SORT_KEYS'] = False

# Database configuration - supports both local SQLite and remote PostgreSQL
DATABASE_URL = os.environ.get('DATABASE_URL')

if DATABASE_URL:
    # Heroku/Render PostgreSQL URL fix (postgres:// → postgresql://)
    if DATABASE_URL.startswith('postgres://'):
        DATABASE_URL = DATABASE_URL.replace('postgres://', 'postgresql://', 1)
    app.config['SQLALCHEMY_DATABASE_URI'] = DATABASE_URL
else:
    # Fallback to SQLite for local development
    default_sqlite_dir = os.path.join(BASE_DIR, 'instance')
    os.makedirs(default_sqlite_dir, exist_ok=True)
    sqlite_path = os.environ.get('SQLITE_PATH', os.path.join(default_sqlite_dir, 'league.db'))
    app.config['SQLALCHEMY_DATABASE_URI'] = f'sqlite:///{sqlite_path}'
    app.logger.warning('No DATABASE_URL found, using SQLite at %s', sqlite_path)

app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
app.config['SQLALCHEMY_ENGINE_OPTIONS'] = {
    'pool_pre_ping': True,
    'pool_recycle': 300,
}

db.init_app(app)

with app.app_context():
    db.create_all()
    app.logger.info('Database tables ready')

if not app.config['ADMIN_API_TOKEN']:
    app.logger.warning('ADMIN_API_TOKEN is not set; admin routes will answer 503')

# Register blueprints
app.register_blueprint(admin_bp)
app.register_blueprint(public_bp)
app.register_blueprint(team_bp)


@app.errorhandler(LeagueValidationError)
@app.errorhandler(RecordNotFound)
@app.errorhandler(RecordConflict)
def handle_league_error(error):
    """Domain errors abort the request and discard any pending writes."""
    db.session.rollback()
    app.logger.info('%s: %s', type(error).__name__, error)
    return jsonify({'error': str(error)}), error.status_code


@app.errorhandler(SQLAlchemyError)
def handle_database_error(error):
    db.session.rollback()
    app.logger.exception('Database error: %s', error)
    return jsonify({'error': 'A database error occurred; no changes were saved'}), 500


@app.errorhandler(HTTPException)
def handle_http_error(error):
    if error.code is None or error.code < 400:
        return error
    return jsonify({'error': error.description}), error.code


@app.route('/')
def index():
    """Service summary: team count, upcoming fixtures and the latest result."""
    today = date.today()
    current = Match.query.filter(Match.season_id.is_(None), Match.is_test.is_(False))

    upcoming_base = current.filter(Match.status == STATUS_SCHEDULED, Match.date >= today)
    next_fixture = upcoming_base.order_by(Match.date.asc(), Match.time.asc()).first()

    live_matches = current.filter(Match.status == STATUS_IN_PROGRESS).count()

    latest_result = (
        current.filter(Match.status == STATUS_COMPLETED)
        .order_by(Match.date.desc(), Match.time.desc())
        .first()
    )
    last_season = SeasonArchive.query.order_by(SeasonArchive.archived_at.desc()).first()

    return jsonify({
        'service': 'leaguedesk',
        'serverTime': current_time().isoformat(),
        'totalTeams': Team.query.filter_by(is_active=True).count(),
        'upcomingMatches': upcoming_base.count(),
        'liveMatches': live_matches,
        'nextFixture': next_fixture.to_dict() if next_fixture else None,
        'latestResult': latest_result.to_dict() if latest_result else None,
        'lastSeason': last_season.to_dict() if last_season else None,
    })


if __name__ == "__main__":
    app.run(debug=os.environ.get('FLASK_DEBUG') == '1', port=int(os.environ.get('PORT', 5000)))
