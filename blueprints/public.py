"""Public read-only routes: teams, fixtures, results and standings."""

from flask import Blueprint, jsonify, request
from sqlalchemy import or_
from sqlalchemy.orm import joinedload

from models import (
    db,
    Team,
    Match,
    LeagueValidationError,
    RecordNotFound,
    MODE_CLASSIC,
    TOURNAMENT_MODES,
    MATCH_STATUSES,
    parse_int,
    parse_flag,
)
from standings import ranked_standings, top_scorers

public_bp = Blueprint('public', __name__, url_prefix='/api')


def _mode_arg(default=None):
    mode = request.args.get('mode')
    if not mode:
        return default
    mode = mode.strip().upper()
    if mode not in TOURNAMENT_MODES:
        raise LeagueValidationError(f"mode must be one of {', '.join(TOURNAMENT_MODES)}")
    return mode


@public_bp.route('/teams')
def teams_listing():
    query = Team.query
    if not parse_flag(request.args.get('includeInactive')):
        query = query.filter_by(is_active=True)
    teams = query.options(joinedload(Team.players)).order_by(Team.name.asc()).all()
    return jsonify([team.to_dict() for team in teams])


@public_bp.route('/teams/<team_id>')
def team_detail(team_id):
    team = Team.query.filter_by(team_id=team_id).first()
    if team is None:
        raise RecordNotFound(f'Team {team_id} not found')

    payload = team.to_dict(include_players=True)
    payload['matches'] = [match.to_dict() for match in team.get_matches()]
    return jsonify(payload)


@public_bp.route('/matches')
def matches_listing():
    """Fixtures and results, filterable by mode, status, round, team and test flag."""
    query = Match.query.options(
        joinedload(Match.home_team), joinedload(Match.away_team), joinedload(Match.result)
    )

    if not parse_flag(request.args.get('includeArchived')):
        query = query.filter(Match.season_id.is_(None))
    query = query.filter(Match.is_test == parse_flag(request.args.get('isTest')))

    mode = _mode_arg()
    if mode:
        query = query.filter(Match.tournament_mode == mode)

    status = request.args.get('status')
    if status:
        if status not in MATCH_STATUSES:
            raise LeagueValidationError(f"status must be one of {', '.join(MATCH_STATUSES)}")
        query = query.filter(Match.status == status)

    round_number = parse_int(request.args.get('round'), 'round')
    if round_number is not None:
        query = query.filter(Match.round_number == round_number)

    team_id = request.args.get('teamId')
    if team_id:
        query = query.filter(or_(Match.home_team_id == team_id, Match.away_team_id == team_id))

    matches = query.order_by(Match.date.asc(), Match.time.asc(), Match.id.asc()).all()
    return jsonify([match.to_dict() for match in matches])


@public_bp.route('/matches/<int:match_id>')
def match_detail(match_id: int):
    match = db.session.get(Match, match_id)
    if match is None:
        raise RecordNotFound(f'Match {match_id} not found')
    return jsonify(match.to_dict())


@public_bp.route('/standings')
def standings_table():
    mode = _mode_arg(MODE_CLASSIC)
    is_test = parse_flag(request.args.get('isTest'))
    return jsonify({
        'tournamentMode': mode,
        'isTest': is_test,
        'standings': ranked_standings(mode, is_test),
    })


@public_bp.route('/stats/top-scorers')
def scorer_table():
    limit = parse_int(request.args.get('limit'), 'limit', default=20)
    if limit < 1:
        raise LeagueValidationError('limit must be at least 1')
    return jsonify(top_scorers(_mode_arg(), parse_flag(request.args.get('isTest')), limit=limit))
