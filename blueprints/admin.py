"""Back-office routes: registration, scheduling, results and season rollover."""

from flask import Blueprint, current_app, jsonify, request

from models import (
    db,
    Team,
    Player,
    Match,
    LeagueValidationError,
    RecordNotFound,
    RecordConflict,
    TOURNAMENT_MODES,
    STATUS_SCHEDULED,
    STATUS_IN_PROGRESS,
    STATUS_COMPLETED,
    parse_date,
    parse_time,
    parse_int,
    parse_flag,
    parse_text,
)
from blueprints.auth import require_admin, json_body
from scheduling import (
    build_time_policy,
    generate_fixtures,
    generate_mini_league_finals,
    mini_league_state,
)
from standings import process_result, rebuild_standings
from seasons import end_season

admin_bp = Blueprint('admin', __name__, url_prefix='/api/admin')


def _get_team(team_id: str) -> Team:
    team = Team.query.filter_by(team_id=team_id).first()
    if team is None:
        raise RecordNotFound(f'Team {team_id} not found')
    return team


def _build_player(entry, team_id: str) -> Player:
    if isinstance(entry, str):
        entry = {'name': entry}
    if not isinstance(entry, dict):
        raise LeagueValidationError('Each player must be a name or an object with a name')
    return Player(
        name=entry.get('name'),
        position=parse_text(entry.get('position'), 'position'),
        shirt_number=parse_int(entry.get('shirtNumber'), 'shirtNumber'),
        team_id=team_id,
    )


@admin_bp.route('/teams', methods=['POST'])
@require_admin
def register_team():
    """Register a team, optionally with its initial roster."""
    payload = json_body()
    name = parse_text(payload.get('name'), 'Team name', required=True)
    if Team.query.filter(db.func.lower(Team.name) == name.lower()).first():
        raise RecordConflict(f'A team named "{name}" already exists')

    players = payload.get('players') or []
    if not isinstance(players, list):
        raise LeagueValidationError('players must be a list')

    team = Team(team_id=Team.next_team_id(), name=name, is_active=True)
    db.session.add(team)
    for entry in players:
        db.session.add(_build_player(entry, team.team_id))
    db.session.flush()

    team.notify(f'{team.name} registered with Team ID {team.team_id}.', category='success', kind='registration')
    db.session.commit()

    current_app.logger.info('Registered team %s (%s) with %d players', team.team_id, team.name, len(players))
    return jsonify(team.to_dict(include_players=True)), 201


@admin_bp.route('/teams/<team_id>/players', methods=['POST'])
@require_admin
def add_player(team_id):
    team = _get_team(team_id)
    if not team.is_active:
        raise RecordConflict('Players cannot be added to an inactive team')

    player = _build_player(json_body(), team.team_id)
    db.session.add(player)
    db.session.commit()
    current_app.logger.info('Added player %s to %s', player.name, team.team_id)
    return jsonify(player.to_dict()), 201


@admin_bp.route('/teams/<team_id>/players/<int:player_id>', methods=['DELETE'])
@require_admin
def remove_player(team_id, player_id):
    """Soft-remove a player; the row stays for historic scorer lists."""
    team = _get_team(team_id)
    player = Player.query.filter_by(id=player_id, team_id=team.team_id).first()
    if player is None or not player.is_active:
        raise RecordNotFound(f'Player {player_id} not found in team {team_id}')

    player.is_active = False
    db.session.commit()
    current_app.logger.info('Removed player %s from %s', player.id, team.team_id)
    return jsonify(team.to_dict(include_players=True))


@admin_bp.route('/teams/<team_id>/deactivate', methods=['POST'])
@require_admin
def deactivate_team(team_id):
    team = _get_team(team_id)
    team.deactivate()
    db.session.commit()
    current_app.logger.info('Deactivated team %s', team.team_id)
    return jsonify(team.to_dict())


@admin_bp.route('/matches/generate', methods=['POST'])
@require_admin
def generate_matches():
    """Generate the fixture list for a mode.

    Body: ``mode``, ``teamIds``, ``startDate``, ``time``, ``matchesPerDay``
    (CLASSIC only), ``timePolicy`` (``interval`` | ``explicit``),
    ``intervalMinutes``, ``times``, ``isTest``, ``venue``.
    """
    payload = json_body()
    mode = (parse_text(payload.get('mode'), 'mode') or '').upper()
    if mode not in TOURNAMENT_MODES:
        raise LeagueValidationError(f"mode must be one of {', '.join(TOURNAMENT_MODES)}")

    start_date = parse_date(payload.get('startDate'), 'startDate')
    times = payload.get('times')
    if times is not None and not isinstance(times, list):
        raise LeagueValidationError('times must be a list of HH:MM values')
    policy = build_time_policy(
        payload.get('timePolicy'),
        parse_time(payload.get('time') or '16:00', 'time'),
        interval_minutes=parse_int(payload.get('intervalMinutes'), 'intervalMinutes'),
        times=[parse_time(value, 'times') for value in times or []],
    )

    matches = generate_fixtures(
        mode,
        payload.get('teamIds'),
        start_date,
        policy,
        matches_per_day=parse_int(payload.get('matchesPerDay'), 'matchesPerDay'),
        is_test=parse_flag(payload.get('isTest')),
        venue=parse_text(payload.get('venue'), 'venue'),
    )
    return jsonify({
        'mode': mode,
        'created': len(matches),
        'rounds': max(m.round_number for m in matches),
        'matches': [m.to_dict() for m in matches],
    }), 201


@admin_bp.route('/mini-league/status')
@require_admin
def mini_league_status():
    return jsonify(mini_league_state(parse_flag(request.args.get('isTest'))))


@admin_bp.route('/matches/generate-finals', methods=['POST'])
@require_admin
def generate_finals():
    """Create the mini-league grand and small finals once qualification is complete."""
    payload = json_body()
    if not payload.get('finalDate'):
        raise LeagueValidationError('finalDate is required')
    small_final_time = payload.get('smallFinalTime')

    finals = generate_mini_league_finals(
        parse_date(payload.get('finalDate'), 'finalDate'),
        parse_time(payload.get('time') or '18:00', 'time'),
        small_final_time=parse_time(small_final_time, 'smallFinalTime') if small_final_time else None,
        is_test=parse_flag(payload.get('isTest')),
        venue=parse_text(payload.get('venue'), 'venue'),
    )
    return jsonify({'created': len(finals), 'matches': [m.to_dict() for m in finals]}), 201


@admin_bp.route('/matches/<int:match_id>/status', methods=['POST'])
@require_admin
def update_match_status(match_id):
    """Mark a scheduled match as live or revert it to scheduled."""
    match = db.session.get(Match, match_id)
    if match is None:
        raise RecordNotFound(f'Match {match_id} not found')

    new_status = (parse_text(json_body().get('status'), 'status') or '').lower()
    if new_status not in {STATUS_SCHEDULED, STATUS_IN_PROGRESS}:
        raise LeagueValidationError(
            f"status must be '{STATUS_SCHEDULED}' or '{STATUS_IN_PROGRESS}'; "
            'matches are completed by submitting a result'
        )
    if match.status == STATUS_COMPLETED:
        raise RecordConflict('Completed matches cannot change status')
    if match.is_archived:
        raise RecordConflict('Archived matches cannot change status')

    match.status = new_status
    db.session.commit()
    current_app.logger.info('Match %s (%s) is now %s', match.id, match.versus_display, new_status)
    return jsonify(match.to_dict())


@admin_bp.route('/results', methods=['POST'])
@require_admin
def submit_result():
    payload = json_body()
    if payload.get('matchId') is None:
        raise LeagueValidationError('matchId is required')
    result = process_result(payload.get('matchId'), payload)
    return jsonify(result.match.to_dict()), 201


@admin_bp.route('/standings/rebuild', methods=['POST'])
@require_admin
def rebuild():
    """Replay every current-season result into fresh standings rows."""
    payload = json_body()
    mode = payload.get('mode')
    if mode is not None:
        mode = str(mode).strip().upper()
        if mode not in TOURNAMENT_MODES:
            raise LeagueValidationError(f"mode must be one of {', '.join(TOURNAMENT_MODES)}")
    is_test = payload.get('isTest')
    report = rebuild_standings(
        tournament_mode=mode,
        is_test=None if is_test is None else parse_flag(is_test),
        dry_run=parse_flag(payload.get('dryRun')),
    )
    return jsonify(report)


@admin_bp.route('/seasons/end', methods=['POST'])
@require_admin
def close_season():
    archive = end_season(json_body().get('name'))
    return jsonify(archive.to_dict()), 201
