from flask import Blueprint, jsonify, request

from models import db, Team, Notification, RecordNotFound, parse_flag

team_bp = Blueprint('team', __name__, url_prefix='/api/teams')


def _get_team(team_id: str) -> Team:
    team = Team.query.filter_by(team_id=team_id).first()
    if team is None:
        raise RecordNotFound(f'Team {team_id} not found')
    return team


@team_bp.route('/<team_id>/notifications')
def notifications(team_id):
    """Notification feed for a team, newest first."""
    team = _get_team(team_id)
    unread_only = parse_flag(request.args.get('unread'))
    items = Notification.for_team(team.team_id, unread_only=unread_only).limit(100).all()
    unread_count = Notification.query.filter_by(team_id=team.team_id, is_read=False).count()
    return jsonify({
        'teamId': team.team_id,
        'unreadCount': unread_count,
        'notifications': [note.to_dict() for note in items],
    })


@team_bp.route('/<team_id>/notifications/<int:notification_id>/read', methods=['POST'])
def mark_notification_read(team_id, notification_id):
    team = _get_team(team_id)
    note = Notification.query.filter_by(id=notification_id, team_id=team.team_id).first()
    if note is None:
        raise RecordNotFound(f'Notification {notification_id} not found')

    if not note.is_read:
        note.is_read = True
        db.session.commit()
    return jsonify(note.to_dict())
