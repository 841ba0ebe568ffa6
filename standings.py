"""Result processing and the standings table.

Standings rows are updated incrementally as results arrive, and can always be
rebuilt by replaying every match result of the current season through the
same arithmetic (``project_standings``).
"""

from collections import Counter
from dataclasses import dataclass, fields

from flask import current_app

from models import (
    db,
    Match,
    MatchResult,
    Standing,
    LeagueValidationError,
    RecordNotFound,
    RecordConflict,
    STATUS_COMPLETED,
    CARD_TYPES,
    parse_text,
)

POINTS_WIN = 3
POINTS_SHOOTOUT_WIN = 2
POINTS_SHOOTOUT_LOSS = 1
POINTS_DRAW = 1
POINTS_LOSS = 0


@dataclass
class StandingLine:
    team_id: str
    played: int = 0
    won: int = 0
    drawn: int = 0
    lost: int = 0
    goals_for: int = 0
    goals_against: int = 0
    points: int = 0
    shootout_wins: int = 0
    shootout_losses: int = 0

    @property
    def goal_difference(self) -> int:
        return self.goals_for - self.goals_against

    @classmethod
    def from_row(cls, row: Standing) -> 'StandingLine':
        return cls(**{f.name: getattr(row, f.name) for f in fields(cls)})

    def counters(self) -> tuple:
        return tuple(getattr(self, f.name) for f in fields(self) if f.name != 'team_id')

    def to_dict(self, team_name=None) -> dict:
        return {
            'teamId': self.team_id,
            'teamName': team_name,
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


def apply_score(row, scored: int, conceded: int, shootout_for=None, shootout_against=None) -> None:
    """Add one match to a Standing row or a StandingLine. Counters only grow."""
    row.played += 1
    row.goals_for += scored
    row.goals_against += conceded

    if scored > conceded:
        row.won += 1
        row.points += POINTS_WIN
    elif scored < conceded:
        row.lost += 1
        row.points += POINTS_LOSS
    else:
        row.drawn += 1
        if shootout_for is None or shootout_against is None or shootout_for == shootout_against:
            row.points += POINTS_DRAW
        elif shootout_for > shootout_against:
            row.shootout_wins += 1
            row.points += POINTS_SHOOTOUT_WIN
        else:
            row.shootout_losses += 1
            row.points += POINTS_SHOOTOUT_LOSS


def apply_result(home_row, away_row, result: MatchResult) -> None:
    apply_score(
        home_row, result.home_score, result.away_score,
        result.home_penalties, result.away_penalties,
    )
    apply_score(
        away_row, result.away_score, result.home_score,
        result.away_penalties, result.home_penalties,
    )


def project_standings(matches_with_results) -> dict[str, StandingLine]:
    """Pure replay of (match, result) pairs; pairs without a result are skipped."""
    lines: dict[str, StandingLine] = {}
    for match, result in matches_with_results:
        if result is None:
            continue
        home = lines.setdefault(match.home_team_id, StandingLine(match.home_team_id))
        away = lines.setdefault(match.away_team_id, StandingLine(match.away_team_id))
        apply_result(home, away, result)
    return lines


def ranking_key(line, team_name: str = ''):
    return (
        -line.points,
        -line.goal_difference,
        -line.goals_for,
        -line.shootout_wins,
        (team_name or line.team_id).lower(),
    )


def rank_lines(lines, names: dict = None) -> list:
    names = names or {}
    return sorted(lines, key=lambda line: ranking_key(line, names.get(line.team_id, '')))


def parse_score(value, field: str) -> int:
    if value is None or value == '':
        raise LeagueValidationError(f'{field} is required')
    if isinstance(value, bool):
        raise LeagueValidationError(f'{field} must be a number')
    if isinstance(value, str):
        value = value.strip()
        if not value.isdecimal():
            raise LeagueValidationError(f'{field} must be a non-negative whole number')
        return int(value)
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int) or value < 0:
        raise LeagueValidationError(f'{field} must be a non-negative whole number')
    return value


def _parse_penalties(payload: dict, home_score: int, away_score: int):
    raw_home = payload.get('homePenalties')
    raw_away = payload.get('awayPenalties')
    if raw_home is None and raw_away is None:
        return None, None
    if raw_home is None or raw_away is None:
        raise LeagueValidationError('Both homePenalties and awayPenalties are required for a shoot-out')
    if home_score != away_score:
        raise LeagueValidationError('A penalty shoot-out is only allowed after a draw')
    home_pens = parse_score(raw_home, 'homePenalties')
    away_pens = parse_score(raw_away, 'awayPenalties')
    if home_pens == away_pens:
        raise LeagueValidationError('A penalty shoot-out must have a winner')
    return home_pens, away_pens


def _parse_scorers(entries, field: str) -> list[dict]:
    if entries is None:
        return []
    if not isinstance(entries, list):
        raise LeagueValidationError(f'{field} must be a list')
    scorers = []
    for entry in entries:
        if not isinstance(entry, dict):
            raise LeagueValidationError(f'Every entry of {field} needs a playerName')
        scorers.append({
            'playerName': parse_text(entry.get('playerName'), f'{field} playerName', required=True),
            'assist': parse_text(entry.get('assist'), f'{field} assist'),
        })
    return scorers


def _parse_cards(entries, field: str) -> list[dict]:
    if entries is None:
        return []
    if not isinstance(entries, list):
        raise LeagueValidationError(f'{field} must be a list')
    cards = []
    for entry in entries:
        if not isinstance(entry, dict):
            raise LeagueValidationError(f'Every entry of {field} needs a playerName')
        player_name = parse_text(entry.get('playerName'), f'{field} playerName', required=True)
        card = entry.get('card')
        card = card.strip().lower() if isinstance(card, str) else None
        if card not in CARD_TYPES:
            raise LeagueValidationError(f"Card type in {field} must be 'yellow' or 'red'")
        cards.append({'playerName': player_name, 'card': card})
    return cards


def process_result(match_id, payload: dict) -> MatchResult:
    """Record a final score, update both standings rows and complete the match.

    The result row, both standings rows and the match status are written in a
    single transaction.
    """
    try:
        match_id = int(match_id)
    except (TypeError, ValueError):
        raise LeagueValidationError('matchId must be a match identifier')

    match = db.session.get(Match, match_id)
    if match is None:
        raise RecordNotFound(f'Match {match_id} not found')
    if match.is_archived:
        raise RecordConflict('Results cannot be entered for an archived season')
    if match.status == STATUS_COMPLETED or match.result is not None:
        raise RecordConflict('A result has already been recorded for this match')

    home_score = parse_score(payload.get('homeScore'), 'homeScore')
    away_score = parse_score(payload.get('awayScore'), 'awayScore')
    home_pens, away_pens = _parse_penalties(payload, home_score, away_score)
    if match.is_final and home_score == away_score and home_pens is None:
        raise LeagueValidationError('A drawn final must be decided by a penalty shoot-out')

    result = MatchResult(
        match_id=match.id,
        home_score=home_score,
        away_score=away_score,
        home_penalties=home_pens,
        away_penalties=away_pens,
        home_scorers=_parse_scorers(payload.get('homeScorers'), 'homeScorers'),
        away_scorers=_parse_scorers(payload.get('awayScorers'), 'awayScorers'),
        home_cards=_parse_cards(payload.get('homeCards'), 'homeCards'),
        away_cards=_parse_cards(payload.get('awayCards'), 'awayCards'),
    )
    db.session.add(result)
    match.result = result

    home_row = Standing.get_or_create(match.home_team_id, match.tournament_mode, match.is_test)
    away_row = Standing.get_or_create(match.away_team_id, match.tournament_mode, match.is_test)
    apply_result(home_row, away_row, result)

    match.status = STATUS_COMPLETED

    score_line = f'{match.versus_display}: {home_score}-{away_score}'
    if home_pens is not None:
        score_line += f' ({home_pens}-{away_pens} on penalties)'
    for team in (match.home_team, match.away_team):
        team.notify(
            f'Result posted: {score_line}.',
            kind='result',
            context_type='match',
            context_ref=str(match.id),
        )

    db.session.commit()
    current_app.logger.info('Recorded result for match %s: %s', match.id, score_line)
    return result


def _current_season_matches(tournament_mode=None, is_test=None):
    query = Match.query.filter(Match.season_id.is_(None))
    if tournament_mode is not None:
        query = query.filter(Match.tournament_mode == tournament_mode)
    if is_test is not None:
        query = query.filter(Match.is_test == is_test)
    return query


def rebuild_standings(tournament_mode=None, is_test=None, dry_run: bool = False) -> dict:
    """Replay every current-season result and replace the standings rows in scope.

    Returns the rows whose stored counters differ from the replay. With
    ``dry_run`` nothing is written.
    """
    matches = (
        _current_season_matches(tournament_mode, is_test)
        .filter(Match.status == STATUS_COMPLETED)
        .order_by(Match.date, Match.time, Match.id)
        .all()
    )

    by_scope: dict[tuple, list] = {}
    for match in matches:
        by_scope.setdefault((match.tournament_mode, match.is_test), []).append((match, match.result))
    projected = {scope: project_standings(pairs) for scope, pairs in by_scope.items()}

    stored_query = Standing.query
    if tournament_mode is not None:
        stored_query = stored_query.filter(Standing.tournament_mode == tournament_mode)
    if is_test is not None:
        stored_query = stored_query.filter(Standing.is_test == is_test)
    stored_rows = stored_query.all()
    stored = {(row.tournament_mode, row.is_test, row.team_id): row for row in stored_rows}

    differences = []
    keys = set(stored)
    for (mode, test_flag), lines in projected.items():
        keys.update((mode, test_flag, team_id) for team_id in lines)
    for mode, test_flag, team_id in sorted(keys):
        expected = projected.get((mode, test_flag), {}).get(team_id, StandingLine(team_id))
        row = stored.get((mode, test_flag, team_id))
        actual = StandingLine.from_row(row) if row else StandingLine(team_id)
        if expected.counters() != actual.counters():
            differences.append({
                'teamId': team_id,
                'tournamentMode': mode,
                'isTest': test_flag,
                'stored': actual.to_dict(),
                'replayed': expected.to_dict(),
            })

    if not dry_run:
        for row in stored_rows:
            db.session.delete(row)
        db.session.flush()
        for (mode, test_flag), lines in projected.items():
            for line in lines.values():
                row = Standing.get_or_create(line.team_id, mode, test_flag)
                for f in fields(StandingLine):
                    if f.name != 'team_id':
                        setattr(row, f.name, getattr(line, f.name))
        db.session.commit()
        current_app.logger.info(
            'Rebuilt standings from %d results (%d rows differed)', len(matches), len(differences)
        )

    return {
        'replayedResults': len(matches),
        'rows': sum(len(lines) for lines in projected.values()),
        'differences': differences,
        'dryRun': dry_run,
    }


def ranked_standings(tournament_mode: str, is_test: bool = False) -> list[dict]:
    """Ranked table for a mode; teams with fixtures but no results appear with zeros."""
    rows = Standing.query.filter_by(tournament_mode=tournament_mode, is_test=is_test).all()
    lines = {row.team_id: StandingLine.from_row(row) for row in rows}
    names = {row.team_id: row.team.name for row in rows if row.team}

    for match in _current_season_matches(tournament_mode, is_test).all():
        for team in (match.home_team, match.away_team):
            if team is None:
                continue
            lines.setdefault(team.team_id, StandingLine(team.team_id))
            names.setdefault(team.team_id, team.name)

    table = []
    for rank, line in enumerate(rank_lines(lines.values(), names), start=1):
        entry = line.to_dict(names.get(line.team_id))
        entry['rank'] = rank
        table.append(entry)
    return table


def top_scorers(tournament_mode=None, is_test=None, limit: int = 20) -> list[dict]:
    goals = Counter()
    assists = Counter()
    matches = (
        _current_season_matches(tournament_mode, is_test)
        .filter(Match.status == STATUS_COMPLETED)
        .all()
    )
    for match in matches:
        result = match.result
        if result is None:
            continue
        for team_id, scorers in (
            (match.home_team_id, result.home_scorers or []),
            (match.away_team_id, result.away_scorers or []),
        ):
            for entry in scorers:
                goals[(entry['playerName'], team_id)] += 1
                if entry.get('assist'):
                    assists[(entry['assist'], team_id)] += 1

    ordered = sorted(goals.items(), key=lambda item: (-item[1], item[0][0].lower()))
    return [
        {
            'playerName': player_name,
            'teamId': team_id,
            'goals': count,
            'assists': assists.get((player_name, team_id), 0),
        }
        for (player_name, team_id), count in ordered[:limit]
    ]
